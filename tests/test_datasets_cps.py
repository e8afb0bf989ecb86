"""
Tests for the CPS (ln) subset extraction and exploration helpers.

**Purpose**: Verify that series IDs and characteristics resolve to the right
rows, that lookups join on their first column, and that an extracted subset
is reused from the cache only while it is as new as the master file.

**Testing approach**: download_bls_files is patched in src.datasets.cps with
a function that serves tables by name and reports every other requested
file as missing. The subset cache probes the master file through
FakeTransport.
"""

from datetime import timedelta
from unittest.mock import patch

import pandas as pd
import pytest

from src.datasets.cps import (
    CPS_DATA_FILE,
    SubsetCache,
    explore_cps_characteristics,
    explore_cps_series,
    filter_by_characteristics,
    get_cps_subset,
)
from src.datasets.common import series_url
from src.data.envelope import ResultEnvelope
from src.utils.errors import ConfigurationError, FetchFailure, ServerError

DATA_URL = series_url("ln", CPS_DATA_FILE)


@pytest.fixture
def cps_tables():
    series = pd.DataFrame(
        {
            "series_id": ["LNS14000000", "LNS14000001", "LNS14000002", "LNU04000000"],
            "lfst_code": [40, 40, 40, 40],
            "periodicity_code": ["M", "M", "M", "M"],
            "series_title": [
                "(Seas) Unemployment Rate",
                "(Seas) Unemployment Rate - Men",
                "(Seas) Unemployment Rate - Women",
                "(Unadj) Unemployment Rate",
            ],
            "ages_code": ["00", "00", "00", "00"],
            "sexs_code": [0, 1, 2, 0],
            "seasonal": ["S", "S", "S", "U"],
            "footnote_codes": [None, None, None, None],
            "begin_year": [1948, 1948, 1948, 1948],
            "begin_period": ["M01", "M01", "M01", "M01"],
            "end_year": [2025, 2025, 2025, 2025],
            "end_period": ["M09", "M09", "M09", "M09"],
        }
    )
    data = pd.DataFrame(
        {
            "series_id": ["LNS14000000", "LNS14000000", "LNS14000001", "LNS14000002", "LNU04000000"],
            "year": [2025, 2025, 2025, 2025, 2025],
            "period": ["M01", "M13", "M01", "M01", "M01"],
            "value": [4.0, 4.1, 4.1, 3.9, 4.4],
            "footnote_codes": [None, None, None, None, None],
        }
    )
    ages = pd.DataFrame(
        {
            "ages_code": ["00"],
            "ages_text": ["16 years and over"],
            "display_level": [0],
            "selectable": ["T"],
            "sort_sequence": [1],
        }
    )
    sexs = pd.DataFrame({"sexs_code": [2, 0, 1], "sexs_text": ["Women", "Both Sexes", "Men"]})
    return {"series": series, "data": data, "ages": ages, "sexs": sexs}


@pytest.fixture
def downloads(cps_tables, make_batch):
    """Stand-in for download_bls_files that remembers each requested name set."""
    calls = []

    def fake(urls, **kwargs):
        calls.append(sorted(urls))
        present = {name: cps_tables[name] for name in urls if name in cps_tables}
        failed = {name: f"Not found: {url}" for name, url in urls.items() if name not in cps_tables}
        return make_batch(present, failed=failed)

    fake.calls = calls
    return fake


def test_requires_ids_or_characteristics():
    with pytest.raises(ConfigurationError, match="Provide series_ids, characteristics, or both"):
        get_cps_subset()


def test_subset_by_series_id(downloads):
    with patch("src.datasets.cps.download_bls_files", side_effect=downloads):
        result = get_cps_subset("LNS14000000", cache=False, suppress_warnings=True)

    assert result["series_id"].tolist() == ["LNS14000000", "LNS14000000"]
    assert result["value"].tolist() == [4.0, 4.1]
    assert result["sexs_text"].tolist() == ["Both Sexes", "Both Sexes"]
    assert result["ages_text"].tolist() == ["16 years and over", "16 years and over"]
    # M13 annual averages date to January
    assert result["date"].tolist() == [pd.Timestamp("2025-01-01"), pd.Timestamp("2025-01-01")]
    assert not [column for column in result.columns if "_code" in column]
    assert "display_level" not in result.columns
    assert ["data"] in downloads.calls
    assert ["ages", "lfst", "periodicity", "sexs"] in downloads.calls


def test_characteristics_expand_series_ids(downloads):
    """Codes match as text even when the series column parsed as numbers."""
    with patch("src.datasets.cps.download_bls_files", side_effect=downloads):
        result = get_cps_subset(
            series_ids=["LNS14000000"],
            characteristics={"sexs_code": "2", "seasonal": "S"},
            cache=False,
            suppress_warnings=True,
        )

    assert sorted(result["series_id"].unique()) == ["LNS14000000", "LNS14000002"]


def test_unknown_characteristic_raises(downloads):
    with patch("src.datasets.cps.download_bls_files", side_effect=downloads):
        with pytest.raises(ConfigurationError, match="Characteristic 'color_code' not found in ln.series"):
            get_cps_subset(characteristics={"color_code": "1"}, cache=False)


def test_characteristics_without_matches_raise(downloads):
    with patch("src.datasets.cps.download_bls_files", side_effect=downloads):
        with pytest.raises(ConfigurationError, match="did not match any series"):
            get_cps_subset(characteristics={"sexs_code": "9"}, cache=False)


def test_missing_master_file_raises(cps_tables, make_batch):
    def no_master(urls, **kwargs):
        if "data" in urls:
            return make_batch({}, failed={"data": "503 Service Unavailable"})
        return make_batch({"series": cps_tables["series"]})

    with patch("src.datasets.cps.download_bls_files", side_effect=no_master):
        with pytest.raises(FetchFailure, match="Required file 'data'"):
            get_cps_subset("LNS14000000", cache=False)


def test_full_table_envelope(downloads):
    """simplify_table=False keeps the codes; missing lookups show up as issues."""
    with patch("src.datasets.cps.download_bls_files", side_effect=downloads):
        envelope = get_cps_subset(
            "LNS14000001",
            simplify_table=False,
            cache=False,
            suppress_warnings=True,
            return_diagnostics=True,
        )

    assert isinstance(envelope, ResultEnvelope)
    assert envelope.data_type == "CPS subset"
    table = envelope.data()
    assert table.loc[0, "sexs_code"] == 1
    assert table.loc[0, "sexs_text"] == "Men"
    assert "date" not in table.columns
    assert "Joined sexs mapping" in envelope.processing_steps
    assert envelope.has_issues


def test_subset_cache_reused_until_master_changes(downloads, transport, last_modified, tmp_path):
    transport.serve(DATA_URL, "x", last_modified=last_modified)

    with patch("src.datasets.cps.download_bls_files", side_effect=downloads), patch(
        "src.datasets.cps.BlsClient", return_value=transport
    ):
        first = get_cps_subset("LNS14000000", cache=True, cache_dir=tmp_path, suppress_warnings=True)
        cached = list(tmp_path.glob("ln_subset_*.csv"))
        assert len(cached) == 1
        assert cached[0].stat().st_mtime == pytest.approx(last_modified.timestamp())

        downloads.calls.clear()
        second = get_cps_subset("LNS14000000", cache=True, cache_dir=tmp_path, suppress_warnings=True)
        assert ["data"] not in downloads.calls

        transport.serve(DATA_URL, "x", last_modified=last_modified + timedelta(days=1))
        get_cps_subset("LNS14000000", cache=True, cache_dir=tmp_path, suppress_warnings=True)
        assert ["data"] in downloads.calls

    assert second["value"].tolist() == first["value"].tolist()
    assert second["date"].tolist() == first["date"].tolist()


def test_unreachable_master_skips_cached_subset(downloads, transport, tmp_path):
    transport.probe_error = ServerError("503", resource=DATA_URL, status_code=503)

    with patch("src.datasets.cps.download_bls_files", side_effect=downloads), patch(
        "src.datasets.cps.BlsClient", return_value=transport
    ):
        get_cps_subset("LNS14000000", cache=True, cache_dir=tmp_path, suppress_warnings=True)
        get_cps_subset("LNS14000000", cache=True, cache_dir=tmp_path, suppress_warnings=True)

    assert downloads.calls.count(["data"]) == 2


def test_subset_cache_path_ignores_id_order(transport, tmp_path):
    store = SubsetCache(tmp_path, transport)

    assert store.path(["B", "A"]) == store.path(["A", "B"])
    assert store.path(["A"]) != store.path(["A", "B"])
    assert store.load(["A"], None) is None


def test_filter_by_characteristics_accepts_lists(cps_tables):
    matches = filter_by_characteristics(cps_tables["series"], {"sexs_code": ["1", "2"]})

    assert matches["series_id"].tolist() == ["LNS14000001", "LNS14000002"]


def test_explore_series_by_search(downloads, capsys):
    with patch("src.datasets.cps.download_bls_files", side_effect=downloads):
        result = explore_cps_series(search="women")

    assert result["series_id"].tolist() == ["LNS14000002"]
    assert result.columns.tolist()[:7] == [
        "series_id", "series_title", "seasonal",
        "begin_year", "begin_period", "end_year", "end_period",
    ]
    assert result.columns.tolist()[7:] == ["lfst_code", "periodicity_code", "ages_code", "sexs_code"]
    assert "Found 1 series matching search: 'women'" in capsys.readouterr().out


def test_explore_series_several_terms_and_seasonal(downloads):
    with patch("src.datasets.cps.download_bls_files", side_effect=downloads):
        both = explore_cps_series(search=["women", "unadj"], verbose=False)
        unadjusted = explore_cps_series(seasonal="U", verbose=False)

    assert both["series_id"].tolist() == ["LNS14000002", "LNU04000000"]
    assert unadjusted["series_id"].tolist() == ["LNU04000000"]


def test_explore_series_limits_results(downloads, capsys):
    with patch("src.datasets.cps.download_bls_files", side_effect=downloads):
        result = explore_cps_series(characteristics={"seasonal": "S"}, max_results=2)

    assert result["series_id"].tolist() == ["LNS14000000", "LNS14000001"]
    assert "Showing first 2 of 3 results" in capsys.readouterr().out


def test_explore_series_no_match(downloads, capsys):
    with patch("src.datasets.cps.download_bls_files", side_effect=downloads):
        result = explore_cps_series(search="payroll")

    assert result.empty
    assert "series_id" in result.columns
    assert "No series found matching your criteria." in capsys.readouterr().out


def test_explore_series_rejects_bad_arguments():
    with pytest.raises(ConfigurationError, match="seasonal must be 'S'"):
        explore_cps_series(seasonal="X")
    with pytest.raises(ConfigurationError, match="max_results must be at least 1"):
        explore_cps_series(max_results=0)


def test_explore_characteristics_lists_code_columns(downloads):
    with patch("src.datasets.cps.download_bls_files", side_effect=downloads):
        table = explore_cps_characteristics(verbose=False)

    assert table["characteristic"].tolist() == ["lfst", "periodicity", "ages", "sexs"]
    assert table["code_column"].tolist() == ["lfst_code", "periodicity_code", "ages_code", "sexs_code"]
    assert table.loc[3, "description"] == "Sex/gender"


def test_explore_characteristic_uses_lookup(downloads):
    with patch("src.datasets.cps.download_bls_files", side_effect=downloads):
        sexs = explore_cps_characteristics("sexs_code", verbose=False)
        ages = explore_cps_characteristics("ages", verbose=False)

    assert sexs["sexs_code"].tolist() == [0, 1, 2]
    assert sexs["sexs_text"].tolist() == ["Both Sexes", "Men", "Women"]
    assert ages.columns.tolist() == ["ages_code", "ages_text"]


def test_explore_characteristic_falls_back_to_series_codes(downloads, capsys):
    """lfst has no lookup file here, so the distinct codes come from ln.series."""
    with patch("src.datasets.cps.download_bls_files", side_effect=downloads):
        envelope = explore_cps_characteristics("lfst", return_diagnostics=True)

    assert envelope.data().columns.tolist() == ["lfst"]
    assert envelope.data()["lfst"].tolist() == [40]
    assert envelope.has_issues
    assert "No mapping file found for 'lfst'" in capsys.readouterr().out


def test_explore_unknown_characteristic_lists_choices(downloads):
    with patch("src.datasets.cps.download_bls_files", side_effect=downloads):
        with pytest.raises(ConfigurationError, match="  - sexs"):
            explore_cps_characteristics("color")
