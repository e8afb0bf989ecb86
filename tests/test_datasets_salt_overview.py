"""
Tests for the SALT transforms and the database overview fetch.
"""

from unittest.mock import patch

import pandas as pd
import pytest

from src.data.fetcher import Fetcher
from src.datasets.overview import bls_overview, overview_url
from src.datasets.salt import SALT_URL, get_salt, transform_salt
from src.utils.errors import ConfigurationError, FetchFailure, ParseFailure


def raw_salt_rows():
    """Two states over five quarters plus one sub-state area."""
    rows = []
    quarters = [(2023, 1), (2023, 2), (2023, 3), (2023, 4), (2024, 1)]
    for fips, state, base in (("01", "Alabama", 3.0), ("02", "Alaska", 5.0), ("0101", "Sub-area", 9.0)):
        for i, (year, quarter) in enumerate(quarters):
            rows.append(
                {
                    "Record": len(rows) + 1,
                    "FIPS": fips,
                    "State": state,
                    "Start Year": year - 1,
                    "Start Quarter": quarter,
                    "End Year": year,
                    "End Quarter": quarter,
                    "Unique Period": f"{year}Q{quarter}",
                    "Civilian Labor Force": 1000.0,
                    "Unemployed": 50.0,
                    "Job Losers": 20.0,
                    "Unemployed 15+ Weeks": 10.0,
                    "Discouraged Workers": 10.0,
                    "All Marginally Attached": 30.0,
                    "Involuntary Part Time Employed": 40.0,
                    "U-1": base + i,
                    "U-2": base,
                    "U-3": base + 2,
                    "U-4": base + 3,
                    "U-5": base + 4,
                    "U-6": base + 6,
                }
            )
    return pd.DataFrame(rows)


def test_transform_salt_columns_and_derivations():
    salt = transform_salt(raw_salt_rows())

    assert set(salt["state"]) == {"Alabama", "Alaska"}
    for column in ("record", "start_year", "end_quarter", "unique_period"):
        assert column not in salt.columns

    first = salt.iloc[0]
    assert first["date"] == pd.Timestamp("2023-01-01")
    assert first["period_name"] == "2023Q1"
    assert first["u1"] == pytest.approx(0.03)
    assert first["u3"] == pytest.approx(0.05)
    assert first["not_job_losers"] == 30.0
    assert first["unemployed_under_14_weeks"] == 40.0
    assert first["losers_notlosers_ratio"] == pytest.approx(20 / 30)
    assert first["u1b"] == pytest.approx(0.02)
    assert first["u4b"] == pytest.approx(10 / 1010)
    assert first["u5b"] == pytest.approx(20 / 1020)
    assert first["u6b"] == pytest.approx(0.04)


def test_transform_salt_quartiles_per_date():
    salt = transform_salt(raw_salt_rows())

    first_quarter = salt[salt["date"] == pd.Timestamp("2023-01-01")]
    # u1 is 0.03 (Alabama) and 0.05 (Alaska) on this date
    assert first_quarter["u1_50"].tolist() == pytest.approx([0.04, 0.04])
    assert first_quarter["u1_25"].iloc[0] == pytest.approx(0.035)
    assert first_quarter["u1_75"].iloc[0] == pytest.approx(0.045)


def test_transform_salt_lags_within_state():
    salt = transform_salt(raw_salt_rows())
    alabama = salt[salt["state"] == "Alabama"].reset_index(drop=True)

    assert pd.isna(alabama.loc[0, "pq_u1"])
    assert alabama.loc[1, "pq_u1"] == pytest.approx(0.03)
    assert pd.isna(alabama.loc[3, "py_u1"])
    assert alabama.loc[4, "py_u1"] == pytest.approx(0.03)
    # Lags never cross from one state to the next
    alaska = salt[salt["state"] == "Alaska"].reset_index(drop=True)
    assert pd.isna(alaska.loc[0, "pq_u1"])


def test_transform_salt_keeps_substate_when_asked():
    salt = transform_salt(raw_salt_rows(), only_states=False)

    assert "Sub-area" in set(salt["state"])


def test_get_salt_reads_workbook_raw(transport, uncached_settings):
    transport.serve(SALT_URL, b"PK\x03\x04 not really a workbook")
    fetcher = Fetcher(transport, settings=uncached_settings)

    with patch("src.datasets.salt.pd.read_excel", return_value=raw_salt_rows()) as mock_read:
        salt = get_salt(fetcher=fetcher)

    assert mock_read.call_args.kwargs["skiprows"] == 1
    assert len(salt) == 10
    assert fetcher.cache_store._temp_dirs == set()


def test_get_salt_unreadable_workbook(transport, uncached_settings):
    transport.serve(SALT_URL, b"<html>maintenance</html>")
    fetcher = Fetcher(transport, settings=uncached_settings)

    with pytest.raises(ParseFailure, match="Could not read SALT workbook"):
        get_salt(fetcher=fetcher)


def test_overview_prints_and_returns_text(transport, uncached_settings, capsys):
    url = overview_url("ce")
    transport.texts[url] = "Current Employment Statistics\n\nSection 1. Survey"
    fetcher = Fetcher(transport, settings=uncached_settings)

    text = bls_overview("ce", fetcher=fetcher)

    assert url == "https://download.bls.gov/pub/time.series/ce/ce.txt"
    assert text.startswith("Current Employment Statistics")
    out = capsys.readouterr().out
    assert "=== BLS Dataset Overview: CE ===" in out
    assert "Section 1. Survey" in out


def test_overview_quiet(transport, uncached_settings, capsys):
    transport.texts[overview_url("jt")] = "JOLTS"
    fetcher = Fetcher(transport, settings=uncached_settings)

    assert bls_overview("jt", display=False, fetcher=fetcher) == "JOLTS"
    assert capsys.readouterr().out == ""


def test_overview_failure_names_code_and_url(transport, uncached_settings):
    fetcher = Fetcher(transport, settings=uncached_settings)

    with pytest.raises(FetchFailure, match="Could not fetch overview for database 'zz'"):
        bls_overview("zz", fetcher=fetcher)


def test_overview_requires_code():
    with pytest.raises(ConfigurationError):
        bls_overview("  ")
