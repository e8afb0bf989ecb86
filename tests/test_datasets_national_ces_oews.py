"""
Tests for get_national_ces() and get_oews().
"""

from unittest.mock import patch

import pandas as pd
import pytest

from src.datasets.national_ces import (
    NATIONAL_CES_DATASETS,
    get_national_ces,
    list_national_ces_options,
    show_national_ces_options,
)
from src.datasets.oews import get_oews
from src.utils.errors import ConfigurationError


@pytest.fixture
def national_tables():
    data = pd.DataFrame(
        {
            "series_id": ["CES0000000001", "CES0000000001"],
            "year": [2024, 2024],
            "period": ["M01", "M13"],
            "value": [157000.0, 156800.0],
            "footnote_codes": [None, None],
        }
    )
    series = pd.DataFrame(
        {
            "series_id": ["CES0000000001"],
            "supersector_code": ["00"],
            "industry_code": ["00000000"],
            "data_type_code": ["01"],
            "series_title": ["All employees, thousands, total nonfarm"],
            "begin_year": [1939],
            "end_period": ["M12"],
        }
    )
    industry = pd.DataFrame({"industry_code": ["00000000"], "industry_name": ["Total nonfarm"]})
    period = pd.DataFrame(
        {"period": ["M01", "M13"], "mm": ["JAN", "AN AV"], "month": ["January", "Annual Average"]}
    )
    return {"data": data, "series": series, "industry": industry, "period": period}


def test_national_ces_options():
    assert list_national_ces_options() == list(NATIONAL_CES_DATASETS)
    table = list_national_ces_options(show_descriptions=True)
    assert table.columns.tolist() == ["filter", "description"]


def test_invalid_filter_raises():
    with pytest.raises(ConfigurationError, match="Invalid dataset_filter 'weekly'"):
        get_national_ces(dataset_filter="weekly")


def test_national_ces_filter_selects_file(national_tables, make_batch):
    with patch("src.datasets.national_ces.download_bls_files", return_value=make_batch(national_tables)) as mock_download:
        envelope = get_national_ces("current_seasonally_adjusted", return_diagnostics=True)

    assert mock_download.call_args.args[0]["data"].endswith("/ce/ce.data.01a.CurrentSeasAE")
    assert envelope.data_type == "National CES: Seasonally adjusted all-employee series"


def test_national_ces_simplified(national_tables, make_batch):
    with patch("src.datasets.national_ces.download_bls_files", return_value=make_batch(national_tables)):
        result = get_national_ces()

    assert len(result) == 1
    assert result.loc[0, "industry_name"] == "Total nonfarm"
    assert result.loc[0, "month"] == "January"
    assert result.loc[0, "date"] == pd.Timestamp("2024-01-01")
    assert "series_title" not in result.columns
    assert "footnote_codes" not in result.columns


def test_national_ces_full(national_tables, make_batch):
    with patch("src.datasets.national_ces.download_bls_files", return_value=make_batch(national_tables)):
        result = get_national_ces(monthly_only=False, simplify_table=False)

    assert len(result) == 2
    assert "series_title" in result.columns
    assert "date" not in result.columns


def test_oews_natural_joins(make_batch):
    """Area joins on every shared key, so one row per estimate survives."""
    data = pd.DataFrame({"series_id": ["OEUM001"], "year": [2024], "period": ["A01"], "value": ["61.50"]})
    series = pd.DataFrame(
        {
            "series_id": ["OEUM001"],
            "areatype_code": ["M"],
            "state_code": ["01"],
            "area_code": ["0010180"],
            "occupation_code": ["151252"],
            "datatype_code": ["08"],
        }
    )
    area = pd.DataFrame(
        {
            "state_code": ["01", "02"],
            "area_code": ["0010180", "0010180"],
            "areatype_code": ["M", "M"],
            "area_name": ["Abilene, TX", "Wrong state"],
        }
    )
    occupation = pd.DataFrame({"occupation_code": ["151252"], "occupation_name": ["Software Developers"]})
    datatype = pd.DataFrame({"datatype_code": ["08"], "datatype_name": ["Hourly median wage"]})
    batch = make_batch(
        {"data": data, "series": series, "occupation": occupation, "area": area, "datatype": datatype}
    )

    with patch("src.datasets.oews.download_bls_files", return_value=batch):
        result = get_oews()

    assert len(result) == 1
    assert result.loc[0, "area_name"] == "Abilene, TX"
    assert result.loc[0, "occupation_name"] == "Software Developers"
    assert result.loc[0, "value"] == pytest.approx(61.5)


def test_show_national_ces_options(capsys):
    show_national_ces_options()

    out = capsys.readouterr().out
    assert "AVAILABLE DATASETS (4 options):" in out
    assert "real_earnings_production: Real earnings data (1982-84 dollars) for production employees" in out
    assert "get_national_ces(dataset_filter='current_seasonally_adjusted')" in out
