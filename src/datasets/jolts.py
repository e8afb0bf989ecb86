"""
Job Openings and Labor Turnover Survey (JOLTS), database ``jt``.

Values are published in thousands (levels) and percent (rates). get_jolts()
converts levels to persons and rates to proportions. Unemployed-per-opening
ratios (dataelement UO) are published as plain ratios and classified as
rates, so they are scaled by 100 first to survive the rate division intact.
"""

from typing import Optional

import numpy as np
import pandas as pd

from src.datasets.common import (
    add_date_column,
    drop_annual_averages,
    drop_columns_if_present,
    drop_lookup_metadata,
    finalize,
    left_join_if_present,
    numeric_values,
    require_table,
    series_url,
)
from src.orchestration.downloads import download_bls_files

JOLTS_FILES = {
    "data": "jt.data.1.AllItems",
    "series": "jt.series",
    "state": "jt.state",
    "dataelement": "jt.dataelement",
    "area": "jt.area",
    "sizeclass": "jt.sizeclass",
    "industry": "jt.industry",
}

# Lookup name -> join key.
JOLTS_LOOKUPS = {
    "state": "state_code",
    "dataelement": "dataelement_code",
    "area": "area_code",
    "sizeclass": "sizeclass_code",
    "industry": "industry_code",
}

REGION_CODES = ("MW", "NE", "SO", "WE")
NATIONAL_CODE = "00"

RATELEVEL_LABELS = {"L": "Level", "R": "Rate"}


def transform_jolts_values(df: pd.DataFrame) -> pd.DataFrame:
    """
    Label ratelevel_code and rescale value.

    UO values are multiplied by 100; then Rate rows are divided by 100 and
    every other row is multiplied by 1000.
    """
    df = numeric_values(df)
    df["ratelevel_code"] = df["ratelevel_code"].map(RATELEVEL_LABELS).fillna("Other")

    value = df["value"].where(df["dataelement_code"] != "UO", df["value"] * 100)
    df["value"] = np.where(df["ratelevel_code"] == "Rate", value / 100, value * 1000)
    return df


def get_jolts(
    monthly_only: bool = True,
    remove_regions: bool = True,
    remove_national: bool = True,
    cache: Optional[bool] = None,
    suppress_warnings: bool = True,
    return_diagnostics: bool = False,
):
    """
    Download and assemble JOLTS with all lookup labels joined.

    Args:
        monthly_only: Drop M13 annual-average rows.
        remove_regions: Drop the four census regions (MW, NE, SO, WE).
        remove_national: Drop the national total (state_code 00).
        cache: True/False to force caching, None for USE_BLS_CACHE.
        suppress_warnings: Do not print the diagnostics block.
        return_diagnostics: Return a ResultEnvelope instead of the table.

    Returns:
        DataFrame (or ResultEnvelope) with date, periodname and rescaled value.

    Raises:
        FetchFailure: If the main data file cannot be loaded.
    """
    urls = {name: series_url("jt", file_name) for name, file_name in JOLTS_FILES.items()}
    batch = download_bls_files(urls, suppress_warnings=suppress_warnings, cache=cache)

    jolts = drop_columns_if_present(require_table(batch, "data"), ["footnote_codes"])
    series = batch.table("series")
    if series is not None:
        series = drop_columns_if_present(series, ["footnote_codes"])
    jolts, _ = left_join_if_present(jolts, series, "series_id")
    for name, key in JOLTS_LOOKUPS.items():
        jolts, _ = left_join_if_present(jolts, drop_lookup_metadata(batch.table(name)), key)
    steps = ["Joined series, state, data element, area, size class and industry metadata"]

    if monthly_only:
        jolts = drop_annual_averages(jolts)
        steps.append("Filtered to monthly data only")

    if remove_regions and "state_code" in jolts.columns:
        jolts = jolts[~jolts["state_code"].isin(REGION_CODES)].reset_index(drop=True)
        steps.append("Removed census regions")

    if remove_national and "state_code" in jolts.columns:
        jolts = jolts[jolts["state_code"] != NATIONAL_CODE].reset_index(drop=True)
        steps.append("Removed national totals")

    jolts = add_date_column(jolts)
    jolts["periodname"] = jolts["date"].dt.month_name()
    steps.append("Created date and periodname columns")

    if {"ratelevel_code", "dataelement_code"}.issubset(jolts.columns):
        jolts = transform_jolts_values(jolts)
        steps.append("Converted levels to persons and rates to proportions")

    return finalize(jolts, batch, "JOLTS", steps, suppress_warnings, return_diagnostics)
