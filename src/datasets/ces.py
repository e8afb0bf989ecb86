"""
State and Metro Area Current Employment Statistics (CES), database ``sm``.
"""

from typing import List, Optional, Union

import pandas as pd

from src.datasets.common import (
    add_date_column,
    drop_annual_averages,
    drop_column_range,
    drop_columns_if_present,
    finalize,
    left_join_if_present,
    numeric_values,
    require_table,
    series_url,
)
from src.orchestration.downloads import download_bls_files

CES_FILES = {
    "Main Data": "sm.data.1.AllData",
    "Series Metadata": "sm.series",
    "Industry Codes": "sm.industry",
    "State Codes": "sm.state",
    "Area Codes": "sm.area",
    "Data Types": "sm.data_type",
    "Supersector Codes": "sm.supersector",
}

CES_LOOKUPS = {
    "Industry Codes": "industry_code",
    "State Codes": "state_code",
    "Area Codes": "area_code",
    "Data Types": "data_type_code",
    "Supersector Codes": "supersector_code",
}

# Employment series (all, women, production employees) published in thousands.
THOUSANDS_DATA_TYPES = ("01", "06", "26")

CES_STATES = [
    "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "DC", "FL",
    "GA", "HI", "ID", "IL", "IN", "IA", "KS", "KY", "LA", "ME",
    "MD", "MA", "MI", "MN", "MS", "MO", "MT", "NE", "NV", "NH",
    "NJ", "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "PR",
    "RI", "SC", "SD", "TN", "TX", "UT", "VT", "VA", "VI", "WA",
    "WV", "WI", "WY",
]

CES_INDUSTRIES = {
    "current_year": "Recent data across all industries (2006-present)",
    "total_nonfarm": "Total non-farm employment (all industries, all years)",
    "total_nonfarm_statewide": "Total non-farm employment (statewide level)",
    "total_private": "Total private sector employment",
    "goods_producing": "Goods-producing industries",
    "service_providing": "Service-providing industries",
    "private_service_providing": "Private service-providing industries",
    "mining_logging": "Mining and logging",
    "mining_logging_construction": "Mining, logging, and construction",
    "construction": "Construction",
    "manufacturing": "Manufacturing",
    "durable_goods": "Durable goods manufacturing",
    "nondurable_goods": "Non-durable goods manufacturing",
    "trade_trans_utilities": "Trade, transportation, and utilities",
    "wholesale_trade": "Wholesale trade",
    "retail_trade": "Retail trade",
    "trans_utilities": "Transportation and utilities",
    "information": "Information services",
    "financial_activities": "Financial activities",
    "prof_business_services": "Professional and business services",
    "edu_health_services": "Education and health services",
    "leisure_hospitality": "Leisure and hospitality",
    "other_services": "Other services",
    "government": "Government",
}


def list_ces_states() -> List[str]:
    """Postal codes of the states and territories covered by state CES."""
    return list(CES_STATES)


def list_ces_industries(show_descriptions: bool = False) -> Union[List[str], pd.DataFrame]:
    """
    Industry filter names for state CES.

    Returns:
        A list of names, or a DataFrame with filter and description columns
        when show_descriptions is True.
    """
    if not show_descriptions:
        return list(CES_INDUSTRIES)
    return pd.DataFrame(
        {"filter": list(CES_INDUSTRIES), "description": list(CES_INDUSTRIES.values())}
    )


def show_ces_options() -> None:
    """Print the state CES states, industry filters and usage examples."""
    print("=== BLS Current Employment Statistics (CES) Filtering Options ===")
    print("")
    print(f"AVAILABLE STATES ({len(CES_STATES)} total):")
    for start in range(0, len(CES_STATES), 10):
        print("   " + ", ".join(CES_STATES[start:start + 10]))
    print("")
    print(f"AVAILABLE INDUSTRY FILTERS ({len(CES_INDUSTRIES)} total):")
    for name, description in CES_INDUSTRIES.items():
        print(f"  {name:<25}: {description}")
    print("")
    print("USAGE EXAMPLES:")
    print("  # All states, industries and years, with diagnostics")
    print("  ces = get_ces(return_diagnostics=True)")
    print("  # Keep employment in thousands and the M13 annual averages")
    print("  ces = get_ces(transform=False, monthly_only=False)")


def get_ces(
    transform: bool = True,
    monthly_only: bool = True,
    simplify_table: bool = True,
    cache: Optional[bool] = None,
    suppress_warnings: bool = False,
    return_diagnostics: bool = False,
):
    """
    Download state and metro CES and join every lookup table.

    Args:
        transform: Convert employment levels from thousands to persons and
                   drop ", In Thousands" from data_type_text.
        monthly_only: Drop M13 annual-average rows.
        simplify_table: Add date, drop series metadata, year and period, and
                        drop statewide national rows (state_code 00).
        cache: True/False to force caching, None for USE_BLS_CACHE.
        suppress_warnings: Do not print progress or the diagnostics block.
        return_diagnostics: Return a ResultEnvelope instead of the table.

    Raises:
        FetchFailure: If the main data file cannot be loaded.
    """
    urls = {name: series_url("sm", file_name) for name, file_name in CES_FILES.items()}
    if not suppress_warnings:
        print("Starting CES data download...")
    batch = download_bls_files(urls, suppress_warnings=suppress_warnings, cache=cache)

    ces = drop_columns_if_present(require_table(batch, "Main Data"), ["footnote_codes"])
    ces, _ = left_join_if_present(ces, batch.table("Series Metadata"), "series_id")
    for name, key in CES_LOOKUPS.items():
        ces, _ = left_join_if_present(ces, batch.table(name), key)

    ces = numeric_values(ces)
    ces["industry_code"] = ces["series_id"].astype(str).str[10:18]
    ces = ces[ces["value"].notna()].reset_index(drop=True)
    steps = ["joined_metadata", "converted_values", "removed_na"]

    if transform and "data_type_code" in ces.columns:
        in_thousands = ces["data_type_code"].isin(THOUSANDS_DATA_TYPES)
        ces.loc[in_thousands, "value"] = ces.loc[in_thousands, "value"] * 1000
        if "data_type_text" in ces.columns:
            ces["data_type_text"] = ces["data_type_text"].str.replace(", In Thousands", "", regex=False)
        steps.append("transformed_values")

    if monthly_only:
        ces = drop_annual_averages(ces)
        steps.append("monthly_only")

    if simplify_table:
        ces = add_date_column(ces)
        ces = drop_column_range(ces, "benchmark_year", "end_period")
        ces = drop_columns_if_present(ces, ["year", "period"])
        if "state_code" in ces.columns:
            ces = ces[ces["state_code"] != "00"].reset_index(drop=True)
        steps.extend(["simplified_table", "added_date_column"])

    if not suppress_warnings:
        print(f"CES data download complete! Final dataset dimensions: {ces.shape[0]} x {ces.shape[1]}")

    return finalize(ces, batch, "CES", steps, suppress_warnings, return_diagnostics)
