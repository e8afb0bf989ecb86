"""
National Current Employment Statistics (CES), database ``ce``.
"""

from dataclasses import dataclass
from typing import List, Optional, Union

import pandas as pd

from src.datasets.common import (
    add_date_column,
    drop_annual_averages,
    drop_columns_if_present,
    finalize,
    left_join_if_present,
    require_table,
    series_url,
)
from src.orchestration.downloads import download_bls_files
from src.utils.errors import ConfigurationError


@dataclass(frozen=True)
class NationalCesDataset:
    file_name: str
    name: str
    description: str

    @property
    def url(self) -> str:
        return series_url("ce", self.file_name)


NATIONAL_CES_DATASETS = {
    "all_data": NationalCesDataset(
        "ce.data.0.AllCESSeries",
        "Complete national CES dataset",
        "Complete national CES dataset - all series and full history",
    ),
    "current_seasonally_adjusted": NationalCesDataset(
        "ce.data.01a.CurrentSeasAE",
        "Seasonally adjusted all-employee series",
        "Seasonally adjusted all-employee series only (faster download)",
    ),
    "real_earnings_all_employees": NationalCesDataset(
        "ce.data.02b.AllRealEarningsAE",
        "Real earnings for all employees",
        "Real earnings data (1982-84 dollars) for all employees",
    ),
    "real_earnings_production": NationalCesDataset(
        "ce.data.03c.AllRealEarningsPE",
        "Real earnings for production employees",
        "Real earnings data (1982-84 dollars) for production employees",
    ),
}

NATIONAL_CES_LOOKUPS = {
    "industry": "industry_code",
    "period": "period",
    "datatype": "data_type_code",
    "supersector": "supersector_code",
}

SERIES_METADATA_COLUMNS = [
    "series_title", "begin_year", "begin_period", "end_year", "end_period",
    "naics_code", "publishing_status", "display_level", "selectable", "sort_sequence",
]


def list_national_ces_options(show_descriptions: bool = False) -> Union[List[str], pd.DataFrame]:
    """Valid dataset_filter values, optionally with descriptions."""
    if not show_descriptions:
        return list(NATIONAL_CES_DATASETS)
    return pd.DataFrame(
        {
            "filter": list(NATIONAL_CES_DATASETS),
            "description": [dataset.description for dataset in NATIONAL_CES_DATASETS.values()],
        }
    )


def show_national_ces_options() -> None:
    """Print the national CES dataset filters and usage examples."""
    print("=== BLS National Current Employment Statistics (CES) Dataset Options ===")
    print("")
    print(f"AVAILABLE DATASETS ({len(NATIONAL_CES_DATASETS)} options):")
    for name, dataset in NATIONAL_CES_DATASETS.items():
        print(f"  {name}: {dataset.description}")
    print("")
    print("USAGE EXAMPLES:")
    for name, dataset in NATIONAL_CES_DATASETS.items():
        print(f"  # {dataset.name} ({dataset.file_name})")
        print(f"  ces = get_national_ces(dataset_filter='{name}')")
    print("")
    print("Note: All options include metadata files for context and labels.")


def get_national_ces(
    dataset_filter: str = "all_data",
    monthly_only: bool = True,
    simplify_table: bool = True,
    suppress_warnings: bool = True,
    return_diagnostics: bool = False,
    cache: Optional[bool] = None,
):
    """
    Download national CES with series, industry, period, datatype and
    supersector labels.

    Args:
        dataset_filter: Key of NATIONAL_CES_DATASETS.
        monthly_only: Drop M13 annual-average rows.
        simplify_table: Drop series metadata columns and add a date column.
        suppress_warnings: Do not print the diagnostics block.
        return_diagnostics: Return a ResultEnvelope instead of the table.
        cache: True/False to force caching, None for USE_BLS_CACHE.

    Raises:
        ConfigurationError: Unknown dataset_filter.
        FetchFailure: If the main data file cannot be loaded.
    """
    if dataset_filter not in NATIONAL_CES_DATASETS:
        raise ConfigurationError(
            f"Invalid dataset_filter '{dataset_filter}'. Must be one of: "
            f"{', '.join(NATIONAL_CES_DATASETS)}"
        )
    dataset = NATIONAL_CES_DATASETS[dataset_filter]

    urls = {
        "data": dataset.url,
        "series": series_url("ce", "ce.series"),
        "industry": series_url("ce", "ce.industry"),
        "period": series_url("ce", "ce.period"),
        "datatype": series_url("ce", "ce.datatype"),
        "supersector": series_url("ce", "ce.supersector"),
    }
    batch = download_bls_files(urls, suppress_warnings=suppress_warnings, cache=cache)

    ces = drop_columns_if_present(require_table(batch, "data"), ["footnote_codes"])
    series = batch.table("series")
    if series is not None:
        series = drop_columns_if_present(series, ["footnote_codes"])
    ces, _ = left_join_if_present(ces, series, "series_id")
    for name, key in NATIONAL_CES_LOOKUPS.items():
        ces, _ = left_join_if_present(ces, batch.table(name), key)
    steps = ["joined_all_datasets"]

    if monthly_only:
        ces = drop_annual_averages(ces)
        steps.append("filtered_monthly_only")

    if simplify_table:
        ces = add_date_column(drop_columns_if_present(ces, SERIES_METADATA_COLUMNS))
        steps.extend(["simplified_table", "added_date_column"])

    return finalize(
        ces, batch, f"National CES: {dataset.name}", steps, suppress_warnings, return_diagnostics
    )
