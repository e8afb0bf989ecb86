"""
Occupational Employment and Wage Statistics (OEWS), database ``oe``.
"""

from typing import Optional

from src.datasets.common import (
    drop_columns_if_present,
    finalize,
    left_join_if_present,
    numeric_values,
    require_table,
    series_url,
)
from src.orchestration.downloads import download_bls_files

OEWS_FILES = {
    "data": "oe.data.0.Current",
    "series": "oe.series",
    "occupation": "oe.occupation",
    "area": "oe.area",
    "datatype": "oe.datatype",
}


def get_oews(
    cache: Optional[bool] = None,
    suppress_warnings: bool = True,
    return_diagnostics: bool = False,
):
    """
    Download current OEWS estimates joined to series, occupation, area and
    datatype labels.

    Lookup tables are joined on every column they share with the running
    table (area joins on state, area and area type together).

    Raises:
        FetchFailure: If the main data file cannot be loaded.
    """
    urls = {name: series_url("oe", file_name) for name, file_name in OEWS_FILES.items()}
    batch = download_bls_files(urls, suppress_warnings=suppress_warnings, cache=cache)

    oews = drop_columns_if_present(require_table(batch, "data"), ["footnote_codes"])
    series = batch.table("series")
    if series is not None:
        series = drop_columns_if_present(series, ["footnote_codes"])
    oews, _ = left_join_if_present(oews, series, "series_id")
    for name in ("occupation", "area", "datatype"):
        oews, _ = left_join_if_present(oews, batch.table(name))
    oews = numeric_values(oews)
    steps = ["Joined series, occupation, area and datatype metadata", "Converted values to numeric"]

    return finalize(oews, batch, "OEWS", steps, suppress_warnings, return_diagnostics)
