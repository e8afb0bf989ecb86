"""
Quarterly Census of Employment and Wages (QCEW) open-data slices.

QCEW is not a time.series database. BLS publishes one CSV per year, quarter
(or annual average) and industry or area at
``https://data.bls.gov/cew/data/api/{year}/{quarter}/{industry|area}/{code}.csv``.
get_qcew() fetches the requested slices through the same pipeline as every
other file, stacks whatever arrived, and labels industry and area codes from
the BLS classification title tables.

Slices are only published from 2014 on; slices for quarters that have not
been released yet fail with 404 and show up as failed files in the
diagnostics.
"""

import logging
from typing import List, Optional

import pandas as pd

from src.datasets.common import finalize, left_join_if_present
from src.orchestration.downloads import BatchResult, download_bls_files
from src.utils.errors import ConfigurationError
from src.utils.time import Clock, bls_period_to_date, get_real_clock, months_before

logger = logging.getLogger(__name__)

QCEW_API_URL = "https://data.bls.gov/cew/data/api"
INDUSTRY_TITLES_URL = "https://www.bls.gov/cew/classifications/industry/industry-titles.csv"
AREA_TITLES_URL = "https://www.bls.gov/cew/classifications/areas/area-titles.csv"

PERIOD_TYPES = ("quarter", "year")
FIRST_SLICE_YEAR = 2014

# Codes that must keep their exact text ("10", "31-33", "01000", "US000").
QCEW_TEXT_COLUMNS = ["industry_code", "area_fips"]
CSV_OPTIONS = {"delimiter": ",", "text_columns": QCEW_TEXT_COLUMNS}


def qcew_slice_url(
    year: int,
    quarter: str,
    industry_code: Optional[str] = None,
    area_code: Optional[str] = None,
) -> str:
    """URL of one QCEW slice. Hyphens in industry codes become underscores."""
    if industry_code is not None:
        return f"{QCEW_API_URL}/{year}/{quarter}/industry/{industry_code.replace('-', '_')}.csv"
    return f"{QCEW_API_URL}/{year}/{quarter}/area/{area_code}.csv"


def qcew_date(df: pd.DataFrame, period_type: str) -> pd.Series:
    """First month of each row's quarter, or January 1 for annual slices."""
    if period_type == "quarter":
        quarter = pd.to_numeric(df["qtr"], errors="coerce")
        codes = "Q" + quarter.map(lambda q: f"{int(q):02d}" if pd.notna(q) else "")
    else:
        codes = pd.Series("A01", index=df.index)
    return bls_period_to_date(df["year"], codes)


def _validate(period_type, year_start, year_end, industry_code, area_code):
    if period_type not in PERIOD_TYPES:
        raise ConfigurationError("period_type must be either 'quarter' or 'year'.")
    if industry_code is None and area_code is None:
        raise ConfigurationError("You must provide either an industry_code or an area_code.")
    if industry_code is not None and area_code is not None:
        raise ConfigurationError("Please provide only one: industry_code OR area_code, not both.")
    if year_start > year_end:
        raise ConfigurationError(f"year_start ({year_start}) is after year_end ({year_end}).")


def _add_lookups(data: pd.DataFrame, batch: BatchResult, cache, silently: bool) -> pd.DataFrame:
    lookups = download_bls_files(
        {"industry_titles": INDUSTRY_TITLES_URL, "area_titles": AREA_TITLES_URL},
        suppress_warnings=silently,
        cache=cache,
        parser_options=CSV_OPTIONS,
    )
    batch.records.extend(lookups.records)
    batch.failed.extend(lookups.failed)
    if lookups.failed:
        logger.warning("QCEW lookups unavailable (%s); returning codes without titles", ", ".join(lookups.failed))

    data, _ = left_join_if_present(data, lookups.table("industry_titles"), "industry_code")
    data, _ = left_join_if_present(data, lookups.table("area_titles"), "area_fips")
    return data


def get_qcew(
    period_type: str = "quarter",
    year_start: Optional[int] = None,
    year_end: Optional[int] = None,
    industry_code: Optional[str] = None,
    area_code: Optional[str] = None,
    add_lookups: bool = True,
    silently: bool = False,
    cache: Optional[bool] = None,
    return_diagnostics: bool = False,
    clock: Optional[Clock] = None,
):
    """
    Download QCEW slices for one industry or one area over a range of years.

    Args:
        period_type: "quarter" (quarters 1-4) or "year" (annual averages).
        year_start: First year; defaults to the year six months ago.
        year_end: Last year (inclusive); same default.
        industry_code: NAICS-based QCEW industry code, e.g. "10" or "31-33".
        area_code: QCEW area FIPS code, e.g. "US000" or "26000".
        add_lookups: Join industry_title and area_title.
        silently: Do not print the slice URLs or the diagnostics block.
        cache: True/False to force caching, None for USE_BLS_CACHE.
        return_diagnostics: Return a ResultEnvelope instead of the table.
        clock: Clock used for the default year.

    Returns:
        Stacked slices with a date column, or None when no slice could be
        retrieved.

    Raises:
        ConfigurationError: Invalid period_type, both or neither of
                            industry_code/area_code, or year_start > year_end.
    """
    if year_start is None or year_end is None:
        default_year = months_before((clock or get_real_clock()).now(), 6).year
        year_start = default_year if year_start is None else year_start
        year_end = default_year if year_end is None else year_end

    _validate(period_type, year_start, year_end, industry_code, area_code)
    if year_start < FIRST_SLICE_YEAR:
        logger.warning("QCEW data slices start in %d; earlier URLs may fail.", FIRST_SLICE_YEAR)

    quarters: List[str] = ["1", "2", "3", "4"] if period_type == "quarter" else ["a"]
    urls = {}
    for year in range(year_start, year_end + 1):
        for quarter in quarters:
            url = qcew_slice_url(year, quarter, industry_code, area_code)
            if not silently:
                print(f"Accessing: {url}")
            urls[f"{year}-{quarter}"] = url

    batch = download_bls_files(urls, suppress_warnings=True, cache=cache, parser_options=CSV_OPTIONS)
    for name in batch.failed:
        logger.warning("Could not fetch QCEW slice %s (%s)", name, urls[name])

    if not batch.tables:
        logger.warning("No QCEW data was retrieved. Check the parameters and the connection.")
        return None

    qcew = pd.concat(list(batch.tables.values()), ignore_index=True, sort=False)
    qcew["date"] = qcew_date(qcew, period_type)
    steps = [f"Stacked {len(batch.tables)} of {len(urls)} slice(s)", "Created date column"]

    if add_lookups:
        qcew = _add_lookups(qcew, batch, cache, silently)
        steps.append("Joined industry and area titles")

    return finalize(qcew, batch, "QCEW", steps, silently, return_diagnostics)
