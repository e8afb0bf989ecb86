"""
State Alternative Labor Underutilization measures (SALT).

BLS publishes four-quarter moving averages of the U-1 to U-6 measures for
every state as an Excel workbook. get_salt() downloads it, converts the
measures to proportions, derives a set of decomposed measures, and adds
per-date quartiles and per-state lags.

**Derived measures**:
  - not_job_losers = unemployed - job_losers
  - unemployed_under_14_weeks = unemployed - unemployed_15+_weeks
  - losers_notlosers_ratio = job_losers / not_job_losers
  - u1b = u3 - u1, u2b = u3 - u2
  - u4b = discouraged / (labor force + discouraged); u4c = u4 - u4b
  - marginally_attached_not_discouraged = all marginally attached - discouraged
  - u5b = that / (labor force + that)
  - u5c = u5 - discouraged / (labor force + all marginally attached) - u5b
  - u6b = involuntary part time / labor force
"""

import logging
import zipfile
from typing import Optional

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from src.data.fetcher import Fetcher
from src.data.schemas import Resource
from src.utils.errors import ParseFailure
from src.utils.time import bls_period_to_date

logger = logging.getLogger(__name__)

SALT_URL = "https://www.bls.gov/lau/stalt-moave.xlsx"

PERIOD_COLUMNS = ["record", "start year", "start quarter", "end year", "end quarter", "unique period"]
QUARTILE_MEASURES = ["u1", "u2", "u3", "u4b", "u5b"]
QUARTILES = {"25": 0.25, "50": 0.5, "75": 0.75}


def read_salt_workbook(cache: Optional[bool] = None, fetcher: Optional[Fetcher] = None) -> pd.DataFrame:
    """
    Download the SALT workbook and read its first sheet (title row skipped).

    Raises:
        FetchFailure: If the workbook cannot be downloaded.
        ParseFailure: If the file is not a readable workbook.
    """
    fetcher = fetcher or Fetcher.from_settings()
    path = fetcher.fetch(Resource(SALT_URL, "salt"), use_cache=cache, raw=True)
    try:
        return pd.read_excel(path, skiprows=1, engine="openpyxl")
    except (ValueError, OSError, zipfile.BadZipFile, InvalidFileException) as e:
        raise ParseFailure(f"Could not read SALT workbook {SALT_URL}: {e}", resource=SALT_URL) from e
    finally:
        fetcher.cache_store.release(path)


def _quarter_codes(quarters: pd.Series) -> pd.Series:
    numbers = pd.to_numeric(quarters, errors="coerce")
    return "Q" + numbers.map(lambda q: f"{int(q):02d}" if pd.notna(q) else "")


def transform_salt(raw: pd.DataFrame, only_states: bool = True) -> pd.DataFrame:
    """Apply the SALT cleaning and derivations to the raw workbook table."""
    salt = raw.rename(columns=lambda column: str(column).strip().lower())
    salt["date"] = bls_period_to_date(salt["end year"], _quarter_codes(salt["end quarter"]))
    salt = salt.drop(columns=[column for column in PERIOD_COLUMNS if column in salt.columns])

    measures = [column for column in salt.columns if column.startswith("u-")]
    for column in measures:
        salt[column] = pd.to_numeric(salt[column], errors="coerce") / 100
    salt = salt.rename(columns={column: column.replace("-", "", 1) for column in measures})
    salt = salt.rename(columns=lambda column: column.replace(" ", "_"))

    clf = salt["civilian_labor_force"]
    discouraged = salt["discouraged_workers"]
    salt["not_job_losers"] = salt["unemployed"] - salt["job_losers"]
    salt["unemployed_under_14_weeks"] = salt["unemployed"] - salt["unemployed_15+_weeks"]
    salt["losers_notlosers_ratio"] = salt["job_losers"] / salt["not_job_losers"]
    salt["u1b"] = salt["u3"] - salt["u1"]
    salt["u2b"] = salt["u3"] - salt["u2"]
    salt["u4b"] = discouraged / (clf + discouraged)
    salt["u4c"] = salt["u4"] - salt["u4b"]
    other_attached = salt["all_marginally_attached"] - discouraged
    salt["marginally_attached_not_discouraged"] = other_attached
    salt["u5b"] = other_attached / (clf + other_attached)
    salt["u5c"] = salt["u5"] - discouraged / (clf + discouraged + other_attached) - salt["u5b"]
    salt["u6b"] = salt["involuntary_part_time_employed"] / clf
    salt["period_name"] = salt["date"].dt.to_period("Q").astype(str)

    if only_states:
        salt = salt[salt["fips"].astype(str).str.len() == 2].reset_index(drop=True)

    by_date = salt.groupby("date")
    for measure in QUARTILE_MEASURES:
        for suffix, q in QUARTILES.items():
            salt[f"{measure}_{suffix}"] = by_date[measure].transform(lambda values, q=q: values.quantile(q))

    salt = salt.sort_values(["state", "date"], kind="mergesort").reset_index(drop=True)
    lagged = [column for column in salt.columns if column[:1] == "u" and column[1:2].isdigit()]
    by_state = salt.groupby("state")[lagged]
    prior_year = by_state.shift(4).add_prefix("py_")
    prior_quarter = by_state.shift(1).add_prefix("pq_")
    return pd.concat([salt, prior_year, prior_quarter], axis=1)


def get_salt(
    only_states: bool = True,
    cache: Optional[bool] = None,
    fetcher: Optional[Fetcher] = None,
) -> pd.DataFrame:
    """
    Download and derive the state alternative unemployment measures.

    Args:
        only_states: Keep rows with 2-character FIPS codes (drop sub-state areas).
        cache: True/False to force caching, None for USE_BLS_CACHE.
        fetcher: Fetcher to use (defaults to settings).

    Returns:
        One row per state and quarter with proportions, derived measures,
        per-date quartiles (<measure>_25/_50/_75) and py_/pq_ lags.
    """
    raw = read_salt_workbook(cache=cache, fetcher=fetcher)
    logger.info("Read SALT workbook with %d rows", len(raw))
    return transform_salt(raw, only_states=only_states)
