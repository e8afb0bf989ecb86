"""
Current Population Survey (CPS), database ``ln``.

**Conceptual**: The LN master file (ln.data.1.AllData) holds every CPS series
and runs to hundreds of megabytes, while most callers want a handful of
series. get_cps_subset() resolves the request to exact series IDs using
ln.series, filters the master file down to those IDs, and caches the subset
on its own. A later call for the same IDs reads the subset without touching
the master file, as long as the subset is not older than the master's
Last-Modified date.

explore_cps_series() and explore_cps_characteristics() help find the IDs and
characteristic codes to ask for.

**Teaching note**: Characteristics are the ``*_code`` columns of ln.series
(ages_code, sexs_code, ...). Each has a lookup file named after its prefix
(ln.ages, ln.sexs, ...), which supplies the text labels.
"""

import hashlib
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from src.config.settings import cache_enabled_by_env, get_cache_dir, get_settings
from src.data.io import write_table_csv
from src.data.parser import DefensiveParser
from src.data.schemas import DiagnosticRecord, Resource
from src.datasets.common import (
    LOOKUP_METADATA,
    add_date_column,
    drop_columns_if_present,
    finalize,
    key_as_text,
    left_join_if_present,
    numeric_values,
    require_table,
    series_url,
)
from src.orchestration.downloads import BatchResult, download_bls_files
from src.utils.errors import ConfigurationError, FetchFailure, ParseFailure
from src.venues.base import Transport
from src.venues.bls_client import BlsClient

logger = logging.getLogger(__name__)

CPS_DATA_FILE = "ln.data.1.AllData"
CPS_SERIES_FILE = "ln.series"

CPS_DROP_COLUMNS = LOOKUP_METADATA + ("footnote_codes",)

SEARCH_COLUMNS = [
    "series_id", "series_title", "seasonal",
    "begin_year", "begin_period", "end_year", "end_period",
]

SEASONAL_CODES = {"S": "seasonally adjusted", "U": "not seasonally adjusted"}

CPS_CHARACTERISTICS = {
    "lfst": "Labor force status (employed, unemployed, not in labor force)",
    "periodicity": "Data periodicity (monthly, quarterly, annual)",
    "absn": "Absence from work categories",
    "activity": "Activity status categories",
    "ages": "Age groups",
    "cert": "Certification status",
    "class": "Class of worker",
    "duration": "Duration of unemployment",
    "education": "Educational attainment levels",
    "entr": "Job entry categories",
    "expr": "Work experience",
    "hheader": "Household header status",
    "hour": "Hours of work categories",
    "indy": "Industry classifications",
    "jdes": "Job description categories",
    "look": "Job search activities",
    "mari": "Marital status",
    "mjhs": "Major job search categories",
    "occupation": "Occupation classifications",
    "orig": "Origin/ethnicity",
    "pcts": "Percent of poverty categories",
    "race": "Race categories",
    "rjnw": "Reason for job search",
    "rnlf": "Reason not in labor force",
    "rwns": "Reason for working part-time",
    "seek": "Job seeking status",
    "sexs": "Sex/gender",
    "tdat": "Type of data (levels, rates, etc.)",
    "vets": "Veteran status",
    "wkst": "Work status categories",
    "born": "Nativity/birthplace",
    "chld": "Children presence",
    "disa": "Disability status",
    "tlost": "Time lost from work",
}

Characteristics = Mapping[str, Union[str, Sequence[str]]]


def _as_list(values: Union[str, Iterable[str], None]) -> List[str]:
    if values is None:
        return []
    if isinstance(values, str):
        return [values]
    return [str(value) for value in values]


def _prefix(code_column: str) -> str:
    return code_column[: -len("_code")]


def code_columns(series: pd.DataFrame) -> List[str]:
    """The characteristic columns of ln.series, in file order."""
    return [column for column in series.columns if column.endswith("_code")]


def filter_by_characteristics(series: pd.DataFrame, characteristics: Characteristics) -> pd.DataFrame:
    """
    Keep the ln.series rows whose columns match every given code.

    Codes are compared as text, so "1" matches a sexs_code column that was
    parsed as numbers.

    Raises:
        ConfigurationError: If a named column is not in ln.series.
    """
    matches = series
    for column, codes in characteristics.items():
        if column not in matches.columns:
            raise ConfigurationError(f"Characteristic '{column}' not found in {CPS_SERIES_FILE}")
        matches = matches[key_as_text(matches[column]).isin(_as_list(codes))]
    return matches


def _load_series(cache, cache_dir, suppress_warnings) -> Tuple[BatchResult, pd.DataFrame]:
    batch = download_bls_files(
        {"series": series_url("ln", CPS_SERIES_FILE)},
        suppress_warnings=suppress_warnings,
        cache=cache,
        cache_dir=cache_dir,
    )
    return batch, require_table(batch, "series")


class SubsetCache:
    """
    Extracted CPS subsets stored as CSV files in the cache directory.

    A subset file is keyed by a hash of its sorted series IDs. When written,
    its mtime is set to the master file's Last-Modified time. It is reused
    while that mtime is not older than the master's current Last-Modified
    (one second of slack). If the master cannot be probed, no subset is
    reused.

    Concurrent writers of the same subset are not coordinated; each write is
    atomic, so the last one wins.
    """

    def __init__(self, directory: Path, transport: Transport, data_url: Optional[str] = None):
        self.directory = Path(directory).expanduser()
        self.transport = transport
        self.data_url = data_url or series_url("ln", CPS_DATA_FILE)

    def path(self, series_ids: Sequence[str]) -> Path:
        digest = hashlib.sha1("\n".join(sorted(series_ids)).encode("utf-8")).hexdigest()[:12]
        return self.directory / f"ln_subset_{digest}.csv"

    def master_modified(self) -> Optional[datetime]:
        """Last-Modified of the master file, or None if it cannot be checked."""
        try:
            return self.transport.probe(self.data_url).last_modified
        except FetchFailure as e:
            logger.warning("Could not check %s for updates: %s", self.data_url, e)
            return None

    def load(
        self,
        series_ids: Sequence[str],
        master_modified: Optional[datetime],
    ) -> Optional[Tuple[pd.DataFrame, DiagnosticRecord]]:
        """Return the cached subset and its parse record, or None when absent or stale."""
        path = self.path(series_ids)
        if master_modified is None or not path.exists():
            return None
        if path.stat().st_mtime < master_modified.timestamp() - 1:
            logger.info("Cached subset %s is older than %s", path, self.data_url)
            return None
        try:
            return DefensiveParser(["series_id", "period"]).parse(path, ",", Resource(str(path), "subset"))
        except ParseFailure as e:
            logger.warning("Ignoring unreadable cached subset %s: %s", path, e)
            return None

    def save(
        self,
        series_ids: Sequence[str],
        subset: pd.DataFrame,
        master_modified: Optional[datetime],
    ) -> Optional[Path]:
        """Write the subset and stamp it with the master's Last-Modified time."""
        path = self.path(series_ids)
        try:
            write_table_csv(subset, path)
            if master_modified is not None:
                timestamp = master_modified.timestamp()
                os.utime(path, (timestamp, timestamp))
        except OSError as e:
            logger.warning("Could not cache CPS subset at %s: %s", path, e)
            return None
        return path


def get_cps_subset(
    series_ids: Union[str, Sequence[str], None] = None,
    characteristics: Optional[Characteristics] = None,
    simplify_table: bool = True,
    cache: Optional[bool] = None,
    cache_dir: Optional[Union[str, Path]] = None,
    suppress_warnings: bool = False,
    return_diagnostics: bool = False,
):
    """
    Extract selected CPS series from the LN master file.

    **Algorithm**:
      1. Load ln.series. Characteristics select the rows matching every
         code; their IDs are added to series_ids.
      2. With caching on, probe the master file and reuse a cached subset
         for the same IDs if it is fresh. Otherwise download the master
         file, keep the requested IDs and cache that subset.
      3. Join series metadata, then every ln.<prefix> lookup that exists for
         a ``<prefix>_code`` column, on the lookup's first column.
      4. simplify_table makes value numeric, adds date (M13/Q05/A01 map to
         January, Qn to the quarter start) and drops every ``*_code`` column.

    Args:
        series_ids: One ID or a list, e.g. ["LNS14000000"].
        characteristics: Column -> code(s), e.g. {"ages_code": "00",
                         "sexs_code": ["1", "2"]}.
        simplify_table: Apply step 4.
        cache: True/False to force caching, None for USE_BLS_CACHE. Applies
               to the downloaded files and the extracted subset.
        cache_dir: Cache directory override.
        suppress_warnings: Hide progress and download warnings.
        return_diagnostics: Return the ResultEnvelope instead of the table.

    Raises:
        ConfigurationError: If neither series_ids nor characteristics is
                            given, a characteristic is unknown, or nothing
                            matches.
        FetchFailure: If ln.series or the master file cannot be loaded.

    Example:
        >>> unemployment = get_cps_subset(["LNS14000000", "LNS12000000"])
        >>> women = get_cps_subset(characteristics={"ages_code": "00", "sexs_code": "2"})
    """
    wanted = _as_list(series_ids)
    if not wanted and not characteristics:
        raise ConfigurationError("Provide series_ids, characteristics, or both")

    batch, series = _load_series(cache, cache_dir, suppress_warnings)
    steps = []

    if characteristics:
        matched = filter_by_characteristics(series, characteristics)["series_id"].tolist()
        wanted = wanted + matched
        if not wanted:
            raise ConfigurationError("The characteristics did not match any series in the LN database")
        steps.append(f"Resolved characteristics to {len(matched)} series")
    wanted = list(dict.fromkeys(wanted))

    subset = None
    store = None
    modified = None
    use_subset_cache = cache if cache is not None else cache_enabled_by_env()
    if use_subset_cache:
        directory = Path(cache_dir) if cache_dir is not None else get_cache_dir()
        store = SubsetCache(directory, BlsClient(get_settings().http))
        modified = store.master_modified()
        loaded = store.load(wanted, modified)
        if loaded is not None:
            subset, record = loaded
            batch.records.append(record)
            steps.append("Loaded series subset from cache")
            if not suppress_warnings:
                print("Using cached subset (avoiding master file download)...")

    if subset is None:
        if not suppress_warnings:
            print("Extracting data subset from master file...")
        master = download_bls_files(
            {"data": series_url("ln", CPS_DATA_FILE)},
            suppress_warnings=suppress_warnings,
            cache=cache,
            cache_dir=cache_dir,
        )
        data = require_table(master, "data")
        subset = data[key_as_text(data["series_id"]).isin(wanted)].reset_index(drop=True)
        batch.records.extend(master.records)
        steps.append(f"Filtered master file to {len(wanted)} requested series")
        if store is not None:
            store.save(wanted, subset, modified)

    data = drop_columns_if_present(subset, CPS_DROP_COLUMNS)
    series = drop_columns_if_present(series, CPS_DROP_COLUMNS)
    series = series[series["series_id"].isin(wanted)]
    data, _ = left_join_if_present(data, series, "series_id")
    steps.append("Joined series metadata")

    lookups = download_bls_files(
        {_prefix(column): series_url("ln", f"ln.{_prefix(column)}") for column in code_columns(series)},
        suppress_warnings=True,
        cache=cache,
        cache_dir=cache_dir,
    )
    batch.extend(lookups)
    for name, table in lookups.tables.items():
        table = drop_columns_if_present(table, CPS_DROP_COLUMNS)
        data, joined = left_join_if_present(data, table, table.columns[0])
        if joined:
            steps.append(f"Joined {name} mapping")

    if simplify_table:
        data = add_date_column(numeric_values(data))
        data = data[[column for column in data.columns if "_code" not in column]]
        steps.append("Converted values to numeric, added date and dropped code columns")

    return finalize(data, batch, "CPS subset", steps, suppress_warnings, return_diagnostics)


def explore_cps_series(
    search: Union[str, Sequence[str], None] = None,
    characteristics: Optional[Characteristics] = None,
    seasonal: Optional[str] = None,
    max_results: int = 50,
    cache: Optional[bool] = None,
    cache_dir: Optional[Union[str, Path]] = None,
    verbose: bool = True,
    return_diagnostics: bool = False,
):
    """
    Search ln.series for series to pass to get_cps_subset().

    Args:
        search: Regular expression(s) matched case-insensitively against
                series_title; several terms match any of them.
        characteristics: Column -> code(s) filters, as in get_cps_subset().
        seasonal: "S" (seasonally adjusted) or "U" (not adjusted).
        max_results: Maximum rows returned, sorted by series_id.
        verbose: Print how each filter narrowed the result.

    Returns:
        DataFrame of series_id, series_title, seasonal, the begin/end columns
        and every ``*_code`` column (possibly empty), or the envelope when
        return_diagnostics is True.

    Raises:
        ConfigurationError: For an invalid seasonal flag, max_results below
                            1, or an unknown characteristic.
    """
    if seasonal is not None and seasonal not in SEASONAL_CODES:
        raise ConfigurationError("seasonal must be 'S' (seasonally adjusted) or 'U' (not adjusted)")
    if max_results < 1:
        raise ConfigurationError(f"max_results must be at least 1, got {max_results}")

    if verbose:
        print("Loading CPS series metadata...")
    batch, series = _load_series(cache, cache_dir, suppress_warnings=True)
    matches = series
    steps = []

    if characteristics:
        matches = filter_by_characteristics(matches, characteristics)
        described = ", ".join(f"{column} = {codes}" for column, codes in characteristics.items())
        steps.append(f"Filtered by characteristics: {described}")
        if verbose:
            print(f"Filtered to {len(matches)} series matching characteristics: {described}")

    if seasonal is not None:
        matches = filter_by_characteristics(matches, {"seasonal": seasonal})
        steps.append(f"Kept {SEASONAL_CODES[seasonal]} series")
        if verbose:
            print(f"Filtered to {len(matches)} {SEASONAL_CODES[seasonal]} series")

    terms = _as_list(search)
    if terms:
        titles = matches["series_title"].astype(str)
        matches = matches[titles.str.contains("|".join(terms), case=False, regex=True, na=False)]
        steps.append(f"Searched series_title for: {', '.join(terms)}")
        if verbose:
            print(f"Found {len(matches)} series matching search: '{', '.join(terms)}'")

    columns = [column for column in SEARCH_COLUMNS if column in matches.columns] + code_columns(matches)
    result = matches[columns].sort_values("series_id").head(max_results).reset_index(drop=True)

    if verbose:
        if matches.empty:
            print("No series found matching your criteria.")
        elif len(matches) > max_results:
            print(
                f"Showing first {max_results} of {len(matches)} results. "
                "Increase max_results to see more."
            )

    return finalize(result, batch, "CPS series search", steps, not verbose, return_diagnostics)


def explore_cps_characteristics(
    characteristic: Optional[str] = None,
    cache: Optional[bool] = None,
    cache_dir: Optional[Union[str, Path]] = None,
    verbose: bool = True,
    return_diagnostics: bool = False,
):
    """
    List CPS characteristics, or the valid codes of one characteristic.

    Without an argument, returns one row per ``*_code`` column of ln.series
    (characteristic, code_column, description). With a name such as "sexs"
    or "sexs_code", returns the ln.sexs lookup table. If that lookup cannot
    be loaded, the distinct non-empty codes found in ln.series are returned
    instead, in a column named after the characteristic.

    Raises:
        ConfigurationError: If the characteristic is not a column of
                            ln.series; the message lists the valid names.
    """
    if verbose:
        print("Loading CPS series metadata...")
    batch, series = _load_series(cache, cache_dir, suppress_warnings=True)
    columns = code_columns(series)

    if characteristic is None:
        names = [_prefix(column) for column in columns]
        table = pd.DataFrame(
            {
                "characteristic": names,
                "code_column": columns,
                "description": [CPS_CHARACTERISTICS.get(name) for name in names],
            }
        )
        if verbose:
            print("Available characteristics in CPS (LN) dataset:")
            print("Use explore_cps_characteristics('name') to see valid codes")
        steps = [f"Listed {len(names)} characteristics"]
        return finalize(table, batch, "CPS characteristics", steps, not verbose, return_diagnostics)

    name = _prefix(characteristic) if characteristic.endswith("_code") else characteristic
    code_column = f"{name}_code"
    if code_column not in columns:
        available = "\n".join(f"  - {_prefix(column)}" for column in columns)
        raise ConfigurationError(
            f"Characteristic '{characteristic}' not found. Available characteristics:\n{available}"
        )

    if verbose:
        print(f"Loading mapping file for '{name}'...")
    lookup = download_bls_files(
        {name: series_url("ln", f"ln.{name}")},
        suppress_warnings=True,
        cache=cache,
        cache_dir=cache_dir,
    )
    batch.extend(lookup)
    table = lookup.table(name)

    if table is not None:
        table = drop_columns_if_present(table, LOOKUP_METADATA).drop_duplicates()
        table = table.sort_values(table.columns[0]).reset_index(drop=True)
        step = f"Loaded ln.{name} lookup"
    else:
        if verbose:
            print(f"No mapping file found for '{name}'. Showing unique codes from series file...")
        codes = series[code_column].dropna()
        codes = codes[key_as_text(codes) != ""]
        table = codes.drop_duplicates().sort_values().reset_index(drop=True).to_frame(name)
        step = f"Listed distinct {code_column} values from {CPS_SERIES_FILE}"

    if verbose:
        print(f"Found {len(table)} unique codes for '{name}'")
    return finalize(table, batch, "CPS characteristic codes", [step], not verbose, return_diagnostics)
