"""
Generic loader for any BLS time.series database.

**Conceptual**: Every database under ``/pub/time.series/<code>/`` follows the
same convention: one or more ``<code>.data.*`` files, one ``<code>.series``
file and a set of mapping (lookup) files whose first column is the code they
label. load_bls_dataset() discovers the files from the directory listing,
joins data to series on series_id, then joins each mapping file on its first
column wherever that column exists.

**Algorithm**:
  1. Scrape hrefs from the directory listing; keep basenames starting with
     "<code>." and drop .contacts, .txt and .footnote files.
  2. Classify: ".data." -> data, ".series" -> series, everything else ->
     mapping.
  3. Choose one data file (data_file selects among several; never
     interactive).
  4. Download data, series and mappings in one batch; data and series are
     required, mapping failures are reported and skipped.
  5. Join and optionally simplify.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Union

import pandas as pd

from src.data.envelope import ResultEnvelope, print_warnings
from src.data.io import read_bls_text
from src.datasets.common import (
    BASE_URL,
    add_date_column,
    drop_columns_if_present,
    left_join_if_present,
    numeric_values,
    require_table,
    series_url,
)
from src.orchestration.downloads import download_bls_files
from src.utils.errors import ConfigurationError, FetchFailure

logger = logging.getLogger(__name__)

HREF_PATTERN = re.compile(r"""href\s*=\s*["']([^"']+)["']""", re.IGNORECASE)
EXCLUDED_SUFFIX = re.compile(r"\.(contacts|txt|footnote)$")

SIMPLIFY_DROP_COLUMNS = [
    "begin_year", "begin_period", "end_year", "end_period",
    "selectable", "sort_sequence", "display_level",
]


@dataclass
class DatasetBundle:
    """
    Everything load_bls_dataset() assembled.

    Attributes:
        full: Data joined to series and mappings (simplified if requested).
        data: The raw data file.
        series: The raw series file.
        mapping_files: Names of the mapping files discovered.
        file_table: file_name / file_type classification of the listing.
        envelope: Diagnostics for every file in the batch.
    """
    full: pd.DataFrame
    data: pd.DataFrame
    series: pd.DataFrame
    mapping_files: List[str]
    file_table: pd.DataFrame
    envelope: Optional[ResultEnvelope] = None


def list_database_files(database_code: str, html: str) -> List[str]:
    """Extract the usable file names for database_code from a listing page."""
    prefix = f"{database_code}."
    names = []
    for href in HREF_PATTERN.findall(html):
        name = href.rstrip("/").rsplit("/", 1)[-1]
        if name.startswith(prefix) and not EXCLUDED_SUFFIX.search(name) and name not in names:
            names.append(name)
    return names


def classify_files(file_names: List[str]) -> pd.DataFrame:
    def kind(name: str) -> str:
        if ".data." in name:
            return "data"
        if name.endswith(".series"):
            return "series"
        return "mapping"

    return pd.DataFrame({"file_name": file_names, "file_type": [kind(name) for name in file_names]})


def select_data_file(data_files: List[str], data_file: Union[str, int, None]) -> str:
    """
    Pick the data file to load.

    Args:
        data_files: Candidate data file names.
        data_file: File name, zero-based index, or None (only valid when there
                   is exactly one candidate).

    Raises:
        ConfigurationError: No candidates, an ambiguous choice, or an unknown
                            name/index.
    """
    if not data_files:
        raise ConfigurationError("No data files found in the BLS database directory.")
    choices = ", ".join(f"{i}: {name}" for i, name in enumerate(data_files))
    if data_file is None:
        if len(data_files) == 1:
            return data_files[0]
        raise ConfigurationError(f"Multiple data files found; pass data_file as a name or index. Choices: {choices}")
    if isinstance(data_file, int):
        if 0 <= data_file < len(data_files):
            return data_files[data_file]
        raise ConfigurationError(f"data_file index {data_file} is out of range. Choices: {choices}")
    if data_file in data_files:
        return data_file
    raise ConfigurationError(f"Unknown data_file '{data_file}'. Choices: {choices}")


def simplify_dataset(full: pd.DataFrame) -> pd.DataFrame:
    """Numeric value, date column, and no *_code or series metadata columns."""
    full = numeric_values(full)
    if {"year", "period"}.issubset(full.columns):
        full = add_date_column(full)
    codes = [column for column in full.columns if "_code" in column]
    return drop_columns_if_present(full, codes + SIMPLIFY_DROP_COLUMNS)


def load_bls_dataset(
    database_code: str,
    return_full: bool = False,
    simplify_table: bool = True,
    data_file: Union[str, int, None] = None,
    cache: Optional[bool] = None,
    suppress_warnings: bool = True,
):
    """
    Discover, download and join any BLS time.series database.

    Args:
        database_code: Two-letter database code, e.g. "ce", "jt", "ap".
        return_full: Return a DatasetBundle instead of the joined table.
        simplify_table: See simplify_dataset().
        data_file: Which data file to load when the database has several.
        cache: True/False to force caching, None for USE_BLS_CACHE.
        suppress_warnings: Do not print progress or the diagnostics block.

    Raises:
        ConfigurationError: Bad database code, nothing to load, or an
                            ambiguous/unknown data_file.
        FetchFailure: Listing, data or series file unavailable.
    """
    if not isinstance(database_code, str) or not database_code.strip():
        raise ConfigurationError("database_code must be a non-empty string")
    database_code = database_code.strip()

    listing_url = f"{BASE_URL}/{database_code}/"
    try:
        html = "\n".join(read_bls_text(listing_url))
    except FetchFailure as e:
        raise FetchFailure(
            f"Could not access BLS directory: {listing_url}: {e}",
            resource=listing_url,
            status_code=e.status_code,
        ) from e

    file_names = list_database_files(database_code, html)
    if not file_names:
        raise ConfigurationError(f"No valid files found in the BLS database directory for code: {database_code}")

    file_table = classify_files(file_names)
    by_type = file_table.groupby("file_type")["file_name"].apply(list).to_dict()
    series_files = by_type.get("series", [])
    mapping_files = by_type.get("mapping", [])
    if not series_files:
        raise ConfigurationError(f"Could not find a series file in the BLS database directory for code: {database_code}")
    if len(series_files) > 1:
        logger.info("Multiple series files found; using %s", series_files[0])
    selected = select_data_file(by_type.get("data", []), data_file)
    if not suppress_warnings:
        print(f"Loading: {selected}")

    urls = {"data": series_url(database_code, selected), "series": series_url(database_code, series_files[0])}
    urls.update({name: series_url(database_code, name) for name in mapping_files})
    batch = download_bls_files(urls, suppress_warnings=suppress_warnings, cache=cache)

    data = require_table(batch, "data")
    series = require_table(batch, "series")
    full, _ = left_join_if_present(data, series, "series_id")
    steps = [f"Joined {selected} to {series_files[0]} on series_id"]

    for name in mapping_files:
        mapping = batch.table(name)
        if mapping is None or mapping.columns.empty:
            continue
        join_column = mapping.columns[0]
        full, joined = left_join_if_present(full, mapping, join_column)
        if joined:
            steps.append(f"Joined {name} on {join_column}")
        else:
            steps.append(f"Skipped {name}: join column '{join_column}' not found in data")

    if simplify_table:
        full = simplify_dataset(full)
        steps.append("Simplified table (numeric value, date column, dropped code and metadata columns)")

    envelope = batch.to_envelope(full, data_type=f"BLS {database_code.upper()}", processing_steps=steps)
    if envelope.has_issues and not suppress_warnings:
        print_warnings(envelope)

    if return_full:
        return DatasetBundle(
            full=full,
            data=data,
            series=series,
            mapping_files=mapping_files,
            file_table=file_table,
            envelope=envelope,
        )
    return full
