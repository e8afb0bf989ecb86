"""
Shared helpers for the dataset assemblers.

Every assembler follows the same shape: build a named URL dict, call
download_bls_files(), join the lookup tables that arrived, apply transforms,
then finalize(). The join helpers here check that tables and key columns are
present before joining, so a lookup file that failed to download degrades the
result (fewer label columns) instead of aborting it.
"""

import logging
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from src.data.envelope import ResultEnvelope, print_warnings
from src.orchestration.downloads import BatchResult
from src.utils.errors import FetchFailure
from src.utils.time import bls_period_to_date

logger = logging.getLogger(__name__)

BASE_URL = "https://download.bls.gov/pub/time.series"

# Presentation columns carried by most BLS lookup files.
LOOKUP_METADATA = ("display_level", "selectable", "sort_sequence")

Keys = Union[str, Sequence[str]]


def series_url(database: str, file_name: str, base_url: str = BASE_URL) -> str:
    """URL of a file in a time.series database directory."""
    return f"{base_url.rstrip('/')}/{database}/{file_name}"


def require_table(batch: BatchResult, name: str) -> pd.DataFrame:
    """
    Return a table the assembler cannot work without.

    Raises:
        FetchFailure: If that file failed, carrying its recorded error.
    """
    table = batch.table(name)
    if table is not None:
        return table
    record = batch.record(name)
    reason = record.error if record is not None else "not requested"
    resource = record.resource if record is not None else None
    raise FetchFailure(f"Required file '{name}' could not be loaded: {reason}", resource=resource)


def drop_columns_if_present(df: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
    present = [column for column in columns if column in df.columns]
    return df.drop(columns=present) if present else df


def drop_column_range(df: pd.DataFrame, start: str, end: str) -> pd.DataFrame:
    """
    Drop the contiguous block of columns from start through end (inclusive).

    If either boundary is missing the frame is returned unchanged.
    """
    if start not in df.columns or end not in df.columns:
        return df
    columns = list(df.columns)
    first, last = columns.index(start), columns.index(end)
    if first > last:
        first, last = last, first
    return df.drop(columns=columns[first:last + 1])


def drop_lookup_metadata(df: Optional[pd.DataFrame]) -> Optional[pd.DataFrame]:
    """Remove display_level/selectable/sort_sequence from a lookup table."""
    if df is None:
        return None
    return drop_columns_if_present(df, LOOKUP_METADATA)


def key_as_text(values: pd.Series) -> pd.Series:
    """Render a numeric code column as text (10.0 -> "10"); text passes through."""
    if not pd.api.types.is_numeric_dtype(values):
        return values

    def render(value):
        if pd.isna(value):
            return np.nan
        if float(value).is_integer():
            return str(int(value))
        return str(value)

    return values.map(render)


def _align_keys(left: pd.DataFrame, right: pd.DataFrame, keys: List[str]):
    # A code column can parse as numeric in one file and as text in another.
    for key in keys:
        if left[key].dtype == right[key].dtype:
            continue
        if pd.api.types.is_numeric_dtype(left[key]) and pd.api.types.is_numeric_dtype(right[key]):
            continue
        left = left.assign(**{key: key_as_text(left[key])})
        right = right.assign(**{key: key_as_text(right[key])})
    return left, right


def left_join_if_present(
    left: pd.DataFrame,
    right: Optional[pd.DataFrame],
    on: Optional[Keys] = None,
) -> Tuple[pd.DataFrame, bool]:
    """
    Left-join right onto left when right exists and has the key columns.

    Args:
        left: Base table (its rows and row order are preserved).
        right: Lookup table, or None when its download failed.
        on: Key column(s). None joins on every shared column.

    Returns:
        (table, joined): joined is False when the join was skipped.
    """
    if right is None:
        return left, False

    if on is None:
        keys = [column for column in left.columns if column in right.columns]
    else:
        keys = [on] if isinstance(on, str) else list(on)
    if not keys or any(key not in left.columns or key not in right.columns for key in keys):
        logger.debug("Skipping join on %s: key column(s) missing", keys)
        return left, False

    left, right = _align_keys(left, right, keys)
    joined = left.merge(right, on=keys, how="left", suffixes=("", "_lookup"))
    return joined, True


def add_date_column(
    df: pd.DataFrame,
    year_column: str = "year",
    period_column: str = "period",
    name: str = "date",
) -> pd.DataFrame:
    """Add a first-of-period date built from the BLS year and period columns."""
    df = df.copy()
    df[name] = bls_period_to_date(df[year_column], df[period_column])
    return df


def numeric_values(df: pd.DataFrame, column: str = "value") -> pd.DataFrame:
    df = df.copy()
    df[column] = pd.to_numeric(df[column], errors="coerce")
    return df


def drop_annual_averages(df: pd.DataFrame, period_column: str = "period") -> pd.DataFrame:
    """Remove M13 (annual average) rows."""
    return df[df[period_column] != "M13"].reset_index(drop=True)


def finalize(
    data: pd.DataFrame,
    batch: BatchResult,
    data_type: str,
    processing_steps: List[str],
    suppress_warnings: bool,
    return_diagnostics: bool,
) -> Union[pd.DataFrame, ResultEnvelope]:
    """
    Wrap data in an envelope, report issues, and return what the caller asked for.

    Returns:
        The envelope when return_diagnostics is True, otherwise the table.
    """
    envelope = batch.to_envelope(data, data_type=data_type, processing_steps=processing_steps)
    if envelope.has_issues and not suppress_warnings:
        print_warnings(envelope)
    if return_diagnostics:
        return envelope
    return data
