"""
Table readers and writers for BLS resources.

**Conceptual**: This module is the I/O boundary between "a URL" and "a
DataFrame". read_bls_table() chains Fetcher and DefensiveParser so every
dataset function reads files the same way: same headers, same cache rules,
same repairs, same diagnostics. Dataset code never calls requests or
pd.read_csv directly.

**Rule**: Dataset assemblers read through read_bls_table() (usually via
src.orchestration.downloads.download_bls_files) and write through
write_table_csv().

**Teaching note**: Centralizing reads is what makes the diagnostics
trustworthy. If one dataset bypassed the parser, its phantom columns would
silently survive and its envelope would claim a clean import.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import pandas as pd

from src.data.fetcher import Fetcher
from src.data.parser import DefensiveParser
from src.data.schemas import DiagnosticRecord, Resource
from src.utils.errors import ParseFailure

logger = logging.getLogger(__name__)

FALLBACK_ENCODING = "latin-1"

ResourceInput = Union[Resource, str]


def as_resource(value: ResourceInput, name: Optional[str] = None) -> Resource:
    """Accept a Resource or a URL string."""
    if isinstance(value, Resource):
        if name and not value.name:
            return Resource(value.url, name)
        return value
    return Resource(str(value), name)


def read_bls_table(
    resource: ResourceInput,
    cache: Optional[bool] = None,
    verbose: bool = False,
    allow_fallback: bool = True,
    delimiter: str = "\t",
    text_columns: Optional[Sequence[str]] = None,
    cache_dir: Optional[Path] = None,
    fetcher: Optional[Fetcher] = None,
) -> Tuple[pd.DataFrame, DiagnosticRecord]:
    """
    Download (or reuse) a BLS file and parse it defensively.

    **Functionally**:
      1. Fetcher.fetch() puts plain bytes on disk (cache or temp dir).
      2. DefensiveParser.parse() builds the table and DiagnosticRecord.
      3. If parsing fails only because the bytes are not UTF-8 and
         allow_fallback is set, parse once more as latin-1 and record a
         warning.
      4. One-shot temporary downloads are removed after parsing.

    Args:
        resource: Resource or URL.
        cache: True/False to force caching, None for USE_BLS_CACHE.
        verbose: Print cache decisions and repair counts to stdout.
        allow_fallback: Permit the single decoding fallback at each stage.
        delimiter: "\\t" for flat files, "," for CSV slices.
        text_columns: Columns that must stay text besides the first.
        cache_dir: Cache directory override.
        fetcher: Fetcher to use (defaults to one built from get_settings()).

    Returns:
        (table, record)

    Raises:
        FetchFailure: Download failed.
        ParseFailure: The file is empty or unreadable.
        CacheIOError: Caching was requested explicitly and is unavailable.

    Example:
        >>> table, record = read_bls_table("https://download.bls.gov/pub/time.series/ce/ce.period")
        >>> record.final_dimensions
        (14, 3)
    """
    resource = as_resource(resource)
    fetcher = fetcher or Fetcher.from_settings()
    parser = DefensiveParser(text_columns)

    path = fetcher.fetch(
        resource,
        cache_dir=cache_dir,
        use_cache=cache,
        allow_fallback=allow_fallback,
        verbose=verbose,
    )
    try:
        try:
            table, record = parser.parse(path, delimiter, resource)
        except ParseFailure as e:
            if not allow_fallback or not isinstance(e.__cause__, UnicodeDecodeError):
                raise
            logger.warning("%s is not valid UTF-8; retrying as %s", resource.url, FALLBACK_ENCODING)
            table, record = parser.parse(path, delimiter, resource, encoding=FALLBACK_ENCODING)
            record.add_warning(f"file is not valid UTF-8; decoded as {FALLBACK_ENCODING}")
    finally:
        fetcher.cache_store.release(path)

    if verbose:
        rows, columns = record.final_dimensions
        print(f"Read {resource.label}: {rows} rows x {columns} columns")
        for issue in record.issues:
            print(f"  - {issue}")

    return table, record


def read_bls_text(url: str, fetcher: Optional[Fetcher] = None) -> List[str]:
    """
    Fetch a BLS text document (overview .txt files) as a list of lines.

    Raises:
        FetchFailure: If the document cannot be retrieved.
    """
    fetcher = fetcher or Fetcher.from_settings()
    return fetcher.transport.get_text(url).splitlines()


def write_table_csv(df: pd.DataFrame, path: Union[str, Path]) -> Path:
    """
    Write a DataFrame to CSV atomically.

    The CSV is first written to "<path>.tmp" in the same directory and then
    renamed, so an interrupted write never leaves a truncated file.

    Returns:
        The final path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    df.to_csv(tmp_path, index=False)
    tmp_path.replace(path)
    return path
