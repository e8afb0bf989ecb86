"""
Batch download of several BLS files with continue-and-report semantics.

**Conceptual**: A dataset is usually one big data file plus a handful of
lookup tables. If one lookup file is missing or malformed, the rest of the
batch is still useful, so download_bls_files() never aborts on a per-file
FetchFailure or ParseFailure. It records the failure on that file's
DiagnosticRecord and moves on. Deciding whether a missing file is fatal (it
is for the main data file) is the dataset assembler's job.

Files are processed sequentially; each completes or fails before the next
starts.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import pandas as pd

from src.data.envelope import ResultEnvelope
from src.data.fetcher import Fetcher
from src.data.io import as_resource, read_bls_table
from src.data.schemas import DiagnosticRecord, Resource
from src.utils.errors import FetchFailure, ParseFailure

logger = logging.getLogger(__name__)

UrlSpec = Union[Mapping[str, str], Sequence[Union[str, Resource]]]


@dataclass
class BatchResult:
    """
    Tables and diagnostics from download_bls_files().

    Attributes:
        tables: Successfully parsed tables keyed by name (in request order).
        records: One DiagnosticRecord per requested file (in request order).
        failed: Names of files that could not be fetched or parsed.
    """
    tables: Dict[str, pd.DataFrame] = field(default_factory=dict)
    records: List[DiagnosticRecord] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    def table(self, name: str) -> Optional[pd.DataFrame]:
        """Return the named table, or None if it failed."""
        return self.tables.get(name)

    def record(self, name: str) -> Optional[DiagnosticRecord]:
        for record in self.records:
            if record.name == name:
                return record
        return None

    def extend(self, other: "BatchResult") -> None:
        """Fold another batch's tables, records and failures into this one."""
        self.tables.update(other.tables)
        self.records.extend(other.records)
        self.failed.extend(other.failed)

    def to_envelope(
        self,
        data: Optional[pd.DataFrame] = None,
        data_type: str = "BLS",
        processing_steps: Optional[List[str]] = None,
    ) -> ResultEnvelope:
        """
        Wrap this batch in a ResultEnvelope.

        Args:
            data: Combined table; when None the envelope holds the raw tables
                  and data() returns the first one.
            data_type: Dataset label.
            processing_steps: Post-parse transforms applied to data.
        """
        if data is None:
            return ResultEnvelope(
                tables=dict(self.tables),
                records=list(self.records),
                data_type=data_type,
                processing_steps=list(processing_steps or []),
            )
        return ResultEnvelope.build(
            data,
            self.records,
            data_type=data_type,
            processing_steps=processing_steps,
        )


def _named_resources(urls: UrlSpec) -> List[Resource]:
    if isinstance(urls, Mapping):
        return [as_resource(url, name) for name, url in urls.items()]
    resources = []
    for item in urls:
        resource = as_resource(item)
        resources.append(resource if resource.name else Resource(resource.url, resource.basename))
    return resources


def download_bls_files(
    urls: UrlSpec,
    suppress_warnings: bool = True,
    cache: Optional[bool] = None,
    fetcher: Optional[Fetcher] = None,
    parser_options: Optional[Mapping[str, Any]] = None,
    cache_dir: Optional[Path] = None,
    verbose: Optional[bool] = None,
) -> BatchResult:
    """
    Download and parse several BLS files, continuing past failures.

    Args:
        urls: Mapping of name -> URL, or a sequence of URLs/Resources (named
              by URL basename).
        suppress_warnings: When False, print progress and each file's issues.
        cache: True/False to force caching, None for USE_BLS_CACHE.
        fetcher: Shared Fetcher (one is built from settings if omitted).
        parser_options: Extra read_bls_table() keywords applied to every
                        file, e.g. {"delimiter": ",", "text_columns": [...]}.
        cache_dir: Cache directory override.
        verbose: Print cache decisions and each file's repairs. Defaults to
                 not suppress_warnings.

    Returns:
        BatchResult with the successful tables and one record per file.

    Example:
        >>> batch = download_bls_files({
        ...     "series": "https://download.bls.gov/pub/time.series/ce/ce.series",
        ...     "period": "https://download.bls.gov/pub/time.series/ce/ce.period",
        ... })
        >>> batch.table("period").shape
        (14, 3)
    """
    fetcher = fetcher or Fetcher.from_settings()
    options = dict(parser_options or {})
    if verbose is None:
        verbose = not suppress_warnings
    result = BatchResult()

    for resource in _named_resources(urls):
        if not suppress_warnings:
            print(f"Downloading {resource.name}...")
        try:
            table, record = read_bls_table(
                resource,
                cache=cache,
                cache_dir=cache_dir,
                verbose=verbose,
                fetcher=fetcher,
                **options,
            )
        except (FetchFailure, ParseFailure) as e:
            logger.warning("Skipping %s: %s", resource.url, e)
            record = DiagnosticRecord(resource=resource.url, name=resource.name, error=str(e))
            result.records.append(record)
            result.failed.append(resource.name)
            if not suppress_warnings:
                print(f"  Failed: {e}")
            continue

        result.tables[resource.name] = table
        result.records.append(record)
        if not suppress_warnings and not verbose and record.has_issues:
            for issue in record.issues:
                print(f"  {resource.name} : {issue}")

    return result
