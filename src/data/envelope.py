"""
Result envelope returned by dataset functions.

**Conceptual**: Every dataset function can hand back either a bare DataFrame
or a ResultEnvelope. The envelope bundles the table(s) with the per-file
DiagnosticRecords and the list of processing steps applied after parsing, so
a caller can always answer "what did the loader have to fix, and what did it
do to my data?".

The envelope is a plain dataclass; the module-level functions (get_data,
get_diagnostics, get_summary, has_issues, format_warnings, print_warnings)
accept either an envelope or a bare DataFrame so calling code does not need
to know which one it was given.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple, Union

import pandas as pd

from src.data.schemas import DiagnosticRecord
from src.utils.time import Clock, RealClock


@dataclass(frozen=True)
class EnvelopeDiagnostics:
    """Diagnostic records plus the processing-step log."""
    records: List[DiagnosticRecord]
    processing_steps: List[str]

    def by_name(self) -> Dict[str, DiagnosticRecord]:
        return {record.label: record for record in self.records}


@dataclass(frozen=True)
class EnvelopeSummary:
    """
    Counts describing an envelope.

    Attributes:
        data_type: Dataset label, e.g. "LAUS".
        files_fetched: Number of resources attempted.
        files_failed: Resources that could not be fetched or parsed.
        files_with_issues: Resources with at least one repair, warning or error.
        total_repairs: Repair actions across all resources.
        total_warnings: Issues across all resources (repairs + warnings + errors).
        final_dimensions: (rows, columns) of data(), or None if there is none.
        created_at: When the envelope was assembled.
    """
    data_type: str
    files_fetched: int
    files_failed: int
    files_with_issues: int
    total_repairs: int
    total_warnings: int
    final_dimensions: Optional[Tuple[int, int]]
    created_at: datetime


@dataclass
class ResultEnvelope:
    """
    Tables plus diagnostics from one dataset call.

    Attributes:
        tables: Parsed or assembled tables keyed by logical name.
        records: One DiagnosticRecord per resource attempted.
        data_type: Free-text dataset label.
        processing_steps: Ordered descriptions of post-parse transforms.
        primary: Key of the canonical table returned by data().
        created_at: Assembly time.
    """
    tables: Dict[str, pd.DataFrame]
    records: List[DiagnosticRecord] = field(default_factory=list)
    data_type: str = "BLS"
    processing_steps: List[str] = field(default_factory=list)
    primary: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: RealClock().now())

    @classmethod
    def build(
        cls,
        data: pd.DataFrame,
        records: List[DiagnosticRecord],
        data_type: str = "BLS",
        processing_steps: Optional[List[str]] = None,
        extra_tables: Optional[Dict[str, pd.DataFrame]] = None,
        clock: Optional[Clock] = None,
    ) -> "ResultEnvelope":
        """Create an envelope whose primary table is data (stored under "data")."""
        tables = {"data": data}
        tables.update(extra_tables or {})
        return cls(
            tables=tables,
            records=list(records),
            data_type=data_type,
            processing_steps=list(processing_steps or []),
            primary="data",
            created_at=(clock or RealClock()).now(),
        )

    def data(self) -> Optional[pd.DataFrame]:
        """Return the primary table (or the only / first table)."""
        if self.primary is not None and self.primary in self.tables:
            return self.tables[self.primary]
        if not self.tables:
            return None
        return next(iter(self.tables.values()))

    def diagnostics(self) -> EnvelopeDiagnostics:
        return EnvelopeDiagnostics(records=list(self.records), processing_steps=list(self.processing_steps))

    @property
    def warnings(self) -> List[str]:
        """All issues, each prefixed with its resource name: "<name> : <issue>"."""
        return [f"{record.label} : {issue}" for record in self.records for issue in record.issues]

    @property
    def has_issues(self) -> bool:
        return any(record.has_issues for record in self.records)

    def stats(self) -> EnvelopeSummary:
        table = self.data()
        return EnvelopeSummary(
            data_type=self.data_type,
            files_fetched=len(self.records),
            files_failed=sum(1 for record in self.records if record.failed),
            files_with_issues=sum(1 for record in self.records if record.has_issues),
            total_repairs=sum(len(record.repairs) for record in self.records),
            total_warnings=len(self.warnings),
            final_dimensions=tuple(table.shape) if table is not None else None,
            created_at=self.created_at,
        )

    def summary(self) -> str:
        """Human-readable digest of the envelope."""
        stats = self.stats()
        lines = [
            f"{stats.data_type} data",
            "=" * (len(stats.data_type) + 5),
            f"Files fetched: {stats.files_fetched}",
            f"Files failed: {stats.files_failed}",
            f"Files with repairs or warnings: {stats.files_with_issues}",
            f"Total repair actions: {stats.total_repairs}",
        ]
        if stats.final_dimensions is not None:
            lines.append(f"Final dimensions: {stats.final_dimensions[0]} x {stats.final_dimensions[1]}")
        if self.processing_steps:
            lines.append("Processing steps:")
            lines.extend(f"  - {step}" for step in self.processing_steps)
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.summary()


EnvelopeOrFrame = Union[ResultEnvelope, pd.DataFrame, None]


def get_data(obj: EnvelopeOrFrame) -> Optional[pd.DataFrame]:
    """Return the table from an envelope, or a DataFrame unchanged."""
    if isinstance(obj, ResultEnvelope):
        return obj.data()
    return obj


def get_diagnostics(obj: EnvelopeOrFrame) -> Optional[EnvelopeDiagnostics]:
    if isinstance(obj, ResultEnvelope):
        return obj.diagnostics()
    return None


def get_summary(obj: EnvelopeOrFrame) -> Optional[EnvelopeSummary]:
    if isinstance(obj, ResultEnvelope):
        return obj.stats()
    return None


def has_issues(obj: EnvelopeOrFrame) -> bool:
    """True when an envelope recorded any repair, warning or failure."""
    return isinstance(obj, ResultEnvelope) and obj.has_issues


def format_warnings(obj: EnvelopeOrFrame, detailed: bool = False) -> List[str]:
    """
    Render the diagnostics block as lines of text.

    Args:
        obj: Envelope (anything else yields a one-line notice).
        detailed: Group issues per file with URL and dimensions instead of a
                  flat numbered list.

    Returns:
        Lines suitable for printing.
    """
    if not isinstance(obj, ResultEnvelope):
        return ["No diagnostic information available"]

    stats = obj.stats()
    if not obj.has_issues:
        return [f"No warnings for {stats.data_type} data download"]

    title = f"{stats.data_type} Data Download Warnings:"
    lines = [
        title,
        "=" * len(title),
        f"Total files downloaded: {stats.files_fetched}",
        f"Files with issues: {stats.files_with_issues}",
        f"Total warnings: {stats.total_warnings}",
    ]
    if stats.final_dimensions is not None:
        lines.append(f"Final data dimensions: {stats.final_dimensions[0]} x {stats.final_dimensions[1]}")
    lines.append("")

    if detailed:
        lines.append("Detailed Diagnostics:")
        for record in obj.records:
            if not record.has_issues:
                continue
            lines.append(f"{record.label}:")
            lines.append(f"  URL: {record.resource}")
            if record.original_dimensions is not None:
                lines.append("  Original dimensions: {} x {}".format(*record.original_dimensions))
            if record.final_dimensions is not None:
                lines.append("  Final dimensions: {} x {}".format(*record.final_dimensions))
            lines.append("  Issues:")
            lines.extend(f"    - {issue}" for issue in record.issues)
    else:
        lines.append("Summary of warnings:")
        lines.extend(f"  {i}. {warning}" for i, warning in enumerate(obj.warnings, start=1))
        if len(obj.records) > 1:
            lines.append("")
            lines.append(
                "Use return_diagnostics=True and print_warnings(result, detailed=True) "
                "for file-by-file details"
            )
    return lines


def print_warnings(obj: EnvelopeOrFrame, detailed: bool = False, silent: bool = False) -> List[str]:
    """
    Print the diagnostics block and return the flat warning list.

    Args:
        obj: Envelope to report on.
        detailed: Per-file breakdown (see format_warnings).
        silent: Return the warnings without printing.

    Returns:
        The "<name> : <issue>" warning strings (empty for non-envelopes).
    """
    if not silent:
        print("\n".join(format_warnings(obj, detailed=detailed)))
    if isinstance(obj, ResultEnvelope):
        return obj.warnings
    return []
