"""
Data contracts shared by the fetch, cache and parse layers.

**Conceptual**: This module defines the small records that move between the
core components:
  - Resource: what to fetch (URL plus optional logical name).
  - CacheEntry: what CacheStore remembers about a cached copy.
  - DiagnosticRecord: what happened to one resource on its way to a table.

**Schema philosophy**:
  - Resources are immutable and identified by URL alone; the name is a label.
  - Cache entries are written only by CacheStore and serialize to a small JSON
    sidecar, so they survive process restarts.
  - Diagnostic records only ever grow: repairs and warnings are appended in
    the order they happened and never removed.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

Dimensions = Tuple[int, int]


@dataclass(frozen=True)
class Resource:
    """
    A remotely hosted file.

    Attributes:
        url: Absolute URL. Two Resources with the same URL are the same file.
        name: Optional logical name (e.g. "series"), used as the table key and
              in warning messages.
    """
    url: str
    name: Optional[str] = field(default=None, compare=False)

    @property
    def basename(self) -> str:
        """Last non-empty path segment of the URL."""
        path = urlparse(self.url).path.rstrip("/")
        return path.rsplit("/", 1)[-1] or urlparse(self.url).netloc

    @property
    def label(self) -> str:
        """Name if given, otherwise the URL basename."""
        return self.name or self.basename


@dataclass(frozen=True)
class CacheEntry:
    """
    Metadata recorded for one cached file.

    Attributes:
        path: Local payload file.
        url: Resource URL the payload came from.
        remote_size: Content-Length reported at the last full fetch (None if
                     the server did not report it).
        remote_last_modified: Last-Modified reported at the last full fetch.
        synced_at: When the payload was last written.
    """
    path: Path
    url: str
    remote_size: Optional[int]
    remote_last_modified: Optional[datetime]
    synced_at: datetime

    def to_json(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "remote_size": self.remote_size,
            "remote_last_modified": (
                self.remote_last_modified.isoformat() if self.remote_last_modified else None
            ),
            "synced_at": self.synced_at.isoformat(),
        }

    @classmethod
    def from_json(cls, path: Path, payload: Dict[str, Any]) -> "CacheEntry":
        """
        Rebuild an entry from its sidecar payload.

        Raises:
            KeyError, TypeError, ValueError: If the payload is malformed.
        """
        last_modified = payload.get("remote_last_modified")
        size = payload.get("remote_size")
        return cls(
            path=path,
            url=payload["url"],
            remote_size=int(size) if size is not None else None,
            remote_last_modified=datetime.fromisoformat(last_modified) if last_modified else None,
            synced_at=datetime.fromisoformat(payload["synced_at"]),
        )


@dataclass
class DiagnosticRecord:
    """
    Structured log of what happened to one resource.

    Attributes:
        resource: Resource identifier (URL).
        name: Logical name used in messages.
        original_dimensions: (rows, declared columns) before repair.
        final_dimensions: (rows, columns) after repair.
        repairs: Ordered repair actions, e.g. "removed 1 phantom column(s)".
        warnings: Non-fatal messages (fallbacks used, skipped lookups).
        error: Failure message when the resource could not be fetched or
               parsed in a batch that continued past it.
    """
    resource: str
    name: Optional[str] = None
    original_dimensions: Optional[Dimensions] = None
    final_dimensions: Optional[Dimensions] = None
    repairs: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def label(self) -> str:
        return self.name or self.resource

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def issues(self) -> List[str]:
        """Repairs, then warnings, then the error (if any)."""
        issues = list(self.repairs) + list(self.warnings)
        if self.error is not None:
            issues.append(f"failed: {self.error}")
        return issues

    @property
    def has_issues(self) -> bool:
        return bool(self.repairs or self.warnings or self.error)

    def add_repair(self, message: str) -> None:
        self.repairs.append(message)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)
