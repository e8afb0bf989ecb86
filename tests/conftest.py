"""
Pytest configuration file.

Ensures the repo root is on sys.path so that 'import src...' works, and
provides an in-memory Transport so cache, fetcher and batch tests never touch
the network.
"""
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add the repo root to sys.path
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from src.config.settings import CacheSettings, Settings, reset_settings
from src.data.schemas import DiagnosticRecord
from src.orchestration.downloads import BatchResult
from src.utils.errors import FetchFailure, ResourceNotFoundError
from src.venues.base import RemoteMetadata


class FakeTransport:
    """
    Transport double serving bytes from a dict.

    Attributes:
        files: url -> bytes served by download().
        metadata: url -> RemoteMetadata reported by probe() and download().
        probe_error: Exception raised by every probe() when set.
        download_errors: url -> list of exceptions raised (in order) before
                         download() starts succeeding.
        probes / downloads: Call logs; downloads holds (url, headers) pairs.
    """

    def __init__(self):
        self.files = {}
        self.metadata = {}
        self.texts = {}
        self.probe_error = None
        self.download_errors = {}
        self.probes = []
        self.downloads = []

    def serve(self, url, content, last_modified=None, size=None):
        data = content.encode("utf-8") if isinstance(content, str) else content
        self.files[url] = data
        self.metadata[url] = RemoteMetadata(
            size=len(data) if size is None else size,
            last_modified=last_modified,
        )

    def probe(self, url):
        self.probes.append(url)
        if self.probe_error is not None:
            raise self.probe_error
        if url not in self.files:
            raise ResourceNotFoundError(f"Not found: {url}", resource=url, status_code=404)
        return self.metadata[url]

    def download(self, url, dest, extra_headers=None):
        self.downloads.append((url, dict(extra_headers or {})))
        pending = self.download_errors.get(url)
        if pending:
            raise pending.pop(0)
        if url not in self.files:
            raise ResourceNotFoundError(f"Not found: {url}", resource=url, status_code=404)
        Path(dest).write_bytes(self.files[url])
        return self.metadata[url]

    def get_text(self, url):
        if url not in self.texts:
            raise FetchFailure(f"Not found: {url}", resource=url, status_code=404)
        return self.texts[url]


@pytest.fixture
def transport():
    """In-memory transport with nothing served yet."""
    return FakeTransport()


@pytest.fixture
def cached_settings(tmp_path):
    """Settings with caching enabled in a per-test directory."""
    return Settings(cache=CacheSettings(cache_dir=tmp_path / "cache", use_cache=True))


@pytest.fixture
def uncached_settings(tmp_path):
    """Settings with caching disabled (the USE_BLS_CACHE default)."""
    return Settings(cache=CacheSettings(cache_dir=tmp_path / "cache", use_cache=False))


@pytest.fixture
def last_modified():
    return datetime(2025, 1, 15, 13, 30, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch):
    """Keep environment-derived settings from leaking between tests."""
    for name in ("BLS_CACHE_DIR", "USE_BLS_CACHE", "BLS_USER_AGENT", "BLS_TIMEOUT_SECONDS"):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


def build_batch(tables, failed=None):
    """
    BatchResult from {name: DataFrame} plus {name: error message} failures.

    Dataset assemblers are tested by patching download_bls_files() in the
    assembler's module to return one of these.
    """
    batch = BatchResult()
    for name, table in tables.items():
        batch.tables[name] = table
        batch.records.append(
            DiagnosticRecord(
                resource=f"https://download.bls.gov/pub/time.series/test/{name}",
                name=name,
                original_dimensions=table.shape,
                final_dimensions=table.shape,
            )
        )
    for name, error in (failed or {}).items():
        batch.records.append(
            DiagnosticRecord(
                resource=f"https://download.bls.gov/pub/time.series/test/{name}",
                name=name,
                error=error,
            )
        )
        batch.failed.append(name)
    return batch


@pytest.fixture
def make_batch():
    return build_batch
