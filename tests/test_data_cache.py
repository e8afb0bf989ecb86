"""
Tests for CacheStore.

**Purpose**: Verify the freshness rule (probe, compare, reuse or re-fetch),
the sidecar metadata, and the one-shot temporary download path.

**Testing philosophy**: FakeTransport (tests/conftest.py) serves bytes from
memory and logs every probe and download, so each test can assert exactly
how many network calls a decision cost.
"""

import json
from datetime import datetime, timezone

import pytest

from src.data.cache import CacheStore, cache_file_name, sidecar_path
from src.data.schemas import Resource
from src.utils.errors import CacheIOError, FetchFailure
from src.utils.time import FrozenClock

URL = "https://download.bls.gov/pub/time.series/jt/jt.series"


@pytest.fixture
def store(transport, tmp_path):
    clock = FrozenClock(datetime(2025, 2, 1, 9, 0, tzinfo=timezone.utc))
    return CacheStore(transport, cache_dir=tmp_path / "cache", clock=clock)


def test_cache_file_name_is_stable_and_distinct():
    """Same URL -> same name; same basename under different URLs -> different names."""
    first = cache_file_name("https://data.bls.gov/cew/data/api/2024/1/industry/10.csv")
    second = cache_file_name("https://data.bls.gov/cew/data/api/2023/1/industry/10.csv")

    assert first == cache_file_name("https://data.bls.gov/cew/data/api/2024/1/industry/10.csv")
    assert first != second
    assert first.startswith("10.csv-")


def test_first_resolve_downloads_and_records_sidecar(store, transport, last_modified):
    """A cold cache downloads once and writes URL, size and last-modified."""
    transport.serve(URL, "series_id\tvalue\n", last_modified=last_modified)

    path = store.resolve(Resource(URL))

    assert path.read_text() == "series_id\tvalue\n"
    assert len(transport.downloads) == 1

    meta = json.loads(sidecar_path(path).read_text())
    assert meta["url"] == URL
    assert meta["remote_size"] == len("series_id\tvalue\n")
    assert meta["remote_last_modified"] == last_modified.isoformat()
    assert meta["synced_at"] == "2025-02-01T09:00:00+00:00"


def test_payload_mtime_synced_to_last_modified(store, transport, last_modified):
    transport.serve(URL, "a\n", last_modified=last_modified)

    path = store.resolve(Resource(URL))

    assert int(path.stat().st_mtime) == int(last_modified.timestamp())


def test_second_resolve_is_cache_hit(store, transport, last_modified):
    """Unchanged remote metadata means no second download."""
    transport.serve(URL, "a\n", last_modified=last_modified)

    first = store.resolve(Resource(URL))
    second = store.resolve(Resource(URL))

    assert first == second
    assert len(transport.downloads) == 1
    assert len(transport.probes) == 2


def test_changed_size_triggers_refetch(store, transport, last_modified):
    """A different Content-Length invalidates the cached copy."""
    transport.serve(URL, "a\n", last_modified=last_modified)
    store.resolve(Resource(URL))

    transport.serve(URL, "a\nb\n", last_modified=last_modified)
    path = store.resolve(Resource(URL))

    assert path.read_text() == "a\nb\n"
    assert len(transport.downloads) == 2


def test_changed_last_modified_triggers_refetch(store, transport, last_modified):
    transport.serve(URL, "aa\n", last_modified=last_modified)
    store.resolve(Resource(URL))

    newer = datetime(2025, 3, 1, tzinfo=timezone.utc)
    transport.serve(URL, "bb\n", last_modified=newer)
    path = store.resolve(Resource(URL))

    assert path.read_text() == "bb\n"
    assert store.entry(Resource(URL)).remote_last_modified == newer


def test_missing_metadata_fields_are_not_compared(store, transport):
    """A server that reports no Last-Modified is judged on size alone."""
    transport.serve(URL, "a\n", last_modified=None)
    store.resolve(Resource(URL))
    store.resolve(Resource(URL))

    assert len(transport.downloads) == 1


def test_probe_failure_falls_back_to_cached_copy(store, transport, last_modified):
    """When the HEAD probe fails the local copy is returned without a GET."""
    transport.serve(URL, "a\n", last_modified=last_modified)
    first = store.resolve(Resource(URL))

    transport.probe_error = FetchFailure("connection reset", resource=URL)
    second = store.resolve(Resource(URL))

    assert second == first
    assert len(transport.downloads) == 1


def test_probe_failure_without_cached_copy_downloads(store, transport, last_modified):
    """Nothing cached: the probe failure is ignored and the GET decides."""
    transport.serve(URL, "a\n", last_modified=last_modified)
    transport.probe_error = FetchFailure("HEAD not allowed", resource=URL)

    path = store.resolve(Resource(URL))

    assert path.read_text() == "a\n"
    # Metadata comes from the download response instead
    assert store.entry(Resource(URL)).remote_size == 2


def test_download_failure_propagates(store, transport):
    """A resource the server does not have raises FetchFailure."""
    with pytest.raises(FetchFailure):
        store.resolve(Resource(URL))


def test_unreadable_sidecar_forces_refetch(store, transport, last_modified):
    transport.serve(URL, "a\n", last_modified=last_modified)
    path = store.resolve(Resource(URL))
    sidecar_path(path).write_text("{not json")

    assert store.entry(Resource(URL)) is None
    store.resolve(Resource(URL))

    assert len(transport.downloads) == 2


def test_uncached_resolve_uses_temp_dir_and_release(store, transport, tmp_path):
    """use_cache=False writes nothing to the cache and release() cleans up."""
    transport.serve(URL, "a\n")

    path = store.resolve(Resource(URL), use_cache=False)

    assert path.read_text() == "a\n"
    assert transport.probes == []
    assert not (tmp_path / "cache").exists()

    assert store.release(path) is True
    assert not path.exists()
    assert not path.parent.exists()


def test_release_ignores_cached_files(store, transport):
    transport.serve(URL, "a\n")
    path = store.resolve(Resource(URL))

    assert store.release(path) is False
    assert path.exists()


def test_uncached_failure_leaves_no_temp_dir(store, transport):
    with pytest.raises(FetchFailure):
        store.resolve(Resource(URL), use_cache=False)

    assert store._temp_dirs == set()


def test_uncreatable_cache_dir_raises_cache_io_error(transport, tmp_path):
    """A cache directory under a regular file cannot be created."""
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("x")
    store = CacheStore(transport, cache_dir=blocker / "cache")
    transport.serve(URL, "a\n")

    with pytest.raises(CacheIOError):
        store.resolve(Resource(URL))


def test_cache_dir_override_per_call(store, transport, tmp_path):
    transport.serve(URL, "a\n")
    other = tmp_path / "other"

    path = store.resolve(Resource(URL), cache_dir=other)

    assert path.parent == other
