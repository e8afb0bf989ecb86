"""
Local file cache for BLS resources.

**Conceptual**: BLS flat files are large (the national CES file is hundreds
of megabytes) and change at most a few times a month. CacheStore keeps one
local copy per URL and uses a HEAD probe to decide whether that copy is still
current, so repeated calls cost one small request instead of a full download.

**Layout on disk** (inside the cache directory):
  - ``<basename>-<hash8>``: the payload, named from the URL's last segment
    plus the first 8 hex digits of its SHA-1. QCEW slices share basenames
    like ``10.csv`` across years; the hash keeps them apart.
  - ``<payload>.meta.json``: the CacheEntry sidecar (URL, remote size,
    remote last-modified, last sync time).

**Freshness rule**:
  1. No local copy or no sidecar: fetch.
  2. Probe fails (network error, HEAD refused): trust the local copy.
  3. Probe reports a size or last-modified that differs from the sidecar:
     fetch. Values missing on either side are not compared.
  4. Otherwise: return the local path without a GET.

**Known limitation**: two processes writing the same cache directory at the
same time race on the sidecar (last writer wins). Payload and sidecar writes
are each atomic (temp file + os.replace), so neither is ever half-written,
but there is no cross-process locking. Callers that share a cache directory
between concurrent jobs must add their own lock.

**Eviction**: none. The cache grows without bound; delete the directory (see
get_cache_dir()) to reclaim space.
"""

import hashlib
import json
import logging
import os
import re
import shutil
import tempfile
from pathlib import Path
from typing import Mapping, Optional

from src.config.settings import CacheSettings
from src.data.schemas import CacheEntry, Resource
from src.utils.errors import CacheIOError, FetchFailure
from src.utils.time import Clock, RealClock
from src.venues.base import RemoteMetadata, Transport

logger = logging.getLogger(__name__)

SIDECAR_SUFFIX = ".meta.json"
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def cache_file_name(url: str) -> str:
    """
    Deterministic local file name for a URL.

    Example:
        >>> cache_file_name("https://download.bls.gov/pub/time.series/sm/sm.series")
        'sm.series-...'  # 8 hex digits of sha1(url)
    """
    basename = Resource(url).basename
    safe = _UNSAFE_CHARS.sub("_", basename).strip("._") or "resource"
    digest = hashlib.sha1(url.encode("utf-8")).hexdigest()[:8]
    return f"{safe}-{digest}"


def sidecar_path(payload: Path) -> Path:
    return payload.with_name(payload.name + SIDECAR_SUFFIX)


class CacheStore:
    """
    Maps resources to local files and keeps them fresh.

    **Example usage**:
        >>> store = CacheStore(BlsClient(), cache_dir=Path("~/.cache/blsfetch").expanduser())
        >>> path = store.resolve(Resource("https://download.bls.gov/pub/time.series/jt/jt.series"))
        >>> path.exists()
        True
    """

    def __init__(
        self,
        transport: Transport,
        cache_dir: Optional[Path] = None,
        clock: Optional[Clock] = None,
        settings: Optional[CacheSettings] = None,
    ):
        """
        Args:
            transport: Object implementing probe() and download().
            cache_dir: Default directory for resolve(); overrides settings.
            clock: Time source for CacheEntry.synced_at (RealClock by default).
            settings: Cache settings used when cache_dir is not given.
        """
        self.transport = transport
        self.settings = settings or CacheSettings()
        self._cache_dir = Path(cache_dir).expanduser() if cache_dir is not None else None
        self.clock = clock or RealClock()
        self._temp_dirs = set()

    @property
    def cache_dir(self) -> Path:
        """Directory used when resolve() is not given one explicitly."""
        if self._cache_dir is not None:
            return self._cache_dir
        return self.settings.resolved_dir()

    def local_path(self, resource: Resource, cache_dir: Optional[Path] = None) -> Path:
        directory = Path(cache_dir).expanduser() if cache_dir is not None else self.cache_dir
        return directory / cache_file_name(resource.url)

    def entry(self, resource: Resource, cache_dir: Optional[Path] = None) -> Optional[CacheEntry]:
        """
        Read the recorded CacheEntry for resource.

        Returns None when there is no sidecar or it cannot be read; an
        unreadable sidecar simply forces the next resolve() to re-fetch.
        """
        payload = self.local_path(resource, cache_dir)
        meta = sidecar_path(payload)
        if not meta.exists():
            return None
        try:
            with open(meta, "r", encoding="utf-8") as handle:
                return CacheEntry.from_json(payload, json.load(handle))
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Ignoring unreadable cache metadata %s: %s", meta, e)
            return None

    def resolve(
        self,
        resource: Resource,
        cache_dir: Optional[Path] = None,
        use_cache: bool = True,
        verbose: bool = False,
        extra_headers: Optional[Mapping[str, str]] = None,
    ) -> Path:
        """
        Return a local path holding the current content of resource.

        **Functionally**:
          - use_cache=False: download into a fresh temporary directory; no
            cache entry is read or written.
          - use_cache=True: ensure the cache directory exists, probe the
            remote, and either reuse the local copy or re-download it.

        Args:
            resource: What to fetch.
            cache_dir: Directory override for this call.
            use_cache: Whether to consult and update the cache.
            verbose: Print cache decisions to stdout.
            extra_headers: Header overrides passed through to the download.

        Returns:
            Path to a complete local copy.

        Raises:
            FetchFailure: If a required download fails.
            CacheIOError: If the cache directory cannot be created or the
                          payload cannot be written.
        """
        if not use_cache:
            temp_dir = Path(tempfile.mkdtemp(prefix="blsfetch-"))
            dest = temp_dir / cache_file_name(resource.url)
            try:
                self.transport.download(resource.url, dest, extra_headers=extra_headers)
            except Exception:
                shutil.rmtree(temp_dir, ignore_errors=True)
                raise
            self._temp_dirs.add(temp_dir)
            return dest

        directory = Path(cache_dir).expanduser() if cache_dir is not None else self.cache_dir
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheIOError(f"Could not create cache directory {directory}: {e}") from e

        payload = directory / cache_file_name(resource.url)
        recorded = self.entry(resource, directory) if payload.exists() else None

        try:
            remote = self.transport.probe(resource.url)
        except FetchFailure as e:
            if payload.exists():
                logger.warning("Probe failed for %s (%s); using cached copy", resource.url, e)
                if verbose:
                    print(f"Could not check {resource.url}; using cached copy {payload}")
                return payload
            logger.info("Probe failed for %s and nothing is cached; downloading", resource.url)
            remote = None

        if recorded is not None and remote is not None and not self._is_stale(recorded, remote):
            logger.info("Cache hit for %s", resource.url)
            if verbose:
                print(f"Using cached {resource.label} ({payload})")
            return payload

        if verbose:
            reason = "stale" if recorded is not None else "not cached"
            print(f"Downloading {resource.label} ({reason})")

        fetched = self.transport.download(resource.url, payload, extra_headers=extra_headers)
        self._record(resource, payload, remote or fetched)
        return payload

    def _is_stale(self, recorded: CacheEntry, remote: RemoteMetadata) -> bool:
        """Compare only the fields both sides report."""
        if remote.size is not None and recorded.remote_size is not None:
            if remote.size != recorded.remote_size:
                return True
        if remote.last_modified is not None and recorded.remote_last_modified is not None:
            if remote.last_modified != recorded.remote_last_modified:
                return True
        return False

    def _record(self, resource: Resource, payload: Path, remote: RemoteMetadata) -> CacheEntry:
        """Write the sidecar atomically and sync the payload mtime."""
        entry = CacheEntry(
            path=payload,
            url=resource.url,
            remote_size=remote.size,
            remote_last_modified=remote.last_modified,
            synced_at=self.clock.now(),
        )

        meta = sidecar_path(payload)
        tmp = meta.with_name(meta.name + ".tmp")
        try:
            with open(tmp, "w", encoding="utf-8") as handle:
                json.dump(entry.to_json(), handle, indent=2)
            os.replace(tmp, meta)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise CacheIOError(f"Could not write cache metadata {meta}: {e}") from e

        if remote.last_modified is not None:
            timestamp = remote.last_modified.timestamp()
            try:
                os.utime(payload, (timestamp, timestamp))
            except OSError as e:
                logger.warning("Could not set mtime on %s: %s", payload, e)

        return entry

    def release(self, path: Path) -> bool:
        """
        Delete a one-shot download made with use_cache=False.

        Cached files are never deleted; for those this is a no-op.

        Returns:
            True if a temporary download was removed.
        """
        temp_dir = Path(path).parent
        if temp_dir not in self._temp_dirs:
            return False
        self._temp_dirs.discard(temp_dir)
        shutil.rmtree(temp_dir, ignore_errors=True)
        return True
