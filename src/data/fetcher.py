"""
Retrieval of BLS resources onto local disk.

**Conceptual**: Fetcher is the single entry point for "get me the bytes of
this URL as a local file". It decides between the cache and a one-shot
temporary download, and owns the single fallback attempt for payloads that
arrive compressed or with an encoding requests cannot undo.

**Retry policy**: one primary attempt, at most one fallback attempt, then
fail. There is no retry loop and no backoff.

**Fallback strategy** (allow_fallback=True):
  - If the GET fails with ContentDecodingFailure, request the resource again
    with ``Accept-Encoding: identity``.
  - If the bytes on disk are a gzip or zip container, decompress them in
    place with the standard gzip/zipfile modules (first member for zips).
DefensiveParser never decompresses; by the time it runs, the file on disk is
plain delimited text.
"""

import gzip
import logging
import os
import shutil
import zipfile
from pathlib import Path
from typing import Optional

from src.config.settings import Settings, get_settings
from src.data.cache import CacheStore
from src.data.schemas import Resource
from src.utils.errors import CacheIOError, ContentDecodingFailure, FetchFailure
from src.venues.base import Transport
from src.venues.bls_client import BlsClient

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"
ZIP_MAGIC = b"PK\x03\x04"
IDENTITY_ENCODING = {"Accept-Encoding": "identity"}


def detect_container(path: Path) -> Optional[str]:
    """Return "gzip" or "zip" when path starts with that container's magic bytes."""
    with open(path, "rb") as handle:
        head = handle.read(4)
    if head.startswith(GZIP_MAGIC):
        return "gzip"
    if head.startswith(ZIP_MAGIC):
        return "zip"
    return None


def decompress_in_place(path: Path, kind: str) -> None:
    """
    Replace a gzip/zip file with its decompressed content.

    Raises:
        ContentDecodingFailure: If the container is corrupt or empty.
    """
    tmp = path.with_name(path.name + ".inflate")
    try:
        if kind == "gzip":
            with gzip.open(path, "rb") as src, open(tmp, "wb") as dst:
                shutil.copyfileobj(src, dst)
        else:
            with zipfile.ZipFile(path) as archive:
                members = [info for info in archive.infolist() if not info.is_dir()]
                if not members:
                    raise ContentDecodingFailure(f"Zip archive {path} has no files")
                with archive.open(members[0]) as src, open(tmp, "wb") as dst:
                    shutil.copyfileobj(src, dst)
        os.replace(tmp, path)
    except (OSError, EOFError, zipfile.BadZipFile) as e:
        tmp.unlink(missing_ok=True)
        raise ContentDecodingFailure(f"Could not decompress {kind} payload {path}: {e}") from e


class Fetcher:
    """
    Retrieves resources through the cache or directly.

    **Example usage**:
        >>> fetcher = Fetcher.from_settings(get_settings())
        >>> path = fetcher.fetch(Resource("https://download.bls.gov/pub/time.series/ce/ce.period"))
    """

    def __init__(
        self,
        transport: Transport,
        cache_store: Optional[CacheStore] = None,
        settings: Optional[Settings] = None,
    ):
        self.transport = transport
        self.settings = settings or Settings()
        self.cache_store = cache_store or CacheStore(transport, settings=self.settings.cache)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "Fetcher":
        """Build a Fetcher backed by a BlsClient configured from settings."""
        settings = settings or get_settings()
        return cls(BlsClient(settings.http), settings=settings)

    def fetch(
        self,
        resource: Resource,
        cache_dir: Optional[Path] = None,
        use_cache: Optional[bool] = None,
        allow_fallback: bool = True,
        verbose: bool = False,
        raw: bool = False,
    ) -> Path:
        """
        Get resource onto local disk as plain (decompressed) bytes.

        **Cache selection**:
          - use_cache=None follows USE_BLS_CACHE. If that environment default
            turns caching on but the cache directory cannot be created, the
            fetch logs a warning and continues uncached.
          - use_cache=True was asked for explicitly, so a CacheIOError
            propagates.

        Args:
            resource: What to fetch.
            cache_dir: Cache directory override.
            use_cache: True/False to force, None for the configured default.
            allow_fallback: Permit the single fallback attempt.
            verbose: Print cache decisions to stdout.
            raw: Return the bytes exactly as served, skipping container
                 detection (for binary documents such as .xlsx, which are
                 zip containers themselves).

        Returns:
            Path to the local file.

        Raises:
            FetchFailure: If retrieval (and the fallback, when allowed) fails,
                          or the payload is compressed and fallback is off.
            CacheIOError: If caching was requested explicitly and the cache
                          cannot be written.
        """
        explicit = use_cache is not None
        effective = use_cache if explicit else self.settings.cache.use_cache

        try:
            path = self._retrieve(resource, cache_dir, effective, explicit, verbose)
        except ContentDecodingFailure as e:
            if not allow_fallback:
                raise
            logger.warning("Retrying %s without content encoding: %s", resource.url, e)
            path = self._retrieve(
                resource, cache_dir, effective, explicit, verbose, IDENTITY_ENCODING, original=e
            )

        kind = None if raw else detect_container(path)
        if kind is None:
            return path

        try:
            if not allow_fallback:
                raise FetchFailure(
                    f"{resource.url} is a {kind} container and fallback decoding is disabled",
                    resource=resource.url,
                )
            logger.info("Decompressing %s payload for %s", kind, resource.url)
            decompress_in_place(path, kind)
        except FetchFailure:
            self.cache_store.release(path)
            raise
        return path

    def _retrieve(
        self,
        resource: Resource,
        cache_dir: Optional[Path],
        use_cache: bool,
        explicit: bool,
        verbose: bool,
        extra_headers=None,
        original: Optional[FetchFailure] = None,
    ) -> Path:
        """
        One retrieval attempt, honoring the cache fallback rule.

        When original is given this is the fallback attempt, and a failure
        re-raises original with the fallback error chained.
        """
        try:
            try:
                return self.cache_store.resolve(
                    resource,
                    cache_dir=cache_dir,
                    use_cache=use_cache,
                    verbose=verbose,
                    extra_headers=extra_headers,
                )
            except CacheIOError as e:
                if not use_cache or explicit:
                    raise
                logger.warning("Cache unavailable (%s); downloading %s without caching", e, resource.url)
                return self.cache_store.resolve(
                    resource, use_cache=False, verbose=verbose, extra_headers=extra_headers
                )
        except FetchFailure as e:
            if original is None:
                raise
            raise original from e

