"""
HTTP client for BLS download servers.

**Conceptual**: This module provides a thin wrapper around HTTP requests to
download.bls.gov and data.bls.gov. It handles headers, status-code mapping
and streaming bodies to disk. It does NOT decide whether to use a cached
copy or how to read a file. That is CacheStore's, Fetcher's and
DefensiveParser's job.

**Why separate HTTP client from the cache and parser?**
  - The client knows about HTTP; the cache knows about freshness; the parser
    knows about delimited text.
  - Tests mock requests.Session at this one seam.

**BLS quirk**: download.bls.gov returns 403 Forbidden to clients that do not
look like a browser, so every request carries browser-like headers and a
configurable User-Agent (BLS_USER_AGENT).
"""

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

import requests

from src.config.settings import HttpSettings
from src.utils.errors import (
    AccessDeniedError,
    CacheIOError,
    ContentDecodingFailure,
    FetchFailure,
    ResourceNotFoundError,
    ServerError,
)
from src.utils.time import parse_http_date
from src.venues.base import RemoteMetadata

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1 << 16


def metadata_from_headers(headers: Mapping[str, str]) -> RemoteMetadata:
    """
    Extract size and last-modified from response headers.

    Malformed values are treated as absent rather than raising.
    """
    size = None
    raw_size = headers.get("Content-Length")
    if raw_size is not None:
        try:
            size = int(raw_size)
        except (TypeError, ValueError):
            size = None
    return RemoteMetadata(size=size, last_modified=parse_http_date(headers.get("Last-Modified")))


class BlsClient:
    """
    Thin HTTP client for BLS flat files and CSV slices.

    **Responsibilities**:
      - Send BLS-friendly headers on every request
      - HEAD probes for cache freshness
      - Stream GET bodies to disk with write-then-rename
      - Map HTTP errors to FetchFailure subclasses

    **NOT responsible for**:
      - Cache paths and freshness (CacheStore)
      - Decompression fallback (Fetcher)
      - Parsing (DefensiveParser)

    **Example usage**:
        >>> from src.config.settings import get_settings
        >>> client = BlsClient(get_settings().http)
        >>> meta = client.probe("https://download.bls.gov/pub/time.series/jt/jt.series")
        >>> meta.size, meta.last_modified
    """

    def __init__(self, settings: Optional[HttpSettings] = None):
        """
        Initialize the client and its requests.Session.

        Args:
            settings: HTTP configuration. Defaults to HttpSettings() (browser
                      headers, no timeout).
        """
        self.settings = settings or HttpSettings()
        self.session = requests.Session()
        self.session.headers.update(self.settings.headers)
        self.session.headers["User-Agent"] = self.settings.user_agent

    def _check_status(self, response, url: str) -> None:
        """
        Raise the FetchFailure subclass matching response.status_code.

        Raises:
            AccessDeniedError: 401/403.
            ResourceNotFoundError: 404/410.
            ServerError: 5xx.
            FetchFailure: Any other non-2xx status.
        """
        status = response.status_code

        if status in (401, 403):
            raise AccessDeniedError(
                f"Access denied (status {status}) for {url}. "
                f"BLS blocks unidentified clients; set BLS_USER_AGENT.",
                resource=url,
                status_code=status,
            )

        if status in (404, 410):
            raise ResourceNotFoundError(
                f"Resource not found (status {status}): {url}",
                resource=url,
                status_code=status,
            )

        if status >= 500:
            raise ServerError(
                f"BLS server error (status {status}) for {url}",
                resource=url,
                status_code=status,
            )

        if not 200 <= status < 300:
            raise FetchFailure(
                f"Unexpected status {status} for {url}",
                resource=url,
                status_code=status,
            )

    def probe(self, url: str) -> RemoteMetadata:
        """
        HEAD the resource and report its size and last-modified time.

        Raises:
            FetchFailure: On transport errors or non-2xx status.
        """
        try:
            response = self.session.head(
                url,
                allow_redirects=True,
                timeout=self.settings.timeout_seconds,
            )
        except requests.RequestException as e:
            raise FetchFailure(f"Metadata probe failed for {url}: {e}", resource=url) from e

        self._check_status(response, url)
        return metadata_from_headers(response.headers)

    def download(
        self,
        url: str,
        dest: Path,
        extra_headers: Optional[Mapping[str, str]] = None,
    ) -> RemoteMetadata:
        """
        Stream url into dest.

        **Functionally**:
          - GET with stream=True, writing chunks to "<dest>.part"
          - On success, os.replace the part file onto dest
          - On any failure, remove the part file and leave dest untouched

        Args:
            url: Resource URL.
            dest: Final local path. Its parent directory must exist.
            extra_headers: Per-request header overrides (Fetcher uses this to
                           request Accept-Encoding: identity on fallback).

        Returns:
            RemoteMetadata from the GET response headers.

        Raises:
            ContentDecodingFailure: If requests could not decode the body.
            FetchFailure: On other transport errors or non-2xx status.
            CacheIOError: If the local file cannot be written.
        """
        dest = Path(dest)
        part = dest.with_name(dest.name + ".part")
        logger.info("Downloading %s", url)

        try:
            response = self.session.get(
                url,
                headers=dict(extra_headers) if extra_headers else None,
                stream=True,
                timeout=self.settings.timeout_seconds,
            )
        except requests.RequestException as e:
            raise FetchFailure(f"Download failed for {url}: {e}", resource=url) from e

        try:
            self._check_status(response, url)
            with open(part, "wb") as handle:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        handle.write(chunk)
            os.replace(part, dest)
        except requests.exceptions.ContentDecodingError as e:
            part.unlink(missing_ok=True)
            raise ContentDecodingFailure(
                f"Could not decode response body for {url}: {e}", resource=url
            ) from e
        except requests.RequestException as e:
            part.unlink(missing_ok=True)
            raise FetchFailure(f"Download interrupted for {url}: {e}", resource=url) from e
        except FetchFailure:
            part.unlink(missing_ok=True)
            raise
        except OSError as e:
            part.unlink(missing_ok=True)
            raise CacheIOError(f"Could not write {dest}: {e}") from e
        finally:
            response.close()

        return metadata_from_headers(response.headers)

    def get_text(self, url: str) -> str:
        """
        Fetch a small text document and return it decoded.

        Raises:
            FetchFailure: On transport errors or non-2xx status.
        """
        try:
            response = self.session.get(url, timeout=self.settings.timeout_seconds)
        except requests.RequestException as e:
            raise FetchFailure(f"Request failed for {url}: {e}", resource=url) from e

        self._check_status(response, url)
        if not response.encoding:
            response.encoding = "utf-8"
        return response.text
