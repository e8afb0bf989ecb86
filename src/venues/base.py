"""
Base abstractions for the HTTP transport.

**Conceptual**: CacheStore and Fetcher never talk to requests directly. They
depend on the Transport protocol below, which has exactly the three
operations the pipeline needs: a cheap metadata probe, a streamed download to
a local file, and a small text fetch. BlsClient is the production
implementation; tests pass an in-memory fake with the same methods.

**Why protocols over inheritance?**
  - Structural typing: any object with probe/download/get_text qualifies.
  - Test doubles don't need to inherit from anything.
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Mapping, Optional, Protocol


@dataclass(frozen=True)
class RemoteMetadata:
    """
    What a HEAD probe reports about a remote file.

    Attributes:
        size: Content-Length in bytes, or None if not reported.
        last_modified: Parsed Last-Modified header (UTC), or None.
    """
    size: Optional[int] = None
    last_modified: Optional[datetime] = None


class Transport(Protocol):
    """
    Protocol for moving remote resources onto local disk.

    **Implementation requirements**:
      1. probe() must not download the body.
      2. download() must either leave a complete file at dest or leave dest
         untouched (write to a temp file, then rename).
      3. Failures raise FetchFailure subclasses carrying the URL.
    """

    def probe(self, url: str) -> RemoteMetadata:
        """
        Issue a metadata-only request for url.

        Raises:
            FetchFailure: If the server cannot be reached or refuses the probe.
        """
        ...

    def download(
        self,
        url: str,
        dest: Path,
        extra_headers: Optional[Mapping[str, str]] = None,
    ) -> RemoteMetadata:
        """
        Stream url into dest and return the response metadata.

        Raises:
            FetchFailure: On transport errors or non-2xx status.
        """
        ...

    def get_text(self, url: str) -> str:
        """
        Fetch a small text document (directory listings, overview files).

        Raises:
            FetchFailure: On transport errors or non-2xx status.
        """
        ...
