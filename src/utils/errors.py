"""
Exception hierarchy for BLS retrieval, caching and parsing.

**Conceptual**: Every failure the library raises on purpose derives from
BlsError, so callers can catch the whole family in one place or pick out a
specific kind. The kinds map to what went wrong, not to where:
  - FetchFailure: the network or the server refused the mandatory download.
  - ParseFailure: bytes arrived but are not a readable delimited table.
  - ConfigurationError: the caller asked for something invalid.
  - CacheIOError: the local cache directory could not be created or written.

**Propagation rule**: the core (fetcher, cache, parser) raises these per
resource. The batch layer (src.orchestration.downloads) decides whether to
record them as diagnostics and carry on, which is what multi-file dataset
calls do. ConfigurationError is never recorded and carried on; it always
surfaces immediately.
"""

from typing import Optional


class BlsError(Exception):
    """Base exception for every error raised by this package."""
    pass


class FetchFailure(BlsError):
    """
    Raised when retrieving a resource fails on the mandatory download path.

    **Conceptual**: Covers transport errors (DNS, connection reset) and HTTP
    error statuses. The optional HEAD probe used for cache freshness also
    raises this, but CacheStore catches it and falls back to the local copy.

    Attributes:
        resource: URL of the resource that failed.
        status_code: HTTP status when the server answered, else None.
    """

    def __init__(
        self,
        message: str,
        resource: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.resource = resource
        self.status_code = status_code


class ResourceNotFoundError(FetchFailure):
    """
    Raised on 404/410 responses.

    **Recovery**: Check the URL. BLS retires and renames flat files, and
    QCEW slices for quarters that are not yet published also return 404.
    """
    pass


class AccessDeniedError(FetchFailure):
    """
    Raised on 401/403 responses.

    **Recovery**: download.bls.gov rejects clients that look automated. Set
    BLS_USER_AGENT to a descriptive agent with contact details.
    """
    pass


class ServerError(FetchFailure):
    """Raised on 5xx responses."""
    pass


class ContentDecodingFailure(FetchFailure):
    """Raised when the response body could not be decoded (bad gzip/deflate stream)."""
    pass


class ParseFailure(BlsError):
    """
    Raised when a fetched resource cannot be read as a delimited table.

    Attributes:
        resource: Identifier (usually the URL) of the resource being parsed.
    """

    def __init__(self, message: str, resource: Optional[str] = None):
        super().__init__(message)
        self.resource = resource


class ConfigurationError(BlsError, ValueError):
    """
    Raised for invalid caller input or invalid environment configuration.

    Subclasses ValueError so that generic input-validation handlers still
    catch it.
    """
    pass


class CacheIOError(BlsError, OSError):
    """Raised when the cache directory or a cached file cannot be created or written."""
    pass
