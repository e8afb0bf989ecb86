"""
Configuration settings for BLS downloads and the local file cache.

**Conceptual**: This module provides strongly-typed configuration objects
that load from environment variables (via .env files). Everything that used
to be an ambient lookup (which cache directory, whether to cache by default,
which User-Agent to send) is resolved once by Settings.from_env() and then
passed explicitly into CacheStore and Fetcher.

**Environment variables**:
  - BLS_CACHE_DIR: directory for cached files (overrides the per-user default).
  - USE_BLS_CACHE: TRUE / 1 / YES (any case) turns caching on by default.
  - BLS_USER_AGENT: User-Agent header to send (BLS blocks anonymous scripts).
  - BLS_TIMEOUT_SECONDS: optional transport timeout; unset means no timeout.

**Teaching note**: Reading the environment in one place keeps the rest of
the code deterministic. Tests build CacheSettings/HttpSettings directly (or
call reset_settings() after monkeypatching the environment) instead of
mutating os.environ under running code.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

from src.utils.errors import ConfigurationError

# Load .env from project root (dev/local environments)
env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

APP_NAME = "blsfetch"

TRUE_FLAG_VALUES = ("TRUE", "1", "YES")

# download.bls.gov answers 403 to clients without browser-like headers.
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

DEFAULT_HEADERS: Dict[str, str] = {
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,image/apng,*/*;q=0.8"
    ),
    "Accept-Encoding": "gzip, deflate",
    "Accept-Language": "en-US,en;q=0.9",
    "Connection": "keep-alive",
    "Referer": "https://download.bls.gov/pub/time.series/",
    "Sec-Ch-Ua": '"Not_A Brand";v="8", "Chromium";v="120", "Google Chrome";v="120"',
    "Sec-Ch-Ua-Mobile": "?0",
    "Sec-Ch-Ua-Platform": '"Windows"',
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "same-origin",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
}


def parse_bool_flag(value: Optional[str]) -> bool:
    """
    Interpret a boolean-like environment value.

    Returns True only for TRUE, 1 or YES (case-insensitive, surrounding
    whitespace ignored). Anything else, including None, is False.
    """
    if value is None:
        return False
    return value.strip().upper() in TRUE_FLAG_VALUES


def default_cache_dir() -> Path:
    """
    Per-user cache directory used when BLS_CACHE_DIR is not set.

    Follows the XDG convention: $XDG_CACHE_HOME/blsfetch when that variable is
    set, otherwise ~/.cache/blsfetch.
    """
    xdg = os.getenv("XDG_CACHE_HOME")
    base = Path(xdg).expanduser() if xdg else Path.home() / ".cache"
    return base / APP_NAME


@dataclass(frozen=True)
class CacheSettings:
    """
    Configuration for the on-disk file cache.

    Attributes:
        cache_dir: Directory from BLS_CACHE_DIR, or None to use
                   default_cache_dir() at resolve time.
        use_cache: Default for calls that pass cache=None (USE_BLS_CACHE).
    """
    cache_dir: Optional[Path] = None
    use_cache: bool = False

    def resolved_dir(self) -> Path:
        """Return the configured directory, falling back to the per-user default."""
        if self.cache_dir is not None:
            return self.cache_dir
        return default_cache_dir()

    @classmethod
    def from_env(cls) -> "CacheSettings":
        """
        Load cache settings from BLS_CACHE_DIR and USE_BLS_CACHE.

        Returns:
            CacheSettings with cache_dir expanded (``~`` allowed) and
            use_cache parsed with parse_bool_flag().
        """
        raw_dir = os.getenv("BLS_CACHE_DIR", "").strip()
        cache_dir = Path(raw_dir).expanduser() if raw_dir else None
        use_cache = parse_bool_flag(os.getenv("USE_BLS_CACHE"))
        return cls(cache_dir=cache_dir, use_cache=use_cache)


@dataclass(frozen=True)
class HttpSettings:
    """
    Configuration for HTTP access to BLS servers.

    **Why no default timeout?** Requests run to completion or failure; the
    only retry in the system is the single decoding fallback in Fetcher. A
    timeout is still available for users behind flaky proxies.

    Attributes:
        user_agent: User-Agent header value (BLS_USER_AGENT).
        timeout_seconds: Transport timeout in seconds, or None for no timeout.
        headers: Base headers sent with every request (User-Agent is added
                 on top by the client).
    """
    user_agent: str = DEFAULT_USER_AGENT
    timeout_seconds: Optional[float] = None
    headers: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HEADERS))

    def __post_init__(self):
        """Validate settings after initialization."""
        if not self.user_agent:
            raise ConfigurationError("BLS_USER_AGENT must not be empty when set.")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ConfigurationError(
                f"BLS_TIMEOUT_SECONDS must be positive, got: {self.timeout_seconds}"
            )

    @classmethod
    def from_env(cls) -> "HttpSettings":
        """
        Load HTTP settings from BLS_USER_AGENT and BLS_TIMEOUT_SECONDS.

        Raises:
            ConfigurationError: If BLS_TIMEOUT_SECONDS is not a number.
        """
        user_agent = os.getenv("BLS_USER_AGENT", "").strip() or DEFAULT_USER_AGENT
        timeout_str = os.getenv("BLS_TIMEOUT_SECONDS", "").strip()

        timeout_seconds = None
        if timeout_str:
            try:
                timeout_seconds = float(timeout_str)
            except ValueError:
                raise ConfigurationError(
                    f"BLS_TIMEOUT_SECONDS must be a number, got: {timeout_str}"
                )

        return cls(user_agent=user_agent, timeout_seconds=timeout_seconds)


@dataclass(frozen=True)
class Settings:
    """
    Global settings aggregate.

    **Usage pattern**:
      ```python
      from src.config.settings import get_settings

      settings = get_settings()
      settings.cache.use_cache      # default caching behaviour
      settings.http.user_agent      # header sent to BLS
      ```

    Attributes:
        cache: Cache directory and default caching flag.
        http: Headers and transport options.
    """
    cache: CacheSettings = field(default_factory=CacheSettings)
    http: HttpSettings = field(default_factory=HttpSettings)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load all settings from the environment."""
        return cls(cache=CacheSettings.from_env(), http=HttpSettings.from_env())


_default_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global settings singleton.

    Settings are loaded from the environment on first call, then cached.
    Tests either construct Settings directly or call reset_settings() after
    changing the environment.
    """
    global _default_settings

    if _default_settings is None:
        _default_settings = Settings.from_env()

    return _default_settings


def reset_settings():
    """
    Reset the global settings singleton (for testing).

    **Testing pattern**:
      ```python
      def test_cache_flag(monkeypatch):
          monkeypatch.setenv("USE_BLS_CACHE", "yes")
          reset_settings()
          assert get_settings().cache.use_cache
      ```
    """
    global _default_settings
    _default_settings = None


def get_cache_dir() -> Path:
    """Return the cache directory currently configured (env override or default)."""
    return get_settings().cache.resolved_dir()


def cache_enabled_by_env() -> bool:
    """Return True when USE_BLS_CACHE turns caching on by default."""
    return get_settings().cache.use_cache
