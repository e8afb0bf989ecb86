"""
Database overview documents (``<code>.txt`` in each time.series directory).
"""

from typing import Optional

from src.data.fetcher import Fetcher
from src.data.io import read_bls_text
from src.datasets.common import BASE_URL
from src.utils.errors import ConfigurationError, FetchFailure


def overview_url(database_code: str, base_url: str = BASE_URL) -> str:
    return f"{base_url.rstrip('/')}/{database_code}/{database_code}.txt"


def bls_overview(
    database_code: str,
    base_url: str = BASE_URL,
    display: bool = True,
    fetcher: Optional[Fetcher] = None,
) -> str:
    """
    Fetch a database's overview text and optionally print it.

    Args:
        database_code: Database code, e.g. "ce".
        base_url: Root of the time.series tree.
        display: Print the text under a header rule.
        fetcher: Fetcher whose transport is used (defaults to settings).

    Returns:
        The overview text.

    Raises:
        ConfigurationError: If database_code is empty.
        FetchFailure: If the document cannot be fetched; the message names the
                      code and URL.
    """
    if not isinstance(database_code, str) or not database_code.strip():
        raise ConfigurationError("database_code must be a non-empty string")

    url = overview_url(database_code, base_url)
    try:
        text = "\n".join(read_bls_text(url, fetcher=fetcher))
    except FetchFailure as e:
        raise FetchFailure(
            f"Could not fetch overview for database '{database_code}'. URL: {url}. Error: {e}",
            resource=url,
            status_code=e.status_code,
        ) from e

    if display:
        print(f"\n=== BLS Dataset Overview: {database_code.upper()} ===")
        print(f"Source: {url}")
        print("=" * 50)
        print()
        print(text)
        print()
    return text
