"""
Clock abstraction and BLS date helpers.

This module provides a testable way to obtain "now" via a clock object rather
than calling datetime.now() directly, plus the small conversions BLS files
need: HTTP Last-Modified headers to datetimes, and BLS (year, period) pairs
to calendar dates.

The key insight: anything that depends on the current date (the default QCEW
reference year, the cache "last synced" stamp) takes a Clock, so tests can
freeze time instead of patching datetime.
"""

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional, Protocol

import numpy as np
import pandas as pd


class Clock(Protocol):
    """
    Abstract time source protocol.

    **Conceptual**: A Clock is any object that can answer "what time is it
    right now?". Code that needs the current time accepts a Clock and calls
    clock.now(). Production passes a RealClock; tests pass a FrozenClock.

    **Example**:
        def default_year(clock: Clock) -> int:
            return clock.now().year

        default_year(RealClock())
        default_year(FrozenClock(datetime(2025, 3, 1, tzinfo=timezone.utc)))
    """

    def now(self) -> datetime:
        """
        Return the current time according to this clock.

        Returns:
            datetime object representing "now" (timezone-aware, UTC preferred).
        """
        ...


class RealClock:
    """Clock that returns the actual current system time (UTC)."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FrozenClock:
    """
    Clock that always returns a fixed timestamp.

    **Usage**:
        clock = FrozenClock(datetime(2025, 3, 1, tzinfo=timezone.utc))
        clock.now()  # always 2025-03-01T00:00:00+00:00
    """

    def __init__(self, fixed_now: datetime):
        self._fixed_now = fixed_now

    def now(self) -> datetime:
        return self._fixed_now


def get_real_clock() -> Clock:
    """Factory function to create a RealClock instance."""
    return RealClock()


def parse_http_date(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an RFC 1123 HTTP date (the Last-Modified header format).

    Args:
        value: Header value such as "Wed, 15 Jan 2025 13:30:00 GMT", or None.

    Returns:
        Timezone-aware UTC datetime, or None if value is missing or malformed.

    Example:
        >>> parse_http_date("Wed, 15 Jan 2025 13:30:00 GMT")
        datetime.datetime(2025, 1, 15, 13, 30, tzinfo=datetime.timezone.utc)
        >>> parse_http_date("not a date") is None
        True
    """
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def months_before(moment: datetime, months: int) -> pd.Timestamp:
    """Return moment shifted back by a whole number of calendar months."""
    return pd.Timestamp(moment) - pd.DateOffset(months=months)


def period_start_month(period: pd.Series) -> pd.Series:
    """
    Map BLS period codes to the first calendar month they cover.

    **BLS period codes**:
      - M01..M12: monthly; M13 is the annual average.
      - Q01..Q04: quarterly; Q05 is the annual average.
      - S01, S02: semiannual; S03 is the annual average.
      - A01: annual.

    Annual-average codes (M13, Q05, S03, A01) map to January. Anything
    unrecognized maps to NaN.

    Args:
        period: Series of period code strings.

    Returns:
        Float Series of months (1-12) with NaN for unknown codes.
    """
    text = period.astype(str).str.strip().str.upper()
    kind = text.str[0]
    number = pd.to_numeric(text.str[1:], errors="coerce")

    is_month = (kind == "M") & number.between(1, 12)
    is_quarter = (kind == "Q") & number.between(1, 4)
    is_half = (kind == "S") & number.between(1, 2)
    is_annual = (
        ((kind == "M") & (number == 13))
        | ((kind == "Q") & (number == 5))
        | ((kind == "S") & (number == 3))
        | (kind == "A")
    )

    conditions = [
        is_month.to_numpy(dtype=bool),
        is_quarter.to_numpy(dtype=bool),
        is_half.to_numpy(dtype=bool),
        is_annual.to_numpy(dtype=bool),
    ]
    numbers = number.to_numpy(dtype=float, na_value=np.nan)
    choices = [numbers, (numbers - 1) * 3 + 1, (numbers - 1) * 6 + 1, np.ones(len(numbers))]
    months = np.select(conditions, choices, default=np.nan)
    return pd.Series(months, index=period.index)


def bls_period_to_date(year: pd.Series, period: pd.Series) -> pd.Series:
    """
    Build first-of-period dates from BLS year and period columns.

    Args:
        year: Series of years (int or numeric strings).
        period: Series of BLS period codes (see period_start_month).

    Returns:
        datetime64 Series; NaT where year or period cannot be interpreted.

    Example:
        >>> bls_period_to_date(pd.Series([2024, 2024]), pd.Series(["M03", "Q02"]))
        0   2024-03-01
        1   2024-04-01
        dtype: datetime64[ns]
    """
    years = pd.to_numeric(year, errors="coerce")
    months = period_start_month(period)
    valid = years.notna() & months.notna()

    text = pd.Series(None, index=year.index, dtype="object")
    text[valid] = (
        years[valid].astype(int).astype(str)
        + "-"
        + months[valid].astype(int).astype(str).str.zfill(2)
        + "-01"
    )
    return pd.to_datetime(text, format="%Y-%m-%d", errors="coerce")
