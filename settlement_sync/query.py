"""Mail query planning: one time-bounded Gmail search per category."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from .models import Category

# Subject filters per category, in deduplication priority order.
CATEGORY_FILTERS: dict[Category, str] = {
    Category.AMAZON_SETTLEMENT: 'from:amazon subject:("settlement" OR "disbursement")',
    Category.INDIFI_VIRTUAL_RECEIPT: 'from:indifi subject:"credited to your virtual account"',
    Category.INDIFI_RELEASE: 'from:indifi subject:("payment released" OR "funds released")',
}


def window_bounds(start: date, end: date, tz_name: str) -> tuple[int, int]:
    """Epoch seconds of midnight on *start* and on the day after *end*, in *tz_name*."""
    if start > end:
        raise ValueError(f"start {start.isoformat()} is after end {end.isoformat()}")
    tz = ZoneInfo(tz_name)
    lower = datetime.combine(start, time.min, tzinfo=tz)
    upper = datetime.combine(end + timedelta(days=1), time.min, tzinfo=tz)
    return int(lower.timestamp()), int(upper.timestamp())


def date_window(start: date, end: date, tz_name: str) -> str:
    """Gmail clause covering *start* through *end* inclusive as ledger days.

    Date-form clauses (``after:2025/06/01``) are evaluated in the provider's
    own zone, so the bounds are sent as epoch seconds.  ``after:`` is
    strict, hence one second before midnight.
    """
    lower, upper = window_bounds(start, end, tz_name)
    return f"after:{lower - 1} before:{upper}"


def build_queries(
    start: date,
    end: date,
    tz_name: str,
    filters: dict[Category, str] | None = None,
) -> dict[Category, str]:
    """Build one search query per category for the inclusive window."""
    window = date_window(start, end, tz_name)
    table = CATEGORY_FILTERS if filters is None else filters
    return {category: f"{window} {table[category]}" for category in Category}
