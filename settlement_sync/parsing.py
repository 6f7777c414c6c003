"""Amount and event-date parsing."""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from zoneinfo import ZoneInfo


@lru_cache(maxsize=8)
def amount_pattern(currency: str) -> re.Pattern[str]:
    """``<CUR> 1,23,456.78``: code, whitespace, grouped digits, two decimals."""
    if not re.fullmatch(r"[A-Z]{3}", currency):
        raise ValueError(f"currency must be a three-letter code, got {currency!r}")
    return re.compile(rf"\b{currency}\s+(\d[\d,]*\.\d{{2}})(?!\d)")


def parse_amount(text: str | None, currency: str = "INR") -> Decimal | None:
    """First ``<currency> <amount>`` in *text*, or None.

    Only the first match is considered; messages quoting several amounts
    or currencies are not disambiguated.
    """
    if not text:
        return None
    match = amount_pattern(currency).search(text)
    if match is None:
        return None
    try:
        amount = Decimal(match.group(1).replace(",", ""))
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def event_date(delivered_at: datetime | None, tz_name: str) -> date | None:
    """Calendar date of *delivered_at* as seen in the ledger's time zone."""
    if delivered_at is None:
        return None
    return delivered_at.astimezone(ZoneInfo(tz_name)).date()
