"""Reporting window helpers.

WHAT:
    Computes the rolling 30-day window used by the metrics endpoint.
WHY:
    "Today" must be determined in the merchant's business timezone, while
    Shopify's `created_at_min` / `created_at_max` filters expect UTC instants.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_BUSINESS_TIMEZONE = "Asia/Dubai"
WINDOW_DAYS = 30


def resolve_timezone(tz_name: Optional[str]) -> Union[ZoneInfo, timezone]:
    """Return the ZoneInfo for ``tz_name``, falling back to UTC when unknown."""
    if not tz_name:
        return timezone.utc
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("[DATES] Invalid timezone '%s', falling back to UTC", tz_name)
        return timezone.utc


def to_utc_iso(value: datetime) -> str:
    """Format an aware datetime as a millisecond-precision UTC string ending in 'Z'."""
    utc_value = value.astimezone(timezone.utc)
    return utc_value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def last_30_days_range(
    tz_name: Optional[str] = DEFAULT_BUSINESS_TIMEZONE,
    now: Optional[datetime] = None,
) -> Tuple[str, str]:
    """Return ``(from_date, to_date)`` for the last 30 days including today.

    Both bounds are inclusive: start of day 29 days ago and 23:59:59.999 today,
    in the business timezone, converted to UTC.

    Args:
        tz_name: IANA timezone of the business (e.g., "Asia/Dubai").
        now: Reference instant; defaults to the current time. Naive values
             are treated as UTC.
    """
    tz = resolve_timezone(tz_name)

    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    now_local = now.astimezone(tz)

    end_local = now_local.replace(hour=23, minute=59, second=59, microsecond=999000)
    start_local = (now_local - timedelta(days=WINDOW_DAYS - 1)).replace(
        hour=0, minute=0, second=0, microsecond=0
    )

    return to_utc_iso(start_local), to_utc_iso(end_local)
