"""
alerting/services/quiet_hours.py

Quiet-hours evaluation in the recipient's local time.
Intervals are half-open [start, end); start > end wraps past midnight.
Zone lookup is the only side effect and goes through an injectable resolver.
"""

from datetime import datetime, timezone, tzinfo
from typing import Callable, Optional
from zoneinfo import ZoneInfo

import structlog

from alerting.constants import FALLBACK_TIMEZONE

logger = structlog.get_logger(__name__)

ZoneResolver = Callable[[str], tzinfo]


def parse_hhmm(value: str) -> int:
    """Convert "HH:MM" to minutes since midnight. Raises ValueError on bad input."""
    hours_text, sep, minutes_text = value.partition(":")
    if not sep or len(hours_text) != 2 or len(minutes_text) != 2:
        raise ValueError(f"expected HH:MM, got {value!r}")
    hours, minutes = int(hours_text), int(minutes_text)
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValueError(f"time of day out of range: {value!r}")
    return hours * 60 + minutes


def minutes_in_interval(current: int, start: int, end: int) -> bool:
    """Whether minute-of-day `current` falls in [start, end), wrapping midnight."""
    if start <= end:
        return start <= current < end
    return current >= start or current < end


def _resolve_zone(
    timezone_name: Optional[str], resolve_zone: ZoneResolver
) -> Optional[tzinfo]:
    try:
        return resolve_zone(timezone_name or FALLBACK_TIMEZONE)
    except Exception as exc:
        logger.warning(
            "quiet_hours_timezone_unresolved",
            timezone=timezone_name,
            fallback=FALLBACK_TIMEZONE,
            error=str(exc),
        )

    try:
        return resolve_zone(FALLBACK_TIMEZONE)
    except Exception as exc:
        logger.error(
            "quiet_hours_fallback_timezone_unresolved",
            timezone=FALLBACK_TIMEZONE,
            error=str(exc),
        )
        return None


def is_quiet(
    start: str,
    end: str,
    timezone_name: Optional[str],
    now: datetime,
    resolve_zone: ZoneResolver = ZoneInfo,
) -> bool:
    """
    Return True if `now` falls inside the quiet interval in `timezone_name`.

    Fails open: malformed bounds, or a zone that cannot be resolved even after
    retrying with UTC, yield False so notifications are never blocked by a
    configuration or tz-database problem.
    """
    try:
        start_min = parse_hhmm(start)
        end_min = parse_hhmm(end)
    except (AttributeError, TypeError, ValueError) as exc:
        logger.warning(
            "quiet_hours_bounds_invalid",
            start=start,
            end=end,
            error=str(exc),
        )
        return False

    zone = _resolve_zone(timezone_name, resolve_zone)
    if zone is None:
        return False

    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(zone)
    current_min = local.hour * 60 + local.minute

    return minutes_in_interval(current_min, start_min, end_min)
