"""
alerting/services/notification_gate.py

Decides whether a just-created alert is emailed.
Only the email channel is gated here; dashboard delivery is the stored alert itself.
"""

from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

import structlog

from alerting.constants import FALLBACK_TIMEZONE
from alerting.schemas import Alert, AlertSettings, AlertSeverity
from alerting.services.quiet_hours import ZoneResolver, is_quiet

logger = structlog.get_logger(__name__)


def should_notify(
    alert: Alert,
    settings: AlertSettings,
    recipient_timezone: Optional[str],
    now: datetime,
    resolve_zone: ZoneResolver = ZoneInfo,
) -> bool:
    """
    Return True if an email should be sent for `alert`.

    Critical alerts break through quiet hours only when the patient's settings
    allow it; every other severity waits until quiet hours end.
    """
    if not settings.notification_channels.email:
        return False

    if (
        not settings.quiet_hours_enabled
        or not settings.quiet_hours_start
        or not settings.quiet_hours_end
    ):
        return True

    quiet = is_quiet(
        settings.quiet_hours_start,
        settings.quiet_hours_end,
        recipient_timezone or FALLBACK_TIMEZONE,
        now,
        resolve_zone=resolve_zone,
    )
    if not quiet:
        return True

    allowed = (
        alert.severity == AlertSeverity.CRITICAL
        and settings.critical_alerts_ignore_quiet_hours
    )
    logger.info(
        "notification_quiet_hours",
        user_id=alert.user_id,
        alert_id=alert.id,
        severity=alert.severity.value,
        bypass=allowed,
    )
    return allowed
