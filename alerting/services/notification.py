"""
alerting/services/notification.py

Email notification service for glucose alerts.
Currently implements a stub for SMTP integration.
"""

from typing import Any

import structlog

from alerting.schemas import AlertKind, AlertSeverity
from config import settings

logger = structlog.get_logger(__name__)

ALERT_KIND_LABELS: dict[AlertKind, str] = {
    AlertKind.SEVERE_HYPOGLYCEMIA: "Severe hypoglycemia",
    AlertKind.HYPOGLYCEMIA: "Hypoglycemia",
    AlertKind.HYPERGLYCEMIA: "Hyperglycemia",
    AlertKind.PERSISTENT_HYPERGLYCEMIA: "Persistent hyperglycemia",
}


def build_subject(kind: AlertKind, severity: AlertSeverity) -> str:
    """Email subject line for an alert."""
    return f"[{severity.value}] {ALERT_KIND_LABELS[kind]} alert"


async def send_alert_email(
    recipient: str,
    kind: AlertKind,
    severity: AlertSeverity,
    message: str,
    context: dict[str, Any],
) -> bool:
    """
    Send an alert email to a recipient.

    Called from the detached notification task after an alert is stored.
    In production, this would relay through settings.smtp_host.
    """
    logger.info(
        "alert_email_sent",
        recipient=recipient,
        subject=build_subject(kind, severity),
        sender=settings.alert_email_from,
        message_length=len(message),
        alert_id=context.get("alert_id"),
        smtp_host_present=bool(settings.smtp_host),
    )
    # TODO: Deliver through SMTP using settings.smtp_host and settings.alert_email_from
    return True
