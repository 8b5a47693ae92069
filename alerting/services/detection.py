"""
alerting/services/detection.py

Alert detection entry point, run once per new glucose sample.

Flow:
1. Load (or lazily create) the patient's alert settings
2. Stop if alerts are globally disabled
3. Classify the value; resolve persistent-hyperglycemia candidates over the window
4. Persist at most one alert
5. Hand the alert to a detached notification task that can never fail step 4
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo

import structlog

from alerting.collaborators import (
    AlertStore,
    EmailSender,
    RecipientDirectory,
    SettingsStore,
)
from alerting.schemas import (
    Alert,
    AlertCreate,
    AlertKind,
    AlertSettings,
    GlucoseSample,
    Verdict,
    utc_now,
)
from alerting.services.classifier import classify, regular_hyperglycemia
from alerting.services.notification import send_alert_email
from alerting.services.notification_gate import should_notify
from alerting.services.quiet_hours import ZoneResolver
from alerting.services.window_tracker import PersistentWindowTracker

logger = structlog.get_logger(__name__)


@dataclass
class DetectionOutcome:
    """Result of one detection run.

    `notification` is the detached delivery task, or None when no alert was
    stored. Callers that own the event loop await it before closing the loop.
    """

    alert: Optional[Alert] = None
    notification: Optional[asyncio.Task] = None


class AlertDetector:
    """Runs threshold detection, persistence and notification gating for samples."""

    def __init__(
        self,
        settings_store: SettingsStore,
        alert_store: AlertStore,
        window_tracker: PersistentWindowTracker,
        recipients: RecipientDirectory,
        send_email: EmailSender = send_alert_email,
        resolve_zone: ZoneResolver = ZoneInfo,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._settings_store = settings_store
        self._alert_store = alert_store
        self._window_tracker = window_tracker
        self._recipients = recipients
        self._send_email = send_email
        self._resolve_zone = resolve_zone
        self._clock = clock
        # Strong references keep detached notifications alive until they finish.
        self._pending: set[asyncio.Task] = set()

    async def detect(
        self, sample: GlucoseSample, now: Optional[datetime] = None
    ) -> DetectionOutcome:
        """Classify one sample and store an alert if a condition is met."""
        now = now or self._clock()
        settings = await self._settings_store.get_or_create(sample.user_id)

        if not settings.alerts_enabled:
            logger.info("alert_detection_disabled", user_id=sample.user_id)
            return DetectionOutcome()

        verdict = await self._resolve_verdict(sample, settings, now)
        if verdict is None:
            return DetectionOutcome()

        alert = await self._alert_store.create(
            AlertCreate(
                user_id=sample.user_id,
                kind=verdict.kind,
                severity=verdict.severity,
                message=verdict.message,
                glucose_reading_id=sample.glucose_reading_id,
                glucose_entry_id=sample.glucose_entry_id,
            )
        )
        logger.info(
            "alert_created",
            user_id=sample.user_id,
            alert_id=alert.id,
            kind=alert.kind.value,
            severity=alert.severity.value,
            glucose=sample.value,
        )

        notification = asyncio.create_task(self._notify(alert, settings, now))
        self._pending.add(notification)
        notification.add_done_callback(self._pending.discard)
        return DetectionOutcome(alert=alert, notification=notification)

    async def _resolve_verdict(
        self, sample: GlucoseSample, settings: AlertSettings, now: datetime
    ) -> Optional[Verdict]:
        """Classify, then settle a persistent candidate against the window."""
        verdict = classify(sample.value, settings)
        if verdict is None or verdict.kind != AlertKind.PERSISTENT_HYPERGLYCEMIA:
            return verdict

        resolution = await self._window_tracker.resolve_persistent(
            sample.user_id,
            sample.value,
            settings,
            now,
            exclude=sample.source_refs(),
        )
        if resolution.fire:
            return verdict
        if resolution.fallback_to_regular_hyper:
            return regular_hyperglycemia(sample.value, settings)
        return None

    async def _notify(
        self, alert: Alert, settings: AlertSettings, now: datetime
    ) -> bool:
        """
        Gate and send the email for a stored alert.

        Quiet hours are checked at `now`, the same instant the detection
        window was anchored to.

        Every failure is logged and swallowed here: the alert is already
        stored and must stay stored.
        """
        try:
            recipient = await self._recipients.get_recipient(alert.user_id)
            if recipient is None or not recipient.email:
                logger.info(
                    "notification_skipped_no_recipient",
                    user_id=alert.user_id,
                    alert_id=alert.id,
                )
                return False

            if not should_notify(
                alert,
                settings,
                recipient.timezone,
                now,
                resolve_zone=self._resolve_zone,
            ):
                logger.info(
                    "notification_suppressed",
                    user_id=alert.user_id,
                    alert_id=alert.id,
                    email_enabled=settings.notification_channels.email,
                )
                return False

            sent = await self._send_email(
                recipient.email,
                alert.kind,
                alert.severity,
                alert.message,
                {
                    "alert_id": alert.id,
                    "user_id": alert.user_id,
                    "created_at": alert.created_at.isoformat(),
                },
            )
            if not sent:
                logger.error(
                    "alert_email_failed",
                    user_id=alert.user_id,
                    alert_id=alert.id,
                )
            return sent
        except Exception as exc:
            logger.error(
                "alert_notification_failed",
                user_id=alert.user_id,
                alert_id=alert.id,
                error=str(exc),
            )
            return False
