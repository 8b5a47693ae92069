"""
worker/main.py

Celery Worker entry point.
Defines the Celery app and the task that runs alert detection for each
incoming glucose sample.
"""

import asyncio

import structlog
from celery import Celery

from config import settings

logger = structlog.get_logger(__name__)

celery_app = Celery(
    "worker",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.worker_timezone,
    enable_utc=True,
)


def build_detector():
    """Wire the alert detector to the SQL stores and the configured cipher."""
    from alerting.services.detection import AlertDetector
    from alerting.services.encryption import get_cipher
    from alerting.services.persistence import (
        GlucoseEntrySource,
        SensorReadingSource,
        SqlAlertStore,
        SqlRecipientDirectory,
        SqlSettingsStore,
    )
    from alerting.services.window_tracker import PersistentWindowTracker

    alert_store = SqlAlertStore()
    tracker = PersistentWindowTracker(
        sources=[GlucoseEntrySource(), SensorReadingSource()],
        alert_store=alert_store,
        decryptor=get_cipher(),
    )
    return AlertDetector(
        settings_store=SqlSettingsStore(),
        alert_store=alert_store,
        window_tracker=tracker,
        recipients=SqlRecipientDirectory(),
    )


async def _run_detection(sample_json: str) -> str | None:
    """Async entrypoint: detect, then let the detached notification finish."""
    from alerting.schemas import GlucoseSample

    sample = GlucoseSample.model_validate_json(sample_json)
    logger.info(
        "glucose_sample_received",
        user_id=sample.user_id,
        glucose=sample.value,
        glucose_reading_id=sample.glucose_reading_id,
        glucose_entry_id=sample.glucose_entry_id,
    )

    detector = build_detector()
    outcome = await detector.detect(sample)

    if outcome.notification is not None:
        # asyncio.run() cancels pending tasks on exit; the alert is already stored.
        await outcome.notification

    return outcome.alert.id if outcome.alert is not None else None


@celery_app.task(name="worker.tasks.process_glucose_sample")
def process_glucose_sample(sample_json: str) -> str | None:
    """
    Celery task that runs alert detection for one glucose sample.

    Uses asyncio.run() to bridge Celery's sync interface with the async
    detection flow. Returns the created alert id, or None.
    """
    return asyncio.run(_run_detection(sample_json))
