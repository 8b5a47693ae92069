"""
tests/test_worker.py

Unit tests for worker/main.py and the email stub in
alerting/services/notification.py.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic import ValidationError

from alerting.schemas import AlertKind, AlertSeverity
from alerting.services.detection import DetectionOutcome
from alerting.services.notification import build_subject, send_alert_email
from tests.fixtures import TEST_EMAIL, build_alert, build_sample


@pytest.mark.asyncio
async def test_run_detection_awaits_notification_and_returns_alert_id() -> None:
    alert = build_alert()
    notified = asyncio.Event()

    async def _notify() -> bool:
        notified.set()
        return True

    detector = MagicMock()
    detector.detect = AsyncMock(
        return_value=DetectionOutcome(
            alert=alert, notification=asyncio.ensure_future(_notify())
        )
    )

    with patch("worker.main.build_detector", return_value=detector):
        from worker.main import _run_detection

        result = await _run_detection(build_sample(60).model_dump_json())

    assert result == alert.id
    assert notified.is_set()
    sample = detector.detect.await_args.args[0]
    assert sample.value == 60


@pytest.mark.asyncio
async def test_run_detection_without_alert_returns_none() -> None:
    detector = MagicMock()
    detector.detect = AsyncMock(return_value=DetectionOutcome())

    with patch("worker.main.build_detector", return_value=detector):
        from worker.main import _run_detection

        result = await _run_detection(build_sample(120).model_dump_json())

    assert result is None


@pytest.mark.asyncio
async def test_run_detection_rejects_invalid_sample() -> None:
    detector = MagicMock()
    detector.detect = AsyncMock()

    with patch("worker.main.build_detector", return_value=detector):
        from worker.main import _run_detection

        with pytest.raises(ValidationError):
            await _run_detection('{"user_id": "user_001", "value": 900}')

    detector.detect.assert_not_awaited()


def test_build_subject_includes_severity_and_kind() -> None:
    subject = build_subject(AlertKind.SEVERE_HYPOGLYCEMIA, AlertSeverity.CRITICAL)

    assert subject == "[CRITICAL] Severe hypoglycemia alert"


@pytest.mark.asyncio
async def test_send_alert_email_reports_success() -> None:
    delivered = await send_alert_email(
        TEST_EMAIL,
        AlertKind.HYPERGLYCEMIA,
        AlertSeverity.MEDIUM,
        "Hyperglycemia: glucose at 280 mg/dL.",
        {"alert_id": "alert_1"},
    )

    assert delivered is True


def test_task_registered_under_worker_namespace() -> None:
    from worker.main import celery_app, process_glucose_sample

    assert process_glucose_sample.name == "worker.tasks.process_glucose_sample"
    assert "worker.tasks.process_glucose_sample" in celery_app.tasks
