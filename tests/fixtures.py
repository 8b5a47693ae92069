"""
tests/fixtures.py

Shared test data and helper functions for constructing test objects.
All tests must use these fixtures instead of hardcoding test values.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from alerting.schemas import (
    Alert,
    AlertKind,
    AlertSettings,
    AlertSeverity,
    EncryptedReading,
    GlucoseSample,
    NotificationRecipient,
)
from alerting.services.encryption import GlucoseCipher

# ── Test constants ──────────────────────────────────────────

TEST_USER_ID: str = "user_001"
TEST_NOW: datetime = datetime(2024, 6, 15, 13, 30, 0, tzinfo=timezone.utc)
TEST_ENCRYPTION_KEY: str = "00112233445566778899aabbccddeeff" * 2
TEST_EMAIL: str = "care-team@example.com"


def build_settings(user_id: str = TEST_USER_ID, **overrides) -> AlertSettings:
    """Build AlertSettings with defaults, overriding any field by keyword."""
    return AlertSettings(user_id=user_id, **overrides)


def build_sample(
    value: float = 120.0,
    user_id: str = TEST_USER_ID,
    timestamp: datetime | None = None,
    glucose_reading_id: str | None = None,
    glucose_entry_id: str | None = None,
) -> GlucoseSample:
    """Build a GlucoseSample with sensible defaults for testing."""
    return GlucoseSample(
        user_id=user_id,
        value=value,
        timestamp=timestamp or TEST_NOW,
        glucose_reading_id=glucose_reading_id,
        glucose_entry_id=glucose_entry_id,
    )


def build_alert(
    kind: AlertKind = AlertKind.HYPOGLYCEMIA,
    severity: AlertSeverity = AlertSeverity.HIGH,
    user_id: str = TEST_USER_ID,
    created_at: datetime | None = None,
    alert_id: str = "alert_001",
    message: str = "Hypoglycemia: glucose at 60 mg/dL.",
) -> Alert:
    """Build a stored Alert."""
    return Alert(
        id=alert_id,
        user_id=user_id,
        kind=kind,
        severity=severity,
        message=message,
        created_at=created_at or TEST_NOW,
    )


def build_recipient(
    email: str | None = TEST_EMAIL, timezone_name: str | None = "UTC"
) -> NotificationRecipient:
    return NotificationRecipient(
        user_id=TEST_USER_ID, email=email, timezone=timezone_name
    )


def build_cipher() -> GlucoseCipher:
    return GlucoseCipher(TEST_ENCRYPTION_KEY)


def build_encrypted_reading(
    value: float,
    minutes_ago: int = 30,
    source: str = "glucose_entries",
    reading_id: str = "reading_001",
    cipher: GlucoseCipher | None = None,
) -> EncryptedReading:
    """Encrypt `value` with the test key, recorded `minutes_ago` before TEST_NOW."""
    cipher = cipher or build_cipher()
    return EncryptedReading(
        reading_id=reading_id,
        source=source,
        ciphertext=cipher.encrypt_glucose(value),
        recorded_at=TEST_NOW - timedelta(minutes=minutes_ago),
    )


class FakeReadingSource:
    """ReadingSource returning a fixed list of rows and recording calls."""

    def __init__(self, name: str, rows: list[EncryptedReading] | None = None) -> None:
        self.name = name
        self.fetch_since = AsyncMock(return_value=list(rows or []))


def build_alert_store(existing: Alert | None = None) -> AsyncMock:
    """AlertStore mock: create() echoes the record back as a stored Alert."""
    store = AsyncMock()
    store.find_latest = AsyncMock(return_value=existing)

    async def _create(record):
        return Alert(
            id="alert_new",
            created_at=TEST_NOW,
            **record.model_dump(),
        )

    store.create = AsyncMock(side_effect=_create)
    return store


def build_settings_store(settings: AlertSettings | None = None) -> AsyncMock:
    """SettingsStore mock: get_or_create returns `settings`, save echoes input."""
    store = AsyncMock()
    store.get_or_create = AsyncMock(return_value=settings or build_settings())

    async def _save(value):
        return value

    store.save = AsyncMock(side_effect=_save)
    return store
