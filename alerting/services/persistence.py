"""
alerting/services/persistence.py

SQLAlchemy 2.0 async implementations of the alert engine's storage interfaces.
- SqlSettingsStore: alert_settings rows, created with defaults on first access
- SqlAlertStore: append-only alerts table
- GlucoseEntrySource / SensorReadingSource: the two reading streams
- SqlRecipientDirectory: users table (email, timezone)

The database stores naive UTC datetimes; values leaving this module are
timezone-aware UTC.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from alerting.constants import GLUCOSE_ENTRIES_SOURCE, GLUCOSE_READINGS_SOURCE
from alerting.schemas import (
    Alert,
    AlertCreate,
    AlertKind,
    AlertSettings,
    EncryptedReading,
    NotificationRecipient,
    utc_now,
)
from config import settings as app_settings
from db.models import (
    AlertRow,
    AlertSettingsRow,
    AsyncSessionLocal,
    GlucoseEntry,
    GlucoseReading,
    User,
)

logger = structlog.get_logger(__name__)

_SETTINGS_FIELDS: tuple[str, ...] = tuple(
    name for name in AlertSettings.model_fields if name != "user_id"
)


def to_db_time(value: datetime) -> datetime:
    """Aware datetime → naive UTC for storage; naive values are assumed UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def from_db_time(value: datetime) -> datetime:
    """Naive UTC from storage → aware UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _settings_from_row(row: AlertSettingsRow) -> AlertSettings:
    values = {name: getattr(row, name) for name in _SETTINGS_FIELDS}
    return AlertSettings.model_validate({"user_id": row.user_id, **values})


def _apply_settings_to_row(row: AlertSettingsRow, settings: AlertSettings) -> None:
    values = settings.model_dump(mode="json")
    for name in _SETTINGS_FIELDS:
        setattr(row, name, values[name])


def _alert_from_row(row: AlertRow) -> Alert:
    return Alert(
        id=row.id,
        user_id=row.user_id,
        kind=AlertKind(row.kind),
        severity=row.severity,
        message=row.message,
        glucose_reading_id=row.glucose_reading_id,
        glucose_entry_id=row.glucose_entry_id,
        created_at=from_db_time(row.created_at),
        acknowledged=bool(row.acknowledged),
        acknowledged_at=(
            from_db_time(row.acknowledged_at) if row.acknowledged_at else None
        ),
    )


class SqlSettingsStore:
    """alert_settings table access."""

    def __init__(self, session_factory=AsyncSessionLocal) -> None:
        self._session_factory = session_factory

    async def _select(self, session, user_id: str) -> Optional[AlertSettingsRow]:
        result = await session.execute(
            select(AlertSettingsRow).where(AlertSettingsRow.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, user_id: str) -> AlertSettings:
        """Return stored settings, inserting defaults when none exist."""
        async with self._session_factory() as session:
            row = await self._select(session, user_id)
            if row is not None:
                return _settings_from_row(row)

            defaults = AlertSettings(user_id=user_id)
            row = AlertSettingsRow(user_id=user_id)
            _apply_settings_to_row(row, defaults)
            session.add(row)
            try:
                await session.commit()
            except IntegrityError:
                # Another request created the row first; read theirs.
                await session.rollback()
                row = await self._select(session, user_id)
                if row is None:
                    raise
                return _settings_from_row(row)

            logger.info("alert_settings_created", user_id=user_id)
            return defaults

    async def save(self, settings: AlertSettings) -> AlertSettings:
        """Overwrite the stored settings for settings.user_id."""
        try:
            async with self._session_factory() as session:
                row = await self._select(session, settings.user_id)
                if row is None:
                    row = AlertSettingsRow(user_id=settings.user_id)
                    session.add(row)
                _apply_settings_to_row(row, settings)
                await session.commit()
                return _settings_from_row(row)
        except Exception as exc:
            logger.error(
                "alert_settings_save_failed",
                user_id=settings.user_id,
                error=str(exc),
            )
            raise


class SqlAlertStore:
    """alerts table access."""

    def __init__(self, session_factory=AsyncSessionLocal) -> None:
        self._session_factory = session_factory

    async def create(self, record: AlertCreate) -> Alert:
        """Insert an alert with a generated id and creation time."""
        try:
            async with self._session_factory() as session:
                row = AlertRow(
                    id=str(uuid.uuid4()),
                    user_id=record.user_id,
                    kind=record.kind.value,
                    severity=record.severity.value,
                    message=record.message,
                    glucose_reading_id=record.glucose_reading_id,
                    glucose_entry_id=record.glucose_entry_id,
                    acknowledged=False,
                    created_at=to_db_time(utc_now()),
                )
                session.add(row)
                await session.commit()
                return _alert_from_row(row)
        except Exception as exc:
            logger.error(
                "alert_persist_failed",
                user_id=record.user_id,
                kind=record.kind.value,
                error=str(exc),
            )
            raise

    async def find_latest(
        self, user_id: str, kind: AlertKind, since: datetime
    ) -> Optional[Alert]:
        """Most recent alert of `kind` created at or after `since`."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(AlertRow)
                .where(
                    AlertRow.user_id == user_id,
                    AlertRow.kind == kind.value,
                    AlertRow.created_at >= to_db_time(since),
                )
                .order_by(AlertRow.created_at.desc())
                .limit(1)
            )
            row = result.scalar_one_or_none()
            return _alert_from_row(row) if row is not None else None


class GlucoseEntrySource:
    """Manually logged glucose entries."""

    name = GLUCOSE_ENTRIES_SOURCE

    def __init__(self, session_factory=AsyncSessionLocal) -> None:
        self._session_factory = session_factory

    async def fetch_since(
        self, user_id: str, since: datetime
    ) -> list[EncryptedReading]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(GlucoseEntry)
                .where(
                    GlucoseEntry.user_id == user_id,
                    GlucoseEntry.recorded_at >= to_db_time(since),
                )
                .order_by(GlucoseEntry.recorded_at)
            )
            return [
                EncryptedReading(
                    reading_id=entry.id,
                    source=self.name,
                    ciphertext=entry.mgdl_encrypted,
                    recorded_at=from_db_time(entry.recorded_at),
                )
                for entry in result.scalars()
            ]


class SensorReadingSource:
    """Live CGM sensor readings; backfilled historical rows are excluded."""

    name = GLUCOSE_READINGS_SOURCE

    def __init__(self, session_factory=AsyncSessionLocal) -> None:
        self._session_factory = session_factory

    async def fetch_since(
        self, user_id: str, since: datetime
    ) -> list[EncryptedReading]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(GlucoseReading)
                .where(
                    GlucoseReading.user_id == user_id,
                    GlucoseReading.recorded_at >= to_db_time(since),
                    GlucoseReading.is_historical.is_(False),
                )
                .order_by(GlucoseReading.recorded_at)
            )
            return [
                EncryptedReading(
                    reading_id=reading.id,
                    source=self.name,
                    ciphertext=reading.glucose_encrypted,
                    recorded_at=from_db_time(reading.recorded_at),
                )
                for reading in result.scalars()
            ]


class SqlRecipientDirectory:
    """users table lookup for alert email delivery."""

    def __init__(self, session_factory=AsyncSessionLocal) -> None:
        self._session_factory = session_factory

    async def get_recipient(self, user_id: str) -> Optional[NotificationRecipient]:
        async with self._session_factory() as session:
            result = await session.execute(select(User).where(User.user_id == user_id))
            user = result.scalar_one_or_none()
            if user is None:
                logger.warning("recipient_missing", user_id=user_id)
                return None
            return NotificationRecipient(
                user_id=user.user_id,
                email=user.email,
                timezone=user.timezone or app_settings.default_timezone,
            )
