"""
alerting/collaborators.py

Interfaces the alert engine depends on. Storage, decryption and delivery are
provided by the caller; the SQLAlchemy implementations live in
alerting/services/persistence.py.
"""

from datetime import datetime
from typing import Any, Optional, Protocol, runtime_checkable

from alerting.schemas import (
    Alert,
    AlertCreate,
    AlertKind,
    AlertSettings,
    AlertSeverity,
    EncryptedReading,
    NotificationRecipient,
)


@runtime_checkable
class ReadingSource(Protocol):
    """A stream of stored glucose readings for a patient.

    The window tracker merges every registered source, so a new stream is
    added by registering another implementation.
    """

    @property
    def name(self) -> str:
        """Label used in logs, e.g. 'glucose_entries'."""
        ...

    async def fetch_since(
        self, user_id: str, since: datetime
    ) -> list[EncryptedReading]:
        """Readings for user_id with recorded_at >= since."""
        ...


@runtime_checkable
class AlertStore(Protocol):
    async def create(self, record: AlertCreate) -> Alert:
        """Insert an alert and return it with generated id and created_at."""
        ...

    async def find_latest(
        self, user_id: str, kind: AlertKind, since: datetime
    ) -> Optional[Alert]:
        """Most recent alert of kind for user_id with created_at >= since."""
        ...


@runtime_checkable
class SettingsStore(Protocol):
    async def get_or_create(self, user_id: str) -> AlertSettings:
        """Stored settings for user_id, inserting defaults on first access."""
        ...

    async def save(self, settings: AlertSettings) -> AlertSettings:
        """Persist a full settings object and return the stored version."""
        ...


@runtime_checkable
class RecipientDirectory(Protocol):
    async def get_recipient(self, user_id: str) -> Optional[NotificationRecipient]:
        """Email address and timezone for a patient's alert notifications."""
        ...


@runtime_checkable
class Decryptor(Protocol):
    def decrypt_glucose(self, payload_hex: str) -> float:
        """Decrypt a stored glucose value; raises EncryptionError on bad input."""
        ...


class EmailSender(Protocol):
    async def __call__(
        self,
        recipient: str,
        kind: AlertKind,
        severity: AlertSeverity,
        message: str,
        context: dict[str, Any],
    ) -> bool:
        """Deliver an alert email; returns False when delivery failed."""
        ...
