"""
alerting/schemas.py

Pydantic data models for the alert engine.
- AlertSettings / AlertSettingsUpdate: per-patient configuration and partial mutations
- GlucoseSample: incoming measurement that drives detection
- EncryptedReading / HistoricalReading: reading source rows before and after decryption
- Verdict / PersistentResolution: classifier and window tracker outputs
- AlertCreate / Alert: alert record before and after persistence
"""

import enum
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from alerting.constants import (
    DEFAULT_DAILY_SUMMARY_TIME,
    DEFAULT_HYPERGLYCEMIA_THRESHOLD,
    DEFAULT_HYPOGLYCEMIA_THRESHOLD,
    DEFAULT_PERSISTENT_HYPERGLYCEMIA_THRESHOLD,
    DEFAULT_PERSISTENT_MIN_READINGS,
    DEFAULT_PERSISTENT_WINDOW_HOURS,
    DEFAULT_SEVERE_HYPOGLYCEMIA_THRESHOLD,
    GLUCOSE_ENTRIES_SOURCE,
    GLUCOSE_READINGS_SOURCE,
    GLUCOSE_SAMPLE_MAX,
    GLUCOSE_SAMPLE_MIN,
    HHMM_PATTERN,
    HYPERGLYCEMIA_BOUNDS,
    HYPOGLYCEMIA_BOUNDS,
    PERSISTENT_HYPERGLYCEMIA_BOUNDS,
    PERSISTENT_MIN_READINGS_BOUNDS,
    PERSISTENT_WINDOW_HOURS_BOUNDS,
    SEVERE_HYPOGLYCEMIA_BOUNDS,
)


_CLEARABLE_FIELDS: frozenset[str] = frozenset({"quiet_hours_start", "quiet_hours_end"})


def utc_now() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


class AlertKind(str, enum.Enum):
    """Clinical condition an alert reports."""

    SEVERE_HYPOGLYCEMIA = "SEVERE_HYPOGLYCEMIA"
    HYPOGLYCEMIA = "HYPOGLYCEMIA"
    HYPERGLYCEMIA = "HYPERGLYCEMIA"
    PERSISTENT_HYPERGLYCEMIA = "PERSISTENT_HYPERGLYCEMIA"


class AlertSeverity(str, enum.Enum):
    """Urgency used for quiet-hours overrides."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"


class NotificationFrequency(str, enum.Enum):
    IMMEDIATE = "IMMEDIATE"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"


class NotificationChannels(BaseModel):
    """Which channels a patient's alerts are delivered through."""

    dashboard: bool = True
    email: bool = False
    push: bool = False


class AlertSettings(BaseModel):
    """Stored alert configuration for one patient."""

    user_id: str

    alerts_enabled: bool = True

    hypoglycemia_enabled: bool = True
    hypoglycemia_threshold: int = Field(
        default=DEFAULT_HYPOGLYCEMIA_THRESHOLD,
        ge=HYPOGLYCEMIA_BOUNDS[0],
        le=HYPOGLYCEMIA_BOUNDS[1],
    )
    severe_hypoglycemia_enabled: bool = True
    severe_hypoglycemia_threshold: int = Field(
        default=DEFAULT_SEVERE_HYPOGLYCEMIA_THRESHOLD,
        ge=SEVERE_HYPOGLYCEMIA_BOUNDS[0],
        le=SEVERE_HYPOGLYCEMIA_BOUNDS[1],
    )
    hyperglycemia_enabled: bool = True
    hyperglycemia_threshold: int = Field(
        default=DEFAULT_HYPERGLYCEMIA_THRESHOLD,
        ge=HYPERGLYCEMIA_BOUNDS[0],
        le=HYPERGLYCEMIA_BOUNDS[1],
    )
    persistent_hyperglycemia_enabled: bool = True
    persistent_hyperglycemia_threshold: int = Field(
        default=DEFAULT_PERSISTENT_HYPERGLYCEMIA_THRESHOLD,
        ge=PERSISTENT_HYPERGLYCEMIA_BOUNDS[0],
        le=PERSISTENT_HYPERGLYCEMIA_BOUNDS[1],
    )
    persistent_hyperglycemia_window_hours: int = Field(
        default=DEFAULT_PERSISTENT_WINDOW_HOURS,
        ge=PERSISTENT_WINDOW_HOURS_BOUNDS[0],
        le=PERSISTENT_WINDOW_HOURS_BOUNDS[1],
    )
    persistent_hyperglycemia_min_readings: int = Field(
        default=DEFAULT_PERSISTENT_MIN_READINGS,
        ge=PERSISTENT_MIN_READINGS_BOUNDS[0],
        le=PERSISTENT_MIN_READINGS_BOUNDS[1],
    )

    notification_channels: NotificationChannels = Field(
        default_factory=NotificationChannels
    )
    daily_summary_enabled: bool = False
    daily_summary_time: str = Field(
        default=DEFAULT_DAILY_SUMMARY_TIME, pattern=HHMM_PATTERN
    )

    quiet_hours_enabled: bool = False
    quiet_hours_start: Optional[str] = Field(default=None, pattern=HHMM_PATTERN)
    quiet_hours_end: Optional[str] = Field(default=None, pattern=HHMM_PATTERN)
    critical_alerts_ignore_quiet_hours: bool = True

    notification_frequency: NotificationFrequency = NotificationFrequency.IMMEDIATE


class AlertSettingsUpdate(BaseModel):
    """Partial settings mutation. Fields left as None keep their stored value."""

    alerts_enabled: Optional[bool] = None

    hypoglycemia_enabled: Optional[bool] = None
    hypoglycemia_threshold: Optional[int] = Field(
        default=None, ge=HYPOGLYCEMIA_BOUNDS[0], le=HYPOGLYCEMIA_BOUNDS[1]
    )
    severe_hypoglycemia_enabled: Optional[bool] = None
    severe_hypoglycemia_threshold: Optional[int] = Field(
        default=None,
        ge=SEVERE_HYPOGLYCEMIA_BOUNDS[0],
        le=SEVERE_HYPOGLYCEMIA_BOUNDS[1],
    )
    hyperglycemia_enabled: Optional[bool] = None
    hyperglycemia_threshold: Optional[int] = Field(
        default=None, ge=HYPERGLYCEMIA_BOUNDS[0], le=HYPERGLYCEMIA_BOUNDS[1]
    )
    persistent_hyperglycemia_enabled: Optional[bool] = None
    persistent_hyperglycemia_threshold: Optional[int] = Field(
        default=None,
        ge=PERSISTENT_HYPERGLYCEMIA_BOUNDS[0],
        le=PERSISTENT_HYPERGLYCEMIA_BOUNDS[1],
    )
    persistent_hyperglycemia_window_hours: Optional[int] = Field(
        default=None,
        ge=PERSISTENT_WINDOW_HOURS_BOUNDS[0],
        le=PERSISTENT_WINDOW_HOURS_BOUNDS[1],
    )
    persistent_hyperglycemia_min_readings: Optional[int] = Field(
        default=None,
        ge=PERSISTENT_MIN_READINGS_BOUNDS[0],
        le=PERSISTENT_MIN_READINGS_BOUNDS[1],
    )

    notification_channels: Optional[NotificationChannels] = None
    daily_summary_enabled: Optional[bool] = None
    daily_summary_time: Optional[str] = Field(default=None, pattern=HHMM_PATTERN)

    quiet_hours_enabled: Optional[bool] = None
    quiet_hours_start: Optional[str] = Field(default=None, pattern=HHMM_PATTERN)
    quiet_hours_end: Optional[str] = Field(default=None, pattern=HHMM_PATTERN)
    critical_alerts_ignore_quiet_hours: Optional[bool] = None

    notification_frequency: Optional[NotificationFrequency] = None

    def provided(self) -> dict:
        """
        Fields explicitly set on this update.

        An explicit None clears the quiet-hours bounds; on any other field it
        means "keep the stored value".
        """
        data = self.model_dump(exclude_unset=True)
        return {
            field: value
            for field, value in data.items()
            if value is not None or field in _CLEARABLE_FIELDS
        }


class GlucoseSample(BaseModel):
    """A new glucose measurement to run through detection."""

    user_id: str
    value: float = Field(
        ge=GLUCOSE_SAMPLE_MIN, le=GLUCOSE_SAMPLE_MAX, allow_inf_nan=False
    )  # mg/dL
    timestamp: datetime = Field(default_factory=utc_now)
    glucose_reading_id: Optional[str] = None
    glucose_entry_id: Optional[str] = None

    def source_refs(self) -> frozenset[tuple[str, str]]:
        """(source name, row id) pairs of the stored rows this sample came from."""
        refs = set()
        if self.glucose_entry_id:
            refs.add((GLUCOSE_ENTRIES_SOURCE, self.glucose_entry_id))
        if self.glucose_reading_id:
            refs.add((GLUCOSE_READINGS_SOURCE, self.glucose_reading_id))
        return frozenset(refs)


class EncryptedReading(BaseModel):
    """Raw reading row from a reading source, value still encrypted."""

    reading_id: str
    source: str
    ciphertext: str
    recorded_at: datetime


class HistoricalReading(BaseModel):
    """Decrypted reading that took part in a window count."""

    value: float  # mg/dL
    recorded_at: datetime


class Verdict(BaseModel):
    """Classifier decision for a single value."""

    kind: AlertKind
    severity: AlertSeverity
    message: str


class PersistentResolution(BaseModel):
    """Window tracker decision for a persistent-hyperglycemia candidate."""

    fire: bool
    fallback_to_regular_hyper: bool


class AlertCreate(BaseModel):
    """Alert record handed to storage for insertion."""

    user_id: str
    kind: AlertKind
    severity: AlertSeverity
    message: str
    glucose_reading_id: Optional[str] = None
    glucose_entry_id: Optional[str] = None


class Alert(AlertCreate):
    """Alert as stored, with generated identity and timestamp."""

    id: str
    created_at: datetime
    acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None


class NotificationRecipient(BaseModel):
    """Who receives email for a patient's alerts, and in which timezone."""

    user_id: str
    email: Optional[str] = None
    timezone: Optional[str] = None
