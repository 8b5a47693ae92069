"""
db/models.py

SQLAlchemy 2.0 async ORM model definitions.
Maps to the tables read and written by the alert detection service.
"""

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from config import settings

# Async engine with connection pool settings
engine = create_async_engine(
    f"mysql+aiomysql://{settings.mysql_user}:{settings.mysql_password}"
    f"@{settings.mysql_host}:{settings.mysql_port}/{settings.mysql_db}",
    pool_size=10,
    max_overflow=20,
    pool_pre_ping=True,
)

AsyncSessionLocal = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class User(Base):
    """Alert recipient profile: where and when to send email."""

    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(
        DateTime, default=datetime.utcnow
    )


class AlertSettingsRow(Base):
    """Per-patient alert configuration, created lazily with defaults."""

    __tablename__ = "alert_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True)
    alerts_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False)
    hypoglycemia_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False)
    hypoglycemia_threshold: Mapped[int] = mapped_column(Integer, nullable=False)
    severe_hypoglycemia_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False)
    severe_hypoglycemia_threshold: Mapped[int] = mapped_column(
        Integer, nullable=False
    )
    hyperglycemia_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False)
    hyperglycemia_threshold: Mapped[int] = mapped_column(Integer, nullable=False)
    persistent_hyperglycemia_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False
    )
    persistent_hyperglycemia_threshold: Mapped[int] = mapped_column(
        Integer, nullable=False
    )
    persistent_hyperglycemia_window_hours: Mapped[int] = mapped_column(
        Integer, nullable=False
    )
    persistent_hyperglycemia_min_readings: Mapped[int] = mapped_column(
        Integer, nullable=False
    )
    notification_channels: Mapped[dict] = mapped_column(JSON, nullable=False)
    daily_summary_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False)
    daily_summary_time: Mapped[str] = mapped_column(String(5), nullable=False)
    quiet_hours_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False)
    quiet_hours_start: Mapped[str | None] = mapped_column(String(5), nullable=True)
    quiet_hours_end: Mapped[str | None] = mapped_column(String(5), nullable=True)
    critical_alerts_ignore_quiet_hours: Mapped[bool] = mapped_column(
        Boolean, nullable=False
    )
    notification_frequency: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime | None] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class AlertRow(Base):
    """Append-only record of a detected glucose condition."""

    __tablename__ = "alerts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    severity: Mapped[str] = mapped_column(String(16), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    glucose_reading_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    glucose_entry_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    acknowledged: Mapped[bool] = mapped_column(Boolean, default=False)
    acknowledged_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, index=True
    )


class GlucoseEntry(Base):
    """Manually logged glucose value, encrypted at rest."""

    __tablename__ = "glucose_entries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    mgdl_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class GlucoseReading(Base):
    """CGM sensor reading, encrypted at rest.

    Rows with is_historical=True were backfilled from sensor memory and are
    excluded from persistent-condition windows.
    """

    __tablename__ = "glucose_readings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    glucose_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    source: Mapped[str] = mapped_column(String(16), default="MANUAL")
    is_historical: Mapped[bool] = mapped_column(Boolean, default=False)
