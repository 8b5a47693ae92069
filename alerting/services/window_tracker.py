"""
alerting/services/window_tracker.py

Persistent-hyperglycemia resolution over a rolling window.
- collect_readings: merges every reading source and decrypts, skipping bad rows
- resolve_persistent: counts qualifying readings and applies the
  one-alert-per-window dedup ("counter reset")

The dedup lookup is read-then-write and is not isolated from a concurrent
sample for the same user: two near-simultaneous samples can both fire.
"""

import asyncio
from datetime import datetime, timedelta
from typing import AbstractSet, Sequence

import structlog

from alerting.collaborators import AlertStore, Decryptor, ReadingSource
from alerting.schemas import (
    AlertKind,
    AlertSettings,
    HistoricalReading,
    PersistentResolution,
)
from alerting.services.encryption import EncryptionError

logger = structlog.get_logger(__name__)

# The sample being classified always qualifies. Its own stored row, if a
# source already returns it, is excluded so it is not counted twice.
_CURRENT_SAMPLE_COUNT: int = 1


class PersistentWindowTracker:
    """Decides whether a persistent-hyperglycemia candidate fires."""

    def __init__(
        self,
        sources: Sequence[ReadingSource],
        alert_store: AlertStore,
        decryptor: Decryptor,
    ) -> None:
        if not sources:
            raise ValueError("At least one reading source is required")
        self._sources = list(sources)
        self._alert_store = alert_store
        self._decryptor = decryptor

    async def collect_readings(
        self,
        user_id: str,
        since: datetime,
        exclude: AbstractSet[tuple[str, str]] = frozenset(),
    ) -> list[HistoricalReading]:
        """
        Fetch readings recorded at or after `since` from all sources.

        Rows whose (source name, reading id) is in `exclude` are skipped.
        Rows that fail to decrypt are logged and dropped; they never abort
        the collection. The result is ordered by recorded_at.
        """
        batches = await asyncio.gather(
            *(source.fetch_since(user_id, since) for source in self._sources)
        )

        readings: list[HistoricalReading] = []
        for source, batch in zip(self._sources, batches):
            for row in batch:
                if (source.name, row.reading_id) in exclude:
                    continue
                try:
                    value = self._decryptor.decrypt_glucose(row.ciphertext)
                except EncryptionError as exc:
                    logger.warning(
                        "reading_decrypt_failed",
                        user_id=user_id,
                        source=source.name,
                        reading_id=row.reading_id,
                        error=str(exc),
                    )
                    continue
                readings.append(
                    HistoricalReading(value=value, recorded_at=row.recorded_at)
                )

        readings.sort(key=lambda reading: reading.recorded_at)
        return readings

    async def resolve_persistent(
        self,
        user_id: str,
        value: float,
        settings: AlertSettings,
        now: datetime,
        exclude: AbstractSet[tuple[str, str]] = frozenset(),
    ) -> PersistentResolution:
        """
        Resolve a persistent-hyperglycemia candidate for the current value.

        Fires only when the window holds enough qualifying readings (current
        sample included) and no persistent alert was already raised inside
        the same window. Otherwise asks the caller to fall back to the
        ordinary hyperglycemia rule.

        `exclude` holds the (source, id) refs of the current sample's stored
        rows; the sample is counted once through _CURRENT_SAMPLE_COUNT.
        """
        threshold = settings.persistent_hyperglycemia_threshold
        window_start = now - timedelta(
            hours=settings.persistent_hyperglycemia_window_hours
        )

        history = await self.collect_readings(user_id, window_start, exclude)
        qualifying = sum(1 for reading in history if reading.value > threshold)
        count = qualifying + _CURRENT_SAMPLE_COUNT

        if count < settings.persistent_hyperglycemia_min_readings:
            logger.info(
                "persistent_window_below_minimum",
                user_id=user_id,
                glucose=value,
                qualifying=count,
                required=settings.persistent_hyperglycemia_min_readings,
            )
            return PersistentResolution(fire=False, fallback_to_regular_hyper=True)

        existing = await self._alert_store.find_latest(
            user_id, AlertKind.PERSISTENT_HYPERGLYCEMIA, window_start
        )
        if existing is not None:
            logger.info(
                "persistent_alert_suppressed",
                user_id=user_id,
                glucose=value,
                existing_alert_id=existing.id,
                window_start=window_start.isoformat(),
            )
            return PersistentResolution(fire=False, fallback_to_regular_hyper=True)

        logger.info(
            "persistent_window_qualified",
            user_id=user_id,
            glucose=value,
            qualifying=count,
            window_hours=settings.persistent_hyperglycemia_window_hours,
        )
        return PersistentResolution(fire=True, fallback_to_regular_hyper=False)
