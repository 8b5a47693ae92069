"""
alerting/services/settings_service.py

Reads and mutates per-patient alert settings through a SettingsStore.
Every mutation passes through settings_validator before anything is saved.
"""

from typing import Sequence

import structlog

from alerting.collaborators import SettingsStore
from alerting.exceptions import SettingsValidationError
from alerting.schemas import AlertSettings, AlertSettingsUpdate
from alerting.services.settings_validator import validate_settings_update

logger = structlog.get_logger(__name__)


class AlertSettingsService:
    """Get-or-create, update and bulk-apply alert settings."""

    def __init__(self, store: SettingsStore) -> None:
        self._store = store

    async def get_settings(self, user_id: str) -> AlertSettings:
        """Return stored settings, creating defaults on first access."""
        return await self._store.get_or_create(user_id)

    async def update_settings(
        self, user_id: str, update: AlertSettingsUpdate
    ) -> AlertSettings:
        """
        Apply a partial update for one patient.

        Raises SettingsValidationError without touching storage if the
        effective settings would be invalid.
        """
        current = await self._store.get_or_create(user_id)
        try:
            merged = validate_settings_update(current, update)
        except SettingsValidationError as exc:
            logger.warning(
                "settings_update_rejected",
                user_id=user_id,
                fields=exc.fields,
                error=str(exc),
            )
            raise

        stored = await self._store.save(merged)
        logger.info(
            "settings_updated",
            user_id=user_id,
            fields=sorted(update.provided()),
        )
        return stored

    async def apply_settings_to_patients(
        self, user_ids: Sequence[str], update: AlertSettingsUpdate
    ) -> list[AlertSettings]:
        """
        Apply the same partial update to every managed patient.

        All patients are validated before any are saved, so one invalid
        combination leaves every patient's settings unchanged.
        """
        merged_by_user: list[AlertSettings] = []
        for user_id in dict.fromkeys(user_ids):
            current = await self._store.get_or_create(user_id)
            try:
                merged_by_user.append(validate_settings_update(current, update))
            except SettingsValidationError as exc:
                logger.warning(
                    "bulk_settings_update_rejected",
                    user_id=user_id,
                    patient_count=len(user_ids),
                    fields=exc.fields,
                    error=str(exc),
                )
                raise

        stored = [await self._store.save(merged) for merged in merged_by_user]
        logger.info(
            "bulk_settings_updated",
            patient_count=len(stored),
            fields=sorted(update.provided()),
        )
        return stored
