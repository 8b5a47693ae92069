"""
alerting/services/settings_validator.py

Validation applied to every alert settings mutation.
- per-field numeric bounds
- severe hypoglycemia threshold strictly below the hypoglycemia threshold,
  resolved against stored values for fields the update leaves out
- quiet hours need both bounds while enabled
Violations raise SettingsValidationError; nothing is clamped.
"""

from pydantic import ValidationError

from alerting.constants import (
    HYPERGLYCEMIA_BOUNDS,
    HYPOGLYCEMIA_BOUNDS,
    PERSISTENT_HYPERGLYCEMIA_BOUNDS,
    PERSISTENT_MIN_READINGS_BOUNDS,
    PERSISTENT_WINDOW_HOURS_BOUNDS,
    SEVERE_HYPOGLYCEMIA_BOUNDS,
)
from alerting.exceptions import SettingsValidationError
from alerting.schemas import AlertSettings, AlertSettingsUpdate

FIELD_BOUNDS: dict[str, tuple[int, int]] = {
    "severe_hypoglycemia_threshold": SEVERE_HYPOGLYCEMIA_BOUNDS,
    "hypoglycemia_threshold": HYPOGLYCEMIA_BOUNDS,
    "hyperglycemia_threshold": HYPERGLYCEMIA_BOUNDS,
    "persistent_hyperglycemia_threshold": PERSISTENT_HYPERGLYCEMIA_BOUNDS,
    "persistent_hyperglycemia_window_hours": PERSISTENT_WINDOW_HOURS_BOUNDS,
    "persistent_hyperglycemia_min_readings": PERSISTENT_MIN_READINGS_BOUNDS,
}


def check_bounds(values: dict) -> None:
    """Reject any bounded numeric field outside its inclusive range."""
    for field, (low, high) in FIELD_BOUNDS.items():
        if field not in values:
            continue
        value = values[field]
        if isinstance(value, bool) or not isinstance(value, int):
            raise SettingsValidationError(
                f"{field} must be an integer, got {value!r}", fields=[field]
            )
        if not low <= value <= high:
            raise SettingsValidationError(
                f"{field} must be between {low} and {high}, got {value}",
                fields=[field],
            )


def check_threshold_order(severe: int, hypo: int) -> None:
    """Severe hypoglycemia must sit strictly below hypoglycemia."""
    if severe >= hypo:
        raise SettingsValidationError(
            f"severe hypoglycemia threshold ({severe}) must be less than "
            f"hypoglycemia threshold ({hypo})",
            fields=["severe_hypoglycemia_threshold", "hypoglycemia_threshold"],
        )


def validate_settings_update(
    current: AlertSettings, update: AlertSettingsUpdate
) -> AlertSettings:
    """
    Validate `update` against `current` and return the merged settings.

    The returned object is what would be stored; `current` is not modified.
    """
    provided = update.provided()
    check_bounds(provided)

    severe = provided.get(
        "severe_hypoglycemia_threshold", current.severe_hypoglycemia_threshold
    )
    hypo = provided.get("hypoglycemia_threshold", current.hypoglycemia_threshold)
    check_threshold_order(severe, hypo)

    merged_values = {**current.model_dump(), **provided}
    if merged_values["quiet_hours_enabled"] and (
        not merged_values["quiet_hours_start"] or not merged_values["quiet_hours_end"]
    ):
        raise SettingsValidationError(
            "quiet_hours_start and quiet_hours_end are required when quiet hours "
            "are enabled",
            fields=["quiet_hours_start", "quiet_hours_end"],
        )

    try:
        return AlertSettings.model_validate(merged_values)
    except ValidationError as exc:
        fields = [".".join(str(part) for part in err["loc"]) for err in exc.errors()]
        raise SettingsValidationError(str(exc), fields=fields) from exc
