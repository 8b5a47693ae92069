"""
alerting/constants.py

Clinical defaults and validation bounds used by the alert engine.
All clinical numeric values must be referenced from this module.
"""

# ── Default thresholds (mg/dL) ───────────────────────────────
DEFAULT_SEVERE_HYPOGLYCEMIA_THRESHOLD: int = 54
DEFAULT_HYPOGLYCEMIA_THRESHOLD: int = 70
DEFAULT_HYPERGLYCEMIA_THRESHOLD: int = 250
DEFAULT_PERSISTENT_HYPERGLYCEMIA_THRESHOLD: int = 250

# ── Default persistent-condition window ──────────────────────
DEFAULT_PERSISTENT_WINDOW_HOURS: int = 4
DEFAULT_PERSISTENT_MIN_READINGS: int = 2

# ── Settings bounds (inclusive) ──────────────────────────────
SEVERE_HYPOGLYCEMIA_BOUNDS: tuple[int, int] = (30, 60)
HYPOGLYCEMIA_BOUNDS: tuple[int, int] = (40, 80)
HYPERGLYCEMIA_BOUNDS: tuple[int, int] = (180, 400)
PERSISTENT_HYPERGLYCEMIA_BOUNDS: tuple[int, int] = (180, 400)
PERSISTENT_WINDOW_HOURS_BOUNDS: tuple[int, int] = (2, 24)
PERSISTENT_MIN_READINGS_BOUNDS: tuple[int, int] = (2, 10)

# ── Accepted glucose sample range (mg/dL) ────────────────────
GLUCOSE_SAMPLE_MIN: float = 20.0
GLUCOSE_SAMPLE_MAX: float = 600.0

# ── Time-of-day format ───────────────────────────────────────
HHMM_PATTERN: str = r"^([01]\d|2[0-3]):[0-5]\d$"
DEFAULT_DAILY_SUMMARY_TIME: str = "08:00"

# ── Timezone fallback ────────────────────────────────────────
FALLBACK_TIMEZONE: str = "UTC"

# ── Reading source names ─────────────────────────────────────
GLUCOSE_ENTRIES_SOURCE: str = "glucose_entries"
GLUCOSE_READINGS_SOURCE: str = "glucose_readings"
