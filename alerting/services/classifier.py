"""
alerting/services/classifier.py

Threshold classification of a single glucose value.
Rules are evaluated in priority order; the first enabled, matching rule wins.
A persistent-hyperglycemia verdict is only a candidate: the window tracker
decides whether it fires.
"""

from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from alerting.exceptions import RuleConflictError
from alerting.schemas import AlertKind, AlertSettings, AlertSeverity, Verdict

logger = structlog.get_logger(__name__)

_LOW = "low"
_HIGH = "high"


@dataclass(frozen=True)
class Rule:
    """One predicate → verdict pair in the classification chain."""

    kind: AlertKind
    severity: AlertSeverity
    direction: str
    enabled: Callable[[AlertSettings], bool]
    matches: Callable[[float, AlertSettings], bool]
    message: Callable[[float, AlertSettings], str]

    def verdict(self, value: float, settings: AlertSettings) -> Verdict:
        return Verdict(
            kind=self.kind,
            severity=self.severity,
            message=self.message(value, settings),
        )


def _fmt(value: float) -> str:
    return f"{value:g}"


SEVERE_HYPOGLYCEMIA_RULE = Rule(
    kind=AlertKind.SEVERE_HYPOGLYCEMIA,
    severity=AlertSeverity.CRITICAL,
    direction=_LOW,
    enabled=lambda s: s.severe_hypoglycemia_enabled,
    matches=lambda v, s: v < s.severe_hypoglycemia_threshold,
    message=lambda v, s: (
        f"Severe hypoglycemia: glucose at {_fmt(v)} mg/dL "
        f"(< {s.severe_hypoglycemia_threshold} mg/dL). Requires immediate attention."
    ),
)

HYPOGLYCEMIA_RULE = Rule(
    kind=AlertKind.HYPOGLYCEMIA,
    severity=AlertSeverity.HIGH,
    direction=_LOW,
    enabled=lambda s: s.hypoglycemia_enabled,
    matches=lambda v, s: (
        s.severe_hypoglycemia_threshold <= v < s.hypoglycemia_threshold
    ),
    message=lambda v, s: (
        f"Hypoglycemia: glucose at {_fmt(v)} mg/dL "
        f"(between {s.severe_hypoglycemia_threshold} and "
        f"{s.hypoglycemia_threshold} mg/dL)."
    ),
)

PERSISTENT_HYPERGLYCEMIA_RULE = Rule(
    kind=AlertKind.PERSISTENT_HYPERGLYCEMIA,
    severity=AlertSeverity.HIGH,
    direction=_HIGH,
    enabled=lambda s: s.persistent_hyperglycemia_enabled,
    matches=lambda v, s: v > s.persistent_hyperglycemia_threshold,
    message=lambda v, s: (
        f"Persistent hyperglycemia: glucose at {_fmt(v)} mg/dL with at least "
        f"{s.persistent_hyperglycemia_min_readings} readings above "
        f"{s.persistent_hyperglycemia_threshold} mg/dL in the last "
        f"{s.persistent_hyperglycemia_window_hours} hours. Review medication."
    ),
)

HYPERGLYCEMIA_RULE = Rule(
    kind=AlertKind.HYPERGLYCEMIA,
    severity=AlertSeverity.MEDIUM,
    direction=_HIGH,
    enabled=lambda s: s.hyperglycemia_enabled,
    matches=lambda v, s: v > s.hyperglycemia_threshold,
    message=lambda v, s: (
        f"Hyperglycemia: glucose at {_fmt(v)} mg/dL "
        f"(> {s.hyperglycemia_threshold} mg/dL)."
    ),
)

# Priority order matters: earlier rules shadow later ones.
RULES: tuple[Rule, ...] = (
    SEVERE_HYPOGLYCEMIA_RULE,
    HYPOGLYCEMIA_RULE,
    PERSISTENT_HYPERGLYCEMIA_RULE,
    HYPERGLYCEMIA_RULE,
)


def matching_rules(value: float, settings: AlertSettings) -> list[Rule]:
    """Return every enabled rule whose predicate holds, in priority order."""
    return [
        rule for rule in RULES if rule.enabled(settings) and rule.matches(value, settings)
    ]


def classify(value: float, settings: AlertSettings) -> Optional[Verdict]:
    """
    Map a glucose value to at most one verdict.

    Returns None when alerts are globally disabled or no enabled rule matches.
    Raises RuleConflictError if a low rule and a high rule match together,
    which valid settings make impossible.
    """
    if not settings.alerts_enabled:
        return None

    matched = matching_rules(value, settings)
    if not matched:
        return None

    directions = {rule.direction for rule in matched}
    if len(directions) > 1:
        logger.error(
            "classification_rule_conflict",
            user_id=settings.user_id,
            glucose=value,
            rules=[rule.kind.value for rule in matched],
        )
        raise RuleConflictError(
            f"value {value} matched conflicting rules: "
            + ", ".join(rule.kind.value for rule in matched)
        )

    return matched[0].verdict(value, settings)


def regular_hyperglycemia(value: float, settings: AlertSettings) -> Optional[Verdict]:
    """Evaluate only the ordinary hyperglycemia rule (persistent fallback path)."""
    if HYPERGLYCEMIA_RULE.enabled(settings) and HYPERGLYCEMIA_RULE.matches(
        value, settings
    ):
        return HYPERGLYCEMIA_RULE.verdict(value, settings)
    return None
