"""
alerting/exceptions.py

Errors raised by the alert engine.
- SettingsValidationError: a settings mutation was rejected (caller-visible)
- RuleConflictError: classification matched rules of opposite direction (programming error)
"""


class SettingsValidationError(ValueError):
    """Raised when a settings mutation violates a bound or the threshold ordering."""

    def __init__(self, message: str, fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.fields = fields or []


class RuleConflictError(AssertionError):
    """Raised when a low-glucose rule and a high-glucose rule match the same value."""
