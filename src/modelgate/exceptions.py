from __future__ import annotations

from typing import Optional


class ModelgateError(Exception):
    """Base class for domain errors raised or reported by modelgate."""
    pass


class DefinitionError(ModelgateError):
    """Raised when a Model is constructed from a missing or incomplete definition."""
    pass


class ValidationError(ModelgateError):
    """
    Schema or field level validation failure.

    `field` names the offending field so callers can report it without
    parsing the message.
    """

    def __init__(self, field: Optional[str], message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message

    def __str__(self) -> str:
        if self.field is None:
            return self.message
        return f"{self.field}: {self.message}"


class LifecycleError(ModelgateError):
    """Reported (never raised) when an operation targets an already deleted Instance."""
    pass


class ActionNotAllowedError(ModelgateError):
    """Reported when a Model does not permit the requested action."""

    def __init__(self, model: str, action: str) -> None:
        super().__init__(f"action {action!r} is not allowed on model {model!r}")
        self.model = model
        self.action = action


class RecordNotFoundError(ModelgateError):
    """Reported by connectors when a record id does not exist."""

    def __init__(self, model: str, record_id: object) -> None:
        super().__init__(f"{model} record {record_id!r} not found")
        self.model = model
        self.record_id = record_id


class ModelgateDbError(ModelgateError):
    """Database level failure in the SQL connector."""
    pass
