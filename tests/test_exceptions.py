from __future__ import annotations

from modelgate.exceptions import (
    ActionNotAllowedError,
    DefinitionError,
    LifecycleError,
    ModelgateDbError,
    ModelgateError,
    RecordNotFoundError,
    ValidationError,
)


def test_all_domain_errors_share_base() -> None:
    for cls in (
        DefinitionError,
        ValidationError,
        LifecycleError,
        ActionNotAllowedError,
        RecordNotFoundError,
        ModelgateDbError,
    ):
        assert issubclass(cls, ModelgateError)


def test_validation_error_carries_field() -> None:
    e = ValidationError("id", "reserved")
    assert e.field == "id"
    assert e.message == "reserved"
    assert str(e) == "id: reserved"

    assert str(ValidationError(None, "schema broken")) == "schema broken"


def test_action_not_allowed_error_fields() -> None:
    e = ActionNotAllowedError("user", "delete")
    assert e.model == "user"
    assert e.action == "delete"
    assert "'delete'" in str(e) and "'user'" in str(e)


def test_record_not_found_error_fields() -> None:
    e = RecordNotFoundError("user", 42)
    assert e.record_id == 42
    assert str(e) == "user record 42 not found"
