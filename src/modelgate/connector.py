from __future__ import annotations

"""Connector protocol: the data-source capability a Model delegates to."""

from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Protocol

from .instance import Instance

if TYPE_CHECKING:
    from .model import Model

# Error-first completion: callback(error, result). Called exactly once.
Callback = Callable[[Optional[BaseException], Any], Any]


class Connector(Protocol):
    """
    Protocol for data-source connectors.

    Every operation except `create_request` completes by invoking `callback`
    exactly once, with an error or None as first argument. Domain errors are
    reported through the callback; connectors should not raise them.
    """

    def create(self, model: "Model", values: Mapping[str, Any], callback: Callback) -> None:
        """Persist one record; result is the created Instance."""

    def save(self, model: "Model", instance: Any, callback: Callback) -> None:
        """Persist mutations; result is the updated Instance or None."""

    def delete(self, model: "Model", instance: Any, callback: Callback) -> None:
        """Remove one record; a truthy result signals success."""

    def delete_all(self, model: "Model", callback: Callback) -> None:
        """Remove all records of `model`."""

    def find_one(self, model: "Model", record_id: Any, callback: Callback) -> None:
        """Fetch by primary key; result is an Instance or None."""

    def find_all(self, model: "Model", callback: Callback) -> None:
        """Fetch every record; result is a Collection."""

    def find(self, model: "Model", constraints: Mapping[str, Any], callback: Callback) -> None:
        """Fetch records matching `constraints`; result is a Collection."""

    def create_request(self, request: Any) -> "Connector":
        """Return a request-scoped connector bound to `request`."""


def record_payload(record: Instance | Mapping[str, Any]) -> dict[str, Any]:
    """Raw values of an Instance or mapping, without `id`."""
    if isinstance(record, Instance):
        return record.values()
    return {k: v for k, v in dict(record).items() if k != "id"}


def record_id(record: Any) -> Any:
    if isinstance(record, Instance):
        return record.id
    if isinstance(record, Mapping):
        return record.get("id")
    return record
