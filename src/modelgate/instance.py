from __future__ import annotations

"""A single data record bound to a Model."""

import copy
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Mapping, Optional

from .events import Emitter, Handler
from .exceptions import ValidationError

if TYPE_CHECKING:
    from .model import Model


class Instance:
    """
    One record of a Model.

    Lifecycle flags:
      - `dirty`   True once a field was set since the record was last persisted.
                  Only a successful Model.save() clears it.
      - `deleted` True once Model.delete() succeeded. A deleted Instance can no
                  longer be saved or deleted.

    Both flags are read-only for callers.
    """

    __slots__ = ("_model", "_id", "_values", "_dirty", "_deleted", "_events")

    def __init__(
        self,
        model: "Model",
        values: Optional[Mapping[str, Any]] = None,
        *,
        record_id: Any = None,
    ) -> None:
        self._model = model
        self._id = record_id
        self._values: Dict[str, Any] = {}
        self._dirty = False
        self._deleted = False
        self._events = Emitter()

        raw = dict(values or {})
        if self._id is None and "id" in raw:
            self._id = raw.pop("id")
        else:
            raw.pop("id", None)

        for name, spec in model.fields.items():
            if name not in raw and spec.default is not None:
                self._values[name] = copy.deepcopy(spec.default)
        self._values.update(raw)

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    @property
    def model(self) -> "Model":
        return self._model

    @property
    def id(self) -> Any:
        return self._id

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def deleted(self) -> bool:
        return self._deleted

    def _mark_saved(self) -> None:
        self._dirty = False

    def _mark_deleted(self) -> None:
        self._deleted = True

    # ------------------------------------------------------------------ #
    # Field access
    # ------------------------------------------------------------------ #

    def _mapper(self, name: str, kind: str) -> Any:
        override = self._model.mappings.get(name)
        if override and override.get(kind):
            return override[kind]
        spec = self._model.fields.get(name)
        if spec is None:
            return None
        return spec.getter if kind == "get" else spec.setter

    def get(self, name: str, default: Any = None) -> Any:
        value = self._values.get(name, default)
        getter = self._mapper(name, "get")
        if getter is not None:
            return getter(value, name, self)
        return value

    def set(self, name: str, value: Any) -> "Instance":
        spec = self._model.fields.get(name)
        if spec is None:
            raise KeyError(f"{self._model.name} has no field {name!r}")
        if spec.readonly:
            raise ValidationError(name, "field is readonly")
        setter = self._mapper(name, "set")
        if setter is not None:
            value = setter(value, name, self)
        self._values[name] = value
        self._dirty = True
        return self

    def __getitem__(self, name: str) -> Any:
        if name == "id":
            return self._id
        spec = self._model.fields.get(name)
        if name not in self._values and (spec is None or not spec.custom):
            raise KeyError(name)
        return self.get(name)

    def __setitem__(self, name: str, value: Any) -> None:
        self.set(name, value)

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def values(self) -> Dict[str, Any]:
        """Raw stored values, without mapping functions applied and without `id`."""
        return dict(self._values)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"id": self._id} if self._id is not None else {}
        for name in self._values:
            out[name] = self.get(name)
        return out

    def __repr__(self) -> str:
        flags = []
        if self._dirty:
            flags.append("dirty")
        if self._deleted:
            flags.append("deleted")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        return f"<{self._model.name} id={self._id!r} {self._values!r}{suffix}>"

    # ------------------------------------------------------------------ #
    # Events
    # ------------------------------------------------------------------ #

    def subscribe(self, event: str, handler: Handler) -> Handler:
        return self._events.subscribe(event, handler)

    def once(self, event: str, handler: Handler) -> Handler:
        return self._events.once(event, handler)

    def publish(self, event: str, *args: Any) -> bool:
        return self._events.publish(event, *args)

    def unsubscribe(self, event: str, handler: Handler) -> bool:
        return self._events.unsubscribe(event, handler)

    def unsubscribe_all(self, event: Optional[str] = None) -> None:
        self._events.unsubscribe_all(event)

    def listeners(self, event: str) -> List[Handler]:
        return self._events.listeners(event)
