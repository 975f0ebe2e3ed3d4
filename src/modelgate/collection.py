from __future__ import annotations

"""Ordered, event-capable container of Instances."""

from typing import TYPE_CHECKING, Any, Iterable, Iterator, List, Optional, Sequence, overload

from .events import Emitter, Handler
from .instance import Instance

if TYPE_CHECKING:
    from .model import Model


class Collection(Sequence[Instance]):
    """
    Result of a multi-record operation.

    Behaves like a read-only sequence over its Instances (in creation/result
    order) and owns an Emitter so callers can observe it.

    The only structural mutation is truncation through `length`:

        c = Collection(model, [a, b, c])
        c.length = 1      # c now holds [a]; b and c are dropped
        c.length = 0      # empties the collection

    `repr()`, `str()` and `to_json()` render the underlying list, not the
    container.
    """

    __slots__ = ("_model", "_items", "_events")

    def __init__(self, model: Optional["Model"], items: Optional[Iterable[Instance]] = None) -> None:
        self._model = model
        self._items: List[Instance] = list(items or ())
        self._events = Emitter()

    @property
    def model(self) -> Optional["Model"]:
        return self._model

    # ------------------------------------------------------------------ #
    # Sequence protocol
    # ------------------------------------------------------------------ #

    @overload
    def __getitem__(self, index: int) -> Instance: ...

    @overload
    def __getitem__(self, index: slice) -> List[Instance]: ...

    def __getitem__(self, index: int | slice) -> Instance | List[Instance]:
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Instance]:
        return iter(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Collection):
            return self._items == other._items
        if isinstance(other, (list, tuple)):
            return self._items == list(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    # ------------------------------------------------------------------ #
    # Length / truncation
    # ------------------------------------------------------------------ #

    @property
    def length(self) -> int:
        return len(self._items)

    @length.setter
    def length(self, value: Optional[int]) -> None:
        self.truncate(value)

    def truncate(self, length: Optional[int] = 0) -> "Collection":
        """Drop every element at index >= `length`. `None`/0 clears the collection."""
        n = int(length or 0)
        if n < 0:
            raise ValueError(f"length must be >= 0, got {n}")
        del self._items[n:]
        return self

    # ------------------------------------------------------------------ #
    # Serialization
    # ------------------------------------------------------------------ #

    def to_list(self) -> List[Instance]:
        return list(self._items)

    def to_json(self) -> List[Any]:
        return [item.to_dict() if isinstance(item, Instance) else item for item in self._items]

    def __repr__(self) -> str:
        return repr(self._items)

    def __str__(self) -> str:
        return str(self._items)

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
