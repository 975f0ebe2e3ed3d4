from __future__ import annotations

"""Named registry of Models that publishes a `register` event on additions."""

import logging
from typing import Any, Dict, Iterator, List, Optional

from .events import Emitter, Handler
from .exceptions import DefinitionError
from .model import Model

logger = logging.getLogger(__name__)


class ModelRegistry:
    """
    Process- or application-owned set of Models keyed by name.

    Subscribers of `register` are called with the Model after it was added.
    The Model itself also publishes `register` with the registry.
    `clear()` is the teardown: it drops all models and all subscribers.
    """

    def __init__(self) -> None:
        self._models: Dict[str, Model] = {}
        self._events = Emitter()

    def add(self, model: Model, *, replace: bool = False) -> Model:
        if not isinstance(model, Model):
            raise DefinitionError(f"can only register Model objects, got {type(model)!r}")
        if model.name in self._models and not replace:
            raise DefinitionError(f"model {model.name!r} is already registered")
        self._models[model.name] = model
        logger.info("Registered model %r (fields=%s)", model.name, list(model.fields))
        self._events.publish("register", model)
        model.publish("register", self)
        return model

    def get(self, name: str) -> Model:
        try:
            return self._models[name]
        except KeyError:
            raise KeyError(f"model {name!r} is not registered") from None

    def remove(self, name: str) -> Optional[Model]:
        return self._models.pop(name, None)

    def names(self) -> List[str]:
        return list(self._models)

    def clear(self) -> None:
        self._models.clear()
        self._events.unsubscribe_all()

    def __contains__(self, name: object) -> bool:
        return name in self._models

    def __len__(self) -> int:
        return len(self._models)

    def __iter__(self) -> Iterator[Model]:
        return iter(list(self._models.values()))

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
