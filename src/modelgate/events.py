from __future__ import annotations

"""Minimal synchronous publish/subscribe used by models, instances and collections."""

import logging
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]


class Emitter:
    """
    Synchronous event emitter.

    Entities own an Emitter and forward `subscribe`/`publish`/`unsubscribe`
    to it instead of inheriting emitter behaviour.

    Handlers run in subscription order on the publishing thread. A handler
    raising propagates to the publisher; remaining handlers are not called.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: Dict[str, List[Handler]] = {}

    def subscribe(self, event: str, handler: Handler) -> Handler:
        if not callable(handler):
            raise TypeError(f"handler for {event!r} must be callable, got {type(handler)!r}")
        self._handlers.setdefault(event, []).append(handler)
        return handler

    def once(self, event: str, handler: Handler) -> Handler:
        """Subscribe `handler` for a single delivery of `event`."""

        def _once(*args: Any) -> Any:
            self.unsubscribe(event, _once)
            return handler(*args)

        return self.subscribe(event, _once)

    def publish(self, event: str, *args: Any) -> bool:
        """Call every handler of `event`. Returns True when at least one handler ran."""
        handlers = list(self._handlers.get(event, ()))
        if not handlers:
            return False
        logger.debug("Publishing %r to %d handler(s)", event, len(handlers))
        for handler in handlers:
            handler(*args)
        return True

    def unsubscribe(self, event: str, handler: Handler) -> bool:
        handlers = self._handlers.get(event)
        if not handlers:
            return False
        try:
            handlers.remove(handler)
        except ValueError:
            return False
        if not handlers:
            del self._handlers[event]
        return True

    def unsubscribe_all(self, event: Optional[str] = None) -> None:
        if event is None:
            self._handlers.clear()
        else:
            self._handlers.pop(event, None)

    def listeners(self, event: str) -> List[Handler]:
        return list(self._handlers.get(event, ()))
