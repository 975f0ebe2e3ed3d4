# src/modelgate/model.py

from __future__ import annotations

"""
Model: schema-bearing orchestrator between application code and a Connector.

Every operation follows the same flow:

    application -> Model (validate / dispatch) -> Connector (async)
                -> callback -> Model (update Instance flags, publish event)
                -> application callback

Operations complete through error-first callbacks `callback(error, result)`.
Definition problems are raised at construction time; everything else
(lifecycle errors, connector errors) is delivered through the callback.
"""

import logging
from functools import partial
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from .collection import Collection
from .connector import Callback, Connector
from .events import Emitter, Handler
from .exceptions import ActionNotAllowedError, DefinitionError, LifecycleError, ModelgateError
from .fields import FieldSpec, merge_fields, normalize_fields, to_field_spec
from .instance import Instance
from .query import All, ByConstraints, ById, QueryRequest, query_from_value

logger = logging.getLogger(__name__)

ACTIONS = ("create", "read", "update", "delete")

# Definition keys other than `fields` and `connector`.
OPTION_KEYS = ("metadata", "actions", "plural", "singular", "autogen", "mappings")


def _noop(err: Optional[BaseException] = None, result: Any = None) -> None:
    return None


class _hybridmethod:
    """Method that dispatches to `fclass` on the class and to `finstance` on instances."""

    def __init__(self, fclass: Callable[..., Any], finstance: Callable[..., Any]) -> None:
        self.fclass = fclass
        self.finstance = finstance
        self.__doc__ = finstance.__doc__

    def __get__(self, obj: Any, objtype: Optional[type] = None) -> Callable[..., Any]:
        if obj is None:
            return self.fclass.__get__(objtype, objtype)
        return self.finstance.__get__(obj, objtype)


class Model:
    """
    A named schema bound to a Connector.

    Parameters
    ----------
    name:
        Model name, unique per registry.
    definition:
        Mapping with at least `fields` and `connector`. Optional keys:
        `metadata`, `actions`, `plural`, `singular`, `autogen`, `mappings`.
    skip_validation:
        Do not require a definition, fields or connector. Used for derived
        and request-scoped models.
    """

    def __init__(
        self,
        name: str,
        definition: Optional[Mapping[str, Any]] = None,
        skip_validation: bool = False,
    ) -> None:
        self.name = name
        definition = dict(definition) if definition is not None else None
        raw_fields = definition.get("fields") if definition else None
        connector = definition.get("connector") if definition else None

        if not skip_validation:
            if definition is None:
                raise DefinitionError(f"model {name!r}: missing required definition")
            if connector is None:
                raise DefinitionError(f"model {name!r}: missing required connector")
            if not raw_fields:
                raise DefinitionError(f"model {name!r}: missing required fields")

        self.fields: Dict[str, FieldSpec] = normalize_fields(raw_fields)
        self.connector: Optional[Connector] = connector
        self.options: Dict[str, Any] = {k: definition[k] for k in OPTION_KEYS if definition and k in definition}
        self.login: Any = None
        self._events = Emitter()
        self._apply_options()

    def _apply_options(self) -> None:
        opts = self.options
        self.metadata: Dict[str, Any] = dict(opts.get("metadata") or {})
        self.mappings: Dict[str, Mapping[str, Any]] = dict(opts.get("mappings") or {})
        self.autogen: bool = bool(opts.get("autogen", True))
        self.singular: str = opts.get("singular") or self.name
        self.plural: str = opts.get("plural") or f"{self.singular}s"

        actions = opts.get("actions")
        if actions is None:
            self.actions: tuple[str, ...] = ACTIONS
        else:
            unknown = [a for a in actions if a not in ACTIONS]
            if unknown:
                raise DefinitionError(f"model {self.name!r}: unknown actions {unknown!r}; valid are {ACTIONS!r}")
            self.actions = tuple(a for a in ACTIONS if a in actions)

    @classmethod
    def _derive(
        cls,
        name: str,
        fields: Mapping[str, FieldSpec],
        connector: Optional[Connector],
        options: Mapping[str, Any],
    ) -> "Model":
        model = cls(name, None, skip_validation=True)
        model.fields = dict(fields)
        model.connector = connector
        model.options = dict(options)
        model._apply_options()
        return model

    def __repr__(self) -> str:
        return f"Model(name={self.name!r}, fields={list(self.fields)!r})"

    # ------------------------------------------------------------------ #
    # Construction
    # ------------------------------------------------------------------ #

    @classmethod
    def define(cls, name: str, definition: Optional[Mapping[str, Any]] = None) -> "Model":
        """Build a new, fully validated Model."""
        return cls(name, definition)

    def _extend(self, name: "str | Model", definition: Optional[Mapping[str, Any]] = None) -> "Model":
        """
        Return a new Model with this schema merged with another.

        `name` is either a Model, or a model name accompanied by a
        definition. Fields merge one by one and the argument's descriptors
        win on conflict. The argument's connector is used when it has one.
        This Model is left untouched.
        """
        if isinstance(name, Model):
            other = name
        elif isinstance(name, str):
            other = Model(name, definition, skip_validation=True)
        else:
            raise DefinitionError(
                "invalid argument passed to extend. Must either be a model class or model definition"
            )

        options = {**self.options, **other.options}
        for key in ("metadata", "mappings"):
            if key in self.options or key in other.options:
                options[key] = {**(self.options.get(key) or {}), **(other.options.get(key) or {})}

        merged = Model._derive(
            other.name,
            merge_fields(self.fields, other.fields),
            other.connector if other.connector is not None else self.connector,
            options,
        )
        logger.debug("Extended model %r with %r -> fields=%s", self.name, other.name, list(merged.fields))
        return merged

    extend = _hybridmethod(define, _extend)

    def reduce(self, name: str, definition: Mapping[str, Any]) -> "Model":
        """
        Return a new Model restricted to the fields named in `definition["fields"]`.

        `fields` may be a list of names or a mapping of name to a partial
        descriptor that is overlaid on this Model's descriptor.
        """
        requested = definition.get("fields")
        if not requested:
            raise DefinitionError(f"reduce {name!r}: missing required fields")
        if isinstance(requested, Mapping):
            items: Iterable[tuple[str, Any]] = requested.items()
        else:
            items = ((f, None) for f in requested)

        fields: Dict[str, FieldSpec] = {}
        for field, overlay in items:
            if field not in self.fields:
                raise DefinitionError(f"reduce {name!r}: model {self.name!r} has no field {field!r}")
            base = self.fields[field]
            if overlay:
                spec = to_field_spec(field, overlay)
                base = base.model_copy(update={k: getattr(spec, k) for k in spec.model_fields_set})
            fields[field] = base

        options = {**self.options, **{k: definition[k] for k in OPTION_KEYS if k in definition}}
        connector = definition.get("connector") or self.connector
        return Model._derive(name, normalize_fields(fields), connector, options)

    def create_request(self, request: Any) -> "Model":
        """
        Return a request-scoped Model.

        The clone shares this Model's fields but is bound to the connector
        returned by `self.connector.create_request(request)`. The request
        connector's `login` (authentication context) is exposed as
        `model.login`.
        """
        if self.connector is None:
            raise DefinitionError(f"model {self.name!r}: cannot create a request without a connector")
        connector = self.connector.create_request(request)
        model = Model._derive(self.name, self.fields, connector, self.options)
        model.login = getattr(connector, "login", None)
        return model

    def instance(self, values: Optional[Mapping[str, Any]] = None) -> Instance:
        return Instance(self, values)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _allowed(self, action: str, callback: Callback) -> bool:
        if action in self.actions:
            return True
        logger.warning("Rejected %s on model %r: action not allowed", action, self.name)
        callback(ActionNotAllowedError(self.name, action), None)
        return False

    # ------------------------------------------------------------------ #
    # Create
    # ------------------------------------------------------------------ #

    def create(self, values: Any = None, callback: Optional[Callback] = None) -> None:
        """
        Create one record from a mapping, or one record per element of a sequence.

        A sequence is created strictly one element after the other and stops
        at the first failure. On success the callback receives a Collection in
        input order. On failure it receives the error unchanged plus a
        Collection of the records created before the failing element.
        """
        if callable(values) and callback is None:
            callback, values = values, None
        callback = callback or _noop
        if values is None:
            values = {}

        if not self._allowed("create", callback):
            return

        if isinstance(values, Instance):
            values = values.values()
        if isinstance(values, Mapping):
            logger.debug("Creating %s record", self.name)
            try:
                self.connector.create(self, values, callback)
            except ModelgateError as e:
                logger.warning("Connector raised during %s create: %s", self.name, e)
                callback(e, None)
            return
        if isinstance(values, Sequence) and not isinstance(values, (str, bytes)):
            logger.debug("Creating %d %s records in series", len(values), self.name)
            _SeriesCreate(self, values, callback).start()
            return
        raise TypeError(f"create() expects a mapping or a sequence of mappings, got {type(values)!r}")

    # ------------------------------------------------------------------ #
    # Save / delete
    # ------------------------------------------------------------------ #

    def save(self, instance: Any, callback: Optional[Callback] = None) -> None:
        """
        Persist `instance`.

        Deleted Instances fail with LifecycleError. Clean tracked Instances
        complete with `(None, None)` without contacting the connector.
        """
        callback = callback or _noop
        if isinstance(instance, Instance) and instance.deleted:
            logger.warning("Rejected save of deleted %s record %r", self.name, instance.id)
            callback(LifecycleError("instance has already been deleted"), None)
            return
        if not self._allowed("update", callback):
            return

        if isinstance(instance, Instance) and not instance.dirty:
            callback(None, None)
            return

        def _saved(err: Optional[BaseException], result: Any = None) -> None:
            if err is not None:
                callback(err, None)
                return
            if isinstance(result, Instance):
                result._mark_saved()
                result.publish("save", result)
            callback(None, result)

        logger.debug("Saving %s record", self.name)
        self.connector.save(self, instance, _saved)

    update = save

    def delete(self, instance: Any, callback: Optional[Callback] = None) -> None:
        """
        Delete `instance`.

        A tracked Instance that is already deleted fails with LifecycleError
        without contacting the connector.
        """
        callback = callback or _noop
        if isinstance(instance, Instance) and instance.deleted:
            logger.warning("Rejected delete of deleted %s record %r", self.name, instance.id)
            callback(LifecycleError("instance has already been deleted"), None)
            return
        if not self._allowed("delete", callback):
            return

        def _deleted(err: Optional[BaseException], result: Any = None) -> None:
            if err is not None:
                callback(err, None)
                return
            if isinstance(result, Instance):
                target: Optional[Instance] = result
            elif result and isinstance(instance, Instance):
                target = instance
            else:
                target = None
            if target is not None:
                target._mark_deleted()
                target.publish("delete", target)
            callback(None, result)

        logger.debug("Deleting %s record", self.name)
        self.connector.delete(self, instance, _deleted)

    remove = delete

    def delete_all(self, callback: Optional[Callback] = None) -> None:
        """Delete every record. Instances already held by callers keep their flags."""
        callback = callback or _noop
        if not self._allowed("delete", callback):
            return
        self.connector.delete_all(self, callback)

    remove_all = delete_all

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def find_one(self, record_id: Any, callback: Optional[Callback] = None) -> None:
        callback = callback or _noop
        if self._allowed("read", callback):
            self.connector.find_one(self, record_id, callback)

    find_by_id = find_one

    def find_all(self, callback: Optional[Callback] = None) -> None:
        callback = callback or _noop
        if self._allowed("read", callback):
            self.connector.find_all(self, callback)

    def find_by_constraints(self, constraints: Mapping[str, Any], callback: Optional[Callback] = None) -> None:
        callback = callback or _noop
        if self._allowed("read", callback):
            self.connector.find(self, constraints, callback)

    def query(self, request: QueryRequest, callback: Optional[Callback] = None) -> None:
        """Dispatch a typed read request."""
        if isinstance(request, ById):
            self.find_one(request.id, callback)
        elif isinstance(request, ByConstraints):
            self.find_by_constraints(request.constraints, callback)
        elif isinstance(request, All):
            self.find_all(callback)
        else:
            raise TypeError(f"unsupported query request {request!r}")

    def find(self, value: Any = None, callback: Optional[Callback] = None) -> None:
        """
        Loosely typed read.

            find(callback)               -> find_all
            find({"k": v}, callback)     -> find_by_constraints
            find(record_id, callback)    -> find_one

        Prefer query() or the explicit entry points in new code.
        """
        if callable(value) and callback is None:
            self.find_all(value)
            return
        self.query(query_from_value(value), callback)

    fetch = find

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


class _SeriesCreate:
    """
    Run `connector.create` for each payload, strictly one after the other.

    Task i+1 starts only after task i's callback fired. Connectors that call
    back synchronously are driven by a loop instead of recursion.
    """

    def __init__(self, model: Model, payloads: Sequence[Any], callback: Callback) -> None:
        self._model = model
        self._payloads = list(payloads)
        self._callback = callback
        self._results: List[Any] = []
        self._next = 0
        self._looping = False
        self._resumed = False
        self._finished = False

    def start(self) -> None:
        self._loop()

    def _loop(self) -> None:
        self._looping = True
        try:
            while not self._finished:
                if self._next >= len(self._payloads):
                    self._finish(None)
                    return
                self._resumed = False
                self._run(self._next)
                if not self._resumed:
                    # pending; the connector's callback re-enters _loop()
                    return
        finally:
            self._looping = False

    def _run(self, index: int) -> None:
        payload = self._payloads[index]
        if isinstance(payload, Instance):
            payload = payload.values()
        try:
            self._model.connector.create(self._model, payload, partial(self._done, index))
        except ModelgateError as e:
            self._done(index, e, None)

    def _done(self, index: int, err: Optional[BaseException], result: Any = None) -> None:
        if self._finished or index != self._next:
            logger.warning("Ignoring repeated create callback for %s element %d", self._model.name, index)
            return
        self._next += 1
        if err is not None:
            logger.debug("Series create of %s stopped at element %d: %s", self._model.name, index, err)
            self._finish(err)
            return
        self._results.append(result)
        if self._looping:
            self._resumed = True
        else:
            self._loop()

    def _finish(self, err: Optional[BaseException]) -> None:
        self._finished = True
        self._callback(err, Collection(self._model, self._results))
