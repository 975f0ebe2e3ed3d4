from __future__ import annotations

"""In-process connector keeping records in dictionaries."""

import copy
import logging
import uuid
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from ..collection import Collection
from ..connector import Callback, record_id, record_payload
from ..exceptions import RecordNotFoundError, ValidationError
from ..instance import Instance

if TYPE_CHECKING:
    from ..model import Model

logger = logging.getLogger(__name__)

Store = Dict[str, Dict[Any, Dict[str, Any]]]


def request_login(request: Any) -> Any:
    """Authentication context carried by a request object or mapping, if any."""
    if request is None:
        return None
    if isinstance(request, Mapping):
        return request.get("login")
    return getattr(request, "login", None)


class MemoryConnector:
    """
    Connector backed by a dict per model name.

    Records are stored as deep copies of their raw values; every read hands
    out new Instance objects holding their own copies. Write operations that receive an Instance return that same
    Instance so the Model can update its flags.

    Request-scoped connectors share the store with their parent.
    """

    name = "memory"

    def __init__(self, *, store: Optional[Store] = None, request: Any = None, login: Any = None) -> None:
        self._store: Store = store if store is not None else {}
        self.request = request
        self.login = login

    def _table(self, model: "Model") -> Dict[Any, Dict[str, Any]]:
        return self._store.setdefault(model.name, {})

    @staticmethod
    def _missing_required(model: "Model", values: Mapping[str, Any]) -> Optional[str]:
        for name, spec in model.fields.items():
            if spec.required and values.get(name) is None:
                return name
        return None

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def create(self, model: "Model", values: Mapping[str, Any], callback: Callback) -> None:
        instance = Instance(model, record_payload(values), record_id=uuid.uuid4().hex)
        missing = self._missing_required(model, instance.values())
        if missing is not None:
            callback(ValidationError(missing, "field is required"), None)
            return
        self._table(model)[instance.id] = copy.deepcopy(instance.values())
        logger.debug("Created %s record %s", model.name, instance.id)
        callback(None, instance)

    def save(self, model: "Model", instance: Any, callback: Callback) -> None:
        table = self._table(model)
        rid = record_id(instance)
        if rid not in table:
            callback(RecordNotFoundError(model.name, rid), None)
            return
        payload = record_payload(instance)
        table[rid].update(copy.deepcopy(payload))
        if isinstance(instance, Instance):
            callback(None, instance)
        else:
            callback(None, Instance(model, copy.deepcopy(table[rid]), record_id=rid))

    def delete(self, model: "Model", instance: Any, callback: Callback) -> None:
        table = self._table(model)
        rid = record_id(instance)
        if rid not in table:
            callback(RecordNotFoundError(model.name, rid), None)
            return
        values = table.pop(rid)
        logger.debug("Deleted %s record %s", model.name, rid)
        if isinstance(instance, Instance):
            callback(None, instance)
        else:
            callback(None, Instance(model, copy.deepcopy(values), record_id=rid))

    def delete_all(self, model: "Model", callback: Callback) -> None:
        table = self._table(model)
        count = len(table)
        table.clear()
        callback(None, count)

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def find_one(self, model: "Model", record_id: Any, callback: Callback) -> None:
        values = self._table(model).get(record_id)
        if values is None:
            callback(None, None)
            return
        callback(None, Instance(model, copy.deepcopy(values), record_id=record_id))

    def find_all(self, model: "Model", callback: Callback) -> None:
        items = [Instance(model, copy.deepcopy(v), record_id=rid) for rid, v in self._table(model).items()]
        callback(None, Collection(model, items))

    def find(self, model: "Model", constraints: Mapping[str, Any], callback: Callback) -> None:
        items = []
        for rid, values in self._table(model).items():
            if all((rid if key == "id" else values.get(key)) == expected for key, expected in constraints.items()):
                items.append(Instance(model, copy.deepcopy(values), record_id=rid))
        callback(None, Collection(model, items))

    def create_request(self, request: Any) -> "MemoryConnector":
        return MemoryConnector(store=self._store, request=request, login=request_login(request))
