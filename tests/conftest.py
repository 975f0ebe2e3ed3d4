"""
Shared fakes for Model tests.

RecordingConnector records every call it receives so tests can assert which
connector operation a Model dispatched to, how often, and with what. In
deferred mode completions are queued instead of run, so tests can step
through asynchronous completion one callback at a time.
"""
from __future__ import annotations

from typing import Any, Callable, List, Optional

import pytest

from modelgate import Collection, Instance, Model
from modelgate.config import clear_settings_cache


class ConnectorFailure(Exception):
    """Opaque error reported by the fake connector."""


class RecordingConnector:
    def __init__(
        self,
        *,
        fail_create_at: Optional[int] = None,
        raise_on_create: Optional[BaseException] = None,
        deferred: bool = False,
        delete_result: Any = "instance",
        save_error: Optional[BaseException] = None,
        login: Any = None,
    ) -> None:
        self.fail_create_at = fail_create_at
        self.raise_on_create = raise_on_create
        self.deferred = deferred
        self.delete_result = delete_result
        self.save_error = save_error
        self.login = login
        self.request: Any = None

        self.calls: List[tuple[str, tuple[Any, ...]]] = []
        self.pending: List[Callable[[], Any]] = []

    # -- helpers --------------------------------------------------------

    def _complete(self, fn: Callable[[], Any]) -> None:
        if self.deferred:
            self.pending.append(fn)
        else:
            fn()

    def step(self) -> None:
        self.pending.pop(0)()

    def flush(self) -> None:
        while self.pending:
            self.step()

    def methods(self) -> List[str]:
        return [name for name, _ in self.calls]

    def count(self, method: str) -> int:
        return self.methods().count(method)

    # -- connector protocol ---------------------------------------------

    def create(self, model: Model, values: Any, callback: Callable[..., Any]) -> None:
        index = self.count("create")
        self.calls.append(("create", (values,)))
        if self.raise_on_create is not None:
            raise self.raise_on_create
        if self.fail_create_at == index:
            err = ConnectorFailure(f"create #{index} failed")
            self._complete(lambda: callback(err, None))
            return
        instance = Instance(model, values, record_id=index + 1)
        self._complete(lambda: callback(None, instance))

    def save(self, model: Model, instance: Any, callback: Callable[..., Any]) -> None:
        self.calls.append(("save", (instance,)))
        if self.save_error is not None:
            err = self.save_error
            self._complete(lambda: callback(err, None))
            return
        result = instance if isinstance(instance, Instance) else Instance(model, instance)
        self._complete(lambda: callback(None, result))

    def delete(self, model: Model, instance: Any, callback: Callable[..., Any]) -> None:
        self.calls.append(("delete", (instance,)))
        result = instance if self.delete_result == "instance" else self.delete_result
        self._complete(lambda: callback(None, result))

    def delete_all(self, model: Model, callback: Callable[..., Any]) -> None:
        self.calls.append(("delete_all", ()))
        self._complete(lambda: callback(None, 0))

    def find_one(self, model: Model, record_id: Any, callback: Callable[..., Any]) -> None:
        self.calls.append(("find_one", (record_id,)))
        self._complete(lambda: callback(None, None))

    def find_all(self, model: Model, callback: Callable[..., Any]) -> None:
        self.calls.append(("find_all", ()))
        self._complete(lambda: callback(None, Collection(model, [])))

    def find(self, model: Model, constraints: Any, callback: Callable[..., Any]) -> None:
        self.calls.append(("find", (constraints,)))
        self._complete(lambda: callback(None, Collection(model, [])))

    def create_request(self, request: Any) -> "RecordingConnector":
        self.calls.append(("create_request", (request,)))
        child = RecordingConnector(login=request.get("login"))
        child.request = request
        return child


class Capture:
    """Error-first callback that records its invocations."""

    def __init__(self) -> None:
        self.calls: List[tuple[Any, Any]] = []

    def __call__(self, err: Any = None, result: Any = None) -> None:
        self.calls.append((err, result))

    @property
    def called(self) -> bool:
        return bool(self.calls)

    @property
    def err(self) -> Any:
        assert len(self.calls) == 1, f"expected exactly one callback, got {self.calls!r}"
        return self.calls[0][0]

    @property
    def result(self) -> Any:
        assert len(self.calls) == 1, f"expected exactly one callback, got {self.calls!r}"
        return self.calls[0][1]


@pytest.fixture
def make_connector() -> Callable[..., RecordingConnector]:
    return RecordingConnector


@pytest.fixture
def connector() -> RecordingConnector:
    return RecordingConnector()


@pytest.fixture
def user_model(connector: RecordingConnector) -> Model:
    return Model.define(
        "user",
        {
            "fields": {
                "name": {"type": "string", "required": True},
                "email": {"type": str},
                "status": {"type": "string", "default": "active"},
            },
            "connector": connector,
        },
    )


@pytest.fixture
def capture() -> Capture:
    return Capture()


@pytest.fixture
def make_capture() -> Callable[[], Capture]:
    return Capture


@pytest.fixture(autouse=True)
def _fresh_settings():
    clear_settings_cache()
    yield
    clear_settings_cache()
