from __future__ import annotations

"""
Read requests understood by Model.query().

    ById(id)                 primary key lookup      -> connector.find_one
    ByConstraints(mapping)   key/value constraints   -> connector.find
    All()                    every record            -> connector.find_all
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Union


@dataclass(frozen=True, slots=True)
class ById:
    id: Any


@dataclass(frozen=True, slots=True)
class ByConstraints:
    constraints: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class All:
    pass


QueryRequest = Union[ById, ByConstraints, All]


def query_from_value(value: Any) -> QueryRequest:
    """
    Build a QueryRequest from the loosely typed argument of Model.find().

    A mapping means constraints and anything else is a primary key. Callables
    are handled by Model.find() itself since they are the callback.
    """
    if isinstance(value, (ById, ByConstraints, All)):
        return value
    if isinstance(value, Mapping):
        return ByConstraints(dict(value))
    return ById(value)
