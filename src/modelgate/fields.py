# src/modelgate/fields.py

from __future__ import annotations

"""
Field descriptors for Model schemas.

A schema is a mapping from field name to FieldSpec. Definitions may give a
descriptor as a FieldSpec, as a plain mapping (`{"type": "string",
"required": True}`) or as a bare type (`str`). `normalize_fields()` turns any
of these into FieldSpec objects.

Field types may be given as Python types or by name:

    string/str   -> str
    number/float -> float
    integer/int  -> int
    boolean/bool -> bool
    object/dict  -> dict
    array/list   -> list
"""

from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .exceptions import DefinitionError, ValidationError

RESERVED_FIELDS = frozenset({"id"})

_TYPE_NAMES: Dict[str, type] = {
    "string": str,
    "str": str,
    "number": float,
    "float": float,
    "integer": int,
    "int": int,
    "boolean": bool,
    "bool": bool,
    "object": dict,
    "dict": dict,
    "array": list,
    "list": list,
}

Mapper = Callable[[Any, str, Any], Any]


class FieldSpec(BaseModel):
    """
    Descriptor of one Model field.

    getter/setter:
        Mapping functions called as `fn(value, field_name, instance)` when a
        value is read from or written to an Instance.
    name:
        Column/property name on the connector side when it differs from the
        field name.
    custom:
        Custom fields are accepted on Instances even when they carry no
        stored value.
    """

    model_config = ConfigDict(
        extra="allow",
        frozen=True,
        populate_by_name=True,
        arbitrary_types_allowed=True,
        protected_namespaces=(),
    )

    type: Any = str
    required: bool = False
    default: Any = None
    readonly: bool = False
    custom: bool = False
    description: Optional[str] = None
    name: Optional[str] = None
    maxlength: Optional[int] = Field(default=None, gt=0)
    validator_fn: Any = Field(default=None, alias="validator")
    getter: Optional[Mapper] = Field(default=None, alias="get")
    setter: Optional[Mapper] = Field(default=None, alias="set")
    related_model: Optional[str] = Field(default=None, alias="model")

    # noinspection PyNestedDecorators
    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            try:
                return _TYPE_NAMES[v.strip().lower()]
            except KeyError:
                raise ValueError(f"unknown field type name {v!r}") from None
        if v is None:
            return str
        if not isinstance(v, type):
            raise ValueError(f"field type must be a type or a type name, got {v!r}")
        return v

    def column_name(self, field: str) -> str:
        return self.name or field


def to_field_spec(field: str, descriptor: Any) -> FieldSpec:
    if isinstance(descriptor, FieldSpec):
        return descriptor
    try:
        if isinstance(descriptor, type):
            return FieldSpec(type=descriptor)
        if isinstance(descriptor, Mapping):
            return FieldSpec.model_validate(dict(descriptor))
    except PydanticValidationError as e:
        raise DefinitionError(f"invalid descriptor for field {field!r}: {e}") from e
    raise DefinitionError(
        f"invalid descriptor for field {field!r}: expected FieldSpec, mapping or type, got {type(descriptor)!r}"
    )


def normalize_fields(fields: Optional[Mapping[str, Any]], *, check_reserved: bool = True) -> Dict[str, FieldSpec]:
    """
    Normalize a field mapping into `{name: FieldSpec}`, preserving order.

    Raises ValidationError when a reserved field name is defined and
    `check_reserved` is set.
    """
    if not fields:
        return {}
    out: Dict[str, FieldSpec] = {}
    for name, descriptor in fields.items():
        if check_reserved and name in RESERVED_FIELDS:
            raise ValidationError(name, f"{name} is a reserved field name for the generated primary key")
        out[name] = to_field_spec(name, descriptor)
    return out


def merge_fields(base: Mapping[str, FieldSpec], override: Mapping[str, FieldSpec]) -> Dict[str, FieldSpec]:
    """Field-by-field merge; descriptors from `override` win on conflict."""
    merged = dict(base)
    merged.update(override)
    return merged
