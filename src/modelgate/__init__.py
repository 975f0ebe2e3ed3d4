try:
    from ._version import version as __version__  # populated by setuptools-scm
except ModuleNotFoundError:
    __version__ = "0.0.0"

from .collection import Collection
from .exceptions import (
    ActionNotAllowedError,
    DefinitionError,
    LifecycleError,
    ModelgateError,
    RecordNotFoundError,
    ValidationError,
)
from .fields import FieldSpec
from .instance import Instance
from .model import Model
from .query import All, ByConstraints, ById, QueryRequest
from .registry import ModelRegistry

__all__ = [
    "__version__",
    "Model",
    "Instance",
    "Collection",
    "FieldSpec",
    "ModelRegistry",
    # queries
    "QueryRequest",
    "ById",
    "ByConstraints",
    "All",
    # errors
    "ModelgateError",
    "DefinitionError",
    "ValidationError",
    "LifecycleError",
    "ActionNotAllowedError",
    "RecordNotFoundError",
]
