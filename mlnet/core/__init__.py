from ._helpers import (
    AttrType,
    EdgeType,
    MultiNetError,
    ParameterError,
    SchemaError,
    Scope,
    UnknownReferenceError,
)
from .graph import MultiNet

__all__ = [
    "AttrType",
    "EdgeType",
    "MultiNet",
    "MultiNetError",
    "ParameterError",
    "SchemaError",
    "Scope",
    "UnknownReferenceError",
]
