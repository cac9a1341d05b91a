from enum import Enum

import polars as pl


class MultiNetError(Exception):
    """Base class for every error raised by mlnet."""


class SchemaError(MultiNetError, ValueError):
    """A write that would break the store's schema (duplicates, type mismatch,
    cross-layer edges, directionality mismatch)."""


class UnknownReferenceError(SchemaError, KeyError):
    """Reference to an actor, layer, vertex, edge or attribute that does not exist."""

    def __str__(self):
        # KeyError quotes its message; keep the plain text
        return str(self.args[0]) if self.args else ""


class ParameterError(MultiNetError, ValueError):
    """Out-of-range algorithm or generator parameter."""


class EdgeType(Enum):
    DIRECTED = "DIRECTED"
    UNDIRECTED = "UNDIRECTED"

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            return cls.DIRECTED if value else cls.UNDIRECTED
        s = str(value).strip().upper()
        if s in ("DIRECTED", "D", "TRUE"):
            return cls.DIRECTED
        if s in ("UNDIRECTED", "U", "FALSE"):
            return cls.UNDIRECTED
        raise SchemaError(f"unknown directionality {value!r}")


class AttrType(Enum):
    NUMERIC = "NUMERIC"
    STRING = "STRING"
    CATEGORICAL = "CATEGORICAL"

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        s = str(value).strip().upper()
        if s in _ATTR_TYPE_ALIASES:
            return _ATTR_TYPE_ALIASES[s]
        raise SchemaError(f"unknown attribute type {value!r}")

    def polars_dtype(self):
        # categorical values are stored as plain strings; the registry keeps the distinction
        return pl.Float64 if self is AttrType.NUMERIC else pl.Utf8

    def coerce(self, value, *, strict=True):
        """Validate ``value`` against this type and return the stored form.

        With ``strict=False`` (used by the text reader) numeric strings are parsed.
        """
        if value is None:
            return None
        if self is AttrType.NUMERIC:
            if isinstance(value, bool):
                raise SchemaError(f"expected a numeric value, got {value!r}")
            if isinstance(value, (int, float)):
                return float(value)
            if not strict and isinstance(value, str):
                try:
                    return float(value.strip())
                except ValueError:
                    pass
            # numpy scalars
            if hasattr(value, "item") and isinstance(value.item(), (int, float)):
                return float(value.item())
            raise SchemaError(f"expected a numeric value, got {value!r}")
        if not isinstance(value, str):
            raise SchemaError(f"expected a {self.value.lower()} value, got {value!r}")
        return value


_ATTR_TYPE_ALIASES = {
    "NUMERIC": AttrType.NUMERIC,
    "DOUBLE": AttrType.NUMERIC,
    "INTEGER": AttrType.NUMERIC,
    "NUMBER": AttrType.NUMERIC,
    "STRING": AttrType.STRING,
    "TEXT": AttrType.STRING,
    "CATEGORICAL": AttrType.CATEGORICAL,
}


class Scope(Enum):
    ACTOR = "actor"
    VERTEX = "vertex"
    EDGE = "edge"


# key columns of the attribute tables; not usable as attribute names
_ACTOR_RESERVED = {"actor"}
_VERTEX_RESERVED = {"actor", "layer"}
_EDGE_RESERVED = {"layer", "source", "target", "directed"}

_MODES = ("all", "in", "out")


def _check_mode(mode):
    if mode not in _MODES:
        raise ParameterError(f"mode must be one of {_MODES}, got {mode!r}")
    return mode
