"""Text format for multilayer networks.

A file is a sequence of optional sections, each introduced by a header line::

    #TYPE multiplex
    #VERSION 3.0
    #LAYERS
    research,UNDIRECTED
    friendship,UNDIRECTED
    #ACTOR ATTRIBUTES
    age,NUMERIC
    #VERTEX ATTRIBUTES
    research,role,STRING
    #EDGE ATTRIBUTES
    research,since,NUMERIC
    #ACTORS
    Luca,42
    #VERTICES
    Luca,research,lead
    #EDGES
    Luca,Matteo,research,2010

A file without any header is read as ``#EDGES``: one ``actor1,actor2,layer``
line per edge, with layers created undirected on first use. Actors are
created on first reference. Attribute values follow the declaration order
of their section; empty fields are missing values. ``#TYPE`` and
``#VERSION`` are accepted and ignored.

Reading is two-phase: the layer and attribute declarations are applied
first, so a data line that refers to an undeclared layer or carries more
values than declared attributes fails before anything else is loaded.
"""

from __future__ import annotations

import csv
import io
import warnings
from pathlib import Path
from typing import TYPE_CHECKING

from ..core._helpers import SchemaError, Scope, UnknownReferenceError

if TYPE_CHECKING:
    from ..core.graph import MultiNet

_SECTIONS = {
    "#LAYERS": "layers",
    "#ACTOR ATTRIBUTES": "actor_attributes",
    "#VERTEX ATTRIBUTES": "vertex_attributes",
    "#EDGE ATTRIBUTES": "edge_attributes",
    "#ACTORS": "actors",
    "#VERTICES": "vertices",
    "#EDGES": "edges",
}
_IGNORED_HEADERS = ("#TYPE", "#VERSION")


def _open_text(path_or_buffer, mode):
    if hasattr(path_or_buffer, "read") or hasattr(path_or_buffer, "write"):
        return path_or_buffer, False
    return open(Path(path_or_buffer), mode, encoding="utf-8", newline=""), True


def _split_sections(lines, sep):
    """Group data lines by section: ``{section: [(lineno, fields), ...]}``."""
    sections = {name: [] for name in _SECTIONS.values()}
    current = None
    seen = set()
    for lineno, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line:
            continue
        if line.startswith("#"):
            header = line.upper()
            if header.startswith(_IGNORED_HEADERS):
                continue
            if header not in _SECTIONS:
                raise SchemaError(f"line {lineno}: unknown section header {line!r}")
            current = _SECTIONS[header]
            seen.add(current)
            continue
        fields = [f.strip() for f in next(csv.reader([line], delimiter=sep))]
        sections[current or "edges"].append((lineno, fields))
    return sections, seen


def read_ml(path_or_buffer, aligned=False, sep=",", name=""):
    """Load a network from the section text format.

    Parameters
    --
    path_or_buffer : str | pathlib.Path | file-like
    aligned : bool
        Add a vertex for every actor on every layer after loading.
    sep : str
        Field separator.
    name : str
        Name of the returned network.

    Returns
    ---
    MultiNet

    Raises
    --
    SchemaError
        On malformed lines, unknown types, or values that do not match their
        declared type.
    UnknownReferenceError
        If a data line refers to a layer that ``#LAYERS`` does not declare.

    """
    from ..core.graph import MultiNet

    fh, owned = _open_text(path_or_buffer, "r")
    try:
        sections, seen = _split_sections(fh, sep)
    finally:
        if owned:
            fh.close()

    net = MultiNet(name)
    declared_layers = "layers" in seen

    # schema pass
    for lineno, f in sections["layers"]:
        if len(f) != 2:
            raise SchemaError(f"line {lineno}: expected 'layer{sep}directionality', got {f}")
        net.add_layer(f[0], directed=f[1])
    actor_attrs = []
    for lineno, f in sections["actor_attributes"]:
        if len(f) != 2:
            raise SchemaError(f"line {lineno}: expected 'name{sep}type', got {f}")
        net.add_attribute(f[0], f[1], scope=Scope.ACTOR)
        actor_attrs.append(f[0])
    vertex_attrs = {}
    edge_attrs = {}
    for scope, key, target in (
        (Scope.VERTEX, "vertex_attributes", vertex_attrs),
        (Scope.EDGE, "edge_attributes", edge_attrs),
    ):
        for lineno, f in sections[key]:
            if len(f) != 3:
                raise SchemaError(f"line {lineno}: expected 'layer{sep}name{sep}type', got {f}")
            layer = _layer(net, f[0], lineno, declared_layers)
            net.add_attribute(f[1], f[2], scope=scope, layer=layer)
            target.setdefault(layer, []).append(f[1])

    # fail fast on undeclared layers before loading any data
    if declared_layers:
        for key, pos in (("vertices", 1), ("edges", 2)):
            for lineno, f in sections[key]:
                if len(f) > pos and not net.has_layer(f[pos]):
                    raise UnknownReferenceError(
                        f"line {lineno}: layer {f[pos]!r} is not declared in #LAYERS"
                    )

    # data pass
    for lineno, f in sections["actors"]:
        actor = f[0]
        values = _values(net, Scope.ACTOR, None, actor_attrs, f[1:], lineno)
        if not net.has_actor(actor):
            net.add_actor(actor)
        if values:
            net.set_actor_attrs(actor, **values)

    for lineno, f in sections["vertices"]:
        if len(f) < 2:
            raise SchemaError(f"line {lineno}: expected 'actor{sep}layer', got {f}")
        actor, layer = f[0], _layer(net, f[1], lineno, declared_layers)
        values = _values(net, Scope.VERTEX, layer, vertex_attrs.get(layer, []), f[2:], lineno)
        _ensure_vertex(net, actor, layer)
        if values:
            net.set_vertex_attrs(actor, layer, **values)

    loops = 0
    for lineno, f in sections["edges"]:
        if len(f) < 3:
            raise SchemaError(f"line {lineno}: expected 'actor1{sep}actor2{sep}layer', got {f}")
        u, v, layer = f[0], f[1], _layer(net, f[2], lineno, declared_layers)
        values = _values(net, Scope.EDGE, layer, edge_attrs.get(layer, []), f[3:], lineno)
        if u == v:
            loops += 1
            continue
        _ensure_vertex(net, u, layer)
        _ensure_vertex(net, v, layer)
        if not net.has_edge(u, v, layer):
            net.add_edge(u, v, layer)
        if values:
            net.set_edge_attrs(u, v, layer, **values)
    if loops:
        warnings.warn(f"read_ml: dropped {loops} self-loop(s)", stacklevel=2)

    if aligned:
        net.align()
    return net


def _layer(net, layer, lineno, declared):
    if not net.has_layer(layer):
        if declared:
            raise UnknownReferenceError(f"line {lineno}: layer {layer!r} is not declared in #LAYERS")
        net.add_layer(layer, directed=False)
    return layer


def _ensure_vertex(net, actor, layer):
    if not net.has_actor(actor):
        net.add_actor(actor)
    if not net.has_vertex(actor, layer):
        net.add_vertex(actor, layer)


def _values(net, scope, layer, names, fields, lineno):
    if len(fields) > len(names):
        raise SchemaError(
            f"line {lineno}: {len(fields)} attribute value(s) but only {len(names)} "
            f"{scope.value} attribute(s) declared"
        )
    out = {}
    for attr, raw in zip(names, fields):
        if raw == "":
            continue
        attr_type = net.attribute_type(attr, scope=scope, layer=layer)
        try:
            out[attr] = attr_type.coerce(raw, strict=False)
        except SchemaError as e:
            raise SchemaError(f"line {lineno}: attribute {attr!r}: {e}") from None
    return out


def write_ml(net: MultiNet, path_or_buffer, sep=","):
    """Write ``net`` in the section text format read by :func:`read_ml`.

    Every actor, vertex and edge is written, so isolated actors and vertices
    survive a round trip. Numeric values are written in their shortest form
    (``3`` rather than ``3.0`` for integral values).
    """
    buf = io.StringIO()
    w = csv.writer(buf, delimiter=sep, lineterminator="\n")
    schema = net.attributes()

    buf.write("#TYPE multiplex\n#VERSION 3.0\n#LAYERS\n")
    for L in net.layers():
        w.writerow([L, "DIRECTED" if net.is_directed(L) else "UNDIRECTED"])

    actor_attrs = [r["name"] for r in schema.filter(schema["scope"] == "actor").to_dicts()]
    if actor_attrs:
        buf.write("#ACTOR ATTRIBUTES\n")
        for a in actor_attrs:
            w.writerow([a, net.attribute_type(a).value])

    layer_attrs = {}
    for scope, header in ((Scope.VERTEX, "#VERTEX ATTRIBUTES"), (Scope.EDGE, "#EDGE ATTRIBUTES")):
        rows = schema.filter(schema["scope"] == scope.value).to_dicts()
        if rows:
            buf.write(header + "\n")
        for r in rows:
            w.writerow([r["layer"], r["name"], r["type"]])
            layer_attrs.setdefault((scope, r["layer"]), []).append(r["name"])

    buf.write("#ACTORS\n")
    for a in net.actors():
        attrs = net.get_actor_attrs(a)
        w.writerow([a] + [_fmt(attrs.get(n)) for n in actor_attrs])

    buf.write("#VERTICES\n")
    for a, L in net.vertices():
        names = layer_attrs.get((Scope.VERTEX, L), [])
        attrs = net.get_vertex_attrs(a, L) if names else {}
        w.writerow([a, L] + [_fmt(attrs.get(n)) for n in names])

    buf.write("#EDGES\n")
    for u, v, L in net.edges():
        names = layer_attrs.get((Scope.EDGE, L), [])
        attrs = net.get_edge_attrs(u, v, L) if names else {}
        w.writerow([u, v, L] + [_fmt(attrs.get(n)) for n in names])

    fh, owned = _open_text(path_or_buffer, "w")
    try:
        fh.write(buf.getvalue())
    finally:
        if owned:
            fh.close()


def _fmt(value):
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


__all__ = ["read_ml", "write_ml"]
