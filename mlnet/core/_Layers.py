from __future__ import annotations

import warnings
from typing import TYPE_CHECKING

import polars as pl

from ._helpers import AttrType, EdgeType, SchemaError, UnknownReferenceError

if TYPE_CHECKING:
    from .graph import MultiNet


class LayerClass:
    # Layers

    def add_layer(self, name: str, directed=False, attributes=None):
        """Create a layer.

        Parameters
        --
        name : str
        directed : bool | str | EdgeType
            Directionality, fixed for the lifetime of the layer.
        attributes : dict, optional
            Attribute schema declared with the layer:
            ``{"vertex": {"age": "NUMERIC"}, "edge": {"since": "STRING"}}``.

        Raises
        --
        SchemaError
            If the layer already exists.

        """
        if not isinstance(name, str) or not name:
            raise SchemaError(f"layer name must be a non-empty string, got {name!r}")
        if name in self._directed:
            raise SchemaError(f"layer {name!r} already exists")
        self._directed[name] = EdgeType.parse(directed) is EdgeType.DIRECTED
        self._vertices[name] = {}
        self._out[name] = {}
        self._in[name] = {}
        self._edges[name] = {}
        self._init_layer_attr_tables(name)
        for scope, decl in (attributes or {}).items():
            for attr_name, attr_type in decl.items():
                self.add_attribute(attr_name, attr_type, scope=scope, layer=name)
        return name

    def layers(self):
        """Layer names in creation order."""
        return list(self._directed)

    def has_layer(self, name) -> bool:
        return name in self._directed

    def is_directed(self, layer) -> bool:
        self._require_layer(layer)
        return self._directed[layer]

    def num_layers(self) -> int:
        return len(self._directed)

    def layers_view(self):
        """Polars table of layers (columns: layer, directed, n, m)."""
        rows = [
            {
                "layer": L,
                "directed": self._directed[L],
                "n": len(self._vertices[L]),
                "m": len(self._edges[L]),
            }
            for L in self._directed
        ]
        schema = {"layer": pl.Utf8, "directed": pl.Boolean, "n": pl.Int64, "m": pl.Int64}
        return pl.DataFrame(rows, schema=schema)

    ## Layer algebra

    def layer_vertex_set(self, layer):
        """Actors present on ``layer``."""
        self._require_layer(layer)
        return set(self._vertices[layer])

    def layer_edge_set(self, layer):
        """Edges of ``layer`` as stored ``(source, target)`` tuples."""
        self._require_layer(layer)
        return set(self._edges[layer])

    ## Alignment

    def align(self, actors=None, layers=None):
        """Insert the missing vertices so every actor is present on every layer.

        Parameters
        --
        actors : iterable[str], optional
            Defaults to every actor.
        layers : iterable[str], optional
            Defaults to every layer.

        Returns
        ---
        int
            Number of vertices added (without incident edges).

        """
        actors = list(self._actors) if actors is None else list(actors)
        layers = self._layer_selection(layers)
        for a in actors:
            self._require_actor(a)
        added = 0
        for L in layers:
            for a in actors:
                if a not in self._vertices[L]:
                    self.add_vertex(a, L)
                    added += 1
        return added

    def is_aligned(self) -> bool:
        return all(len(self._vertices[L]) == len(self._actors) for L in self._directed)

    ## Flattening

    def flatten(self, new_layer="flat", layers=None, method="or", force_directed=False):
        """Materialize the union of ``layers`` as a new layer of this network.

        Parameters
        --
        new_layer : str
        layers : iterable[str], optional
            Source layers (all by default).
        method : {"or", "weighted"}
            ``"weighted"`` also declares a NUMERIC edge attribute ``weight`` on the new
            layer counting how many source edges collapse onto each edge.
        force_directed : bool
            Keep orientation even if some source layer is undirected.

        Returns
        ---
        str
            Name of the new layer.

        Notes
        -
        The new layer is directed only if every source layer is directed (or
        ``force_directed``). Directed edges folded into an undirected layer lose their
        orientation, which is reported with a warning.

        """
        if method not in ("or", "weighted"):
            raise SchemaError(f"unknown flattening method {method!r}")
        sources = self._layer_selection(layers)
        directed = force_directed or (bool(sources) and all(self._directed[L] for L in sources))
        if not directed and any(self._directed[L] for L in sources):
            warnings.warn(
                f"flattening into undirected layer {new_layer!r}: edge orientation is dropped",
                stacklevel=2,
            )
        edges, _ = flatten_edges(self, sources, directed)
        attrs = {"edge": {"weight": AttrType.NUMERIC}} if method == "weighted" else None
        self.add_layer(new_layer, directed=directed, attributes=attrs)
        for L in sources:
            for a in self._vertices[L]:
                if a not in self._vertices[new_layer]:
                    self.add_vertex(a, new_layer)
        for (u, v), w in edges.items():
            self.add_edge(u, v, new_layer)
            if method == "weighted":
                self.set_edge_attrs(u, v, new_layer, weight=float(w))
        return new_layer

    ## Validation helpers

    def _require_layer(self, layer):
        if layer not in self._directed:
            raise UnknownReferenceError(f"layer {layer!r} not found")

    def _layer_selection(self, layers):
        if layers is None:
            return list(self._directed)
        if isinstance(layers, str):
            layers = [layers]
        out = []
        for L in layers:
            self._require_layer(L)
            if L not in out:
                out.append(L)
        return out


def flatten_edges(net: MultiNet, layers, directed):
    """Union of the edges of ``layers``.

    Returns ``({(u, v): multiplicity}, vertex_actors)``; undirected keys keep the
    orientation of the first occurrence.
    """
    out = {}
    actors = {}
    for L in layers:
        actors.update(net._vertices[L])
        for u, v in net._edges[L]:
            key = (u, v)
            if not directed and (v, u) in out:
                key = (v, u)
            out[key] = out.get(key, 0) + 1
            # an undirected source edge stands for both orientations
            if directed and not net._directed[L]:
                out[(v, u)] = out.get((v, u), 0) + 1
    return out, list(actors)


