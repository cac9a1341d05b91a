import threading
import time

import polars as pl

from ..algorithms.traversal import Traversal
from ._Annotation import AttributesClass
from ._helpers import SchemaError, Scope, UnknownReferenceError
from ._History import History
from ._Layers import LayerClass

# ===================================


class MultiNet(LayerClass, AttributesClass, Traversal, History):
    """Multilayer network: actors, layers, vertices, edges and typed attributes.

    An *actor* is a global identity; a *layer* is one relation type with a fixed
    directionality; a *vertex* is the presence of an actor on a layer; an *edge*
    joins two vertices of the same layer. Multi-edges and self-loops are not
    allowed.

    Parameters
    --
    name : str, optional
        Free-form network name.

    Notes
    -
    - Adjacency is kept per layer as insertion-ordered dicts (``_out``/``_in``);
      undirected edges are mirrored in both directions of both maps.
    - Undirected edges are stored once, in the orientation of insertion;
      lookups accept either orientation.
    - Attribute values live in Polars tables behind a typed registry, see
      :meth:`add_attribute`.
    - Every mutator runs under a re-entrant lock and is recorded in the
      mutation history (:meth:`history`). The list-returning readers
      (:meth:`actors`, :meth:`vertices`, :meth:`edges`, :meth:`neighbors`)
      take the same lock; algorithms that walk the internal maps directly
      should run on a :meth:`copy` when other threads mutate the network.

    See Also

    add_layer, add_actor, add_vertex, add_edge, align, flatten

    """

    # Construction

    def __init__(self, name: str = ""):
        self.name = name

        self._actors = {}  # actor -> None (ordered set)
        self._directed = {}  # layer -> bool
        self._vertices = {}  # layer -> {actor: None}
        self._out = {}  # layer -> {actor: {neighbor: None}}
        self._in = {}  # layer -> {actor: {neighbor: None}}
        self._edges = {}  # layer -> {(source, target): None}

        # typed attribute registry and tables
        self._attr_schema = {}  # (Scope, layer | None, name) -> AttrType
        self.actor_attributes = pl.DataFrame(schema={"actor": pl.Utf8})
        self._vertex_attr_tables = {}  # layer -> DataFrame
        self._edge_attr_tables = {}  # layer -> DataFrame

        # single-writer lock
        self._lock = threading.RLock()
        self._mutation_depth = 0

        # History and Timeline
        self._history_enabled = True
        self._history = []  # list[dict]
        self._version = 0
        self._history_clock0 = time.perf_counter_ns()
        self._install_history_hooks()  # wrap mutating methods

    def __repr__(self):
        return (
            f"MultiNet({self.name!r}, actors={self.num_actors()}, layers={self.num_layers()}, "
            f"vertices={self.num_vertices()}, edges={self.num_edges()})"
        )

    # Actors

    def add_actor(self, actor: str, **attrs):
        """Create an actor, optionally setting declared actor attributes.

        Raises
        --
        SchemaError
            If the actor already exists.

        """
        if not isinstance(actor, str) or not actor:
            raise SchemaError(f"actor name must be a non-empty string, got {actor!r}")
        if actor in self._actors:
            raise SchemaError(f"actor {actor!r} already exists")
        clean = self._validate_attrs(Scope.ACTOR, None, attrs)
        self._actors[actor] = None
        if clean:
            self.actor_attributes = self._upsert_row(
                self.actor_attributes, {"actor": actor}, clean
            )
        return actor

    def add_actors(self, actors):
        """Create several actors, skipping those that already exist. Returns the count added."""
        added = 0
        for a in actors:
            if a not in self._actors:
                self.add_actor(a)
                added += 1
        return added

    def remove_actor(self, actor: str):
        """Remove an actor that no longer has any vertex.

        Raises
        --
        SchemaError
            If the actor is still present on some layer.

        """
        self._require_actor(actor)
        present = [L for L in self._directed if actor in self._vertices[L]]
        if present:
            raise SchemaError(f"actor {actor!r} is still referenced by layers {present}")
        del self._actors[actor]
        self.actor_attributes = self._drop_rows(self.actor_attributes, {"actor": actor})

    def actors(self, layers=None):
        """Actor names, optionally restricted to those present on ``layers``."""
        with self._lock:
            if layers is None:
                return list(self._actors)
            sel = self._layer_selection(layers)
            return [a for a in self._actors if any(a in self._vertices[L] for L in sel)]

    def has_actor(self, actor) -> bool:
        return actor in self._actors

    def num_actors(self) -> int:
        return len(self._actors)

    # Vertices

    def add_vertex(self, actor: str, layer: str, **attrs):
        """Declare that ``actor`` is present on ``layer``.

        Raises
        --
        UnknownReferenceError
            If the actor or the layer does not exist.
        SchemaError
            If the vertex already exists or an attribute value has the wrong type.

        """
        self._require_actor(actor)
        self._require_layer(layer)
        if actor in self._vertices[layer]:
            raise SchemaError(f"vertex ({actor!r}, {layer!r}) already exists")
        clean = self._validate_attrs(Scope.VERTEX, layer, attrs)
        self._vertices[layer][actor] = None
        self._out[layer][actor] = {}
        self._in[layer][actor] = {}
        if clean:
            self._vertex_attr_tables[layer] = self._upsert_row(
                self._vertex_attr_tables[layer], {"actor": actor}, clean
            )
        return (actor, layer)

    def remove_vertex(self, actor: str, layer: str):
        """Remove a vertex together with its incident edges and vertex attributes."""
        self._require_vertex(actor, layer)
        incident = [(u, v) for (u, v) in self._edges[layer] if actor in (u, v)]
        for u, v in incident:
            self.remove_edge(u, v, layer)
        del self._vertices[layer][actor]
        del self._out[layer][actor]
        del self._in[layer][actor]
        self._vertex_attr_tables[layer] = self._drop_rows(
            self._vertex_attr_tables[layer], {"actor": actor}
        )

    def has_vertex(self, actor, layer) -> bool:
        return layer in self._vertices and actor in self._vertices[layer]

    def vertices(self, layers=None, actors=None):
        """``(actor, layer)`` pairs, layer-major, filtered by layers and/or actors."""
        keep = None if actors is None else set(actors)
        out = []
        with self._lock:
            for L in self._layer_selection(layers):
                for a in self._vertices[L]:
                    if keep is None or a in keep:
                        out.append((a, L))
        return out

    def num_vertices(self, layers=None) -> int:
        return sum(len(self._vertices[L]) for L in self._layer_selection(layers))

    # Edges

    def add_edge(self, source: str, target: str, layer: str, **attrs):
        """Add an edge between two vertices of ``layer``.

        Parameters
        --
        source, target : str
            Actors; both must already have a vertex on ``layer``.
        layer : str
        **attrs
            Values for edge attributes declared on ``layer``.

        Returns
        ---
        tuple[str, str, str]
            ``(source, target, layer)``.

        Raises
        --
        UnknownReferenceError
            If the layer or one of the vertices does not exist.
        SchemaError
            On a duplicate edge (either orientation on undirected layers) or a self-loop.

        """
        self._require_layer(layer)
        for a in (source, target):
            self._require_vertex(a, layer)
        if source == target:
            raise SchemaError(f"self-loop on {source!r} in layer {layer!r} is not allowed")
        if self._find_edge(source, target, layer) is not None:
            raise SchemaError(f"edge ({source!r}, {target!r}) already exists in layer {layer!r}")
        clean = self._validate_attrs(Scope.EDGE, layer, attrs)
        self._edges[layer][(source, target)] = None
        self._out[layer][source][target] = None
        self._in[layer][target][source] = None
        if not self._directed[layer]:
            self._out[layer][target][source] = None
            self._in[layer][source][target] = None
        if clean:
            self._edge_attr_tables[layer] = self._upsert_row(
                self._edge_attr_tables[layer], {"source": source, "target": target}, clean
            )
        return (source, target, layer)

    def remove_edge(self, source: str, target: str, layer: str):
        """Remove an edge (either orientation on undirected layers)."""
        u, v = self._edge_key(source, target, layer)
        del self._edges[layer][(u, v)]
        self._out[layer][u].pop(v, None)
        self._in[layer][v].pop(u, None)
        if not self._directed[layer]:
            self._out[layer][v].pop(u, None)
            self._in[layer][u].pop(v, None)
        self._edge_attr_tables[layer] = self._drop_rows(
            self._edge_attr_tables[layer], {"source": u, "target": v}
        )

    def has_edge(self, source, target, layer) -> bool:
        if layer not in self._edges:
            return False
        return self._find_edge(source, target, layer) is not None

    def edges(self, layers=None, actors=None):
        """``(source, target, layer)`` triples, filtered by layers and/or actors.

        With ``actors`` only edges whose both endpoints are in the set are returned.
        """
        keep = None if actors is None else set(actors)
        out = []
        with self._lock:
            for L in self._layer_selection(layers):
                for u, v in self._edges[L]:
                    if keep is None or (u in keep and v in keep):
                        out.append((u, v, L))
        return out

    def num_edges(self, layers=None) -> int:
        return sum(len(self._edges[L]) for L in self._layer_selection(layers))

    # Views

    def actors_view(self):
        """Actor table: ``actor`` plus declared actor attributes."""
        base = pl.DataFrame({"actor": list(self._actors)}, schema={"actor": pl.Utf8})
        attrs = self.actor_attributes
        if len(attrs.columns) == 1:
            return base
        return base.join(attrs, on="actor", how="left")

    def vertices_view(self, layers=None):
        """Vertex table: ``actor``, ``layer`` (attributes are per layer, see
        :meth:`vertex_attributes`)."""
        rows = self.vertices(layers)
        return pl.DataFrame(
            {"actor": [a for a, _ in rows], "layer": [L for _, L in rows]},
            schema={"actor": pl.Utf8, "layer": pl.Utf8},
        )

    def edges_view(self, layers=None):
        """Edge table: ``source``, ``target``, ``layer``, ``directed``."""
        rows = self.edges(layers)
        return pl.DataFrame(
            {
                "source": [u for u, _, _ in rows],
                "target": [v for _, v, _ in rows],
                "layer": [L for _, _, L in rows],
                "directed": [self._directed[L] for _, _, L in rows],
            },
            schema={"source": pl.Utf8, "target": pl.Utf8, "layer": pl.Utf8, "directed": pl.Boolean},
        )

    # Copy

    def copy(self, history: bool = False):
        """Independent deep copy, e.g. a stable snapshot for parallel readers.

        Parameters
        ----------
        history : bool
            If True, copy the mutation history; otherwise the copy starts clean.

        """
        with self._lock:
            new = MultiNet(self.name)
            new._actors = dict(self._actors)
            new._directed = dict(self._directed)
            new._vertices = {L: dict(vs) for L, vs in self._vertices.items()}
            new._out = {L: {a: dict(n) for a, n in adj.items()} for L, adj in self._out.items()}
            new._in = {L: {a: dict(n) for a, n in adj.items()} for L, adj in self._in.items()}
            new._edges = {L: dict(es) for L, es in self._edges.items()}
            new._attr_schema = dict(self._attr_schema)
            new.actor_attributes = self.actor_attributes.clone()
            new._vertex_attr_tables = {L: df.clone() for L, df in self._vertex_attr_tables.items()}
            new._edge_attr_tables = {L: df.clone() for L, df in self._edge_attr_tables.items()}
            if history:
                new._history = list(self._history)
                new._version = self._version
            return new

    # Validation helpers

    def _require_actor(self, actor):
        if actor not in self._actors:
            raise UnknownReferenceError(f"actor {actor!r} not found")

    def _require_vertex(self, actor, layer):
        self._require_layer(layer)
        if actor not in self._vertices[layer]:
            self._require_actor(actor)
            raise UnknownReferenceError(f"actor {actor!r} has no vertex on layer {layer!r}")

    def _find_edge(self, source, target, layer):
        es = self._edges[layer]
        if (source, target) in es:
            return (source, target)
        if not self._directed[layer] and (target, source) in es:
            return (target, source)
        return None

    def _edge_key(self, source, target, layer):
        self._require_layer(layer)
        key = self._find_edge(source, target, layer)
        if key is None:
            raise UnknownReferenceError(
                f"edge ({source!r}, {target!r}) not found in layer {layer!r}"
            )
        return key


