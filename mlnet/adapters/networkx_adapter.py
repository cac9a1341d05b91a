from __future__ import annotations

import warnings
from typing import TYPE_CHECKING

import networkx as nx

from ..core._Layers import flatten_edges

if TYPE_CHECKING:
    from ..core.graph import MultiNet


def to_nx(graph: MultiNet, layers=None, directed=None, with_attrs=False):
    """Project one or more layers onto a single networkx graph.

    Parameters
    --
    graph : MultiNet
    layers : str | iterable[str], optional
        Layers to project (all by default). With several layers this is the
        read-only flattening of the network: union of vertices (by actor) and of edges.
    directed : bool, optional
        Force the output type. By default the result is a ``DiGraph`` only if every
        selected layer is directed.
    with_attrs : bool
        Copy actor attributes onto nodes and, for a single layer, vertex and edge
        attributes as well. Edges always carry ``multiplicity`` (number of source
        edges collapsed onto them).

    Returns
    ---
    networkx.Graph | networkx.DiGraph

    """
    sel = graph._layer_selection(layers)
    if directed is None:
        directed = bool(sel) and all(graph._directed[L] for L in sel)
    elif not directed and any(graph._directed[L] for L in sel):
        warnings.warn("MultiNet → networkx conversion drops edge orientation", stacklevel=2)

    edges, actors = flatten_edges(graph, sel, directed)
    G = nx.DiGraph() if directed else nx.Graph()
    G.graph["name"] = graph.name
    G.graph["layers"] = list(sel)
    for a in actors:
        G.add_node(a)
    for (u, v), mult in edges.items():
        G.add_edge(u, v, multiplicity=mult)

    if with_attrs:
        for a in actors:
            G.nodes[a].update(graph.get_actor_attrs(a))
        if len(sel) == 1:
            L = sel[0]
            for a in actors:
                G.nodes[a].update(graph.get_vertex_attrs(a, L))
            for u, v in graph._edges[L]:
                if G.has_edge(u, v):
                    G.edges[u, v].update(graph.get_edge_attrs(u, v, L))
    return G


def from_nx(G, layer="layer1", graph=None):
    """Load a networkx graph as one layer of a (new or given) MultiNet.

    Nodes become actors (created when missing) with a vertex on ``layer``; edges
    become layer edges. Self-loops are dropped with a warning, and on an
    undirected target duplicate orientations collapse to one edge.
    """
    from ..core.graph import MultiNet

    net = MultiNet(G.graph.get("name", "")) if graph is None else graph
    net.add_layer(layer, directed=G.is_directed())
    for n in G.nodes:
        a = str(n)
        if not net.has_actor(a):
            net.add_actor(a)
        net.add_vertex(a, layer)
    loops = 0
    for u, v in G.edges():
        if u == v:
            loops += 1
            continue
        if not net.has_edge(str(u), str(v), layer):
            net.add_edge(str(u), str(v), layer)
    if loops:
        warnings.warn(f"networkx → MultiNet: dropped {loops} self-loop(s)", stacklevel=2)
    return net
