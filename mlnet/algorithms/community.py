"""Multilayer community detection.

Two independent algorithms:

- :func:`glouvain` assigns every vertex ``(actor, layer)`` to exactly one
  community by greedily maximizing multislice modularity, where each actor's
  copies on different layers are linked with coupling weight ``omega``.
- :func:`clique_percolation` finds overlapping communities made of cliques
  of at least ``k`` actors present on at least ``m`` layers.

Both return Polars tables with columns ``actor, layer, cid``.
"""

from __future__ import annotations

from collections import defaultdict
from itertools import combinations
from typing import TYPE_CHECKING

import narwhals as nw
import networkx as nx
import numpy as np
import polars as pl
from scipy import stats

from ..core._helpers import ParameterError

if TYPE_CHECKING:
    from ..core.graph import MultiNet

_COMMUNITY_SCHEMA = {"actor": pl.Utf8, "layer": pl.Utf8, "cid": pl.Int64}

# gains below this are treated as ties
_TOL = 1e-12


## Supra-graph


class _SupraGraph:
    """Symmetric weighted graph over vertices, with per-layer degrees.

    Node ``i`` is vertex ``nodes[i]``. ``adj`` holds intra-layer weights (each edge
    counted once in each direction, so a reciprocated directed pair weighs 2) plus
    ``omega`` between every two copies of the same actor. ``deg[i]`` maps a layer to
    the intra-layer degree of node ``i`` on it; ``two_m[L]`` is twice the edge weight
    of layer ``L`` and ``two_mu`` the total weight of the supra-graph.
    """

    def __init__(self, net: MultiNet, omega, layers=None):
        sel = net._layer_selection(layers)
        self.nodes = net.vertices(sel)
        index = {v: i for i, v in enumerate(self.nodes)}
        self.adj = [defaultdict(float) for _ in self.nodes]
        self.deg = [defaultdict(float) for _ in self.nodes]
        self.two_m = defaultdict(float)

        for L in sel:
            for u, v in net._edges[L]:
                i, j = index[(u, L)], index[(v, L)]
                self.adj[i][j] += 1.0
                self.adj[j][i] += 1.0
                self.deg[i][L] += 1.0
                self.deg[j][L] += 1.0
                self.two_m[L] += 2.0

        coupling = 0.0
        if omega:
            copies = defaultdict(list)
            for i, (a, _) in enumerate(self.nodes):
                copies[a].append(i)
            for idx in copies.values():
                for i, j in combinations(idx, 2):
                    self.adj[i][j] += omega
                    self.adj[j][i] += omega
                    coupling += 2.0 * omega
        self.two_mu = sum(self.two_m.values()) + coupling

    def modularity(self, labels, gamma):
        if self.two_mu <= 0:
            return 0.0
        inside = 0.0
        for i, nbrs in enumerate(self.adj):
            for j, w in nbrs.items():
                if labels[i] == labels[j]:
                    inside += w
        # null model: sum over communities and layers of (sum of k)^2 / 2m_L
        tot = defaultdict(float)
        for i, d in enumerate(self.deg):
            for L, k in d.items():
                tot[(labels[i], L)] += k
        expected = sum(t * t / self.two_m[L] for (_, L), t in tot.items() if self.two_m[L] > 0)
        return (inside - gamma * expected) / self.two_mu


## Generalized Louvain


def glouvain(
    net: MultiNet,
    gamma: float = 1.0,
    omega: float = 1.0,
    layers=None,
    seed=None,
    max_passes: int = 100,
    max_levels: int = 50,
) -> pl.DataFrame:
    """Generalized Louvain community detection.

    Parameters
    --
    net : MultiNet
    gamma : float
        Resolution applied to every layer's configuration null model.
    omega : float
        Coupling weight between copies of the same actor on different layers.
    layers : iterable[str], optional
        Layers to partition (all by default).
    seed : int, optional
        Seeds the order in which nodes are visited during local moves. With
        ``None`` nodes are visited in vertex order, so the result is fully
        deterministic.
    max_passes : int
        Bound on local-move sweeps per level.
    max_levels : int
        Bound on aggregation levels.

    Returns
    ---
    polars.DataFrame
        ``actor, layer, cid``; every vertex appears exactly once. Community ids are
        numbered from 0 in order of first appearance in vertex order.

    Notes
    -
    The result is a local optimum of multislice modularity, not a global one.
    When several moves give the same gain the node stays in its community; among
    other equal candidates the lowest community label wins.

    """
    if gamma < 0 or omega < 0:
        raise ParameterError("gamma and omega must be non-negative")
    if max_passes < 1 or max_levels < 1:
        raise ParameterError("max_passes and max_levels must be positive")
    sg = _SupraGraph(net, omega, layers)
    rng = np.random.default_rng(seed) if seed is not None else None

    n = len(sg.nodes)
    membership = list(range(n))  # original node -> current aggregated node
    adj = [dict(a) for a in sg.adj]
    deg = [dict(d) for d in sg.deg]

    for _ in range(max_levels):
        labels, moved = _local_moves(adj, deg, sg.two_m, gamma, rng, max_passes)
        if not moved:
            break
        # relabel 0..c-1 and aggregate
        remap = {}
        for lab in labels:
            remap.setdefault(lab, len(remap))
        labels = [remap[lab] for lab in labels]
        membership = [labels[m] for m in membership]
        adj, deg = _aggregate(adj, deg, labels, len(remap))

    return _partition_table(sg.nodes, membership)


def _local_moves(adj, deg, two_m, gamma, rng, max_passes):
    n = len(adj)
    labels = list(range(n))
    tot = [dict(d) for d in deg]  # community -> {layer: total degree}
    size = [1] * n
    moved_any = False
    order = np.arange(n) if rng is None else rng.permutation(n)

    for _ in range(max_passes):
        moved = False
        for i in order:
            i = int(i)
            c = labels[i]
            # take i out of its community
            for L, k in deg[i].items():
                tot[c][L] -= k
            size[c] -= 1

            links = defaultdict(float)
            for j, w in adj[i].items():
                if j != i:
                    links[labels[j]] += w

            def gain(D):
                t = tot[D]
                null = sum(k * t.get(L, 0.0) / two_m[L] for L, k in deg[i].items() if two_m[L] > 0)
                return links.get(D, 0.0) - gamma * null

            best, best_gain = c, gain(c)
            for D in sorted(links):
                if D == c:
                    continue
                g = gain(D)
                if g > best_gain + _TOL:
                    best, best_gain = D, g
            if best_gain < -_TOL and size[c] > 0:
                # isolating i beats every available community
                best = len(tot)
                tot.append({})
                size.append(0)

            labels[i] = best
            for L, k in deg[i].items():
                tot[best][L] = tot[best].get(L, 0.0) + k
            size[best] += 1
            if best != c:
                moved = moved_any = True
        if not moved:
            break
    return labels, moved_any


def _aggregate(adj, deg, labels, size):
    new_adj = [defaultdict(float) for _ in range(size)]
    new_deg = [defaultdict(float) for _ in range(size)]
    for i, nbrs in enumerate(adj):
        ci = labels[i]
        for j, w in nbrs.items():
            new_adj[ci][labels[j]] += w
        for L, k in deg[i].items():
            new_deg[ci][L] += k
    return [dict(a) for a in new_adj], [dict(d) for d in new_deg]


def _partition_table(nodes, membership):
    remap = {}
    rows = []
    for (actor, layer), m in zip(nodes, membership):
        cid = remap.setdefault(m, len(remap))
        rows.append({"cid": cid, "actor": actor, "layer": layer})
    return pl.DataFrame(rows, schema=_COMMUNITY_SCHEMA)


## Scoring


def _read_communities(communities):
    """Rows ``(cid, actor, layer)`` from any narwhals-compatible table."""
    df = nw.from_native(communities, eager_only=True)
    missing = {"cid", "actor", "layer"} - set(df.columns)
    if missing:
        raise ParameterError(f"community table lacks columns {sorted(missing)}")
    return df.select("cid", "actor", "layer").rows()


def modularity(net: MultiNet, communities, gamma: float = 1.0, omega: float = 1.0, layers=None):
    """Multislice modularity of a partition.

    Parameters
    --
    net : MultiNet
    communities : DataFrame
        Polars or pandas table with columns ``actor, layer, cid`` assigning every
        vertex of the selected layers to exactly one community.
    gamma, omega : float
        As in :func:`glouvain`.

    Returns
    ---
    float
        0.0 on a network without edges or coupling.

    """
    sg = _SupraGraph(net, omega, layers)
    index = {v: i for i, v in enumerate(sg.nodes)}
    labels = [None] * len(sg.nodes)
    for cid, actor, layer in _read_communities(communities):
        i = index.get((actor, layer))
        if i is None:
            raise ParameterError(f"({actor!r}, {layer!r}) is not a vertex of the network")
        if labels[i] is not None:
            raise ParameterError(f"vertex ({actor!r}, {layer!r}) assigned twice")
        labels[i] = cid
    unassigned = [sg.nodes[i] for i, lab in enumerate(labels) if lab is None]
    if unassigned:
        raise ParameterError(f"partition leaves vertices unassigned: {unassigned[:5]}")
    return sg.modularity(labels, gamma)


def nmi(communities_a, communities_b) -> float:
    """Normalized mutual information between two partitions of the same vertices.

    Uses the arithmetic-mean normalization; two single-community partitions give 1.0.
    """
    a = {(actor, layer): cid for cid, actor, layer in _read_communities(communities_a)}
    b = {(actor, layer): cid for cid, actor, layer in _read_communities(communities_b)}
    if set(a) != set(b):
        raise ParameterError("partitions must cover the same vertices")
    if not a:
        return 0.0
    joint = defaultdict(int)
    for v in a:
        joint[(a[v], b[v])] += 1
    n = float(len(a))
    ca, cb = _counts(a.values()), _counts(b.values())
    pa = np.array(list(ca.values()), dtype=float) / n
    pb = np.array(list(cb.values()), dtype=float) / n
    mi = 0.0
    for (x, y), nxy in joint.items():
        mi += (nxy / n) * np.log(nxy * n / (ca[x] * cb[y]))
    ha, hb = stats.entropy(pa), stats.entropy(pb)
    if ha + hb == 0:
        return 1.0
    return float(2.0 * mi / (ha + hb))


def _counts(values):
    out = defaultdict(int)
    for v in values:
        out[v] += 1
    return out


## Clique percolation


def clique_percolation(net: MultiNet, k: int = 3, m: int = 1, layers=None) -> pl.DataFrame:
    """Multilayer clique percolation (ML-CPM).

    Parameters
    --
    net : MultiNet
    k : int
        Minimum clique size (>= 2).
    m : int
        Minimum number of layers on which a clique must be complete (>= 1 and at most
        the number of selected layers).
    layers : iterable[str], optional

    Returns
    ---
    polars.DataFrame
        ``actor, layer, cid`` rows. An actor-layer pair may belong to several
        communities or to none.

    Notes
    -
    A *multilayer clique* is a set of at least ``k`` actors pairwise adjacent on
    each layer of a set of at least ``m`` layers; only cliques maximal in both
    actors and layers are kept. Two cliques are adjacent when they share at least
    ``k - 1`` actors and at least ``m`` layers; communities are the connected
    components of that adjacency. Edge direction is ignored. Community ids follow
    the order of their largest clique (by size, then actor names).

    """
    sel = net._layer_selection(layers)
    if k < 2:
        raise ParameterError(f"k must be at least 2, got {k}")
    if m < 1:
        raise ParameterError(f"m must be at least 1, got {m}")
    if m > len(sel):
        raise ParameterError(f"m={m} exceeds the number of layers ({len(sel)})")

    cliques = _ml_cliques(net, sel, k, m)

    G = nx.Graph()
    G.add_nodes_from(range(len(cliques)))
    for i, j in combinations(range(len(cliques)), 2):
        (A, LA), (B, LB) = cliques[i], cliques[j]
        if len(A & B) >= k - 1 and len(LA & LB) >= m:
            G.add_edge(i, j)

    components = sorted((sorted(c) for c in nx.connected_components(G)), key=lambda c: c[0])
    rows = set()
    for cid, comp in enumerate(components):
        for i in comp:
            A, LA = cliques[i]
            for actor in A:
                for layer in LA:
                    rows.add((cid, actor, layer))
    out = [{"cid": c, "actor": a, "layer": L} for c, a, L in sorted(rows)]
    return pl.DataFrame(out, schema=_COMMUNITY_SCHEMA)


def _ml_cliques(net, sel, k, m):
    esets = {L: {frozenset(e) for e in net._edges[L]} for L in sel}
    found = {}
    # a clique can be maximal only on a layer set larger than m
    layer_sets = (S for size in range(m, len(sel) + 1) for S in combinations(sel, size))
    for S in layer_sets:
        common = set.intersection(*(esets[L] for L in S))
        if not common:
            continue
        G = nx.Graph()
        G.add_edges_from(tuple(sorted(e)) for e in common)
        for c in nx.find_cliques(G):
            if len(c) < k:
                continue
            A = frozenset(c)
            if A in found:
                continue
            pairs = [frozenset(p) for p in combinations(A, 2)]
            found[A] = frozenset(L for L in sel if all(p in esets[L] for p in pairs))
    items = sorted(found.items(), key=lambda it: (-len(it[0]), sorted(it[0])))
    return [
        (A, LA)
        for A, LA in items
        if not any(A < B and LA <= LB for B, LB in items)
    ]


## Views


def community_list(communities) -> pl.DataFrame:
    """Group a community table into ``cid, layer, actors`` (sorted list of actors)."""
    df = nw.to_native(nw.from_native(communities, eager_only=True))
    if not isinstance(df, pl.DataFrame):
        df = pl.DataFrame(
            [dict(zip(("cid", "actor", "layer"), r)) for r in _read_communities(communities)],
            schema=_COMMUNITY_SCHEMA,
        )
    return (
        df.group_by(["cid", "layer"])
        .agg(pl.col("actor").sort().alias("actors"))
        .sort(["cid", "layer"])
    )
