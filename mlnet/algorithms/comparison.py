"""Pairwise layer comparison.

``layer_comparison(net, method=...)`` returns a layer x layer table. Method
names are ``<measure>.<property>`` for the overlap family (e.g.
``"jaccard.edges"``) and ``<measure>.degree`` for the distribution and
correlation families. :data:`COMPARISON_METHODS` declares the value range
and symmetry of every method.

Overlap sets:
- actors: actors with a vertex on the layer;
- edges: actor pairs joined on the layer; when both layers are directed the
  pairs are ordered, otherwise both layers are compared undirected;
- triangles: actor triples forming a triangle on the undirected layer.

The universe used by simple matching, Russell-Rao and Hamann is every actor
of the network (all pairs / all triples for edges / triangles).
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import numpy as np
import polars as pl
from scipy import stats

from ..core._helpers import ParameterError, _check_mode

if TYPE_CHECKING:
    from ..core.graph import MultiNet

# smoothing mass for empty histogram bins in KL-type divergences
_EPS = 1e-9

_OVERLAP = ("jaccard", "coverage", "sm", "rr", "kulczynski2", "hamann")
_PROPERTIES = ("actors", "edges", "triangles")

COMPARISON_METHODS = {}
for _m in _OVERLAP:
    for _p in _PROPERTIES:
        COMPARISON_METHODS[f"{_m}.{_p}"] = {
            "range": (-1.0, 1.0) if _m == "hamann" else (0.0, 1.0),
            "symmetric": _m != "coverage",
        }
COMPARISON_METHODS.update(
    {
        "dissimilarity.degree": {"range": (0.0, 1.0), "symmetric": True},
        "kl.degree": {"range": (0.0, math.inf), "symmetric": False},
        "jeffrey.degree": {"range": (0.0, math.inf), "symmetric": True},
        "pearson.degree": {"range": (-1.0, 1.0), "symmetric": True},
        "rho.degree": {"range": (-1.0, 1.0), "symmetric": True},
    }
)


def layer_comparison(net: MultiNet, layers=None, method="jaccard.actors", mode="all"):
    """Compare every ordered pair of layers.

    Parameters
    --
    net : MultiNet
    layers : iterable[str], optional
        Layers to compare (all by default).
    method : str
        One of :data:`COMPARISON_METHODS`.
    mode : {"all", "in", "out"}
        Degree mode for the ``*.degree`` methods.

    Returns
    ---
    polars.DataFrame
        ``layer`` column plus one Float64 column per layer; cell (row A, column B)
        is ``value(A, B)``. For coverage that is the fraction of A contained in B;
        for ``kl.degree`` it is KL(P_A || P_B).

    Raises
    --
    ParameterError
        On an unknown method.

    """
    if method not in COMPARISON_METHODS:
        raise ParameterError(
            f"unknown comparison method {method!r}; use one of {sorted(COMPARISON_METHODS)}"
        )
    _check_mode(mode)
    sel = net._layer_selection(layers)
    measure, prop = method.split(".")
    if prop == "degree":
        fn = _degree_method(net, sel, measure, mode)
    else:
        fn = _overlap_method(net, sel, measure, prop)

    data = {"layer": sel}
    for B in sel:
        data[B] = [float(fn(A, B)) for A in sel]
    return pl.DataFrame(data, schema={"layer": pl.Utf8, **{L: pl.Float64 for L in sel}})


def comparison_value(net: MultiNet, layer_a, layer_b, method="jaccard.actors", mode="all"):
    """Single cell of :func:`layer_comparison`."""
    df = layer_comparison(net, [layer_a, layer_b], method, mode)
    return df.filter(pl.col("layer") == layer_a).get_column(layer_b)[0]


## Overlap family


def _overlap_method(net, sel, measure, prop):
    n = net.num_actors()
    if prop == "actors":
        sets = {L: set(net._vertices[L]) for L in sel}
        return lambda A, B: _overlap(measure, sets[A], sets[B], n)
    if prop == "triangles":
        sets = {L: _triangle_set(net, L) for L in sel}
        return lambda A, B: _overlap(measure, sets[A], sets[B], math.comb(n, 3))

    cache = {}

    def edges(L, ordered):
        if (L, ordered) not in cache:
            cache[L, ordered] = _edge_set(net, L, ordered)
        return cache[L, ordered]

    # orientation and universe depend only on the two layers compared
    def fn(A, B):
        ordered = net._directed[A] and net._directed[B]
        universe = n * (n - 1) if ordered else n * (n - 1) // 2
        return _overlap(measure, edges(A, ordered), edges(B, ordered), universe)

    return fn


def _edge_set(net, layer, ordered):
    if ordered:
        return set(net._edges[layer])
    return {frozenset(e) for e in net._edges[layer]}


def _triangle_set(net, layer):
    adj = {a: set(net._layer_neighbors(a, layer, "all")) for a in net._vertices[layer]}
    out = set()
    for u, v in net._edges[layer]:
        for w in adj[u] & adj[v]:
            out.add(frozenset((u, v, w)))
    return out


def _overlap(measure, A, B, universe):
    # identical sets, empty ones included, are fully similar
    if A == B and measure != "rr":
        return 1.0
    a = len(A & B)
    b = len(A - B)
    c = len(B - A)
    d = max(universe - a - b - c, 0)
    if measure == "jaccard":
        return a / (a + b + c) if (a + b + c) else 0.0
    if measure == "coverage":
        return a / (a + b) if (a + b) else 0.0
    if measure == "kulczynski2":
        if not (a + b) or not (a + c):
            return 0.0
        return (a / (a + b) + a / (a + c)) / 2
    total = a + b + c + d
    if not total:
        return 0.0
    if measure == "sm":
        return (a + d) / total
    if measure == "rr":
        return a / total
    # hamann
    return ((a + d) - (b + c)) / total


## Degree families


def _degree_method(net, sel, measure, mode):
    degs = {
        L: {a: net.layer_degree(a, L, mode) for a in net._vertices[L]} for L in sel
    }
    if measure in ("pearson", "rho"):

        def fn(A, B):
            common = [a for a in degs[A] if a in degs[B]]
            x = np.array([degs[A][a] for a in common], dtype=float)
            y = np.array([degs[B][a] for a in common], dtype=float)
            return _correlation(measure, x, y)

        return fn

    max_deg = max((max(d.values(), default=0) for d in degs.values()), default=0)
    hists = {L: _degree_histogram(list(degs[L].values()), max_deg) for L in sel}

    def fn(A, B):
        p, q = hists[A], hists[B]
        if p is None or q is None:
            return 0.0
        if measure == "dissimilarity":
            return 0.5 * float(np.abs(p - q).sum())
        if measure == "kl":
            return _kl(p, q)
        return _kl(p, q) + _kl(q, p)

    return fn


def _degree_histogram(values, max_deg):
    if not values:
        return None
    h = np.bincount(np.asarray(values, dtype=int), minlength=max_deg + 1).astype(float)
    return h / h.sum()


def _kl(p, q):
    p = p + _EPS
    q = q + _EPS
    p = p / p.sum()
    q = q / q.sum()
    return float(stats.entropy(p, q))


def _correlation(measure, x, y):
    # undefined correlations (fewer than two shared actors, constant degrees) map to 0
    if len(x) < 2 or np.all(x == x[0]) or np.all(y == y[0]):
        return 0.0
    if measure == "pearson":
        r = stats.pearsonr(x, y)[0]
    else:
        r = stats.spearmanr(x, y)[0]
    return 0.0 if np.isnan(r) else float(r)


__all__ = [
    "COMPARISON_METHODS",
    "comparison_value",
    "layer_comparison",
]
