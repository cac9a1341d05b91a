"""Multilayer distance as a Pareto front of per-layer path lengths.

A path may change layer at any actor present on both layers. Its length is
a vector with one component per layer (edges walked on that layer); two
vectors are incomparable unless one is component-wise <= the other. The
distance between two actors is the set of non-dominated vectors.

The search is a label-setting BFS: labels are expanded in order of total
length, so a label popped from the queue can never be dominated by one
found later (a dominating vector has a strictly smaller total).
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

import polars as pl

if TYPE_CHECKING:
    from ..core.graph import MultiNet


def dominates(x, y) -> bool:
    """True if ``x`` is component-wise <= ``y`` and differs from it."""
    return x != y and all(a <= b for a, b in zip(x, y))


def _pareto_labels(net: MultiNet, source, layers):
    net._require_actor(source)
    layers = net._layer_selection(layers)
    index = {L: i for i, L in enumerate(layers)}
    zero = (0,) * len(layers)
    labels = {source: [zero]}
    queue = deque([(source, zero)])
    while queue:
        actor, vec = queue.popleft()
        # skip labels pruned after they were queued
        if vec not in labels[actor]:
            continue
        for L in layers:
            if actor not in net._vertices[L]:
                continue
            i = index[L]
            nxt = vec[:i] + (vec[i] + 1,) + vec[i + 1 :]
            for nb in net._layer_neighbors(actor, L, "out"):
                front = labels.setdefault(nb, [])
                if any(f == nxt or dominates(f, nxt) for f in front):
                    continue
                front[:] = [f for f in front if not dominates(nxt, f)]
                front.append(nxt)
                queue.append((nb, nxt))
    return layers, labels


def pareto_distance(net: MultiNet, source, target, layers=None):
    """Non-dominated path-length vectors from ``source`` to ``target``.

    Parameters
    --
    net : MultiNet
    source, target : str
        Actors.
    layers : iterable[str], optional
        Layers the paths may use (all by default).

    Returns
    ---
    list[dict[str, int]]
        One ``{layer: edges walked}`` mapping per Pareto-optimal vector, sorted by
        total length then lexicographically. Empty when ``target`` is unreachable;
        ``[{L: 0, ...}]`` when ``source == target``.

    """
    net._require_actor(target)
    sel, labels = _pareto_labels(net, source, layers)
    return [dict(zip(sel, vec)) for vec in sorted(labels.get(target, []), key=_order)]


def distance_table(net: MultiNet, source, targets=None, layers=None) -> pl.DataFrame:
    """Pareto fronts from ``source`` to many targets in a single search.

    Returns
    ---
    polars.DataFrame
        Columns ``from, to`` plus one Int64 column per layer, one row per
        Pareto-optimal vector. Unreachable targets have no rows.

    """
    sel, labels = _pareto_labels(net, source, layers)
    targets = [a for a in net.actors() if a != source] if targets is None else list(targets)
    rows = []
    for t in targets:
        net._require_actor(t)
        for vec in sorted(labels.get(t, []), key=_order):
            rows.append({"from": source, "to": t, **dict(zip(sel, vec))})
    schema = {"from": pl.Utf8, "to": pl.Utf8, **{L: pl.Int64 for L in sel}}
    return pl.DataFrame(rows, schema=schema)


def _order(vec):
    return (sum(vec), vec)
