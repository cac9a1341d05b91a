"""Actor-level multilayer measures.

Every measure takes an optional layer subset (all layers when omitted) and a
``mode`` for directed layers (``"all"`` = in + out, ``"in"``, ``"out"``).
An actor that has no vertex on a layer contributes degree 0 and no
neighbors there; an actor unknown to the network raises
``UnknownReferenceError``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import polars as pl

from ..core._helpers import _check_mode

if TYPE_CHECKING:
    from ..core.graph import MultiNet


def degree(net: MultiNet, actor, layers=None, mode="all") -> int:
    """Incident edges of ``actor`` summed over the selected layers."""
    net._require_actor(actor)
    _check_mode(mode)
    return sum(net.layer_degree(actor, L, mode) for L in net._layer_selection(layers))


def neighborhood(net: MultiNet, actor, layers=None, mode="all") -> int:
    """Distinct actors adjacent to ``actor`` through the selected layers."""
    return len(net.neighbors(actor, layers, mode))


def xneighborhood(net: MultiNet, actor, layers, mode="all") -> int:
    """Exclusive neighborhood: neighbors on ``layers`` with no edge to ``actor`` elsewhere."""
    selected = net._layer_selection(layers)
    others = [L for L in net.layers() if L not in selected]
    inside = set(net.neighbors(actor, selected, mode))
    outside = set(net.neighbors(actor, others, mode))
    return len(inside - outside)


def relevance(net: MultiNet, actor, layers, mode="all") -> float:
    """Share of the neighborhood of ``actor`` reachable through ``layers``.

    0 when the actor has no neighbor at all.
    """
    total = neighborhood(net, actor, None, mode)
    if total == 0:
        return 0.0
    return neighborhood(net, actor, layers, mode) / total


def xrelevance(net: MultiNet, actor, layers, mode="all") -> float:
    """Share of the neighborhood of ``actor`` reachable only through ``layers``."""
    total = neighborhood(net, actor, None, mode)
    if total == 0:
        return 0.0
    return xneighborhood(net, actor, layers, mode) / total


def degree_deviation(net: MultiNet, actor, layers=None, mode="all") -> float:
    """Population standard deviation of the per-layer degrees of ``actor``."""
    net._require_actor(actor)
    _check_mode(mode)
    sel = net._layer_selection(layers)
    if not sel:
        return 0.0
    degs = np.array([net.layer_degree(actor, L, mode) for L in sel], dtype=float)
    return float(degs.std())


def actor_measures(net: MultiNet, actors=None, layers=None, mode="all") -> pl.DataFrame:
    """All actor measures as one table.

    Parameters
    --
    net : MultiNet
    actors : iterable[str], optional
        Defaults to every actor.
    layers : iterable[str], optional
        Layer subset the measures are computed on; relevance is always relative to
        the whole network.
    mode : {"all", "in", "out"}

    Returns
    ---
    polars.DataFrame
        Columns ``actor, degree, neighborhood, xneighborhood, relevance, xrelevance,
        degree_deviation``; one row per actor, in network order.

    """
    _check_mode(mode)
    actors = net.actors() if actors is None else list(actors)
    sel = net._layer_selection(layers)
    rows = []
    for a in actors:
        rows.append(
            {
                "actor": a,
                "degree": degree(net, a, sel, mode),
                "neighborhood": neighborhood(net, a, sel, mode),
                "xneighborhood": xneighborhood(net, a, sel, mode),
                "relevance": relevance(net, a, sel, mode),
                "xrelevance": xrelevance(net, a, sel, mode),
                "degree_deviation": degree_deviation(net, a, sel, mode),
            }
        )
    schema = {
        "actor": pl.Utf8,
        "degree": pl.Int64,
        "neighborhood": pl.Int64,
        "xneighborhood": pl.Int64,
        "relevance": pl.Float64,
        "xrelevance": pl.Float64,
        "degree_deviation": pl.Float64,
    }
    return pl.DataFrame(rows, schema=schema)


def layer_degrees(net: MultiNet, actors=None, layers=None, mode="all") -> pl.DataFrame:
    """Actor x layer degree table (``actor`` column plus one Int64 column per layer)."""
    _check_mode(mode)
    actors = net.actors() if actors is None else list(actors)
    sel = net._layer_selection(layers)
    for a in actors:
        net._require_actor(a)
    data = {"actor": actors}
    for L in sel:
        data[L] = [net.layer_degree(a, L, mode) for a in actors]
    schema = {"actor": pl.Utf8, **{L: pl.Int64 for L in sel}}
    return pl.DataFrame(data, schema=schema)
