"""Stochastic multilayer growth.

Every layer is driven by an internal evolution model and two probabilities:
``pr_internal`` (grow the layer with its own model) and ``pr_external``
(import one edge from another layer, chosen through the ``dependency``
weights). The remaining mass ``1 - pr_internal - pr_external`` is the
probability of doing nothing. At each step every layer draws its action
independently, in layer order, from one ``numpy.random.Generator``; a fixed
seed therefore reproduces the network and the action log exactly.
"""

from __future__ import annotations

import numpy as np
import polars as pl

from ..core._helpers import ParameterError


class PreferentialAttachment:
    """Internal model: growth by degree-preferential attachment.

    The layer starts as a clique on ``m0`` actors drawn from the pool. Each
    internal step adds one pool actor that is not yet on the layer and joins
    it to ``m`` distinct existing vertices, chosen with probability
    proportional to ``degree + 1``.
    """

    def __init__(self, m0: int = 2, m: int = 1):
        if m0 < 1:
            raise ParameterError(f"m0 must be >= 1, got {m0}")
        if m < 1 or m > m0:
            raise ParameterError(f"m must satisfy 1 <= m <= m0, got m={m}, m0={m0}")
        self.m0 = int(m0)
        self.m = int(m)

    def __repr__(self):
        return f"PreferentialAttachment(m0={self.m0}, m={self.m})"

    def init_step(self, net, layer, pool, rng):
        chosen = rng.choice(len(pool), size=min(self.m0, len(pool)), replace=False)
        seeds = [pool[i] for i in sorted(chosen)]
        for a in seeds:
            _ensure_vertex(net, a, layer)
        for i, u in enumerate(seeds):
            for v in seeds[i + 1 :]:
                net.add_edge(u, v, layer)

    def evolution_step(self, net, layer, pool, rng):
        """Add one actor; returns False when the pool is exhausted on ``layer``."""
        present = list(net._vertices[layer])
        candidates = [a for a in pool if a not in net._vertices[layer]]
        if not candidates or not present:
            return False
        new = candidates[rng.integers(len(candidates))]
        weights = np.array([net.layer_degree(a, layer) + 1 for a in present], dtype=float)
        k = min(self.m, len(present))
        targets = rng.choice(len(present), size=k, replace=False, p=weights / weights.sum())
        net.add_vertex(new, layer)
        for i in sorted(targets):
            net.add_edge(new, present[i], layer)
        return True


class RandomAttachment:
    """Internal model: uniform random edges.

    The layer starts with ``n`` vertices drawn from the pool and no edges.
    Each internal step picks two distinct pool actors uniformly, adds their
    vertices if missing and joins them unless the edge already exists.
    """

    def __init__(self, n: int = 2):
        if n < 0:
            raise ParameterError(f"n must be >= 0, got {n}")
        self.n = int(n)

    def __repr__(self):
        return f"RandomAttachment(n={self.n})"

    def init_step(self, net, layer, pool, rng):
        chosen = rng.choice(len(pool), size=min(self.n, len(pool)), replace=False)
        for i in sorted(chosen):
            _ensure_vertex(net, pool[i], layer)

    def evolution_step(self, net, layer, pool, rng):
        if len(pool) < 2:
            return False
        i, j = rng.choice(len(pool), size=2, replace=False)
        u, v = pool[i], pool[j]
        if net.has_vertex(u, layer) and net.has_vertex(v, layer) and net.has_edge(u, v, layer):
            return False
        _ensure_vertex(net, u, layer)
        _ensure_vertex(net, v, layer)
        net.add_edge(u, v, layer)
        return True


def _ensure_vertex(net, actor, layer):
    if not net.has_vertex(actor, layer):
        net.add_vertex(actor, layer)


def _as_layer_map(value, layers, what, default=0.0):
    """Broadcast a scalar to every layer, or validate a per-layer mapping."""
    if isinstance(value, dict):
        unknown = [L for L in value if L not in layers]
        if unknown:
            raise ParameterError(f"{what}: unknown layer(s) {unknown}")
        return {L: value.get(L, default) for L in layers}
    if isinstance(value, (list, tuple)):
        if len(value) != len(layers):
            raise ParameterError(f"{what}: expected {len(layers)} values, got {len(value)}")
        return dict(zip(layers, value))
    return dict.fromkeys(layers, value)


def grow(
    num_actors: int,
    num_steps: int,
    models,
    pr_internal=0.5,
    pr_external=0.0,
    dependency=None,
    seed=None,
    directed=False,
):
    """Grow a synthetic multilayer network.

    Parameters
    --
    num_actors : int
        Size of the actor pool (``A0 .. A{n-1}``); every actor is created up front.
    num_steps : int
        Number of evolution steps.
    models : dict[str, PreferentialAttachment | RandomAttachment]
        One internal model per layer; the keys name the layers, in order.
    pr_internal, pr_external : float | list | dict
        Per-layer action probabilities (a scalar applies to every layer). Their sum
        must not exceed 1 on any layer.
    dependency : dict[str, dict[str, float]], optional
        ``dependency[target][source]`` weights the choice of the layer an external
        step on ``target`` copies from; weights are normalized per target.
    seed : int | None
        Seed of the ``numpy.random.default_rng`` driving the whole run.
    directed : bool | dict
        Directionality of the generated layers.

    Returns
    ---
    (MultiNet, polars.DataFrame)
        The network, and the action log with columns ``step, layer, action,
        accepted`` (one row per layer per step; ``action`` is ``internal``,
        ``external`` or ``none``; ``accepted`` is False when the action changed
        nothing, e.g. the copied edge already existed).

    Raises
    --
    ParameterError
        On negative probabilities, probabilities summing above 1, an external
        probability without dependency weights, or dependencies naming unknown
        layers.

    """
    from ..core.graph import MultiNet

    if num_actors < 0 or num_steps < 0:
        raise ParameterError("num_actors and num_steps must be >= 0")
    if not models:
        raise ParameterError("at least one layer model is required")
    layers = list(models)
    p_int = _as_layer_map(pr_internal, layers, "pr_internal")
    p_ext = _as_layer_map(pr_external, layers, "pr_external")
    dirs = _as_layer_map(directed, layers, "directed", default=False)

    dependency = dependency or {}
    for target, weights in dependency.items():
        if target not in models:
            raise ParameterError(f"dependency: unknown target layer {target!r}")
        for source, w in weights.items():
            if source not in models:
                raise ParameterError(f"dependency: unknown source layer {source!r}")
            if w < 0:
                raise ParameterError(f"dependency: negative weight {target!r} <- {source!r}")

    sources = {}
    for L in layers:
        pi, pe = float(p_int[L]), float(p_ext[L])
        if pi < 0 or pe < 0:
            raise ParameterError(f"layer {L!r}: probabilities must be >= 0")
        if pi + pe > 1.0 + 1e-12:
            raise ParameterError(
                f"layer {L!r}: pr_internal + pr_external = {pi + pe} exceeds 1"
            )
        weights = {s: w for s, w in dependency.get(L, {}).items() if s != L and w > 0}
        if pe > 0 and not weights:
            raise ParameterError(
                f"layer {L!r}: pr_external > 0 requires dependency weights on other layers"
            )
        if weights:
            total = sum(weights.values())
            sources[L] = (list(weights), np.array(list(weights.values()), dtype=float) / total)

    rng = np.random.default_rng(seed)
    net = MultiNet("grown")
    pool = [f"A{i}" for i in range(num_actors)]
    net.add_actors(pool)
    for L in layers:
        net.add_layer(L, directed=dirs[L])
        models[L].init_step(net, L, pool, rng)

    log = []
    for step in range(num_steps):
        for L in layers:
            r = rng.random()
            if r < p_int[L]:
                action = "internal"
                accepted = models[L].evolution_step(net, L, pool, rng)
            elif r < p_int[L] + p_ext[L]:
                action = "external"
                names, probs = sources[L]
                src = names[rng.choice(len(names), p=probs)]
                accepted = _import_edge(net, src, L, rng)
            else:
                action = "none"
                accepted = False
            log.append({"step": step, "layer": L, "action": action, "accepted": bool(accepted)})

    schema = {"step": pl.Int64, "layer": pl.Utf8, "action": pl.Utf8, "accepted": pl.Boolean}
    return net, pl.DataFrame(log, schema=schema)


def _import_edge(net, source_layer, target_layer, rng):
    """Copy one random edge of ``source_layer`` onto ``target_layer``."""
    edges = list(net._edges[source_layer])
    if not edges:
        return False
    u, v = edges[rng.integers(len(edges))]
    if net.has_edge(u, v, target_layer):
        return False
    _ensure_vertex(net, u, target_layer)
    _ensure_vertex(net, v, target_layer)
    net.add_edge(u, v, target_layer)
    return True


__all__ = ["PreferentialAttachment", "RandomAttachment", "grow"]
