from __future__ import annotations

from typing import TYPE_CHECKING

import networkx as nx
import polars as pl

from ..adapters.networkx_adapter import to_nx

if TYPE_CHECKING:
    from ..core.graph import MultiNet

FLAT = "_flat_"

_SUMMARY_SCHEMA = {
    "layer": pl.Utf8,
    "n": pl.Int64,
    "m": pl.Int64,
    "dir": pl.Boolean,
    "nc": pl.Int64,
    "slc": pl.Int64,
    "dens": pl.Float64,
    "cc": pl.Float64,
    "apl": pl.Float64,
    "dia": pl.Int64,
}


def layer_summary(net: MultiNet, layers=None, flat=True) -> pl.DataFrame:
    """Per-layer statistics, plus one row for the flattened network.

    Columns: ``layer, n`` (vertices), ``m`` (edges), ``dir``, ``nc`` (connected
    components, weak for directed layers), ``slc`` (size of the largest component),
    ``dens`` (density), ``cc`` (transitivity of the undirected view), ``apl``
    (average shortest-path length over reachable ordered pairs), ``dia`` (largest
    finite shortest-path length). Empty layers report zeros.
    """
    sel = net._layer_selection(layers)
    rows = [_graph_stats(L, to_nx(net, [L])) for L in sel]
    if flat:
        rows.append(_graph_stats(FLAT, to_nx(net, sel)))
    return pl.DataFrame(rows, schema=_SUMMARY_SCHEMA)


def _graph_stats(name, G) -> dict:
    n = G.number_of_nodes()
    row = {
        "layer": name,
        "n": n,
        "m": G.number_of_edges(),
        "dir": G.is_directed(),
        "nc": 0,
        "slc": 0,
        "dens": 0.0,
        "cc": 0.0,
        "apl": 0.0,
        "dia": 0,
    }
    if n == 0:
        return row
    comps = list(nx.weakly_connected_components(G) if G.is_directed() else nx.connected_components(G))
    row["nc"] = len(comps)
    row["slc"] = max(len(c) for c in comps)
    row["dens"] = float(nx.density(G))
    row["cc"] = float(nx.transitivity(G.to_undirected(as_view=True)))

    total, pairs, dia = 0, 0, 0
    for _, dists in nx.all_pairs_shortest_path_length(G):
        for d in dists.values():
            if d > 0:
                total += d
                pairs += 1
                dia = max(dia, d)
    row["apl"] = total / pairs if pairs else 0.0
    row["dia"] = dia
    return row
