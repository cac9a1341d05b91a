import math

import polars as pl
import pytest

from mlnet.algorithms.comparison import COMPARISON_METHODS, comparison_value, layer_comparison
from mlnet.core import MultiNet, ParameterError


def _cell(df, row, col):
    return df.filter(pl.col("layer") == row).get_column(col)[0]


def _path_net():
    """Same path a-b-c-d on two layers, plus a star on a third."""
    net = MultiNet()
    net.add_actors(list("abcd"))
    for L in ("P1", "P2", "S"):
        net.add_layer(L)
        for a in "abcd":
            net.add_vertex(a, L)
    for L in ("P1", "P2"):
        for u, v in (("a", "b"), ("b", "c"), ("c", "d")):
            net.add_edge(u, v, L)
    for v in "bcd":
        net.add_edge("a", v, "S")
    return net


def test_registry_declares_range_and_symmetry():
    for name, meta in COMPARISON_METHODS.items():
        lo, hi = meta["range"]
        assert lo < hi, name
        assert isinstance(meta["symmetric"], bool)
    assert COMPARISON_METHODS["coverage.edges"]["symmetric"] is False
    assert COMPARISON_METHODS["kl.degree"]["symmetric"] is False
    assert COMPARISON_METHODS["hamann.actors"]["range"] == (-1.0, 1.0)
    assert COMPARISON_METHODS["kl.degree"]["range"][1] == math.inf


def test_table_shape(office):
    df = layer_comparison(office, method="jaccard.actors")
    assert df.columns == ["layer", "work", "lunch", "email"]
    assert df["layer"].to_list() == ["work", "lunch", "email"]


def test_actor_overlap_values(office):
    assert comparison_value(office, "work", "lunch", "jaccard.actors") == pytest.approx(0.5)
    assert comparison_value(office, "work", "lunch", "coverage.actors") == pytest.approx(2 / 3)
    assert comparison_value(office, "work", "email", "coverage.actors") == pytest.approx(1.0)
    assert comparison_value(office, "email", "work", "coverage.actors") == pytest.approx(0.75)
    # universe: the five actors of the network
    assert comparison_value(office, "work", "lunch", "rr.actors") == pytest.approx(0.4)
    assert comparison_value(office, "work", "lunch", "sm.actors") == pytest.approx(0.6)
    assert comparison_value(office, "work", "lunch", "hamann.actors") == pytest.approx(0.2)
    assert comparison_value(office, "work", "lunch", "kulczynski2.actors") == pytest.approx(2 / 3)


def test_edge_and_triangle_overlap(office):
    df = layer_comparison(office, ["work", "lunch"], "jaccard.edges")
    assert _cell(df, "work", "lunch") == pytest.approx(0.25)
    tri = layer_comparison(office, ["work", "lunch"], "jaccard.triangles")
    assert _cell(tri, "work", "work") == 1.0
    assert _cell(tri, "work", "lunch") == 0.0
    # lunch has no triangle at all, and two empty sets are identical
    assert _cell(tri, "lunch", "lunch") == 1.0


@pytest.mark.parametrize("measure", ["jaccard", "coverage", "sm", "kulczynski2", "hamann"])
@pytest.mark.parametrize("prop", ["actors", "edges"])
def test_self_similarity_is_one(office, measure, prop):
    df = layer_comparison(office, method=f"{measure}.{prop}")
    for L in office.layers():
        assert _cell(df, L, L) == pytest.approx(1.0)


@pytest.mark.parametrize("method", sorted(COMPARISON_METHODS))
def test_symmetry_and_range(office, method):
    df = layer_comparison(office, method=method)
    meta = COMPARISON_METHODS[method]
    lo, hi = meta["range"]
    layers = office.layers()
    for A in layers:
        for B in layers:
            v = _cell(df, A, B)
            assert lo - 1e-12 <= v <= hi + 1e-12
            if meta["symmetric"]:
                assert v == pytest.approx(_cell(df, B, A))


def test_degree_distribution_methods():
    net = _path_net()
    assert comparison_value(net, "P1", "P2", "kl.degree") == pytest.approx(0.0, abs=1e-9)
    assert comparison_value(net, "P1", "P2", "dissimilarity.degree") == pytest.approx(0.0)
    # P1 degrees {1: 1/2, 2: 1/2}; S degrees {1: 3/4, 3: 1/4}
    assert comparison_value(net, "P1", "S", "dissimilarity.degree") == pytest.approx(0.5)
    kl_ps = comparison_value(net, "P1", "S", "kl.degree")
    kl_sp = comparison_value(net, "S", "P1", "kl.degree")
    assert kl_ps > 0 and kl_sp > 0
    assert comparison_value(net, "P1", "S", "jeffrey.degree") == pytest.approx(kl_ps + kl_sp)


def test_degree_correlations():
    net = _path_net()
    assert comparison_value(net, "P1", "P2", "pearson.degree") == pytest.approx(1.0)
    assert comparison_value(net, "P1", "P2", "rho.degree") == pytest.approx(1.0)
    # constant degrees make the correlation undefined
    assert comparison_value(_triangle_net(), "X", "Y", "pearson.degree") == 0.0


def _triangle_net():
    net = MultiNet()
    net.add_actors(list("abc"))
    for L in ("X", "Y"):
        net.add_layer(L)
        for a in "abc":
            net.add_vertex(a, L)
        net.add_edge("a", "b", L)
        net.add_edge("b", "c", L)
        net.add_edge("a", "c", L)
    return net


def test_unknown_method(office):
    with pytest.raises(ParameterError):
        layer_comparison(office, method="cosine.actors")
    with pytest.raises(ParameterError):
        layer_comparison(office, method="kl.degree", mode="sideways")


@pytest.mark.parametrize("measure", ["jaccard", "coverage", "kulczynski2"])
def test_empty_layers_are_self_similar(measure):
    net = MultiNet()
    net.add_actors(["a", "b"])
    net.add_layer("L")
    net.add_layer("E")
    net.add_vertex("a", "L")
    net.add_vertex("b", "L")
    net.add_edge("a", "b", "L")
    tri = layer_comparison(net, method=f"{measure}.triangles")
    assert _cell(tri, "L", "L") == 1.0
    edges = layer_comparison(net, method=f"{measure}.edges")
    assert _cell(edges, "E", "E") == 1.0
    assert _cell(edges, "L", "E") == 0.0


def _mixed_direction_net():
    """D1: a->b, D2: b->a, U: undirected a-b."""
    net = MultiNet()
    net.add_actors(["a", "b"])
    net.add_layer("D1", directed=True)
    net.add_layer("D2", directed=True)
    net.add_layer("U")
    for L in ("D1", "D2", "U"):
        net.add_vertex("a", L)
        net.add_vertex("b", L)
    net.add_edge("a", "b", "D1")
    net.add_edge("b", "a", "D2")
    net.add_edge("a", "b", "U")
    return net


def test_edge_orientation_is_decided_per_pair():
    net = _mixed_direction_net()
    df = layer_comparison(net, method="jaccard.edges")
    assert _cell(df, "D1", "D2") == 0.0
    assert _cell(df, "D1", "U") == 1.0
    assert _cell(df, "D2", "U") == 1.0


@pytest.mark.parametrize("method", ["jaccard.edges", "sm.edges", "rr.edges", "hamann.edges"])
def test_matrix_matches_single_cells(method):
    net = _mixed_direction_net()
    df = layer_comparison(net, method=method)
    for A in net.layers():
        for B in net.layers():
            assert _cell(df, A, B) == pytest.approx(comparison_value(net, A, B, method))
