"""Shared fixtures for mlnet tests."""

import io
import pathlib
import sys

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]  # project root
sys.path.insert(0, str(ROOT))

from mlnet.core.graph import MultiNet  # noqa: E402
from mlnet.io.ml_io import read_ml  # noqa: E402

# ======================================================================
# FIXTURES
# ======================================================================

EXAMPLE_EDGES = """\
Luca,Matteo,research
Davide,Matteo,research
Luca,Matteo,friendship
"""


@pytest.fixture
def example_text():
    """Plain edge list: three actors, two undirected layers."""
    return EXAMPLE_EDGES


@pytest.fixture
def example_net():
    return read_ml(io.StringIO(EXAMPLE_EDGES))


def build_office() -> MultiNet:
    """Five actors on two undirected layers and one directed layer.

    work:  A-B, A-C, B-C
    lunch: A-B, A-D
    email: A->B, C->A, E->A
    """
    net = MultiNet("office")
    net.add_actors(["A", "B", "C", "D", "E"])
    net.add_layer("work")
    net.add_layer("lunch")
    net.add_layer("email", directed=True)
    for a in "ABC":
        net.add_vertex(a, "work")
    for a in "ABD":
        net.add_vertex(a, "lunch")
    for a in "ABCE":
        net.add_vertex(a, "email")
    for u, v in (("A", "B"), ("A", "C"), ("B", "C")):
        net.add_edge(u, v, "work")
    for u, v in (("A", "B"), ("A", "D")):
        net.add_edge(u, v, "lunch")
    for u, v in (("A", "B"), ("C", "A"), ("E", "A")):
        net.add_edge(u, v, "email")
    return net


@pytest.fixture
def office():
    return build_office()


def build_two_cliques() -> MultiNet:
    """Two 4-cliques (a-d, e-h) on layers L1 and L2, bridged by d-e on L1 only."""
    net = MultiNet("two-cliques")
    actors = list("abcdefgh")
    net.add_actors(actors)
    for L in ("L1", "L2"):
        net.add_layer(L)
        for a in actors:
            net.add_vertex(a, L)
        for group in ("abcd", "efgh"):
            for i, u in enumerate(group):
                for v in group[i + 1 :]:
                    net.add_edge(u, v, L)
    net.add_edge("d", "e", "L1")
    return net


@pytest.fixture
def two_cliques():
    return build_two_cliques()
