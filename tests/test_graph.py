# test_graph.py
import json
import os
import sys
import threading
import unittest

import polars as pl
import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from mlnet.core import (
    AttrType,
    MultiNet,
    MultiNetError,
    SchemaError,
    UnknownReferenceError,
)


class TestStoreBasics(unittest.TestCase):
    def setUp(self):
        self.g = MultiNet("t")
        self.g.add_actors(["a", "b", "c"])
        self.g.add_layer("U")
        self.g.add_layer("D", directed=True)
        for L in ("U", "D"):
            for a in ("a", "b"):
                self.g.add_vertex(a, L)

    def test_counts_and_enumeration(self):
        self.g.add_edge("a", "b", "U")
        self.assertEqual(self.g.num_actors(), 3)
        self.assertEqual(self.g.num_layers(), 2)
        self.assertEqual(self.g.num_vertices(), 4)
        self.assertEqual(self.g.num_vertices("U"), 2)
        self.assertEqual(self.g.num_edges(), 1)
        self.assertEqual(self.g.layers(), ["U", "D"])
        self.assertEqual(self.g.vertices("D"), [("a", "D"), ("b", "D")])
        self.assertEqual(self.g.edges(), [("a", "b", "U")])
        self.assertEqual(self.g.actors(layers=["U"]), ["a", "b"])

    def test_duplicate_layer_and_actor(self):
        with self.assertRaises(SchemaError):
            self.g.add_layer("U")
        with self.assertRaises(SchemaError):
            self.g.add_actor("a")

    def test_errors_are_builtin_compatible(self):
        with self.assertRaises(KeyError):
            self.g.add_vertex("zz", "U")
        with self.assertRaises(ValueError):
            self.g.add_layer("U")
        with self.assertRaises(MultiNetError):
            self.g.add_vertex("a", "nope")

    def test_vertex_requires_actor_and_layer(self):
        with self.assertRaises(UnknownReferenceError):
            self.g.add_vertex("zz", "U")
        with self.assertRaises(UnknownReferenceError):
            self.g.add_vertex("c", "nope")
        with self.assertRaises(SchemaError):
            self.g.add_vertex("a", "U")

    def test_edge_requires_colayer_vertices(self):
        # c exists as an actor but has no vertex on U
        with self.assertRaises(UnknownReferenceError):
            self.g.add_edge("a", "c", "U")

    def test_undirected_duplicates_either_orientation(self):
        self.g.add_edge("a", "b", "U")
        with self.assertRaises(SchemaError):
            self.g.add_edge("b", "a", "U")
        self.assertTrue(self.g.has_edge("b", "a", "U"))

    def test_directed_orientations_are_distinct(self):
        self.g.add_edge("a", "b", "D")
        self.assertFalse(self.g.has_edge("b", "a", "D"))
        self.g.add_edge("b", "a", "D")
        self.assertEqual(self.g.num_edges("D"), 2)

    def test_self_loop_rejected(self):
        with self.assertRaises(SchemaError):
            self.g.add_edge("a", "a", "U")

    def test_remove_actor_while_referenced(self):
        with self.assertRaises(SchemaError):
            self.g.remove_actor("a")
        self.g.remove_actor("c")
        self.assertFalse(self.g.has_actor("c"))

    def test_remove_vertex_drops_incident_edges(self):
        self.g.add_edge("a", "b", "U")
        self.g.remove_vertex("a", "U")
        self.assertEqual(self.g.num_edges("U"), 0)
        self.assertEqual(self.g.neighbors("b", ["U"]), [])
        self.g.remove_vertex("a", "D")
        self.g.remove_actor("a")
        self.assertEqual(self.g.actors(), ["b", "c"])

    def test_remove_edge_either_orientation(self):
        self.g.add_edge("a", "b", "U")
        self.g.remove_edge("b", "a", "U")
        self.assertFalse(self.g.has_edge("a", "b", "U"))
        with self.assertRaises(UnknownReferenceError):
            self.g.remove_edge("a", "b", "U")

    def test_edges_filtered_by_actors(self):
        self.g.add_vertex("c", "U")
        self.g.add_edge("a", "b", "U")
        self.g.add_edge("b", "c", "U")
        self.assertEqual(self.g.edges(actors=["a", "b"]), [("a", "b", "U")])

    def test_neighbors_modes(self):
        self.g.add_edge("a", "b", "D")
        self.assertEqual(self.g.out_neighbors("a"), ["b"])
        self.assertEqual(self.g.in_neighbors("a"), [])
        self.assertEqual(self.g.predecessors("b"), ["a"])
        self.assertEqual(self.g.neighbors("b"), ["a"])

    def test_views(self):
        self.g.add_edge("a", "b", "D")
        ev = self.g.edges_view()
        self.assertEqual(ev.columns, ["source", "target", "layer", "directed"])
        self.assertEqual(ev.row(0), ("a", "b", "D", True))
        self.assertEqual(self.g.vertices_view().height, 4)
        self.assertEqual(self.g.actors_view()["actor"].to_list(), ["a", "b", "c"])
        lv = self.g.layers_view()
        self.assertEqual(lv.filter(pl.col("layer") == "D")["directed"][0], True)


class TestAttributes(unittest.TestCase):
    def setUp(self):
        self.g = MultiNet()
        self.g.add_actors(["a", "b"])
        self.g.add_layer(
            "L",
            attributes={"vertex": {"role": "STRING"}, "edge": {"since": "INTEGER"}},
        )
        self.g.add_layer("M")
        self.g.add_vertex("a", "L")
        self.g.add_vertex("b", "L")
        self.g.add_edge("a", "b", "L")

    def test_actor_attribute_roundtrip(self):
        self.g.add_attribute("age", "NUMERIC")
        self.g.set_actor_attrs("a", age=42)
        self.assertEqual(self.g.get_actor_attr("a", "age"), 42.0)
        self.assertIsNone(self.g.get_actor_attr("b", "age"))
        self.assertEqual(self.g.get_actor_attrs("a"), {"age": 42.0})
        self.assertEqual(self.g.attribute_type("age"), AttrType.NUMERIC)

    def test_type_is_enforced(self):
        self.g.add_attribute("age", "NUMERIC")
        with self.assertRaises(SchemaError):
            self.g.set_actor_attrs("a", age="old")
        with self.assertRaises(SchemaError):
            self.g.set_actor_attrs("a", age=True)

    def test_undeclared_attribute(self):
        with self.assertRaises(UnknownReferenceError):
            self.g.set_actor_attrs("a", color="red")
        with self.assertRaises(UnknownReferenceError):
            self.g.add_vertex("a", "M", role="x")

    def test_declaration_errors(self):
        with self.assertRaises(SchemaError):
            self.g.add_attribute("role", "STRING", scope="vertex", layer="L")
        with self.assertRaises(SchemaError):
            self.g.add_attribute("layer", "STRING", scope="vertex", layer="L")
        with self.assertRaises(SchemaError):
            self.g.add_attribute("x", "STRING", scope="edge")
        with self.assertRaises(SchemaError):
            self.g.add_attribute("x", "STRING", scope="actor", layer="L")
        with self.assertRaises(SchemaError):
            self.g.add_attribute("x", "BLOB")

    def test_same_name_on_different_layers(self):
        self.g.add_attribute("role", "NUMERIC", scope="vertex", layer="M")
        self.assertEqual(self.g.attribute_type("role", "vertex", "L"), AttrType.STRING)
        self.assertEqual(self.g.attribute_type("role", "vertex", "M"), AttrType.NUMERIC)

    def test_vertex_and_edge_attributes(self):
        self.g.set_vertex_attrs("a", "L", role="lead")
        self.g.set_edge_attrs("b", "a", "L", since=2010)
        self.assertEqual(self.g.get_vertex_attr("a", "L", "role"), "lead")
        self.assertEqual(self.g.get_edge_attr("a", "b", "L", "since"), 2010.0)
        self.assertEqual(self.g.edge_attributes("L").height, 1)
        # overwrite keeps one row
        self.g.set_vertex_attrs("a", "L", role="member")
        self.assertEqual(self.g.vertex_attributes("L").height, 1)
        self.assertEqual(self.g.get_vertex_attrs("a", "L"), {"role": "member"})

    def test_attributes_table(self):
        df = self.g.attributes(scope="edge")
        self.assertEqual(df.to_dicts(), [{"scope": "edge", "layer": "L", "name": "since", "type": "NUMERIC"}])

    def test_removing_edge_drops_its_values(self):
        self.g.set_edge_attrs("a", "b", "L", since=1999)
        self.g.remove_edge("a", "b", "L")
        self.assertEqual(self.g.edge_attributes("L").height, 0)


class TestAlignAndFlatten(unittest.TestCase):
    def setUp(self):
        self.g = MultiNet()
        self.g.add_actors(["a", "b", "c"])
        self.g.add_layer("L1")
        self.g.add_layer("L2")
        self.g.add_vertex("a", "L1")
        self.g.add_vertex("b", "L1")
        self.g.add_vertex("a", "L2")
        self.g.add_vertex("b", "L2")
        self.g.add_vertex("c", "L2")
        self.g.add_edge("a", "b", "L1")
        self.g.add_edge("b", "a", "L2")
        self.g.add_edge("b", "c", "L2")

    def test_align(self):
        self.assertFalse(self.g.is_aligned())
        added = self.g.align()
        self.assertEqual(added, 1)
        self.assertTrue(self.g.is_aligned())
        self.assertEqual(self.g.neighbors("c", ["L1"]), [])
        self.assertEqual(self.g.align(), 0)

    def test_flatten_union(self):
        self.g.flatten("flat")
        self.assertFalse(self.g.is_directed("flat"))
        self.assertEqual(self.g.layer_vertex_set("flat"), {"a", "b", "c"})
        self.assertEqual(self.g.num_edges("flat"), 2)

    def test_flatten_weighted(self):
        self.g.flatten("w", method="weighted")
        self.assertEqual(self.g.get_edge_attr("a", "b", "w", "weight"), 2.0)
        self.assertEqual(self.g.get_edge_attr("c", "b", "w", "weight"), 1.0)

    def test_flatten_directed_only_when_all_directed(self):
        self.g.add_layer("D", directed=True)
        self.g.add_vertex("a", "D")
        self.g.add_vertex("c", "D")
        self.g.add_edge("c", "a", "D")
        with pytest.warns(UserWarning):
            self.g.flatten("mixed")
        self.assertFalse(self.g.is_directed("mixed"))
        self.g.flatten("only_d", layers=["D"])
        self.assertTrue(self.g.is_directed("only_d"))
        self.g.flatten("forced", force_directed=True, layers=["L1", "D"])
        self.assertTrue(self.g.has_edge("a", "b", "forced"))
        self.assertTrue(self.g.has_edge("b", "a", "forced"))
        self.assertFalse(self.g.has_edge("a", "c", "forced"))

    def test_flatten_bad_method(self):
        with self.assertRaises(SchemaError):
            self.g.flatten("x", method="sum")


class TestHistory(unittest.TestCase):
    def setUp(self):
        self.g = MultiNet()

    def test_mutations_are_logged(self):
        self.g.add_actor("a")
        self.g.add_layer("L")
        self.g.add_vertex("a", "L")
        ops = [e["op"] for e in self.g.history()]
        self.assertEqual(ops, ["add_actor", "add_layer", "add_vertex"])
        versions = [e["version"] for e in self.g.history()]
        self.assertEqual(versions, sorted(versions))

    def test_nested_calls_log_outer_only(self):
        self.g.add_actors(["a", "b"])
        self.g.add_layer("L")
        self.g.clear_history()
        self.g.align()
        ops = [e["op"] for e in self.g.history()]
        self.assertEqual(ops, ["align"])
        self.assertEqual(json.loads(self.g.history()[0]["result"]), 2)

    def test_disable_and_mark(self):
        self.g.enable_history(False)
        self.g.add_actor("a")
        self.assertEqual(self.g.history(), [])
        self.g.enable_history(True)
        self.g.mark("checkpoint")
        self.assertEqual(self.g.history()[-1]["label"], "checkpoint")

    def test_history_dataframe(self):
        self.g.add_actor("a")
        self.g.add_layer("L", directed=True)
        df = self.g.history(as_df=True)
        self.assertIsInstance(df, pl.DataFrame)
        self.assertEqual(df.height, 2)
        self.assertIn("op", df.columns)

    def test_failed_mutation_not_logged(self):
        self.g.add_actor("a")
        with self.assertRaises(SchemaError):
            self.g.add_actor("a")
        self.assertEqual(len(self.g.history()), 1)


def test_export_history(tmp_path):
    g = MultiNet()
    g.add_actor("a")
    g.add_layer("L")
    path = tmp_path / "hist.csv"
    assert g.export_history(str(path)) == 2
    assert pl.read_csv(path).height == 2
    assert MultiNet().export_history(str(tmp_path / "empty.csv")) == 0


def test_copy_is_independent():
    g = MultiNet("orig")
    g.add_actors(["a", "b"])
    g.add_layer("L")
    g.add_attribute("age")
    g.set_actor_attrs("a", age=1)
    g.add_vertex("a", "L")
    g.add_vertex("b", "L")
    h = g.copy()
    h.add_edge("a", "b", "L")
    h.set_actor_attrs("a", age=2)
    assert g.num_edges() == 0
    assert g.get_actor_attr("a", "age") == 1.0
    assert h.get_actor_attr("a", "age") == 2.0
    assert h.history()[0]["op"] == "add_edge"


def test_repr_mentions_counts():
    g = MultiNet("x")
    g.add_actor("a")
    assert "actors=1" in repr(g)


def test_readers_wait_for_the_lock():
    net = MultiNet()
    net.add_actors(["a", "b", "c"])
    net.add_layer("L")
    net.add_vertex("a", "L")
    net.add_vertex("b", "L")
    net.add_edge("a", "b", "L")
    seen = []
    reader = threading.Thread(target=lambda: seen.append((net.edges(), net.neighbors("a"))))
    with net._lock:
        reader.start()
        reader.join(timeout=0.2)
        assert reader.is_alive()
        net.add_vertex("c", "L")
        net.add_edge("a", "c", "L")
    reader.join(timeout=5)
    assert not reader.is_alive()
    assert seen == [([("a", "b", "L"), ("a", "c", "L")], ["b", "c"])]


def test_concurrent_reads_during_writes():
    net = MultiNet()
    net.add_layer("L")
    actors = [f"n{i}" for i in range(200)]
    net.add_actors(actors)
    for a in actors:
        net.add_vertex(a, "L")
    errors = []

    def writer():
        for u, v in zip(actors, actors[1:]):
            net.add_edge(u, v, "L")

    t = threading.Thread(target=writer)
    t.start()
    while t.is_alive():
        try:
            net.edges()
            net.vertices()
            net.neighbors("n1")
        except RuntimeError as e:
            errors.append(e)
    t.join()
    assert errors == []
    assert net.num_edges("L") == 199
