import unittest

import numpy as np
import polars as pl

from mlnet.core import ParameterError
from mlnet.generation import PreferentialAttachment, RandomAttachment, grow


def _models():
    return {"L1": PreferentialAttachment(3, 2), "L2": RandomAttachment(0)}


class TestGrowth(unittest.TestCase):
    def test_fixed_seed_is_deterministic(self):
        kw = dict(
            pr_internal={"L1": 0.6, "L2": 0.2},
            pr_external={"L1": 0.0, "L2": 0.5},
            dependency={"L2": {"L1": 1.0}},
            seed=42,
        )
        net_a, log_a = grow(25, 30, _models(), **kw)
        net_b, log_b = grow(25, 30, _models(), **kw)
        self.assertTrue(log_a.equals(log_b))
        self.assertEqual(net_a.edges(), net_b.edges())
        self.assertEqual(net_a.vertices(), net_b.vertices())

    def test_action_log_shape(self):
        _, log = grow(10, 7, _models(), pr_internal=0.5, seed=1)
        self.assertEqual(log.columns, ["step", "layer", "action", "accepted"])
        self.assertEqual(log.height, 14)
        self.assertTrue(set(log["action"].to_list()) <= {"internal", "external", "none"})
        self.assertFalse(log.filter(pl.col("action") == "none")["accepted"].any())

    def test_pool_and_initial_layers(self):
        net, _ = grow(12, 0, _models(), seed=0)
        self.assertEqual(net.actors(), [f"A{i}" for i in range(12)])
        # a 3-clique seeds L1; L2 starts empty
        self.assertEqual(net.num_vertices("L1"), 3)
        self.assertEqual(net.num_edges("L1"), 3)
        self.assertEqual(net.num_vertices("L2"), 0)

    def test_preferential_attachment_adds_one_actor_per_step(self):
        net, log = grow(20, 10, {"L": PreferentialAttachment(2, 1)}, pr_internal=1.0, seed=5)
        self.assertTrue(log["accepted"].all())
        self.assertEqual(net.num_vertices("L"), 12)
        self.assertEqual(net.num_edges("L"), 11)

    def test_external_edges_come_from_the_source_layer(self):
        net, log = grow(
            20,
            25,
            _models(),
            pr_internal={"L1": 1.0, "L2": 0.0},
            pr_external={"L1": 0.0, "L2": 1.0},
            dependency={"L2": {"L1": 1.0}},
            seed=11,
        )
        l1 = {frozenset((u, v)) for u, v, _ in net.edges("L1")}
        l2 = {frozenset((u, v)) for u, v, _ in net.edges("L2")}
        self.assertTrue(l2)
        self.assertTrue(l2 <= l1)
        self.assertEqual(set(log.filter(pl.col("layer") == "L2")["action"].to_list()), {"external"})

    def test_rejected_random_step_changes_nothing(self):
        net, log = grow(2, 6, {"R": RandomAttachment(0)}, pr_internal=1.0, seed=3)
        self.assertEqual(log["accepted"].to_list(), [True] + [False] * 5)
        self.assertEqual(net.num_vertices("R"), 2)
        self.assertEqual(net.num_edges("R"), 1)

        before = (net.vertices(), net.edges())
        accepted = RandomAttachment(0).evolution_step(net, "R", ["A0", "A1"], np.random.default_rng(0))
        self.assertFalse(accepted)
        self.assertEqual((net.vertices(), net.edges()), before)

    def test_directed_layers(self):
        net, _ = grow(8, 5, {"D": RandomAttachment(2)}, pr_internal=1.0, seed=2, directed=True)
        self.assertTrue(net.is_directed("D"))


class TestGrowthParameters(unittest.TestCase):
    def test_probabilities_above_one(self):
        with self.assertRaises(ParameterError):
            grow(5, 1, _models(), pr_internal=0.7, pr_external=0.4, dependency={"L1": {"L2": 1}, "L2": {"L1": 1}})

    def test_negative_probability(self):
        with self.assertRaises(ParameterError):
            grow(5, 1, _models(), pr_internal=-0.1)

    def test_external_without_dependency(self):
        with self.assertRaises(ParameterError):
            grow(5, 1, _models(), pr_internal=0.2, pr_external=0.3)
        # a layer cannot depend only on itself
        with self.assertRaises(ParameterError):
            grow(5, 1, _models(), pr_external={"L2": 0.3}, dependency={"L2": {"L2": 1.0}})

    def test_unknown_layers(self):
        with self.assertRaises(ParameterError):
            grow(5, 1, _models(), pr_internal={"L9": 0.5})
        with self.assertRaises(ParameterError):
            grow(5, 1, _models(), dependency={"L1": {"L9": 1.0}})

    def test_model_validation(self):
        with self.assertRaises(ParameterError):
            PreferentialAttachment(2, 3)
        with self.assertRaises(ParameterError):
            PreferentialAttachment(0, 0)
        with self.assertRaises(ParameterError):
            RandomAttachment(-1)
        with self.assertRaises(ParameterError):
            grow(5, 1, {})
