"""
Graph invariant checks.

Tests that the store's redundant indexes (relation arena, forward/reverse
adjacency, port table, rustworkx edge set) stay consistent, and that the
checker catches each kind of corruption.
"""
import unittest

from core.graph_db import GraphDB, GraphInvariantError
from core.graph_invariants import (
    GraphInvariants,
    InvariantSeverity,
    get_graph_metrics,
    validate_graph,
)
from core.ontology import PortName
from core.schemas import ActionNode, Location, PortMapping


def build(edges, extra_nodes=()) -> GraphDB:
    graph = GraphDB()
    ids = list(dict.fromkeys([n for edge in edges for n in edge] + list(extra_nodes)))
    for node_id in ids:
        graph.add_node(node_id, ActionNode(name=node_id, location=Location(module="m")))
    for from_id, to_id in edges:
        graph.add_relation(from_id, to_id)
    return graph


class TestHandshakingLemma(unittest.TestCase):
    """Degree sums agree with the edge count and the relation arena."""

    def test_empty_graph_valid(self):
        valid, violation = GraphInvariants.validate_handshaking_lemma(GraphDB())
        self.assertTrue(valid)
        self.assertIsNone(violation)

    def test_after_mutations_valid(self):
        graph = build([("A", "B"), ("B", "C"), ("A", "C")])
        graph.remove_relation("A", "C")
        graph.remove_node("B")
        valid, _ = GraphInvariants.validate_handshaking_lemma(graph)
        self.assertTrue(valid)

    def test_arena_out_of_sync_detected(self):
        graph = build([("A", "B")])
        graph._relations.clear()
        valid, violation = GraphInvariants.validate_handshaking_lemma(graph)
        self.assertFalse(valid)
        self.assertEqual(violation.severity, InvariantSeverity.ERROR)


class TestAdjacencyMirror(unittest.TestCase):
    """forward[a] holds (a, b) iff reverse[b] does."""

    def test_valid_graph(self):
        graph = build([("A", "B"), ("A", "C"), ("C", "B")])
        valid, violation = GraphInvariants.validate_adjacency_mirror(graph)
        self.assertTrue(valid)
        self.assertIsNone(violation)

    def test_missing_reverse_entry_detected(self):
        graph = build([("A", "B"), ("A", "C")])
        rid = graph.find_relation("A", "B").id
        graph._reverse["B"].remove(rid)

        valid, violation = GraphInvariants.validate_adjacency_mirror(graph)

        self.assertFalse(valid)
        self.assertIn(("A", "B"), violation.relations_involved)
        self.assertNotIn(("A", "C"), violation.relations_involved)

    def test_duplicated_forward_entry_detected(self):
        graph = build([("A", "B")])
        rid = graph.find_relation("A", "B").id
        graph._forward["A"].append(rid)

        valid, _ = GraphInvariants.validate_adjacency_mirror(graph)
        self.assertFalse(valid)


class TestRelationsAndPorts(unittest.TestCase):

    def test_no_dangling_after_remove(self):
        graph = build([("A", "B"), ("B", "C")])
        graph.remove_node("B")
        valid, _ = GraphInvariants.validate_no_dangling_relations(graph)
        self.assertTrue(valid)

    def test_dangling_detected(self):
        graph = build([("A", "B")])
        # Drop B from the bridge without going through remove_node
        del graph._node_map["B"]
        valid, violation = GraphInvariants.validate_no_dangling_relations(graph)
        self.assertFalse(valid)
        self.assertEqual(violation.relations_involved, [("A", "B")])

    def test_orphan_port_mapping_detected(self):
        graph = build([("A", "B")])
        graph.add_from_port_for_relation("A", PortName.SUCCESS, "B")
        graph._port_mappings[999] = PortMapping(relation_id=999, to_port_name=PortName.TRIGGER)

        valid, violation = GraphInvariants.validate_port_mappings(graph)

        self.assertFalse(valid)
        self.assertIn("999", violation.message)

    def test_pair_uniqueness(self):
        graph = build([("A", "B"), ("B", "A")])
        valid, _ = GraphInvariants.validate_pair_uniqueness(graph)
        self.assertTrue(valid)


class TestReport(unittest.TestCase):

    def test_isolated_nodes_are_info_only(self):
        graph = build([("A", "B")], extra_nodes=["lonely"])

        report = validate_graph(graph)

        self.assertTrue(report.valid)
        self.assertEqual(report.errors, [])
        info = [v for v in report.violations if v.severity == InvariantSeverity.INFO]
        self.assertEqual(len(info), 1)
        self.assertEqual(info[0].nodes_involved, ["lonely"])

    def test_assert_invariants_raises(self):
        graph = build([("A", "B")])
        graph._forward["A"].clear()

        with self.assertRaises(GraphInvariantError):
            graph.assert_invariants()

    def test_metrics(self):
        graph = build([("A", "B"), ("C", "D")])
        metrics = get_graph_metrics(graph)

        self.assertEqual(metrics["node_count"], 4)
        self.assertEqual(metrics["relation_count"], 2)
        self.assertEqual(metrics["cluster_count"], 1)
        self.assertEqual(metrics["weakly_connected_components"], 2)

    def test_empty_metrics(self):
        self.assertEqual(get_graph_metrics(GraphDB())["weakly_connected_components"], 0)


if __name__ == "__main__":
    unittest.main()
