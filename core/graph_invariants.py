"""
INSPECTOR GRAPH INVARIANTS - Structural Consistency Checks

The graph store keeps several views of the same relation set: the relation
arena, the forward and reverse adjacency indexes, the port-mapping table
and the rustworkx edge set. This module verifies they agree.

Invariants Implemented:
1. Handshaking Lemma: sum(in_degree) == sum(out_degree) == |E| == |relations|
2. Adjacency Mirror: r in forward[r.from] and r in reverse[r.to], nothing else
3. No Dangling Relations: every endpoint is a known node
4. Live Port Mappings: every port mapping references an existing relation
5. Pair Uniqueness: at most one relation per (from, to)

Violations are reported, not raised. GraphDB.assert_invariants() turns an
invalid report into a GraphInvariantError.
"""
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import rustworkx as rx


# =============================================================================
# INVARIANT RESULTS
# =============================================================================

class InvariantSeverity(Enum):
    """Severity levels for invariant violations."""
    ERROR = "error"      # Store is corrupted
    WARNING = "warning"  # Suspicious but usable
    INFO = "info"        # For metrics/diagnostics


@dataclass
class InvariantViolation:
    """A specific invariant violation."""
    invariant: str
    severity: InvariantSeverity
    message: str
    nodes_involved: List[str] = None
    relations_involved: List[Tuple[str, str]] = None

    def __post_init__(self):
        if self.nodes_involved is None:
            self.nodes_involved = []
        if self.relations_involved is None:
            self.relations_involved = []


@dataclass
class InvariantReport:
    """Complete invariant validation report."""
    valid: bool
    violations: List[InvariantViolation]
    metrics: Dict[str, Any]

    @property
    def errors(self) -> List[InvariantViolation]:
        return [v for v in self.violations if v.severity == InvariantSeverity.ERROR]

    @property
    def warnings(self) -> List[InvariantViolation]:
        return [v for v in self.violations if v.severity == InvariantSeverity.WARNING]


# =============================================================================
# GRAPH INVARIANTS
# =============================================================================

class GraphInvariants:
    """
    Validators over a GraphDB.

    All methods are static and return (is_valid, violation or None).
    """

    @staticmethod
    def validate_handshaking_lemma(graph) -> Tuple[bool, Optional[InvariantViolation]]:
        """
        sum(in_degree) == sum(out_degree) == |E|, and |E| matches the arena.

        Catches rustworkx edges that were added or removed without the
        relation arena being updated, or vice versa.
        """
        rx_graph: rx.PyDiGraph = graph._graph
        node_indices = list(rx_graph.node_indices())
        total_in = sum(rx_graph.in_degree(idx) for idx in node_indices)
        total_out = sum(rx_graph.out_degree(idx) for idx in node_indices)
        num_edges = rx_graph.num_edges()

        if total_in != total_out or total_in != num_edges:
            return False, InvariantViolation(
                invariant="handshaking_lemma",
                severity=InvariantSeverity.ERROR,
                message=f"sum(in)={total_in}, sum(out)={total_out}, |E|={num_edges}",
            )
        if num_edges != graph.relation_count:
            return False, InvariantViolation(
                invariant="handshaking_lemma",
                severity=InvariantSeverity.ERROR,
                message=f"|E|={num_edges} != |relations|={graph.relation_count}",
            )
        return True, None

    @staticmethod
    def validate_adjacency_mirror(graph) -> Tuple[bool, Optional[InvariantViolation]]:
        """Forward and reverse indexes hold exactly the relation arena, once each."""
        forward, reverse = graph.get_adjacency()
        expected_forward = Counter((r.id, r.from_id) for r in graph.relations)
        expected_reverse = Counter((r.id, r.to_id) for r in graph.relations)
        actual_forward = Counter(
            (r.id, node_id) for node_id, rels in forward.items() for r in rels if r.from_id == node_id
        )
        actual_reverse = Counter(
            (r.id, node_id) for node_id, rels in reverse.items() for r in rels if r.to_id == node_id
        )
        misplaced = (
            sum(len(rels) for rels in forward.values()) != sum(actual_forward.values())
            or sum(len(rels) for rels in reverse.values()) != sum(actual_reverse.values())
        )

        if misplaced or actual_forward != expected_forward or actual_reverse != expected_reverse:
            broken = {
                (r.from_id, r.to_id) for r in graph.relations
                if actual_forward[(r.id, r.from_id)] != 1 or actual_reverse[(r.id, r.to_id)] != 1
            }
            return False, InvariantViolation(
                invariant="adjacency_mirror",
                severity=InvariantSeverity.ERROR,
                message="Forward/reverse adjacency indexes disagree with the relation list",
                relations_involved=sorted(broken),
            )
        return True, None

    @staticmethod
    def validate_no_dangling_relations(graph) -> Tuple[bool, Optional[InvariantViolation]]:
        """Every relation endpoint is a node in the node map."""
        dangling = [
            (r.from_id, r.to_id) for r in graph.relations
            if not graph.has_node(r.from_id) or not graph.has_node(r.to_id)
        ]
        if dangling:
            return False, InvariantViolation(
                invariant="no_dangling_relations",
                severity=InvariantSeverity.ERROR,
                message=f"{len(dangling)} relation(s) reference missing nodes",
                relations_involved=dangling,
            )
        return True, None

    @staticmethod
    def validate_port_mappings(graph) -> Tuple[bool, Optional[InvariantViolation]]:
        """Every port mapping references a live relation."""
        orphaned = [pm.relation_id for pm in graph.port_mappings if graph.get_relation(pm.relation_id) is None]
        if orphaned:
            return False, InvariantViolation(
                invariant="live_port_mappings",
                severity=InvariantSeverity.ERROR,
                message=f"Port mappings reference removed relations: {orphaned}",
            )
        return True, None

    @staticmethod
    def validate_pair_uniqueness(graph) -> Tuple[bool, Optional[InvariantViolation]]:
        """At most one relation per (from, to) pair."""
        counts = Counter((r.from_id, r.to_id) for r in graph.relations)
        duplicates = [pair for pair, count in counts.items() if count > 1]
        if duplicates:
            return False, InvariantViolation(
                invariant="pair_uniqueness",
                severity=InvariantSeverity.ERROR,
                message=f"{len(duplicates)} duplicated relation pair(s)",
                relations_involved=duplicates,
            )
        return True, None

    @staticmethod
    def find_isolated_nodes(graph) -> List[str]:
        """Nodes with neither parents nor children."""
        return [
            node_id for node_id in graph.node_ids()
            if not graph.find_parents(node_id) and not graph.find_children(node_id)
        ]

    @staticmethod
    def validate_all(graph) -> InvariantReport:
        """
        Run every check.

        Isolated nodes are reported as INFO; they are legal (a hidden
        neighborhood can leave a node standing alone) but worth surfacing.
        """
        violations: List[InvariantViolation] = []
        checks = (
            GraphInvariants.validate_handshaking_lemma,
            GraphInvariants.validate_adjacency_mirror,
            GraphInvariants.validate_no_dangling_relations,
            GraphInvariants.validate_port_mappings,
            GraphInvariants.validate_pair_uniqueness,
        )
        for check in checks:
            valid, violation = check(graph)
            if not valid:
                violations.append(violation)

        isolated = GraphInvariants.find_isolated_nodes(graph)
        if isolated:
            violations.append(InvariantViolation(
                invariant="isolated_nodes",
                severity=InvariantSeverity.INFO,
                message=f"{len(isolated)} node(s) have no relations",
                nodes_involved=isolated,
            ))

        return InvariantReport(
            valid=not any(v.severity == InvariantSeverity.ERROR for v in violations),
            violations=violations,
            metrics=get_graph_metrics(graph),
        )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def validate_graph(graph) -> InvariantReport:
    """Convenience function to validate a GraphDB."""
    return GraphInvariants.validate_all(graph)


def get_graph_metrics(graph) -> Dict[str, Any]:
    """Basic graph metrics without full validation."""
    rx_graph: rx.PyDiGraph = graph._graph
    return {
        "node_count": graph.node_count,
        "relation_count": graph.relation_count,
        "port_mapping_count": len(graph.port_mappings),
        "cluster_count": len(graph.clusters),
        "weakly_connected_components": (
            rx.number_weakly_connected_components(rx_graph) if graph.node_count else 0
        ),
    }
