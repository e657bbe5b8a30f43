"""
INSPECTOR GRAPH DATABASE - The Dependency Graph Store

This module holds the in-memory graph of Redux entities (actions, epics,
reducers, components) and the causal relations between them. It bridges
string node ids with rustworkx's integer indices, enabling:
- O(1) node lookup by id
- O(1) adjacency lookup in both directions
- Rust-native reachability for subgraph focus
- Cheap clones that share no mutable collection with their source

Architecture (The Bridge Pattern):
  Python Layer (Business Logic)
  - Uses string ids: "booking/loadOffers", "booking/loadOffersEpic"
  - Calls: graph.remove_node_recursive("booking/loadOffers", "forward")

  Bridge Layer (This File)
  - _node_map: Dict[str, int]          (id -> rustworkx node index)
  - _inv_map: Dict[int, str]           (rustworkx node index -> id)
  - _relations: Dict[int, Relation]    (relation arena, keyed by edge index)
  - _forward / _reverse: Dict[str, List[int]]  (ordered adjacency of relation ids)
  - _port_mappings: Dict[int, PortMapping]     (keyed by relation id)

  Rust Layer (rustworkx.PyDiGraph)
  - Uses integer indices
  - rx.descendants() for forward reachability

Invariants:
- Every relation's endpoints are present in the node map
- _forward and _reverse are mirror images of the relation arena
- A port mapping exists only for a live relation
- At most one relation per (from, to) pair
"""
import logging
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Set, Tuple, Union

import polars as pl
import rustworkx as rx

from core.clusters import ClusterCache
from core.ontology import Direction, Id, PortName
from core.schemas import Cluster, GraphPayload, Node, PortMapping, Relation

logger = logging.getLogger(__name__)

ExceptPredicate = Callable[[Node, Id], bool]


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================

class GraphError(Exception):
    """Base exception for graph operations."""
    pass


class NodeNotFoundError(GraphError):
    """Raised when a node id is not in the graph."""
    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node not found: {node_id}")


class DuplicateNodeError(GraphError):
    """Raised when attempting to add a node with an existing id."""
    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node already exists: {node_id}")


class GraphInvariantError(GraphError):
    """Raised when a structural invariant of the store is violated."""
    pass


# =============================================================================
# GRAPH DATABASE (The Graph Engine)
# =============================================================================

class GraphDB:
    """
    In-memory dependency graph backed by rustworkx.

    Mutations are tolerant: removing a missing relation or node, or tagging
    a port on a relation that does not exist, is a no-op. UI edits replay
    against graphs that have already changed, so strict preconditions would
    only turn stale requests into crashes.

    Usage:
        graph = create_graph_from_payload(payload)

        editable = graph.clone()
        editable.remove_node_recursive("booking/loadOffers", Direction.FORWARD)

        for relation in editable.find_children("booking/loadOffersEpic"):
            mapping = editable.get_port_mapping(relation)

    Thread Safety:
        NOT thread-safe. Every UI action works on its own clone.
    """

    def __init__(self, multigraph: bool = False):
        # Core storage: Rust-native directed graph
        self._graph: rx.PyDiGraph = rx.PyDiGraph(multigraph=multigraph)

        # The Bridge: id <-> index mapping
        self._node_map: Dict[str, int] = {}
        self._inv_map: Dict[int, str] = {}

        # Relation arena and ordered adjacency (relation ids)
        self._relations: Dict[int, Relation] = {}
        self._forward: Dict[str, List[int]] = {}
        self._reverse: Dict[str, List[int]] = {}

        self._port_mappings: Dict[int, PortMapping] = {}

        # Bumped on every structural mutation; keys the cluster memo
        self._version = 0
        self._cluster_cache = ClusterCache()

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def node_count(self) -> int:
        """Number of nodes in the graph."""
        return len(self._node_map)

    @property
    def relation_count(self) -> int:
        """Number of relations in the graph."""
        return len(self._relations)

    @property
    def version(self) -> int:
        """Structural version counter."""
        return self._version

    @property
    def nodes(self) -> Dict[Id, Node]:
        """Snapshot of the node map. Safe to iterate while mutating the graph."""
        return {node_id: self._graph[idx] for node_id, idx in self._node_map.items()}

    @property
    def relations(self) -> List[Relation]:
        """All relations, in insertion order."""
        return list(self._relations.values())

    @property
    def port_mappings(self) -> List[PortMapping]:
        """All port mappings, in creation order."""
        return list(self._port_mappings.values())

    @property
    def clusters(self) -> Dict[Id, Cluster]:
        """
        Clusters derived from the current node set.

        Memoized against the version counter; any mutation invalidates.
        """
        return self._cluster_cache.get(
            self._version,
            ((node_id, node.location.module) for node_id, node in self.iter_nodes()),
        )

    def _touch(self) -> None:
        self._version += 1

    # =========================================================================
    # NODE OPERATIONS
    # =========================================================================

    def add_node(self, node_id: Id, node: Node, replace: bool = False) -> int:
        """
        Add a node to the graph.

        Args:
            node_id: The node's id
            node: Node payload
            replace: If True, overwrite the payload of an existing node
                     (its relations are kept). If False, raise on duplicates.

        Returns:
            The rustworkx index of the node

        Raises:
            DuplicateNodeError: If node_id exists and replace=False
        """
        if node_id in self._node_map:
            if not replace:
                raise DuplicateNodeError(node_id)
            idx = self._node_map[node_id]
            self._graph[idx] = node
            self._touch()
            return idx

        idx = self._graph.add_node(node)
        self._node_map[node_id] = idx
        self._inv_map[idx] = node_id
        self._touch()
        return idx

    def get_node(self, node_id: Id) -> Node:
        """
        Retrieve a node by id.

        Raises:
            NodeNotFoundError: If node doesn't exist
        """
        if node_id not in self._node_map:
            raise NodeNotFoundError(node_id)
        return self._graph[self._node_map[node_id]]

    def find_node(self, node_id: Id) -> Optional[Node]:
        """Retrieve a node by id, or None."""
        idx = self._node_map.get(node_id)
        return None if idx is None else self._graph[idx]

    def has_node(self, node_id: Id) -> bool:
        """Check if a node exists."""
        return node_id in self._node_map

    def iter_nodes(self) -> Iterator[Tuple[Id, Node]]:
        """Iterate (id, node) pairs over a snapshot of the node map."""
        return iter(list(self.nodes.items()))

    def node_ids(self) -> List[Id]:
        """All node ids, in insertion order."""
        return list(self._node_map)

    def remove_node(self, node_id: Id) -> None:
        """
        Remove a node and every relation touching it.

        No-op if the node does not exist.
        """
        if node_id not in self._node_map:
            return

        for child_id in self.find_child_ids(node_id):
            self.remove_relation(node_id, child_id)
        for parent_id in self.find_parent_ids(node_id):
            self.remove_relation(parent_id, node_id)
        self._forward.pop(node_id, None)
        self._reverse.pop(node_id, None)

        idx = self._node_map.pop(node_id)
        del self._inv_map[idx]
        self._graph.remove_node(idx)
        self._touch()

    def remove_node_recursive(
        self,
        node_id: Id,
        direction: Union[Direction, str],
        except_ids: Optional[Iterable[Id]] = None,
        except_predicate: Optional[ExceptPredicate] = None,
    ) -> List[Id]:
        """
        Remove a node and the private subtree that exists only to support it.

        Walks depth-first from node_id along forward (children) or backward
        (parents) relations. A neighbor joins the cascade only if it has
        exactly one parent (forward) or exactly one child (backward), i.e.
        the relation being walked is its only connection on that side.
        A node shared with another part of the graph is never swept up.

        The cascade is computed in full before anything is deleted, so the
        outcome does not depend on visit order.

        Args:
            node_id: Root of the cascade
            direction: "forward" or "backward"
            except_ids: Ids to keep even if they are in the cascade
            except_predicate: Called as (node, id); True keeps the node

        Returns:
            Ids actually removed
        """
        protected = set(except_ids or ())
        removed: List[Id] = []
        for cascade_id in self._cascade(node_id, Direction(direction)):
            if cascade_id in protected:
                continue
            node = self.find_node(cascade_id)
            if node is None:
                continue
            if except_predicate is not None and except_predicate(node, cascade_id):
                continue
            self.remove_node(cascade_id)
            removed.append(cascade_id)
        return removed

    def find_recursive(self, node_id: Id, direction: Union[Direction, str]) -> Set[Id]:
        """
        Ids that remove_node_recursive would visit, without deleting anything.

        Used to work out which whitelist entries a removal makes moot.
        """
        return set(self._cascade(node_id, Direction(direction)))

    def _cascade(self, start_id: Id, direction: Direction) -> List[Id]:
        visited: Dict[Id, None] = {}
        stack: List[Id] = [start_id]
        while stack:
            current_id = stack.pop()
            if current_id in visited:
                continue
            visited[current_id] = None
            if direction is Direction.FORWARD:
                for child_id in self.find_child_ids(current_id):
                    if len(self._reverse.get(child_id, ())) == 1:
                        stack.append(child_id)
            else:
                for parent_id in self.find_parent_ids(current_id):
                    if len(self._forward.get(parent_id, ())) == 1:
                        stack.append(parent_id)
        return list(visited)

    def remove_all_except_subgraph(
        self,
        root_id: Id,
        except_ids: Optional[Iterable[Id]] = None,
    ) -> List[Id]:
        """
        Keep only what root_id can reach, plus except_ids.

        Reachability is plain forward reachability: a node with several
        parents is kept as long as one path from the root leads to it.
        No-op if root_id is not in the graph.

        Returns:
            Ids removed
        """
        if root_id not in self._node_map:
            return []

        reachable = {root_id}
        reachable.update(
            self._inv_map[idx]
            for idx in rx.descendants(self._graph, self._node_map[root_id])
        )
        reachable.update(except_ids or ())

        removed = [node_id for node_id in self._node_map if node_id not in reachable]
        for node_id in removed:
            self.remove_node(node_id)
        return removed

    # =========================================================================
    # RELATION OPERATIONS
    # =========================================================================

    def add_relation(self, from_id: Id, to_id: Id) -> Relation:
        """
        Add a directed relation from_id -> to_id.

        Returns the existing relation if the pair is already linked.

        Raises:
            NodeNotFoundError: If either endpoint doesn't exist
        """
        existing = self.find_relation(from_id, to_id)
        if existing is not None:
            return existing

        if from_id not in self._node_map:
            raise NodeNotFoundError(from_id)
        if to_id not in self._node_map:
            raise NodeNotFoundError(to_id)

        edge_idx = self._graph.add_edge(self._node_map[from_id], self._node_map[to_id], None)
        relation = Relation(id=edge_idx, from_id=from_id, to_id=to_id)
        self._graph.update_edge_by_index(edge_idx, relation)

        self._relations[edge_idx] = relation
        self._forward.setdefault(from_id, []).append(edge_idx)
        self._reverse.setdefault(to_id, []).append(edge_idx)
        self._touch()
        return relation

    def remove_relation(self, from_id: Id, to_id: Id) -> None:
        """
        Remove the relation from_id -> to_id and its port mapping.

        No-op if no such relation exists.
        """
        doomed = [rid for rid in self._forward.get(from_id, ()) if self._relations[rid].to_id == to_id]
        if not doomed:
            return

        self._forward[from_id] = [rid for rid in self._forward[from_id] if rid not in doomed]
        self._reverse[to_id] = [rid for rid in self._reverse.get(to_id, ()) if rid not in doomed]
        for rid in doomed:
            del self._relations[rid]
            self._port_mappings.pop(rid, None)
            self._graph.remove_edge_from_index(rid)
        self._touch()

    def find_relation(self, from_id: Id, to_id: Id) -> Optional[Relation]:
        """The live relation for a pair, or None."""
        for rid in self._forward.get(from_id, ()):
            relation = self._relations[rid]
            if relation.to_id == to_id:
                return relation
        return None

    def has_relation(self, from_id: Id, to_id: Id) -> bool:
        return self.find_relation(from_id, to_id) is not None

    def get_relation(self, relation_id: int) -> Optional[Relation]:
        return self._relations.get(relation_id)

    # =========================================================================
    # PORT OPERATIONS
    # =========================================================================

    def add_from_port_for_relation(self, from_id: Id, port_name: Union[PortName, str], to_id: Id) -> None:
        """Label the source end of from_id -> to_id. No-op if the relation is absent."""
        relation = self.find_relation(from_id, to_id)
        if relation is None:
            return
        current = self._port_mappings.get(relation.id)
        self._port_mappings[relation.id] = PortMapping(
            relation_id=relation.id,
            from_port_name=PortName(port_name),
            to_port_name=current.to_port_name if current else None,
        )
        self._touch()

    def add_to_port_for_relation(self, from_id: Id, to_id: Id, port_name: Union[PortName, str]) -> None:
        """Label the target end of from_id -> to_id. No-op if the relation is absent."""
        relation = self.find_relation(from_id, to_id)
        if relation is None:
            return
        current = self._port_mappings.get(relation.id)
        self._port_mappings[relation.id] = PortMapping(
            relation_id=relation.id,
            from_port_name=current.from_port_name if current else None,
            to_port_name=PortName(port_name),
        )
        self._touch()

    def get_port_mapping(self, relation: Union[Relation, int]) -> Optional[PortMapping]:
        """Port mapping of a relation (or relation id), if any."""
        relation_id = relation.id if isinstance(relation, Relation) else relation
        return self._port_mappings.get(relation_id)

    # =========================================================================
    # ADJACENCY QUERIES
    # =========================================================================

    def find_children(self, node_id: Id) -> List[Relation]:
        """Outgoing relations of a node (empty list if none)."""
        return [self._relations[rid] for rid in self._forward.get(node_id, ())]

    def find_parents(self, node_id: Id) -> List[Relation]:
        """Incoming relations of a node (empty list if none)."""
        return [self._relations[rid] for rid in self._reverse.get(node_id, ())]

    def find_child_ids(self, node_id: Id) -> List[Id]:
        return [self._relations[rid].to_id for rid in self._forward.get(node_id, ())]

    def find_parent_ids(self, node_id: Id) -> List[Id]:
        return [self._relations[rid].from_id for rid in self._reverse.get(node_id, ())]

    def find_siblings(self, node_id: Id, within_parent: Optional[Id] = None) -> List[Id]:
        """
        Other children of node_id's parents.

        Args:
            node_id: The node whose siblings to find
            within_parent: Restrict to children of this one parent

        Returns:
            Sibling ids in discovery order, excluding node_id
        """
        siblings: Dict[Id, None] = {}
        for parent_id in self.find_parent_ids(node_id):
            if within_parent is not None and parent_id != within_parent:
                continue
            for child_id in self.find_child_ids(parent_id):
                siblings[child_id] = None
        siblings.pop(node_id, None)
        return list(siblings)

    def get_adjacency(self) -> Tuple[Dict[Id, List[Relation]], Dict[Id, List[Relation]]]:
        """Forward and reverse adjacency indexes, materialized as relations."""
        forward = {node_id: [self._relations[r] for r in rids] for node_id, rids in self._forward.items()}
        reverse = {node_id: [self._relations[r] for r in rids] for node_id, rids in self._reverse.items()}
        return forward, reverse

    # =========================================================================
    # CLONING
    # =========================================================================

    def clone(self) -> "GraphDB":
        """
        Independent copy of the graph.

        Node, relation and port-mapping records are immutable and shared;
        every collection holding them is copied, so mutating the clone never
        affects the source and vice versa. rustworkx preserves indices on
        copy, so relation ids stay valid.
        """
        other = GraphDB()
        other._graph = self._graph.copy()
        other._node_map = dict(self._node_map)
        other._inv_map = dict(self._inv_map)
        other._relations = dict(self._relations)
        other._forward = {node_id: list(rids) for node_id, rids in self._forward.items()}
        other._reverse = {node_id: list(rids) for node_id, rids in self._reverse.items()}
        other._port_mappings = dict(self._port_mappings)
        other._version = self._version
        return other

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def validate_invariants(self):
        """Run the structural invariant checks; returns an InvariantReport."""
        from core.graph_invariants import validate_graph
        return validate_graph(self)

    def assert_invariants(self) -> None:
        """
        Raises:
            GraphInvariantError: If any invariant is violated
        """
        report = self.validate_invariants()
        if not report.valid:
            messages = "; ".join(v.message for v in report.errors)
            raise GraphInvariantError(messages)

    # =========================================================================
    # EXPORT
    # =========================================================================

    def to_payload(self) -> GraphPayload:
        """Flat {nodes, relations} form, the inverse of create_graph_from_payload."""
        return GraphPayload(
            nodes=self.nodes,
            relations={
                node_id: self.find_child_ids(node_id)
                for node_id in self._node_map
                if self._forward.get(node_id)
            },
        )

    def to_polars_nodes(self) -> pl.DataFrame:
        """Export nodes to a Polars DataFrame."""
        rows = [
            {
                "id": node_id,
                "type": node.kind.value,
                "name": node.name,
                "module": node.location.module,
                "layer": node.location.layer,
                "url": node.location.url,
            }
            for node_id, node in self.iter_nodes()
        ]
        return pl.DataFrame(rows, schema=_NODE_SCHEMA)

    def to_polars_relations(self) -> pl.DataFrame:
        """Export relations (with port names) to a Polars DataFrame."""
        rows = []
        for relation in self._relations.values():
            mapping = self._port_mappings.get(relation.id)
            rows.append({
                "id": relation.id,
                "from": relation.from_id,
                "to": relation.to_id,
                "from_port": mapping.from_port_name.value if mapping and mapping.from_port_name else None,
                "to_port": mapping.to_port_name.value if mapping and mapping.to_port_name else None,
            })
        return pl.DataFrame(rows, schema=_RELATION_SCHEMA)

    # =========================================================================
    # DUNDER
    # =========================================================================

    def __len__(self) -> int:
        return self.node_count

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._node_map

    def __repr__(self) -> str:
        return f"GraphDB(nodes={self.node_count}, relations={self.relation_count})"


_NODE_SCHEMA = {
    "id": pl.Utf8,
    "type": pl.Utf8,
    "name": pl.Utf8,
    "module": pl.Utf8,
    "layer": pl.Utf8,
    "url": pl.Utf8,
}

_RELATION_SCHEMA = {
    "id": pl.Int64,
    "from": pl.Utf8,
    "to": pl.Utf8,
    "from_port": pl.Utf8,
    "to_port": pl.Utf8,
}


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================

def create_empty_graph() -> GraphDB:
    """Create an empty GraphDB instance."""
    return GraphDB()


def create_graph_from_payload(payload: GraphPayload) -> GraphDB:
    """
    Build a graph from the analyzer's flat output.

    Each (source, [targets]) entry expands into individual port-less
    relations. A relation whose endpoint is not a known node is dropped
    with a warning rather than failing the whole load.
    """
    graph = GraphDB()
    for node_id, node in payload.nodes.items():
        graph.add_node(node_id, node)

    dropped = 0
    for from_id, to_ids in payload.relations.items():
        if from_id not in graph:
            logger.warning(f"Dropping relations from missing node: {from_id}")
            dropped += len(to_ids)
            continue
        for to_id in to_ids:
            if to_id not in graph:
                logger.warning(f"Relation {from_id} -> {to_id} points to missing node, dropped")
                dropped += 1
                continue
            graph.add_relation(from_id, to_id)

    if dropped:
        logger.info(f"Loaded graph with {dropped} dangling relation(s) dropped")
    return graph
