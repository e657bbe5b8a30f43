"""
INSPECTOR VISUALIZATION CORE - The Renderer's Data Model

This module turns a rendered GraphDB into the flat structures a layout
engine or web front end draws from. Nothing here lays anything out; it
only decides what each box, edge and cluster frame says.

Architecture:
- VizNode/VizEdge/VizCluster: Lightweight rendering-focused records
- GraphSnapshot: Full rendered state handed to the layout step
- GraphFormatter: Human-readable names for nodes and clusters
- polars/Arrow export for tabular consumers

Hidden-neighbor badges compare the rendered graph against the initial
graph: a node that had 5 children and now shows 2 carries "▼3".
"""
import io
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import msgspec
import polars as pl

from core.graph_db import GraphDB
from core.ontology import Id, LayoutDirection, NodeKind, PortName


# =============================================================================
# COLOR PALETTES (Consistent across views)
# =============================================================================

NODE_COLORS: Dict[str, str] = {
    NodeKind.EPIC.value: "#ffebff",       # Pink - business logic
    NodeKind.ACTION.value: "#ececff",     # Lavender - events
    NodeKind.COMPONENT.value: "#f4ffec",  # Mint - UI
    NodeKind.REDUCER.value: "#fff3ec",    # Peach - state
    "default": "#6C757D",
}

EDGE_COLOR = "#555555"

PORT_SYMBOLS: Dict[str, str] = {
    PortName.TRIGGER.value: "📍",
    PortName.SUCCESS.value: "✔",
    PortName.ERROR.value: "✖",
}

_DOM_ID_TRANSLATION = str.maketrans({"$": "_", ":": "_", "/": "_"})


def sanitize_dom_id(node_id: Id, prefix: str = "node") -> str:
    """Id safe to use as a DOM/graphviz identifier."""
    return f"{prefix}_{node_id.translate(_DOM_ID_TRANSLATION)}"


# =============================================================================
# FORMATTING
# =============================================================================

def prettify_name(name: str) -> str:
    return name.replace("/", " › ")


class GraphFormatter:
    """Display names for node and cluster ids."""

    @staticmethod
    def node_name(graph: GraphDB, node_id: Optional[Id], prettify: bool = True) -> Optional[str]:
        """'module/name' of a node, or None if the id is not a node."""
        if not node_id:
            return None
        node = graph.find_node(node_id)
        if node is None:
            return None
        raw = f"{node.location.module}/{node.name}"
        return prettify_name(raw) if prettify else raw

    @staticmethod
    def cluster_name(graph: GraphDB, cluster_id: Id, prettify: bool = True) -> Optional[str]:
        """Module path of a cluster, or None if the id is not a cluster."""
        cluster = graph.clusters.get(cluster_id)
        if cluster is None:
            return None
        return prettify_name(cluster.name) if prettify else cluster.name

    @staticmethod
    def display_name(graph: GraphDB, any_id: Id) -> str:
        """Best available name: node, then cluster, then the raw id."""
        return (
            GraphFormatter.node_name(graph, any_id)
            or GraphFormatter.cluster_name(graph, any_id)
            or any_id
        )


# =============================================================================
# VISUALIZATION DATA STRUCTURES
# =============================================================================

class VizNode(msgspec.Struct, kw_only=True):
    """
    Lightweight node representation for rendering.

    `module` is only filled in when nodes are not grouped into cluster
    frames; inside a frame the module is already visible.
    """
    id: str
    dom_id: str
    kind: str
    label: str
    color: str
    module: Optional[str] = None
    layer: Optional[str] = None
    method: Optional[str] = None        # First API request method (epics)

    # Epic ports actually in use
    trigger_port: bool = False
    success_port: bool = False
    error_port: bool = False

    hidden_backward: int = 0
    hidden_forward: int = 0

    @property
    def badge(self) -> str:
        """Hidden-neighbor badge, e.g. '▲2 ▼5'. Empty if nothing is hidden."""
        parts = []
        if self.hidden_backward:
            parts.append(f"▲{self.hidden_backward}")
        if self.hidden_forward:
            parts.append(f"▼{self.hidden_forward}")
        return " ".join(parts)


class VizEdge(msgspec.Struct, kw_only=True):
    """Lightweight edge representation; ports name the epic slot it attaches to."""
    id: int
    source: str
    target: str
    from_port: Optional[str] = None
    to_port: Optional[str] = None
    color: str = EDGE_COLOR


class VizCluster(msgspec.Struct, kw_only=True):
    """Dashed frame around the nodes of one module path."""
    id: str
    name: str
    label: str
    sub_clusters: List[str] = msgspec.field(default_factory=list)
    nodes: List[str] = msgspec.field(default_factory=list)


class GraphSnapshot(msgspec.Struct, kw_only=True):
    """
    Complete rendered state for one layout pass.

    `generation` is the editor's render generation token; a host that
    receives snapshots out of order keeps the highest one.
    """
    timestamp: str
    layout_direction: str
    group_by_modules: bool
    node_count: int
    edge_count: int
    nodes: List[VizNode]
    edges: List[VizEdge]
    clusters: List[VizCluster] = msgspec.field(default_factory=list)
    generation: int = 0

    def get_node(self, node_id: Id) -> Optional[VizNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return msgspec.to_builtins(self)


# =============================================================================
# SNAPSHOT CONSTRUCTION
# =============================================================================

def hidden_neighbor_counts(initial: GraphDB, current: GraphDB, node_id: Id) -> Tuple[int, int]:
    """
    (hidden parents, hidden children) of a node.

    Counts relations in the initial graph minus relations still present in
    the current one.
    """
    backward = len(initial.find_parents(node_id)) - len(current.find_parents(node_id))
    forward = len(initial.find_children(node_id)) - len(current.find_children(node_id))
    return max(backward, 0), max(forward, 0)


def epic_port_flags(graph: GraphDB, epic_id: Id) -> Tuple[bool, bool, bool]:
    """Which of (trigger, success, error) ports have an edge attached."""
    def uses(relations, port: PortName) -> bool:
        for relation in relations:
            mapping = graph.get_port_mapping(relation)
            if mapping is not None and port in (mapping.from_port_name, mapping.to_port_name):
                return True
        return False

    incoming = graph.find_parents(epic_id)
    outgoing = graph.find_children(epic_id)
    return (
        uses(incoming, PortName.TRIGGER),
        uses(outgoing, PortName.SUCCESS),
        uses(outgoing, PortName.ERROR),
    )


def create_snapshot(
    initial: GraphDB,
    current: GraphDB,
    layout_direction: LayoutDirection = LayoutDirection.LR,
    group_by_modules: bool = True,
    generation: int = 0,
) -> GraphSnapshot:
    """
    Build the rendering hand-off for `current`.

    Args:
        initial: The graph before filtering (badge baseline)
        current: The rendered graph
        layout_direction: Rank direction for the layout engine
        group_by_modules: Emit cluster frames; otherwise label nodes with modules
        generation: Render generation token

    Returns:
        GraphSnapshot ready for layout
    """
    viz_nodes: List[VizNode] = []
    for node_id, node in current.iter_nodes():
        hidden_backward, hidden_forward = hidden_neighbor_counts(initial, current, node_id)
        viz_node = VizNode(
            id=node_id,
            dom_id=sanitize_dom_id(node_id),
            kind=node.kind.value,
            label=node.name,
            color=NODE_COLORS.get(node.kind.value, NODE_COLORS["default"]),
            module=None if group_by_modules else node.location.module,
            layer=node.location.layer or None,
            hidden_backward=hidden_backward,
            hidden_forward=hidden_forward,
        )
        if node.kind is NodeKind.EPIC:
            requests = node.api_call.requests
            viz_node.method = requests[0].method if requests else None
            viz_node.trigger_port, viz_node.success_port, viz_node.error_port = epic_port_flags(current, node_id)
        viz_nodes.append(viz_node)

    viz_edges: List[VizEdge] = []
    for relation in current.relations:
        mapping = current.get_port_mapping(relation)
        viz_edges.append(VizEdge(
            id=relation.id,
            source=relation.from_id,
            target=relation.to_id,
            from_port=mapping.from_port_name.value if mapping and mapping.from_port_name else None,
            to_port=mapping.to_port_name.value if mapping and mapping.to_port_name else None,
        ))

    viz_clusters: List[VizCluster] = []
    if group_by_modules:
        viz_clusters = [
            VizCluster(
                id=cluster.id,
                name=cluster.name,
                label=cluster.name.rsplit("/", 1)[-1],
                sub_clusters=list(cluster.sub_clusters),
                nodes=list(cluster.nodes),
            )
            for cluster in current.clusters.values()
        ]

    return GraphSnapshot(
        timestamp=datetime.now(timezone.utc).isoformat(),
        layout_direction=LayoutDirection(layout_direction).value,
        group_by_modules=group_by_modules,
        node_count=len(viz_nodes),
        edge_count=len(viz_edges),
        nodes=viz_nodes,
        edges=viz_edges,
        clusters=viz_clusters,
        generation=generation,
    )


# =============================================================================
# TABULAR EXPORT
# =============================================================================

def snapshot_to_polars(snapshot: GraphSnapshot) -> Tuple[pl.DataFrame, pl.DataFrame]:
    """
    Flatten a snapshot into (nodes, edges) DataFrames.

    Column types are pinned so an empty snapshot still has a usable schema.
    """
    nodes_df = pl.DataFrame(
        {
            "id": [n.id for n in snapshot.nodes],
            "kind": [n.kind for n in snapshot.nodes],
            "label": [n.label for n in snapshot.nodes],
            "color": [n.color for n in snapshot.nodes],
            "module": [n.module for n in snapshot.nodes],
            "layer": [n.layer for n in snapshot.nodes],
            "method": [n.method for n in snapshot.nodes],
            "hidden_backward": [n.hidden_backward for n in snapshot.nodes],
            "hidden_forward": [n.hidden_forward for n in snapshot.nodes],
            "badge": [n.badge for n in snapshot.nodes],
        },
        schema={
            "id": pl.Utf8,
            "kind": pl.Utf8,
            "label": pl.Utf8,
            "color": pl.Utf8,
            "module": pl.Utf8,
            "layer": pl.Utf8,
            "method": pl.Utf8,
            "hidden_backward": pl.Int64,
            "hidden_forward": pl.Int64,
            "badge": pl.Utf8,
        },
    )

    edges_df = pl.DataFrame(
        {
            "id": [e.id for e in snapshot.edges],
            "source": [e.source for e in snapshot.edges],
            "target": [e.target for e in snapshot.edges],
            "from_port": [e.from_port for e in snapshot.edges],
            "to_port": [e.to_port for e in snapshot.edges],
            "color": [e.color for e in snapshot.edges],
        },
        schema={
            "id": pl.Int64,
            "source": pl.Utf8,
            "target": pl.Utf8,
            "from_port": pl.Utf8,
            "to_port": pl.Utf8,
            "color": pl.Utf8,
        },
    )
    return nodes_df, edges_df


def serialize_to_arrow(snapshot: GraphSnapshot) -> Tuple[bytes, bytes]:
    """
    Serialize a GraphSnapshot to Apache Arrow IPC format.

    Returns:
        Tuple of (nodes_arrow_bytes, edges_arrow_bytes)
    """
    nodes_df, edges_df = snapshot_to_polars(snapshot)

    nodes_buffer = io.BytesIO()
    edges_buffer = io.BytesIO()

    nodes_df.write_ipc(nodes_buffer)
    edges_df.write_ipc(edges_buffer)

    return nodes_buffer.getvalue(), edges_buffer.getvalue()
