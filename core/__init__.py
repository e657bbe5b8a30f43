"""
INSPECTOR CORE - Central exports for the graph engine.

This module provides access to:
- The graph store (GraphDB) and its factories
- The node-embedding transform
- Cluster derivation
"""

from core.graph_db import (
    GraphDB,
    GraphError,
    NodeNotFoundError,
    DuplicateNodeError,
    GraphInvariantError,
    create_empty_graph,
    create_graph_from_payload,
)
from core.clusters import derive_clusters
from core.embedding import embed_action_nodes, find_embeddable_nodes

__all__ = [
    # Graph store
    "GraphDB",
    "GraphError",
    "NodeNotFoundError",
    "DuplicateNodeError",
    "GraphInvariantError",
    "create_empty_graph",
    "create_graph_from_payload",
    # Transforms
    "derive_clusters",
    "embed_action_nodes",
    "find_embeddable_nodes",
]
