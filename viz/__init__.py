"""
INSPECTOR VISUALIZATION - The Rendering Hand-off

This package turns a filtered graph into what a renderer draws:
- core: VizNode/VizEdge/VizCluster, snapshots, display names, tabular export
"""

from viz.core import (
    VizNode,
    VizEdge,
    VizCluster,
    GraphSnapshot,
    GraphFormatter,
    create_snapshot,
    hidden_neighbor_counts,
    snapshot_to_polars,
    serialize_to_arrow,
)

__all__ = [
    "VizNode",
    "VizEdge",
    "VizCluster",
    "GraphSnapshot",
    "GraphFormatter",
    "create_snapshot",
    "hidden_neighbor_counts",
    "snapshot_to_polars",
    "serialize_to_arrow",
]
