"""
Filter/View engine: turn (initial graph, view state) into the rendered graph.

Pure function of its inputs. The initial graph is cloned, never mutated,
and cluster membership is always resolved against the initial graph so it
stays stable while the clone shrinks.
"""
from typing import Iterable, List

from core.clusters import cluster_contains_module
from core.graph_db import GraphDB
from core.ontology import Id
from core.schemas import Cluster
from editor.view_state import Removal, ViewState


def apply_view(initial_graph: GraphDB, view: ViewState) -> GraphDB:
    """
    Apply removals, then focus, to a clone of initial_graph.

    Removals replay in the order the user issued them. Whitelisted ids are
    checked when each cascade runs, so a later reveal protects a node that
    an earlier removal would otherwise sweep up.

    Args:
        initial_graph: Ground-truth graph (possibly embedded)
        view: The view specification to apply

    Returns:
        A new graph; initial_graph is unchanged
    """
    graph = initial_graph.clone()
    white_list = set(view.white_list_ids)

    apply_removals(graph, initial_graph, view.removed_ids, white_list)

    if view.focus_id and view.focus_id in graph:
        graph.remove_all_except_subgraph(view.focus_id, white_list)
    return graph


def apply_removals(
    graph: GraphDB,
    initial_graph: GraphDB,
    removals: Iterable[Removal],
    white_list: set,
) -> None:
    """Replay removals on graph in order. Ids that resolve to nothing are skipped."""
    initial_clusters = initial_graph.clusters
    for removal in removals:
        if removal.id in graph:
            graph.remove_node_recursive(removal.id, removal.direction, white_list)
            continue
        cluster = initial_clusters.get(removal.id)
        if cluster is not None:
            remove_cluster(graph, cluster, white_list)


def remove_cluster(graph: GraphDB, cluster: Cluster, white_list: set) -> List[Id]:
    """Delete every node whose module is the cluster's path or nested under it."""
    doomed = [
        node_id for node_id, node in graph.iter_nodes()
        if cluster_contains_module(cluster, node.location.module) and node_id not in white_list
    ]
    for node_id in doomed:
        graph.remove_node(node_id)
    return doomed
