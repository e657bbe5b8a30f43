"""
Cluster derivation: group nodes into a forest by module path.

A node in module "services/booking" lands in cluster "services/booking",
which is a sub-cluster of "services". Clusters are never stored as primary
data; they are recomputed from (id, module) pairs whenever the graph has
changed since the last read.
"""
from typing import Dict, Iterable, List, Optional, Tuple

from core.ontology import MODULE_SEPARATOR, Id, cluster_id_for_path
from core.schemas import Cluster


def derive_clusters(nodes: Iterable[Tuple[Id, str]]) -> Dict[Id, Cluster]:
    """
    Partition nodes into clusters by module path prefix.

    Args:
        nodes: (node id, module path) pairs

    Returns:
        Cluster id -> Cluster, in creation order. Nodes with an empty
        module belong to no cluster.
    """
    clusters: Dict[Id, Cluster] = {}

    for node_id, module in nodes:
        parts = [part for part in (module or "").split(MODULE_SEPARATOR) if part]
        parent: Optional[Cluster] = None

        for depth in range(1, len(parts) + 1):
            path = MODULE_SEPARATOR.join(parts[:depth])
            cluster_id = cluster_id_for_path(path)
            cluster = clusters.get(cluster_id)
            if cluster is None:
                cluster = Cluster(id=cluster_id, name=path)
                clusters[cluster_id] = cluster
                if parent is not None and cluster_id not in parent.sub_clusters:
                    parent.sub_clusters.append(cluster_id)
            parent = cluster

        if parent is not None:
            parent.nodes.append(node_id)

    return clusters


def root_clusters(clusters: Dict[Id, Cluster]) -> list:
    """Clusters that are nobody's sub-cluster."""
    children = {sub_id for cluster in clusters.values() for sub_id in cluster.sub_clusters}
    return [cluster for cluster_id, cluster in clusters.items() if cluster_id not in children]


def cluster_contains_module(cluster: Cluster, module: str) -> bool:
    """True if module equals the cluster path or is nested under it."""
    return module == cluster.name or module.startswith(cluster.name + MODULE_SEPARATOR)


class ClusterCache:
    """Memo for derive_clusters keyed by the graph's structural version."""

    def __init__(self):
        self._version: Optional[int] = None
        self._clusters: Optional[Dict[Id, Cluster]] = None

    def get(self, version: int, nodes: Iterable[Tuple[Id, str]]) -> Dict[Id, Cluster]:
        if self._clusters is None or self._version != version:
            self._clusters = derive_clusters(nodes)
            self._version = version
        return self._clusters

    def invalidate(self) -> None:
        self._clusters = None
        self._version = None


def collect_cluster_nodes(clusters: Dict[Id, Cluster], cluster_id: Id) -> List[Id]:
    """Node ids of a cluster and all of its nested sub-clusters."""
    collected: List[Id] = []
    stack = [cluster_id]
    seen = set()
    while stack:
        current = clusters.get(stack.pop())
        if current is None or current.id in seen:
            continue
        seen.add(current.id)
        collected.extend(current.nodes)
        stack.extend(reversed(current.sub_clusters))
    return collected
