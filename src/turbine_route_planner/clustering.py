"""
Connected-component clustering of facilities on a proximity graph.
"""
import math
from typing import List, Sequence

from .planner_utils import Facility, facility_distance_km
from .graph_utils import ProximityGraph, build_proximity_graph


def detect_clusters(graph: ProximityGraph) -> List[List[Facility]]:
    """Split ``graph`` into its connected components.

    Uses an explicit stack rather than recursion so large components cannot
    exhaust the interpreter's call stack. Clusters come out in the order their
    first node appears in ``graph.facilities``; members follow DFS pop order.
    """
    clusters: List[List[Facility]] = []
    if graph is None or graph.node_count == 0:
        return clusters

    visited = [False] * graph.node_count
    for start in range(graph.node_count):
        if visited[start]:
            continue
        cluster: List[Facility] = []
        stack = [start]
        while stack:
            idx = stack.pop()
            if visited[idx]:
                continue
            visited[idx] = True
            cluster.append(graph.facilities[idx])
            for nb in graph.neighbors(idx):
                if not visited[nb]:
                    stack.append(nb)
        clusters.append(cluster)
    return clusters


def detect_clusters_from_facilities(
    facilities: Sequence[Facility], threshold_km: float
) -> List[List[Facility]]:
    """Build the proximity graph for ``facilities`` and return its clusters."""
    graph = build_proximity_graph(facilities, threshold_km)
    return detect_clusters(graph)


def cluster_distance(cluster_a: Sequence[Facility], cluster_b: Sequence[Facility]) -> float:
    """Return the smallest facility-to-facility distance between two clusters."""
    if not cluster_a or not cluster_b:
        return math.inf
    return min(facility_distance_km(a, b) for a in cluster_a for b in cluster_b)


def has_isolated_clusters(clusters: Sequence[Sequence[Facility]]) -> bool:
    return clusters is not None and len(clusters) > 1
