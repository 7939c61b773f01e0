from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import networkx as nx

from . import planner_utils

Facility = planner_utils.Facility

logger = logging.getLogger(__name__)


@dataclass
class GraphSummary:
    threshold_km: float
    node_count: int
    edge_count: int
    average_degree: float
    # (name, location, degree) for the first few nodes
    samples: List[Tuple[Optional[str], Optional[str], int]]


class ProximityGraph:
    """Undirected graph linking facilities no further apart than a threshold.

    Node ``i`` is ``facilities[i]``; only facilities with both coordinates
    become nodes. Edges live in a single :class:`networkx.Graph` keyed by node
    index, so adjacency is symmetric and free of duplicates.
    """

    def __init__(self, facilities: List[Facility], threshold_km: float, graph: nx.Graph):
        self.facilities = facilities
        self.threshold_km = threshold_km
        self.graph = graph

    @classmethod
    def build(cls, facilities: Sequence[Facility], threshold_km: float) -> "ProximityGraph":
        if threshold_km <= 0:
            raise planner_utils.InvalidConfigurationError(
                "distance threshold must be positive"
            )

        nodes = [f for f in facilities if f.has_coordinates]
        skipped = len(facilities) - len(nodes)
        if skipped:
            logger.debug("Skipping %d facilities without coordinates", skipped)

        G = nx.Graph()
        G.add_nodes_from(range(len(nodes)))
        for i in range(len(nodes)):
            a = nodes[i]
            for j in range(i + 1, len(nodes)):
                b = nodes[j]
                d = planner_utils.haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)
                if d <= threshold_km:
                    G.add_edge(i, j, weight=d)
        return cls(nodes, threshold_km, G)

    @property
    def node_count(self) -> int:
        return self.graph.number_of_nodes()

    @property
    def edge_count(self) -> int:
        return self.graph.number_of_edges()

    @property
    def average_degree(self) -> float:
        if not self.node_count:
            return 0.0
        return 2.0 * self.edge_count / self.node_count

    def neighbors(self, index: int) -> List[int]:
        """Return neighbour indices of node ``index`` in insertion order."""
        return list(self.graph.adj[index])

    def degree(self, index: int) -> int:
        return self.graph.degree[index]

    def summary(self, sample_size: int = 3) -> GraphSummary:
        samples = [
            (self.facilities[i].name, self.facilities[i].location, self.degree(i))
            for i in range(min(sample_size, self.node_count))
        ]
        return GraphSummary(
            threshold_km=self.threshold_km,
            node_count=self.node_count,
            edge_count=self.edge_count,
            average_degree=self.average_degree,
            samples=samples,
        )


def build_proximity_graph(facilities: Sequence[Facility], threshold_km: float) -> ProximityGraph:
    """Return a :class:`ProximityGraph` for ``facilities``."""
    return ProximityGraph.build(facilities, threshold_km)
