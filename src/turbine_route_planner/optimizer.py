from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
import logging

import numpy as np

from . import planner_utils

Facility = planner_utils.Facility

logger = logging.getLogger(__name__)


@dataclass
class RouteMetrics:
    stop_count: int
    total_distance_km: float
    longest_leg_km: float


def total_route_distance(route: Sequence[Facility]) -> float:
    """Sum of the legs between consecutive stops of ``route``."""
    if route is None or len(route) < 2:
        return 0.0
    return sum(
        planner_utils.facility_distance_km(a, b) for a, b in zip(route[:-1], route[1:])
    )


def calculate_route_metrics(route: Sequence[Facility]) -> RouteMetrics:
    legs = [
        planner_utils.facility_distance_km(a, b) for a, b in zip(route[:-1], route[1:])
    ]
    return RouteMetrics(
        stop_count=len(route),
        total_distance_km=sum(legs),
        longest_leg_km=max(legs, default=0.0),
    )


def nearest_neighbor_route(facilities: Sequence[Facility]) -> List[Facility]:
    """Greedy route that always moves to the closest unvisited facility.

    Starts at ``facilities[0]``. Ties go to the facility listed first.
    """
    n = len(facilities)
    if n == 0:
        return []
    if n == 1:
        return [facilities[0]]

    dist = planner_utils.distance_matrix(facilities)
    visited = np.zeros(n, dtype=bool)
    current = 0
    visited[current] = True
    order = [current]
    for _ in range(n - 1):
        candidates = np.flatnonzero(~visited)
        nxt = int(candidates[np.argmin(dist[current, candidates])])
        visited[nxt] = True
        order.append(nxt)
        current = nxt
    return [facilities[i] for i in order]


def _is_improving(order: List[int], dist: np.ndarray, i: int, j: int) -> bool:
    a, b, c = order[i], order[i + 1], order[j]
    if j == len(order) - 1:
        # open path: no edge leaves the last stop
        return dist[a, c] < dist[a, b]
    d = order[j + 1]
    return dist[a, c] + dist[b, d] < dist[a, b] + dist[c, d]


def _two_opt_order(
    dist: np.ndarray, max_iterations: Optional[int] = None
) -> Tuple[List[int], int]:
    """Run 2-opt passes over the index order ``0..n-1`` of ``dist``.

    Returns the improved order and the number of accepted moves.
    """
    n = dist.shape[0]
    order = list(range(n))
    moves = 0
    improved = True
    while improved:
        improved = False
        for i in range(n - 2):
            for j in range(i + 2, n):
                if not _is_improving(order, dist, i, j):
                    continue
                if max_iterations is not None and moves >= max_iterations:
                    logger.warning("2-opt optimization reached iteration limit %d", max_iterations)
                    return order, moves
                # the pass goes on over the reversed route
                order[i + 1 : j + 1] = order[i + 1 : j + 1][::-1]
                moves += 1
                improved = True
    return order, moves


def two_opt_improve(
    route: Sequence[Facility], max_iterations: Optional[int] = None
) -> List[Facility]:
    """Shorten ``route`` with 2-opt moves on an open path.

    The first stop stays fixed. A pass visits every index pair ``(i, j)`` once
    and applies each improving reversal as soon as it is found, then carries
    on with the next pair of the updated route. Passes repeat until one
    accepts no move, or until ``max_iterations`` moves have been accepted.
    """
    if route is None:
        return []
    if len(route) < 4:
        return list(route)

    order, moves = _two_opt_order(planner_utils.distance_matrix(route), max_iterations)
    logger.debug("2-opt accepted %d moves on %d stops", moves, len(route))
    return [route[k] for k in order]


def optimize_route(
    facilities: Sequence[Facility], max_iterations: Optional[int] = None
) -> List[Facility]:
    """Nearest-neighbour construction followed by 2-opt improvement."""
    if not facilities:
        return []
    route = nearest_neighbor_route(facilities)
    return two_opt_improve(route, max_iterations=max_iterations)
