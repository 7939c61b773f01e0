"""Utility exports for the turbine maintenance route planner."""

from .planner_utils import (
    Facility,
    PlannerConfig,
    InvalidConfigurationError,
    haversine_km,
    load_config,
    load_facilities,
)
from .graph_utils import ProximityGraph, build_proximity_graph
from .clustering import detect_clusters, detect_clusters_from_facilities
from .optimizer import (
    nearest_neighbor_route,
    two_opt_improve,
    optimize_route,
    total_route_distance,
)
from .scheduling import ScheduleBuilder, TransportWarning
from .maintenance_planner import MaintenancePlanner, GroupPlan, ClusterPlan

__all__ = [
    "Facility",
    "PlannerConfig",
    "InvalidConfigurationError",
    "haversine_km",
    "load_config",
    "load_facilities",
    "ProximityGraph",
    "build_proximity_graph",
    "detect_clusters",
    "detect_clusters_from_facilities",
    "nearest_neighbor_route",
    "two_opt_improve",
    "optimize_route",
    "total_route_distance",
    "ScheduleBuilder",
    "TransportWarning",
    "MaintenancePlanner",
    "GroupPlan",
    "ClusterPlan",
]
