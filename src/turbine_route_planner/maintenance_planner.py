import argparse
import json
import logging
import os
import sys
import time
from collections import OrderedDict
from dataclasses import asdict, dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from tqdm.auto import tqdm

from . import clustering, optimizer, planner_utils
from .graph_utils import build_proximity_graph
from .planner_utils import Facility, InvalidConfigurationError, PlannerConfig
from .scheduling import DayPlan, ScheduleBuilder, TransportWarning, format_day_facilities

logger = logging.getLogger(__name__)

UNKNOWN_MANUFACTURER = "<unknown>"
UNKNOWN_LOCATION = "<unknown>"


@dataclass(frozen=True)
class IsolationWarning:
    cluster_number: int
    cluster_size: int
    min_distance_km: float
    limit_km: float

    def __str__(self) -> str:
        return (
            f"Cluster {self.cluster_number} ({self.cluster_size} facilities) is "
            f"{self.min_distance_km:.1f} km from the nearest other cluster, "
            f"beyond the daily transport limit of {self.limit_km:.1f} km"
        )


@dataclass
class ClusterPlan:
    cluster_number: int
    route: List[Facility]
    route_length_km: float
    longest_leg_km: float
    day_plan: DayPlan
    transport_warnings: List[TransportWarning]
    isolation_warning: Optional[IsolationWarning]
    base_days: int
    extra_travel_days: int

    @property
    def total_days(self) -> int:
        return self.base_days + self.extra_travel_days

    @property
    def start(self) -> Optional[Facility]:
        return self.route[0] if self.route else None


@dataclass
class GroupPlan:
    label: str
    facility_count: int
    clusters: List[ClusterPlan] = field(default_factory=list)
    elapsed_ms: float = 0.0

    @property
    def total_days(self) -> int:
        return sum(c.total_days for c in self.clusters)

    @property
    def warnings(self) -> List[str]:
        out: List[str] = []
        for c in self.clusters:
            if c.isolation_warning is not None:
                out.append(str(c.isolation_warning))
            out.extend(str(w) for w in c.transport_warnings)
        return out


def manufacturer_from_type(facility: Facility) -> str:
    """Return the first word of the facility type, e.g. ``"Vestas V47" -> "Vestas"``."""
    text = (facility.facility_type or "").strip()
    if not text:
        return UNKNOWN_MANUFACTURER
    return text.split()[0]


def group_facilities(
    facilities: Sequence[Facility], group_fn: Callable[[Facility], str]
) -> "OrderedDict[str, List[Facility]]":
    """Group coordinate-bearing facilities by ``group_fn`` in first-seen order."""
    groups: "OrderedDict[str, List[Facility]]" = OrderedDict()
    for f in facilities:
        if not f.has_coordinates:
            continue
        groups.setdefault(group_fn(f), []).append(f)
    return groups


def top_groups(groups: Dict[str, List[Facility]], top_n: int) -> List[str]:
    """Labels of the ``top_n`` largest groups; ties keep first-seen order."""
    ranked = sorted(groups, key=lambda label: len(groups[label]), reverse=True)
    return ranked[:top_n]


class MaintenancePlanner:
    """Plan maintenance days for groups of facilities."""

    def __init__(self, config: Optional[PlannerConfig] = None, *, show_progress: bool = False):
        self.config = (config or PlannerConfig()).validate()
        self.scheduler = ScheduleBuilder(self.config)
        self.show_progress = show_progress
        self.last_plans: "OrderedDict[str, GroupPlan]" = OrderedDict()

    @property
    def max_transport_km_per_day(self) -> float:
        return self.config.max_transport_km_per_day

    def _isolation_warning(
        self, cluster: List[Facility], number: int, all_clusters: List[List[Facility]]
    ) -> Optional[IsolationWarning]:
        min_dist = min(
            (
                clustering.cluster_distance(cluster, other)
                for other in all_clusters
                if other is not cluster
            ),
            default=float("inf"),
        )
        if min_dist > self.max_transport_km_per_day:
            return IsolationWarning(number, len(cluster), min_dist, self.max_transport_km_per_day)
        return None

    def plan_cluster(
        self,
        cluster: List[Facility],
        number: int,
        all_clusters: List[List[Facility]],
    ) -> ClusterPlan:
        isolation = None
        if clustering.has_isolated_clusters(all_clusters):
            isolation = self._isolation_warning(cluster, number, all_clusters)
            if isolation is not None:
                logger.warning("%s", isolation)

        route = optimizer.optimize_route(cluster, max_iterations=self.config.max_two_opt_iterations)
        metrics = optimizer.calculate_route_metrics(route)
        transport_warnings = self.scheduler.check_transport_warnings(route)
        for w in transport_warnings:
            logger.warning("%s", w)

        return ClusterPlan(
            cluster_number=number,
            route=route,
            route_length_km=metrics.total_distance_km,
            longest_leg_km=metrics.longest_leg_km,
            day_plan=self.scheduler.build_day_plan(route),
            transport_warnings=transport_warnings,
            isolation_warning=isolation,
            base_days=self.scheduler.base_days(route),
            extra_travel_days=self.scheduler.extra_travel_days(route),
        )

    def plan_group(self, facilities: Sequence[Facility], group_label: str) -> GroupPlan:
        """Cluster ``facilities``, route and schedule each cluster in turn."""
        started = time.perf_counter()
        plan = GroupPlan(label=group_label, facility_count=len(facilities or []))
        if not facilities:
            return plan

        graph = build_proximity_graph(facilities, self.config.cluster_threshold_km)
        summary = graph.summary()
        logger.debug(
            "%s: proximity graph with %d nodes, %d edges, average degree %.2f (threshold %.1f km)",
            group_label,
            summary.node_count,
            summary.edge_count,
            summary.average_degree,
            summary.threshold_km,
        )
        clusters = clustering.detect_clusters(graph)
        logger.info("%s: %d facilities in %d clusters", group_label, len(facilities), len(clusters))

        for number, cluster in enumerate(
            tqdm(
                clusters,
                desc=f"Planning {group_label}",
                unit="cluster",
                disable=not self.show_progress,
            ),
            start=1,
        ):
            plan.clusters.append(self.plan_cluster(cluster, number, clusters))

        plan.elapsed_ms = (time.perf_counter() - started) * 1000.0
        logger.info(
            "%s: %d maintenance days, planned in %.1f ms",
            group_label,
            plan.total_days,
            plan.elapsed_ms,
        )
        return plan

    def plan_top_groups(
        self,
        all_facilities: Sequence[Facility],
        group_fn: Callable[[Facility], str] = manufacturer_from_type,
        top_n: Optional[int] = None,
    ) -> Dict[str, int]:
        """Plan the ``top_n`` largest groups and return days per group label."""
        self.last_plans = OrderedDict()
        result: Dict[str, int] = {}
        if not all_facilities:
            return result
        if top_n is None:
            top_n = self.config.top_group_count

        started = time.perf_counter()
        groups = group_facilities(all_facilities, group_fn)
        logger.info(
            "Grouped facilities into %d groups in %.1f ms",
            len(groups),
            (time.perf_counter() - started) * 1000.0,
        )

        for label in top_groups(groups, top_n):
            plan = self.plan_group(groups[label], label)
            self.last_plans[label] = plan
            result[label] = plan.total_days
        logger.info("Top %d groups need %d maintenance days in total", top_n, sum(result.values()))
        return result


def format_group_report(plan: GroupPlan) -> List[str]:
    """Plain text lines describing ``plan``."""
    lines = [
        f"{plan.label}: {plan.facility_count} facilities, {len(plan.clusters)} clusters",
    ]
    for c in plan.clusters:
        lines.append(f"  Cluster {c.cluster_number}: {len(c.route)} facilities")
        if c.isolation_warning is not None:
            lines.append(f"    WARNING: {c.isolation_warning}")
        if c.start is not None:
            lines.append(
                f"    Start: #{c.start.facility_id} {c.start.name or ''} "
                f"({c.start.location or UNKNOWN_LOCATION})"
            )
        lines.append(
            f"    Route length: {c.route_length_km:.1f} km (longest leg {c.longest_leg_km:.1f} km)"
        )
        for w in c.transport_warnings:
            lines.append(f"    WARNING: {w}")
        lines.append(f"    Days: {c.total_days}")
        for day, ids in enumerate(c.day_plan, start=1):
            lines.append(f"      Day {day}: {format_day_facilities(ids)}")
    lines.append(f"  Total days: {plan.total_days}")
    return lines


class TqdmWriteHandler(logging.Handler):
    def emit(self, record):
        try:
            msg = self.format(record)
            tqdm.write(msg, file=sys.stderr)
            self.flush()
        except OSError:
            self.handleError(record)


def setup_logging(verbose: bool = False) -> None:
    handler = TqdmWriteHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s: %(name)s: %(message)s"))
    root_logger = logging.getLogger()
    for h in root_logger.handlers[:]:
        root_logger.removeHandler(h)
    root_logger.setLevel(logging.INFO if verbose else logging.WARNING)
    root_logger.addHandler(handler)


def _find_config_path(argv: List[str]) -> Optional[str]:
    for i, arg in enumerate(argv):
        if arg == "--config" and i + 1 < len(argv):
            return argv[i + 1]
        if arg.startswith("--config="):
            return arg.split("=", 1)[1]
    default_yaml = os.path.join("config", "planner_config.yaml")
    default_json = os.path.join("config", "planner_config.json")
    if os.path.exists(default_yaml):
        return default_yaml
    if os.path.exists(default_json):
        return default_json
    return None


def main(argv=None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    config_path = _find_config_path(argv)
    config_defaults: Dict[str, object] = {}
    if config_path and os.path.exists(config_path):
        try:
            config_defaults = asdict(planner_utils.load_config(config_path))
        except (OSError, ValueError, json.JSONDecodeError) as e:
            logger.error("Failed to load config %s: %s", config_path, e)
            return 2

    defaults = asdict(PlannerConfig())
    defaults.update(config_defaults)

    parser = argparse.ArgumentParser(description="Wind turbine maintenance route planner")
    parser.add_argument("--config", default=config_path, help="Path to config YAML or JSON file")
    parser.add_argument("--facilities", required=True, help="Facility CSV or JSON file")
    parser.add_argument(
        "--cluster-threshold-km",
        type=float,
        default=defaults["cluster_threshold_km"],
        help="Maximum distance between neighbouring facilities of one cluster",
    )
    parser.add_argument(
        "--service-hours",
        type=planner_utils.parse_hours,
        default=defaults["service_hours_per_facility"],
        help="Service time per facility (hours, e.g. 2 or 1h30)",
    )
    parser.add_argument(
        "--work-hours",
        type=planner_utils.parse_hours,
        default=defaults["work_hours_per_day"],
        help="Working hours per day",
    )
    parser.add_argument(
        "--transport-speed",
        type=float,
        default=defaults["transport_speed_kmh"],
        help="Average transport speed (km/h)",
    )
    parser.add_argument(
        "--transport-hours",
        type=planner_utils.parse_hours,
        default=defaults["transport_hours_per_day"],
        help="Transport hours available per day",
    )
    parser.add_argument(
        "--top",
        type=int,
        default=defaults["top_group_count"],
        help="Number of largest manufacturer groups to plan",
    )
    parser.add_argument(
        "--max-2opt-iterations",
        dest="max_two_opt_iterations",
        type=int,
        default=defaults["max_two_opt_iterations"],
        help="Stop 2-opt after this many accepted moves",
    )
    parser.add_argument("--progress", action="store_true", help="Show progress bars")
    parser.add_argument("--verbose", action="store_true", help="Verbose logging")
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    config = PlannerConfig(
        cluster_threshold_km=args.cluster_threshold_km,
        service_hours_per_facility=args.service_hours,
        work_hours_per_day=args.work_hours,
        transport_speed_kmh=args.transport_speed,
        transport_hours_per_day=args.transport_hours,
        top_group_count=args.top,
        max_two_opt_iterations=args.max_two_opt_iterations,
    )
    try:
        planner = MaintenancePlanner(config, show_progress=args.progress)
        facilities = planner_utils.load_facilities(args.facilities)
    except InvalidConfigurationError as e:
        logger.error("Invalid configuration: %s", e)
        return 2
    except (OSError, ValueError) as e:
        logger.error("Failed to load facilities %s: %s", args.facilities, e)
        return 2

    planner.plan_top_groups(facilities, manufacturer_from_type, config.top_group_count)
    for plan in planner.last_plans.values():
        for line in format_group_report(plan):
            tqdm.write(line)
    total = sum(p.total_days for p in planner.last_plans.values())
    tqdm.write(f"Maintenance days for top {config.top_group_count} groups: {total}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
