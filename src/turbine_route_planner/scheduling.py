from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Sequence

from . import planner_utils

Facility = planner_utils.Facility

logger = logging.getLogger(__name__)

DayPlan = List[List[int]]


@dataclass(frozen=True)
class TransportWarning:
    from_id: int
    to_id: int
    distance_km: float
    limit_km: float

    def __str__(self) -> str:
        return (
            f"Leg #{self.from_id} -> #{self.to_id} is {self.distance_km:.1f} km, "
            f"over the daily transport limit of {self.limit_km:.1f} km"
        )


def format_day_facilities(facility_ids: Sequence[int]) -> str:
    """Render one day's facility ids as ``"#1, #2, #3"``."""
    return ", ".join(f"#{fid}" for fid in facility_ids)


class ScheduleBuilder:
    """Turn an ordered route into maintenance days under daily budgets."""

    def __init__(self, config: planner_utils.PlannerConfig):
        config.validate_schedule()
        self.config = config
        self.facilities_per_day = config.facilities_per_day
        self.max_transport_km_per_day = config.max_transport_km_per_day

    def build_day_plan(self, route: Sequence[Facility]) -> DayPlan:
        ids = [f.facility_id for f in route]
        step = self.facilities_per_day
        return [ids[k : k + step] for k in range(0, len(ids), step)]

    def base_days(self, route: Sequence[Facility]) -> int:
        if not route:
            return 0
        return math.ceil(len(route) / self.facilities_per_day)

    def check_transport_warnings(self, route: Sequence[Facility]) -> List[TransportWarning]:
        """Flag every leg of ``route`` longer than the daily transport limit."""
        warnings: List[TransportWarning] = []
        if route is None or len(route) < 2:
            return warnings
        for a, b in zip(route[:-1], route[1:]):
            d = planner_utils.facility_distance_km(a, b)
            if d > self.max_transport_km_per_day:
                warnings.append(
                    TransportWarning(a.facility_id, b.facility_id, d, self.max_transport_km_per_day)
                )
        return warnings

    def extra_travel_days(self, route: Sequence[Facility]) -> int:
        """Days added by over-budget legs between the last stop of a day and the
        first stop of the next one.

        Long legs inside a day only raise a warning and never add days.
        """
        if route is None or len(route) < 2:
            return 0
        extra = 0
        for i in range(self.facilities_per_day - 1, len(route) - 1, self.facilities_per_day):
            d = planner_utils.facility_distance_km(route[i], route[i + 1])
            if math.isinf(d):
                logger.warning(
                    "No coordinates for leg #%s -> #%s; no travel days added",
                    route[i].facility_id,
                    route[i + 1].facility_id,
                )
                continue
            if d > self.max_transport_km_per_day:
                excess_hours = (d - self.max_transport_km_per_day) / self.config.transport_speed_kmh
                extra += math.ceil(excess_hours / self.config.work_hours_per_day)
        return extra

    def total_days(self, route: Sequence[Facility]) -> int:
        return self.base_days(route) + self.extra_travel_days(route)
