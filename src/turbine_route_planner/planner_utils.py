import json
import math
import os
import re
import logging
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


class InvalidConfigurationError(ValueError):
    """Raised when planner settings cannot produce a valid plan."""


@dataclass(frozen=True)
class Facility:
    facility_id: int
    # identity is the id alone
    name: Optional[str] = field(default=None, compare=False)
    latitude: Optional[float] = field(default=None, compare=False)
    longitude: Optional[float] = field(default=None, compare=False)
    facility_type: Optional[str] = field(default=None, compare=False)
    location: Optional[str] = field(default=None, compare=False)
    operator: Optional[str] = field(default=None, compare=False)

    @property
    def has_coordinates(self) -> bool:
        """True only when both latitude and longitude are known numbers."""
        return _clean(self.latitude) is not None and _clean(self.longitude) is not None


@dataclass
class PlannerConfig:
    cluster_threshold_km: float = 50.0
    service_hours_per_facility: float = 2.0
    work_hours_per_day: float = 8.0
    transport_speed_kmh: float = 60.0
    transport_hours_per_day: float = 2.0
    top_group_count: int = 5
    max_two_opt_iterations: Optional[int] = field(default=None)

    @property
    def facilities_per_day(self) -> int:
        return int(math.floor(self.work_hours_per_day / self.service_hours_per_facility))

    @property
    def max_transport_km_per_day(self) -> float:
        return self.transport_speed_kmh * self.transport_hours_per_day

    def validate_schedule(self) -> "PlannerConfig":
        """Check only the hour and transport budgets used to build days."""
        for name in (
            "service_hours_per_facility",
            "work_hours_per_day",
            "transport_speed_kmh",
            "transport_hours_per_day",
        ):
            if getattr(self, name) <= 0:
                raise InvalidConfigurationError(f"{name} must be positive")
        if self.facilities_per_day < 1:
            raise InvalidConfigurationError(
                "work_hours_per_day must cover at least one facility service"
            )
        return self

    def validate(self) -> "PlannerConfig":
        """Raise :class:`InvalidConfigurationError` for unusable settings."""
        if self.cluster_threshold_km <= 0:
            raise InvalidConfigurationError("cluster_threshold_km must be positive")
        self.validate_schedule()
        if self.top_group_count < 1:
            raise InvalidConfigurationError("top_group_count must be at least 1")
        if self.max_two_opt_iterations is not None and self.max_two_opt_iterations < 0:
            raise InvalidConfigurationError("max_two_opt_iterations must not be negative")
        return self


_HOUR_FIELDS = {
    "service_hours_per_facility",
    "work_hours_per_day",
    "transport_hours_per_day",
}


def parse_hours(value: Any) -> float:
    """Parse a duration and return hours.

    Accepts numbers (already hours), plain strings ("8", "1.5"), hours with an
    ``h`` suffix ("2h", "1h30", "1h30m") or ``H:MM`` notation ("1:30").
    """

    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().lower().replace(" ", "")
    m = re.match(r"^(\d+(?:\.\d+)?)h(?:([0-5]?\d)(?:m)?)?$", text)
    if m:
        hours = float(m.group(1))
        minutes = float(m.group(2) or 0)
        return hours + minutes / 60.0
    if ":" in text:
        hrs, mins = text.split(":", 1)
        return float(hrs) + float(mins) / 60.0
    return float(text)


def load_config(path: str) -> PlannerConfig:
    """Load a :class:`PlannerConfig` from a JSON or YAML file."""
    if not os.path.exists(path):
        raise FileNotFoundError(path)
    with open(path) as f:
        if path.lower().endswith(".json"):
            data = json.load(f)
        else:
            import yaml

            data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError("Configuration file must contain a mapping")
    known = {f.name for f in fields(PlannerConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
    for key in _HOUR_FIELDS & set(data):
        data[key] = parse_hours(data[key])
    return PlannerConfig(**data)


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in km between two lat/lon points."""

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dl = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dl / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def facility_distance_km(a: Facility, b: Facility) -> float:
    """Distance between two facilities; ``inf`` when either has no position."""
    if not (a.has_coordinates and b.has_coordinates):
        return math.inf
    return haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)


def distance_matrix(facilities: Sequence[Facility]) -> np.ndarray:
    """Return the symmetric matrix of pairwise facility distances."""
    n = len(facilities)
    matrix = np.zeros((n, n), dtype=float)
    for i in range(n):
        for j in range(i + 1, n):
            d = facility_distance_km(facilities[i], facilities[j])
            matrix[i, j] = d
            matrix[j, i] = d
    return matrix


def _clean(value: Any) -> Optional[Any]:
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _first(record: Dict[str, Any], *keys: str) -> Optional[Any]:
    for key in keys:
        if key in record:
            value = _clean(record[key])
            if value is not None:
                return value
    return None


def _facility_from_record(record: Dict[str, Any]) -> Facility:
    raw_id = _first(record, "facility_id", "id")
    if raw_id is None:
        raise ValueError(f"record without identifier: {record}")
    lat = _first(record, "latitude", "lat")
    lon = _first(record, "longitude", "lon", "lng")
    name = _first(record, "name")
    facility_type = _first(record, "facility_type", "type")
    location = _first(record, "location", "city")
    operator = _first(record, "operator")
    return Facility(
        facility_id=int(raw_id),
        name=str(name) if name is not None else None,
        latitude=float(lat) if lat is not None else None,
        longitude=float(lon) if lon is not None else None,
        facility_type=str(facility_type) if facility_type is not None else None,
        location=str(location) if location is not None else None,
        operator=str(operator) if operator is not None else None,
    )


def load_facilities(path: str) -> List[Facility]:
    """Load already-clean facility records from a CSV or JSON file.

    JSON files may hold a list of records or a mapping with a ``facilities``
    list. Missing coordinates become ``None``; no field repair is attempted.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(path)
    if path.lower().endswith(".json"):
        with open(path) as f:
            data = json.load(f)
        if isinstance(data, dict):
            data = data.get("facilities")
        if not isinstance(data, list):
            raise ValueError("Unrecognized facility JSON structure")
        records: Iterable[Dict[str, Any]] = data
    else:
        df = pd.read_csv(path)
        df.columns = [str(c).strip().lower() for c in df.columns]
        records = df.to_dict(orient="records")

    facilities = [_facility_from_record(r) for r in records]
    if not facilities:
        raise ValueError("No facilities found")
    missing = sum(1 for f in facilities if not f.has_coordinates)
    if missing:
        logger.info("%d of %d facilities have no coordinates", missing, len(facilities))
    return facilities
