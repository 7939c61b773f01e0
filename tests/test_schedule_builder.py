import math

import pytest

from turbine_route_planner.planner_utils import Facility, InvalidConfigurationError, PlannerConfig
from turbine_route_planner.scheduling import ScheduleBuilder, format_day_facilities

KM_PER_DEG_LAT = 6371.0 * math.pi / 180.0


def north_of(fid, km, lat0=48.0, lon=9.0):
    return Facility(fid, latitude=lat0 + km / KM_PER_DEG_LAT, longitude=lon)


def make_builder(**kwargs):
    params = dict(
        service_hours_per_facility=2.0,
        work_hours_per_day=8.0,
        transport_speed_kmh=60.0,
        transport_hours_per_day=2.0,
    )
    params.update(kwargs)
    return ScheduleBuilder(PlannerConfig(**params))


def close_route(n):
    # 100 m apart, never near the transport limit
    return [north_of(i, i * 0.1) for i in range(n)]


def test_derived_budgets():
    builder = make_builder()
    assert builder.facilities_per_day == 4
    assert builder.max_transport_km_per_day == pytest.approx(120.0)


def test_builder_rejects_zero_facilities_per_day():
    with pytest.raises(InvalidConfigurationError):
        make_builder(service_hours_per_facility=10.0)


def test_nine_facilities_need_three_days():
    builder = make_builder()
    route = close_route(9)
    assert builder.base_days(route) == 3
    assert builder.extra_travel_days(route) == 0
    assert builder.total_days(route) == 3
    plan = builder.build_day_plan(route)
    assert plan == [[0, 1, 2, 3], [4, 5, 6, 7], [8]]


@pytest.mark.parametrize("n", [0, 1, 3, 4, 5, 8, 13])
def test_day_plan_concatenation_reproduces_route(n):
    builder = make_builder()
    route = close_route(n)
    plan = builder.build_day_plan(route)
    assert [fid for day in plan for fid in day] == [f.facility_id for f in route]
    assert all(len(day) <= builder.facilities_per_day for day in plan)
    assert len(plan) == builder.base_days(route)


def test_empty_route():
    builder = make_builder()
    assert builder.build_day_plan([]) == []
    assert builder.base_days([]) == 0
    assert builder.total_days([]) == 0
    assert builder.check_transport_warnings([]) == []


def test_long_leg_emits_transport_warning():
    builder = make_builder()
    route = [north_of(101, 0.0), north_of(202, 150.0)]
    warnings = builder.check_transport_warnings(route)
    assert len(warnings) == 1
    w = warnings[0]
    assert (w.from_id, w.to_id) == (101, 202)
    assert w.distance_km == pytest.approx(150.0)
    assert w.limit_km == pytest.approx(120.0)
    text = str(w)
    assert "#101" in text and "#202" in text and "150.0 km" in text


def test_warnings_cover_every_leg():
    builder = make_builder()
    route = [north_of(1, 0), north_of(2, 200), north_of(3, 400), north_of(4, 401)]
    warnings = builder.check_transport_warnings(route)
    assert [(w.from_id, w.to_id) for w in warnings] == [(1, 2), (2, 3)]


def test_boundary_leg_adds_travel_day():
    builder = make_builder()
    # day 1: ids 0..3, then a 300 km overnight transfer to id 4
    route = close_route(4) + [north_of(4, 300.3)]
    assert builder.base_days(route) == 2
    # (300 - 120) km / 60 km/h = 3 h -> one extra 8 h day
    assert builder.extra_travel_days(route) == 1
    assert builder.total_days(route) == 3


def test_very_long_boundary_leg_adds_several_days():
    builder = make_builder()
    route = close_route(4) + [north_of(4, 1200.3)]
    # (1200 - 120) / 60 = 18 h -> 3 days
    assert builder.extra_travel_days(route) == 3


def test_long_leg_inside_a_day_only_warns():
    builder = make_builder()
    route = [north_of(0, 0), north_of(1, 0.1), north_of(2, 300.0), north_of(3, 300.1)]
    assert len(builder.check_transport_warnings(route)) == 1
    assert builder.extra_travel_days(route) == 0
    assert builder.total_days(route) == 1


def test_format_day_facilities():
    assert format_day_facilities([12, 15, 3]) == "#12, #15, #3"
    assert format_day_facilities([]) == ""


def test_only_day_boundaries_add_travel_days():
    builder = make_builder()
    # days: [0..3], [4..7], [8]; 5 -> 6 lies inside day 2, 7 -> 8 ends it
    route = close_route(6) + [north_of(6, 300.5), north_of(7, 300.6), north_of(8, 600.6)]
    assert builder.build_day_plan(route) == [[0, 1, 2, 3], [4, 5, 6, 7], [8]]
    warnings = builder.check_transport_warnings(route)
    assert [(w.from_id, w.to_id) for w in warnings] == [(5, 6), (7, 8)]
    assert builder.base_days(route) == 3
    assert builder.extra_travel_days(route) == 1
    assert builder.total_days(route) == 4


def test_one_facility_per_day_checks_every_leg():
    builder = make_builder(service_hours_per_facility=8.0, work_hours_per_day=8.0)
    assert builder.facilities_per_day == 1
    route = [north_of(0, 0.0), north_of(1, 300.0), north_of(2, 300.1), north_of(3, 1500.1)]
    # 300 km: 3 h over budget -> 1 day; 1200 km: 18 h -> 3 days
    assert builder.extra_travel_days(route) == 4
    assert builder.base_days(route) == 4
    assert builder.total_days(route) == 8
    assert len(builder.check_transport_warnings(route)) == 2


def test_builder_ignores_settings_it_does_not_use():
    config = PlannerConfig(cluster_threshold_km=0.0, top_group_count=0)
    builder = ScheduleBuilder(config)
    assert builder.total_days(close_route(5)) == 2
    with pytest.raises(InvalidConfigurationError):
        config.validate()
