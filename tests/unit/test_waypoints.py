"""Tests for provider path construction."""

import pytest

from busplan.core_types import RouteType, SchoolLocation, Stop, Student, WaypointKind
from busplan.routing import build_waypoint_path

SCHOOL = SchoolLocation(lat=37.98, lon=23.73)

NEAR = Student(id="near", lat=37.981, lon=23.731)
MID = Student(id="mid", lat=37.99, lon=23.74)
FAR = Student(id="far", lat=38.02, lon=23.77)


def _ids(path):
    return [w.id for w in path.waypoints]


def test_pickup_starts_at_furthest_and_ends_at_school():
    path = build_waypoint_path(SCHOOL, [NEAR, FAR, MID], route_type=RouteType.PICKUP)
    assert _ids(path) == ["far", "near", "mid", "school"]
    assert path.anchor_student_id == "far"
    assert path.waypoints[-1].kind is WaypointKind.SCHOOL


def test_dropoff_is_the_mirror_of_pickup():
    path = build_waypoint_path(SCHOOL, [NEAR, FAR, MID], route_type="dropoff")
    assert _ids(path) == ["school", "near", "mid", "far"]
    assert path.anchor_student_id == "far"


def test_mixed_keeps_input_order_after_school():
    path = build_waypoint_path(SCHOOL, [NEAR, FAR, MID], route_type=RouteType.MIXED)
    assert _ids(path) == ["school", "near", "far", "mid"]
    assert path.anchor_student_id is None


def test_unknown_route_type_is_mixed():
    path = build_waypoint_path(SCHOOL, [NEAR, FAR], route_type="zigzag")
    assert path.route_type is RouteType.MIXED


def test_stops_sorted_by_order_then_input_order():
    stops = [
        Stop(id="loose", lat=37.97, lon=23.72),
        Stop(id="second", lat=37.975, lon=23.725, order=2),
        Stop(id="first", lat=37.976, lon=23.726, order=1),
    ]
    pickup = build_waypoint_path(SCHOOL, [NEAR, FAR], stops=stops, route_type="pickup")
    assert _ids(pickup) == ["far", "near", "first", "second", "loose", "school"]

    mixed = build_waypoint_path(SCHOOL, [NEAR], stops=stops, route_type="mixed")
    assert _ids(mixed) == ["school", "first", "second", "loose", "near"]


def test_invalid_stop_is_skipped():
    stops = [Stop(id="bad", lat=0, lon=0), Stop(id="ok", lat=37.97, lon=23.72)]
    path = build_waypoint_path(SCHOOL, [NEAR], stops=stops, route_type="pickup")
    assert _ids(path) == ["near", "ok", "school"]


def test_invalid_students_are_reported_not_routed():
    broken = Student(id="broken", lat=91.0, lon=23.7)
    path = build_waypoint_path(SCHOOL, [broken, NEAR, MID])
    assert "broken" not in _ids(path)
    assert path.skipped_student_ids == ("broken",)
    assert path.student_ids == ["mid", "near"]


def test_no_valid_students_gives_degenerate_path():
    path = build_waypoint_path(SCHOOL, [Student(id="x", lat=None, lon=None)])
    assert path.is_degenerate
    assert _ids(path) == ["school"]
    assert path.skipped_student_ids == ("x",)


def test_equidistant_students_keep_first_as_anchor():
    a = Student(id="a", lat=37.99, lon=23.74)
    b = Student(id="b", lat=37.99, lon=23.74)
    path = build_waypoint_path(SCHOOL, [a, b], route_type="pickup")
    assert path.anchor_student_id == "a"


def test_coord_string_format():
    path = build_waypoint_path(SCHOOL, [MID], route_type="pickup")
    assert path.coord_string == "37.990000,23.740000:37.980000,23.730000"


@pytest.mark.parametrize("route_type", ["pickup", "dropoff", "mixed"])
def test_every_valid_student_appears_once(route_type):
    path = build_waypoint_path(SCHOOL, [NEAR, MID, FAR], route_type=route_type)
    assert sorted(path.student_ids) == ["far", "mid", "near"]
    assert len(path.waypoints) == 4
