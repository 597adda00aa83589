"""Tests for rebuilding routes from provider payloads."""

import pytest

from busplan.core_types import Cluster, SchoolLocation, Stop, Student
from busplan.errors import OptimizerError
from busplan.routing import build_waypoint_path, reconstruct_route

SCHOOL = SchoolLocation(lat=37.98, lon=23.73)
STUDENTS = [
    Student(id="far", lat=38.02, lon=23.77),
    Student(id="a", lat=37.99, lon=23.74),
    Student(id="b", lat=37.985, lon=23.735),
    Student(id="c", lat=37.995, lon=23.745),
]
CLUSTER = Cluster(bus_id="b1", capacity=5, students=STUDENTS, bus_name="Yellow")


def _legs(*meters):
    return [{"summary": {"lengthInMeters": m, "travelTimeInSeconds": m / 10}} for m in meters]


@pytest.fixture
def pickup_path():
    # far, a, b, c, school: the middle is a, b, c
    return build_waypoint_path(SCHOOL, STUDENTS, route_type="pickup")


def test_no_reordering_keeps_submitted_order(pickup_path):
    route = reconstruct_route(pickup_path, {"legs": _legs(100, 200, 300, 400)}, CLUSTER)
    assert route.student_ids_ordered == ["far", "a", "b", "c"]
    assert [w.id for w in route.waypoints] == ["far", "a", "b", "c", "school"]
    assert route.bus_name == "Yellow"


def test_empty_optimized_waypoints_means_no_reordering(pickup_path):
    payload = {"optimizedWaypoints": [], "legs": _legs(1, 1, 1, 1)}
    route = reconstruct_route(pickup_path, payload, CLUSTER)
    assert route.student_ids_ordered == ["far", "a", "b", "c"]
    assert route.total_distance_m == 4


def test_reordering_applies_to_middle_only(pickup_path):
    payload = {
        "optimizedWaypoints": [
            {"providedIndex": 0, "optimizedIndex": 2},
            {"providedIndex": 1, "optimizedIndex": 0},
            {"providedIndex": 2, "optimizedIndex": 1},
        ],
        "legs": _legs(100, 200, 300, 400),
    }
    route = reconstruct_route(pickup_path, payload, CLUSTER)
    assert route.student_ids_ordered == ["far", "b", "c", "a"]
    assert route.waypoints[0].id == "far"
    assert route.waypoints[-1].id == "school"


def test_original_index_key_is_accepted(pickup_path):
    payload = {
        "optimizedWaypoints": [
            {"originalIndex": 0, "optimizedIndex": 2},
            {"originalIndex": 1, "optimizedIndex": 1},
            {"originalIndex": 2, "optimizedIndex": 0},
        ],
        "legs": _legs(1, 1, 1, 1),
    }
    route = reconstruct_route(pickup_path, payload, CLUSTER)
    assert route.student_ids_ordered == ["far", "c", "b", "a"]


def test_segments_follow_reconstructed_order(pickup_path):
    payload = {
        "optimizedWaypoints": [
            {"providedIndex": 0, "optimizedIndex": 1},
            {"providedIndex": 1, "optimizedIndex": 0},
            {"providedIndex": 2, "optimizedIndex": 2},
        ],
        "legs": _legs(100, 200, 300, 400),
    }
    route = reconstruct_route(pickup_path, payload, CLUSTER)
    pairs = [(s.origin.id, s.destination.id) for s in route.segments]
    assert pairs == [("far", "b"), ("b", "a"), ("a", "c"), ("c", "school")]
    assert route.total_distance_m == 1000
    assert route.total_duration_s == 100
    assert route.distance_km == 1.0


def test_stops_are_reported_separately():
    stops = [Stop(id="meet", lat=37.982, lon=23.732)]
    path = build_waypoint_path(SCHOOL, STUDENTS[:2], stops=stops, route_type="pickup")
    route = reconstruct_route(path, {"legs": _legs(1, 1, 1)}, CLUSTER)
    assert route.student_ids_ordered == ["far", "a"]
    assert route.stops_ordered == ["meet"]


@pytest.mark.parametrize(
    "entries",
    [
        [{"providedIndex": 0, "optimizedIndex": 0}],  # too few
        [
            {"providedIndex": 0, "optimizedIndex": 0},
            {"providedIndex": 0, "optimizedIndex": 1},
            {"providedIndex": 2, "optimizedIndex": 2},
        ],  # duplicate index
        [
            {"providedIndex": 0, "optimizedIndex": 0},
            {"providedIndex": 1, "optimizedIndex": 1},
            {"providedIndex": 3, "optimizedIndex": 2},
        ],  # out of range
        [
            {"providedIndex": "0", "optimizedIndex": 0},
            {"providedIndex": 1, "optimizedIndex": 1},
            {"providedIndex": 2, "optimizedIndex": 2},
        ],  # not an integer
    ],
)
def test_reordering_must_be_a_permutation(pickup_path, entries):
    payload = {"optimizedWaypoints": entries, "legs": _legs(1, 1, 1, 1)}
    with pytest.raises(OptimizerError) as excinfo:
        reconstruct_route(pickup_path, payload, CLUSTER)
    assert excinfo.value.bus_id == "b1"


def test_leg_count_must_match(pickup_path):
    with pytest.raises(OptimizerError, match="legs"):
        reconstruct_route(pickup_path, {"legs": _legs(1, 1)}, CLUSTER)


def test_missing_summary_counts_as_zero(pickup_path):
    payload = {"legs": [{}, {"summary": {}}, {"summary": {"lengthInMeters": 50}}, None]}
    route = reconstruct_route(pickup_path, payload, CLUSTER)
    assert route.total_distance_m == 50
    assert route.total_duration_s == 0


@pytest.mark.parametrize(
    "payload",
    [
        {"optimizedWaypoints": [1, 0, 2], "legs": _legs(1, 1, 1, 1)},
        {"optimizedWaypoints": {"providedIndex": 0}, "legs": _legs(1, 1, 1, 1)},
        {"legs": ["oops"] * 4},
        {"legs": [{"summary": "oops"}] * 4},
        {"legs": {"summary": {}}},
        {"legs": [{"summary": {"lengthInMeters": "n/a"}}] * 4},
        {"legs": [{"summary": {"travelTimeInSeconds": [60]}}] * 4},
        ["not", "a", "route"],
    ],
    ids=[
        "waypoint-entry-not-object",
        "waypoints-not-list",
        "leg-not-object",
        "summary-not-object",
        "legs-not-list",
        "length-not-numeric",
        "duration-not-numeric",
        "route-not-object",
    ],
)
def test_malformed_payload_raises_optimizer_error(pickup_path, payload):
    with pytest.raises(OptimizerError) as excinfo:
        reconstruct_route(pickup_path, payload, CLUSTER)
    assert excinfo.value.bus_id == "b1"
