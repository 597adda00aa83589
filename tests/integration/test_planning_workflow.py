"""End-to-end planning runs against the in-memory routing provider."""

import json

import hypothesis.strategies as st
import pytest
from hypothesis import HealthCheck, given, settings

from busplan import plan_clusters, plan_fleet, preview_clusters
from busplan.config import BusplanParams, ProviderParams
from busplan.core_types import Bus, PlanStatus, SchoolLocation, Student
from busplan.utils.save_results import save_plan_results

SCHOOL = SchoolLocation(37.98, 23.73)
PARAMS = BusplanParams(provider=ProviderParams(api_key="test-key"))

coordinates = st.one_of(
    st.tuples(
        st.floats(min_value=37.90, max_value=38.06, allow_nan=False),
        st.floats(min_value=23.60, max_value=23.86, allow_nan=False),
    ),
    # occasionally broken data
    st.sampled_from([(None, None), (91.0, 23.7), (0.0, 0.0), (float("nan"), 23.7)]),
)


@settings(max_examples=30, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(
    coords=st.lists(coordinates, max_size=20),
    capacities=st.lists(st.integers(min_value=-1, max_value=6), max_size=4),
    strategy=st.sampled_from(["sweep", "balanced", "kmeans", "grid", "density"]),
    route_type=st.sampled_from(["pickup", "dropoff", "mixed"]),
    use_batch=st.booleans(),
)
def test_every_student_is_accounted_for(make_provider, coords, capacities, strategy, route_type, use_batch):
    students = [Student(f"s{i}", lat, lon) for i, (lat, lon) in enumerate(coords)]
    buses = [Bus(f"b{i}", c) for i, c in enumerate(capacities)]

    result = plan_fleet(
        SCHOOL, students, buses, PARAMS,
        strategy=strategy, route_type=route_type, use_batch=use_batch, provider=make_provider(),
    )

    assigned = result.assigned_student_ids
    invalid = set(result.invalid_student_ids)
    valid = {s.id for s in students} - invalid
    assert len(assigned) == len(set(assigned))
    assert sorted(assigned + result.unassigned_student_ids) == sorted(valid)

    capacity_by_bus = {b.id: b.capacity for b in buses}
    for route in result.routes:
        assert route.students_assigned <= capacity_by_bus[route.bus_id]
        assert len(route.segments) == len(route.waypoints) - 1

    if result.status is not PlanStatus.REJECTED:
        usable = sum(c for c in capacities if c > 0)
        assert len(assigned) == min(len(valid), usable)


def test_plan_then_adjust_then_replan(tmp_path, school, ten_students, make_provider):
    provider = make_provider(reverse_middle=True)
    buses = [Bus("north", 5, "North"), Bus("south", 5, "South")]

    preview = preview_clusters(school, ten_students, buses, "kmeans", PARAMS)
    first = plan_fleet(school, ten_students, buses, PARAMS, strategy="kmeans", provider=provider)
    assert first.status is PlanStatus.SUCCESS
    assert sorted(first.assigned_student_ids) == sorted(s.id for s in ten_students)

    # an operator moves one student from the first to the second bus
    moved = preview[0].students.pop()
    preview[1].students.insert(0, moved)
    replanned = plan_clusters(school, preview, params=PARAMS, provider=provider)

    by_bus = {r.bus_id: r for r in replanned.routes}
    assert moved.id in by_bus[preview[1].bus_id].student_ids_ordered
    assert sorted(replanned.assigned_student_ids + replanned.unassigned_student_ids) == sorted(
        s.id for s in ten_students
    )

    path = save_plan_results(replanned, tmp_path / "replanned.json")
    data = json.loads(path.read_text())
    assert data["total_students_assigned"] + data["total_students_unassigned"] == 10


@pytest.mark.parametrize("use_batch", [True, False])
def test_failure_of_one_bus_keeps_the_others(school, seven_students, make_provider, use_batch):
    buses = [Bus("b1", 3), Bus("b2", 2), Bus("b3", 2)]
    healthy = plan_fleet(school, seven_students, buses, PARAMS, strategy="sweep", provider=make_provider())
    victim = healthy.routes[1]
    victim_coord = victim.waypoints[0].coord_string

    result = plan_fleet(
        school, seven_students, buses, PARAMS,
        strategy="sweep", use_batch=use_batch, provider=make_provider(fail_coords={victim_coord}),
    )

    assert result.status is PlanStatus.PARTIAL_FAILURE
    assert [f.bus_id for f in result.failures] == [victim.bus_id]
    surviving = {r.bus_id: r.student_ids_ordered for r in result.routes}
    expected = {r.bus_id: r.student_ids_ordered for r in healthy.routes if r.bus_id != victim.bus_id}
    assert surviving == expected
    assert sorted(result.unassigned_student_ids) == sorted(victim.student_ids_ordered)
