"""Tests for per-cluster optimization and failure isolation."""

from unittest.mock import patch

import pytest

from busplan.core_types import Cluster, RouteType, Student
from busplan.errors import OptimizerError
from busplan.routing import optimize_clusters


@pytest.fixture
def clusters(seven_students):
    return [
        Cluster(bus_id="b1", capacity=4, students=seven_students[:4]),
        Cluster(bus_id="b2", capacity=3, students=seven_students[4:]),
    ]


@pytest.mark.parametrize("use_batch", [True, False])
def test_every_cluster_gets_a_route(school, clusters, fake_provider, use_batch):
    results = optimize_clusters(school, clusters, fake_provider, use_batch=use_batch)

    assert [r.cluster.bus_id for r in results] == ["b1", "b2"]
    assert all(r.ok and r.failure is None for r in results)
    assert sorted(results[0].route.student_ids_ordered) == ["s1", "s2", "s3", "s4"]
    assert results[0].route.total_distance_m > 0


def test_batch_mode_makes_one_call(school, clusters, fake_provider):
    optimize_clusters(school, clusters, fake_provider, use_batch=True)
    assert len(fake_provider.batch_calls) == 1
    assert len(fake_provider.batch_calls[0][0]) == 2
    assert fake_provider.route_calls == []


def test_single_mode_calls_per_cluster(school, clusters, fake_provider):
    optimize_clusters(school, clusters, fake_provider, use_batch=False, max_parallel=2)
    assert len(fake_provider.route_calls) == 2
    assert fake_provider.batch_calls == []


def test_options_are_forwarded(school, clusters, fake_provider):
    options = {"departAt": "2026-09-01T07:00:00", "traffic": True}
    optimize_clusters(school, clusters, fake_provider, use_batch=False, options=options)
    assert all(call_options == options for _, call_options in fake_provider.route_calls)


@pytest.mark.parametrize("use_batch", [True, False])
def test_one_failure_does_not_affect_siblings(school, clusters, make_provider, use_batch):
    provider = make_provider(fail_coords={"37.985000,23.750000"})  # s5, on the second bus
    results = optimize_clusters(school, clusters, provider, use_batch=use_batch)

    assert results[0].ok
    assert not results[1].ok
    assert results[1].failure.bus_id == "b2"
    assert sorted(results[1].failure.student_ids) == ["s5", "s6", "s7"]
    assert "rejected" in results[1].failure.reason


def test_whole_batch_failure_fails_every_cluster(school, clusters, make_provider):
    provider = make_provider(batch_error=OptimizerError("gateway down"))
    results = optimize_clusters(school, clusters, provider, use_batch=True)
    assert [r.ok for r in results] == [False, False]
    assert all("gateway down" in r.failure.reason for r in results)


def test_malformed_payload_is_a_cluster_failure(school, clusters):
    class BrokenProvider:
        def calculate_route(self, path, *, options=None):
            return {"legs": []}

        def calculate_batch(self, paths, *, options=None):
            return [self.calculate_route(p) for p in paths]

    results = optimize_clusters(school, clusters, BrokenProvider())
    assert all(r.failure is not None and "legs" in r.failure.reason for r in results)


def test_short_batch_answer_fails_only_missing_clusters(school, clusters, fake_provider):
    answer_first_only = fake_provider.calculate_batch
    with patch.object(
        fake_provider, "calculate_batch", side_effect=lambda paths, options=None: answer_first_only(paths[:1])
    ):
        results = optimize_clusters(school, clusters, fake_provider, use_batch=True)

    assert results[0].ok
    assert results[1].failure.bus_id == "b2"
    assert "missing" in results[1].failure.reason


@pytest.mark.parametrize("error", [ValueError("bad coordinate"), TimeoutError("read timed out"), KeyError("routes")])
def test_unexpected_provider_error_fails_only_its_cluster(school, clusters, fake_provider, error):
    answer = fake_provider.calculate_route

    def flaky(path, *, options=None):
        if "37.985000,23.750000" in path:  # s5, on the second bus
            raise error
        return answer(path, options=options)

    with patch.object(fake_provider, "calculate_route", side_effect=flaky):
        results = optimize_clusters(school, clusters, fake_provider, use_batch=False, max_parallel=2)

    assert results[0].ok
    assert results[1].failure.bus_id == "b2"
    assert type(error).__name__ in results[1].failure.reason


def test_empty_clusters_are_not_submitted(school, clusters, fake_provider):
    results = optimize_clusters(
        school, clusters + [Cluster(bus_id="b3", capacity=5)], fake_provider, use_batch=True
    )
    assert len(fake_provider.batch_calls[0][0]) == 2
    assert results[2].route is None and results[2].failure is None


def test_invalid_members_are_skipped(school, fake_provider):
    cluster = Cluster(
        bus_id="b1",
        capacity=3,
        students=[Student(id="ok", lat=37.99, lon=23.74), Student(id="bad", lat=None, lon=None)],
    )
    (result,) = optimize_clusters(school, [cluster], fake_provider)
    assert result.skipped_student_ids == ["bad"]
    assert result.route.student_ids_ordered == ["ok"]


def test_provider_reordering_is_applied(school, clusters, make_provider):
    provider = make_provider(reverse_middle=True)
    (first, _) = optimize_clusters(school, clusters, provider, route_type=RouteType.PICKUP)
    plain = optimize_clusters(school, clusters, make_provider(), route_type=RouteType.PICKUP)[0]

    reordered = first.route.student_ids_ordered
    original = plain.route.student_ids_ordered
    assert reordered[0] == original[0]
    assert reordered[1:] == original[1:][::-1]
