"""Shared fixtures: a small Athens dataset and an in-memory routing provider."""

import pytest
from haversine import Unit, haversine

from busplan.config import AlgorithmParams, BusplanParams, PlanningParams, ProviderParams
from busplan.core_types import Bus, SchoolLocation, Student
from busplan.errors import OptimizerError
from busplan.utils.logging import LogLevel, setup_logging


class FakeRoutingProvider:
    """Answers like the real provider, computing legs from straight-line distances.

    ``reverse_middle`` makes it report a reordering that reverses the
    reorderable waypoints; ``fail_coords`` makes every path containing one of
    those coordinate strings fail.
    """

    def __init__(self, reverse_middle=False, fail_coords=(), batch_error=None):
        self.reverse_middle = reverse_middle
        self.fail_coords = set(fail_coords)
        self.batch_error = batch_error
        self.route_calls = []
        self.batch_calls = []

    def _payload(self, path):
        if any(coord in path for coord in self.fail_coords):
            raise OptimizerError("provider rejected path")
        coords = [tuple(float(v) for v in part.split(",")) for part in path.split(":")]
        middle = len(coords) - 2
        optimized = []
        order = list(range(len(coords)))
        if self.reverse_middle and middle > 1:
            optimized = [{"providedIndex": i, "optimizedIndex": middle - 1 - i} for i in range(middle)]
            order = [0] + list(range(middle, 0, -1)) + [len(coords) - 1]
        ordered = [coords[i] for i in order]
        legs = []
        for a, b in zip(ordered, ordered[1:]):
            meters = haversine(a, b, unit=Unit.METERS)
            legs.append({"summary": {"lengthInMeters": round(meters), "travelTimeInSeconds": round(meters / 10)}})
        return {"optimizedWaypoints": optimized, "legs": legs}

    def calculate_route(self, path, *, options=None):
        self.route_calls.append((path, options))
        return self._payload(path)

    def calculate_batch(self, paths, *, options=None):
        self.batch_calls.append((list(paths), options))
        if self.batch_error is not None:
            raise self.batch_error
        results = []
        for path in paths:
            try:
                results.append(self._payload(path))
            except OptimizerError as exc:
                results.append(exc)
        return results


@pytest.fixture(autouse=True)
def _quiet_logging():
    setup_logging(LogLevel.QUIET)
    yield


@pytest.fixture
def school():
    return SchoolLocation(lat=37.98, lon=23.73)


@pytest.fixture
def seven_students():
    """Seven students spread around the school, all within a few km."""
    coords = [
        (37.990, 23.740),
        (37.995, 23.725),
        (37.975, 23.745),
        (37.970, 23.720),
        (37.985, 23.750),
        (38.000, 23.735),
        (37.965, 23.735),
    ]
    return [Student(id=f"s{i}", lat=lat, lon=lon) for i, (lat, lon) in enumerate(coords, start=1)]


@pytest.fixture
def ten_students():
    return [Student(id=f"t{i}", lat=37.95 + 0.005 * i, lon=23.70 + 0.004 * (i % 4)) for i in range(10)]


@pytest.fixture
def two_buses():
    return [Bus(id="b1", capacity=4, name="Bus 1"), Bus(id="b2", capacity=3, name="Bus 2")]


@pytest.fixture
def params():
    return BusplanParams(
        algorithm=AlgorithmParams(),
        provider=ProviderParams(api_key="test-key", use_batch=True),
        planning=PlanningParams(),
    )


@pytest.fixture
def fake_provider():
    return FakeRoutingProvider()


@pytest.fixture
def make_provider():
    """Factory for providers with custom behaviour."""
    return FakeRoutingProvider
