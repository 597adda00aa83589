"""
reconstruct.py

Rebuild the final waypoint order and leg segments of a cluster from the
provider's route payload.

The provider only ever reorders the middle of the submitted path. Its
``optimizedWaypoints`` entries index into that middle sub-sequence, so the
reconstruction is::

    [first] + [middle[i] for i in provided indices sorted by optimizedIndex] + [last]

An empty or missing ``optimizedWaypoints`` means no reordering happened.
"""

from typing import Any

from busplan.core_types import Cluster, Route, RouteSegment, WaypointKind
from busplan.errors import OptimizerError

from .waypoints import WaypointPath


def _reorder_pairs(payload: dict[str, Any], middle_size: int, bus_id: str) -> list[tuple[int, int]]:
    """Read ``(original, optimized)`` index pairs and check they form a permutation."""
    entries = payload.get("optimizedWaypoints") or []
    if not isinstance(entries, list):
        raise OptimizerError("Malformed optimizedWaypoints list", bus_id=bus_id)

    pairs = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise OptimizerError("Malformed optimizedWaypoints entry", bus_id=bus_id)
        original = entry.get("providedIndex", entry.get("originalIndex"))
        optimized = entry.get("optimizedIndex")
        if not isinstance(original, int) or not isinstance(optimized, int):
            raise OptimizerError("Malformed optimizedWaypoints entry", bus_id=bus_id)
        pairs.append((original, optimized))

    expected = list(range(middle_size))
    if sorted(p[0] for p in pairs) != expected or sorted(p[1] for p in pairs) != expected:
        raise OptimizerError(
            f"Provider reordering is not a permutation of the {middle_size} reorderable waypoints",
            bus_id=bus_id,
        )
    return pairs


def reconstruct_route(path: WaypointPath, payload: dict[str, Any], cluster: Cluster) -> Route:
    """
    Build the Route of ``cluster`` from the submitted ``path`` and the provider's
    first route object.

    Raises:
        OptimizerError: If the reordering or the legs do not match the path.
    """
    if not isinstance(payload, dict):
        raise OptimizerError("Provider route is not an object", bus_id=cluster.bus_id)
    waypoints = list(path.waypoints)
    if len(waypoints) < 2:
        raise OptimizerError("Cannot reconstruct a route with fewer than two waypoints", bus_id=cluster.bus_id)

    first, middle, last = waypoints[0], waypoints[1:-1], waypoints[-1]
    if payload.get("optimizedWaypoints"):
        pairs = _reorder_pairs(payload, len(middle), cluster.bus_id)
        middle = [middle[original] for original, _ in sorted(pairs, key=lambda p: p[1])]
    ordered = [first] + middle + [last]

    legs = payload.get("legs") or []
    if not isinstance(legs, list):
        raise OptimizerError("Malformed legs list in provider response", bus_id=cluster.bus_id)
    if len(legs) != len(ordered) - 1:
        raise OptimizerError(
            f"Provider returned {len(legs)} legs for {len(ordered)} waypoints", bus_id=cluster.bus_id
        )

    segments = []
    for index, (leg, origin, destination) in enumerate(zip(legs, ordered, ordered[1:])):
        leg = leg or {}
        if not isinstance(leg, dict) or not isinstance(leg.get("summary") or {}, dict):
            raise OptimizerError(f"Malformed leg {index} in provider response", bus_id=cluster.bus_id)
        summary = leg.get("summary") or {}
        try:
            distance_m = float(summary.get("lengthInMeters", 0) or 0)
            duration_s = float(summary.get("travelTimeInSeconds", 0) or 0)
        except (TypeError, ValueError) as exc:
            raise OptimizerError(
                f"Malformed summary on leg {index}: {exc}", bus_id=cluster.bus_id
            ) from exc
        segments.append(RouteSegment(
            origin=origin,
            destination=destination,
            distance_m=distance_m,
            duration_s=duration_s,
        ))

    return Route(
        bus_id=cluster.bus_id,
        capacity=cluster.capacity,
        student_ids_ordered=[w.id for w in ordered if w.kind == WaypointKind.STUDENT],
        stops_ordered=[w.id for w in ordered if w.kind == WaypointKind.STOP],
        segments=segments,
        total_distance_m=sum(s.distance_m for s in segments),
        total_duration_s=sum(s.duration_s for s in segments),
        bus_name=cluster.bus_name,
        waypoints=ordered,
    )
