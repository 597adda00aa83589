"""
waypoints.py

Turn one cluster into the ordered waypoint list submitted to the routing
provider. The list is built once and carried alongside its coordinate string,
so that reconstruction only has to know which waypoint came first, which came
last and which ones the provider was free to reorder.

Direction policies
~~~~~~~~~~~~~~~~~~
pickup   furthest student, other students, stops, school
dropoff  school, stops, other students, furthest student
mixed    school, stops, students

The first and last waypoints are never reordered by the provider.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from busplan.core_types import RouteType, SchoolLocation, Stop, Student, Waypoint, WaypointKind
from busplan.utils.geo import coordinate_problem, distance_meters
from busplan.utils.logging import BusplanLogger

logger = BusplanLogger.get_logger(__name__)

PATH_SEPARATOR = ":"


@dataclass(frozen=True)
class WaypointPath:
    waypoints: tuple[Waypoint, ...]
    skipped_student_ids: tuple[str, ...] = ()
    anchor_student_id: Optional[str] = None  # furthest student for pickup/dropoff
    route_type: RouteType = RouteType.PICKUP

    @property
    def coord_string(self) -> str:
        return PATH_SEPARATOR.join(w.coord_string for w in self.waypoints)

    @property
    def student_ids(self) -> list[str]:
        return [w.id for w in self.waypoints if w.kind == WaypointKind.STUDENT]

    @property
    def is_degenerate(self) -> bool:
        """True when there is no student to route, so nothing must be submitted."""
        return not self.student_ids


def _ordered_stops(stops: Sequence[Stop]) -> list[Stop]:
    """Stops with an explicit order first (ascending), then the rest in input order."""
    valid = []
    for stop in stops:
        problem = coordinate_problem(stop)
        if problem:
            logger.warning(f"Skipping stop {stop.id}: {problem}")
            continue
        valid.append(stop)
    return sorted(valid, key=lambda s: (s.order is None, s.order if s.order is not None else 0))


def build_waypoint_path(
    school: SchoolLocation,
    students: Sequence[Student],
    stops: Optional[Sequence[Stop]] = None,
    route_type: RouteType | str | None = RouteType.PICKUP,
) -> WaypointPath:
    """
    Build the provider path of one cluster.

    Students with unusable coordinates are left out of the path and listed in
    ``skipped_student_ids`` so the caller can report them unassigned.
    """
    route_type = RouteType.parse(route_type)
    valid: list[Student] = []
    skipped: list[str] = []
    for student in students:
        problem = coordinate_problem(student)
        if problem:
            logger.warning(f"Skipping student {student.id} in path: {problem}")
            skipped.append(student.id)
        else:
            valid.append(student)

    school_wp = Waypoint(WaypointKind.SCHOOL, school.id, school)
    stop_wps = [Waypoint(WaypointKind.STOP, s.id, s) for s in _ordered_stops(stops or [])]

    if not valid:
        return WaypointPath((school_wp,), tuple(skipped), None, route_type)

    if route_type == RouteType.MIXED:
        student_wps = [Waypoint(WaypointKind.STUDENT, s.id, s) for s in valid]
        return WaypointPath(tuple([school_wp] + stop_wps + student_wps), tuple(skipped), None, route_type)

    # max() keeps the first of equally distant students
    furthest_index = max(range(len(valid)), key=lambda k: distance_meters(school, valid[k]))
    furthest = Waypoint(WaypointKind.STUDENT, valid[furthest_index].id, valid[furthest_index])
    others = [
        Waypoint(WaypointKind.STUDENT, s.id, s) for k, s in enumerate(valid) if k != furthest_index
    ]

    if route_type == RouteType.PICKUP:
        waypoints = [furthest] + others + stop_wps + [school_wp]
    else:
        waypoints = [school_wp] + stop_wps + others + [furthest]

    return WaypointPath(tuple(waypoints), tuple(skipped), furthest.id, route_type)
