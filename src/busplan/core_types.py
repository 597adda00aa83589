from enum import Enum
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

# Capacity assumed for a bus record that carries none.
DEFAULT_BUS_CAPACITY = 30

# Average bus speed used to estimate a duration when the provider gave none.
FALLBACK_SPEED_KMH = 40.0


class RouteType(str, Enum):
    """Direction policy of a route relative to the school."""
    PICKUP = "pickup"    # homes -> school
    DROPOFF = "dropoff"  # school -> homes
    MIXED = "mixed"

    @classmethod
    def parse(cls, value: Any) -> 'RouteType':
        """Map caller input to a route type; unknown or missing values are mixed."""
        if isinstance(value, RouteType):
            return value
        if value is None:
            return cls.MIXED
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.MIXED


class PlanStatus(str, Enum):
    """Terminal state of a planning call."""
    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"
    REJECTED = "rejected"


class WaypointKind(str, Enum):
    STUDENT = "student"
    STOP = "stop"
    SCHOOL = "school"


def _raw_coordinate(data: Dict[str, Any], short: str, long: str) -> Any:
    """Read a coordinate under either key and convert it to float when possible.

    Values that cannot be converted are returned untouched so that validation
    can report them instead of the parser hiding them.
    """
    value = data.get(short, data.get(long))
    if value is None or isinstance(value, bool):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return value


@dataclass(frozen=True)
class Point:
    """Any geocoded entity."""
    id: str
    lat: float
    lon: float

    def as_tuple(self) -> Tuple[float, float]:
        return (self.lat, self.lon)


@dataclass(frozen=True)
class Student(Point):
    """A pickup/dropoff point with the caller's descriptive metadata."""
    name: Optional[str] = None
    grade: Optional[str] = None
    address: Optional[str] = None

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> 'Student':
        if "id" not in data or data["id"] is None:
            raise KeyError("Student record is missing 'id'")
        return Student(
            id=str(data["id"]),
            lat=_raw_coordinate(data, "lat", "latitude"),
            lon=_raw_coordinate(data, "lon", "longitude"),
            name=data.get("name"),
            grade=None if data.get("grade") is None else str(data.get("grade")),
            address=data.get("address"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Stop(Point):
    """Intermediate waypoint inserted into every cluster's path (e.g. a meeting point)."""
    name: Optional[str] = None
    order: Optional[int] = None

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> 'Stop':
        if "id" not in data or data["id"] is None:
            raise KeyError("Stop record is missing 'id'")
        order = data.get("order")
        return Stop(
            id=str(data["id"]),
            lat=_raw_coordinate(data, "lat", "latitude"),
            lon=_raw_coordinate(data, "lon", "longitude"),
            name=data.get("name"),
            order=None if order is None else int(order),
        )


@dataclass(frozen=True)
class SchoolLocation:
    """The fixed anchor of every route."""
    lat: float
    lon: float
    id: str = "school"

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> 'SchoolLocation':
        return SchoolLocation(
            lat=_raw_coordinate(data, "lat", "latitude"),
            lon=_raw_coordinate(data, "lon", "longitude"),
            id=str(data.get("id", "school")),
        )

    def as_tuple(self) -> Tuple[float, float]:
        return (self.lat, self.lon)

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lon": self.lon}


@dataclass(frozen=True)
class Bus:
    id: str
    capacity: int
    name: Optional[str] = None

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> 'Bus':
        if "id" not in data or data["id"] is None:
            raise KeyError("Bus record is missing 'id'")
        capacity = data.get("capacity")
        return Bus(
            id=str(data["id"]),
            capacity=DEFAULT_BUS_CAPACITY if capacity is None else int(capacity),
            name=data.get("name", data.get("bus_number")),
        )

    @property
    def display_name(self) -> str:
        return self.name or f"Bus {self.id}"


@dataclass
class Cluster:
    """Students provisionally assigned to one bus."""
    bus_id: str
    capacity: int
    students: List[Student] = field(default_factory=list)
    bus_name: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.students)

    @property
    def overflow(self) -> int:
        """Number of students above capacity (0 when the cluster fits)."""
        return max(0, len(self.students) - self.capacity)

    @property
    def student_ids(self) -> List[str]:
        return [s.id for s in self.students]

    @property
    def center(self) -> Optional[Tuple[float, float]]:
        """Mean (lat, lon) of the members, None for an empty cluster."""
        if not self.students:
            return None
        lat, lon = np.mean([(s.lat, s.lon) for s in self.students], axis=0)
        return float(lat), float(lon)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> 'Cluster':
        """Build a caller-supplied cluster (e.g. one adjusted by an operator)."""
        capacity = data.get("capacity")
        return Cluster(
            bus_id=str(data["bus_id"]),
            capacity=DEFAULT_BUS_CAPACITY if capacity is None else int(capacity),
            students=[Student.from_dict(s) for s in data.get("students") or []],
            bus_name=data.get("bus_name"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bus_id": self.bus_id,
            "bus_name": self.bus_name or f"Bus {self.bus_id}",
            "capacity": self.capacity,
            "students_assigned": self.size,
            "center": self.center,
            "students": [s.to_dict() for s in self.students],
        }

    @staticmethod
    def to_dataframe(clusters: List['Cluster']) -> pd.DataFrame:
        """One row per (bus, student) assignment."""
        rows = []
        for cluster in clusters:
            for position, student in enumerate(cluster.students):
                rows.append({
                    'Bus_ID': cluster.bus_id,
                    'Capacity': cluster.capacity,
                    'Position': position,
                    'Student_ID': student.id,
                    'Latitude': student.lat,
                    'Longitude': student.lon,
                })
        if not rows:
            return pd.DataFrame(columns=['Bus_ID', 'Capacity', 'Position', 'Student_ID', 'Latitude', 'Longitude'])
        return pd.DataFrame(rows)


@dataclass
class ClusteringOutcome:
    """What every clustering strategy returns."""
    clusters: List[Cluster]
    unassigned: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Waypoint:
    kind: WaypointKind
    id: str
    point: Any  # Student, Stop or SchoolLocation

    @property
    def coord_string(self) -> str:
        return f"{float(self.point.lat):.6f},{float(self.point.lon):.6f}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "id": self.id,
            "lat": self.point.lat,
            "lon": self.point.lon,
        }


@dataclass(frozen=True)
class RouteSegment:
    origin: Waypoint
    destination: Waypoint
    distance_m: float
    duration_s: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.origin.to_dict(),
            "to": self.destination.to_dict(),
            "distance_m": self.distance_m,
            "duration_s": self.duration_s,
        }


@dataclass
class Route:
    """Final ordered route of one bus."""
    bus_id: str
    capacity: int
    student_ids_ordered: List[str]
    stops_ordered: List[str] = field(default_factory=list)
    segments: List[RouteSegment] = field(default_factory=list)
    total_distance_m: float = 0.0
    total_duration_s: float = 0.0
    bus_name: Optional[str] = None
    waypoints: List[Waypoint] = field(default_factory=list)

    @property
    def students_assigned(self) -> int:
        return len(self.student_ids_ordered)

    @property
    def distance_km(self) -> float:
        return round(self.total_distance_m / 1000, 2)

    @property
    def estimated_duration_minutes(self) -> int:
        if self.total_duration_s > 0:
            return round(self.total_duration_s / 60)
        return round(self.total_distance_m / 1000 / FALLBACK_SPEED_KMH * 60)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bus_id": self.bus_id,
            "bus_name": self.bus_name or f"Bus {self.bus_id}",
            "capacity": self.capacity,
            "student_ids_ordered": list(self.student_ids_ordered),
            "stops_ordered": list(self.stops_ordered),
            "route_segments": [s.to_dict() for s in self.segments],
            "reordered_waypoints": [w.to_dict() for w in self.waypoints],
            "total_distance_m": self.total_distance_m,
            "total_duration_s": self.total_duration_s,
            "students_assigned": self.students_assigned,
            "distance_km": self.distance_km,
            "estimated_duration_minutes": self.estimated_duration_minutes,
        }


@dataclass(frozen=True)
class InvalidStudent:
    """A student excluded for bad data, never merged with capacity exclusions."""
    id: str
    reason: str


@dataclass(frozen=True)
class ClusterFailure:
    """Optimizer failure local to one cluster."""
    bus_id: str
    student_ids: Tuple[str, ...]
    reason: str


@dataclass(frozen=True)
class RouteContext:
    context: str  # pickup, dropoff, mixed or unknown
    suggested_time: Optional[str] = None
    description: str = ""
    timezone: Optional[str] = None
    local_hour: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PlanResult:
    """
    Outcome of one planning call.

    Every valid input student id is in exactly one of the routes'
    ``student_ids_ordered`` or ``unassigned_student_ids``; students with
    unusable coordinates are in ``invalid_students`` only.
    """
    routes: List[Route] = field(default_factory=list)
    unassigned_student_ids: List[str] = field(default_factory=list)
    invalid_students: List[InvalidStudent] = field(default_factory=list)
    failures: List[ClusterFailure] = field(default_factory=list)
    unused_bus_ids: List[str] = field(default_factory=list)
    status: PlanStatus = PlanStatus.SUCCESS
    reason: Optional[str] = None
    strategy: Optional[str] = None
    route_context: Optional[RouteContext] = None

    @classmethod
    def rejected(
        cls,
        reason: str,
        unassigned_student_ids: Optional[List[str]] = None,
        invalid_students: Optional[List[InvalidStudent]] = None,
    ) -> 'PlanResult':
        return cls(
            unassigned_student_ids=list(unassigned_student_ids or []),
            invalid_students=list(invalid_students or []),
            status=PlanStatus.REJECTED,
            reason=reason,
        )

    @property
    def assigned_student_ids(self) -> List[str]:
        return [sid for route in self.routes for sid in route.student_ids_ordered]

    @property
    def invalid_student_ids(self) -> List[str]:
        return [s.id for s in self.invalid_students]

    @property
    def total_distance_m(self) -> float:
        return sum(r.total_distance_m for r in self.routes)

    def summary(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "total_buses_used": len(self.routes),
            "total_students_assigned": len(self.assigned_student_ids),
            "total_students_unassigned": len(self.unassigned_student_ids),
            "total_students_excluded": len(self.invalid_students),
            "total_distance_km": round(self.total_distance_m / 1000, 2),
        }

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "routes": [r.to_dict() for r in self.routes],
            "unassigned_student_ids": list(self.unassigned_student_ids),
            "students_without_coordinates": [asdict(s) for s in self.invalid_students],
            "failures": [
                {"bus_id": f.bus_id, "student_ids": list(f.student_ids), "reason": f.reason}
                for f in self.failures
            ],
            "unused_bus_ids": list(self.unused_bus_ids),
            "strategy": self.strategy,
            "reason": self.reason,
        }
        if self.route_context is not None:
            data["route_context"] = self.route_context.to_dict()
        data.update(self.summary())
        return data

    def to_dataframe(self) -> pd.DataFrame:
        """One row per student: its bus and position, or its exclusion reason."""
        columns = ['Student_ID', 'Bus_ID', 'Sequence', 'Status', 'Reason']
        rows = []
        for route in self.routes:
            for sequence, sid in enumerate(route.student_ids_ordered, start=1):
                rows.append([sid, route.bus_id, sequence, 'assigned', None])
        failed = {sid: f.reason for f in self.failures for sid in f.student_ids}
        for sid in self.unassigned_student_ids:
            rows.append([sid, None, None, 'unassigned', failed.get(sid, 'capacity')])
        for student in self.invalid_students:
            rows.append([student.id, None, None, 'invalid', student.reason])
        return pd.DataFrame(rows, columns=columns)
