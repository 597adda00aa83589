"""
geo.py

Geographic primitives shared by the clustering strategies and the path builder.

Distances are great-circle distances on a sphere of radius 6,371,000 m. They
stand in for road distance everywhere in busplan and are deliberately not
road-aware; the routing provider is the only component that knows about roads.
"""

import math
from numbers import Real
from typing import Any, Iterable, Optional, Sequence, Tuple

import numpy as np
from haversine import Unit, haversine, haversine_vector

EARTH_RADIUS_M = 6_371_000.0


def coordinate_problem(point: Any) -> Optional[str]:
    """Return why a point's coordinates are unusable, or None when they are fine."""
    if point is None:
        return "missing point"
    lat = getattr(point, "lat", None)
    lon = getattr(point, "lon", None)
    if lat is None or lon is None:
        return "missing coordinates"
    for value in (lat, lon):
        if isinstance(value, bool) or not isinstance(value, Real):
            return "non-numeric coordinates"
        if not math.isfinite(value):
            return "non-finite coordinates"
    if lat == 0 and lon == 0:
        return "placeholder coordinates (0, 0)"
    if not -90 <= lat <= 90:
        return f"latitude out of range: {lat}"
    if not -180 <= lon <= 180:
        return f"longitude out of range: {lon}"
    return None


def is_valid_point(point: Any) -> bool:
    """True when the point can safely take part in any geometric computation."""
    return coordinate_problem(point) is None


def distance_meters(a: Any, b: Any) -> float:
    """Haversine distance in meters between two points with ``lat``/``lon``."""
    angle = haversine((a.lat, a.lon), (b.lat, b.lon), unit=Unit.RADIANS)
    return angle * EARTH_RADIUS_M


def pairwise_distance_matrix(points: Sequence[Any]) -> np.ndarray:
    """Symmetric matrix of haversine distances (meters) between all points."""
    if len(points) == 0:
        return np.zeros((0, 0))
    coords = np.array([(p.lat, p.lon) for p in points], dtype=np.float64)
    angles = haversine_vector(coords, coords, Unit.RADIANS, comb=True)
    return np.asarray(angles) * EARTH_RADIUS_M


def bearing_degrees(center: Any, point: Any) -> float:
    """
    Angle of ``point`` around ``center`` measured from the longitude axis.

    This is a planar angle over (dlon, dlat), not a compass bearing, normalised
    to [0, 360). It is only used to order points around the school.
    """
    dy = point.lat - center.lat
    dx = point.lon - center.lon
    angle = math.degrees(math.atan2(dy, dx))
    if angle < 0:
        angle += 360.0
    # tiny negative angles round up to exactly 360
    return 0.0 if angle >= 360.0 else angle


def centroid(points: Iterable[Any]) -> Optional[Tuple[float, float]]:
    """Mean (lat, lon) of the points, or None for an empty collection."""
    coords = [(p.lat, p.lon) for p in points]
    if not coords:
        return None
    mean = np.mean(np.array(coords, dtype=np.float64), axis=0)
    return float(mean[0]), float(mean[1])
