"""
Per-cluster route optimization against the external routing provider.
"""

from .context import TimeSlot, apply_contextual_timing, infer_route_context
from .optimizer import OptimizedCluster, optimize_clusters
from .provider import TomTomRoutingProvider
from .reconstruct import reconstruct_route
from .waypoints import WaypointPath, build_waypoint_path

__all__ = [
    "OptimizedCluster",
    "TimeSlot",
    "TomTomRoutingProvider",
    "WaypointPath",
    "apply_contextual_timing",
    "build_waypoint_path",
    "infer_route_context",
    "optimize_clusters",
    "reconstruct_route",
]
