"""busplan: school bus clustering and route planning."""

__version__ = "0.1.0"

# Main API
from .api import plan_clusters, plan_fleet, plan_single_cluster, preview_clusters
from .clustering.generator import ClusteringMethod, generate_clusters

# Core types
from .config.params import BusplanParams
from .core_types import (
    Bus,
    Cluster,
    ClusterFailure,
    InvalidStudent,
    PlanResult,
    PlanStatus,
    Route,
    RouteSegment,
    RouteType,
    SchoolLocation,
    Stop,
    Student,
    Waypoint,
)
from .errors import BusplanError, InvalidInputError, OptimizerError
from .interfaces import Clusterer, RoutingProvider

# Extension system
from .registry import register_clusterer, register_routing_provider

# Stage functions (for advanced users)
from .routing import build_waypoint_path, optimize_clusters, reconstruct_route

__all__ = [
    # Version
    "__version__",
    # Main API
    "plan_fleet",
    "plan_single_cluster",
    "plan_clusters",
    "preview_clusters",
    # Stage functions
    "generate_clusters",
    "build_waypoint_path",
    "optimize_clusters",
    "reconstruct_route",
    # Types
    "BusplanParams",
    "Bus",
    "Cluster",
    "ClusterFailure",
    "ClusteringMethod",
    "InvalidStudent",
    "PlanResult",
    "PlanStatus",
    "Route",
    "RouteSegment",
    "RouteType",
    "SchoolLocation",
    "Stop",
    "Student",
    "Waypoint",
    # Errors
    "BusplanError",
    "InvalidInputError",
    "OptimizerError",
    # Extensions
    "register_clusterer",
    "register_routing_provider",
    "Clusterer",
    "RoutingProvider",
]
