"""
Student clustering: one capacity-bounded group per bus.
"""

from busplan.core_types import Cluster, ClusteringOutcome

from .balancer import balance_clusters, rebalance_adjacent, truncate_overflow
from .generator import DEFAULT_METHOD, ClusteringMethod, generate_clusters
from .heuristics import (
    BalancedLoadClusterer,
    DensityNearestNeighborClusterer,
    GeographicKMeansClusterer,
    GridClusterer,
    SweepClusterer,
    build_clusters,
)

__all__ = [
    "BalancedLoadClusterer",
    "Cluster",
    "ClusteringMethod",
    "ClusteringOutcome",
    "DEFAULT_METHOD",
    "DensityNearestNeighborClusterer",
    "GeographicKMeansClusterer",
    "GridClusterer",
    "SweepClusterer",
    "balance_clusters",
    "build_clusters",
    "generate_clusters",
    "rebalance_adjacent",
    "truncate_overflow",
]
