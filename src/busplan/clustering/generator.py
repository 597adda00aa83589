"""
generator.py

Entry point of the clustering phase: resolves a strategy by name, runs it and
enforces the capacity invariant on whatever it returns. Strategies registered
by third parties go through the same checks as the built-in ones.
"""

from enum import Enum
from typing import Sequence

from busplan.config.params import AlgorithmParams
from busplan.core_types import Bus, ClusteringOutcome, SchoolLocation, Student
from busplan.registry import get_clusterer
from busplan.utils.logging import BusplanLogger, Symbols

from .balancer import truncate_overflow

logger = BusplanLogger.get_logger(__name__)


class ClusteringMethod(str, Enum):
    """Names of the built-in clustering strategies."""
    SWEEP = "sweep"
    BALANCED = "balanced"
    KMEANS = "kmeans"
    GRID = "grid"
    DENSITY = "density"


DEFAULT_METHOD = ClusteringMethod.BALANCED


def generate_clusters(
    school: SchoolLocation,
    students: Sequence[Student],
    buses: Sequence[Bus],
    method: str | ClusteringMethod | None = None,
    params: AlgorithmParams | None = None,
) -> ClusteringOutcome:
    """
    Partition validated students into one capacity-respecting cluster per bus.

    Args:
        school: Anchor of every route.
        students: Students with valid coordinates.
        buses: Buses with positive capacity, in dispatch order.
        method: Registered strategy name; defaults to ``params.clustering_method``.
        params: Algorithm tunables.

    Returns:
        ClusteringOutcome whose clusters never exceed capacity. Every student
        is either in exactly one cluster or in ``unassigned``.

    Raises:
        ValueError: If ``method`` is not a registered strategy.
    """
    params = params or AlgorithmParams()
    name = method.value if isinstance(method, ClusteringMethod) else (method or params.clustering_method)
    clusterer = get_clusterer(name)

    logger.info(f"Clustering {len(students)} students onto {len(buses)} buses with '{name}'")
    outcome = clusterer.fit(school, list(students), list(buses), params=params)

    overflow = truncate_overflow(
        [cluster.students for cluster in outcome.clusters],
        [cluster.capacity for cluster in outcome.clusters],
    )
    if overflow:
        logger.warning(f"{Symbols.CROSS} Strategy '{name}' left {len(overflow)} students over capacity")
        outcome.unassigned.extend(overflow)

    _check_partition(students, outcome, name)

    for cluster in outcome.clusters:
        logger.debug(f"Bus {cluster.bus_id}: {cluster.size}/{cluster.capacity} students")
    logger.info(
        f"{Symbols.CHECKMARK} {sum(c.size for c in outcome.clusters)} students clustered, "
        f"{len(outcome.unassigned)} unassigned"
    )
    return outcome


def _check_partition(students: Sequence[Student], outcome: ClusteringOutcome, name: str) -> None:
    """Raise if a strategy lost, invented or duplicated a student."""
    expected = sorted(s.id for s in students)
    placed = sorted([sid for c in outcome.clusters for sid in c.student_ids] + list(outcome.unassigned))
    if placed != expected:
        raise RuntimeError(f"Clustering strategy '{name}' did not return a partition of its input students")
