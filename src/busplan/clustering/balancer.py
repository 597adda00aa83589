"""
balancer.py

Capacity post-processing shared by the clustering strategies.

Cross-cluster balancing
~~~~~~~~~~~~~~~~~~~~~~~
Given clusters with a reference center each, every pair of clusters whose
centers lie within ``radius_m`` of each other exchanges students: while one
side is over capacity and the other has room, the member of the overfull
cluster closest to the neighbour's center moves across. The same check then
runs in the opposite direction. A cluster at or under capacity never gives a
student away, and every move lowers the pair's total capacity violation by
one, so the pass terminates.

Clusters are handled as an explicit arena: a list of student lists indexed
like the bus list. Functions mutate the arena they are given and return it.
"""

from typing import Any, List, Optional, Sequence

from busplan.core_types import Student
from busplan.utils.geo import distance_meters
from busplan.utils.logging import BusplanLogger

logger = BusplanLogger.get_logger(__name__)


def _drain(
    groups: List[List[Student]],
    source: int,
    target: int,
    target_center: Any,
    capacities: Sequence[int],
) -> int:
    """Move students from an overfull ``source`` into ``target`` while it has room."""
    moved = 0
    while len(groups[source]) > capacities[source] and len(groups[target]) < capacities[target]:
        closest = min(
            range(len(groups[source])),
            key=lambda k: distance_meters(groups[source][k], target_center),
        )
        groups[target].append(groups[source].pop(closest))
        moved += 1
    return moved


def balance_clusters(
    groups: List[List[Student]],
    centers: Sequence[Optional[Any]],
    capacities: Sequence[int],
    radius_m: float,
) -> List[List[Student]]:
    """Transfer students between neighbouring over- and under-capacity clusters.

    Args:
        groups: Students per cluster, indexed like ``capacities``.
        centers: Reference point per cluster (anything with ``lat``/``lon``);
            clusters without a center take no part in balancing.
        capacities: Capacity per cluster.
        radius_m: Maximum distance between two centers for the clusters to
            be considered neighbours.

    Returns:
        The same ``groups`` list, balanced in place.
    """
    if not (len(groups) == len(centers) == len(capacities)):
        raise ValueError("groups, centers and capacities must have the same length")

    total_moved = 0
    for i in range(len(groups)):
        for j in range(i + 1, len(groups)):
            if centers[i] is None or centers[j] is None:
                continue
            if distance_meters(centers[i], centers[j]) > radius_m:
                continue
            total_moved += _drain(groups, i, j, centers[j], capacities)
            total_moved += _drain(groups, j, i, centers[i], capacities)

    if total_moved:
        logger.debug(f"Cross-cluster balancing moved {total_moved} students")
    return groups


def rebalance_adjacent(groups: List[List[Student]], capacities: Sequence[int]) -> List[List[Student]]:
    """Shift students between consecutive clusters of an angular sweep.

    An overfull cluster hands its last-assigned student to the front of the
    next one; an underfull cluster takes the first student of an overfull
    successor. Contiguity of the angular wedges is preserved.
    """
    for i in range(len(groups) - 1):
        current, following = groups[i], groups[i + 1]
        while len(current) > capacities[i] and len(following) < capacities[i + 1]:
            following.insert(0, current.pop())
        while len(current) < capacities[i] and len(following) > capacities[i + 1]:
            current.append(following.pop(0))
    return groups


def truncate_overflow(groups: List[List[Student]], capacities: Sequence[int]) -> List[str]:
    """Cut every cluster down to its capacity and return the removed student ids."""
    overflow: List[str] = []
    for i, group in enumerate(groups):
        limit = max(0, capacities[i])
        if len(group) > limit:
            overflow.extend(s.id for s in group[limit:])
            del group[limit:]
    return overflow
