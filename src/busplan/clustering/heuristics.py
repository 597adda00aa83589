"""
heuristics.py

The built-in clustering strategies. Each one partitions validated students
into one group per bus without exceeding bus capacity; students that do not
fit anywhere are returned as unassigned.

All strategies are deterministic for a given input order. Ties are broken by
input order (Python's sort is stable), and buses are considered in the order
they were supplied.
"""

import math
from typing import List, Sequence

import numpy as np
from sklearn.neighbors import BallTree

from busplan.config.params import AlgorithmParams
from busplan.core_types import Bus, Cluster, ClusteringOutcome, Point, SchoolLocation, Student
from busplan.registry import register_clusterer
from busplan.utils.geo import (
    EARTH_RADIUS_M,
    bearing_degrees,
    centroid,
    distance_meters,
    pairwise_distance_matrix,
)
from busplan.utils.logging import BusplanLogger

from .balancer import balance_clusters, rebalance_adjacent, truncate_overflow

logger = BusplanLogger.get_logger(__name__)


def build_clusters(buses: Sequence[Bus], groups: List[List[Student]]) -> List[Cluster]:
    """Wrap the per-bus student lists into Cluster objects."""
    return [
        Cluster(bus_id=bus.id, capacity=bus.capacity, students=list(group), bus_name=bus.name)
        for bus, group in zip(buses, groups)
    ]


def _empty_outcome(students: Sequence[Student], buses: Sequence[Bus]) -> ClusteringOutcome:
    return ClusteringOutcome(
        clusters=build_clusters(buses, [[] for _ in buses]),
        unassigned=[s.id for s in students],
    )


def _by_distance_to_school(school: SchoolLocation, students: Sequence[Student]) -> List[Student]:
    return sorted(students, key=lambda s: distance_meters(school, s))


@register_clusterer('sweep')
class SweepClusterer:
    """Angular sweep around the school, filling buses capacity-first."""

    def fit(self, school, students, buses, *, params: AlgorithmParams) -> ClusteringOutcome:
        if not buses or not students:
            return _empty_outcome(students, buses)

        ordered = sorted(
            students,
            key=lambda s: (bearing_degrees(school, s), distance_meters(school, s)),
        )
        capacities = [bus.capacity for bus in buses]
        groups: List[List[Student]] = [[] for _ in buses]

        # Once the last bus is reached the remaining students pile onto it;
        # the excess is cut off below and reported unassigned.
        bus_index = 0
        left = capacities[0]
        for student in ordered:
            while left <= 0 and bus_index < len(buses) - 1:
                bus_index += 1
                left = capacities[bus_index]
            groups[bus_index].append(student)
            left -= 1

        rebalance_adjacent(groups, capacities)
        unassigned = truncate_overflow(groups, capacities)
        return ClusteringOutcome(build_clusters(buses, groups), unassigned)


@register_clusterer('balanced')
class BalancedLoadClusterer:
    """Greedy assignment trading marginal detour against proportional load."""

    def fit(self, school, students, buses, *, params: AlgorithmParams) -> ClusteringOutcome:
        if not buses or not students:
            return _empty_outcome(students, buses)

        capacities = [bus.capacity for bus in buses]
        fleet_capacity = sum(capacities)
        targets = [len(students) * (c / fleet_capacity) for c in capacities]
        groups: List[List[Student]] = [[] for _ in buses]
        unassigned: List[str] = []

        for student in _by_distance_to_school(school, students):
            best_index, best_score = None, math.inf
            for i in range(len(buses)):
                if len(groups[i]) >= capacities[i]:
                    continue
                last = groups[i][-1] if groups[i] else school
                added = (
                    distance_meters(last, student)
                    + distance_meters(student, school)
                    - distance_meters(last, school)
                )
                imbalance = abs(len(groups[i]) + 1 - targets[i])
                score = added + params.balance_penalty_weight * imbalance
                if score < best_score:
                    best_index, best_score = i, score
            if best_index is None:
                unassigned.append(student.id)
            else:
                groups[best_index].append(student)

        return ClusteringOutcome(build_clusters(buses, groups), unassigned)


@register_clusterer('kmeans')
class GeographicKMeansClusterer:
    """Capacity-constrained k-means: greedy nearest-center assignment, centroid update."""

    def fit(self, school, students, buses, *, params: AlgorithmParams) -> ClusteringOutcome:
        if not buses or not students:
            return _empty_outcome(students, buses)

        n = len(buses)
        capacities = [bus.capacity for bus in buses]
        radius = params.kmeans_initial_radius_deg
        centers = np.array([
            [school.lat + radius * math.sin(2 * math.pi * i / n),
             school.lon + radius * math.cos(2 * math.pi * i / n)]
            for i in range(n)
        ])
        ordered = _by_distance_to_school(school, students)

        groups: List[List[Student]] = [[] for _ in buses]
        unassigned: List[str] = []
        for iteration in range(params.kmeans_max_iterations):
            groups = [[] for _ in buses]
            unassigned = []
            center_points = [Point(f"center-{i}", float(c[0]), float(c[1])) for i, c in enumerate(centers)]
            for student in ordered:
                open_buses = [i for i in range(n) if len(groups[i]) < capacities[i]]
                if not open_buses:
                    unassigned.append(student.id)
                    continue
                nearest = min(open_buses, key=lambda i: distance_meters(student, center_points[i]))
                groups[nearest].append(student)

            new_centers = centers.copy()
            for i, group in enumerate(groups):
                mean = centroid(group)
                if mean is not None:
                    new_centers[i] = mean
            shift = float(np.max(np.abs(new_centers - centers)))
            centers = new_centers
            if shift <= params.kmeans_convergence_deg:
                logger.debug(f"k-means converged after {iteration + 1} iterations")
                break

        final_centers = [Point(f"center-{i}", float(c[0]), float(c[1])) for i, c in enumerate(centers)]
        balance_clusters(groups, final_centers, capacities, params.balancer_neighbor_radius_m)
        unassigned.extend(truncate_overflow(groups, capacities))
        return ClusteringOutcome(build_clusters(buses, groups), unassigned)


@register_clusterer('grid')
class GridClusterer:
    """Bucket students into a g x g grid and hand the densest cells out first."""

    def fit(self, school, students, buses, *, params: AlgorithmParams) -> ClusteringOutcome:
        if not buses or not students:
            return _empty_outcome(students, buses)

        capacities = [bus.capacity for bus in buses]
        g = math.ceil(math.sqrt(len(buses)))
        lats = np.array([s.lat for s in students], dtype=np.float64)
        lons = np.array([s.lon for s in students], dtype=np.float64)
        min_lat, min_lon = lats.min(), lons.min()
        cell_h = (lats.max() - min_lat) / g
        cell_w = (lons.max() - min_lon) / g

        def cell_of(student: Student) -> tuple[int, int]:
            row = min(int((student.lat - min_lat) / cell_h), g - 1) if cell_h > 0 else 0
            col = min(int((student.lon - min_lon) / cell_w), g - 1) if cell_w > 0 else 0
            return row, col

        cells: dict[tuple[int, int], List[Student]] = {}
        for student in students:
            cells.setdefault(cell_of(student), []).append(student)
        ordered_cells = sorted(cells.items(), key=lambda item: (-len(item[1]), item[0]))

        groups: List[List[Student]] = [[] for _ in buses]
        pending: List[Student] = []
        for k, (_, members) in enumerate(ordered_cells):
            i = k % len(buses)
            room = capacities[i] - len(groups[i])
            groups[i].extend(members[:max(0, room)])
            pending.extend(members[max(0, room):])

        unassigned: List[str] = []
        for student in pending:
            best_index, best_distance = None, math.inf
            for i in range(len(buses)):
                if len(groups[i]) >= capacities[i]:
                    continue
                if groups[i]:
                    mean_distance = float(np.mean([distance_meters(student, m) for m in groups[i]]))
                else:
                    mean_distance = distance_meters(student, school)
                if mean_distance < best_distance:
                    best_index, best_distance = i, mean_distance
            if best_index is None:
                unassigned.append(student.id)
            else:
                groups[best_index].append(student)

        return ClusteringOutcome(build_clusters(buses, groups), unassigned)


@register_clusterer('density')
class DensityNearestNeighborClusterer:
    """Seed buses at dense spots and grow them round-robin by nearest neighbour."""

    def fit(self, school, students, buses, *, params: AlgorithmParams) -> ClusteringOutcome:
        if not buses or not students:
            return _empty_outcome(students, buses)

        n = len(students)
        capacities = [bus.capacity for bus in buses]
        coords = np.radians(np.array([(s.lat, s.lon) for s in students], dtype=np.float64))
        tree = BallTree(coords, metric='haversine')
        neighbours = tree.query_radius(coords, r=params.density_radius_m / EARTH_RADIUS_M, count_only=True)
        density = np.asarray(neighbours) - 1  # a student is not its own neighbour
        by_density = sorted(range(n), key=lambda k: -int(density[k]))
        distances = pairwise_distance_matrix(students)

        free = np.ones(n, dtype=bool)
        members: List[List[int]] = [[] for _ in buses]

        seeds = iter(by_density)
        for i in range(len(buses)):
            seed = next(seeds, None)
            if seed is None:
                break
            members[i].append(seed)
            free[seed] = False

        while free.any():
            grew = False
            for i in range(len(buses)):
                if not members[i] or len(members[i]) >= capacities[i] or not free.any():
                    continue
                candidates = np.flatnonzero(free)
                block = distances[np.ix_(members[i], candidates)]
                nearest = int(candidates[int(np.argmin(block.min(axis=0)))])
                members[i].append(nearest)
                free[nearest] = False
                grew = True
            if not grew:
                break

        groups = [[students[k] for k in idx] for idx in members]
        unassigned: List[str] = []
        for k in np.flatnonzero(free):
            student = students[int(k)]
            open_buses = [i for i in range(len(buses)) if len(groups[i]) < capacities[i]]
            if not open_buses:
                unassigned.append(student.id)
                continue

            def reference(i: int):
                mean = centroid(groups[i])
                return school if mean is None else Point(f"centroid-{i}", mean[0], mean[1])

            target = min(open_buses, key=lambda i: distance_meters(student, reference(i)))
            groups[target].append(student)

        return ClusteringOutcome(build_clusters(buses, groups), unassigned)
