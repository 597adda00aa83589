"""
optimizer.py

Drive the routing provider over a set of clusters and turn each answer into a
Route. Clusters are independent: a provider failure for one cluster is
recorded as a ClusterFailure and never affects its siblings.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from joblib import Parallel, delayed

from busplan.core_types import Cluster, ClusterFailure, Route, RouteType, SchoolLocation, Stop
from busplan.errors import OptimizerError
from busplan.interfaces import RoutingProvider
from busplan.utils.logging import BusplanLogger, Symbols

from .reconstruct import reconstruct_route
from .waypoints import WaypointPath, build_waypoint_path

logger = BusplanLogger.get_logger(__name__)


@dataclass
class OptimizedCluster:
    """Outcome of optimizing one cluster: a route or a failure, never both."""
    cluster: Cluster
    route: Optional[Route] = None
    failure: Optional[ClusterFailure] = None
    skipped_student_ids: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.route is not None


def _call_single(provider: RoutingProvider, path: str, options: dict[str, Any]) -> dict[str, Any] | Exception:
    try:
        return provider.calculate_route(path, options=options)
    except OptimizerError as exc:
        return exc
    except Exception as exc:
        return OptimizerError(f"{type(exc).__name__}: {exc}")


def _request_payloads(
    provider: RoutingProvider,
    coord_strings: list[str],
    options: dict[str, Any],
    use_batch: bool,
    max_parallel: int,
) -> list[dict[str, Any] | Exception]:
    if not coord_strings:
        return []
    if use_batch:
        try:
            return list(provider.calculate_batch(coord_strings, options=options))
        except OptimizerError as exc:
            logger.error(f"{Symbols.CROSS} Batch optimization failed: {exc}")
            return [exc] * len(coord_strings)

    n_jobs = max(1, min(max_parallel, len(coord_strings)))
    return Parallel(n_jobs=n_jobs, backend="threading")(
        delayed(_call_single)(provider, coords, options) for coords in coord_strings
    )


def optimize_clusters(
    school: SchoolLocation,
    clusters: Sequence[Cluster],
    provider: RoutingProvider,
    *,
    stops: Optional[Sequence[Stop]] = None,
    route_type: RouteType = RouteType.PICKUP,
    use_batch: bool = True,
    options: Optional[dict[str, Any]] = None,
    max_parallel: int = 4,
) -> list[OptimizedCluster]:
    """
    Optimize every non-empty cluster, in batch or single mode.

    Returns one OptimizedCluster per input cluster, in input order. Empty
    clusters are never submitted and come back with neither route nor failure.
    """
    options = dict(options or {})
    results = []
    paths: list[WaypointPath] = []
    for cluster in clusters:
        path = build_waypoint_path(school, cluster.students, stops, route_type)
        paths.append(path)
        results.append(OptimizedCluster(cluster=cluster, skipped_student_ids=list(path.skipped_student_ids)))

    submitted = [i for i, path in enumerate(paths) if not path.is_degenerate]
    mode = "batch" if use_batch else "single"
    logger.info(f"Optimizing {len(submitted)} clusters in {mode} mode")

    payloads = _request_payloads(
        provider, [paths[i].coord_string for i in submitted], options, use_batch, max_parallel
    )
    if len(payloads) < len(submitted):
        logger.warning(f"Provider answered {len(payloads)} of {len(submitted)} clusters")
        payloads = list(payloads) + [
            OptimizerError("Cluster missing from provider response")
            for _ in range(len(submitted) - len(payloads))
        ]

    for i, payload in zip(submitted, payloads):
        outcome = results[i]
        cluster = outcome.cluster
        error: Optional[Exception] = payload if isinstance(payload, Exception) else None
        if error is None:
            try:
                outcome.route = reconstruct_route(paths[i], payload, cluster)
            except OptimizerError as exc:
                error = exc
        if error is not None:
            outcome.failure = ClusterFailure(
                bus_id=cluster.bus_id,
                student_ids=tuple(paths[i].student_ids),
                reason=str(error),
            )
            logger.warning(f"{Symbols.CROSS} Bus {cluster.bus_id}: optimization failed ({error})")
            continue
        logger.debug(
            f"Bus {cluster.bus_id}: {outcome.route.students_assigned} students, "
            f"{outcome.route.distance_km} km"
        )

    return results
