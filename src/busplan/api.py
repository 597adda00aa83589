"""
API facade for busplan - provides a single entry point for programmatic usage.

Every planning call runs ``validate -> cluster (or accept given clusters) ->
optimize each cluster -> aggregate``. Expected empty inputs (no school
coordinates, no usable bus, no valid student) never raise from the
``PlanResult``-returning functions; they produce a rejected result with a
reason instead.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence

from busplan.clustering import generate_clusters
from busplan.clustering.balancer import truncate_overflow
from busplan.config import BusplanParams, default_params, load_busplan_params
from busplan.core_types import (
    Bus,
    Cluster,
    InvalidStudent,
    PlanResult,
    PlanStatus,
    Route,
    RouteContext,
    RouteType,
    SchoolLocation,
    Stop,
    Student,
)
from busplan.errors import InvalidInputError, OptimizerError
from busplan.interfaces import RoutingProvider
from busplan.registry import get_routing_provider
from busplan.routing import apply_contextual_timing, infer_route_context, optimize_clusters
from busplan.routing.context import TimeSlot
from busplan.routing.optimizer import OptimizedCluster
from busplan.utils.geo import coordinate_problem
from busplan.utils.logging import BusplanLogger, log_warning

logger = BusplanLogger.get_logger("busplan.api")


# ---------------------------------------------------------------------------
# Input handling
# ---------------------------------------------------------------------------


@dataclass
class _Timing:
    route_type: RouteType
    options: dict[str, Any]
    context: Optional[RouteContext] = None


def _resolve_params(params: str | Path | BusplanParams | None) -> BusplanParams:
    if params is None:
        return default_params()
    if isinstance(params, BusplanParams):
        return params
    config_path = Path(params)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path}\n"
            f"Please check the file path and ensure it exists."
        )
    return load_busplan_params(config_path)


def _coerce_school(school: SchoolLocation | dict[str, Any] | None) -> tuple[Optional[SchoolLocation], Optional[str]]:
    """Return the school and, when unusable, the rejection reason."""
    if school is None:
        return None, "School location with lat/lon coordinates is required"
    if isinstance(school, dict):
        school = SchoolLocation.from_dict(school)
    problem = coordinate_problem(school)
    if problem:
        return None, f"School location is invalid: {problem}"
    return school, None


def _coerce_students(
    students: Sequence[Student | dict[str, Any]] | None,
    seen: Optional[set[str]] = None,
) -> tuple[list[Student], list[InvalidStudent]]:
    """Split students into usable ones and ones excluded for bad data."""
    seen = set() if seen is None else seen
    valid: list[Student] = []
    invalid: list[InvalidStudent] = []
    for raw in students or []:
        try:
            student = raw if isinstance(raw, Student) else Student.from_dict(raw)
        except KeyError as exc:
            raise InvalidInputError(str(exc.args[0]) if exc.args else "Malformed student record") from exc
        if student.id in seen:
            invalid.append(InvalidStudent(student.id, "duplicate student id"))
            continue
        seen.add(student.id)
        problem = coordinate_problem(student)
        if problem:
            invalid.append(InvalidStudent(student.id, problem))
        else:
            valid.append(student)
    if invalid:
        log_warning(f"{len(invalid)} students excluded for invalid data")
    return valid, invalid


def _coerce_buses(buses: Sequence[Bus | dict[str, Any]] | None) -> list[Bus]:
    """Buses with positive capacity, in input order."""
    active = []
    for raw in buses or []:
        try:
            bus = raw if isinstance(raw, Bus) else Bus.from_dict(raw)
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidInputError(f"Malformed bus record: {exc}") from exc
        if bus.capacity <= 0:
            logger.info(f"Ignoring bus {bus.id} with capacity {bus.capacity}")
            continue
        active.append(bus)
    return active


def _coerce_stops(stops: Sequence[Stop | dict[str, Any]] | None) -> list[Stop]:
    try:
        return [s if isinstance(s, Stop) else Stop.from_dict(s) for s in stops or []]
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidInputError(f"Malformed stop record: {exc}") from exc


def _coerce_cluster(cluster: Cluster | dict[str, Any]) -> Cluster:
    if isinstance(cluster, Cluster):
        return cluster
    try:
        return Cluster.from_dict(cluster)
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidInputError(f"Malformed cluster record: {exc}") from exc


def _resolve_timing(
    params: BusplanParams,
    route_type: RouteType | str | None,
    depart_at: Optional[str],
    arrive_at: Optional[str],
    traffic: Optional[bool],
    time_slots: Optional[Sequence[TimeSlot | dict[str, Any]]],
) -> _Timing:
    context = None
    if time_slots is not None:
        context = infer_route_context(
            depart_at,
            arrive_at,
            time_slots,
            timezone=params.planning.timezone,
            window_min=params.planning.time_slot_window_min,
        )
        depart_at, arrive_at = apply_contextual_timing(context, depart_at, arrive_at)

    if route_type is not None:
        resolved = RouteType.parse(route_type)
    elif context is not None and context.context in ("pickup", "dropoff"):
        resolved = RouteType(context.context)
    else:
        resolved = params.planning.route_type

    options: dict[str, Any] = {"traffic": params.provider.traffic if traffic is None else traffic}
    if depart_at:
        options["departAt"] = depart_at
    if arrive_at:
        options["arriveAt"] = arrive_at
    return _Timing(resolved, options, context)


def _resolve_provider(provider: Optional[RoutingProvider], params: BusplanParams) -> RoutingProvider:
    if provider is not None:
        return provider
    return get_routing_provider(params.provider.name, params.provider)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def _aggregate(
    optimized: list[OptimizedCluster],
    unassigned: list[str],
    invalid: list[InvalidStudent],
    strategy: Optional[str],
    context: Optional[RouteContext],
) -> PlanResult:
    routes = [o.route for o in optimized if o.route is not None]
    failures = [o.failure for o in optimized if o.failure is not None]
    unassigned = list(unassigned)
    for outcome in optimized:
        unassigned.extend(outcome.skipped_student_ids)
        if outcome.failure is not None:
            unassigned.extend(outcome.failure.student_ids)

    result = PlanResult(
        routes=routes,
        unassigned_student_ids=unassigned,
        invalid_students=list(invalid),
        failures=failures,
        unused_bus_ids=[o.cluster.bus_id for o in optimized if o.route is None],
        strategy=strategy,
        route_context=context,
    )
    if failures:
        result.status = PlanStatus.PARTIAL_FAILURE
        result.reason = f"{len(failures)} of {len(failures) + len(routes)} clusters failed optimization"
        log_warning(result.reason)
    logger.info(
        f"Plan complete: {len(routes)} routes, {len(result.assigned_student_ids)} students assigned, "
        f"{len(unassigned)} unassigned"
    )
    return result


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def plan_fleet(
    school: SchoolLocation | dict[str, Any] | None,
    students: Sequence[Student | dict[str, Any]] | None,
    buses: Sequence[Bus | dict[str, Any]] | None,
    params: str | Path | BusplanParams | None = None,
    *,
    strategy: Optional[str] = None,
    use_batch: Optional[bool] = None,
    route_type: RouteType | str | None = None,
    stops: Optional[Sequence[Stop | dict[str, Any]]] = None,
    provider: Optional[RoutingProvider] = None,
    depart_at: Optional[str] = None,
    arrive_at: Optional[str] = None,
    traffic: Optional[bool] = None,
    time_slots: Optional[Sequence[TimeSlot | dict[str, Any]]] = None,
) -> PlanResult:
    """
    Cluster students onto buses and optimize one route per bus.

    Args:
        school: School location (``SchoolLocation`` or ``{"lat", "lon"}``).
        students: Students (``Student`` objects or caller-facing dicts).
        buses: Fleet in dispatch order; buses without positive capacity are ignored.
        params: Parameters object, path to a YAML file, or None for defaults.
        strategy: Clustering strategy name (default from configuration, ``balanced``).
        use_batch: One batched provider call instead of one call per cluster.
        route_type: ``pickup``, ``dropoff`` or ``mixed``.
        stops: Intermediate stops inserted into every cluster's path.
        provider: Routing provider; defaults to the configured one.
        depart_at / arrive_at: Requested departure or arrival time (ISO 8601).
        traffic: Ask the provider to account for traffic.
        time_slots: School time slots used to infer pickup/dropoff context.

    Returns:
        PlanResult. Every valid student id is in exactly one route or in
        ``unassigned_student_ids``; students with bad data are in
        ``invalid_students``.

    Raises:
        InvalidInputError: If a bus, stop or time slot record is malformed.

    Example:
        >>> result = plan_fleet({"lat": 37.98, "lon": 23.73}, students, buses, strategy="sweep")
        >>> print(result.summary())
    """
    params = _resolve_params(params)
    valid, invalid = _coerce_students(students)
    school_location, school_problem = _coerce_school(school)
    active_buses = _coerce_buses(buses)
    valid_ids = [s.id for s in valid]

    if school_problem:
        return PlanResult.rejected(school_problem, valid_ids, invalid)
    if not active_buses:
        return PlanResult.rejected("No buses with positive capacity available", valid_ids, invalid)
    if not valid:
        return PlanResult.rejected("No students with valid coordinates", valid_ids, invalid)

    timing = _resolve_timing(params, route_type, depart_at, arrive_at, traffic, time_slots)
    method = strategy or params.algorithm.clustering_method
    outcome = generate_clusters(school_location, valid, active_buses, method, params.algorithm)

    optimized = optimize_clusters(
        school_location,
        outcome.clusters,
        _resolve_provider(provider, params),
        stops=_coerce_stops(stops),
        route_type=timing.route_type,
        use_batch=params.provider.use_batch if use_batch is None else use_batch,
        options=timing.options,
        max_parallel=params.provider.max_parallel,
    )
    return _aggregate(optimized, outcome.unassigned, invalid, method, timing.context)


def plan_clusters(
    school: SchoolLocation | dict[str, Any] | None,
    clusters: Sequence[Cluster | dict[str, Any]] | None,
    stops: Optional[Sequence[Stop | dict[str, Any]]] = None,
    params: str | Path | BusplanParams | None = None,
    *,
    use_batch: Optional[bool] = None,
    route_type: RouteType | str | None = None,
    provider: Optional[RoutingProvider] = None,
    depart_at: Optional[str] = None,
    arrive_at: Optional[str] = None,
    traffic: Optional[bool] = None,
    time_slots: Optional[Sequence[TimeSlot | dict[str, Any]]] = None,
) -> PlanResult:
    """
    Optimize caller-supplied clusters without re-clustering.

    Students beyond a cluster's capacity are reported unassigned, as are all
    students of clusters without positive capacity.
    """
    params = _resolve_params(params)
    given = [_coerce_cluster(c) for c in clusters or []]

    seen: set[str] = set()
    invalid: list[InvalidStudent] = []
    unassigned: list[str] = []
    prepared: list[Cluster] = []
    for cluster in given:
        valid, bad = _coerce_students(cluster.students, seen)
        invalid.extend(bad)
        checked = Cluster(cluster.bus_id, cluster.capacity, valid, cluster.bus_name)
        unassigned.extend(truncate_overflow([checked.students], [checked.capacity]))
        prepared.append(checked)

    school_location, school_problem = _coerce_school(school)
    valid_ids = [sid for c in prepared for sid in c.student_ids] + unassigned
    if school_problem:
        return PlanResult.rejected(school_problem, valid_ids, invalid)
    if not any(c.capacity > 0 for c in prepared):
        return PlanResult.rejected("No clusters with positive capacity supplied", valid_ids, invalid)
    if not valid_ids:
        return PlanResult.rejected("No students with valid coordinates", valid_ids, invalid)

    timing = _resolve_timing(params, route_type, depart_at, arrive_at, traffic, time_slots)
    optimized = optimize_clusters(
        school_location,
        prepared,
        _resolve_provider(provider, params),
        stops=_coerce_stops(stops),
        route_type=timing.route_type,
        use_batch=params.provider.use_batch if use_batch is None else use_batch,
        options=timing.options,
        max_parallel=params.provider.max_parallel,
    )
    return _aggregate(optimized, unassigned, invalid, None, timing.context)


def plan_single_cluster(
    school: SchoolLocation | dict[str, Any] | None,
    cluster: Cluster | dict[str, Any],
    stops: Optional[Sequence[Stop | dict[str, Any]]] = None,
    params: str | Path | BusplanParams | None = None,
    *,
    route_type: RouteType | str | None = None,
    provider: Optional[RoutingProvider] = None,
    depart_at: Optional[str] = None,
    arrive_at: Optional[str] = None,
    traffic: Optional[bool] = None,
) -> Route:
    """
    Re-optimize one operator-adjusted cluster, bypassing clustering.

    Raises:
        InvalidInputError: If the school or the cluster is unusable.
        OptimizerError: If the routing provider fails for this cluster.
    """
    params = _resolve_params(params)
    school_location, school_problem = _coerce_school(school)
    if school_problem:
        raise InvalidInputError(school_problem)

    cluster = _coerce_cluster(cluster)
    valid, invalid = _coerce_students(cluster.students)
    if not valid:
        raise InvalidInputError(f"Cluster for bus {cluster.bus_id} has no students with valid coordinates")
    if len(valid) > cluster.capacity:
        raise InvalidInputError(
            f"Cluster for bus {cluster.bus_id} has {len(valid)} students for capacity {cluster.capacity}"
        )
    for student in invalid:
        log_warning(f"Student {student.id} left out of bus {cluster.bus_id}: {student.reason}")

    timing = _resolve_timing(params, route_type, depart_at, arrive_at, traffic, None)
    checked = Cluster(cluster.bus_id, cluster.capacity, valid, cluster.bus_name)
    (outcome,) = optimize_clusters(
        school_location,
        [checked],
        _resolve_provider(provider, params),
        stops=_coerce_stops(stops),
        route_type=timing.route_type,
        use_batch=False,
        options=timing.options,
        max_parallel=1,
    )
    if outcome.route is None:
        reason = outcome.failure.reason if outcome.failure else "no route produced"
        raise OptimizerError(reason, bus_id=cluster.bus_id)
    return outcome.route


def preview_clusters(
    school: SchoolLocation | dict[str, Any] | None,
    students: Sequence[Student | dict[str, Any]] | None,
    buses: Sequence[Bus | dict[str, Any]] | None,
    strategy_name: Optional[str] = None,
    params: str | Path | BusplanParams | None = None,
) -> list[Cluster]:
    """
    Run clustering only, without calling the routing provider.

    Students with bad data and students that do not fit are simply absent
    from the returned clusters.

    Raises:
        InvalidInputError: If the school is unusable or no bus has capacity.
    """
    params = _resolve_params(params)
    school_location, school_problem = _coerce_school(school)
    if school_problem:
        raise InvalidInputError(school_problem)
    active_buses = _coerce_buses(buses)
    if not active_buses:
        raise InvalidInputError("No buses with positive capacity available")

    valid, _ = _coerce_students(students)
    outcome = generate_clusters(
        school_location, valid, active_buses, strategy_name or params.algorithm.clustering_method, params.algorithm
    )
    return outcome.clusters
