from __future__ import annotations

"""Parameter container dataclasses for busplan.

Algorithm tunables, routing-provider settings and planning defaults live in
separate immutable dataclasses. A small mutable `RuntimeParams` bucket
captures flags that are never serialised to YAML but can be toggled
programmatically.
"""

from dataclasses import dataclass, field

from busplan.core_types import RouteType

__all__ = [
    "AlgorithmParams",
    "ProviderParams",
    "PlanningParams",
    "RuntimeParams",
    "BusplanParams",
]


# ---------------------------------------------------------------------------
# Algorithm parameters – clustering strategy and its tunables
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AlgorithmParams:
    """Clustering configuration.

    The numeric defaults are the historical values of the production system;
    none of them has a documented derivation, hence they are tunables.
    """

    clustering_method: str = "balanced"
    # Balanced-by-load: weight of one student of load imbalance, in meters.
    balance_penalty_weight: float = 1000.0
    # Geographic k-means
    kmeans_max_iterations: int = 50
    kmeans_convergence_deg: float = 0.0001
    kmeans_initial_radius_deg: float = 0.01
    # Cross-cluster balancer: only clusters whose centers are this close interact.
    balancer_neighbor_radius_m: float = 1000.0
    # Density-based nearest neighbour: neighbourhood radius for local density.
    density_radius_m: float = 500.0

    def __post_init__(self):  # type: ignore[override]
        if not self.clustering_method:
            raise ValueError("AlgorithmParams.clustering_method cannot be empty.")
        if self.kmeans_max_iterations <= 0:
            raise ValueError("AlgorithmParams.kmeans_max_iterations must be positive.")

        for field_name in (
            "balance_penalty_weight",
            "kmeans_convergence_deg",
            "kmeans_initial_radius_deg",
            "balancer_neighbor_radius_m",
            "density_radius_m",
        ):
            value = getattr(self, field_name)
            if value < 0:
                raise ValueError(f"AlgorithmParams.{field_name} must be non-negative.")


# ---------------------------------------------------------------------------
# Routing provider parameters
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ProviderParams:
    """Settings of the external routing provider."""

    name: str = "tomtom"
    base_url: str = "https://api.tomtom.com"
    api_key: str | None = None
    timeout_s: float = 120.0
    traffic: bool = False
    travel_mode: str = "fastest"
    use_batch: bool = True
    max_parallel: int = 4

    def __post_init__(self):  # type: ignore[override]
        if self.timeout_s <= 0:
            raise ValueError("ProviderParams.timeout_s must be positive.")
        if self.max_parallel <= 0:
            raise ValueError("ProviderParams.max_parallel must be positive.")
        if not self.base_url:
            raise ValueError("ProviderParams.base_url cannot be empty.")


# ---------------------------------------------------------------------------
# Planning defaults
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PlanningParams:
    """Defaults applied when a planning call does not specify them."""

    route_type: RouteType = RouteType.PICKUP
    timezone: str = "Europe/Athens"
    # Minutes within which a requested time is matched to a time slot.
    time_slot_window_min: int = 120

    def __post_init__(self):  # type: ignore[override]
        object.__setattr__(self, "route_type", RouteType.parse(self.route_type))
        if self.time_slot_window_min < 0:
            raise ValueError("PlanningParams.time_slot_window_min must be non-negative.")


# ---------------------------------------------------------------------------
# Runtime parameters – toggles that are never serialized to yaml
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class RuntimeParams:
    verbose: bool = False
    debug: bool = False


# ---------------------------------------------------------------------------
# Aggregate container
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class BusplanParams:
    """Aggregate parameter object passed throughout the codebase."""

    algorithm: AlgorithmParams = field(default_factory=AlgorithmParams)
    provider: ProviderParams = field(default_factory=ProviderParams)
    planning: PlanningParams = field(default_factory=PlanningParams)
    runtime: RuntimeParams = field(default_factory=RuntimeParams)
