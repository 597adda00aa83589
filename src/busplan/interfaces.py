"""Protocol definitions for pluggable components in busplan."""

from typing import Any, Protocol, Sequence

from busplan.config.params import AlgorithmParams
from busplan.core_types import Bus, ClusteringOutcome, SchoolLocation, Student


class Clusterer(Protocol):
    """Protocol for clustering strategies.

    Implementations receive students that already passed coordinate
    validation and buses with positive capacity. They must place every
    student either in exactly one cluster or in ``unassigned``.
    """

    def fit(
        self,
        school: SchoolLocation,
        students: Sequence[Student],
        buses: Sequence[Bus],
        *,
        params: AlgorithmParams,
    ) -> ClusteringOutcome:
        """Partition students into one cluster per bus."""
        ...


class RoutingProvider(Protocol):
    """Protocol for the external best-order routing service.

    ``path`` is the provider coordinate string of one cluster. Both methods
    return the provider's raw route payload (the first route object), and
    raise ``OptimizerError`` for transport or protocol failures.
    """

    def calculate_route(self, path: str, *, options: dict[str, Any]) -> dict[str, Any]:
        """Optimize a single path."""
        ...

    def calculate_batch(
        self, paths: Sequence[str], *, options: dict[str, Any]
    ) -> list[dict[str, Any] | Exception]:
        """Optimize several paths in one call; failed items come back as exceptions."""
        ...
