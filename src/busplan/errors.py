"""Exception hierarchy for busplan.

Student-level data problems are not exceptions: they are reported as
``InvalidStudent`` records on the plan result. Exceptions are reserved for
inputs that make a whole planning call meaningless and for failures of the
external routing provider.
"""


class BusplanError(Exception):
    """Base class for all busplan errors."""


class InvalidInputError(BusplanError, ValueError):
    """Raised when a mandatory input (school, fleet, cluster) is unusable."""


class OptimizerError(BusplanError, RuntimeError):
    """Raised when the routing provider fails, times out or answers malformed data."""

    def __init__(self, message: str, *, bus_id: str | None = None):
        super().__init__(message)
        self.bus_id = bus_id
