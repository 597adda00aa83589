"""Configuration module for busplan parameters."""

from .params import (
    AlgorithmParams,
    ProviderParams,
    PlanningParams,
    RuntimeParams,
    BusplanParams,
)
from .loader import default_params, load_yaml as load_busplan_params

__all__ = [
    "AlgorithmParams",
    "ProviderParams",
    "PlanningParams",
    "RuntimeParams",
    "BusplanParams",
    "default_params",
    "load_busplan_params",
]
