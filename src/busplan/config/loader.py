from __future__ import annotations

"""Utilities for loading busplan configuration YAML files into the
parameter dataclass hierarchy.

Each top-level section (``clustering``, ``provider``, ``planning``) maps onto
one parameter dataclass. Unknown keys are rejected instead of being ignored so
that a misspelt tunable never silently falls back to its default.
"""

import os
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict

import yaml

from busplan.utils.logging import BusplanLogger

from .params import AlgorithmParams, BusplanParams, PlanningParams, ProviderParams

logger = BusplanLogger.get_logger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "default_config.yaml"

API_KEY_ENV_VAR = "BUSPLAN_ROUTING_API_KEY"

# YAML key under ``clustering`` -> AlgorithmParams field
_CLUSTERING_RENAMES = {"method": "clustering_method"}


# ---------------------------------------------------------------------------
# Helper parsing routines
# ---------------------------------------------------------------------------


def _section_kwargs(
    section_name: str, raw: Dict[str, Any] | None, target: type, renames: Dict[str, str] | None = None
) -> Dict[str, Any]:
    """Translate one YAML section into constructor kwargs for ``target``."""

    raw = dict(raw or {})
    renames = renames or {}
    allowed = {f.name for f in fields(target)}
    kwargs: Dict[str, Any] = {}
    for key, value in raw.items():
        name = renames.get(key, key)
        if name not in allowed:
            raise ValueError(f"Unknown key '{key}' in '{section_name}' configuration section")
        kwargs[name] = value
    return kwargs


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_yaml(path: str | Path) -> BusplanParams:
    """Load YAML configuration file into `BusplanParams`."""

    cfg_path = Path(path)
    if not cfg_path.exists():
        raise FileNotFoundError(cfg_path)

    try:
        with cfg_path.open() as f:
            data: Dict[str, Any] = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Error parsing YAML configuration {cfg_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Configuration {cfg_path} must be a mapping at the top level")

    algorithm = AlgorithmParams(
        **_section_kwargs("clustering", data.pop("clustering", None), AlgorithmParams, _CLUSTERING_RENAMES)
    )

    provider_kwargs = _section_kwargs("provider", data.pop("provider", None), ProviderParams)
    if not provider_kwargs.get("api_key"):
        provider_kwargs["api_key"] = os.getenv(API_KEY_ENV_VAR)
    provider = ProviderParams(**provider_kwargs)

    planning = PlanningParams(**_section_kwargs("planning", data.pop("planning", None), PlanningParams))

    # Any remaining unknown keys will raise an error to avoid silent mistakes.
    if data:
        unknown_keys = ", ".join(sorted(data.keys()))
        raise ValueError(f"Unknown top-level configuration keys in YAML: {unknown_keys}")

    logger.debug(
        "Loaded configuration – algorithm: %s provider: %s planning: %s",
        algorithm,
        # never log the key itself
        provider.base_url,
        planning,
    )

    return BusplanParams(algorithm=algorithm, provider=provider, planning=planning)


def default_params() -> BusplanParams:
    """Parameters from the packaged default configuration."""
    return load_yaml(DEFAULT_CONFIG_PATH)
