"""
save_results.py - persistence of plan results

Single exit point for anything written to disk after a planning run, so that
the planning code itself stays free of side effects.

Formats
- json: the full ``PlanResult.to_dict()`` document.
- csv: one row per student (bus, sequence, or exclusion reason).
- xlsx: summary, routes, assignments and segments on separate sheets.
"""

import json
from datetime import datetime
from pathlib import Path

import numpy as np
import pandas as pd

from busplan.core_types import PlanResult
from busplan.utils.logging import BusplanLogger

logger = BusplanLogger.get_logger(__name__)

SUPPORTED_FORMATS = ("json", "csv", "xlsx")
_FORMAT_ALIASES = {"excel": "xlsx"}


class NumpyEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        return super().default(obj)


def save_plan_results(
    result: PlanResult,
    filename: str | Path | None = None,
    format: str = "json",
    results_dir: str | Path = "results",
) -> Path:
    """Write ``result`` to disk and return the file path.

    Without ``filename`` a timestamped file is created under ``results_dir``.
    """
    format = _FORMAT_ALIASES.get(format.lower(), format.lower())
    if format not in SUPPORTED_FORMATS:
        raise ValueError(f"Unsupported format '{format}'. Choose one of: {', '.join(SUPPORTED_FORMATS)}")

    if filename is None:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        output_path = Path(results_dir) / f"plan_results_{timestamp}.{format}"
    else:
        output_path = Path(filename)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if format == "json":
        _write_to_json(output_path, result)
    elif format == "csv":
        result.to_dataframe().to_csv(output_path, index=False)
    else:
        _write_to_excel(output_path, result)

    logger.info(f"Results saved to {output_path}")
    return output_path


def _routes_dataframe(result: PlanResult) -> pd.DataFrame:
    columns = ["Bus_ID", "Bus_Name", "Capacity", "Students", "Stops", "Distance_km", "Duration_min", "Sequence"]
    rows = [
        [
            route.bus_id,
            route.bus_name or f"Bus {route.bus_id}",
            route.capacity,
            route.students_assigned,
            len(route.stops_ordered),
            route.distance_km,
            route.estimated_duration_minutes,
            " -> ".join(route.student_ids_ordered),
        ]
        for route in result.routes
    ]
    return pd.DataFrame(rows, columns=columns)


def _segments_dataframe(result: PlanResult) -> pd.DataFrame:
    columns = ["Bus_ID", "Leg", "From", "To", "Distance_m", "Duration_s"]
    rows = [
        [route.bus_id, leg, seg.origin.id, seg.destination.id, seg.distance_m, seg.duration_s]
        for route in result.routes
        for leg, seg in enumerate(route.segments, start=1)
    ]
    return pd.DataFrame(rows, columns=columns)


def _write_to_excel(filename: Path, result: PlanResult) -> None:
    summary = [(key, value) for key, value in result.summary().items()]
    summary.append(("strategy", result.strategy))
    summary.append(("reason", result.reason))
    with pd.ExcelWriter(filename, engine="openpyxl") as writer:
        pd.DataFrame(summary, columns=["Metric", "Value"]).to_excel(
            writer, sheet_name="Plan Summary", index=False
        )
        _routes_dataframe(result).to_excel(writer, sheet_name="Routes", index=False)
        result.to_dataframe().to_excel(writer, sheet_name="Assignments", index=False)
        _segments_dataframe(result).to_excel(writer, sheet_name="Segments", index=False)


def _write_to_json(filename: Path, result: PlanResult) -> None:
    with open(filename, "w") as f:
        json.dump(result.to_dict(), f, cls=NumpyEncoder, indent=2)
