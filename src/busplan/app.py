"""
Command-line interface for busplan using Typer.
"""

import json
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from busplan import __version__
from busplan.api import plan_fleet, preview_clusters
from busplan.config import BusplanParams, default_params, load_busplan_params
from busplan.errors import BusplanError
from busplan.registry import CLUSTERER_REGISTRY
from busplan.utils.logging import (
    LogLevel,
    ProgressTracker,
    log_debug,
    log_error,
    log_success,
    setup_logging,
)
from busplan.utils.save_results import SUPPORTED_FORMATS, save_plan_results

app = typer.Typer(
    help="busplan: school bus clustering and route planning",
    add_completion=False,
)
console = Console()

# Caller-facing request keys -> plan_fleet keyword arguments
_REQUEST_ALIASES = {
    "school_location": "school",
    "useBatch": "use_batch",
    "routeType": "route_type",
    "route_type": "route_type",
    "departAt": "depart_at",
    "arriveAt": "arrive_at",
    "timeSlots": "time_slots",
}


def _load_request(path: Path) -> dict[str, Any]:
    """Read a planning request JSON file and normalise its keys."""
    try:
        with open(path) as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Error parsing request file {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ValueError(f"Request file {path} must contain a JSON object")
    return {_REQUEST_ALIASES.get(key, key): value for key, value in raw.items()}


def _load_params(config: Path | None) -> BusplanParams:
    if config is None:
        return default_params()
    if not config.exists():
        raise FileNotFoundError(f"Config file not found: {config}")
    return load_busplan_params(config)


@app.command()
def plan(
    input: Path = typer.Option(..., "--input", "-i", help="Planning request JSON file"),
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to configuration YAML file"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output file (default: timestamped file in results/)"),
    format: str = typer.Option("json", "--format", "-f", help="Output format (json, csv, xlsx)"),
    strategy: str | None = typer.Option(None, "--strategy", "-s", help="Clustering strategy"),
    route_type: str | None = typer.Option(None, "--route-type", "-r", help="pickup, dropoff or mixed"),
    batch: bool | None = typer.Option(None, "--batch/--no-batch", help="Use one batched provider call"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Minimal output (errors only)"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug output"),
) -> None:
    """
    Cluster students onto buses and optimize one route per bus.

    The request file holds the school, students and buses (plus optional
    stops, strategy, route type and timing); the plan is written to disk.
    """
    _setup_logging_from_flags(verbose, quiet, debug)

    if not input.exists():
        log_error(f"Request file not found: {input}")
        raise typer.Exit(1)
    if format not in SUPPORTED_FORMATS:
        log_error(f"Invalid format. Choose one of: {', '.join(SUPPORTED_FORMATS)}")
        raise typer.Exit(1)

    tracker = ProgressTracker(["Load request", "Plan routes", "Save results"])
    try:
        params = _load_params(config)
        request = _load_request(input)
        tracker.advance(f"Loaded {len(request.get('students') or [])} students")

        result = plan_fleet(
            request.get("school"),
            request.get("students"),
            request.get("buses"),
            params,
            strategy=strategy or request.get("strategy"),
            use_batch=batch if batch is not None else request.get("use_batch"),
            route_type=route_type or request.get("route_type"),
            stops=request.get("stops"),
            depart_at=request.get("depart_at"),
            arrive_at=request.get("arrive_at"),
            traffic=request.get("traffic"),
            time_slots=request.get("time_slots"),
        )
        tracker.advance(f"Planned {len(result.routes)} routes", status=result.status.value)

        saved = save_plan_results(result, output, format=format)
        tracker.advance(f"Saved {saved}")
    except (FileNotFoundError, ValueError, BusplanError) as e:
        log_error(str(e))
        raise typer.Exit(1)
    finally:
        tracker.close()

    if not quiet:
        table = Table(title="Plan Results", show_header=True)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")
        for key, value in result.summary().items():
            table.add_row(key.replace("_", " ").capitalize(), str(value))
        if result.reason:
            table.add_row("Reason", result.reason)
        console.print(table)

    log_success(f"Results saved to {saved}")
    log_debug(f"Strategy: {result.strategy}")


@app.command()
def preview(
    input: Path = typer.Option(..., "--input", "-i", help="Planning request JSON file"),
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to configuration YAML file"),
    strategy: str | None = typer.Option(None, "--strategy", "-s", help="Clustering strategy"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Minimal output (errors only)"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug output"),
) -> None:
    """
    Show the clusters a strategy would produce, without calling the routing provider.
    """
    _setup_logging_from_flags(verbose, quiet, debug)

    if not input.exists():
        log_error(f"Request file not found: {input}")
        raise typer.Exit(1)

    try:
        params = _load_params(config)
        request = _load_request(input)
        clusters = preview_clusters(
            request.get("school"),
            request.get("students"),
            request.get("buses"),
            strategy or request.get("strategy"),
            params,
        )
    except (FileNotFoundError, ValueError, BusplanError) as e:
        log_error(str(e))
        raise typer.Exit(1)

    table = Table(title="Cluster Preview", show_header=True)
    table.add_column("Bus", style="cyan")
    table.add_column("Load", style="green")
    table.add_column("Students")
    for cluster in clusters:
        table.add_row(
            cluster.bus_name or cluster.bus_id,
            f"{cluster.size}/{cluster.capacity}",
            ", ".join(cluster.student_ids),
        )
    console.print(table)


@app.command()
def strategies() -> None:
    """
    List the registered clustering strategies.
    """
    table = Table(title="Clustering Strategies", show_header=True)
    table.add_column("Name", style="cyan")
    table.add_column("Implementation")
    for name in sorted(CLUSTERER_REGISTRY):
        table.add_row(name, CLUSTERER_REGISTRY[name].__name__)
    console.print(table)


@app.command()
def version() -> None:
    """
    Show the busplan version.
    """
    console.print(f"busplan version {__version__}")


def _setup_logging_from_flags(
    verbose: bool = False, quiet: bool = False, debug: bool = False
):
    """Setup logging based on CLI flags or environment variable."""
    level_from_flags: LogLevel | None = None
    if debug:
        level_from_flags = LogLevel.DEBUG
    elif verbose:
        level_from_flags = LogLevel.VERBOSE
    elif quiet:
        level_from_flags = LogLevel.QUIET

    if level_from_flags is not None:
        setup_logging(level_from_flags)
    else:
        # No flags set, let setup_logging handle it (will check env var)
        setup_logging()


if __name__ == "__main__":
    app()
