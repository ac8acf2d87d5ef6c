from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import (
    render_aggregate,
    render_nodes,
    render_outcome,
    render_readings,
    render_series,
)
from services.decoder import encode_payload


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for submitting and inspecting sensor telemetry.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Telemetry API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each HTTP request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("submit")
def submit_command(
    ctx: typer.Context,
    node: str = typer.Argument(..., help="Registered node identifier."),
    temperature: float = typer.Argument(..., help="Temperature in degrees Celsius."),
    humidity: Optional[float] = typer.Option(None, "--humidity", help="Relative humidity in percent."),
    timestamp: Optional[str] = typer.Option(
        None,
        "--time",
        help="Reading time, e.g. '2025-10-10 20:25:01'. Server time is used when omitted.",
    ),
    encoded: bool = typer.Option(
        False,
        "--encoded/--plain",
        help="Send the reading as a base64 payload instead of plain parameters.",
    ),
) -> None:
    """Submit a single reading."""
    state = _get_state(ctx)
    if encoded:
        payload = encode_payload(node, temperature, timestamp=timestamp, humidity=humidity)
        result = state.client.submit_encoded(payload)
    else:
        result = state.client.submit_plain(node, temperature, humidity=humidity, timestamp=timestamp)
    render_outcome(result)
    if result.get("status") != "accepted":
        raise typer.Exit(code=1)


@app.command("nodes")
def nodes_command(ctx: typer.Context) -> None:
    """List registered sensor nodes."""
    state = _get_state(ctx)
    render_nodes(state.client.list_nodes())


@app.command("readings")
def readings_command(
    ctx: typer.Context,
    node: Optional[str] = typer.Argument(None, help="Only show readings for this node."),
) -> None:
    """List stored readings."""
    state = _get_state(ctx)
    render_readings(state.client.list_readings(node))


@app.command("aggregate")
def aggregate_command(
    ctx: typer.Context,
    node: str = typer.Argument(..., help="Node to average."),
) -> None:
    """Show average temperature and humidity for a node."""
    state = _get_state(ctx)
    render_aggregate(state.client.get_aggregate(node))


@app.command("series")
def series_command(
    ctx: typer.Context,
    node: str = typer.Argument(..., help="Node to chart."),
) -> None:
    """Print a node's temperature series in time order."""
    state = _get_state(ctx)
    render_series(state.client.get_series(node))
