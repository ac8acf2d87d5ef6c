from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer

_OUTCOME_COLORS = {
    "accepted": typer.colors.GREEN,
    "rejected_duplicate": typer.colors.YELLOW,
}


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _dash(value: Any) -> Any:
    return "-" if value is None else value


def render_outcome(payload: Dict[str, Any]) -> None:
    status = payload.get("status", "unknown")
    typer.secho(payload.get("message", status), fg=_OUTCOME_COLORS.get(status, typer.colors.RED))
    echo_key_values(
        (key, payload.get(key))
        for key in ("status", "node_name", "time_received", "temperature", "humidity", "field", "value")
        if payload.get(key) is not None
    )


def render_nodes(nodes: List[Dict[str, Any]]) -> None:
    echo_heading("Registered Sensor Nodes")
    if not nodes:
        typer.echo("No nodes registered.")
        return
    for node in nodes:
        typer.echo(
            f"  - {node.get('node_name')} ({node.get('manufacturer')}) "
            f"lon={_dash(node.get('longitude'))} lat={_dash(node.get('latitude'))}"
        )


def render_readings(readings: List[Dict[str, Any]]) -> None:
    echo_heading("Data Received")
    if not readings:
        typer.echo("No data.")
        return
    for reading in readings:
        typer.echo(
            f"  - {reading.get('node_name')} @ {reading.get('time_received')}: "
            f"T={reading.get('temperature')} H={reading.get('humidity')}"
        )


def render_aggregate(payload: Dict[str, Any]) -> None:
    echo_heading(f"Average for {payload.get('node_name')}")
    echo_key_values(
        [
            ("count", payload.get("count")),
            ("avg_temperature", _dash(payload.get("avg_temperature"))),
            ("avg_humidity", _dash(payload.get("avg_humidity"))),
        ]
    )


def render_series(payload: Dict[str, Any]) -> None:
    echo_heading(f"Sensor Node {payload.get('node_name')} - Temperature vs Time")
    labels = payload.get("labels") or []
    temperatures = payload.get("temperatures") or []
    if not labels:
        typer.echo("No data.")
        return
    for label, temperature in zip(labels, temperatures):
        typer.echo(f"  {label}  {temperature}")
