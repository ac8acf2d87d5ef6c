from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

import httpx
import typer

from cli.config import CLIConfig

# Ingestion responses carry an outcome body for these codes.
_OUTCOME_STATUS_CODES = {201, 400, 404, 409, 503}


class ApiClient:
    """Minimal HTTP client for the telemetry service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def submit_encoded(self, payload: str) -> Dict[str, Any]:
        return self._submit({"b": payload})

    def submit_plain(
        self,
        node: str,
        temperature: float,
        humidity: Optional[float] = None,
        timestamp: Optional[str] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, str] = {"node_name": node, "temperature": str(temperature)}
        if humidity is not None:
            params["humidity"] = str(humidity)
        if timestamp is not None:
            params["time_received"] = timestamp
        return self._submit(params)

    def list_nodes(self) -> List[Dict[str, Any]]:
        return self._get_json("/nodes")

    def list_readings(self, node: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"node": node} if node else None
        return self._get_json("/readings", params=params)

    def get_aggregate(self, node: str) -> Dict[str, Any]:
        return self._get_json(f"/readings/{node}/aggregate")

    def get_series(self, node: str) -> Dict[str, Any]:
        return self._get_json(f"/readings/{node}/series")

    def _submit(self, params: Mapping[str, str]) -> Dict[str, Any]:
        try:
            response = self._client.get("/ingest", params=params)
        except httpx.HTTPError as exc:
            self._handle_transport_error(exc)
        if response.status_code in _OUTCOME_STATUS_CODES:
            payload = response.json()
            if isinstance(payload, dict) and "status" in payload:
                return payload
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        raise typer.BadParameter("Unexpected response payload when submitting a reading.")

    def _get_json(self, path: str, params: Optional[Mapping[str, str]] = None) -> Any:
        try:
            response = self._client.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.HTTPError as exc:
            self._handle_transport_error(exc)
        return response.json()

    @staticmethod
    def _handle_transport_error(exc: httpx.HTTPError) -> None:
        typer.secho(f"Request failed: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
