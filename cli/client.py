"""HTTP client used by the CLI to reach the gateway API."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the gateway API."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def send_reading(
        self,
        kind: str,
        group_id: str,
        sensor_id: str,
        value: float,
        time: Optional[int] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"group_id": group_id, "sensor_id": sensor_id, "value": value}
        if time is not None:
            body["time"] = time
        return self._request("POST", f"/{kind}", json=body)

    def list_readings(
        self,
        kind: str,
        last_seconds: Optional[int] = None,
        group_id: Optional[str] = None,
        sensor_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        if group_id is not None and sensor_id is not None:
            return self._request("GET", f"/{kind}/{group_id}/{sensor_id}")
        params = {"last_seconds": last_seconds} if last_seconds is not None else None
        return self._request("GET", f"/{kind}", params=params)

    def retransmit(self, kind: str, group_id: str, sensor_id: str) -> Dict[str, Any]:
        return self._request("POST", f"/{kind}/{group_id}/{sensor_id}/retransmit")

    def publish_commands(self, kind: str, last_seconds: Optional[int] = None) -> Dict[str, Any]:
        params = {"last_seconds": last_seconds} if last_seconds is not None else None
        response = self._client.post(f"/{kind}/commands", params=params)
        # A 502 still carries the per-group outcome.
        if response.status_code == httpx.codes.BAD_GATEWAY:
            return response.json()
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

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
