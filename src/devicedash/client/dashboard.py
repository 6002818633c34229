"""Async dashboard client for the producer API and the consumer push channel."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from typing import Any

import aiohttp

from devicedash.client.reconciler import DeviceReconciler
from devicedash.config import DashboardConfig
from devicedash.exceptions import DeviceDashError, DeviceDashTransportError
from devicedash.ingestion.normalize import flatten_form

_logger = logging.getLogger(__name__)


class DashboardClient:
    """Async client mirroring what the browser dashboard does.

    Usage::

        async with DashboardClient(config) as client:
            await client.get_devices()
            await client.listen()   # returns when the push channel closes

    Device edits go to the producer only; the local copy changes when the
    resulting change event comes back over the push channel.
    """

    def __init__(
        self,
        config: DashboardConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        on_change: Callable[[list[dict[str, Any]]], None] | None = None,
    ) -> None:
        self._config = config or DashboardConfig()
        self._external_session = session is not None
        self._http_session = session
        self._on_change = on_change
        self._reconciler = DeviceReconciler()
        self._simulator_running = False

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> DashboardClient:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._config.request_timeout),
            )
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    @property
    def reconciler(self) -> DeviceReconciler:
        return self._reconciler

    @property
    def devices(self) -> list[dict[str, Any]]:
        return self._reconciler.devices

    @property
    def simulator_running(self) -> bool:
        """Local view of the simulator, set by successful start/stop calls."""
        return self._simulator_running

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_session(self) -> aiohttp.ClientSession:
        if self._http_session is None:
            raise DeviceDashError("Client not initialized. Use 'async with DashboardClient(...) as client:'")
        return self._http_session

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        form: list[tuple[str, str]] | None = None,
    ) -> Any:
        http = self._require_session()
        url = f"{self._config.api_url.rstrip('/')}{endpoint}"
        _logger.debug("%s %s form=%s", method, url, form)
        try:
            async with http.request(method, url, data=form) as resp:
                text = await resp.text()
                status = resp.status
        except aiohttp.ClientError as exc:
            raise DeviceDashTransportError(f"Request to {endpoint} failed: {exc}", endpoint=endpoint) from exc

        try:
            body = json.loads(text) if text else None
        except json.JSONDecodeError as exc:
            raise DeviceDashTransportError(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                status_code=status,
                endpoint=endpoint,
            ) from exc

        if status != 200:
            message = body.get("message") if isinstance(body, dict) else text[:200]
            raise DeviceDashTransportError(
                f"HTTP {status} from {endpoint}: {message}",
                status_code=status,
                endpoint=endpoint,
            )
        return body

    # ------------------------------------------------------------------
    # Producer API
    # ------------------------------------------------------------------

    async def get_devices(self) -> list[dict[str, Any]]:
        """Load the full device list and reset local state to it."""
        body = await self._request("GET", "/items")
        if not isinstance(body, list):
            raise DeviceDashTransportError("GET /items did not return a list", endpoint="/items")
        self._reconciler.reset(body)
        return self._reconciler.devices

    async def patch_device(self, device_id: int, fields: Mapping[str, Any]) -> str:
        """Send a form-encoded partial update; ``id`` itself goes in the path."""
        form = flatten_form({key: value for key, value in fields.items() if key != "id"})
        body = await self._request("PATCH", f"/items/{device_id}", form=form)
        return str(body.get("message", "")) if isinstance(body, dict) else ""

    async def start_simulator(
        self,
        *,
        items_minimum: int = 1,
        items_maximum: int = 3,
        update_chance: float = 100,
        update_interval: int = 5000,
    ) -> None:
        form = flatten_form(
            {
                "itemsMinimum": items_minimum,
                "itemsMaximum": items_maximum,
                "updateChance": update_chance,
                "updateInterval": update_interval,
            }
        )
        await self._request("POST", "/start", form=form)
        self._simulator_running = True
        _logger.info("Simulator started successfully")

    async def stop_simulator(self) -> None:
        await self._request("POST", "/stop")
        self._simulator_running = False
        _logger.info("Simulator stopped successfully")

    # ------------------------------------------------------------------
    # Push channel
    # ------------------------------------------------------------------

    def handle_message(self, message: str) -> list[dict[str, Any]]:
        """Merge one push frame and notify ``on_change`` with the changed devices."""
        _logger.debug("Received WebSocket message: %s", message)
        changed = self._reconciler.apply_message(message)
        if changed and self._on_change is not None:
            try:
                self._on_change(changed)
            except Exception:
                _logger.exception("on_change callback failed")
        return changed

    async def listen(self) -> None:
        """Consume the push channel until the server closes it."""
        http = self._require_session()
        url = self._config.websocket_url
        try:
            async with http.ws_connect(url) as ws:
                _logger.info("Connected to WebSocket [%s]", url)
                async for msg in ws:
                    if msg.type == aiohttp.WSMsgType.TEXT:
                        self.handle_message(msg.data)
                    elif msg.type == aiohttp.WSMsgType.ERROR:
                        _logger.error("WebSocket Error: %s", ws.exception())
                        break
        except aiohttp.ClientError as exc:
            raise DeviceDashTransportError(f"WebSocket connection to {url} failed: {exc}", endpoint=url) from exc
        _logger.info("WebSocket to [%s] disconnected", url)
