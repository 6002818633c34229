"""Broadcast relay: fan one payload out to every open push connection."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from aiohttp import WSCloseCode

from devicedash._constants import truncate_for_log

_logger = logging.getLogger(__name__)


class PushConnection(Protocol):
    """The part of :class:`aiohttp.web.WebSocketResponse` the relay relies on."""

    @property
    def closed(self) -> bool: ...

    async def send_str(self, data: str) -> None: ...

    async def close(self, *, code: int = ..., message: bytes = ...) -> bool: ...


class BroadcastRelay:
    """Registry of open push connections plus best-effort fan-out.

    Each send runs in its own task, so a slow or dead client never delays
    delivery to the others. Failed sends are logged and dropped.
    """

    def __init__(self) -> None:
        self._clients: set[PushConnection] = set()
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def register(self, connection: PushConnection) -> None:
        self._clients.add(connection)
        _logger.info("New WebSocket client connected (%d open)", len(self._clients))

    def unregister(self, connection: PushConnection) -> None:
        if connection in self._clients:
            self._clients.discard(connection)
            _logger.info("WebSocket client disconnected (%d open)", len(self._clients))

    def broadcast(self, payload: str) -> int:
        """Forward *payload* verbatim to every open connection.

        Must run on the event loop thread. Returns the number of sends
        scheduled; closed connections are skipped.
        """
        loop = asyncio.get_running_loop()
        scheduled = 0
        for connection in list(self._clients):
            if connection.closed:
                continue
            task = loop.create_task(self._send(connection, payload))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            scheduled += 1
        _logger.debug("Broadcast %s to %d client(s)", truncate_for_log(payload), scheduled)
        return scheduled

    async def _send(self, connection: PushConnection, payload: str) -> None:
        try:
            await connection.send_str(payload)
        except Exception as exc:
            _logger.warning("WebSocket send failed, message dropped: %s", exc)

    async def wait_idle(self) -> None:
        """Wait until every scheduled send has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        """Close every registered connection and drop pending sends."""
        for task in list(self._pending):
            task.cancel()
        await self.wait_idle()
        clients = list(self._clients)
        self._clients.clear()
        for connection in clients:
            if not connection.closed:
                await connection.close(code=WSCloseCode.GOING_AWAY, message=b"Server shutdown")
