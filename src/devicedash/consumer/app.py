"""aiohttp application for the WebSocket consumer.

A single upgrade endpoint at ``/``. The server only pushes change-event
arrays; frames sent by clients are ignored.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from aiohttp import WSMsgType, web

from devicedash._mqtt import ChangeSubscriber, MqttChangeSubscriber
from devicedash.config import ConsumerConfig
from devicedash.consumer.relay import BroadcastRelay

_logger = logging.getLogger(__name__)

RELAY_KEY = web.AppKey("relay", BroadcastRelay)
SUBSCRIBER_KEY = web.AppKey("subscriber", ChangeSubscriber)


async def websocket_handler(request: web.Request) -> web.WebSocketResponse:
    relay = request.app[RELAY_KEY]
    ws = web.WebSocketResponse()
    await ws.prepare(request)
    relay.register(ws)
    try:
        async for msg in ws:
            if msg.type == WSMsgType.ERROR:
                _logger.warning("WebSocket connection closed with exception %s", ws.exception())
    finally:
        relay.unregister(ws)
    return ws


async def _subscriber_ctx(app: web.Application) -> AsyncIterator[None]:
    relay = app[RELAY_KEY]
    subscriber = app[SUBSCRIBER_KEY]
    subscriber.start(relay.broadcast)
    try:
        yield
    finally:
        subscriber.stop()
        await relay.close()


def create_consumer_app(
    config: ConsumerConfig | None = None,
    *,
    relay: BroadcastRelay | None = None,
    subscriber: ChangeSubscriber | None = None,
) -> web.Application:
    """Build the consumer application; the bus subscription starts with the app."""
    config = config or ConsumerConfig()
    app = web.Application()
    app[RELAY_KEY] = relay or BroadcastRelay()
    app[SUBSCRIBER_KEY] = subscriber or MqttChangeSubscriber(config.mqtt)
    app.router.add_get("/", websocket_handler)
    app.cleanup_ctx.append(_subscriber_ctx)
    return app
