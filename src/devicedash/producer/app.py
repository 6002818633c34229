"""aiohttp application for the REST producer.

Routes::

    GET   /items        full device list
    PATCH /items/{id}   partial update of one device
    POST  /start        start the status simulator
    POST  /stop         stop the status simulator
    GET   /simulator    simulator state and effective settings
"""

from __future__ import annotations

import logging
import random
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from aiohttp import web
from pydantic import ValidationError

from devicedash._constants import CORS_ALLOWED_HEADERS, CORS_ALLOWED_METHODS
from devicedash._mqtt import ChangePublisher, MqttChangePublisher
from devicedash.config import ProducerConfig
from devicedash.exceptions import DeviceNotFoundError, DeviceValidationError, SimulatorStateError
from devicedash.ingestion.normalize import unflatten_form
from devicedash.models.requests import StartSimulatorRequest
from devicedash.producer.gateway import MutationGateway
from devicedash.producer.simulator import StatusSimulator
from devicedash.state.store import DeviceStore

_logger = logging.getLogger(__name__)

STORE_KEY = web.AppKey("store", DeviceStore)
PUBLISHER_KEY = web.AppKey("publisher", ChangePublisher)
GATEWAY_KEY = web.AppKey("gateway", MutationGateway)
SIMULATOR_KEY = web.AppKey("simulator", StatusSimulator)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

routes = web.RouteTableDef()


def _message(text: str, status: int = 200) -> web.Response:
    return web.json_response({"message": text}, status=status)


async def _read_body(request: web.Request) -> dict[str, Any]:
    """Form bodies are unflattened (``position[x]``); JSON bodies pass through."""
    if request.content_type == "application/json":
        try:
            body = await request.json()
        except ValueError as exc:
            raise DeviceValidationError("Request body is not valid JSON") from exc
        if not isinstance(body, dict):
            raise DeviceValidationError("Request body must be a JSON object")
        return body
    form = await request.post()
    return unflatten_form(form.items())


@routes.get("/items")
async def list_items(request: web.Request) -> web.Response:
    _logger.info("GET request for /items")
    store = request.app[STORE_KEY]
    return web.json_response([device.to_api() for device in store.list()])


@routes.patch("/items/{id}")
async def patch_item(request: web.Request) -> web.Response:
    device_id = request.match_info["id"]
    _logger.info("PATCH request for /items/%s", device_id)
    body = await _read_body(request)
    await request.app[GATEWAY_KEY].patch_device(device_id, body)
    return _message("Device updated successfully")


@routes.post("/start")
async def start_simulator(request: web.Request) -> web.Response:
    _logger.info("POST request for /start")
    body = await _read_body(request)
    try:
        start_request = StartSimulatorRequest.model_validate(body)
    except ValidationError as exc:
        error = exc.errors()[0]
        field = ".".join(str(part) for part in error.get("loc", ()))
        raise DeviceValidationError(f"Invalid value for {field}: {error.get('msg')}", field=field) from exc
    request.app[SIMULATOR_KEY].start(start_request)
    return _message("Simulator started")


@routes.post("/stop")
async def stop_simulator(request: web.Request) -> web.Response:
    _logger.info("POST request for /stop")
    request.app[SIMULATOR_KEY].stop()
    return _message("Simulator stopped")


@routes.get("/simulator")
async def simulator_status(request: web.Request) -> web.Response:
    simulator = request.app[SIMULATOR_KEY]
    settings = simulator.settings
    return web.json_response(
        {
            "running": simulator.is_running,
            "settings": settings.to_api() if settings is not None else None,
        }
    )


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Map domain errors onto ``{"message": ...}`` JSON responses."""
    try:
        return await handler(request)
    except DeviceNotFoundError as exc:
        _logger.info("Device not found: %s", exc.device_id)
        return _message("Device not found", status=400)
    except DeviceValidationError as exc:
        _logger.info("Rejected %s %s: %s", request.method, request.path, exc)
        return _message(str(exc), status=400)
    except SimulatorStateError as exc:
        return _message(str(exc), status=exc.status_code)


def cors_middleware(origin: str) -> Callable[[web.Request, Handler], Awaitable[web.StreamResponse]]:
    """Allow exactly one browser *origin* for the configured methods."""
    allow_methods = ", ".join(CORS_ALLOWED_METHODS)
    allow_headers = ", ".join(CORS_ALLOWED_HEADERS)

    @web.middleware
    async def middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
        request_origin = request.headers.get("Origin")
        allowed = request_origin == origin

        if request.method == "OPTIONS" and "Access-Control-Request-Method" in request.headers:
            if not allowed:
                return web.Response(status=403)
            return web.Response(
                status=204,
                headers={
                    "Access-Control-Allow-Origin": origin,
                    "Access-Control-Allow-Methods": allow_methods,
                    "Access-Control-Allow-Headers": allow_headers,
                    "Vary": "Origin",
                },
            )

        try:
            response = await handler(request)
        except web.HTTPException as exc:
            if allowed:
                exc.headers["Access-Control-Allow-Origin"] = origin
                exc.headers["Vary"] = "Origin"
            raise
        if allowed:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
        return response

    return middleware


async def _publisher_ctx(app: web.Application) -> AsyncIterator[None]:
    publisher = app[PUBLISHER_KEY]
    publisher.start()
    try:
        yield
    finally:
        await app[SIMULATOR_KEY].aclose()
        publisher.stop()


def create_producer_app(
    config: ProducerConfig | None = None,
    *,
    store: DeviceStore | None = None,
    publisher: ChangePublisher | None = None,
    rng: random.Random | None = None,
) -> web.Application:
    """Build the producer application.

    ``store``, ``publisher`` and ``rng`` default to the snapshot-backed store,
    the MQTT publisher and an unseeded RNG; tests pass doubles instead.
    """
    config = config or ProducerConfig()
    if store is None:
        store = DeviceStore.load_snapshot(config.snapshot_path)
    if publisher is None:
        publisher = MqttChangePublisher(config.mqtt)

    app = web.Application(middlewares=[cors_middleware(config.cors_origin), error_middleware])
    app[STORE_KEY] = store
    app[PUBLISHER_KEY] = publisher
    app[GATEWAY_KEY] = MutationGateway(store, publisher)
    app[SIMULATOR_KEY] = StatusSimulator(store, publisher, rng=rng)
    app.add_routes(routes)
    app.cleanup_ctx.append(_publisher_ctx)
    return app
