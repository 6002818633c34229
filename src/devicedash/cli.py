"""``devicedash`` command line entry point.

Subcommands::

    devicedash producer            run the REST producer
    devicedash consumer            run the WebSocket relay
    devicedash watch               follow device changes from the push channel
    devicedash start [options]     start the simulator
    devicedash stop                stop the simulator
    devicedash patch ID KEY=VALUE  patch one device
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from aiohttp import web

from devicedash.client.dashboard import DashboardClient
from devicedash.config import ConsumerConfig, DashboardConfig, ProducerConfig
from devicedash.consumer.app import create_consumer_app
from devicedash.exceptions import DeviceDashError
from devicedash.ingestion.normalize import unflatten_form
from devicedash.models.device import DeviceStatus, DeviceSubStatus, status_family
from devicedash.producer.app import create_producer_app

_LOG = logging.getLogger("devicedash")

LOG_FORMAT = "[%(name)s] %(asctime)s %(levelname)s %(message)s"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)
    if not verbose:
        # aiohttp.access duplicates the per-request INFO lines.
        logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


def _describe(device: dict[str, Any]) -> str:
    status: DeviceStatus | None = None
    sub_status: DeviceSubStatus | None = None
    with contextlib.suppress(ValueError):
        status = DeviceStatus(device.get("status"))
    with contextlib.suppress(ValueError):
        sub_status = DeviceSubStatus(device.get("subStatus"))
    status_text = status.label if status is not None else str(device.get("status"))
    sub_status_text = sub_status.label if sub_status is not None else str(device.get("subStatus"))
    text = f"#{device.get('id')} {device.get('name', '')} [{device.get('zone', '')}] {status_text} / {sub_status_text}"
    # Patches may pair a sub-status with a status from another family.
    if status is not None and sub_status is not None and status_family(sub_status) is not status:
        text += " (mismatched family)"
    return text


def _parse_assignments(pairs: Sequence[str]) -> dict[str, Any]:
    items: list[tuple[str, str]] = []
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise SystemExit(f"expected KEY=VALUE, got {pair!r}")
        items.append((key, value))
    return unflatten_form(items)


def _run_producer(args: argparse.Namespace) -> int:
    overrides: dict[str, Any] = {}
    if args.port is not None:
        overrides["port"] = args.port
    if args.snapshot is not None:
        overrides["snapshot_path"] = args.snapshot
    config = ProducerConfig.from_env(**overrides)
    _LOG.info("Producer running on port %d", config.port)
    web.run_app(create_producer_app(config), host=config.host, port=config.port, print=None)
    return 0


def _run_consumer(args: argparse.Namespace) -> int:
    overrides: dict[str, Any] = {}
    if args.port is not None:
        overrides["port"] = args.port
    config = ConsumerConfig.from_env(**overrides)
    _LOG.info("WebSocket relay running on port %d", config.port)
    web.run_app(create_consumer_app(config), host=config.host, port=config.port, print=None)
    return 0


async def _watch(config: DashboardConfig) -> None:
    def on_change(devices: list[dict[str, Any]]) -> None:
        for device in devices:
            _LOG.info("%s (updated %s)", _describe(device), device.get("updated"))

    async with DashboardClient(config, on_change=on_change) as client:
        devices = await client.get_devices()
        _LOG.info("Loaded %d devices", len(devices))
        for device in devices:
            _LOG.info("%s", _describe(device))
        await client.listen()


async def _start(config: DashboardConfig, args: argparse.Namespace) -> None:
    async with DashboardClient(config) as client:
        await client.start_simulator(
            items_minimum=args.items_minimum,
            items_maximum=args.items_maximum,
            update_chance=args.update_chance,
            update_interval=args.update_interval,
        )


async def _stop(config: DashboardConfig) -> None:
    async with DashboardClient(config) as client:
        await client.stop_simulator()


async def _patch(config: DashboardConfig, device_id: int, fields: dict[str, Any]) -> None:
    async with DashboardClient(config) as client:
        message = await client.patch_device(device_id, fields)
        _LOG.info("%s", message)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="devicedash", description="IoT device-status dashboard services.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable DEBUG logging.")
    parser.add_argument("--api-url", default=None, help="Producer base URL for client commands.")
    parser.add_argument("--ws-url", default=None, help="Consumer WebSocket URL for 'watch'.")
    sub = parser.add_subparsers(dest="command", required=True)

    producer = sub.add_parser("producer", help="Run the REST producer.")
    producer.add_argument("--port", type=int, default=None)
    producer.add_argument("--snapshot", type=Path, default=None, help="Device snapshot JSON file.")

    consumer = sub.add_parser("consumer", help="Run the WebSocket relay.")
    consumer.add_argument("--port", type=int, default=None)

    sub.add_parser("watch", help="Follow device changes from the push channel.")

    start = sub.add_parser("start", help="Start the status simulator.")
    start.add_argument("--items-minimum", type=int, default=1)
    start.add_argument("--items-maximum", type=int, default=3)
    start.add_argument("--update-chance", type=float, default=100)
    start.add_argument("--update-interval", type=int, default=5000, help="Tick interval in milliseconds.")

    sub.add_parser("stop", help="Stop the status simulator.")

    patch = sub.add_parser("patch", help="Patch one device, e.g. 'patch 1 status=3 subStatus=11'.")
    patch.add_argument("device_id", type=int)
    patch.add_argument("fields", nargs="+", metavar="KEY=VALUE")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    if args.command == "producer":
        return _run_producer(args)
    if args.command == "consumer":
        return _run_consumer(args)

    overrides: dict[str, Any] = {}
    if args.api_url:
        overrides["api_url"] = args.api_url.rstrip("/")
    if args.ws_url:
        overrides["websocket_url"] = args.ws_url
    config = DashboardConfig.from_env(**overrides)

    try:
        if args.command == "watch":
            asyncio.run(_watch(config))
        elif args.command == "start":
            asyncio.run(_start(config, args))
        elif args.command == "stop":
            asyncio.run(_stop(config))
        elif args.command == "patch":
            asyncio.run(_patch(config, args.device_id, _parse_assignments(args.fields)))
    except DeviceDashError as exc:
        _LOG.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
