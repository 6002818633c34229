"""Randomized status simulator.

A two-state machine (Stopped -> Running -> Stopped). While running, a
background task ticks every ``update_interval_ms``; each tick may pick a
random subset of devices (with replacement) and give each a random
status/sub-status pair. Picks are applied to the store and published as
one batch.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
from collections.abc import Callable

from devicedash._mqtt import ChangePublisher
from devicedash.exceptions import SimulatorStateError
from devicedash.models.device import SUB_STATUS_FAMILIES, DeviceStatus, DeviceSubStatus
from devicedash.models.requests import StartSimulatorRequest
from devicedash.models.simulator import SimulatorSettings, SimulatorState
from devicedash.state.events import DeviceChange, utc_timestamp
from devicedash.state.store import DeviceStore

_logger = logging.getLogger(__name__)


def random_status(rng: random.Random) -> tuple[DeviceStatus, DeviceSubStatus]:
    """Uniform family, then a uniform sub-status from that family."""
    status = rng.choice(list(DeviceStatus))
    return status, rng.choice(SUB_STATUS_FAMILIES[status])


class StatusSimulator:
    """Owns the simulator state, its settings and its tick task."""

    def __init__(
        self,
        store: DeviceStore,
        publisher: ChangePublisher,
        *,
        rng: random.Random | None = None,
        clock: Callable[[], str] = utc_timestamp,
    ) -> None:
        self._store = store
        self._publisher = publisher
        self._rng = rng or random.Random()
        self._clock = clock
        self._state = SimulatorState.STOPPED
        self._settings: SimulatorSettings | None = None
        self._task: asyncio.Task[None] | None = None
        # Bumped on every start/stop so a tick from an earlier run can tell
        # it has been superseded.
        self._generation = 0

    @property
    def state(self) -> SimulatorState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SimulatorState.RUNNING

    @property
    def settings(self) -> SimulatorSettings | None:
        """Effective settings while running, ``None`` while stopped."""
        return self._settings

    def start(self, request: StartSimulatorRequest | None = None) -> SimulatorSettings:
        """Transition Stopped -> Running and schedule the periodic tick.

        Must be called from a running event loop.

        Raises
        ------
        SimulatorStateError
            Already running (``status_code=400``) or the device list is
            empty (``status_code=500``). State is left unchanged.
        """
        if self.is_running:
            _logger.info("The simulator is already running")
            raise SimulatorStateError("The simulator is already running", status_code=400)

        device_count = len(self._store)
        if device_count == 0:
            _logger.warning("Unable to start simulator: device list is empty")
            raise SimulatorStateError("Unable to start simulator: device list is empty", status_code=500)

        settings = SimulatorSettings.resolve(request or StartSimulatorRequest(), device_count)
        _logger.info(
            "Starting simulator: items [%d-%d] chance [%s%%] interval [%dms]",
            settings.items_minimum,
            settings.items_maximum,
            settings.update_chance,
            settings.update_interval_ms,
        )

        self._generation += 1
        self._settings = settings
        self._state = SimulatorState.RUNNING
        self._task = asyncio.get_running_loop().create_task(
            self._run(self._generation, settings.update_interval_ms / 1000.0),
            name="devicedash-simulator",
        )
        return settings

    def stop(self) -> None:
        """Transition Running -> Stopped; no tick fires after this returns.

        Raises
        ------
        SimulatorStateError
            The simulator is not running (``status_code=400``).
        """
        if not self.is_running:
            _logger.info("The simulator is not currently running")
            raise SimulatorStateError("The simulator is not currently running", status_code=400)

        self._generation += 1
        self._state = SimulatorState.STOPPED
        self._settings = None
        task = self._task
        self._task = None
        if task is not None:
            task.cancel()
        _logger.info("Simulator stopped")

    async def aclose(self) -> None:
        """Stop if running and wait for the tick task to unwind."""
        task = self._task
        if self.is_running:
            self.stop()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _run(self, generation: int, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.tick(generation=generation)
            except Exception:
                _logger.exception("Simulator tick failed")

    async def tick(self, *, generation: int | None = None) -> list[DeviceChange]:
        """Run one simulation step and return the published changes.

        Returns an empty list, and publishes nothing, when the update chance
        roll fails, the simulator is stopped or *generation* is stale.
        """
        settings = self._settings
        if settings is None:
            return []

        if self._rng.random() * 100 >= settings.update_chance:
            _logger.info("Periodic data update: no updates")
            return []

        items_count = self._rng.randint(settings.items_minimum, settings.items_maximum)
        _logger.info("Periodic data update: triggering update of [%d] devices", items_count)

        async with self._store.write_lock:
            if not self.is_running or (generation is not None and generation != self._generation):
                return []
            devices = self._store.list()
            if not devices:
                return []

            changes: list[DeviceChange] = []
            for _ in range(items_count):
                device = self._rng.choice(devices)
                status, sub_status = random_status(self._rng)
                _device, applied = self._store.apply_partial(
                    device.id,
                    {"status": int(status), "subStatus": int(sub_status)},
                    updated=self._clock(),
                )
                changes.append(DeviceChange(id=device.id, **applied))

            if changes:
                self._publisher.publish(changes)
        return changes
