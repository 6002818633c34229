from __future__ import annotations

import asyncio
import random
from collections.abc import Sequence
from typing import Any, TypeVar

import pytest

from devicedash.exceptions import SimulatorStateError
from devicedash.models.device import SUB_STATUS_FAMILIES, Device, DeviceStatus, DeviceSubStatus
from devicedash.models.requests import StartSimulatorRequest
from devicedash.models.simulator import SimulatorSettings, SimulatorState
from devicedash.producer.simulator import StatusSimulator
from devicedash.state.events import DeviceChange
from devicedash.state.store import DeviceStore

T = TypeVar("T")

# Long enough that the background task never ticks during a test.
_MANUAL = 600_000


class _RecordingPublisher:
    def __init__(self) -> None:
        self.batches: list[list[dict[str, Any]]] = []

    def start(self) -> None:
        pass

    def stop(self) -> None:
        pass

    def publish(self, changes: Sequence[DeviceChange]) -> None:
        self.batches.append([change.to_api() for change in changes])


class _FirstChoiceRandom(random.Random):
    def choice(self, seq: Sequence[T]) -> T:
        return seq[0]


def _store(count: int) -> DeviceStore:
    return DeviceStore(Device(id=i, name=f"D{i}", zone="Z") for i in range(1, count + 1))


def _request(**kwargs: Any) -> StartSimulatorRequest:
    kwargs.setdefault("update_interval", _MANUAL)
    return StartSimulatorRequest(**kwargs)


def test_settings_clamp_bounds_into_device_count() -> None:
    settings = SimulatorSettings.resolve(StartSimulatorRequest(items_minimum=0, items_maximum=10), 5)

    assert (settings.items_minimum, settings.items_maximum) == (1, 5)


def test_settings_defaults() -> None:
    settings = SimulatorSettings.resolve(StartSimulatorRequest(), 7)

    assert settings.items_minimum == 1
    assert settings.items_maximum == 7
    assert settings.update_chance == 100
    assert settings.update_interval_ms == 5000


def test_settings_keep_explicit_zero_chance_and_fix_crossed_bounds() -> None:
    settings = SimulatorSettings.resolve(StartSimulatorRequest(items_minimum=4, items_maximum=2, update_chance=0), 5)

    assert settings.update_chance == 0
    assert (settings.items_minimum, settings.items_maximum) == (4, 4)


def test_settings_round_fractional_bounds_inwards() -> None:
    settings = SimulatorSettings.resolve(StartSimulatorRequest(items_minimum=1.2, items_maximum=3.8), 10)

    assert (settings.items_minimum, settings.items_maximum) == (2, 3)


@pytest.mark.asyncio
async def test_start_clamps_and_enters_running_state() -> None:
    simulator = StatusSimulator(_store(5), _RecordingPublisher())

    settings = simulator.start(_request(items_minimum=0, items_maximum=10))
    try:
        assert simulator.state is SimulatorState.RUNNING
        assert simulator.settings == settings
        assert (settings.items_minimum, settings.items_maximum) == (1, 5)
    finally:
        await simulator.aclose()
    assert simulator.state is SimulatorState.STOPPED
    assert simulator.settings is None


@pytest.mark.asyncio
async def test_start_while_running_fails_without_resetting_timer() -> None:
    simulator = StatusSimulator(_store(3), _RecordingPublisher())
    simulator.start(_request(update_chance=50))
    task = simulator._task  # noqa: SLF001
    settings = simulator.settings

    with pytest.raises(SimulatorStateError) as exc_info:
        simulator.start(_request(update_chance=10))

    assert exc_info.value.status_code == 400
    assert simulator._task is task  # noqa: SLF001
    assert simulator.settings == settings
    await simulator.aclose()


@pytest.mark.asyncio
async def test_start_with_empty_store_is_a_server_error() -> None:
    simulator = StatusSimulator(_store(0), _RecordingPublisher())

    with pytest.raises(SimulatorStateError) as exc_info:
        simulator.start()

    assert exc_info.value.status_code == 500
    assert simulator.state is SimulatorState.STOPPED


def test_stop_while_stopped_fails() -> None:
    simulator = StatusSimulator(_store(2), _RecordingPublisher())

    with pytest.raises(SimulatorStateError) as exc_info:
        simulator.stop()

    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_zero_chance_never_emits() -> None:
    publisher = _RecordingPublisher()
    simulator = StatusSimulator(_store(4), publisher, rng=random.Random(3))
    simulator.start(_request(update_chance=0))

    for _ in range(50):
        assert await simulator.tick() == []

    assert publisher.batches == []
    await simulator.aclose()


@pytest.mark.asyncio
async def test_full_chance_always_emits_one_batch_per_tick() -> None:
    publisher = _RecordingPublisher()
    simulator = StatusSimulator(_store(4), publisher, rng=random.Random(11))
    simulator.start(_request(update_chance=100, items_minimum=2, items_maximum=3))

    for _ in range(25):
        changes = await simulator.tick()
        assert 2 <= len(changes) <= 3

    assert len(publisher.batches) == 25
    await simulator.aclose()


@pytest.mark.asyncio
async def test_tick_changes_respect_families_and_reach_the_store() -> None:
    store = _store(6)
    publisher = _RecordingPublisher()
    simulator = StatusSimulator(store, publisher, rng=random.Random(1234), clock=lambda: "2026-05-05T05:05:05.005Z")
    simulator.start(_request())

    changes = await simulator.tick()

    assert changes
    assert publisher.batches == [[change.to_api() for change in changes]]
    latest: dict[int, DeviceChange] = {}
    for change in changes:
        status = DeviceStatus(change.fields["status"])
        assert DeviceSubStatus(change.fields["subStatus"]) in SUB_STATUS_FAMILIES[status]
        assert set(change.to_api()) == {"id", "updated", "status", "subStatus"}
        latest[change.id] = change
    for device_id, change in latest.items():
        device = store.find_by_id(device_id)
        assert device.status == change.fields["status"]
        assert device.sub_status == change.fields["subStatus"]
        assert device.updated == "2026-05-05T05:05:05.005Z"
    await simulator.aclose()


@pytest.mark.asyncio
async def test_same_device_may_appear_more_than_once_per_batch() -> None:
    publisher = _RecordingPublisher()
    simulator = StatusSimulator(_store(3), publisher, rng=_FirstChoiceRandom())
    simulator.start(_request(items_minimum=3, items_maximum=3))

    changes = await simulator.tick()

    assert [change.id for change in changes] == [1, 1, 1]
    assert all(change.fields == {"status": 0, "subStatus": 0} for change in changes)
    await simulator.aclose()


@pytest.mark.asyncio
async def test_background_task_ticks_until_stopped() -> None:
    publisher = _RecordingPublisher()
    simulator = StatusSimulator(_store(2), publisher, rng=random.Random(5))
    simulator.start(StartSimulatorRequest(update_interval=10))

    for _ in range(100):
        if publisher.batches:
            break
        await asyncio.sleep(0.01)
    assert publisher.batches

    simulator.stop()
    published = len(publisher.batches)
    await asyncio.sleep(0.05)

    assert len(publisher.batches) == published
    assert await simulator.tick() == []


@pytest.mark.asyncio
async def test_stale_generation_tick_is_discarded() -> None:
    publisher = _RecordingPublisher()
    simulator = StatusSimulator(_store(2), publisher)
    simulator.start(_request())
    stale = simulator._generation - 1  # noqa: SLF001

    assert await simulator.tick(generation=stale) == []
    assert publisher.batches == []
    await simulator.aclose()
