"""Client-side merge of pushed change events into a local device list."""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from devicedash._constants import truncate_for_log
from devicedash.state.events import decode_changes, index_changes

_logger = logging.getLogger(__name__)


class DeviceReconciler:
    """Eventually-consistent copy of the producer's device list.

    Deltas are shallow-merged onto known devices by id: delta keys win,
    unmentioned keys are kept. Deltas for ids not present locally are
    dropped; there is no insert path.
    """

    def __init__(self, devices: Iterable[Mapping[str, Any]] = ()) -> None:
        self._devices: list[dict[str, Any]] = []
        self.reset(devices)

    def reset(self, devices: Iterable[Mapping[str, Any]]) -> None:
        """Replace local state, e.g. with a fresh ``GET /items`` result."""
        self._devices = [copy.deepcopy(dict(device)) for device in devices]

    @property
    def devices(self) -> list[dict[str, Any]]:
        return copy.deepcopy(self._devices)

    def get(self, device_id: int) -> dict[str, Any] | None:
        for device in self._devices:
            if device.get("id") == device_id:
                return copy.deepcopy(device)
        return None

    def apply(self, changes: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
        """Merge *changes* and return copies of the devices that changed."""
        lookup = index_changes([dict(change) for change in changes])
        merged: list[dict[str, Any]] = []
        updated_devices: list[dict[str, Any]] = []
        for device in self._devices:
            delta = lookup.get(device.get("id"))
            if delta is None:
                merged.append(device)
                continue
            new_device = {**device, **copy.deepcopy(delta)}
            merged.append(new_device)
            updated_devices.append(copy.deepcopy(new_device))
        self._devices = merged

        unknown = set(lookup) - {device.get("id") for device in self._devices}
        if unknown:
            _logger.debug("Ignoring changes for unknown device ids %s", sorted(unknown))
        return updated_devices

    def apply_message(self, message: str | bytes) -> list[dict[str, Any]]:
        """Parse one push-channel frame and merge it.

        A malformed frame is logged and ignored; state already applied is
        kept.
        """
        try:
            changes = decode_changes(message)
        except ValueError as exc:
            preview = message if isinstance(message, str) else repr(message)
            _logger.error("Error parsing WebSocket message %s: %s", truncate_for_log(preview, 120), exc)
            return []
        return self.apply(changes)
