"""In-memory device store.

This is the only component allowed to mutate the authoritative device list.
Writers hold :attr:`DeviceStore.write_lock` around "mutate + publish" so a
request and a simulator tick never interleave.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterable, Mapping
from importlib.resources import files
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from devicedash.exceptions import DeviceNotFoundError, DeviceValidationError
from devicedash.models.device import Device
from devicedash.state.events import utc_timestamp

_logger = logging.getLogger(__name__)


def default_snapshot_path() -> Traversable:
    """The device snapshot shipped inside the package."""
    return files("devicedash") / "data" / "devices.json"


class DeviceStore:
    """Ordered, id-indexed list of :class:`Device` records.

    Records keep the order they were loaded in; lookups go through a dict
    keyed by id.
    """

    def __init__(self, devices: Iterable[Device] = ()) -> None:
        self._devices: dict[int, Device] = {}
        for device in devices:
            if device.id in self._devices:
                raise ValueError(f"duplicate device id {device.id}")
            self._devices[device.id] = device
        self.write_lock = asyncio.Lock()

    @classmethod
    def load_snapshot(cls, path: Path | Traversable | None = None) -> DeviceStore:
        """Build a store from a JSON snapshot file.

        A missing or unparseable file yields an empty store. Records that do
        not validate, or repeat an earlier id, are skipped.
        """
        source = path if path is not None else default_snapshot_path()
        try:
            raw = json.loads(source.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            _logger.warning("Device snapshot %s unavailable, starting empty: %s", source, exc)
            return cls()

        if not isinstance(raw, list):
            _logger.warning("Device snapshot %s is not a JSON array, starting empty", source)
            return cls()

        devices: dict[int, Device] = {}
        for index, entry in enumerate(raw):
            try:
                device = Device.model_validate(entry)
            except ValidationError as exc:
                _logger.warning("Skipping snapshot record %d: %s", index, exc.errors()[0].get("msg", exc))
                continue
            if device.id in devices:
                _logger.warning("Skipping snapshot record %d: duplicate id %d", index, device.id)
                continue
            devices[device.id] = device

        _logger.info("Loaded %d devices from %s", len(devices), source)
        return cls(devices.values())

    def __len__(self) -> int:
        return len(self._devices)

    def __contains__(self, device_id: object) -> bool:
        return device_id in self._devices

    def list(self) -> list[Device]:
        return list(self._devices.values())

    def find_by_id(self, device_id: int) -> Device:
        device = self._devices.get(device_id)
        if device is None:
            raise DeviceNotFoundError(device_id)
        return device

    def apply_partial(
        self,
        device_id: int,
        fields: Mapping[str, Any],
        *,
        updated: str | None = None,
    ) -> tuple[Device, dict[str, Any]]:
        """Shallow-merge *fields* (wire names) into one record.

        ``position`` is replaced as a whole object. ``updated`` is always
        restamped. Returns the new record and the applied fields in their
        serialized form, including ``updated``, ready for a change event.

        Raises :class:`DeviceNotFoundError` or :class:`DeviceValidationError`;
        in both cases the store is left unmodified.
        """
        current = self.find_by_id(device_id)
        patch = dict(fields)
        patch["updated"] = updated or utc_timestamp()

        merged = current.to_api()
        merged.update(patch)
        try:
            device = Device.model_validate(merged)
        except ValidationError as exc:
            error = exc.errors()[0]
            field = ".".join(str(part) for part in error.get("loc", ()))
            raise DeviceValidationError(f"Invalid value for {field}: {error.get('msg')}", field=field) from exc

        self._devices[device_id] = device
        serialized = device.to_api()
        return device, {key: serialized[key] for key in patch}
