"""Mutation gateway: validate a partial device update, apply it, publish it."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from devicedash._mqtt import ChangePublisher
from devicedash.ingestion.normalize import coerce_fields, parse_device_id
from devicedash.state.events import DeviceChange, utc_timestamp
from devicedash.state.store import DeviceStore

_logger = logging.getLogger(__name__)


class MutationGateway:
    """Applies manual patches to the store and emits one change event each."""

    def __init__(
        self,
        store: DeviceStore,
        publisher: ChangePublisher,
        *,
        clock: Callable[[], str] = utc_timestamp,
    ) -> None:
        self._store = store
        self._publisher = publisher
        self._clock = clock

    async def patch_device(self, device_id: Any, raw_fields: Mapping[str, Any]) -> DeviceChange:
        """Coerce *raw_fields*, merge them into one device and publish the delta.

        The published event holds ``id``, a fresh ``updated`` timestamp and
        only the supplied fields.

        Raises
        ------
        DeviceValidationError
            ``device_id`` or a field value could not be parsed.
        DeviceNotFoundError
            No device has this id. Nothing is published.
        """
        parsed_id = parse_device_id(device_id)
        fields = coerce_fields(raw_fields)

        async with self._store.write_lock:
            _device, applied = self._store.apply_partial(parsed_id, fields, updated=self._clock())
            change = DeviceChange(id=parsed_id, **applied)
            self._publisher.publish([change])

        _logger.info("Device %d updated fields=%s", parsed_id, sorted(fields))
        return change
