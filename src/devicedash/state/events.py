"""Change events.

Every accepted mutation, manual or simulated, is described by a
:class:`DeviceChange` delta. A batch of deltas is what travels over the
change bus and the push channel as one JSON array.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def utc_timestamp(now: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    value = now or datetime.now(UTC)
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class DeviceChange(BaseModel):
    """One device delta: ``{id, updated, <changed fields>}``.

    Changed fields are carried as extras using their wire names
    (``status``, ``subStatus``, ``position``, ...). A change never holds a
    full record unless every field was supplied.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    id: int
    updated: str = Field(default_factory=utc_timestamp)

    @property
    def fields(self) -> dict[str, Any]:
        """The changed fields, without ``id`` and ``updated``."""
        return dict(self.model_extra or {})

    def to_api(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


def encode_changes(changes: Iterable[DeviceChange]) -> str:
    """Serialize a batch to the compact JSON text published on the bus."""
    return json.dumps([change.to_api() for change in changes], separators=(",", ":"))


def decode_changes(payload: str | bytes) -> list[dict[str, Any]]:
    """Parse a change batch into plain dicts.

    Raises :class:`ValueError` when the payload is not a JSON array of
    objects carrying an integer ``id``.
    """
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8")
    parsed = json.loads(payload)
    if not isinstance(parsed, list):
        raise ValueError("change payload is not a JSON array")
    changes: list[dict[str, Any]] = []
    for entry in parsed:
        if not isinstance(entry, dict):
            raise ValueError("change entry is not a JSON object")
        device_id = entry.get("id")
        if isinstance(device_id, bool) or not isinstance(device_id, int):
            raise ValueError(f"change entry has no integer id: {entry!r}")
        changes.append(entry)
    return changes


def index_changes(changes: Sequence[dict[str, Any]]) -> dict[int, dict[str, Any]]:
    """Map device id to its delta; a later delta for the same id wins."""
    return {change["id"]: change for change in changes}
