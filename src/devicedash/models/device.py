"""Device record and status code models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from devicedash.models._base import DashBaseModel, DashEnum


class DeviceStatus(DashEnum):
    """Top-level status family of a device."""

    OKAY = 0
    ALERT = 1
    WARNING = 2
    DANGER = 3


class DeviceSubStatus(DashEnum):
    """Detailed condition code, grouped under one :class:`DeviceStatus` family."""

    NONE = 0
    DEVICE_LOW_BATTERY = 1
    HEAVY_MACHINERY_NEARBY = 2
    AIR_DUST = 3
    AIR_ORGANIC_COMPOUNDS = 4
    AIR_VENTILATION_FAILURE = 5
    TEMPERATURE_SPIKE = 6
    WATER_HAZARD = 7
    POISON_GAS = 8
    SEISMIC_ACTIVITY = 9
    WATER_FLOODING = 10
    FIRE_HAZARD = 11
    ELECTRICAL_FAULT = 12


SUB_STATUS_FAMILIES: dict[DeviceStatus, tuple[DeviceSubStatus, ...]] = {
    DeviceStatus.OKAY: (DeviceSubStatus.NONE,),
    DeviceStatus.ALERT: (
        DeviceSubStatus.DEVICE_LOW_BATTERY,
        DeviceSubStatus.HEAVY_MACHINERY_NEARBY,
    ),
    DeviceStatus.WARNING: (
        DeviceSubStatus.AIR_DUST,
        DeviceSubStatus.AIR_ORGANIC_COMPOUNDS,
        DeviceSubStatus.AIR_VENTILATION_FAILURE,
        DeviceSubStatus.TEMPERATURE_SPIKE,
        DeviceSubStatus.WATER_HAZARD,
    ),
    DeviceStatus.DANGER: (
        DeviceSubStatus.POISON_GAS,
        DeviceSubStatus.SEISMIC_ACTIVITY,
        DeviceSubStatus.WATER_FLOODING,
        DeviceSubStatus.FIRE_HAZARD,
        DeviceSubStatus.ELECTRICAL_FAULT,
    ),
}
"""Sub-status codes by family. Consistency is not enforced on patches."""


def status_family(sub_status: DeviceSubStatus) -> DeviceStatus:
    """Return the family a sub-status code belongs to."""
    for status, members in SUB_STATUS_FAMILIES.items():
        if sub_status in members:
            return status
    raise ValueError(f"sub-status {sub_status!r} has no family")


class Position(BaseModel):
    """Normalized map position; both axes in ``[0, 1]``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    x: float = Field(default=0.0, ge=0.0, le=1.0)
    y: float = Field(default=0.0, ge=0.0, le=1.0)


class Device(DashBaseModel):
    """A simulated sensor device.

    Parameters
    ----------
    id : int
        Unique, immutable identifier.
    name : str
        Display name (editable).
    zone : str
        Site zone the device is installed in (immutable).
    status : DeviceStatus
        Current status family.
    sub_status : DeviceSubStatus
        Detailed condition code (``subStatus`` on the wire).
    position : Position
        Normalized map coordinates.
    updated : str
        ISO-8601 timestamp of the last accepted mutation.

    Keys without a declared field are kept as opaque extras so that
    pass-through fields survive a patch/list round trip.
    """

    model_config = ConfigDict(extra="allow")

    id: int
    name: str = ""
    zone: str = ""
    status: DeviceStatus = DeviceStatus.OKAY
    sub_status: DeviceSubStatus = DeviceSubStatus.NONE
    position: Position = Field(default_factory=Position)
    updated: str = ""

    def to_api(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON shape served by ``GET /items``."""
        return self.model_dump(mode="json", by_alias=True)
