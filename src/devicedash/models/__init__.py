"""Data models for devices, simulator settings and request bodies."""

from devicedash.models._base import DashBaseModel, DashEnum, DashFormModel
from devicedash.models.device import (
    SUB_STATUS_FAMILIES,
    Device,
    DeviceStatus,
    DeviceSubStatus,
    Position,
    status_family,
)
from devicedash.models.requests import StartSimulatorRequest
from devicedash.models.simulator import SimulatorSettings, SimulatorState

__all__ = [
    "DashBaseModel",
    "DashEnum",
    "DashFormModel",
    "Device",
    "DeviceStatus",
    "DeviceSubStatus",
    "Position",
    "SUB_STATUS_FAMILIES",
    "SimulatorSettings",
    "SimulatorState",
    "StartSimulatorRequest",
    "status_family",
]
