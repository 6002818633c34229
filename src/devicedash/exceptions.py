"""Custom exception hierarchy for devicedash."""

from __future__ import annotations


class DeviceDashError(Exception):
    """Base exception for all devicedash errors."""


class DeviceDashConfigError(DeviceDashError):
    """Invalid or missing configuration."""


class DeviceValidationError(DeviceDashError):
    """A request field could not be parsed or violates the device model."""

    def __init__(self, message: str, *, field: str = "") -> None:
        self.field = field
        super().__init__(message)


class DeviceNotFoundError(DeviceDashError):
    """No device record matches the requested id."""

    def __init__(self, device_id: int) -> None:
        self.device_id = device_id
        super().__init__(f"Device {device_id} not found")


class SimulatorStateError(DeviceDashError):
    """Simulator start/stop precondition failed.

    ``status_code`` carries the HTTP status the REST layer answers with:
    ``400`` for a start while running or a stop while stopped, ``500`` when
    the device list is empty.
    """

    def __init__(self, message: str, *, status_code: int = 400) -> None:
        self.status_code = status_code
        super().__init__(message)


class DeviceDashTransportError(DeviceDashError):
    """HTTP-level failure talking to the producer (network, non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)
