"""devicedash - IoT device-status dashboard: REST producer, MQTT change bus, WebSocket relay."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("devicedash")
except PackageNotFoundError:
    __version__ = "0+local"
from devicedash.client import DashboardClient, DeviceReconciler
from devicedash.config import ConsumerConfig, DashboardConfig, MqttSettings, ProducerConfig
from devicedash.consumer import BroadcastRelay, create_consumer_app
from devicedash.exceptions import (
    DeviceDashConfigError,
    DeviceDashError,
    DeviceDashTransportError,
    DeviceNotFoundError,
    DeviceValidationError,
    SimulatorStateError,
)
from devicedash.models import (
    Device,
    DeviceStatus,
    DeviceSubStatus,
    Position,
    SimulatorSettings,
    SimulatorState,
    StartSimulatorRequest,
)
from devicedash.producer import MutationGateway, StatusSimulator, create_producer_app
from devicedash.state.events import DeviceChange
from devicedash.state.store import DeviceStore

__all__ = [
    "__version__",
    "BroadcastRelay",
    "ConsumerConfig",
    "DashboardClient",
    "DashboardConfig",
    "Device",
    "DeviceChange",
    "DeviceDashConfigError",
    "DeviceDashError",
    "DeviceDashTransportError",
    "DeviceNotFoundError",
    "DeviceReconciler",
    "DeviceStatus",
    "DeviceStore",
    "DeviceSubStatus",
    "DeviceValidationError",
    "MqttSettings",
    "MutationGateway",
    "Position",
    "ProducerConfig",
    "SimulatorSettings",
    "SimulatorState",
    "SimulatorStateError",
    "StartSimulatorRequest",
    "StatusSimulator",
    "create_consumer_app",
    "create_producer_app",
]
