"""Service and client configuration for devicedash."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from devicedash._constants import (
    DEFAULT_CONSUMER_PORT,
    DEFAULT_FRONTEND_ORIGIN,
    DEFAULT_MQTT_HOST,
    DEFAULT_MQTT_PORT,
    DEFAULT_MQTT_TOPIC,
    DEFAULT_PRODUCER_PORT,
)
from devicedash.exceptions import DeviceDashConfigError


def _env_int(env: Mapping[str, str], key: str) -> int | None:
    value = env.get(key)
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError as exc:
        raise DeviceDashConfigError(f"{key} must be an integer, got {value!r}") from exc


def _env_float(env: Mapping[str, str], key: str) -> float | None:
    value = env.get(key)
    if value is None:
        return None
    try:
        return float(value.strip())
    except ValueError as exc:
        raise DeviceDashConfigError(f"{key} must be a number, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class MqttSettings:
    """Change bus connection settings.

    Parameters
    ----------
    host : str
        MQTT broker host name.
    port : int
        MQTT broker port (plain TCP).
    topic : str
        The single topic carrying change-event arrays.
    keepalive : int
        MQTT keepalive in seconds.
    client_id_prefix : str
        Prefix for the randomly suffixed MQTT client id.
    """

    host: str = DEFAULT_MQTT_HOST
    port: int = DEFAULT_MQTT_PORT
    topic: str = DEFAULT_MQTT_TOPIC
    keepalive: int = 60
    client_id_prefix: str = "devicedash"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None, **overrides: Any) -> MqttSettings:
        """Read ``DEVICEDASH_MQTT_*`` variables; keyword overrides win."""
        env = os.environ if env is None else env
        kwargs: dict[str, Any] = {}
        for env_key, field_name in (
            ("DEVICEDASH_MQTT_HOST", "host"),
            ("DEVICEDASH_MQTT_TOPIC", "topic"),
            ("DEVICEDASH_MQTT_CLIENT_ID_PREFIX", "client_id_prefix"),
        ):
            val = env.get(env_key)
            if val is not None:
                kwargs[field_name] = val

        port = _env_int(env, "DEVICEDASH_MQTT_PORT")
        if port is not None:
            kwargs["port"] = port
        keepalive = _env_int(env, "DEVICEDASH_MQTT_KEEPALIVE")
        if keepalive is not None:
            kwargs["keepalive"] = keepalive

        kwargs.update(overrides)
        return cls(**kwargs)


def _split_mqtt_overrides(overrides: dict[str, Any], env: Mapping[str, str]) -> MqttSettings:
    mqtt = overrides.pop("mqtt", None)
    if isinstance(mqtt, MqttSettings):
        return mqtt
    if isinstance(mqtt, dict):
        return MqttSettings.from_env(env, **mqtt)
    return MqttSettings.from_env(env)


@dataclasses.dataclass(frozen=True)
class ProducerConfig:
    """REST producer configuration.

    Parameters
    ----------
    host : str
        Interface the HTTP server binds to.
    port : int
        HTTP port.
    cors_origin : str
        The single browser origin allowed by CORS.
    snapshot_path : Path or None
        Device snapshot file. ``None`` uses the snapshot shipped with the
        package.
    mqtt : MqttSettings
        Change bus settings.
    """

    host: str = "0.0.0.0"
    port: int = DEFAULT_PRODUCER_PORT
    cors_origin: str = DEFAULT_FRONTEND_ORIGIN
    snapshot_path: Path | None = None
    mqtt: MqttSettings = dataclasses.field(default_factory=MqttSettings)

    @classmethod
    def from_env(cls, **overrides: Any) -> ProducerConfig:
        """Create configuration from ``DEVICEDASH_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {"mqtt": _split_mqtt_overrides(overrides, env)}

        host = env.get("DEVICEDASH_PRODUCER_HOST")
        if host is not None:
            config_kwargs["host"] = host
        port = _env_int(env, "DEVICEDASH_PRODUCER_PORT")
        if port is not None:
            config_kwargs["port"] = port
        origin = env.get("DEVICEDASH_CORS_ORIGIN")
        if origin is not None:
            config_kwargs["cors_origin"] = origin
        snapshot = env.get("DEVICEDASH_SNAPSHOT_PATH")
        if snapshot:
            config_kwargs["snapshot_path"] = Path(snapshot)

        config_kwargs.update(overrides)
        return cls(**config_kwargs)


@dataclasses.dataclass(frozen=True)
class ConsumerConfig:
    """WebSocket relay configuration."""

    host: str = "0.0.0.0"
    port: int = DEFAULT_CONSUMER_PORT
    mqtt: MqttSettings = dataclasses.field(default_factory=MqttSettings)

    @classmethod
    def from_env(cls, **overrides: Any) -> ConsumerConfig:
        env = os.environ
        config_kwargs: dict[str, Any] = {"mqtt": _split_mqtt_overrides(overrides, env)}

        host = env.get("DEVICEDASH_CONSUMER_HOST")
        if host is not None:
            config_kwargs["host"] = host
        port = _env_int(env, "DEVICEDASH_CONSUMER_PORT")
        if port is not None:
            config_kwargs["port"] = port

        config_kwargs.update(overrides)
        return cls(**config_kwargs)


@dataclasses.dataclass(frozen=True)
class DashboardConfig:
    """Dashboard client configuration.

    Parameters
    ----------
    api_url : str
        Base URL of the REST producer.
    websocket_url : str
        URL of the consumer's push channel.
    request_timeout : float
        Total timeout in seconds for each REST call.
    """

    api_url: str = f"http://localhost:{DEFAULT_PRODUCER_PORT}"
    websocket_url: str = f"ws://localhost:{DEFAULT_CONSUMER_PORT}"
    request_timeout: float = 10.0

    @classmethod
    def from_env(cls, **overrides: Any) -> DashboardConfig:
        env = os.environ
        config_kwargs: dict[str, Any] = {}
        api_url = env.get("DEVICEDASH_API_URL")
        if api_url is not None:
            config_kwargs["api_url"] = api_url.rstrip("/")
        ws_url = env.get("DEVICEDASH_WEBSOCKET_URL")
        if ws_url is not None:
            config_kwargs["websocket_url"] = ws_url
        timeout = _env_float(env, "DEVICEDASH_REQUEST_TIMEOUT")
        if timeout is not None:
            config_kwargs["request_timeout"] = timeout

        config_kwargs.update(overrides)
        return cls(**config_kwargs)
