"""MQTT change bus: publisher for the producer, subscriber for the consumer.

Both sides run paho-mqtt's threaded network loop. Publishing is QoS 0
fire-and-forget; inbound messages are handed to the asyncio loop with
``call_soon_threadsafe``.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from collections.abc import Callable, Sequence
from typing import Any, Protocol, cast

import paho.mqtt.client as mqtt

from devicedash._constants import truncate_for_log
from devicedash.config import MqttSettings
from devicedash.state.events import DeviceChange, encode_changes

_logger = logging.getLogger(__name__)


class ChangePublisher(Protocol):
    """Structural publisher interface used by the producer.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (:class:`MqttChangePublisher`) concrete.
    """

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def publish(self, changes: Sequence[DeviceChange]) -> None: ...


class ChangeSubscriber(Protocol):
    """Structural subscriber interface used by the consumer."""

    def start(self, on_payload: Callable[[str], None]) -> None: ...

    def stop(self) -> None: ...


def _build_client_id(settings: MqttSettings, role: str) -> str:
    return f"{settings.client_id_prefix}-{role}-{secrets.token_hex(4)}"


def _new_client(settings: MqttSettings, role: str, logger: logging.Logger) -> mqtt.Client:
    client = mqtt.Client(
        callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
        client_id=_build_client_id(settings, role),
        protocol=mqtt.MQTTv311,
    )
    client.enable_logger(logger)
    return client


class MqttChangePublisher:
    """Publishes change batches onto the change bus topic."""

    def __init__(self, settings: MqttSettings, *, logger: logging.Logger | None = None) -> None:
        self._settings = settings
        self._logger = logger or _logger
        self._client: mqtt.Client | None = None

    @property
    def is_running(self) -> bool:
        return self._client is not None

    def start(self) -> None:
        """Begin connecting in the background; failures are logged, not raised."""
        self.stop()
        client = _new_client(self._settings, "producer", self._logger)

        def on_connect(_c: mqtt.Client, _userdata: Any, _flags: Any, reason_code: Any, _properties: Any) -> None:
            if reason_code.is_failure:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._logger.info("MQTT producer connected to %s:%s", self._settings.host, self._settings.port)

        def on_disconnect(
            _c: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            self._logger.debug("MQTT producer disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_disconnect = on_disconnect
        client.connect_async(self._settings.host, self._settings.port, keepalive=self._settings.keepalive)
        client.loop_start()
        self._client = client

    def stop(self) -> None:
        client = self._client
        self._client = None
        if client is None:
            return
        try:
            client.disconnect()
        finally:
            client.loop_stop()

    def publish(self, changes: Sequence[DeviceChange]) -> None:
        """Publish one batch. Transport failures drop the batch with a warning."""
        if not changes:
            return
        payload = encode_changes(changes)
        client = self._client
        if client is None:
            self._logger.warning("MQTT publisher not started, dropping %d change(s)", len(changes))
            return

        self._logger.info(
            "Publishing to topic [%s] data [%s]",
            self._settings.topic,
            truncate_for_log(payload),
        )
        info = client.publish(self._settings.topic, payload.encode("utf-8"), qos=0)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            self._logger.warning("MQTT publish failed (%s), change batch dropped", mqtt.error_string(info.rc))


class MqttChangeSubscriber:
    """Threaded paho-mqtt subscriber that emits raw payload text onto an asyncio loop."""

    def __init__(self, settings: MqttSettings, *, logger: logging.Logger | None = None) -> None:
        self._settings = settings
        self._logger = logger or _logger
        self._client: mqtt.Client | None = None

    @property
    def is_running(self) -> bool:
        return self._client is not None

    def start(self, on_payload: Callable[[str], None]) -> None:
        """Subscribe to the change topic; must be called from the event loop thread."""
        self.stop()
        loop = asyncio.get_running_loop()
        topic = self._settings.topic
        client = _new_client(self._settings, "consumer", self._logger)

        def on_connect(c: mqtt.Client, _userdata: Any, _flags: Any, reason_code: Any, _properties: Any) -> None:
            if reason_code.is_failure:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            # Re-subscribe on every (re)connect; the session is not persistent.
            c.subscribe(topic, qos=0)
            self._logger.info("Subscribed to %s", topic)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            if msg.topic != topic:
                return
            try:
                text = msg.payload.decode("utf-8")
            except UnicodeDecodeError:
                self._logger.warning("Dropping non UTF-8 payload on %s", msg.topic)
                return
            self._logger.info("Update received: [%s]", truncate_for_log(text))
            loop.call_soon_threadsafe(on_payload, text)

        def on_disconnect(
            _c: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            self._logger.debug("MQTT consumer disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect
        client.connect_async(self._settings.host, self._settings.port, keepalive=self._settings.keepalive)
        client.loop_start()
        self._client = client

    def stop(self) -> None:
        client = self._client
        self._client = None
        if client is None:
            return
        try:
            client.disconnect()
        finally:
            client.loop_stop()
