from __future__ import annotations

from pathlib import Path

import pytest

from devicedash.config import ConsumerConfig, DashboardConfig, MqttSettings, ProducerConfig
from devicedash.exceptions import DeviceDashConfigError

_ENV_KEYS = (
    "DEVICEDASH_MQTT_HOST",
    "DEVICEDASH_MQTT_PORT",
    "DEVICEDASH_MQTT_TOPIC",
    "DEVICEDASH_MQTT_KEEPALIVE",
    "DEVICEDASH_MQTT_CLIENT_ID_PREFIX",
    "DEVICEDASH_PRODUCER_HOST",
    "DEVICEDASH_PRODUCER_PORT",
    "DEVICEDASH_CORS_ORIGIN",
    "DEVICEDASH_SNAPSHOT_PATH",
    "DEVICEDASH_CONSUMER_HOST",
    "DEVICEDASH_CONSUMER_PORT",
    "DEVICEDASH_API_URL",
    "DEVICEDASH_WEBSOCKET_URL",
    "DEVICEDASH_REQUEST_TIMEOUT",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults_match_local_development_setup() -> None:
    producer = ProducerConfig.from_env()
    consumer = ConsumerConfig.from_env()
    dashboard = DashboardConfig.from_env()

    assert producer.port == 3001
    assert producer.cors_origin == "http://localhost:3000"
    assert producer.snapshot_path is None
    assert consumer.port == 3002
    assert producer.mqtt == consumer.mqtt
    assert producer.mqtt.host == "test.mosquitto.org"
    assert producer.mqtt.port == 1883
    assert producer.mqtt.topic == "amelvin-dev/mqtt-websocket-example/devices/updates"
    assert dashboard.api_url == "http://localhost:3001"
    assert dashboard.websocket_url == "ws://localhost:3002"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    snapshot = tmp_path / "devices.json"
    monkeypatch.setenv("DEVICEDASH_PRODUCER_PORT", "4001")
    monkeypatch.setenv("DEVICEDASH_CORS_ORIGIN", "https://dash.example")
    monkeypatch.setenv("DEVICEDASH_SNAPSHOT_PATH", str(snapshot))
    monkeypatch.setenv("DEVICEDASH_MQTT_HOST", "broker.local")
    monkeypatch.setenv("DEVICEDASH_MQTT_PORT", " 1884 ")
    monkeypatch.setenv("DEVICEDASH_MQTT_TOPIC", "site/devices")
    monkeypatch.setenv("DEVICEDASH_API_URL", "http://api.local:8080/")
    monkeypatch.setenv("DEVICEDASH_REQUEST_TIMEOUT", "2.5")

    producer = ProducerConfig.from_env()
    dashboard = DashboardConfig.from_env()

    assert producer.port == 4001
    assert producer.cors_origin == "https://dash.example"
    assert producer.snapshot_path == snapshot
    assert producer.mqtt == MqttSettings(host="broker.local", port=1884, topic="site/devices")
    assert dashboard.api_url == "http://api.local:8080"
    assert dashboard.request_timeout == 2.5


def test_keyword_overrides_win_over_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DEVICEDASH_CONSUMER_PORT", "5002")
    monkeypatch.setenv("DEVICEDASH_MQTT_HOST", "broker.local")

    config = ConsumerConfig.from_env(port=6002, mqtt={"topic": "other/topic"})

    assert config.port == 6002
    assert config.mqtt.host == "broker.local"
    assert config.mqtt.topic == "other/topic"


def test_explicit_mqtt_settings_are_used_as_is(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DEVICEDASH_MQTT_HOST", "ignored")
    settings = MqttSettings(host="explicit", topic="t")

    assert ProducerConfig.from_env(mqtt=settings).mqtt is settings


@pytest.mark.parametrize(
    ("key", "factory"),
    [
        ("DEVICEDASH_PRODUCER_PORT", ProducerConfig.from_env),
        ("DEVICEDASH_CONSUMER_PORT", ConsumerConfig.from_env),
        ("DEVICEDASH_MQTT_PORT", MqttSettings.from_env),
        ("DEVICEDASH_REQUEST_TIMEOUT", DashboardConfig.from_env),
    ],
)
def test_malformed_numbers_raise_config_error(monkeypatch: pytest.MonkeyPatch, key: str, factory) -> None:
    monkeypatch.setenv(key, "lots")

    with pytest.raises(DeviceDashConfigError, match=key):
        factory()
