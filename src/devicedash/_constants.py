"""Internal constants shared across the package."""

DEFAULT_MQTT_HOST = "test.mosquitto.org"
DEFAULT_MQTT_PORT = 1883
DEFAULT_MQTT_TOPIC = "amelvin-dev/mqtt-websocket-example/devices/updates"

DEFAULT_FRONTEND_ORIGIN = "http://localhost:3000"
DEFAULT_PRODUCER_PORT = 3001
DEFAULT_CONSUMER_PORT = 3002

CORS_ALLOWED_METHODS: tuple[str, ...] = ("GET", "POST", "PATCH")
CORS_ALLOWED_HEADERS: tuple[str, ...] = ("Content-Type", "Authorization")

# ------------------------------------------------------------------
# Simulator defaults (applied when a start request omits a value)
# ------------------------------------------------------------------

DEFAULT_UPDATE_CHANCE = 100.0
DEFAULT_UPDATE_INTERVAL_MS = 5000

#: Maximum number of payload characters echoed into log lines.
LOG_PAYLOAD_LIMIT = 512


def truncate_for_log(text: str, limit: int = LOG_PAYLOAD_LIMIT) -> str:
    """Clip *text* for log output, marking the cut."""
    if len(text) > limit:
        return f"{text[:limit]}…<truncated>"
    return text
