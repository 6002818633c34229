"""WebSocket consumer: relays change-bus payloads to every connected client."""

from devicedash.consumer.app import create_consumer_app
from devicedash.consumer.relay import BroadcastRelay

__all__ = ["BroadcastRelay", "create_consumer_app"]
