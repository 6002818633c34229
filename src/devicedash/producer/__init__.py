"""REST producer: device store owner, mutation gateway and status simulator."""

from devicedash.producer.app import create_producer_app
from devicedash.producer.gateway import MutationGateway
from devicedash.producer.simulator import StatusSimulator

__all__ = ["MutationGateway", "StatusSimulator", "create_producer_app"]
