"""Event bus backed by the domain's default Protean broker.

Each topic is published as a broker stream, so any broker configured in
``domain.toml`` (inline, Redis) carries the lifecycle messages.
"""

import structlog
from protean.utils.globals import current_domain

from delivery.errors import ExternalServiceError
from delivery.notify.port import EventBusPort

logger = structlog.get_logger(__name__)


class BrokerEventBus(EventBusPort):
    def __init__(self, broker_name: str = "default"):
        self.broker_name = broker_name

    def publish(self, topic: str, payload: dict) -> None:
        broker = current_domain.brokers.get(self.broker_name)
        if broker is None:
            raise ExternalServiceError({"event_bus": [f"No {self.broker_name} broker configured"]})
        identifier = broker.publish(topic, payload)
        logger.debug("Published to broker", topic=topic, message_id=identifier)
