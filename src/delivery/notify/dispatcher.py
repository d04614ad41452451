"""NotificationDispatcher — fans lifecycle updates out after the write committed.

Delivery is best effort: a failing observer or event bus is logged and the
remaining targets are still tried. Nothing here raises into the caller,
because the order transition has already been persisted.
"""

import structlog

from delivery.notify.topics import (
    COURIER_POOL,
    FANOUT,
    REQUESTER,
    SUPPLY_NODE,
    topic_for,
    transition_of,
    wire_payload,
)

logger = structlog.get_logger(__name__)


class NotificationDispatcher:
    def __init__(self, supply_nodes, requesters, courier_pool, event_bus):
        self._observers = {
            SUPPLY_NODE: supply_nodes,
            REQUESTER: requesters,
            COURIER_POOL: courier_pool,
        }
        self._event_bus = event_bus

    def publish(self, topic: str, payload: dict) -> None:
        """Fan ``payload`` out to the audiences declared for its transition.

        Recipients are read from the payload's ``supplyNodeId`` and
        ``requesterId``; the courier pool is a broadcast.
        """
        recipients = {
            SUPPLY_NODE: _recipient(payload, "supplyNodeId"),
            REQUESTER: _recipient(payload, "requesterId"),
            COURIER_POOL: None,
        }
        try:
            audiences = FANOUT[transition_of(topic, payload)]
        except KeyError:
            logger.error("No fan-out declared for topic", topic=topic, status=payload.get("status"))
            return

        for audience in audiences:
            try:
                self._observers[audience].notify(recipients[audience], topic, payload)
            except Exception as exc:
                logger.error(
                    "Observer notification failed",
                    audience=audience,
                    topic=topic,
                    order_id=payload.get("orderId"),
                    error=str(exc),
                )

        try:
            self._event_bus.publish(topic, payload)
        except Exception as exc:
            logger.error(
                "Event bus publish failed",
                topic=topic,
                order_id=payload.get("orderId"),
                error=str(exc),
            )

    def dispatch(self, event) -> None:
        """Publish a lifecycle event under its topic."""
        try:
            topic = topic_for(event)
            payload = wire_payload(event)
        except Exception as exc:
            logger.error("Cannot build notification", event_type=type(event).__name__, error=str(exc))
            return
        self.publish(topic, payload)

    def dispatch_all(self, events) -> None:
        for event in events:
            self.dispatch(event)


def _recipient(payload: dict, key: str) -> str | None:
    value = payload.get(key)
    return str(value) if value is not None else None
