"""Wire topics, payloads and the per-transition fan-out table."""

import json
from datetime import datetime

from protean.utils.reflection import declared_fields

from delivery.order.events import (
    DeliveryAccepted,
    OrderDelivered,
    OrderPickedUp,
    OrderPlaced,
    OrderStatusUpdated,
)

ORDER_CREATED = "order.created"
ORDER_STATUS_UPDATED = "order.status.updated"
ORDER_DELIVERY_ACCEPTED = "order.delivery.accepted"
ORDER_DELIVERY_PICKED_UP = "order.delivery.picked-up"
ORDER_DELIVERED = "order.delivered"

TOPICS = {
    OrderPlaced: ORDER_CREATED,
    OrderStatusUpdated: ORDER_STATUS_UPDATED,
    DeliveryAccepted: ORDER_DELIVERY_ACCEPTED,
    OrderPickedUp: ORDER_DELIVERY_PICKED_UP,
    OrderDelivered: ORDER_DELIVERED,
}

SUPPLY_NODE = "supply-node"
REQUESTER = "requester"
COURIER_POOL = "courier-pool"

# Audiences notified per transition
FANOUT = {
    "created": (SUPPLY_NODE, REQUESTER),
    "ready": (SUPPLY_NODE, REQUESTER, COURIER_POOL),
    "rejected": (SUPPLY_NODE, REQUESTER),
    "accepted": (SUPPLY_NODE, REQUESTER, COURIER_POOL),
    "picked-up": (SUPPLY_NODE, REQUESTER, COURIER_POOL),
    "delivered": (SUPPLY_NODE, REQUESTER, COURIER_POOL),
}

_TRANSITIONS = {
    ORDER_CREATED: "created",
    ORDER_DELIVERY_ACCEPTED: "accepted",
    ORDER_DELIVERY_PICKED_UP: "picked-up",
    ORDER_DELIVERED: "delivered",
}


def topic_for(event) -> str:
    try:
        return TOPICS[type(event)]
    except KeyError:
        raise ValueError(f"No topic for event {type(event).__name__}") from None


def transition_of(topic: str, payload: dict) -> str:
    """Name of the transition a message reports, as used in ``FANOUT``."""
    if topic == ORDER_STATUS_UPDATED:
        return payload["status"]
    return _TRANSITIONS[topic]


def camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _wire_value(value):
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def wire_payload(event) -> dict:
    """camelCase payload for ``event``, with the item list decoded."""
    payload = {}
    for name in declared_fields(event):
        if name.startswith("_"):
            continue
        payload[camel_case(name)] = _wire_value(getattr(event, name))
    if isinstance(event, OrderPlaced):
        payload["items"] = json.loads(event.items)
    return payload
