"""Order lifecycle events — one per accepted transition.

Each event maps to a wire topic (see ``delivery.notify.topics``) and carries
at least the fields that topic's consumers rely on.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from delivery.domain import delivery


@delivery.event(part_of="Order")
class OrderPlaced:
    """An order was created at checkout for one pharmacy."""

    __version__ = 1

    order_id = Identifier(required=True)
    requester_id = Identifier(required=True)
    supply_node_id = Identifier(required=True)
    status = String(required=True)
    items = Text(required=True)  # JSON list of line item dicts
    item_count = Integer(required=True)
    total_amount = Float(required=True)
    created_at = DateTime(required=True)


@delivery.event(part_of="Order")
class OrderStatusUpdated:
    """The pharmacy moved the order to ready (possibly assigned) or rejected it."""

    __version__ = 1

    order_id = Identifier(required=True)
    status = String(required=True)
    requester_id = Identifier(required=True)
    supply_node_id = Identifier(required=True)
    courier_id = Identifier()
    assignment_distance_km = Float()
    expected_earning = Float()
    updated_at = DateTime(required=True)


@delivery.event(part_of="Order")
class DeliveryAccepted:
    """A courier committed to deliver the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    courier_id = Identifier(required=True)
    requester_id = Identifier(required=True)
    supply_node_id = Identifier(required=True)
    accepted_at = DateTime(required=True)


@delivery.event(part_of="Order")
class OrderPickedUp:
    """The courier collected the order at the pharmacy."""

    __version__ = 1

    order_id = Identifier(required=True)
    courier_id = Identifier(required=True)
    requester_id = Identifier(required=True)
    supply_node_id = Identifier(required=True)
    picked_up_at = DateTime(required=True)


@delivery.event(part_of="Order")
class OrderDelivered:
    """The order reached the requester; carries the frozen settlement."""

    __version__ = 1

    order_id = Identifier(required=True)
    requester_id = Identifier(required=True)
    courier_id = Identifier(required=True)
    supply_node_id = Identifier(required=True)
    delivered_at = DateTime(required=True)
    distance_km = Float(required=True)
    base_earning = Float(required=True)
    distance_earning = Float(required=True)
    total_earning = Float(required=True)
