"""Order aggregate (CQRS) — the core of the delivery domain.

An Order is one pharmacy's share of a requester's checkout. Its status only
moves forward; every transition method raises exactly one lifecycle event.
Persistence of a transition happens through ``OrderRepository.conditional_update``
so concurrent requests on the same order produce one winner.

State Machine:
    PENDING → READY → OUT_FOR_DELIVERY → DELIVERED
    PENDING → REJECTED
    DELIVERED and REJECTED are terminal.

The pickup flag is separate from the status: a courier is out for delivery
from the moment it accepts, and marks the physical pickup at the pharmacy.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from delivery.domain import delivery
from delivery.errors import AuthorizationError, StateConflictError
from delivery.order.events import (
    DeliveryAccepted,
    OrderDelivered,
    OrderPickedUp,
    OrderPlaced,
    OrderStatusUpdated,
)
from delivery.shared.geo_point import GeoPoint


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    READY = "ready"
    OUT_FOR_DELIVERY = "out-for-delivery"
    DELIVERED = "delivered"
    REJECTED = "rejected"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.READY, OrderStatus.REJECTED},
    OrderStatus.READY: {OrderStatus.OUT_FOR_DELIVERY},
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # terminal
    OrderStatus.REJECTED: set(),  # terminal
}

# Targets a pharmacy may set directly; the rest are courier actions.
SUPPLY_NODE_TARGETS = {OrderStatus.READY, OrderStatus.REJECTED}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@delivery.value_object(part_of="Order")
class Settlement:
    """Courier earning breakdown, frozen at delivery."""

    distance_km = Float(required=True, min_value=0.0)
    base_earning = Float(required=True)
    distance_earning = Float(required=True)
    total_earning = Float(required=True)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@delivery.entity(part_of="Order")
class LineItem:
    name = String(required=True, max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    supply_node_id = Identifier(required=True)

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@delivery.aggregate
class Order:
    requester_id = Identifier(required=True)
    supply_node_id = Identifier(required=True)
    courier_id = Identifier()
    items = HasMany(LineItem)
    total_amount = Float(default=0.0)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    delivery_location = ValueObject(GeoPoint)
    delivery_address = String(max_length=500)
    picked_up = Boolean(default=False)

    # Soft assignment preview, stamped at READY when a courier was found
    assignment_distance_km = Float()
    expected_earning = Float()

    settlement = ValueObject(Settlement)

    ordered_at = DateTime()
    ready_at = DateTime()
    accepted_at = DateTime()
    picked_up_at = DateTime()
    delivered_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def items_belong_to_the_order_supply_node(self):
        for item in self.items or []:
            if str(item.supply_node_id) != str(self.supply_node_id):
                raise ValidationError({"items": ["All items of an order must come from the same pharmacy"]})

    @invariant.post
    def courier_required_once_accepted(self):
        if self.status in (OrderStatus.OUT_FOR_DELIVERY.value, OrderStatus.DELIVERED.value) and not self.courier_id:
            raise ValidationError({"courier_id": ["An accepted order must have a courier"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        requester_id: str,
        supply_node_id: str,
        items_data: list[dict],
        delivery_location: GeoPoint | None = None,
        delivery_address: str | None = None,
    ):
        """Create a pending order for one pharmacy's share of a checkout."""
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one item"]})

        now = datetime.now(UTC)
        order = cls(
            requester_id=requester_id,
            supply_node_id=supply_node_id,
            status=OrderStatus.PENDING.value,
            delivery_location=delivery_location,
            delivery_address=delivery_address,
            ordered_at=now,
            updated_at=now,
        )
        for item_data in items_data:
            order.add_items(LineItem(**{"supply_node_id": supply_node_id, **item_data}))
        order.total_amount = sum(item.line_total for item in order.items)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                requester_id=requester_id,
                supply_node_id=supply_node_id,
                status=order.status,
                items=json.dumps(items_data),
                item_count=len(items_data),
                total_amount=order.total_amount,
                created_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    @property
    def is_delivered(self) -> bool:
        return self.status == OrderStatus.DELIVERED.value

    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise StateConflictError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def _assert_courier(self, courier_id: str, message: str) -> None:
        if not self.courier_id or str(self.courier_id) != str(courier_id):
            raise AuthorizationError({"courier_id": [message]})

    # -------------------------------------------------------------------
    # Pharmacy actions
    # -------------------------------------------------------------------
    def mark_ready(
        self,
        courier_id: str | None = None,
        assignment_distance_km: float | None = None,
        expected_earning: float | None = None,
    ) -> None:
        """Mark the order ready, with the engine's soft assignment if any."""
        self._assert_can_transition(OrderStatus.READY)
        now = datetime.now(UTC)
        self.status = OrderStatus.READY.value
        self.ready_at = now
        self.updated_at = now
        if courier_id:
            self.courier_id = courier_id
            self.assignment_distance_km = assignment_distance_km
            self.expected_earning = expected_earning

        self.raise_(
            OrderStatusUpdated(
                order_id=str(self.id),
                status=self.status,
                requester_id=str(self.requester_id),
                supply_node_id=str(self.supply_node_id),
                courier_id=courier_id,
                assignment_distance_km=assignment_distance_km if courier_id else None,
                expected_earning=expected_earning if courier_id else None,
                updated_at=now,
            )
        )

    def reject(self) -> None:
        self._assert_can_transition(OrderStatus.REJECTED)
        now = datetime.now(UTC)
        self.status = OrderStatus.REJECTED.value
        self.updated_at = now
        self.raise_(
            OrderStatusUpdated(
                order_id=str(self.id),
                status=self.status,
                requester_id=str(self.requester_id),
                supply_node_id=str(self.supply_node_id),
                courier_id=None,
                updated_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Courier actions
    # -------------------------------------------------------------------
    def accept(self, courier_id: str) -> None:
        """Commit a courier to the order (hard acceptance).

        An unassigned order can be claimed by any courier; an assigned one
        only by the courier the engine proposed.
        """
        if OrderStatus(self.status) != OrderStatus.READY:
            raise StateConflictError({"status": ["Only ready orders can be accepted"]})
        if self.courier_id and str(self.courier_id) != str(courier_id):
            raise AuthorizationError({"courier_id": ["This order is assigned to another delivery partner"]})

        now = datetime.now(UTC)
        self.courier_id = courier_id
        self.status = OrderStatus.OUT_FOR_DELIVERY.value
        self.picked_up = False
        self.picked_up_at = None
        self.accepted_at = now
        self.updated_at = now
        self.raise_(
            DeliveryAccepted(
                order_id=str(self.id),
                courier_id=str(courier_id),
                requester_id=str(self.requester_id),
                supply_node_id=str(self.supply_node_id),
                accepted_at=now,
            )
        )

    def pick_up(self, courier_id: str) -> bool:
        """Mark the physical pickup. Returns False when already picked up."""
        self._assert_courier(courier_id, "This order is not assigned to you")
        if OrderStatus(self.status) != OrderStatus.OUT_FOR_DELIVERY:
            raise StateConflictError({"status": ["Order is not out for delivery"]})
        if self.picked_up:
            return False

        now = datetime.now(UTC)
        self.picked_up = True
        self.picked_up_at = now
        self.updated_at = now
        self.raise_(
            OrderPickedUp(
                order_id=str(self.id),
                courier_id=str(courier_id),
                requester_id=str(self.requester_id),
                supply_node_id=str(self.supply_node_id),
                picked_up_at=now,
            )
        )
        return True

    def deliver(self, courier_id: str, earning) -> None:
        """Complete the delivery and freeze the settlement.

        Allowed whether or not the pickup was marked. ``earning`` is the
        ``EarningBreakdown`` computed for the final distance.
        """
        self._assert_can_transition(OrderStatus.DELIVERED)
        self._assert_courier(courier_id, "This order is not assigned to you")
        if self.settlement is not None:
            raise StateConflictError({"settlement": ["Settlement has already been recorded"]})

        now = datetime.now(UTC)
        self.status = OrderStatus.DELIVERED.value
        self.delivered_at = now
        self.updated_at = now
        self.settlement = Settlement(
            distance_km=earning.distance_km,
            base_earning=earning.base_earning,
            distance_earning=earning.distance_earning,
            total_earning=earning.total_earning,
        )
        self.raise_(
            OrderDelivered(
                order_id=str(self.id),
                requester_id=str(self.requester_id),
                courier_id=str(self.courier_id),
                supply_node_id=str(self.supply_node_id),
                delivered_at=now,
                distance_km=earning.distance_km,
                base_earning=earning.base_earning,
                distance_earning=earning.distance_earning,
                total_earning=earning.total_earning,
            )
        )
