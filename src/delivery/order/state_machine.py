"""OrderStateMachine — the one place order transitions are decided.

Each operation loads the order, short-circuits the idempotent cases, then
performs exactly one ``conditional_update`` on the repository. Lifecycle
events are handed to the NotificationDispatcher only after the write
committed, so a notification failure never rolls a transition back.

Actors:
    pharmacy  -> change_status (ready / rejected)
    courier   -> accept, pick_up, deliver
    requester -> place
"""

from dataclasses import dataclass

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from delivery.errors import AuthorizationError, ExternalServiceError, StateConflictError
from delivery.order.order import SUPPLY_NODE_TARGETS, Order, OrderStatus
from delivery.shared.geo import distance_km
from delivery.shared.geo_point import GeoPoint

logger = structlog.get_logger(__name__)

ALREADY_DELIVERED = "Order already delivered"


@dataclass
class TransitionResult:
    order: Order
    applied: bool = True
    message: str | None = None


class OrderStateMachine:
    def __init__(self, repository, directory, engine, calculator, dispatcher):
        self._repository = repository
        self._directory = directory
        self._engine = engine
        self._calculator = calculator
        self._dispatcher = dispatcher

    def _already_delivered(self, order: Order) -> TransitionResult:
        return TransitionResult(order=order, applied=False, message=ALREADY_DELIVERED)

    def _commit(self, order_id, expected: OrderStatus, mutator):
        result = self._repository.conditional_update(order_id, expected, mutator)
        self._dispatcher.dispatch_all(result.events)
        return result

    # -------------------------------------------------------------------
    # Checkout
    # -------------------------------------------------------------------
    def place(
        self,
        requester_id: str,
        items: list[dict],
        delivery_location=None,
        delivery_address: str | None = None,
    ) -> list[Order]:
        """Split a checkout into one pending order per pharmacy."""
        if not items:
            raise ValidationError({"items": ["Cart is empty"]})

        groups: dict[str, list[dict]] = {}
        for item in items:
            supply_node_id = item.get("supply_node_id")
            if not supply_node_id:
                raise ValidationError({"supply_node_id": ["Every item needs a pharmacy"]})
            groups.setdefault(str(supply_node_id), []).append(item)

        requester = self._directory.requester(requester_id)
        for supply_node_id in groups:
            self._directory.supply_node(supply_node_id)

        if delivery_location is None:
            delivery_location = requester.location
        elif isinstance(delivery_location, dict):
            delivery_location = GeoPoint(**delivery_location)
        if delivery_address is None:
            delivery_address = requester.address

        orders = []
        for supply_node_id, group in groups.items():
            order = Order.place(
                requester_id=str(requester_id),
                supply_node_id=supply_node_id,
                items_data=[{k: v for k, v in item.items() if k != "supply_node_id"} for item in group],
                delivery_location=delivery_location,
                delivery_address=delivery_address,
            )
            events = self._repository.create(order)
            self._dispatcher.dispatch_all(events)
            orders.append(order)

        logger.info(
            "Checkout placed",
            requester_id=str(requester_id),
            order_count=len(orders),
            order_ids=[str(o.id) for o in orders],
        )
        return orders

    # -------------------------------------------------------------------
    # Pharmacy
    # -------------------------------------------------------------------
    def change_status(self, order_id: str, status: str, supply_node_id: str | None = None) -> TransitionResult:
        order = self._repository.load(order_id)
        if order.is_delivered:
            return self._already_delivered(order)

        try:
            target = OrderStatus(status)
        except ValueError:
            raise ValidationError({"status": [f"Invalid status: {status}"]}) from None
        if supply_node_id is not None and str(order.supply_node_id) != str(supply_node_id):
            raise AuthorizationError({"supply_node_id": ["This order belongs to another pharmacy"]})
        if order.status == OrderStatus.OUT_FOR_DELIVERY.value:
            raise StateConflictError({"status": ["Order already picked by delivery partner"]})
        if target not in SUPPLY_NODE_TARGETS:
            raise StateConflictError({"status": [f"A pharmacy cannot move an order to {target.value}"]})

        mutator = self._mark_ready if target == OrderStatus.READY else Order.reject
        result = self._commit(order_id, OrderStatus(order.status), mutator)
        logger.info(
            "Order status changed",
            order_id=str(order_id),
            status=target.value,
            courier_id=str(result.order.courier_id) if result.order.courier_id else None,
        )
        return TransitionResult(order=result.order)

    def _mark_ready(self, order: Order):
        try:
            match = self._engine.match(order)
        except ExternalServiceError as exc:
            logger.warning("Auto-assignment unavailable", order_id=str(order.id), error=str(exc))
            match = None

        if match is None:
            order.mark_ready()
            return None

        preview = self._calculator.earning(match.distance_km)
        order.mark_ready(
            courier_id=match.courier_id,
            assignment_distance_km=preview.distance_km,
            expected_earning=preview.total_earning,
        )
        return match

    # -------------------------------------------------------------------
    # Courier
    # -------------------------------------------------------------------
    def accept(self, order_id: str, courier_id: str) -> TransitionResult:
        self._directory.get(courier_id)
        order = self._repository.load(order_id)
        if order.is_delivered:
            return self._already_delivered(order)

        result = self._commit(order_id, OrderStatus(order.status), lambda o: o.accept(courier_id))
        logger.info("Delivery accepted", order_id=str(order_id), courier_id=str(courier_id))
        return TransitionResult(order=result.order)

    def pick_up(self, order_id: str, courier_id: str) -> TransitionResult:
        order = self._repository.load(order_id)
        if order.is_delivered:
            return self._already_delivered(order)

        result = self._commit(order_id, OrderStatus(order.status), lambda o: o.pick_up(courier_id))
        if not result.applied:
            return TransitionResult(order=result.order, applied=False, message="Order already picked up")
        logger.info("Order picked up", order_id=str(order_id), courier_id=str(courier_id))
        return TransitionResult(order=result.order)

    def deliver(self, order_id: str, courier_id: str) -> TransitionResult:
        order = self._repository.load(order_id)
        if order.is_delivered:
            return self._already_delivered(order)

        def _deliver(o: Order):
            o.deliver(courier_id, self._settlement_for(o))

        try:
            result = self._commit(order_id, OrderStatus(order.status), _deliver)
        except StateConflictError:
            current = self._repository.load(order_id)
            if current.is_delivered:
                return self._already_delivered(current)
            raise

        settlement = result.order.settlement
        logger.info(
            "Order delivered",
            order_id=str(order_id),
            courier_id=str(courier_id),
            distance_km=round(settlement.distance_km, 2),
            total_earning=settlement.total_earning,
        )
        return TransitionResult(order=result.order)

    def _settlement_for(self, order: Order):
        origin = self._directory.supply_node_location(str(order.supply_node_id))
        return self._calculator.earning(distance_km(origin, order.delivery_location))


def build_state_machine() -> OrderStateMachine:
    """Wire the state machine from the configured adapters."""
    from delivery.cache import cache_ttl, get_cache
    from delivery.directory.directory import CourierDirectory
    from delivery.notify import get_dispatcher
    from delivery.order.assignment import AssignmentEngine
    from delivery.settings import PricingSettings
    from delivery.shared.earnings import EarningsCalculator

    directory = CourierDirectory(cache=get_cache(), cache_ttl=cache_ttl())
    return OrderStateMachine(
        repository=current_domain.repository_for(Order),
        directory=directory,
        engine=AssignmentEngine(directory),
        calculator=EarningsCalculator.from_settings(PricingSettings.from_env()),
        dispatcher=get_dispatcher(),
    )
