"""Read paths for requesters, couriers and pharmacies.

Nothing here writes. Previews use the same EarningsCalculator as the
settlement, so the number a courier sees in the ready list is computed the
same way as what they are paid, only from a different distance sample.
"""

from collections import Counter
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import structlog
from protean.utils.globals import current_domain

from delivery.errors import NotFoundError
from delivery.order.order import Order, OrderStatus
from delivery.shared.geo import distance_km, is_reachable

logger = structlog.get_logger(__name__)

NO_TOP_SELLER = "N/A"


@dataclass(frozen=True)
class ReadyOrderView:
    order: Order
    distance_km: float
    expected_earning: float


@dataclass(frozen=True)
class RequesterOrderView:
    order: Order
    eta_minutes: int | None = None


@dataclass(frozen=True)
class CourierEarnings:
    today: float
    week: float
    total: float
    completed_count: int


@dataclass(frozen=True)
class SupplyNodeAnalytics:
    total_sales_today: float
    pending_orders: int
    top_selling: str


def _start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _as_utc(moment: datetime | None) -> datetime | None:
    if moment is not None and moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


class OrderQueries:
    def __init__(self, repository, directory, calculator, eta):
        self._repository = repository
        self._directory = directory
        self._calculator = calculator
        self._eta = eta

    # -------------------------------------------------------------------
    # Courier
    # -------------------------------------------------------------------
    def ready_for_courier(self, courier_id: str) -> list[ReadyOrderView]:
        """Claimable and in-progress orders visible to ``courier_id``, newest first."""
        visible = (OrderStatus.READY.value, OrderStatus.OUT_FOR_DELIVERY.value)
        orders = [
            o
            for o in self._repository.query(sort_key="ordered_at", reverse=True)
            if o.status in visible and (not o.courier_id or str(o.courier_id) == str(courier_id))
        ]

        views = []
        for order in orders:
            distance = self._delivery_distance(order)
            preview = self._calculator.earning(distance)
            views.append(
                ReadyOrderView(
                    order=order,
                    distance_km=preview.distance_km,
                    expected_earning=preview.total_earning,
                )
            )
        return views

    def _delivery_distance(self, order: Order) -> float:
        try:
            origin = self._directory.supply_node_location(str(order.supply_node_id))
        except NotFoundError:
            logger.warning("Pharmacy missing from directory", order_id=str(order.id))
            origin = None
        distance = distance_km(origin, order.delivery_location)
        return distance if is_reachable(distance) else 0.0

    def history_for_courier(self, courier_id: str) -> list[Order]:
        return self._repository.query(
            sort_key="delivered_at",
            reverse=True,
            courier_id=str(courier_id),
            status=OrderStatus.DELIVERED.value,
        )

    def earnings_for_courier(self, courier_id: str, now: datetime | None = None) -> CourierEarnings:
        now = now or datetime.now(UTC)
        today = _start_of_day(now)
        week_start = _start_of_day(now - timedelta(days=7))

        today_total = week_total = total = 0.0
        delivered = self.history_for_courier(courier_id)
        for order in delivered:
            earning = order.settlement.total_earning if order.settlement is not None else self._calculator.base_earning
            delivered_at = _as_utc(order.delivered_at or order.updated_at)
            total += earning
            if delivered_at >= today:
                today_total += earning
            if delivered_at >= week_start:
                week_total += earning

        return CourierEarnings(
            today=today_total,
            week=week_total,
            total=total,
            completed_count=len(delivered),
        )

    # -------------------------------------------------------------------
    # Requester
    # -------------------------------------------------------------------
    def history_for_requester(self, requester_id: str) -> list[RequesterOrderView]:
        """The requester's orders, newest first, with an ETA while out for delivery."""
        orders = self._repository.query(sort_key="ordered_at", reverse=True, requester_id=str(requester_id))
        return [RequesterOrderView(order=o, eta_minutes=self._eta_for(o)) for o in orders]

    def _eta_for(self, order: Order) -> int | None:
        if order.status != OrderStatus.OUT_FOR_DELIVERY.value or not order.courier_id:
            return None
        try:
            courier = self._directory.get(str(order.courier_id))
        except NotFoundError:
            return None
        return self._eta.eta_minutes(distance_km(courier.location, order.delivery_location))

    # -------------------------------------------------------------------
    # Pharmacy
    # -------------------------------------------------------------------
    def orders_for_supply_node(self, supply_node_id: str) -> list[Order]:
        return self._repository.query(sort_key="ordered_at", reverse=True, supply_node_id=str(supply_node_id))

    def supply_node_analytics(self, supply_node_id: str, now: datetime | None = None) -> SupplyNodeAnalytics:
        today = _start_of_day(now or datetime.now(UTC))
        orders = self.orders_for_supply_node(supply_node_id)

        sales_today = sum(
            o.total_amount or 0.0
            for o in orders
            if o.status == OrderStatus.DELIVERED.value and o.delivered_at and _as_utc(o.delivered_at) >= today
        )
        pending = sum(1 for o in orders if o.status == OrderStatus.PENDING.value)

        sold = Counter()
        for order in orders:
            for item in order.items:
                sold[item.name] += item.quantity
        # Highest quantity wins; equal quantities go to the first name alphabetically
        top = min(sold.items(), key=lambda kv: (-kv[1], kv[0]))[0] if sold else NO_TOP_SELLER

        return SupplyNodeAnalytics(total_sales_today=sales_today, pending_orders=pending, top_selling=top)

    # -------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------
    def stale_deliveries(self, older_than: timedelta, now: datetime | None = None) -> list[Order]:
        """Orders out for delivery since before ``now - older_than``, oldest first.

        These are never re-queued automatically; they are listed for manual
        follow-up.
        """
        cutoff = (now or datetime.now(UTC)) - older_than
        return [
            o
            for o in self._repository.query(sort_key="accepted_at", status=OrderStatus.OUT_FOR_DELIVERY.value)
            if o.accepted_at and _as_utc(o.accepted_at) < cutoff
        ]


def build_queries() -> OrderQueries:
    """Wire the read side from the configured adapters."""
    from delivery.cache import cache_ttl, get_cache
    from delivery.directory.directory import CourierDirectory
    from delivery.settings import PricingSettings
    from delivery.shared.earnings import EarningsCalculator
    from delivery.shared.eta import ETAEstimator

    settings = PricingSettings.from_env()
    return OrderQueries(
        repository=current_domain.repository_for(Order),
        directory=CourierDirectory(cache=get_cache(), cache_ttl=cache_ttl()),
        calculator=EarningsCalculator.from_settings(settings),
        eta=ETAEstimator.from_settings(settings),
    )
