"""Repository for the Order aggregate.

Every mutation of an existing order goes through ``conditional_update``: the
stored status must equal the status the caller expects, the mutation is
applied and the order written back, all while holding the order's lock.
The aggregate's own ``_version`` is the concurrency token; the write is
refused if the stored version moved since the order was read. Two requests
racing on one order therefore give one winner and one ``StateConflictError``.
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Callable

import structlog
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError, ValidationError

from delivery.domain import delivery
from delivery.errors import AuthorizationError, ExternalServiceError, StateConflictError
from delivery.order.order import Order, OrderStatus

logger = structlog.get_logger(__name__)

# Fixed pool of locks; orders sharing a stripe are serialised together.
LOCK_STRIPES = 64
_order_locks = tuple(threading.Lock() for _ in range(LOCK_STRIPES))


def _lock_for(order_id: str) -> threading.Lock:
    return _order_locks[hash(str(order_id)) % LOCK_STRIPES]


@dataclass
class UpdateResult:
    order: Order
    events: list = field(default_factory=list)
    value: Any = None

    @property
    def applied(self) -> bool:
        return bool(self.events)


@delivery.repository(part_of=Order)
class OrderRepository:
    """Order persistence with a compare-and-set write path."""

    def _call(self, operation: str, fn):
        try:
            return fn()
        except (ObjectNotFoundError, ValidationError, StateConflictError, AuthorizationError):
            raise
        except ExpectedVersionError as exc:
            raise StateConflictError({"_version": ["Order was modified concurrently"]}) from exc
        except Exception as exc:
            logger.error("Order repository call failed", operation=operation, error=str(exc))
            raise ExternalServiceError({"repository": [f"{operation} failed: {exc}"]}) from exc

    def load(self, order_id: str) -> Order:
        return self._call("get", lambda: self.get(order_id))

    def create(self, order: Order) -> list:
        """Persist a new order; returns the events it raised."""
        events = list(order._events)
        self._call("add", lambda: self.add(order))
        return events

    def conditional_update(
        self,
        order_id: str,
        expected_status: OrderStatus,
        mutator: Callable[[Order], Any],
    ) -> UpdateResult:
        """Apply ``mutator`` if the order is still in ``expected_status``.

        A mutator that raises no event is treated as a no-op and nothing is
        written. Errors raised by the mutator propagate unchanged.
        """
        with _lock_for(str(order_id)):
            order = self.load(order_id)
            if order.status != expected_status.value:
                logger.info(
                    "Conditional write lost",
                    order_id=str(order_id),
                    expected=expected_status.value,
                    actual=order.status,
                )
                raise StateConflictError(
                    {"status": [f"Order is {order.status}, expected {expected_status.value}"]}
                )

            version = order._version
            value = mutator(order)
            events = list(order._events)
            if not events:
                return UpdateResult(order=order, value=value)

            if self.load(order_id)._version != version:
                raise StateConflictError({"_version": ["Order was modified concurrently"]})
            self._call("add", lambda: self.add(order))

        return UpdateResult(order=order, events=events, value=value)

    def query(self, sort_key: str | None = None, reverse: bool = False, **filters) -> list[Order]:
        """Orders matching equality ``filters``, sorted in memory by ``sort_key``."""
        queryset = self._dao.query.filter(**filters) if filters else self._dao.query
        orders = self._call("query", lambda: queryset.all().items)
        if sort_key:
            orders = sorted(orders, key=lambda o: _sortable(getattr(o, sort_key)), reverse=reverse)
        return orders


def _sortable(value):
    # Missing timestamps sort before any real one
    if value is None:
        return (False,)
    return (True, value)
