"""AssignmentEngine — nearest online courier for an order that became ready.

The assignment is a soft proposal. It is written together with the READY
transition so the courier sees the order first, but the binding commitment
is the courier's own accept. The directory is read as a snapshot, so two
orders may propose the same idle courier; whichever courier accepts first
wins and the other order stays claimable.

Equidistant couriers are ordered by courier identity, lowest first, so the
result does not depend on directory iteration order.
"""

from dataclasses import dataclass

import structlog

from delivery.errors import NotFoundError
from delivery.shared.geo import distance_km, is_reachable

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CourierMatch:
    courier_id: str
    distance_km: float


def nearest_courier(origin, couriers) -> CourierMatch | None:
    """Pick the courier closest to ``origin``; ties go to the lowest id."""
    best = None
    for courier in couriers:
        distance = distance_km(origin, courier.location)
        if not is_reachable(distance):
            continue
        candidate = (distance, str(courier.id))
        if best is None or candidate < best:
            best = candidate
    if best is None:
        return None
    return CourierMatch(courier_id=best[1], distance_km=best[0])


class AssignmentEngine:
    def __init__(self, directory):
        self._directory = directory

    def match(self, order) -> CourierMatch | None:
        couriers = self._directory.find_online_with_location()
        if not couriers:
            logger.info("No online couriers to auto-assign", order_id=str(order.id))
            return None

        try:
            origin = self._directory.supply_node_location(str(order.supply_node_id))
        except NotFoundError:
            origin = None
        if origin is None:
            logger.warning(
                "Pharmacy has no known location, skipping assignment",
                order_id=str(order.id),
                supply_node_id=str(order.supply_node_id),
            )
            return None

        match = nearest_courier(origin, couriers)
        if match is not None:
            logger.info(
                "Auto-assigned order to nearest courier",
                order_id=str(order.id),
                courier_id=match.courier_id,
                distance_km=round(match.distance_km, 2),
                candidates=len(couriers),
            )
        return match

    def assign(self, order) -> str | None:
        """Courier id proposed for ``order``, or ``None`` if nobody qualifies."""
        match = self.match(order)
        return match.courier_id if match is not None else None
