"""CourierDirectory — query and update interface over the Account directory.

The assignment engine only ever reads a snapshot from here; the online flag
and the position of a courier are written by the courier's own requests.
Pharmacy coordinates are read-mostly and go through the advisory cache.
"""

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from delivery.directory.account import Account, AccountRole
from delivery.errors import ExternalServiceError, NotFoundError
from delivery.shared.geo_point import GeoPoint

logger = structlog.get_logger(__name__)

# Cached marker for "pharmacy exists but has no coordinate".
_NO_LOCATION = "none"


class CourierDirectory:
    def __init__(self, cache=None, cache_ttl: float | None = None):
        self._cache = cache
        self._cache_ttl = cache_ttl

    @property
    def _repo(self):
        return current_domain.repository_for(Account)

    def _call(self, operation: str, fn):
        try:
            return fn()
        except (ObjectNotFoundError, ValidationError):
            raise
        except Exception as exc:
            logger.error("Directory call failed", operation=operation, error=str(exc))
            raise ExternalServiceError({"directory": [f"{operation} failed: {exc}"]}) from exc

    def _get_with_role(self, account_id: str, role: AccountRole) -> Account:
        account = self._call("get", lambda: self._repo.get(account_id))
        if account.role != role.value:
            raise NotFoundError({"_entity": f"{role.value} {account_id} not found"})
        return account

    def add(self, account: Account) -> Account:
        self._call("add", lambda: self._repo.add(account))
        return account

    # -------------------------------------------------------------------
    # Couriers
    # -------------------------------------------------------------------
    def find_online_with_location(self) -> list[Account]:
        """Snapshot of couriers that are online and have a known position."""
        couriers = self._call(
            "find_online_with_location",
            lambda: self._repo._dao.query.filter(role=AccountRole.COURIER.value).all().items,
        )
        return [c for c in couriers if c.is_online and c.location is not None]

    def get(self, courier_id: str) -> Account:
        return self._get_with_role(courier_id, AccountRole.COURIER)

    def update_location(self, courier_id: str, latitude: float | None, longitude: float | None) -> Account:
        courier = self.get(courier_id)
        courier.move_to(latitude, longitude)
        return self.add(courier)

    def set_online(self, courier_id: str, is_online: bool) -> Account:
        courier = self.get(courier_id)
        courier.set_online(is_online)
        self.add(courier)
        logger.info("Courier availability changed", courier_id=courier_id, is_online=is_online)
        return courier

    # -------------------------------------------------------------------
    # Pharmacies and requesters
    # -------------------------------------------------------------------
    def supply_node(self, supply_node_id: str) -> Account:
        return self._get_with_role(supply_node_id, AccountRole.SUPPLY_NODE)

    def requester(self, requester_id: str) -> Account:
        return self._get_with_role(requester_id, AccountRole.REQUESTER)

    def relocate_supply_node(self, supply_node_id: str, latitude: float, longitude: float) -> Account:
        supply_node = self.supply_node(supply_node_id)
        supply_node.move_to(latitude, longitude)
        self.add(supply_node)
        self._cache_invalidate(_location_key(supply_node_id))
        return supply_node

    def supply_node_location(self, supply_node_id: str) -> GeoPoint | None:
        """Pharmacy coordinate, or ``None`` when it has none on record."""
        key = _location_key(supply_node_id)
        cached = self._cache_get(key)
        if cached == _NO_LOCATION:
            return None
        if cached is not None:
            return GeoPoint(latitude=cached[0], longitude=cached[1])

        location = self.supply_node(supply_node_id).location
        # (0, 0) is a valid position
        cached = (location.latitude, location.longitude) if location is not None else _NO_LOCATION
        self._cache_set(key, cached)
        return location

    # -------------------------------------------------------------------
    # Advisory cache: failures degrade to misses
    # -------------------------------------------------------------------
    def _cache_get(self, key: str):
        if self._cache is None:
            return None
        try:
            return self._cache.get(key)
        except ExternalServiceError as exc:
            logger.warning("Cache read failed, falling back to directory", key=key, error=str(exc))
            return None

    def _cache_set(self, key: str, value) -> None:
        if self._cache is None:
            return
        try:
            self._cache.set(key, value, self._cache_ttl)
        except ExternalServiceError as exc:
            logger.warning("Cache write failed", key=key, error=str(exc))

    def _cache_invalidate(self, key: str) -> None:
        if self._cache is None:
            return
        try:
            self._cache.invalidate(key)
        except ExternalServiceError as exc:
            logger.warning("Cache invalidation failed", key=key, error=str(exc))


def _location_key(supply_node_id: str) -> str:
    return f"supply-node:{supply_node_id}:location"
