"""Account aggregate — the shared directory of requesters, pharmacies and couriers.

Every actor of the marketplace is an Account; the ``role`` marker tells them
apart. Couriers additionally carry an online flag and a last-known position
that only the courier itself updates (location pings, online toggle).
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, String, ValueObject

from delivery.domain import delivery
from delivery.shared.geo_point import GeoPoint


class AccountRole(Enum):
    REQUESTER = "requester"
    SUPPLY_NODE = "supply-node"
    COURIER = "courier"


@delivery.aggregate
class Account:
    name = String(required=True, max_length=150)
    role = String(required=True, choices=AccountRole)
    address = String(max_length=500)
    location = ValueObject(GeoPoint)
    is_online = Boolean(default=False)
    location_updated_at = DateTime()
    registered_at = DateTime()

    @classmethod
    def register(
        cls,
        name: str,
        role: str,
        latitude: float | None = None,
        longitude: float | None = None,
        address: str | None = None,
    ):
        """Create a directory entry; the position is optional."""
        try:
            role = AccountRole(role).value
        except ValueError:
            raise ValidationError({"role": [f"Unknown role {role}"]}) from None

        location = None
        if latitude is not None or longitude is not None:
            location = GeoPoint(latitude=latitude, longitude=longitude)
        return cls(
            name=name,
            role=role,
            address=address,
            location=location,
            is_online=False,
            registered_at=datetime.now(UTC),
        )

    @property
    def is_courier(self) -> bool:
        return self.role == AccountRole.COURIER.value

    def move_to(self, latitude: float | None, longitude: float | None) -> None:
        """Record a new position. Pharmacies may relocate; couriers ping."""
        if latitude is None or longitude is None:
            raise ValidationError({"location": ["Missing lat/lon"]})
        if AccountRole(self.role) == AccountRole.REQUESTER:
            raise ValidationError({"role": ["Requester positions are captured at checkout"]})

        self.location = GeoPoint(latitude=latitude, longitude=longitude)
        self.location_updated_at = datetime.now(UTC)

    def set_online(self, is_online: bool) -> None:
        if not self.is_courier:
            raise ValidationError({"role": ["Only couriers can change their online status"]})
        if not isinstance(is_online, bool):
            raise ValidationError({"is_online": ["Status (boolean) is required"]})
        self.is_online = is_online
