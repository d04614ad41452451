"""Directory management — commands and handler.

Registration of marketplace actors and the courier's own location pings and
online toggle.
"""

from protean import handle
from protean.fields import Boolean, Float, Identifier, String

from delivery.cache import cache_ttl, get_cache
from delivery.directory.account import Account, AccountRole
from delivery.directory.directory import CourierDirectory
from delivery.domain import delivery


@delivery.command(part_of="Account")
class RegisterAccount:
    """Register a requester, pharmacy or courier in the directory."""

    name = String(required=True, max_length=150)
    role = String(required=True, choices=AccountRole)
    latitude = Float()
    longitude = Float()
    address = String(max_length=500)


@delivery.command(part_of="Account")
class UpdateCourierLocation:
    """A courier reports its current position."""

    courier_id = Identifier(required=True)
    latitude = Float()
    longitude = Float()


@delivery.command(part_of="Account")
class SetCourierOnline:
    """A courier goes online or offline."""

    courier_id = Identifier(required=True)
    is_online = Boolean(required=True)


@delivery.command(part_of="Account")
class RelocateSupplyNode:
    """A pharmacy corrects its coordinate."""

    supply_node_id = Identifier(required=True)
    latitude = Float(required=True)
    longitude = Float(required=True)


def _directory() -> CourierDirectory:
    return CourierDirectory(cache=get_cache(), cache_ttl=cache_ttl())


@delivery.command_handler(part_of=Account)
class DirectoryHandler:
    @handle(RegisterAccount)
    def register_account(self, command):
        account = Account.register(
            name=command.name,
            role=command.role,
            latitude=command.latitude,
            longitude=command.longitude,
            address=command.address,
        )
        CourierDirectory().add(account)
        return str(account.id)

    @handle(UpdateCourierLocation)
    def update_courier_location(self, command):
        _directory().update_location(command.courier_id, command.latitude, command.longitude)

    @handle(SetCourierOnline)
    def set_courier_online(self, command):
        _directory().set_online(command.courier_id, command.is_online)

    @handle(RelocateSupplyNode)
    def relocate_supply_node(self, command):
        _directory().relocate_supply_node(command.supply_node_id, command.latitude, command.longitude)
