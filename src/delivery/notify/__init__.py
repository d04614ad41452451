"""Notification adapter registry — observers and the event bus.

Uses recording fakes for the three observer audiences. The event bus is the
in-memory one by default; set DELIVERY_EVENT_BUS=broker to publish through
the domain's Protean broker.
"""

import os

from delivery.notify.topics import COURIER_POOL, REQUESTER, SUPPLY_NODE

_observer_instances: dict[str, object] = {}
_event_bus_instance = None


def get_observer(audience: str):
    """Return the observer adapter for ``audience`` (singleton per audience)."""
    if audience not in _observer_instances:
        if audience not in (SUPPLY_NODE, REQUESTER, COURIER_POOL):
            raise ValueError(f"Unknown observer audience: {audience}")
        from delivery.notify.fake_observer import FakeObserver

        _observer_instances[audience] = FakeObserver(audience)
    return _observer_instances[audience]


def get_event_bus():
    """Return the configured event bus adapter (singleton)."""
    global _event_bus_instance
    if _event_bus_instance is None:
        adapter = os.environ.get("DELIVERY_EVENT_BUS", "memory")
        if adapter == "memory":
            from delivery.notify.memory_bus import MemoryEventBus

            _event_bus_instance = MemoryEventBus()
        elif adapter == "broker":
            from delivery.notify.broker_bus import BrokerEventBus

            _event_bus_instance = BrokerEventBus()
        else:
            raise ValueError(f"Unknown event bus adapter: {adapter}")
    return _event_bus_instance


def get_dispatcher():
    from delivery.notify.dispatcher import NotificationDispatcher

    return NotificationDispatcher(
        supply_nodes=get_observer(SUPPLY_NODE),
        requesters=get_observer(REQUESTER),
        courier_pool=get_observer(COURIER_POOL),
        event_bus=get_event_bus(),
    )


def reset_notify():
    """Reset all adapter singletons (useful for testing)."""
    global _event_bus_instance
    _observer_instances.clear()
    _event_bus_instance = None
