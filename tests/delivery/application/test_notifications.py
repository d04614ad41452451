"""Application tests for lifecycle fan-out and the notification adapters."""

import math
from datetime import UTC, datetime

import pytest
from protean.utils.globals import current_domain

from delivery.errors import ExternalServiceError
from delivery.notify import get_dispatcher, get_event_bus, get_observer, reset_notify
from delivery.notify.broker_bus import BrokerEventBus
from delivery.notify.dispatcher import NotificationDispatcher
from delivery.notify.fake_observer import FakeObserver
from delivery.notify.memory_bus import MemoryEventBus
from delivery.notify.topics import FANOUT, camel_case, topic_for, wire_payload
from delivery.order.events import OrderDelivered, OrderStatusUpdated
from delivery.order.order import Order
from delivery.order.state_machine import build_state_machine


def _north(km):
    return math.degrees(km / 6371.0)


@pytest.fixture
def journey(machine, register):
    pharmacy = register("Apollo", "supply-node", 0.0, 0.0)
    requester = register("Asha", "requester", _north(-4), 0.0)
    courier = register("Ravi", "courier", _north(3), 0.0, online=True)
    (order,) = machine.place(
        requester, [{"name": "Paracetamol", "quantity": 1, "unit_price": 25.0, "supply_node_id": pharmacy}]
    )
    return {"order_id": str(order.id), "pharmacy": pharmacy, "requester": requester, "courier": courier}


def _audiences(observers, topic):
    return {name for name, observer in observers.items() if topic in observer.topics()}


class TestFanOut:
    def test_full_lifecycle(self, machine, journey, observers, event_bus):
        order_id, courier = journey["order_id"], journey["courier"]
        machine.change_status(order_id, "ready")
        machine.accept(order_id, courier)
        machine.pick_up(order_id, courier)
        machine.deliver(order_id, courier)

        assert _audiences(observers, "order.created") == {"supply-node", "requester"}
        assert _audiences(observers, "order.status.updated") == {"supply-node", "requester", "courier-pool"}
        assert _audiences(observers, "order.delivery.accepted") == {"supply-node", "requester", "courier-pool"}
        assert _audiences(observers, "order.delivery.picked-up") == {"supply-node", "requester", "courier-pool"}
        assert _audiences(observers, "order.delivered") == {"supply-node", "requester", "courier-pool"}

        assert [topic for topic, _ in event_bus.published] == [
            "order.created",
            "order.status.updated",
            "order.delivery.accepted",
            "order.delivery.picked-up",
            "order.delivered",
        ]

    def test_rejection_skips_the_courier_pool(self, machine, journey, observers):
        machine.change_status(journey["order_id"], "rejected")

        assert _audiences(observers, "order.status.updated") == {"supply-node", "requester"}

    def test_recipients(self, machine, journey, observers):
        machine.change_status(journey["order_id"], "ready")

        supply = observers["supply-node"].notifications[-1]
        requester = observers["requester"].notifications[-1]
        pool = observers["courier-pool"].notifications[-1]
        assert supply["recipient_id"] == journey["pharmacy"]
        assert requester["recipient_id"] == journey["requester"]
        assert pool["recipient_id"] is None

    def test_ready_payload_carries_the_assignment(self, machine, journey, event_bus):
        machine.change_status(journey["order_id"], "ready")

        payload = event_bus.messages("order.status.updated")[0]
        assert payload["orderId"] == journey["order_id"]
        assert payload["status"] == "ready"
        assert payload["courierId"] == journey["courier"]
        assert payload["supplyNodeId"] == journey["pharmacy"]
        assert payload["expectedEarning"] == pytest.approx(45.0)

    def test_delivered_payload(self, machine, journey, event_bus):
        order_id, courier = journey["order_id"], journey["courier"]
        machine.change_status(order_id, "ready")
        machine.accept(order_id, courier)
        machine.deliver(order_id, courier)

        payload = event_bus.messages("order.delivered")[0]
        assert payload["courierId"] == courier
        assert payload["distanceKm"] == pytest.approx(4.0)
        assert payload["baseEarning"] == 30.0
        assert payload["distanceEarning"] == pytest.approx(20.0)
        assert payload["totalEarning"] == pytest.approx(50.0)
        assert isinstance(payload["deliveredAt"], str)


class TestDeliveryFailures:
    def test_observer_failure_does_not_undo_the_transition(self, machine, journey, observers, event_bus):
        observers["requester"].configure(should_succeed=False)

        result = machine.change_status(journey["order_id"], "ready")

        assert result.order.status == "ready"
        assert "order.status.updated" in observers["supply-node"].topics()
        assert event_bus.messages("order.status.updated")

    def test_event_bus_failure_is_swallowed(self, machine, journey, observers, event_bus):
        event_bus.configure(should_succeed=False)

        result = machine.change_status(journey["order_id"], "ready")

        assert result.applied
        assert "order.status.updated" in observers["courier-pool"].topics()
        assert event_bus.messages("order.status.updated") == []


class TestDispatcher:
    def test_unknown_event_is_dropped(self):
        bus = MemoryEventBus()
        dispatcher = NotificationDispatcher(FakeObserver("a"), FakeObserver("b"), FakeObserver("c"), bus)

        dispatcher.dispatch(object())

        assert bus.published == []

    def test_dispatch_all_skips_events_without_a_topic(self):
        bus = MemoryEventBus()
        dispatcher = NotificationDispatcher(FakeObserver("a"), FakeObserver("b"), FakeObserver("c"), bus)

        dispatcher.dispatch_all([object(), "order.created"])

        assert bus.published == []

    def test_publish_reads_recipients_from_the_payload(self):
        supply, requester, pool = FakeObserver("supply-node"), FakeObserver("requester"), FakeObserver("courier-pool")
        bus = MemoryEventBus()
        dispatcher = NotificationDispatcher(supply, requester, pool, bus)
        payload = {"orderId": "o-1", "status": "ready", "supplyNodeId": "s-1", "requesterId": "r-1", "courierId": None}

        dispatcher.publish("order.status.updated", payload)

        assert supply.notifications[0]["recipient_id"] == "s-1"
        assert requester.notifications[0]["recipient_id"] == "r-1"
        assert pool.notifications[0]["recipient_id"] is None
        assert bus.messages("order.status.updated") == [payload]

    def test_publish_without_recipients_still_broadcasts(self):
        supply, requester, pool = FakeObserver("supply-node"), FakeObserver("requester"), FakeObserver("courier-pool")
        dispatcher = NotificationDispatcher(supply, requester, pool, MemoryEventBus())

        dispatcher.publish("order.status.updated", {"orderId": "o-1", "status": "ready"})

        assert supply.notifications[0]["recipient_id"] is None
        assert pool.topics() == ["order.status.updated"]

    def test_publish_unknown_topic_is_dropped(self):
        supply = FakeObserver("supply-node")
        bus = MemoryEventBus()
        dispatcher = NotificationDispatcher(supply, FakeObserver("b"), FakeObserver("c"), bus)

        dispatcher.publish("order.teleported", {"orderId": "o-1"})

        assert supply.notifications == []
        assert bus.published == []

    def test_every_transition_has_a_fanout(self):
        assert set(FANOUT) == {"created", "ready", "rejected", "accepted", "picked-up", "delivered"}


class TestWirePayload:
    def test_camel_case(self):
        assert camel_case("supply_node_id") == "supplyNodeId"
        assert camel_case("status") == "status"

    def test_event_fields_are_camel_cased(self):
        now = datetime.now(UTC)
        event = OrderStatusUpdated(
            order_id="o-1",
            status="rejected",
            requester_id="r-1",
            supply_node_id="s-1",
            updated_at=now,
        )

        payload = wire_payload(event)

        assert topic_for(event) == "order.status.updated"
        assert payload["orderId"] == "o-1"
        assert payload["requesterId"] == "r-1"
        assert payload["courierId"] is None
        assert payload["updatedAt"] == now.isoformat()
        assert not any(key.startswith("_") for key in payload)

    def test_delivered_topic(self):
        event = OrderDelivered(
            order_id="o-1",
            requester_id="r-1",
            courier_id="c-1",
            supply_node_id="s-1",
            delivered_at=datetime.now(UTC),
            distance_km=1.0,
            base_earning=30.0,
            distance_earning=5.0,
            total_earning=35.0,
        )
        assert topic_for(event) == "order.delivered"


class TestBrokerEventBus:
    def test_publish_lands_on_the_default_broker(self):
        BrokerEventBus().publish("order.created", {"orderId": "o-1", "status": "pending"})

        identifier, message = current_domain.brokers.get("default").get_next("order.created", "delivery-tests")

        assert identifier
        assert message["orderId"] == "o-1"
        assert message["status"] == "pending"

    def test_lifecycle_through_the_broker(self, monkeypatch, journey):
        monkeypatch.setenv("DELIVERY_EVENT_BUS", "broker")
        reset_notify()

        build_state_machine().change_status(journey["order_id"], "ready")

        _, message = current_domain.brokers.get("default").get_next("order.status.updated", "delivery-tests")
        assert message["orderId"] == journey["order_id"]
        assert message["status"] == "ready"

    def test_missing_broker(self):
        with pytest.raises(ExternalServiceError):
            BrokerEventBus(broker_name="nowhere").publish("order.created", {"orderId": "o-1"})


class TestRegistry:
    def setup_method(self):
        reset_notify()

    def test_observers_are_per_audience_singletons(self):
        assert get_observer("requester") is get_observer("requester")
        assert get_observer("requester") is not get_observer("supply-node")

    def test_unknown_audience(self):
        with pytest.raises(ValueError):
            get_observer("admins")

    def test_default_bus_is_in_memory(self):
        assert isinstance(get_event_bus(), MemoryEventBus)

    def test_broker_bus(self, monkeypatch):
        monkeypatch.setenv("DELIVERY_EVENT_BUS", "broker")
        assert isinstance(get_event_bus(), BrokerEventBus)

    def test_unknown_bus(self, monkeypatch):
        monkeypatch.setenv("DELIVERY_EVENT_BUS", "kafka")
        with pytest.raises(ValueError):
            get_event_bus()

    def test_dispatcher_uses_the_registered_adapters(self):
        dispatcher = get_dispatcher()
        assert isinstance(dispatcher, NotificationDispatcher)


def test_order_is_unaffected_by_notification_errors(machine, journey, observers):
    for observer in observers.values():
        observer.configure(should_succeed=False)

    machine.change_status(journey["order_id"], "ready")

    assert current_domain.repository_for(Order).get(journey["order_id"]).status == "ready"
