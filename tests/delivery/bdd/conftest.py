"""Shared BDD fixtures and step definitions for the delivery lifecycle."""

import math

import pytest
from protean.utils.globals import current_domain
from pytest_bdd import given, parsers, then

from delivery.order.order import Order


def _north(km):
    return math.degrees(km / 6371.0)


@pytest.fixture()
def people():
    """Names to account ids."""
    return {}


@pytest.fixture()
def outcome():
    """Container for the last result or captured error."""
    return {"result": None, "exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("a pharmacy at the origin")
def pharmacy(register, people):
    people["pharmacy"] = register("Apollo", "supply-node", 0.0, 0.0)


@given(parsers.cfparse("a requester {km:g} km south of the pharmacy"))
def requester(register, people, km):
    people["requester"] = register("Asha", "requester", _north(-km), 0.0, "12 Park Street")


@given(parsers.cfparse('an online courier "{name}" {km:g} km north of the pharmacy'))
def online_courier(register, people, name, km):
    people[name] = register(name, "courier", _north(km), 0.0, online=True)


@given("the order is ready", target_fixture="order_id")
def ready_order(machine, people):
    order_id = _place(machine, people, "Paracetamol", 1, 25.0)
    machine.change_status(order_id, "ready")
    return order_id


@given(parsers.cfparse('the order was delivered by "{name}"'), target_fixture="order_id")
def delivered_order(machine, people, name):
    order_id = _place(machine, people, "Paracetamol", 1, 25.0)
    machine.change_status(order_id, "ready")
    machine.accept(order_id, people[name])
    machine.deliver(order_id, people[name])
    return order_id


def _place(machine, people, item, quantity, price):
    (order,) = machine.place(
        people["requester"],
        [{"name": item, "quantity": quantity, "unit_price": price, "supply_node_id": people["pharmacy"]}],
    )
    return str(order.id)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
def _stored(order_id):
    return current_domain.repository_for(Order).get(order_id)


@then(parsers.cfparse('the order is "{status}"'))
def order_status(order_id, status):
    assert _stored(order_id).status == status


@then(parsers.cfparse('the order is assigned to "{name}"'))
def assigned_to(order_id, people, name):
    assert str(_stored(order_id).courier_id) == people[name]


@then(parsers.cfparse("the expected earning is {amount:g}"))
def expected_earning(order_id, amount):
    assert _stored(order_id).expected_earning == pytest.approx(amount)


@then(parsers.cfparse("the courier earned {amount:g} for {km:g} km"))
def courier_earned(order_id, amount, km):
    settlement = _stored(order_id).settlement
    assert settlement.total_earning == pytest.approx(amount)
    assert settlement.distance_km == pytest.approx(km)
