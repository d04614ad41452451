import pytest
from protean.integrations.pytest import DomainFixture
from protean.utils.globals import current_domain


@pytest.fixture(scope="session")
def delivery_bed():
    from delivery.domain import delivery

    bed = DomainFixture(delivery)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(delivery_bed):
    with delivery_bed.domain_context():
        yield


@pytest.fixture()
def register():
    """Register a directory account through the command pipeline; returns its id."""
    from delivery.directory.management import RegisterAccount, SetCourierOnline

    def _register(name, role, latitude=None, longitude=None, address=None, online=False):
        account_id = current_domain.process(
            RegisterAccount(
                name=name,
                role=role,
                latitude=latitude,
                longitude=longitude,
                address=address,
            ),
            asynchronous=False,
        )
        if online:
            current_domain.process(
                SetCourierOnline(courier_id=account_id, is_online=True),
                asynchronous=False,
            )
        return account_id

    return _register


@pytest.fixture()
def observers():
    from delivery.notify import get_observer
    from delivery.notify.topics import COURIER_POOL, REQUESTER, SUPPLY_NODE

    return {
        "supply-node": get_observer(SUPPLY_NODE),
        "requester": get_observer(REQUESTER),
        "courier-pool": get_observer(COURIER_POOL),
    }


@pytest.fixture()
def event_bus():
    from delivery.notify import get_event_bus

    return get_event_bus()


@pytest.fixture()
def machine():
    from delivery.order.state_machine import build_state_machine

    return build_state_machine()


@pytest.fixture()
def queries():
    from delivery.order.queries import build_queries

    return build_queries()
