"""Delivery bounded context — Order Dispatch for the local pharmacy marketplace.

Handles the order lifecycle from checkout through courier hand-off and
settlement, nearest-courier assignment, and the lifecycle notifications sent
to pharmacies, requesters and the courier pool. Uses CQRS: orders are stored
as current state and mutated through guarded conditional writes.
"""

from protean.domain import Domain

from delivery.utils.logging import configure_logging, get_logger

# Configure logging for the application
configure_logging()

logger = get_logger(__name__)

# Domain Composition Root
delivery = Domain(name="delivery")
