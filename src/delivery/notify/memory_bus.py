"""In-memory event bus — keeps published messages for inspection."""

from delivery.errors import ExternalServiceError
from delivery.notify.port import EventBusPort


class MemoryEventBus(EventBusPort):
    def __init__(self):
        self.published: list[tuple[str, dict]] = []
        self.should_succeed = True
        self.failure_reason = "Event bus unavailable"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Event bus unavailable"):
        """Configure the adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def publish(self, topic: str, payload: dict) -> None:
        if not self.should_succeed:
            raise ExternalServiceError({"event_bus": [self.failure_reason]})
        self.published.append((topic, payload))

    def messages(self, topic: str) -> list[dict]:
        return [payload for t, payload in self.published if t == topic]

    def reset(self):
        self.published.clear()
        self.should_succeed = True
        self.failure_reason = "Event bus unavailable"
