"""Fake observer — records notifications for testing."""

from delivery.errors import ExternalServiceError
from delivery.notify.port import ObserverPort


class FakeObserver(ObserverPort):
    """Observer that records notifications in memory for test assertions."""

    def __init__(self, audience: str):
        self.audience = audience
        self.notifications: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Observer unreachable"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Observer unreachable"):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def notify(self, recipient_id: str, topic: str, payload: dict) -> None:
        if not self.should_succeed:
            raise ExternalServiceError({self.audience: [self.failure_reason]})
        self.notifications.append({"recipient_id": recipient_id, "topic": topic, "payload": payload})

    def topics(self) -> list[str]:
        return [n["topic"] for n in self.notifications]

    def reset(self):
        """Clear recorded notifications (useful between tests)."""
        self.notifications.clear()
        self.should_succeed = True
        self.failure_reason = "Observer unreachable"
