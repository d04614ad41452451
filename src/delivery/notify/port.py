"""Notification ports — observers of one audience and the external event bus."""

from abc import ABC, abstractmethod


class ObserverPort(ABC):
    """Pushes a lifecycle update to the connected clients of one audience."""

    @abstractmethod
    def notify(self, recipient_id: str, topic: str, payload: dict) -> None:
        """Deliver ``payload`` under ``topic`` to ``recipient_id``.

        Raises on delivery failure; the dispatcher logs and drops it.
        """
        ...


class EventBusPort(ABC):
    """Publishes lifecycle updates to external subscribers."""

    @abstractmethod
    def publish(self, topic: str, payload: dict) -> None: ...
