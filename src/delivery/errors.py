"""Error taxonomy for the dispatch engine.

Callers branch on the class: validation and not-found errors are input
problems, a state conflict means "try another order" or "try again", an
authorization error means the order belongs to someone else, and an external
service error means a collaborator (repository, directory) failed.

All errors carry a Protean-style ``messages`` dictionary.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError

NotFoundError = ObjectNotFoundError


class DispatchError(Exception):
    def __init__(self, messages: dict | str):
        if isinstance(messages, str):
            messages = {"_entity": [messages]}
        self.messages = messages
        super().__init__(messages)


class StateConflictError(DispatchError):
    """Illegal transition, or a lost race on a conditional write."""


class AuthorizationError(DispatchError):
    """An actor tried to act on an order that is not theirs."""


class ExternalServiceError(DispatchError):
    """A repository, directory, cache or event bus call failed."""


__all__ = [
    "AuthorizationError",
    "DispatchError",
    "ExternalServiceError",
    "NotFoundError",
    "StateConflictError",
    "ValidationError",
]
