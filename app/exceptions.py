"""Error taxonomy for the relay."""

from __future__ import annotations

from typing import Optional


class RelayError(Exception):
    """Base exception for all relay errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class PayloadValidationError(RelayError):
    """Inbound payload is malformed or not a message we handle. Acked and ignored."""

    pass


class EventAlreadyExistsError(RelayError):
    """An event with this id was already recorded (duplicate delivery)."""

    def __init__(self, event_id: str) -> None:
        super().__init__(f"Event already recorded: {event_id}")
        self.event_id = event_id


class EventNotFoundError(RelayError):
    """No event with this id exists."""

    def __init__(self, event_id: str) -> None:
        super().__init__(f"Event not found: {event_id}")
        self.event_id = event_id


class TurnNotFoundError(RelayError):
    """No conversation turn matches."""

    pass


class AnswerAlreadySetError(RelayError):
    """The turn already has an answer; answers are written once."""

    def __init__(self, turn_id: int) -> None:
        super().__init__(f"Answer already set for turn {turn_id}")
        self.turn_id = turn_id


class StorageError(RelayError):
    """Persistence failed. Fatal to the request that triggered it."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None) -> None:
        detail = f"{operation} failed"
        if cause is not None:
            detail = f"{detail}: {cause}"
        super().__init__(detail)
        self.operation = operation


class CompletionError(RelayError):
    """The completion endpoint failed, timed out, or returned nothing."""

    pass


class SendError(RelayError):
    """The reply could not be delivered to the chat platform."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
