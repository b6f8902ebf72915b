"""Domain errors raised by the service layer.

Every error carries enough context (event, status, reason) for a caller to
render an actionable message; no presentation formatting happens here.
"""
from typing import Any, Optional


class SchedulingError(Exception):
    """Base scheduling error."""

    kind = "scheduling_error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.kind, "detail": self.message, **self.context}


class ValidationError(SchedulingError):
    """Malformed input; the caller is responsible for preventing it."""

    kind = "validation_error"

    def __init__(self, field: str, message: str):
        super().__init__(f"Invalid {field}: {message}", field=field)
        self.field = field


class EventNotFound(SchedulingError):
    kind = "event_not_found"

    def __init__(self, event_id: str):
        super().__init__(f"Event {event_id} not found", event_id=event_id)
        self.event_id = event_id


class EventNotActive(SchedulingError):
    """Operation attempted on a CLOSED or CANCELLED event."""

    kind = "event_not_active"

    def __init__(self, event_id: str, status: str, reason: Optional[str] = None):
        message = f"Event {event_id} is {status.lower()}"
        if reason:
            message += f" (reason: {reason})"
        super().__init__(message, event_id=event_id, status=status, reason=reason)
        self.event_id = event_id
        self.status = status
        self.reason = reason


class NotAParticipant(SchedulingError):
    kind = "not_a_participant"

    def __init__(self, event_id: str, user_id: str):
        super().__init__(
            f"User {user_id} is not invited to event {event_id}",
            event_id=event_id,
            user_id=user_id,
        )
        self.event_id = event_id
        self.user_id = user_id


class DeliveryFailure(SchedulingError):
    """The messaging gateway could not reach the user."""

    kind = "delivery_failure"

    def __init__(self, event_id: str, user_id: str):
        super().__init__(
            f"Could not deliver invitation for event {event_id} to user {user_id}",
            event_id=event_id,
            user_id=user_id,
        )
        self.event_id = event_id
        self.user_id = user_id
