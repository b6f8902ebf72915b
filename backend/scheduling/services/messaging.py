"""Messaging gateway contract and the message texts the core sends.

The chat transport itself lives outside this service; anything that can
deliver a direct message and post to a channel satisfies the protocol.
"""
import logging
from typing import Optional, Protocol

from scheduling.models.event import Event

logger = logging.getLogger(__name__)


class MessagingGateway(Protocol):
    def deliver_direct_message(self, user_id: str, content: str) -> bool:
        ...

    def deliver_channel_message(self, channel_id: str, content: str) -> Optional[str]:
        ...


class LoggingGateway:
    """Default gateway: writes every message to the log and reports success."""

    def deliver_direct_message(self, user_id: str, content: str) -> bool:
        logger.info("DM to %s: %s", user_id, content.splitlines()[0] if content else "")
        return True

    def deliver_channel_message(self, channel_id: str, content: str) -> Optional[str]:
        logger.info("Channel %s: %s", channel_id, content.splitlines()[0] if content else "")
        return None


_default_gateway = LoggingGateway()


def get_gateway() -> MessagingGateway:
    """FastAPI dependency; tests override it with a recording gateway."""
    return _default_gateway


def _when(event: Event) -> str:
    return f"{event.date} {event.time}"


def invitation_message(event: Event) -> str:
    lines = [f"You are invited to '{event.title}' on {_when(event)}."]
    if event.relative_date:
        lines.append(f"That is {event.relative_date}.")
    if event.comment:
        lines.append(event.comment)
    lines.append("Please let the organizer know whether you can make it.")
    return "\n".join(lines)


def reminder_message(event: Event) -> str:
    return (
        f"Reminder: you have not answered the invitation to '{event.title}' on {_when(event)} yet.\n"
        "Please respond so the organizer can plan."
    )


def start_reminder_message(event: Event) -> str:
    return f"'{event.title}' starts soon ({_when(event)}). See you there!"


def cancellation_message(event: Event) -> str:
    text = f"'{event.title}' on {_when(event)} has been cancelled."
    if event.cancellation_reason:
        text += f"\nReason: {event.cancellation_reason}"
    return text
