"""Reminder dispatch: deliver through the gateway, then record checkpoints.

Only participants the gateway actually reached get a checkpoint row.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from scheduling.models.event import Event
from scheduling.models.participant import Participant, ParticipantStatus, ATTENDING_STATUSES
from scheduling.models.response_history import ResponseContext
from scheduling.services.lookup import get_event, require_active
from scheduling.services.messaging import (
    MessagingGateway,
    reminder_message,
    start_reminder_message,
    cancellation_message,
)
from scheduling.services.participant_service import mark_reminder_sent, list_participants

logger = logging.getLogger(__name__)


def _deliver(
    gateway: MessagingGateway, event: Event, participants: list[Participant], build: Callable[[Event], str]
) -> tuple[list[Participant], list[Participant]]:
    content = build(event)
    delivered, failed = [], []
    for participant in participants:
        if gateway.deliver_direct_message(participant.user_id, content):
            delivered.append(participant)
        else:
            logger.warning("Could not reach %s for event %s", participant.user_id, event.event_id)
            failed.append(participant)
    return delivered, failed


def _dispatch(
    db: Session,
    gateway: MessagingGateway,
    event_id: str,
    performed_by: str,
    statuses,
    kind: ResponseContext,
    build: Callable[[Event], str],
    now: Optional[datetime],
) -> dict:
    event = get_event(db, event_id)
    require_active(event)
    recipients = list_participants(db, event_id, statuses)
    delivered, failed = _deliver(gateway, event, recipients, build)
    if delivered:
        mark_reminder_sent(db, event_id, [p.participant_id for p in delivered], kind, performed_by, now=now)
    return {
        "delivered": len(delivered),
        "failed": len(failed),
        "failed_user_ids": [p.user_id for p in failed],
    }


def send_reminders(
    db: Session, gateway: MessagingGateway, event_id: str, performed_by: str, now: Optional[datetime] = None
) -> dict:
    """Nudge everyone who has not answered yet."""
    return _dispatch(
        db, gateway, event_id, performed_by,
        [ParticipantStatus.pending], ResponseContext.after_reminder, reminder_message, now,
    )


def send_start_reminders(
    db: Session, gateway: MessagingGateway, event_id: str, performed_by: str, now: Optional[datetime] = None
) -> dict:
    """Tell everyone who is coming that the event is about to start."""
    return _dispatch(
        db, gateway, event_id, performed_by,
        ATTENDING_STATUSES, ResponseContext.after_start_reminder, start_reminder_message, now,
    )


def notify_cancellation(db: Session, gateway: MessagingGateway, event_id: str) -> dict:
    """Tell attendees of a cancelled event; nothing is written to the ledger."""
    event = get_event(db, event_id)
    recipients = list_participants(db, event_id, ATTENDING_STATUSES)
    delivered, failed = _deliver(gateway, event, recipients, cancellation_message)
    logger.info("Cancellation of %s delivered to %d, failed for %d", event_id, len(delivered), len(failed))
    return {
        "delivered": len(delivered),
        "failed": len(failed),
        "failed_user_ids": [p.user_id for p in failed],
    }
