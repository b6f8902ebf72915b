"""Shared lookups and guards used by every write path."""
from typing import Optional

from sqlalchemy.orm import Session

from scheduling.errors import EventNotFound, EventNotActive, NotAParticipant
from scheduling.models.event import Event
from scheduling.models.identity import Identity
from scheduling.models.participant import Participant


def get_event(db: Session, event_id: str) -> Event:
    event = db.query(Event).filter(Event.event_id == event_id).first()
    if not event:
        raise EventNotFound(event_id)
    return event


def require_active(event: Event) -> None:
    """Reject writes to CLOSED/CANCELLED events, surfacing the cancellation reason."""
    if not event.is_active:
        raise EventNotActive(event.event_id, event.status.value, event.cancellation_reason)


def find_participant(
    db: Session, event: Event, user_id: str, for_update: bool = False
) -> Optional[Participant]:
    query = (
        db.query(Participant)
        .join(Identity, Participant.identity_id == Identity.identity_id)
        .filter(Participant.event_id == event.event_id, Identity.user_id == user_id)
    )
    if for_update:
        # Concurrent answers of the same participant serialize here (no-op on SQLite).
        query = query.with_for_update(of=Participant)
    return query.first()


def get_participant(db: Session, event: Event, user_id: str, for_update: bool = False) -> Participant:
    participant = find_participant(db, event, user_id, for_update=for_update)
    if not participant:
        raise NotAParticipant(event.event_id, user_id)
    return participant
