"""Event service: creation and the ACTIVE -> CLOSED/CANCELLED lifecycle.

Responsibilities:
- Validate and parse the organizer's free-form date/time
- Upsert the community and organizer identity lazily
- Invite every invitee through the two-phase gateway handshake
- Enforce the one-way status machine via ALLOWED_TRANSITIONS
- Append an audit row for every administrative write
"""
import logging
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy.orm import Session

from scheduling.config import settings
from scheduling.database import atomic
from scheduling.errors import DeliveryFailure, EventNotActive, ValidationError
from scheduling.models.audit_log import AuditAction
from scheduling.models.event import Event, EventStatus, ALLOWED_TRANSITIONS, new_event_id
from scheduling.services import audit_service, identity_service
from scheduling.services.lookup import get_event
from scheduling.services.messaging import MessagingGateway, invitation_message
from scheduling.services.participant_service import add_participant
from scheduling.timeutils import utcnow, parse_event_datetime

logger = logging.getLogger(__name__)


def _require_text(field: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field, "must be a non-empty string")
    return value.strip()


def _event_snapshot(event: Event) -> dict[str, Any]:
    """JSON-safe summary of an event for the audit log."""
    return {
        "title": event.title,
        "date": event.date,
        "time": event.time,
        "parsed_date": event.parsed_date.isoformat() if event.parsed_date else None,
        "status": event.status.value if event.status else None,
    }


def create_event(
    db: Session,
    community_id: str,
    title: str,
    date: str,
    time: str,
    organizer_id: str,
    invitees: Iterable[str] = (),
    usernames: Optional[dict[str, str]] = None,
    community_name: Optional[str] = None,
    organizer_name: Optional[str] = None,
    comment: Optional[str] = None,
    relative_date: Optional[str] = None,
    channel_id: Optional[str] = None,
    message_id: Optional[str] = None,
    gateway: Optional[MessagingGateway] = None,
    now: Optional[datetime] = None,
) -> Event:
    """Create an ACTIVE event and invite ``invitees``.

    Invitees the gateway cannot reach are left out; the event is created
    regardless.
    """
    now = now or utcnow()
    community_id = _require_text("community_id", community_id)
    organizer_id = _require_text("organizer_id", organizer_id)
    title = _require_text("title", title)
    date = _require_text("date", date)
    time = _require_text("time", time)
    usernames = usernames or {}

    with atomic(db):
        identity_service.ensure_community(db, community_id, community_name, now=now)
        identity_service.ensure_identity(db, community_id, organizer_id, organizer_name, now=now)

        event = Event(
            event_id=new_event_id(now),
            community_id=community_id,
            title=title,
            date=date,
            time=time,
            parsed_date=parse_event_datetime(date, time, settings.EVENT_TIMEZONE),
            relative_date=relative_date,
            comment=comment,
            channel_id=channel_id,
            message_id=message_id,
            organizer_id=organizer_id,
            status=EventStatus.active,
            created_at=now,
            reminders_sent=0,
            start_reminders_sent=0,
        )
        if event.parsed_date is None:
            logger.warning("Could not parse '%s %s' for event %s", date, time, title)
        db.add(event)
        db.flush()

        if gateway is not None and channel_id and not message_id:
            event.message_id = gateway.deliver_channel_message(channel_id, invitation_message(event))

        audit_service.record(db, event, AuditAction.event_created, organizer_id, _event_snapshot(event), now=now)

        for user_id in dict.fromkeys(invitees):
            identity = identity_service.ensure_identity(
                db, community_id, user_id, usernames.get(user_id), now=now
            )
            try:
                add_participant(db, event, identity, organizer_id, gateway, now)
            except DeliveryFailure:
                continue

    logger.info(
        "Created event %s '%s' in community %s with %d participants",
        event.event_id, title, community_id, len(event.participants),
    )
    db.refresh(event)
    return event


def list_events(db: Session, community_id: str, status: Optional[EventStatus] = None) -> list[Event]:
    query = db.query(Event).filter(Event.community_id == community_id)
    if status is not None:
        query = query.filter(Event.status == status)
    return query.order_by(Event.created_at.desc(), Event.event_id.desc()).all()


def _transition(event: Event, target: EventStatus) -> None:
    if target not in ALLOWED_TRANSITIONS[event.status]:
        logger.warning(
            "Rejected %s -> %s for event %s", event.status.value, target.value, event.event_id
        )
        raise EventNotActive(event.event_id, event.status.value, event.cancellation_reason)
    event.status = target


def close_event(db: Session, event_id: str, performed_by: str, now: Optional[datetime] = None) -> Event:
    """ACTIVE -> CLOSED."""
    now = now or utcnow()
    with atomic(db):
        event = get_event(db, event_id)
        _transition(event, EventStatus.closed)
        event.closed_at = now
        audit_service.record(db, event, AuditAction.event_closed, performed_by, _event_snapshot(event), now=now)
    logger.info("Closed event %s", event_id)
    db.refresh(event)
    return event


def cancel_event(
    db: Session,
    event_id: str,
    performed_by: str,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Event:
    """ACTIVE -> CANCELLED, keeping the reason for later rejections."""
    now = now or utcnow()
    reason = reason.strip() if reason and reason.strip() else None
    with atomic(db):
        event = get_event(db, event_id)
        _transition(event, EventStatus.cancelled)
        event.cancelled_at = now
        event.cancellation_reason = reason
        details = _event_snapshot(event)
        details["reason"] = reason
        audit_service.record(db, event, AuditAction.event_cancelled, performed_by, details, now=now)
    logger.info("Cancelled event %s (reason: %s)", event_id, reason)
    db.refresh(event)
    return event
