"""Participant lifecycle and the response ledger.

Every write appends to ResponseHistory in the same transaction that
changes ``Participant.current_status``; ledger rows are never updated.
"""
import logging
import re
from datetime import datetime
from typing import Iterable, Optional, Union

from sqlalchemy import func
from sqlalchemy.orm import Session

from scheduling.database import atomic
from scheduling.errors import DeliveryFailure, ValidationError
from scheduling.models.audit_log import AuditAction
from scheduling.models.event import Event
from scheduling.models.identity import Identity
from scheduling.models.participant import Participant, ParticipantStatus, ANSWERED_STATUSES
from scheduling.models.response_history import (
    ResponseHistory,
    EntryKind,
    ResponseContext,
    REMINDER_CONTEXTS,
)
from scheduling.services import audit_service, identity_service
from scheduling.services.lookup import get_event, require_active, get_participant
from scheduling.services.messaging import MessagingGateway, invitation_message
from scheduling.services.metrics import LAST_MINUTE_HOURS
from scheduling.timeutils import utcnow, hours_until, elapsed_seconds

logger = logging.getLogger(__name__)

_ALTERNATIVE_TIME = re.compile(r"^(\d{1,2}):(\d{2})$")


def _coerce_status(value: Union[str, ParticipantStatus]) -> ParticipantStatus:
    try:
        status = ParticipantStatus(value)
    except ValueError:
        raise ValidationError("status", f"unknown participant status {value!r}")
    if status not in ANSWERED_STATUSES:
        raise ValidationError("status", "PENDING is not an answer")
    return status


def _normalize_alternative_time(value: Optional[str]) -> str:
    match = _ALTERNATIVE_TIME.match((value or "").strip())
    if not match:
        raise ValidationError("alternative_time", "OTHER_TIME needs a time in HH:MM format")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValidationError("alternative_time", f"{value} is not a time of day")
    return f"{hour:02d}:{minute:02d}"


def _reminders_before(db: Session, participant: Participant) -> int:
    return db.query(func.count(ResponseHistory.entry_id)).filter(
        ResponseHistory.participant_id == participant.participant_id,
        ResponseHistory.entry_kind == EntryKind.checkpoint,
        ResponseHistory.response_context == ResponseContext.after_reminder,
    ).scalar() or 0


def add_participant(
    db: Session,
    event: Event,
    identity: Identity,
    performed_by: str,
    gateway: Optional[MessagingGateway] = None,
    now: Optional[datetime] = None,
) -> tuple[Participant, bool]:
    """Invite ``identity`` inside the caller's transaction.

    Returns ``(participant, created)``. An existing participant is returned
    untouched. With a gateway the invitation is two-phase: the participant
    is written tentatively, and removed again when delivery fails.
    """
    now = now or utcnow()
    existing = (
        db.query(Participant)
        .filter(Participant.event_id == event.event_id, Participant.identity_id == identity.identity_id)
        .first()
    )
    if existing:
        return existing, False

    require_active(event)
    participant = Participant(
        event=event,
        identity=identity,
        invited_at=now,
        current_status=ParticipantStatus.pending,
    )
    participant.history.append(ResponseHistory(
        entry_kind=EntryKind.transition,
        old_status=None,
        new_status=ParticipantStatus.pending,
        changed_at=now,
        response_time_seconds=0,
        response_context=ResponseContext.initial,
        reminder_count=0,
        hours_before_event=hours_until(event.parsed_date, now),
    ))
    db.add(participant)
    db.flush()

    if gateway is not None and not gateway.deliver_direct_message(identity.user_id, invitation_message(event)):
        event.participants.remove(participant)
        db.flush()
        logger.warning("Invitation for event %s could not reach %s", event.event_id, identity.user_id)
        raise DeliveryFailure(event.event_id, identity.user_id)

    identity_service.count_invite(identity, now)
    audit_service.record(
        db, event, AuditAction.participant_invited, performed_by,
        {"user_id": identity.user_id, "username": identity.username},
        now=now,
    )
    return participant, True


def invite_participant(
    db: Session,
    event_id: str,
    user_id: str,
    performed_by: str,
    username: Optional[str] = None,
    display_name: Optional[str] = None,
    gateway: Optional[MessagingGateway] = None,
    now: Optional[datetime] = None,
) -> Participant:
    """Invite one user. Inviting an existing participant is a no-op."""
    now = now or utcnow()
    with atomic(db):
        event = get_event(db, event_id)
        identity = identity_service.ensure_identity(
            db, event.community_id, user_id, username, display_name, now=now
        )
        participant, created = add_participant(db, event, identity, performed_by, gateway, now)
    if created:
        logger.info("Invited %s to event %s", user_id, event_id)
    db.refresh(participant)
    return participant


def record_response(
    db: Session,
    event_id: str,
    user_id: str,
    new_status: Union[str, ParticipantStatus],
    alternative_time: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Participant:
    """Store an answer and append its transition row in one commit."""
    now = now or utcnow()
    status = _coerce_status(new_status)
    if status == ParticipantStatus.other_time:
        alternative_time = _normalize_alternative_time(alternative_time)
    else:
        alternative_time = None

    with atomic(db):
        event = get_event(db, event_id)
        require_active(event)
        participant = get_participant(db, event, user_id, for_update=True)
        previous = participant.current_status

        hours_before = hours_until(event.parsed_date, now)
        context = ResponseContext.last_minute if hours_before < LAST_MINUTE_HOURS else ResponseContext.initial
        row = ResponseHistory(
            participant_id=participant.participant_id,
            entry_kind=EntryKind.transition,
            old_status=previous,
            new_status=status,
            changed_at=now,
            response_time_seconds=elapsed_seconds(participant.invited_at, now),
            alternative_time=alternative_time,
            response_context=context,
            reminder_count=_reminders_before(db, participant),
            hours_before_event=hours_before,
        )
        db.add(row)
        participant.current_status = status
        participant.alternative_time = alternative_time
        identity_service.count_response(db, participant.identity, now)

    logger.info(
        "Recorded response %s -> %s for %s on event %s",
        previous.value, status.value, user_id, event_id,
    )
    db.refresh(participant)
    return participant


def remove_participant(
    db: Session,
    event_id: str,
    user_id: str,
    performed_by: str,
    now: Optional[datetime] = None,
) -> None:
    """Hard-delete a participant together with its ledger rows."""
    now = now or utcnow()
    with atomic(db):
        event = get_event(db, event_id)
        require_active(event)
        participant = get_participant(db, event, user_id)
        identity = participant.identity
        answers = sum(1 for row in participant.history if row.is_answer)
        details = {
            "user_id": identity.user_id,
            "username": identity.username,
            "status": participant.current_status.value,
        }

        event.participants.remove(participant)
        db.flush()
        identity_service.forget_participation(db, identity, answers)
        audit_service.record(db, event, AuditAction.participant_removed, performed_by, details, now=now)
    logger.info("Removed %s from event %s", user_id, event_id)


def mark_reminder_sent(
    db: Session,
    event_id: str,
    participant_ids: Iterable[int],
    kind: Union[str, ResponseContext],
    performed_by: str,
    now: Optional[datetime] = None,
) -> list[ResponseHistory]:
    """Append a checkpoint row per participant and one audit entry per batch."""
    now = now or utcnow()
    try:
        kind = ResponseContext(kind)
    except ValueError:
        raise ValidationError("kind", f"unknown reminder kind {kind!r}")
    if kind not in REMINDER_CONTEXTS:
        raise ValidationError("kind", f"{kind.value} is not a reminder kind")
    participant_ids = list(dict.fromkeys(participant_ids))
    if not participant_ids:
        raise ValidationError("participant_ids", "at least one participant is required")

    with atomic(db):
        event = get_event(db, event_id)
        require_active(event)
        hours_before = hours_until(event.parsed_date, now)

        # Counter first: on SQLite the UPDATE takes the write lock before
        # the participants are read.
        if kind == ResponseContext.after_reminder:
            counter, action = Event.reminders_sent, AuditAction.reminder_sent
        else:
            counter, action = Event.start_reminders_sent, AuditAction.start_reminder_sent
        db.query(Event).filter(Event.event_id == event.event_id).update(
            {counter: counter + 1}, synchronize_session=False
        )

        locked = (
            db.query(Participant)
            .filter(
                Participant.participant_id.in_(participant_ids),
                Participant.event_id == event.event_id,
            )
            .with_for_update()
            .populate_existing()
            .all()
        )
        by_id = {p.participant_id: p for p in locked}
        unknown = [pid for pid in participant_ids if pid not in by_id]
        if unknown:
            raise ValidationError("participant_ids", f"not participants of event {event_id}: {unknown}")

        rows = []
        for pid in participant_ids:
            participant = by_id[pid]
            reminders = _reminders_before(db, participant)
            if kind == ResponseContext.after_reminder:
                reminders += 1
            row = ResponseHistory(
                participant_id=pid,
                entry_kind=EntryKind.checkpoint,
                old_status=participant.current_status,
                new_status=participant.current_status,
                changed_at=now,
                response_time_seconds=0,
                alternative_time=participant.alternative_time,
                response_context=kind,
                reminder_count=reminders,
                hours_before_event=hours_before,
            )
            db.add(row)
            rows.append(row)

        audit_service.record(
            db, event, action, performed_by,
            {"participant_ids": participant_ids, "count": len(rows)},
            now=now,
        )

    logger.info("Recorded %s for %d participants of event %s", kind.value, len(rows), event_id)
    return rows


def list_participants(
    db: Session, event_id: str, statuses: Optional[Iterable[ParticipantStatus]] = None
) -> list[Participant]:
    event = get_event(db, event_id)
    query = db.query(Participant).filter(Participant.event_id == event.event_id)
    if statuses is not None:
        query = query.filter(Participant.current_status.in_(list(statuses)))
    return query.order_by(Participant.participant_id).all()


def get_history(db: Session, participant: Participant) -> list[ResponseHistory]:
    return (
        db.query(ResponseHistory)
        .filter(ResponseHistory.participant_id == participant.participant_id)
        .order_by(ResponseHistory.changed_at, ResponseHistory.entry_id)
        .all()
    )


def get_participant_history(db: Session, event_id: str, user_id: str) -> list[ResponseHistory]:
    event = get_event(db, event_id)
    return get_history(db, get_participant(db, event, user_id))


def verify_ledger(db: Session, participant: Participant) -> bool:
    """True when the current status mirrors the newest ledger row."""
    history = get_history(db, participant)
    if not history:
        return False
    return history[-1].new_status == participant.current_status

