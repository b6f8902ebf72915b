"""Participant API routes — invitations, answers, removals and reminders."""
import logging
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from scheduling.config import settings
from scheduling.database import get_db
from scheduling.models.response_history import ResponseContext
from scheduling.schemas.participant import (
    ParticipantOut,
    InviteRequest,
    ResponseRequest,
    HistoryEntryOut,
    ReminderRequest,
    DispatchResult,
)
from scheduling.services import participant_service, reminder_service
from scheduling.services.lookup import get_event, find_participant
from scheduling.services.messaging import MessagingGateway, get_gateway

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/{event_id}/participants", response_model=list[ParticipantOut])
def list_participants(event_id: str, db: Session = Depends(get_db)):
    return participant_service.list_participants(db, event_id)


@router.post("/{event_id}/participants", response_model=ParticipantOut, status_code=status.HTTP_201_CREATED)
def invite_participant(
    event_id: str,
    payload: InviteRequest,
    db: Session = Depends(get_db),
    gateway: MessagingGateway = Depends(get_gateway),
):
    """Invite a user; inviting an existing participant returns it unchanged."""
    event = get_event(db, event_id)
    already_invited = find_participant(db, event, payload.user_id) is not None
    if not already_invited and len(event.participants) >= settings.MAX_PARTICIPANTS_PER_EVENT:
        logger.warning("Event %s is full, rejected %s", event_id, payload.user_id)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Event already has {settings.MAX_PARTICIPANTS_PER_EVENT} participants",
        )
    return participant_service.invite_participant(
        db,
        event_id,
        payload.user_id,
        payload.performed_by,
        username=payload.username,
        display_name=payload.display_name,
        gateway=gateway,
    )


@router.delete("/{event_id}/participants/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_participant(
    event_id: str,
    user_id: str,
    performed_by: str = Query(...),
    db: Session = Depends(get_db),
):
    participant_service.remove_participant(db, event_id, user_id, performed_by)


@router.post("/{event_id}/responses", response_model=ParticipantOut)
def record_response(event_id: str, payload: ResponseRequest, db: Session = Depends(get_db)):
    """Record an answer (participants may change their mind while the event is active)."""
    return participant_service.record_response(
        db, event_id, payload.user_id, payload.status, payload.alternative_time
    )


@router.get("/{event_id}/participants/{user_id}/history", response_model=list[HistoryEntryOut])
def get_history(event_id: str, user_id: str, db: Session = Depends(get_db)):
    return participant_service.get_participant_history(db, event_id, user_id)


@router.post("/{event_id}/reminders", response_model=DispatchResult)
def send_reminders(
    event_id: str,
    payload: ReminderRequest,
    db: Session = Depends(get_db),
    gateway: MessagingGateway = Depends(get_gateway),
):
    """Deliver reminders (AFTER_REMINDER) or start reminders (AFTER_START_REMINDER)."""
    if payload.kind == ResponseContext.after_reminder.value:
        return reminder_service.send_reminders(db, gateway, event_id, payload.performed_by)
    if payload.kind == ResponseContext.after_start_reminder.value:
        return reminder_service.send_start_reminders(db, gateway, event_id, payload.performed_by)
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown reminder kind {payload.kind}")
