"""Event API routes — delegates to event_service for state machine enforcement."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from scheduling.config import settings
from scheduling.database import get_db
from scheduling.models.event import EventStatus
from scheduling.schemas.event import (
    EventCreate,
    EventOut,
    EventCloseRequest,
    EventCancelRequest,
    EventCancelOut,
    AuditEntryOut,
)
from scheduling.services import event_service, audit_service, reminder_service
from scheduling.services.lookup import get_event as lookup_event
from scheduling.services.messaging import MessagingGateway, get_gateway

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=EventOut, status_code=status.HTTP_201_CREATED)
def create_event(
    payload: EventCreate,
    db: Session = Depends(get_db),
    gateway: MessagingGateway = Depends(get_gateway),
):
    """Create an event and invite everyone listed."""
    if len(payload.invitees) > settings.MAX_PARTICIPANTS_PER_EVENT:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"At most {settings.MAX_PARTICIPANTS_PER_EVENT} participants per event",
        )
    return event_service.create_event(
        db=db,
        community_id=payload.community_id,
        title=payload.title,
        date=payload.date,
        time=payload.time,
        organizer_id=payload.organizer_id,
        invitees=[invitee.user_id for invitee in payload.invitees],
        usernames={i.user_id: i.username for i in payload.invitees if i.username},
        community_name=payload.community_name,
        organizer_name=payload.organizer_name,
        comment=payload.comment,
        relative_date=payload.relative_date,
        channel_id=payload.channel_id,
        message_id=payload.message_id,
        gateway=gateway,
    )


@router.get("/", response_model=list[EventOut])
def list_events(
    community_id: str = Query(...),
    status_filter: Optional[EventStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
):
    """List a community's events, newest first."""
    return event_service.list_events(db, community_id, status_filter)


@router.get("/{event_id}", response_model=EventOut)
def get_event(event_id: str, db: Session = Depends(get_db)):
    """Fetch a single event with its participants."""
    return lookup_event(db, event_id)


@router.post("/{event_id}/close", response_model=EventOut)
def close_event(event_id: str, payload: EventCloseRequest, db: Session = Depends(get_db)):
    return event_service.close_event(db, event_id, payload.performed_by)


@router.post("/{event_id}/cancel", response_model=EventCancelOut)
def cancel_event(
    event_id: str,
    payload: EventCancelRequest,
    db: Session = Depends(get_db),
    gateway: MessagingGateway = Depends(get_gateway),
):
    """Cancel an event; with ``notify`` attendees get a direct message."""
    event = event_service.cancel_event(db, event_id, payload.performed_by, payload.reason)
    out = EventCancelOut.model_validate(event)
    if payload.notify:
        result = reminder_service.notify_cancellation(db, gateway, event_id)
        out.notified = result["delivered"]
        out.notification_failures = result["failed"]
    return out


@router.get("/{event_id}/audit", response_model=list[AuditEntryOut])
def get_audit_log(event_id: str, db: Session = Depends(get_db)):
    lookup_event(db, event_id)
    return audit_service.list_for_event(db, event_id)
