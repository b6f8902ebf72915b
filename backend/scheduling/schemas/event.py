"""Pydantic schemas for Events."""
from __future__ import annotations
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field

from scheduling.models.event import EventStatus
from scheduling.models.audit_log import AuditAction
from scheduling.schemas.participant import ParticipantOut


class InviteeIn(BaseModel):
    user_id: str
    username: Optional[str] = None


class EventCreate(BaseModel):
    community_id: str
    community_name: Optional[str] = None
    title: str
    date: str = Field(..., description="DD.MM.YYYY as typed by the organizer")
    time: str = Field(..., description="HH:MM")
    organizer_id: str
    organizer_name: Optional[str] = None
    invitees: list[InviteeIn] = []
    comment: Optional[str] = None
    relative_date: Optional[str] = None
    channel_id: Optional[str] = None
    message_id: Optional[str] = None


class EventCloseRequest(BaseModel):
    performed_by: str


class EventCancelRequest(BaseModel):
    performed_by: str
    reason: Optional[str] = None
    notify: bool = False


class EventOut(BaseModel):
    event_id: str
    community_id: str
    title: str
    date: str
    time: str
    parsed_date: Optional[datetime] = None
    relative_date: Optional[str] = None
    comment: Optional[str] = None
    channel_id: Optional[str] = None
    message_id: Optional[str] = None
    organizer_id: str
    status: EventStatus
    created_at: datetime
    closed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    reminders_sent: int
    start_reminders_sent: int
    participants: list[ParticipantOut] = []

    model_config = {"from_attributes": True}


class EventCancelOut(EventOut):
    notified: Optional[int] = None
    notification_failures: Optional[int] = None


class AuditEntryOut(BaseModel):
    entry_id: int
    event_id: str
    action: AuditAction
    performed_by: str
    performed_at: datetime
    details: Optional[dict[str, Any]] = None

    model_config = {"from_attributes": True}
