"""Pydantic schemas for participants, answers and reminders."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from scheduling.models.participant import ParticipantStatus
from scheduling.models.response_history import EntryKind, ResponseContext


class ParticipantOut(BaseModel):
    participant_id: int
    user_id: str
    username: str
    current_status: ParticipantStatus
    alternative_time: Optional[str] = None
    invited_at: datetime

    model_config = {"from_attributes": True}


class InviteRequest(BaseModel):
    user_id: str
    username: Optional[str] = None
    display_name: Optional[str] = None
    performed_by: str


class ResponseRequest(BaseModel):
    user_id: str
    status: str
    alternative_time: Optional[str] = None


class HistoryEntryOut(BaseModel):
    entry_id: int
    entry_kind: EntryKind
    old_status: Optional[ParticipantStatus] = None
    new_status: ParticipantStatus
    changed_at: datetime
    response_time_seconds: int
    alternative_time: Optional[str] = None
    response_context: ResponseContext
    reminder_count: int
    hours_before_event: float

    model_config = {"from_attributes": True}


class ReminderRequest(BaseModel):
    performed_by: str
    kind: str = ResponseContext.after_reminder.value


class DispatchResult(BaseModel):
    delivered: int
    failed: int
    failed_user_ids: list[str] = []
