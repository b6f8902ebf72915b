"""Event ORM model and its one-way status machine."""
import enum
from datetime import datetime
from typing import Optional
import uuid

from sqlalchemy import Column, String, Text, DateTime, Integer, ForeignKey, Index, Enum as SAEnum
from sqlalchemy.orm import relationship

from scheduling.database import Base, enum_values
from scheduling.timeutils import ensure_utc, utcnow


class EventStatus(str, enum.Enum):
    active = "ACTIVE"
    closed = "CLOSED"
    cancelled = "CANCELLED"


# CLOSED and CANCELLED are terminal.
ALLOWED_TRANSITIONS = {
    EventStatus.active: frozenset({EventStatus.closed, EventStatus.cancelled}),
    EventStatus.closed: frozenset(),
    EventStatus.cancelled: frozenset(),
}


def new_event_id(now: Optional[datetime] = None) -> str:
    """Opaque id that sorts by creation time (``now``, defaulting to the clock)."""
    millis = int(ensure_utc(now or utcnow()).timestamp() * 1000)
    return f"{millis:013d}-{uuid.uuid4().hex[:12]}"


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        Index("ix_events_community_created_at", "community_id", "created_at"),
        Index("ix_events_community_status", "community_id", "status"),
    )

    event_id = Column(String(36), primary_key=True, default=new_event_id)
    community_id = Column(
        String(64), ForeignKey("communities.community_id", ondelete="CASCADE"), nullable=False
    )
    title = Column(String(255), nullable=False)
    date = Column(String(20), nullable=False)  # as typed by the organizer, e.g. 24.12.2030
    time = Column(String(10), nullable=False)  # e.g. 19:30
    parsed_date = Column(DateTime(timezone=True), nullable=True)
    relative_date = Column(String(100), nullable=True)
    comment = Column(Text, nullable=True)
    channel_id = Column(String(64), nullable=True)
    message_id = Column(String(64), nullable=True)
    organizer_id = Column(String(64), nullable=False, index=True)
    status = Column(
        SAEnum(EventStatus, name="event_status", values_callable=enum_values),
        nullable=False,
        default=EventStatus.active,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(String(500), nullable=True)
    reminders_sent = Column(Integer, nullable=False, default=0)
    start_reminders_sent = Column(Integer, nullable=False, default=0)

    participants = relationship(
        "Participant",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="Participant.participant_id",
    )
    audit_entries = relationship(
        "AuditLogEntry",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="AuditLogEntry.entry_id",
    )

    @property
    def is_active(self) -> bool:
        return self.status == EventStatus.active
