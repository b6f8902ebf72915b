"""AuditLogEntry ORM model: append-only record of administrative actions."""
import enum

from sqlalchemy import Column, Integer, String, DateTime, JSON, ForeignKey, Index, Enum as SAEnum
from sqlalchemy import event as sa_event
from sqlalchemy.orm import relationship

from scheduling.database import Base, enum_values
from scheduling.timeutils import utcnow


class AuditAction(str, enum.Enum):
    event_created = "EVENT_CREATED"
    event_closed = "EVENT_CLOSED"
    event_cancelled = "EVENT_CANCELLED"
    participant_invited = "PARTICIPANT_INVITED"
    participant_removed = "PARTICIPANT_REMOVED"
    reminder_sent = "REMINDER_SENT"
    start_reminder_sent = "START_REMINDER_SENT"


class AuditLogEntry(Base):
    __tablename__ = "audit_log_entries"
    __table_args__ = (
        Index("ix_audit_log_entries_event_performed_at", "event_id", "performed_at"),
    )

    entry_id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(36), ForeignKey("events.event_id", ondelete="CASCADE"), nullable=False)
    action = Column(SAEnum(AuditAction, name="audit_action", values_callable=enum_values), nullable=False)
    performed_by = Column(String(64), nullable=False, index=True)  # external user id
    performed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    details = Column(JSON, nullable=True)

    event = relationship("Event", back_populates="audit_entries")


@sa_event.listens_for(AuditLogEntry, "before_update")
def _reject_update(mapper, connection, target):
    raise ValueError(f"audit log entry {target.entry_id} is immutable")
