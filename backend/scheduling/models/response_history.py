"""ResponseHistory ORM model: append-only ledger of participant answers.

Two kinds of rows live here:

* TRANSITION rows: the initial PENDING row written at invitation
  (old_status is NULL) and one row for every answer.
* CHECKPOINT rows: a reminder reached the participant; old_status and
  new_status both equal the status at that moment.

Analytics must never count checkpoints as answers.
"""
import enum

from sqlalchemy import Column, Integer, Float, String, DateTime, ForeignKey, Index, Enum as SAEnum
from sqlalchemy import event as sa_event
from sqlalchemy.orm import relationship

from scheduling.database import Base, enum_values
from scheduling.models.participant import participant_status_type
from scheduling.timeutils import utcnow


class EntryKind(str, enum.Enum):
    transition = "TRANSITION"
    checkpoint = "CHECKPOINT"


class ResponseContext(str, enum.Enum):
    initial = "INITIAL"
    after_reminder = "AFTER_REMINDER"
    after_start_reminder = "AFTER_START_REMINDER"
    last_minute = "LAST_MINUTE"


REMINDER_CONTEXTS = frozenset({ResponseContext.after_reminder, ResponseContext.after_start_reminder})


class ResponseHistory(Base):
    __tablename__ = "response_history"
    __table_args__ = (
        Index("ix_response_history_participant_changed_at", "participant_id", "changed_at"),
    )

    entry_id = Column(Integer, primary_key=True, autoincrement=True)
    participant_id = Column(
        Integer, ForeignKey("participants.participant_id", ondelete="CASCADE"), nullable=False
    )
    entry_kind = Column(
        SAEnum(EntryKind, name="entry_kind", values_callable=enum_values),
        nullable=False,
        default=EntryKind.transition,
    )
    old_status = Column(participant_status_type(), nullable=True)
    new_status = Column(participant_status_type(), nullable=False)
    changed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    response_time_seconds = Column(Integer, nullable=False, default=0)
    alternative_time = Column(String(20), nullable=True)
    response_context = Column(
        SAEnum(ResponseContext, name="response_context", values_callable=enum_values),
        nullable=False,
        default=ResponseContext.initial,
    )
    reminder_count = Column(Integer, nullable=False, default=0)
    hours_before_event = Column(Float, nullable=False, default=0.0)

    participant = relationship("Participant", back_populates="history")

    @property
    def is_answer(self) -> bool:
        return self.entry_kind == EntryKind.transition and self.old_status is not None


@sa_event.listens_for(ResponseHistory, "before_update")
def _reject_update(mapper, connection, target):
    raise ValueError(f"response_history row {target.entry_id} is immutable")
