"""Participant ORM model: current answer of one identity for one event."""
import enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, UniqueConstraint, Enum as SAEnum
from sqlalchemy.orm import relationship

from scheduling.database import Base, enum_values
from scheduling.timeutils import utcnow


class ParticipantStatus(str, enum.Enum):
    pending = "PENDING"
    accepted = "ACCEPTED"
    accepted_with_reservation = "ACCEPTED_WITH_RESERVATION"
    accepted_without_time = "ACCEPTED_WITHOUT_TIME"
    other_time = "OTHER_TIME"
    declined = "DECLINED"


ANSWERED_STATUSES = frozenset(s for s in ParticipantStatus if s is not ParticipantStatus.pending)

# Everyone who intends to show up in some form; start reminders and
# cancellation notices go to them.
ATTENDING_STATUSES = frozenset({
    ParticipantStatus.accepted,
    ParticipantStatus.accepted_with_reservation,
    ParticipantStatus.accepted_without_time,
    ParticipantStatus.other_time,
})

def participant_status_type() -> SAEnum:
    return SAEnum(ParticipantStatus, name="participant_status", values_callable=enum_values)


class Participant(Base):
    __tablename__ = "participants"
    __table_args__ = (
        UniqueConstraint("event_id", "identity_id", name="uq_participants_event_identity"),
        Index("ix_participants_event_status", "event_id", "current_status"),
    )

    participant_id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(36), ForeignKey("events.event_id", ondelete="CASCADE"), nullable=False)
    identity_id = Column(
        Integer, ForeignKey("identities.identity_id", ondelete="CASCADE"), nullable=False
    )
    invited_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    current_status = Column(participant_status_type(), nullable=False, default=ParticipantStatus.pending)
    alternative_time = Column(String(20), nullable=True)  # only meaningful for OTHER_TIME

    event = relationship("Event", back_populates="participants")
    identity = relationship("Identity")
    history = relationship(
        "ResponseHistory",
        back_populates="participant",
        cascade="all, delete-orphan",
        order_by="ResponseHistory.entry_id",
    )

    @property
    def user_id(self) -> str:
        return self.identity.user_id

    @property
    def username(self) -> str:
        return self.identity.username

    @property
    def has_answered(self) -> bool:
        return self.current_status in ANSWERED_STATUSES
