"""Identity ORM model: an external user inside one community."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint

from scheduling.database import Base
from scheduling.timeutils import utcnow


class Identity(Base):
    __tablename__ = "identities"
    __table_args__ = (
        UniqueConstraint("community_id", "user_id", name="uq_identities_community_user"),
    )

    identity_id = Column(Integer, primary_key=True, autoincrement=True)
    community_id = Column(
        String(64), ForeignKey("communities.community_id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(String(64), nullable=False, index=True)  # external user id
    username = Column(String(100), nullable=False)
    display_name = Column(String(100), nullable=True)
    first_seen_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    last_active_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Denormalized cache of the ledger; see identity_service.recompute_counters
    total_invites = Column(Integer, nullable=False, default=0)
    total_responses = Column(Integer, nullable=False, default=0)
    avg_response_time_seconds = Column(Integer, nullable=True)
