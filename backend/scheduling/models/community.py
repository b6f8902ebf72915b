"""Community ORM model: one chat server/guild the events belong to."""
from sqlalchemy import Column, String, DateTime

from scheduling.database import Base
from scheduling.timeutils import utcnow


class Community(Base):
    __tablename__ = "communities"

    community_id = Column(String(64), primary_key=True)  # external server id
    name = Column(String(150), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    last_activity_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
