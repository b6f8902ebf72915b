"""Audit log: who did what to an event. Rows are only ever appended."""
import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from scheduling.models.audit_log import AuditLogEntry, AuditAction
from scheduling.models.event import Event
from scheduling.timeutils import utcnow

logger = logging.getLogger(__name__)


def record(
    db: Session,
    event: Event,
    action: AuditAction,
    performed_by: str,
    details: Optional[dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> AuditLogEntry:
    """Append an entry to the caller's transaction; the caller commits."""
    entry = AuditLogEntry(
        event_id=event.event_id,
        action=action,
        performed_by=performed_by,
        performed_at=now or utcnow(),
        details=details,
    )
    db.add(entry)
    logger.debug("Audit %s on event %s by %s", action.value, event.event_id, performed_by)
    return entry


def list_for_event(db: Session, event_id: str) -> list[AuditLogEntry]:
    return (
        db.query(AuditLogEntry)
        .filter(AuditLogEntry.event_id == event_id)
        .order_by(AuditLogEntry.performed_at, AuditLogEntry.entry_id)
        .all()
    )
