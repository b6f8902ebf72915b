"""Identity registry: communities and the users inside them.

Counters on Identity (total_invites, total_responses,
avg_response_time_seconds) are a cache of the ledger. They are updated in
the same transaction as the ledger rows they summarize, and
``recompute_counters`` can always rebuild them from scratch.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from scheduling.models.community import Community
from scheduling.models.identity import Identity
from scheduling.models.participant import Participant
from scheduling.models.response_history import ResponseHistory, EntryKind
from scheduling.timeutils import utcnow

logger = logging.getLogger(__name__)


def ensure_community(
    db: Session, community_id: str, name: Optional[str] = None, now: Optional[datetime] = None
) -> Community:
    """Create the community on first use; afterwards refresh name and activity."""
    now = now or utcnow()
    community = db.get(Community, community_id)
    if community is None:
        community = Community(
            community_id=community_id,
            name=name or community_id,
            created_at=now,
            last_activity_at=now,
        )
        db.add(community)
        db.flush()
        logger.info("Created community %s (%s)", community.name, community_id)
    else:
        if name:
            community.name = name
        community.last_activity_at = now
    return community


def get_identity(db: Session, community_id: str, user_id: str) -> Optional[Identity]:
    return (
        db.query(Identity)
        .filter(Identity.community_id == community_id, Identity.user_id == user_id)
        .first()
    )


def ensure_identity(
    db: Session,
    community_id: str,
    user_id: str,
    username: Optional[str] = None,
    display_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Identity:
    """Upsert on (community, user_id)."""
    now = now or utcnow()
    identity = get_identity(db, community_id, user_id)
    if identity is None:
        identity = Identity(
            community_id=community_id,
            user_id=user_id,
            username=username or user_id,
            display_name=display_name,
            first_seen_at=now,
            last_active_at=now,
            total_invites=0,
            total_responses=0,
        )
        db.add(identity)
        db.flush()
        logger.info("Registered user %s in community %s", identity.username, community_id)
    else:
        if username:
            identity.username = username
        if display_name:
            identity.display_name = display_name
        identity.last_active_at = now
    return identity


def _answer_rows(identity: Identity):
    return (
        ResponseHistory.participant_id == Participant.participant_id,
        Participant.identity_id == identity.identity_id,
        ResponseHistory.entry_kind == EntryKind.transition,
        ResponseHistory.old_status.isnot(None),
    )


def _average_response_seconds(db: Session, identity: Identity) -> Optional[int]:
    db.flush()
    avg = db.query(func.avg(ResponseHistory.response_time_seconds)).filter(*_answer_rows(identity)).scalar()
    return int(round(avg)) if avg is not None else None


def count_invite(identity: Identity, now: datetime) -> None:
    identity.total_invites += 1
    identity.last_active_at = now


def count_response(db: Session, identity: Identity, now: datetime) -> None:
    identity.total_responses += 1
    identity.last_active_at = now
    identity.avg_response_time_seconds = _average_response_seconds(db, identity)


def forget_participation(db: Session, identity: Identity, answers_removed: int) -> None:
    """Undo the counters of a participant that was hard-deleted."""
    identity.total_invites = max(0, identity.total_invites - 1)
    identity.total_responses = max(0, identity.total_responses - answers_removed)
    identity.avg_response_time_seconds = _average_response_seconds(db, identity)


def recompute_counters(db: Session, identity: Identity, repair: bool = True) -> bool:
    """Rebuild the cached counters from the ledger.

    Returns True when the cache already matched. With ``repair`` the
    recomputed values are written back (the caller commits).
    """
    db.flush()
    invites = db.query(func.count(Participant.participant_id)).filter(
        Participant.identity_id == identity.identity_id
    ).scalar() or 0
    responses = db.query(func.count(ResponseHistory.entry_id)).filter(*_answer_rows(identity)).scalar() or 0
    average = _average_response_seconds(db, identity)

    consistent = (
        identity.total_invites == invites
        and identity.total_responses == responses
        and identity.avg_response_time_seconds == average
    )
    if not consistent:
        logger.warning(
            "Counter drift for identity %s: invites %s/%s responses %s/%s",
            identity.identity_id, identity.total_invites, invites, identity.total_responses, responses,
        )
        if repair:
            identity.total_invites = invites
            identity.total_responses = responses
            identity.avg_response_time_seconds = average
    return consistent
