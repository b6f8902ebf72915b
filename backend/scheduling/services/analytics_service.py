"""Read-only analytics over a community's events and ledger.

Everything is recomputed per call from the store. ``days`` limits the
scope to events created within that window.
"""
import logging
from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.orm import Session

from scheduling.config import settings
from scheduling.models.event import Event, EventStatus
from scheduling.models.participant import Participant
from scheduling.models.response_history import ResponseHistory, ResponseContext
from scheduling.services import metrics
from scheduling.services.identity_service import get_identity
from scheduling.services.metrics import LedgerRow
from scheduling.timeutils import utcnow, ensure_utc, local_weekday

logger = logging.getLogger(__name__)


@dataclass
class Scope:
    events: list[Event]
    participants: list[Participant]
    rows: list[LedgerRow]
    rows_by_identity: dict[int, list[LedgerRow]]


def _to_row(entry: ResponseHistory) -> LedgerRow:
    return LedgerRow(
        participant_id=entry.participant_id,
        entry_kind=entry.entry_kind,
        old_status=entry.old_status,
        new_status=entry.new_status,
        response_context=entry.response_context,
        response_time_seconds=entry.response_time_seconds,
        hours_before_event=entry.hours_before_event,
    )


def load_scope(
    db: Session, community_id: str, days: Optional[int] = None, now: Optional[datetime] = None
) -> Scope:
    query = db.query(Event).filter(Event.community_id == community_id)
    if days is not None:
        since = (now or utcnow()) - timedelta(days=days)
        query = query.filter(Event.created_at >= since)
    events = query.order_by(Event.created_at, Event.event_id).all()
    event_ids = [event.event_id for event in events]
    if not event_ids:
        return Scope(events, [], [], {})

    participants = (
        db.query(Participant)
        .filter(Participant.event_id.in_(event_ids))
        .order_by(Participant.participant_id)
        .all()
    )
    identity_of = {p.participant_id: p.identity_id for p in participants}
    entries = (
        db.query(ResponseHistory)
        .filter(ResponseHistory.participant_id.in_(list(identity_of)))
        .order_by(ResponseHistory.changed_at, ResponseHistory.entry_id)
        .all()
    ) if identity_of else []

    rows, rows_by_identity = [], defaultdict(list)
    for entry in entries:
        row = _to_row(entry)
        rows.append(row)
        rows_by_identity[identity_of[entry.participant_id]].append(row)
    return Scope(events, participants, rows, dict(rows_by_identity))


def _summary(scope: Scope) -> metrics.CommunitySummary:
    return metrics.build_summary(
        [event.status for event in scope.events],
        [participant.current_status for participant in scope.participants],
        scope.rows,
    )


def community_summary(
    db: Session, community_id: str, days: Optional[int] = None, now: Optional[datetime] = None
) -> metrics.CommunitySummary:
    return _summary(load_scope(db, community_id, days, now))


def _profiles(scope: Scope) -> list[metrics.BehaviorProfile]:
    by_identity: dict[int, list[Participant]] = defaultdict(list)
    for participant in scope.participants:
        by_identity[participant.identity_id].append(participant)
    profiles = []
    for identity_id, participations in by_identity.items():
        identity = participations[0].identity
        profiles.append(metrics.build_profile(
            identity.user_id,
            identity.username,
            [p.current_status for p in participations],
            scope.rows_by_identity.get(identity_id, []),
            first_seen=identity.first_seen_at,
            last_seen=identity.last_active_at,
        ))
    return profiles


def user_profile(
    db: Session,
    community_id: str,
    user_id: str,
    days: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Optional[metrics.BehaviorProfile]:
    """None when the user is unknown or has no participations in scope."""
    identity = get_identity(db, community_id, user_id)
    if identity is None:
        return None
    scope = load_scope(db, community_id, days, now)
    participations = [p for p in scope.participants if p.identity_id == identity.identity_id]
    return metrics.build_profile(
        identity.user_id,
        identity.username,
        [p.current_status for p in participations],
        scope.rows_by_identity.get(identity.identity_id, []),
        first_seen=identity.first_seen_at,
        last_seen=identity.last_active_at,
    )


def behavior_cohorts(
    db: Session, community_id: str, days: Optional[int] = None, now: Optional[datetime] = None
) -> dict[str, list[metrics.BehaviorProfile]]:
    return metrics.behavior_cohorts(_profiles(load_scope(db, community_id, days, now)))


def _hour_of(time_str: str) -> Optional[str]:
    head = time_str.split(":")[0].strip()
    if not head.isdigit():
        return None
    return head.zfill(2)


def event_trends(
    db: Session, community_id: str, days: Optional[int] = None, now: Optional[datetime] = None
) -> dict[str, Any]:
    scope = load_scope(db, community_id, days, now)
    summary = _summary(scope)
    answers = metrics.answer_rows(scope.rows)

    by_month, by_weekday, by_hour = Counter(), Counter(), Counter()
    for event in scope.events:
        by_month[ensure_utc(event.created_at).strftime("%Y-%m")] += 1
        if event.parsed_date is not None:
            by_weekday[local_weekday(event.parsed_date, settings.EVENT_TIMEZONE)] += 1
        hour = _hour_of(event.time)
        if hour is not None:
            by_hour[hour] += 1

    driven = len(metrics.reminder_driven_answers(scope.rows))
    last_minute = len(metrics.last_minute_answers(answers))
    return {
        "total_events": summary.total_events,
        "by_status": {status.value: sum(1 for e in scope.events if e.status == status) for status in EventStatus},
        "by_month": dict(sorted(by_month.items())),
        "by_weekday": dict(by_weekday),
        "by_hour": dict(sorted(by_hour.items())),
        "response_time_distribution": metrics.response_time_distribution(answers),
        "reminder_stats": {
            "reminders_sent": sum(e.reminders_sent for e in scope.events),
            "start_reminders_sent": sum(e.start_reminders_sent for e in scope.events),
            "reminder_driven_answers": driven,
            "effectiveness": metrics.percentage(driven, summary.total_responses),
        },
        "last_minute_stats": {
            "count": last_minute,
            "rate": metrics.percentage(last_minute, summary.total_responses),
        },
    }


def response_analytics(
    db: Session, community_id: str, days: Optional[int] = None, now: Optional[datetime] = None
) -> dict[str, Any]:
    scope = load_scope(db, community_id, days, now)
    summary = _summary(scope)
    answers = metrics.answer_rows(scope.rows)
    distribution = metrics.response_time_distribution(answers)
    driven = len(metrics.reminder_driven_answers(scope.rows))
    return {
        "total_answers": len(answers),
        "distribution": distribution,
        "avg_response_time_hours": summary.avg_response_time_hours,
        "estimated_response_time_hours": metrics.bucket_weighted_mean(distribution),
        "speed_rating": metrics.speed_rating(summary.avg_response_time_hours),
        "overall_response_rate": summary.overall_response_rate,
        "reminder_driven_answers": driven,
        "initial_answers": len(answers) - driven,
        "last_minute_rate": summary.last_minute_change_rate,
        "quality_score": summary.response_quality,
        "engagement_level": metrics.engagement_level(summary.avg_response_time_hours),
    }


def top_organizers(
    db: Session, community_id: str, limit: int = 5, days: Optional[int] = None, now: Optional[datetime] = None
) -> list[dict[str, Any]]:
    scope = load_scope(db, community_id, days, now)
    counts = Counter(event.organizer_id for event in scope.events)
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:limit]
    result = []
    for organizer_id, count in ranked:
        identity = get_identity(db, community_id, organizer_id)
        result.append({
            "user_id": organizer_id,
            "username": identity.username if identity else organizer_id,
            "events": count,
        })
    return result


def recent_events(
    db: Session, community_id: str, limit: int = 10, days: Optional[int] = None, now: Optional[datetime] = None
) -> list[dict[str, Any]]:
    scope = load_scope(db, community_id, days, now)
    newest = sorted(scope.events, key=lambda e: (ensure_utc(e.created_at), e.event_id), reverse=True)[:limit]
    return [
        {
            "event_id": event.event_id,
            "title": event.title,
            "date": event.date,
            "time": event.time,
            "status": event.status.value,
            "participants": len(event.participants),
            "responded": sum(1 for p in event.participants if p.has_answered),
        }
        for event in newest
    ]


def community_health(
    db: Session, community_id: str, days: Optional[int] = None, now: Optional[datetime] = None
) -> dict[str, Any]:
    summary = community_summary(db, community_id, days, now)
    return {
        "total_events": summary.total_events,
        "success_rate": summary.success_rate,
        "cancellation_rate": summary.cancellation_rate,
        "avg_participants_per_event": summary.avg_participants_per_event,
        "overall_response_rate": summary.overall_response_rate,
        "response_quality": summary.response_quality,
        "stability_index": summary.stability_index,
        "reminder_dependency": summary.reminder_effectiveness,
        "community_health": summary.health_score,
        "engagement_level": metrics.engagement_level(summary.avg_response_time_hours),
        "top_organizers": top_organizers(db, community_id, days=days, now=now),
        "recent_events": recent_events(db, community_id, limit=5, days=days, now=now),
    }


def user_response_pattern(
    db: Session,
    community_id: str,
    user_id: str,
    limit: int = 10,
    days: Optional[int] = None,
    now: Optional[datetime] = None,
) -> list[dict[str, Any]]:
    """The user's latest participations with their current status and last ledger context.

    ``days`` limits the pattern to events created in that window, like ``load_scope``.
    """
    identity = get_identity(db, community_id, user_id)
    if identity is None:
        return []
    query = (
        db.query(Participant)
        .join(Event, Participant.event_id == Event.event_id)
        .filter(Participant.identity_id == identity.identity_id, Event.community_id == community_id)
    )
    if days is not None:
        since = (now or utcnow()) - timedelta(days=days)
        query = query.filter(Event.created_at >= since)
    participations = (
        query.order_by(Participant.invited_at.desc(), Participant.participant_id.desc())
        .limit(limit)
        .all()
    )
    pattern = []
    for participant in participations:
        latest = participant.history[-1] if participant.history else None
        pattern.append({
            "event_id": participant.event_id,
            "title": participant.event.title,
            "date": participant.event.date,
            "status": participant.current_status.value,
            "alternative_time": participant.alternative_time,
            "last_context": latest.response_context.value if latest else ResponseContext.initial.value,
            "changed_at": latest.changed_at if latest else participant.invited_at,
        })
    return pattern
