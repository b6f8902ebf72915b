"""Pure behavior metrics and classification.

Nothing here touches the database: the analytics service loads rows and
hands them over as ``LedgerRow`` values, in ledger order
(``changed_at``, ``entry_id``). All rates are percentages in [0, 100].
"""
import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from scheduling.models.event import EventStatus
from scheduling.models.participant import ParticipantStatus
from scheduling.models.response_history import EntryKind, ResponseContext

QUICK_RESPONSE_SECONDS = 6 * 3600
LAST_MINUTE_HOURS = 6
COHORT_MIN_EVENTS = 3
RELIABLE_MIN_EVENTS = 5
COHORT_SIZE = 10

# Half-open buckets: (name, upper bound in seconds).
RESPONSE_TIME_BUCKETS = [
    ("instant", 3600),
    ("quick", 6 * 3600),
    ("normal", 24 * 3600),
    ("slow", 48 * 3600),
    ("very_slow", None),
]
BUCKET_MIDPOINT_HOURS = {"instant": 0.5, "quick": 3.5, "normal": 15, "slow": 36, "very_slow": 72}


@dataclass(frozen=True)
class LedgerRow:
    participant_id: int
    entry_kind: EntryKind
    old_status: Optional[ParticipantStatus]
    new_status: ParticipantStatus
    response_context: ResponseContext = ResponseContext.initial
    response_time_seconds: int = 0
    hours_before_event: float = 0.0

    @property
    def is_answer(self) -> bool:
        return self.entry_kind == EntryKind.transition and self.old_status is not None

    @property
    def is_reminder_checkpoint(self) -> bool:
        return (
            self.entry_kind == EntryKind.checkpoint
            and self.response_context == ResponseContext.after_reminder
        )


def percentage(part: float, whole: float) -> float:
    if not whole:
        return 0.0
    return part * 100 / whole


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_score(value: float) -> int:
    return max(0, min(100, round_half_up(value)))


def answer_rows(rows: Iterable[LedgerRow]) -> list[LedgerRow]:
    return [row for row in rows if row.is_answer]


def reminder_driven_answers(rows: Iterable[LedgerRow]) -> list[LedgerRow]:
    """Answers tagged AFTER_REMINDER, or the first answer after a reminder checkpoint."""
    nudged: set[int] = set()
    driven = []
    for row in rows:
        if row.is_reminder_checkpoint:
            nudged.add(row.participant_id)
        elif row.is_answer:
            if row.response_context == ResponseContext.after_reminder or row.participant_id in nudged:
                driven.append(row)
            nudged.discard(row.participant_id)
    return driven


def quick_answers(answers: Iterable[LedgerRow]) -> list[LedgerRow]:
    return [row for row in answers if row.response_time_seconds < QUICK_RESPONSE_SECONDS]


def last_minute_answers(answers: Iterable[LedgerRow]) -> list[LedgerRow]:
    return [row for row in answers if row.hours_before_event < LAST_MINUTE_HOURS]


def mean_response_hours(answers: list[LedgerRow]) -> float:
    if not answers:
        return 0.0
    return sum(row.response_time_seconds for row in answers) / len(answers) / 3600


@dataclass
class BehaviorProfile:
    user_id: str
    username: str
    total_events: int
    responded_events: int
    total_responses: int
    response_rate: float
    quick_response_rate: float
    reminder_dependency_rate: float
    last_minute_cancellation_rate: float
    avg_response_time_hours: float
    status_counts: dict[str, int] = field(default_factory=dict)
    first_seen: Optional[datetime] = None
    last_seen: Optional[datetime] = None
    classification: str = ""

    @property
    def reliability_key(self) -> float:
        return self.response_rate * 0.7 + self.quick_response_rate * 0.3


def build_profile(
    user_id: str,
    username: str,
    statuses: list[ParticipantStatus],
    rows: list[LedgerRow],
    first_seen: Optional[datetime] = None,
    last_seen: Optional[datetime] = None,
) -> Optional[BehaviorProfile]:
    """Profile of one identity; ``statuses`` holds one current status per participation."""
    if not statuses:
        return None
    answers = answer_rows(rows)
    responded = sum(1 for status in statuses if status != ParticipantStatus.pending)
    counts = {status.value: 0 for status in ParticipantStatus}
    for status in statuses:
        counts[status.value] += 1
    total_responses = len(answers)
    profile = BehaviorProfile(
        user_id=user_id,
        username=username,
        total_events=len(statuses),
        responded_events=responded,
        total_responses=total_responses,
        response_rate=percentage(responded, len(statuses)),
        quick_response_rate=percentage(len(quick_answers(answers)), total_responses),
        reminder_dependency_rate=percentage(len(reminder_driven_answers(rows)), total_responses),
        last_minute_cancellation_rate=percentage(len(last_minute_answers(answers)), total_responses),
        avg_response_time_hours=mean_response_hours(answers),
        status_counts=counts,
        first_seen=first_seen,
        last_seen=last_seen,
    )
    profile.classification = classify_behavior(profile)
    return profile


def classify_behavior(profile: BehaviorProfile) -> str:
    # First match wins; stricter cutoffs than cohort membership.
    if profile.quick_response_rate > 70:
        return "Quick Responder"
    if profile.reminder_dependency_rate > 60:
        return "Reminder Dependent"
    if profile.last_minute_cancellation_rate > 25:
        return "Last-Minute Canceller"
    if profile.response_rate > 85:
        return "Reliable Participant"
    return "Standard User"


def behavior_cohorts(profiles: Iterable[BehaviorProfile]) -> dict[str, list[BehaviorProfile]]:
    """Top-10 cohorts over identities with at least three participations."""
    eligible = [p for p in profiles if p.total_events >= COHORT_MIN_EVENTS]

    def top(members, key, reverse=True):
        return sorted(members, key=key, reverse=reverse)[:COHORT_SIZE]

    return {
        "quick_responders": top(
            [p for p in eligible if p.quick_response_rate > 60], lambda p: p.quick_response_rate
        ),
        "reminder_dependent": top(
            [p for p in eligible if p.reminder_dependency_rate > 50], lambda p: p.reminder_dependency_rate
        ),
        "last_minute_cancellers": top(
            [p for p in eligible if p.last_minute_cancellation_rate > 20],
            lambda p: p.last_minute_cancellation_rate,
        ),
        "most_reliable": top(
            [p for p in eligible if p.response_rate > 80 and p.total_events >= RELIABLE_MIN_EVENTS],
            lambda p: p.reliability_key,
        ),
        "ghosting": top(
            [p for p in eligible if p.response_rate < 50], lambda p: p.response_rate, reverse=False
        ),
    }


def response_bucket(seconds: int) -> str:
    for name, upper in RESPONSE_TIME_BUCKETS:
        if upper is None or seconds < upper:
            return name
    return RESPONSE_TIME_BUCKETS[-1][0]


def response_time_distribution(answers: Iterable[LedgerRow]) -> dict[str, int]:
    distribution = {name: 0 for name, _ in RESPONSE_TIME_BUCKETS}
    for row in answers:
        distribution[response_bucket(row.response_time_seconds)] += 1
    return distribution


def bucket_weighted_mean(distribution: dict[str, int]) -> float:
    """Estimate mean hours from bucket counts alone."""
    total = sum(distribution.values())
    if not total:
        return 0.0
    weighted = sum(BUCKET_MIDPOINT_HOURS[name] * count for name, count in distribution.items())
    return weighted / total


def response_quality_score(
    avg_response_hours: float, response_rate: float, last_minute_rate: float, reminder_rate: float
) -> int:
    speed = max(0.0, 100 - avg_response_hours * 2)
    stability = max(0.0, 100 - last_minute_rate * 3)
    independence = max(0.0, 100 - reminder_rate * 0.5)
    return clamp_score(speed * 0.3 + response_rate * 0.3 + stability * 0.25 + independence * 0.15)


def community_health_score(success_rate: float, response_quality: float, stability_index: float) -> int:
    return clamp_score(success_rate * 0.4 + response_quality * 0.3 + stability_index * 0.3)


def engagement_level(avg_response_hours: float) -> str:
    if avg_response_hours < 6:
        return "very high"
    if avg_response_hours < 24:
        return "high"
    if avg_response_hours < 48:
        return "medium"
    return "low"


def speed_rating(avg_response_hours: float) -> str:
    if avg_response_hours < 2:
        return "lightning fast"
    if avg_response_hours < 6:
        return "very fast"
    if avg_response_hours < 12:
        return "fast"
    if avg_response_hours < 24:
        return "normal"
    if avg_response_hours < 48:
        return "slow"
    return "very slow"


@dataclass
class CommunitySummary:
    total_events: int
    active_events: int
    closed_events: int
    cancelled_events: int
    total_participants: int
    total_responses: int
    avg_participants_per_event: float
    overall_response_rate: float
    avg_response_time_hours: float
    last_minute_change_rate: float
    reminder_effectiveness: float

    @property
    def success_rate(self) -> float:
        return percentage(self.closed_events + self.active_events, self.total_events)

    @property
    def cancellation_rate(self) -> float:
        return percentage(self.cancelled_events, self.total_events)

    @property
    def stability_index(self) -> float:
        return 100 - self.last_minute_change_rate

    @property
    def response_quality(self) -> int:
        return response_quality_score(
            self.avg_response_time_hours,
            self.overall_response_rate,
            self.last_minute_change_rate,
            self.reminder_effectiveness,
        )

    @property
    def health_score(self) -> int:
        return community_health_score(self.success_rate, self.response_quality, self.stability_index)


def build_summary(
    event_statuses: list[EventStatus],
    participant_statuses: list[ParticipantStatus],
    rows: list[LedgerRow],
) -> CommunitySummary:
    by_status = defaultdict(int)
    for status in event_statuses:
        by_status[status] += 1
    answers = answer_rows(rows)
    total_events = len(event_statuses)
    total_participants = len(participant_statuses)
    total_responses = sum(1 for s in participant_statuses if s != ParticipantStatus.pending)
    return CommunitySummary(
        total_events=total_events,
        active_events=by_status[EventStatus.active],
        closed_events=by_status[EventStatus.closed],
        cancelled_events=by_status[EventStatus.cancelled],
        total_participants=total_participants,
        total_responses=total_responses,
        avg_participants_per_event=total_participants / total_events if total_events else 0.0,
        overall_response_rate=percentage(total_responses, total_participants),
        avg_response_time_hours=mean_response_hours(answers),
        last_minute_change_rate=percentage(len(last_minute_answers(answers)), total_responses),
        reminder_effectiveness=percentage(len(reminder_driven_answers(rows)), total_responses),
    )
