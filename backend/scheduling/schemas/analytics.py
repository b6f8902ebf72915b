"""Pydantic schemas for analytics reports."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class CommunitySummaryOut(BaseModel):
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

    model_config = {"from_attributes": True}


class BehaviorProfileOut(BaseModel):
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
    status_counts: dict[str, int]
    classification: str
    first_seen: Optional[datetime] = None
    last_seen: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CohortsOut(BaseModel):
    quick_responders: list[BehaviorProfileOut] = []
    reminder_dependent: list[BehaviorProfileOut] = []
    last_minute_cancellers: list[BehaviorProfileOut] = []
    most_reliable: list[BehaviorProfileOut] = []
    ghosting: list[BehaviorProfileOut] = []


class ReminderStats(BaseModel):
    reminders_sent: int
    start_reminders_sent: int
    reminder_driven_answers: int
    effectiveness: float


class LastMinuteStats(BaseModel):
    count: int
    rate: float


class TrendsOut(BaseModel):
    total_events: int
    by_status: dict[str, int]
    by_month: dict[str, int]
    by_weekday: dict[str, int]
    by_hour: dict[str, int]
    response_time_distribution: dict[str, int]
    reminder_stats: ReminderStats
    last_minute_stats: LastMinuteStats


class ResponseAnalyticsOut(BaseModel):
    total_answers: int
    distribution: dict[str, int]
    avg_response_time_hours: float
    estimated_response_time_hours: float
    speed_rating: str
    overall_response_rate: float
    reminder_driven_answers: int
    initial_answers: int
    last_minute_rate: float
    quality_score: int
    engagement_level: str


class OrganizerOut(BaseModel):
    user_id: str
    username: str
    events: int


class RecentEventOut(BaseModel):
    event_id: str
    title: str
    date: str
    time: str
    status: str
    participants: int
    responded: int


class HealthOut(BaseModel):
    total_events: int
    success_rate: float
    cancellation_rate: float
    avg_participants_per_event: float
    overall_response_rate: float
    response_quality: int
    stability_index: float
    reminder_dependency: float
    community_health: int
    engagement_level: str
    top_organizers: list[OrganizerOut] = []
    recent_events: list[RecentEventOut] = []


class PatternEntryOut(BaseModel):
    event_id: str
    title: str
    date: str
    status: str
    alternative_time: Optional[str] = None
    last_context: str
    changed_at: datetime


class UserAnalyticsOut(BaseModel):
    profile: Optional[BehaviorProfileOut] = None
    pattern: list[PatternEntryOut] = []
