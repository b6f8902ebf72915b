"""Analytics API routes — read-only reports per community."""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from scheduling.database import get_db
from scheduling.schemas.analytics import (
    CommunitySummaryOut,
    CohortsOut,
    TrendsOut,
    ResponseAnalyticsOut,
    HealthOut,
    UserAnalyticsOut,
)
from scheduling.services import analytics_service

router = APIRouter()


@router.get("/{community_id}/summary", response_model=CommunitySummaryOut)
def summary(community_id: str, days: Optional[int] = Query(None, ge=1), db: Session = Depends(get_db)):
    return analytics_service.community_summary(db, community_id, days)


@router.get("/{community_id}/behavior", response_model=CohortsOut)
def behavior(community_id: str, days: Optional[int] = Query(None, ge=1), db: Session = Depends(get_db)):
    """Behavior cohorts; only users with at least three events are ranked."""
    return analytics_service.behavior_cohorts(db, community_id, days)


@router.get("/{community_id}/trends", response_model=TrendsOut)
def trends(community_id: str, days: Optional[int] = Query(None, ge=1), db: Session = Depends(get_db)):
    return analytics_service.event_trends(db, community_id, days)


@router.get("/{community_id}/response", response_model=ResponseAnalyticsOut)
def response(community_id: str, days: Optional[int] = Query(None, ge=1), db: Session = Depends(get_db)):
    return analytics_service.response_analytics(db, community_id, days)


@router.get("/{community_id}/health", response_model=HealthOut)
def health(community_id: str, days: Optional[int] = Query(None, ge=1), db: Session = Depends(get_db)):
    return analytics_service.community_health(db, community_id, days)


@router.get("/{community_id}/users/{user_id}", response_model=UserAnalyticsOut)
def user_analytics(
    community_id: str, user_id: str, days: Optional[int] = Query(None, ge=1), db: Session = Depends(get_db)
):
    """Profile and recent answer pattern of one user."""
    profile = analytics_service.user_profile(db, community_id, user_id, days)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"No participation data for user {user_id}")
    return {
        "profile": profile,
        "pattern": analytics_service.user_response_pattern(db, community_id, user_id, days=days),
    }
