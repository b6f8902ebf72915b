"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from scheduling.config import settings
from scheduling.database import Base, engine
from scheduling.errors import (
    SchedulingError,
    ValidationError,
    EventNotFound,
    EventNotActive,
    NotAParticipant,
    DeliveryFailure,
)

# Import routers
from scheduling.routers import events, participants, analytics

# Import all models so Base.metadata knows about them
from scheduling.models.community import Community              # noqa: F401
from scheduling.models.identity import Identity                # noqa: F401
from scheduling.models.event import Event                      # noqa: F401
from scheduling.models.participant import Participant          # noqa: F401
from scheduling.models.response_history import ResponseHistory  # noqa: F401
from scheduling.models.audit_log import AuditLogEntry          # noqa: F401

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Group Scheduling Ledger",
    description="Event invitations, an append-only answer ledger and behavior analytics for chat communities",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS = {
    ValidationError: 400,
    EventNotFound: 404,
    NotAParticipant: 404,
    EventNotActive: 409,
    DeliveryFailure: 502,
}


@app.exception_handler(SchedulingError)
def handle_scheduling_error(request: Request, exc: SchedulingError):
    status_code = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 400)
    if status_code >= 409:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# Register routers
app.include_router(events.router, prefix="/api/events", tags=["Events"])
app.include_router(participants.router, prefix="/api/events", tags=["Participants"])
app.include_router(analytics.router, prefix="/api/analytics", tags=["Analytics"])


@app.on_event("startup")
def on_startup():
    """Create database tables on startup (for SQLite dev mode)."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)


@app.get("/api/health")
def health_check():
    return {"status": "ok"}
