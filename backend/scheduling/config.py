"""Application configuration via environment variables."""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """App settings loaded from .env or environment."""

    DATABASE_URL: str = "sqlite:///./scheduling.db"
    CORS_ORIGINS: str = "http://localhost:3000"
    EVENT_TIMEZONE: str = "Europe/Berlin"  # IANA tz the free-form date/time strings are written in
    MAX_PARTICIPANTS_PER_EVENT: int = 25
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"


settings = Settings()
