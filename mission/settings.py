# mission/settings.py
from __future__ import annotations

from pydantic import BaseModel
import os


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "y", "on")


class Settings(BaseModel):
    APP_NAME: str = "mission-server"

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    ROOM_TTL_SEC: int = 60 * 60 * 24

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Dev
    LOG_LEVEL: str = "INFO"

    # Registry endpoints answer any origin
    CORS_ALLOWED_ORIGINS: str = "*"
    # False reproduces "discovery backend not configured"
    REGISTRY_ENABLED: bool = True

    # Game rules
    MAX_HINTS: int = 3
    HINT_PENALTY_MIN: int = 5
    DEFAULT_DURATION_MIN: int = 60

    # Client side
    SYNC_MODE: str = "peer"   # peer | polling | realtime
    SYNC_HOST_URL: str = "ws://localhost:8000"
    POLL_INTERVAL_SEC: float = 1.0
    SESSION_PATH: str = ".mission_session.json"


def get_settings() -> Settings:
    return Settings(
        APP_NAME=os.getenv("APP_NAME", "mission-server"),
        REDIS_URL=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
        ROOM_TTL_SEC=int(os.getenv("ROOM_TTL_SEC", str(60 * 60 * 24))),
        HOST=os.getenv("HOST", "0.0.0.0"),
        PORT=int(os.getenv("PORT", "8000")),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
        CORS_ALLOWED_ORIGINS=os.getenv("CORS_ALLOWED_ORIGINS", "*"),
        REGISTRY_ENABLED=_flag("REGISTRY_ENABLED", "true"),
        MAX_HINTS=int(os.getenv("MAX_HINTS", "3")),
        HINT_PENALTY_MIN=int(os.getenv("HINT_PENALTY_MIN", "5")),
        DEFAULT_DURATION_MIN=int(os.getenv("DEFAULT_DURATION_MIN", "60")),
        SYNC_MODE=os.getenv("SYNC_MODE", "peer"),
        SYNC_HOST_URL=os.getenv("SYNC_HOST_URL", "ws://localhost:8000"),
        POLL_INTERVAL_SEC=float(os.getenv("POLL_INTERVAL_SEC", "1.0")),
        SESSION_PATH=os.getenv("SESSION_PATH", ".mission_session.json"),
    )
