# sosrelay/config.py
"""
Application configuration using Pydantic-Settings.
All settings can be overridden via environment variables or .env file.
"""

from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # ── Network ───────────────────────────────────────────────────────────
    BACKEND_IP: str = "0.0.0.0"
    BACKEND_PORT: int = 3000
    CORS_ORIGINS: str = "*"

    # ── Security ──────────────────────────────────────────────────────────
    JWT_SECRET: str = "dev-secret-please-change"
    JWT_ALGORITHM: str = "HS256"
    TOKEN_TTL_HOURS: int = 12

    # ── Demo operator (single fixed credential pair) ─────────────────────
    DEMO_USER_EMAIL: str = "admin@sosrelay.local"
    DEMO_USER_PASSWORD: str = "admin123"
    DEMO_USER_NAME: str = "SOS Relay Admin"

    # ── Event ledger ──────────────────────────────────────────────────────
    EVENT_LEDGER_LIMIT: int = 500      # Oldest events are evicted beyond this
    DEFAULT_LIST_LIMIT: int = 50
    HISTORY_POINTS: int = 30           # Synthetic history = HISTORY_POINTS + 1 samples

    # ── Live sessions ─────────────────────────────────────────────────────
    SESSION_SEND_BUFFER: int = 100     # Frames queued per viewer before it counts as unwritable

    # ── Viewer client ─────────────────────────────────────────────────────
    SERVER_WS_URL: str = "ws://localhost:3000/ws"
    SERVER_API_URL: str = "http://localhost:3000/api/v1"
    HTTP_TIMEOUT_SECONDS: float = 10.0
    RECONNECT_INTERVAL_SECONDS: float = 5.0
    MAX_RECONNECT_ATTEMPTS: int = 10

    # ── Logging ───────────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"

    def cors_list(self) -> List[str]:
        return [x.strip() for x in self.CORS_ORIGINS.split(",") if x.strip()]

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
