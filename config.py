"""
Runtime configuration for the Innexora backend.

Values come from the environment (a local .env file is honoured through
python-dotenv). Settings are read once and cached; FastAPI routes take them
through the `get_settings` dependency so tests can swap them out.
"""

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


def _split_csv(raw: str) -> List[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str] = None
    database_name: str = "innexora"
    tenant_database_prefix: str = "hotel"
    jwt_secret: str = "change-me"
    jwt_expire_days: int = 30
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    mail_user: Optional[str] = None
    mail_password: Optional[str] = None
    contact_email: Optional[str] = None
    room_number_pattern: str = r"^\d{3,4}$"
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000", "http://localhost:3001"])
    api_url: str = "http://localhost:5050/api"
    http_timeout: float = 15.0
    log_level: str = "INFO"


@lru_cache()
def get_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL"),
        database_name=os.getenv("DATABASE_NAME", "innexora"),
        tenant_database_prefix=os.getenv("TENANT_DATABASE_PREFIX", "hotel"),
        jwt_secret=os.getenv("JWT_SECRET", "change-me"),
        jwt_expire_days=int(os.getenv("JWT_EXPIRE_DAYS", "30")),
        smtp_host=os.getenv("SMTP_HOST", "smtp.gmail.com"),
        smtp_port=int(os.getenv("SMTP_PORT", "587")),
        mail_user=os.getenv("GMAIL_USER"),
        mail_password=os.getenv("GMAIL_APP_PASSWORD"),
        contact_email=os.getenv("CONTACT_EMAIL"),
        room_number_pattern=os.getenv("ROOM_NUMBER_PATTERN", r"^\d{3,4}$"),
        cors_origins=_split_csv(os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:3001")),
        api_url=os.getenv("API_URL", "http://localhost:5050/api"),
        http_timeout=float(os.getenv("HTTP_TIMEOUT", "15")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=getattr(logging, level or get_settings().log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
