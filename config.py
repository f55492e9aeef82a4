"""
Runtime configuration for the portfolio API.

Values come from the environment (a local .env file is honoured) and are
read once at import. Modules access them through `settings`.
"""

import logging
import os
from typing import List, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

DEV_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:5174",
    "http://localhost:5175",
    "http://localhost:3000",
    "http://localhost:3001",
]
PRODUCTION_ORIGINS = [
    "https://your-portfolio.vercel.app",
]
DEFAULT_JWT_SECRET = "change-me-in-production"


def _flag(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip().rstrip("/") for item in value.split(",") if item.strip()]


class Settings(BaseModel):
    environment: str = "development"
    port: int = 5000

    database_url: Optional[str] = None
    database_name: str = "portfolio_db"
    database_timeout_ms: int = 5000

    jwt_secret: str = DEFAULT_JWT_SECRET
    password_hash_rounds: int = 29000
    admin_setup_token: Optional[str] = None

    cors_origins: List[str] = Field(default_factory=lambda: list(DEV_ORIGINS))
    rate_limit: str = "100 per 15 minutes"
    rate_limit_enabled: bool = True

    upload_dir: str = "uploads"
    public_fallback: bool = True

    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_pass: Optional[str] = None
    admin_email: Optional[str] = None

    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_user and self.smtp_pass)

    @property
    def notify_address(self) -> Optional[str]:
        return self.admin_email or self.smtp_user


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if environ is None else environ
    environment = env.get("APP_ENV", "development")
    default_origins = PRODUCTION_ORIGINS if environment.lower() == "production" else DEV_ORIGINS

    return Settings(
        environment=environment,
        port=int(env.get("PORT", "5000")),
        database_url=env.get("DATABASE_URL") or None,
        database_name=env.get("DATABASE_NAME") or "portfolio_db",
        database_timeout_ms=int(env.get("DATABASE_TIMEOUT_MS", "5000")),
        jwt_secret=env.get("JWT_SECRET") or DEFAULT_JWT_SECRET,
        password_hash_rounds=int(env.get("PASSWORD_HASH_ROUNDS", "29000")),
        admin_setup_token=env.get("ADMIN_SETUP_TOKEN") or None,
        cors_origins=_csv(env.get("FRONTEND_ORIGINS")) or list(default_origins),
        rate_limit=env.get("RATE_LIMIT") or "100 per 15 minutes",
        rate_limit_enabled=_flag(env.get("RATE_LIMIT_ENABLED"), True),
        upload_dir=env.get("UPLOAD_DIR") or "uploads",
        public_fallback=_flag(env.get("PUBLIC_FALLBACK"), True),
        smtp_host=env.get("SMTP_HOST") or "smtp.gmail.com",
        smtp_port=int(env.get("SMTP_PORT", "587")),
        smtp_user=env.get("SMTP_USER") or None,
        smtp_pass=env.get("SMTP_PASS") or None,
        admin_email=env.get("ADMIN_EMAIL") or None,
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )


settings = load_settings()


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=level or settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
