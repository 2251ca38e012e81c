import os
import logging
from pydantic import BaseModel, Field
from typing import List
from dotenv import load_dotenv

load_dotenv()

class LeaveSettings(BaseModel):
    default_timezone: str = Field(default=os.getenv("LEAVE_DEFAULT_TIMEZONE", "Europe/London"))
    half_day_start: str = Field(default=os.getenv("LEAVE_HALF_DAY_START", "09:00:00"))
    half_day_end: str = Field(default=os.getenv("LEAVE_HALF_DAY_END", "17:00:00"))
    working_hours_per_day: float = Field(default=float(os.getenv("WORKING_HOURS_PER_DAY", "8")))
    default_page_size: int = 10

class WebhookSettings(BaseModel):
    timeout_seconds: float = Field(default=float(os.getenv("WEBHOOK_TIMEOUT_SECONDS", "10")))
    user_agent: str = "Collab-Webhooks/1.0"
    max_response_chars: int = 1000

class Config(BaseModel):
    app_name: str = "Collab Leave Service"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./database.db")

    # Identity is resolved upstream; the provider forwards the session email in this header
    identity_header: str = os.getenv("IDENTITY_HEADER", "X-User-Email")

    # Leave + side effects
    leave: LeaveSettings = LeaveSettings()
    webhooks: WebhookSettings = WebhookSettings()

    version: str = "1.0.0"
    request_id_header: str = "X-Request-ID"

    cors_origins: List[str] = Field(
        default_factory=lambda: [
            o.strip()
            for o in os.getenv(
                "CORS_ORIGINS",
                "http://localhost:3000,http://127.0.0.1:3000",
            ).split(",")
            if o.strip()
        ]
    )

    rate_limit_per_minute: int = int(os.getenv("RATE_LIMIT_PER_MINUTE", "120"))
    encryption_key: str = os.getenv("ENCRYPTION_KEY", "ZGV2LW9ubHktaW5zZWN1cmUta2V5LWRvLW5vdC11c2U=")

settings = Config()

# --- Startup Validation for Production ---
_logger = logging.getLogger(__name__)
_DEV_ENCRYPTION_KEY = "ZGV2LW9ubHktaW5zZWN1cmUta2V5LWRvLW5vdC11c2U="
if settings.environment not in ("development", "testing"):
    if settings.encryption_key == _DEV_ENCRYPTION_KEY:
        raise RuntimeError(
            "FATAL: ENCRYPTION_KEY must be set for non-development environments. "
            "Set it as an environment variable."
        )
elif settings.encryption_key == _DEV_ENCRYPTION_KEY:
    _logger.warning("Using insecure default ENCRYPTION_KEY - only acceptable in development.")
