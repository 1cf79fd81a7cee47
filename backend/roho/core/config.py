"""
Application configuration for the Roho backend.

Environment variables override all defaults. A `.env` file next to the
backend is loaded for local development.
"""
import os
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv

_BACKEND_DIR = Path(__file__).resolve().parents[2]
load_dotenv(dotenv_path=_BACKEND_DIR / ".env", override=False)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


class Settings:
    """Runtime settings read once from the environment"""

    def __init__(self) -> None:
        self.ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
        self.SERVICE_NAME: str = "roho-backend"

        # Admin endpoints (X-Admin-Secret header)
        self.ADMIN_SECRET: str = os.getenv("ADMIN_SECRET", "")

        # Money
        self.CURRENCY: str = os.getenv("CURRENCY", "KES")
        self.RIDER_EARNINGS_RATE: Decimal = Decimal(os.getenv("RIDER_EARNINGS_RATE", "0.15"))

        # Booking coordination
        self.BOOKING_LOCK_TTL_SECONDS: float = float(os.getenv("BOOKING_LOCK_TTL_SECONDS", "30"))

        # Sessions and scheduled maintenance
        self.SESSION_MAX_IDLE_HOURS: int = int(os.getenv("SESSION_MAX_IDLE_HOURS", "24"))
        self.ENABLE_SCHEDULER: bool = _env_bool("ENABLE_SCHEDULER")
        self.SCHEDULER_TIMEZONE: str = os.getenv("SCHEDULER_TIMEZONE", "Africa/Nairobi")

        # Twilio WhatsApp
        self.TWILIO_ACCOUNT_SID: str = os.getenv("TWILIO_ACCOUNT_SID", "")
        self.TWILIO_AUTH_TOKEN: str = os.getenv("TWILIO_AUTH_TOKEN", "")
        self.TWILIO_PHONE_NUMBER: str = os.getenv("TWILIO_PHONE_NUMBER", "whatsapp:+14155238886")
        self.TWILIO_API_BASE: str = os.getenv("TWILIO_API_BASE", "https://api.twilio.com/2010-04-01")
        self.VERIFY_TWILIO_SIGNATURE: bool = _env_bool("VERIFY_TWILIO_SIGNATURE")
        self.PUBLIC_BASE_URL: str = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")


settings = Settings()
