import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./telemed.db")

CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), ["http://localhost:3000"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

# Booking rules
ADVANCE_NOTICE_HOURS = int(os.getenv("ADVANCE_NOTICE_HOURS", "48"))
CANCELLATION_NOTICE_HOURS = int(os.getenv("CANCELLATION_NOTICE_HOURS", "48"))
SLOT_CREATION_MAX_DAYS_AHEAD = int(os.getenv("SLOT_CREATION_MAX_DAYS_AHEAD", "60"))
BOOKING_WINDOW_DAYS = int(os.getenv("BOOKING_WINDOW_DAYS", "30"))
ADMIN_COMMISSION_RATE = os.getenv("ADMIN_COMMISSION_RATE", "0.10")
JOIN_WINDOW_LEAD_MINUTES = int(os.getenv("JOIN_WINDOW_LEAD_MINUTES", "15"))

# Concurrency and background work
SLOT_LOCK_TIMEOUT_SECONDS = float(os.getenv("SLOT_LOCK_TIMEOUT_SECONDS", "10"))
EXPIRY_SWEEP_ENABLED = _get_bool(os.getenv("EXPIRY_SWEEP_ENABLED"), default=True)
EXPIRY_SWEEP_INTERVAL_SECONDS = int(os.getenv("EXPIRY_SWEEP_INTERVAL_SECONDS", "300"))


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if EXPIRY_SWEEP_INTERVAL_SECONDS <= 0:
        raise RuntimeError("EXPIRY_SWEEP_INTERVAL_SECONDS must be positive.")
    if SLOT_LOCK_TIMEOUT_SECONDS <= 0:
        raise RuntimeError("SLOT_LOCK_TIMEOUT_SECONDS must be positive.")
