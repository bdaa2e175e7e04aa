import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./trainer_booking.db")
SQL_ECHO = _get_bool(os.getenv("SQL_ECHO"), default=False)

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:8081", "http://localhost:19006"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = _get_int(os.getenv("JWT_EXPIRES_MINUTES"), 60)

# Scheduling
SLOT_GRANULARITY_MINUTES = _get_int(os.getenv("SLOT_GRANULARITY_MINUTES"), 15)
MIN_SESSION_MINUTES = _get_int(os.getenv("MIN_SESSION_MINUTES"), 15)
MAX_SESSION_MINUTES = _get_int(os.getenv("MAX_SESSION_MINUTES"), 180)
PRESET_SESSION_MINUTES = [30, 60, 90, 120]
BOOKING_WINDOW_DAYS = _get_int(os.getenv("BOOKING_WINDOW_DAYS"), 21)
CONFIRM_TIMEOUT_SECONDS = float(os.getenv("CONFIRM_TIMEOUT_SECONDS", "10"))


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if SLOT_GRANULARITY_MINUTES <= 0:
        raise RuntimeError("SLOT_GRANULARITY_MINUTES must be positive.")
    if not 0 < MIN_SESSION_MINUTES <= MAX_SESSION_MINUTES:
        raise RuntimeError("Session bounds must satisfy 0 < MIN_SESSION_MINUTES <= MAX_SESSION_MINUTES.")
