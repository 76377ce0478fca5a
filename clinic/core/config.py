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
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic.db")
REDIS_URL = os.getenv("REDIS_URL", "")

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:3000"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = _get_int(os.getenv("JWT_EXPIRES_MINUTES"), 60)

# Defaults for the clinic settings row created on first start.
CLINIC_NAME = os.getenv("CLINIC_NAME", "Clinic")
CLINIC_DOCTOR_NAME = os.getenv("CLINIC_DOCTOR_NAME", "Doctor")
CLINIC_SLOT_DURATION = _get_int(os.getenv("CLINIC_SLOT_DURATION"), 30)
CLINIC_MAX_PATIENTS_PER_SLOT = _get_int(os.getenv("CLINIC_MAX_PATIENTS_PER_SLOT"), 1)
CLINIC_ADVANCE_BOOKING_DAYS = _get_int(os.getenv("CLINIC_ADVANCE_BOOKING_DAYS"), 30)
CLINIC_CANCELLATION_HOURS = _get_int(os.getenv("CLINIC_CANCELLATION_HOURS"), 24)

CLINIC_MAX_NO_SHOWS = _get_int(os.getenv("CLINIC_MAX_NO_SHOWS"), 3)
CLINIC_NO_SHOW_WINDOW_DAYS = _get_int(os.getenv("CLINIC_NO_SHOW_WINDOW_DAYS"), 30)
CLINIC_NO_SHOW_REQUIRES_ELAPSED = _get_bool(os.getenv("CLINIC_NO_SHOW_REQUIRES_ELAPSED"), default=True)

CLINIC_SLOTS_CACHE_TTL = _get_int(os.getenv("CLINIC_SLOTS_CACHE_TTL"), 300)


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if CLINIC_SLOT_DURATION <= 0:
        raise RuntimeError("CLINIC_SLOT_DURATION must be a positive number of minutes.")
    if CLINIC_MAX_PATIENTS_PER_SLOT <= 0:
        raise RuntimeError("CLINIC_MAX_PATIENTS_PER_SLOT must be at least 1.")
