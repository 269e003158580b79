# rollcall/core/config.py
import os
from typing import ClassVar, List
from pydantic import BaseModel, Field


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_csv(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return default
    return [item.strip() for item in raw.split(",") if item.strip()] or default


def _default_database_url() -> str:
    data_dir = os.path.abspath(os.getenv("DATA_DIR", "./data"))
    os.makedirs(data_dir, exist_ok=True)
    return os.getenv("DATABASE_URL", f"sqlite:///{os.path.join(data_dir, 'rollcall.db')}")


class Settings(BaseModel):
    # Constant (not a pydantic field)
    DATA_DIR: ClassVar[str] = os.path.abspath(os.getenv("DATA_DIR", "./data"))

    DATABASE_URL: str = Field(default_factory=_default_database_url)
    SECRET_KEY: str = Field(default_factory=lambda: os.getenv("SECRET_KEY", "CHANGE_ME_SUPER_SECRET"))
    # HMAC key for attendance tokens, kept apart from the access-token key
    TOKEN_SECRET: str = Field(default_factory=lambda: os.getenv("TOKEN_SECRET", "CHANGE_ME_ATTENDANCE_SECRET"))
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default_factory=lambda: int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30")))

    ATTENDANCE_WINDOW_SECONDS: int = Field(default_factory=lambda: int(os.getenv("ATTENDANCE_WINDOW_SECONDS", "300")))
    ATTENDANCE_WINDOW_MIN_SECONDS: int = Field(default_factory=lambda: int(os.getenv("ATTENDANCE_WINDOW_MIN_SECONDS", "30")))
    ATTENDANCE_WINDOW_MAX_SECONDS: int = Field(default_factory=lambda: int(os.getenv("ATTENDANCE_WINDOW_MAX_SECONDS", "14400")))
    GEOFENCE_MAX_RADIUS_METERS: float = Field(default_factory=lambda: float(os.getenv("GEOFENCE_MAX_RADIUS_METERS", "5000")))
    RECORD_REJECTED_SCANS: bool = Field(default_factory=lambda: _env_bool("RECORD_REJECTED_SCANS", True))
    ENFORCE_ENROLLMENT: bool = Field(default_factory=lambda: _env_bool("ENFORCE_ENROLLMENT", True))

    RUN_MIGRATIONS_ON_STARTUP: bool = Field(default_factory=lambda: _env_bool("RUN_MIGRATIONS_ON_STARTUP", True))
    SEED_DEMO_DATA: bool = Field(default_factory=lambda: _env_bool("SEED_DEMO_DATA", False))
    LOG_LEVEL: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    CORS_ALLOW_ORIGINS: List[str] = Field(default_factory=lambda: _env_csv("CORS_ALLOW_ORIGINS", ["*"]))

settings = Settings()
