from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from backend project root so it loads regardless of cwd
_BACKEND_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _BACKEND_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str
    database_ssl: bool = False
    db_echo: bool = False

    # JWT
    secret_key: str
    access_token_expire_minutes: int = 60
    algorithm: str = "HS256"

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Slot generation
    slot_granularity_minutes: int = 30
    default_slot_duration_minutes: int = 30

    # Clinic policy used when no "default" row has been saved yet
    default_cancellation_cutoff_hours: int = 24
    default_reschedule_cutoff_hours: int = 12
    default_office_hours_start: str = "09:00"
    default_office_hours_end: str = "17:00"

    # Audit log listing
    audit_page_size_max: int = 200

    # Env
    env: str = "development"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
