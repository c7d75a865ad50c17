# backend/clinic_booking/config.py

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # repository root


class Settings(BaseSettings):
    database_url: str = "sqlite:///./data/clinic.db"
    redis_url: Optional[str] = None

    clinic_timezone: str = "Europe/Madrid"
    booking_buffer_minutes: int = 5
    recheck_with_buffer: bool = True
    past_cutoff_minutes: int = 5
    slots_cache_ttl_seconds: int = 300

    google_client_id: str = ""
    google_client_secret: str = ""
    calendar_sync_timeout_seconds: float = 10.0
    calendar_sync_workers: int = 4

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url
        if url.startswith("sqlite:///./"):
            # relative sqlite paths are resolved against the repository root
            relative_path = url.replace("sqlite:///./", "")
            absolute_path = BASE_DIR / relative_path
            return f"sqlite:///{absolute_path}"
        return url


settings = Settings()
