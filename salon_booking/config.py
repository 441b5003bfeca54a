# salon_booking/config.py

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    database_url: str = "sqlite:///./data/booking.db"
    redis_url: Optional[str] = None

    # Organization wall clock; all working hours / time-off minutes live here
    org_tz: str = "Europe/Berlin"

    # None = step equals the requested duration
    slot_step_min: Optional[int] = None
    lead_time_min: int = 0
    today_buffer_min: int = 60
    booking_lead_time_min: int = 0
    rest_buffer_min: int = 0

    reservation_ttl_sec: int = 300
    reservation_sweep_interval_sec: int = 60
    month_cache_ttl_sec: int = 30

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url
        if url.startswith("sqlite:///./"):
            # Relative SQLite path is resolved against the repo root
            relative_path = url.replace("sqlite:///./", "")
            absolute_path = BASE_DIR / relative_path
            return f"sqlite:///{absolute_path}"
        return url


settings = Settings()
