# backend/consult_booking/config.py

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # repo root


class Settings(BaseSettings):
    app_env: str = "development"
    log_level: str = "INFO"

    database_url: str = "sqlite:///./data/booking.db"
    redis_url: str = "redis://localhost:6379/0"
    redis_socket_timeout: float = 2.0

    # Business calendar (fixed offset, no DST)
    utc_offset_minutes: int = 180
    work_hours_start: str = "10:00"
    work_hours_end: str = "18:00"
    slot_duration_minutes: int = 60
    min_advance_minutes: int = 120
    availability_cache_ttl_seconds: int = 60
    availability_horizon_days: int = 30

    # Retention
    retention_past_booking_minutes: int = 60
    retention_interval_seconds: int = 3600
    retention_enabled: bool = True

    # Rate limiting of POST /bookings; None → depends on app_env
    rate_limit_max: int | None = None
    rate_limit_window_seconds: int = 3600

    # Contact protection
    encryption_key: str = ""
    contact_digest_key: str = ""

    # Google Calendar
    google_calendar_id: str = "primary"
    google_service_account_email: str = ""
    google_private_key: str = ""
    google_client_id: str = ""
    google_client_secret: str = ""
    google_refresh_token: str = ""
    google_timeout_seconds: float = 10.0

    # Telegram
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""

    admin_token: str = ""

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url
        if url.startswith("sqlite:///./"):
            relative_path = url.replace("sqlite:///./", "")
            absolute_path = BASE_DIR / relative_path
            return f"sqlite:///{absolute_path}"
        return url

    @property
    def effective_rate_limit_max(self) -> int:
        if self.rate_limit_max is not None:
            return self.rate_limit_max
        return 5 if self.is_production else 100

    @property
    def resolved_google_private_key(self) -> str:
        # Keys pasted into .env usually carry literal "\n"
        return self.google_private_key.replace("\\n", "\n")


settings = Settings()
