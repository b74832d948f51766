# swim_makeup/core/config.py

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Values come from the process environment (Docker Compose passes the
    # root .env through). Unknown variables are ignored.
    model_config = SettingsConfigDict(extra="ignore")

    # The environment mode: 'local' or 'prod'
    ENV: str = "local"

    # --- Database URLs ---
    DATABASE_URL_PROD: str = "postgresql+psycopg2://swim:swim@db:5432/swim_makeup"
    DATABASE_URL_LOCAL: str = "sqlite:///./swim_makeup.db"

    # Optional. When set, per-slot promotion locks are held in Redis so
    # several API workers and the scheduler serialise on the same slot.
    REDIS_URL: str = ""

    # Admin endpoints are guarded by this header value. Unset means the
    # admin API refuses every request.
    INTERNAL_API_KEY: str = ""

    # --- Email (Resend) ---
    RESEND_API_KEY: str = ""
    RESEND_FROM_DOMAIN: str = "swimschool.example"
    RESEND_FROM_NAME: str = "Swim School"
    PUBLIC_BASE_URL: str = "http://localhost:8000"

    # --- Scheduling rules ---
    SCHOOL_TIMEZONE: str = "Asia/Tokyo"
    DEFAULT_MAKEUP_WINDOW_DAYS: int = 30
    DEFAULT_CUTOFF_TIME: str = "12:00"
    WAITLIST_CLOSE_LEAD_MINUTES: int = 60
    EXPIRY_SWEEP_INTERVAL_MINUTES: int = 10
    ABSENCE_RELEASES_SEAT: bool = True
    SLOT_LOCK_TIMEOUT_SECONDS: int = 30

    # --- Runtime toggles ---
    SCHEDULER_ENABLED: bool = True
    RATE_LIMIT_ENABLED: bool = True
    LOG_LEVEL: str = "INFO"

    @property
    def DATABASE_URL(self) -> str:
        return (
            self.DATABASE_URL_LOCAL if self.ENV == "local" else self.DATABASE_URL_PROD
        )


# Create a single instance of the settings
settings = Settings()
