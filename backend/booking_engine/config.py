# backend/booking_engine/config.py

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # repository root


class Settings(BaseSettings):
    database_url: str = "sqlite:///./data/booking_engine.db"
    redis_url: str = "redis://localhost:6379/0"
    redis_socket_timeout: float = 2.0

    # Notification collaborator consumes this list
    events_queue: str = "events:p2p"

    # Transient storage failures
    storage_retry_attempts: int = 3
    storage_retry_backoff_seconds: float = 0.05

    # Cancellation refunds
    full_refund_notice_hours: int = 24
    late_cancel_refund_percent: int = 50

    # Rate assigned to newly verified providers
    default_rate_per_15min_cents: int = 5000

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url
        if url.startswith("sqlite:///./"):
            # Relative sqlite paths are anchored at the repository root
            relative_path = url.replace("sqlite:///./", "")
            absolute_path = BASE_DIR / relative_path
            return f"sqlite:///{absolute_path}"
        return url


settings = Settings()
