from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./delivery_pulse.db"

    # Shared secrets for inbound webhook signatures. Empty disables verification
    # for that source (payloads are queued as-is).
    JIRA_WEBHOOK_SECRET: str = ""
    GITHUB_WEBHOOK_SECRET: str = ""
    DEPLOYMENT_WEBHOOK_SECRET: str = ""
    INCIDENT_WEBHOOK_SECRET: str = ""

    # Keyed hash for author/reviewer identities stored on PR events
    HMAC_KEY: str = ""

    # GitHub REST API (gap detection)
    GITHUB_TOKEN: str = ""
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_RATE_LIMIT_FLOOR: int = 200
    GITHUB_RATE_LIMIT_COOLDOWN_SECONDS: int = 60
    GAP_DETECTION_LOOKBACK_DAYS: int = 7

    # Scheduler
    SCHEDULER_ENABLED: bool = True
    QUEUE_BATCH_LIMIT: int = 100
    QUEUE_DRAIN_INTERVAL_SECONDS: int = 60
    CORRELATION_INTERVAL_SECONDS: int = 3600
    ENRICHMENT_INTERVAL_SECONDS: int = 3600
    FORECAST_INTERVAL_SECONDS: int = 86400
    RETENTION_INTERVAL_SECONDS: int = 86400
    GAP_DETECTION_INTERVAL_SECONDS: int = 86400

    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}

    @model_validator(mode="after")
    def _fix_database_url(self):
        """Hosted Postgres hands out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if self.DATABASE_URL.startswith("postgresql://"):
            self.DATABASE_URL = self.DATABASE_URL.replace(
                "postgresql://", "postgresql+asyncpg://", 1,
            )
        return self


settings = Settings()
