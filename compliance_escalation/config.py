"""Application configuration using Pydantic Settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Logging
    log_format: str = "json"  # 'json' or 'text'
    log_level: str = "INFO"
    service_name: str = "compliance-escalation"

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # Periodic evaluation pass over all open deadline events
    escalation_check_enabled: bool = True
    escalation_check_interval_minutes: int = 60

    # Upper bound on a single snooze, enforced at the API boundary
    snooze_max_hours: int = 168

    # Load the reference assignees and chain policies at startup
    seed_reference_data: bool = True

    # Testing
    testing: bool = False  # Set to True during tests to disable the scheduler


settings = Settings()
