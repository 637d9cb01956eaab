from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "Check-in Engine"
    APP_ENV: str = "dev"
    APP_DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str = "sqlite+aiosqlite:///./checkins.db"

    AUTH_JWT_SECRET: str | None = None

    # Background jobs
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_TIMEZONE: str = "UTC"
    REMINDER_LOOKAHEAD_HOURS: int = 24
    CLEANUP_RETENTION_DAYS: int = 90
    TRANSITION_MAX_RETRIES: int = 3

    # Transactional email provider
    EMAIL_API_URL: str = "https://api.resend.com/emails"
    EMAIL_API_KEY: str | None = None
    EMAIL_FROM: str = "noreply@example.com"
    EMAIL_TIMEOUT_SECONDS: float = 10.0

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)


settings = Settings()  # type: ignore
