from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://coach:coach@db:5432/weekly_coach"
    APP_ENV: str = "development"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://myapp.com,https://api.myapp.com"
    CORS_ORIGINS: str = "*"

    # Text generation (Anthropic Messages API)
    ANTHROPIC_API_KEY: Optional[str] = None
    COACHING_MODEL: str = "claude-sonnet-4-20250514"
    COACHING_MAX_TOKENS: int = 1000
    COACHING_TEMPERATURE: float = 0.7
    GENERATION_TIMEOUT_S: float = 60.0
    MAX_GENERATION_ATTEMPTS: int = 3

    # Weekly batch run. Requests must send "Authorization: Bearer <CRON_SECRET>".
    CRON_SECRET: Optional[str] = None
    CRON_MIN_CHECKINS: int = 6

    # "text" or "json". Production always logs JSON.
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
