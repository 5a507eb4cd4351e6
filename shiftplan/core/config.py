from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    ENV: str = "development"
    DEBUG: bool = True

    # Scheduling
    RECURRENCE_HORIZON_MONTHS: int = 12
    BLOCKED_TIME_HORIZON_DAYS: int = 365

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
