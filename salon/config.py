# salon/config.py

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = "sqlite:///./salon.db"

    jwt_secret: str = "change-me-later"
    jwt_algorithm: str = "HS256"
    client_token_minutes: int = 7 * 24 * 60
    stylist_token_minutes: int = 3 * 24 * 60

    # Clients may cancel only this many hours before the appointment starts
    cancellation_notice_hours: int = 24

    base_url: str = "http://localhost:8000"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="SALON_",
        env_file=".env",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
