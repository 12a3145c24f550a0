"""Application configuration managed via environment variables."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Day Planner Backend"
    debug: bool = False
    log_level: str = "INFO"
    database_url: str = "sqlite:///./dayplanner.db"
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o"
    openai_temperature: float = 0.4
    llm_timeout_seconds: float = 60.0
    maps_api_key: str | None = None
    route_cache_size: int = 256
    location_timeout_seconds: float = 10.0
    recurrence_horizon: int = 60
    home_address: str = ""
    default_transport_mode: str = "drive"
    wake_time: str = "8:00 AM"
    sleep_time: str = "11:00 PM"
    opik_enabled: bool = False
    opik_api_key: str | None = None
    opik_project: str = "dayplanner"


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


settings = get_settings()
