"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_name: str = "Flarewise"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Analytics ---
    analytics_config_path: str | None = None  # defaults to the bundled analytics_config.yaml
    insight_cache_enabled: bool = True
    insight_cache_ttl_seconds: int = 3600
    insight_cache_maxsize: int = 1024

    # --- Request limits ---
    max_events_per_request: int = 50_000

    # --- CORS ---
    cors_origins: list[str] = ["http://localhost:3000"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
