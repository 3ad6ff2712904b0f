import json
from functools import lru_cache

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "Coin Proxy API"
    app_version: str = "0.1.0"
    host: str = "0.0.0.0"
    port: int = 5000
    log_level: str = "INFO"

    # CORS - stored as string, parsed via computed property
    cors_origins_raw: str = "*"

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from pipe/comma-separated string or JSON array."""
        v = self.cors_origins_raw
        if v.startswith("["):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        if "|" in v:
            return [origin.strip() for origin in v.split("|") if origin.strip()]
        return [origin.strip() for origin in v.split(",") if origin.strip()]

    # Upstream market-data API
    upstream_base_url: str = "https://api.coingecko.com/api/v3"
    upstream_timeout_seconds: float = 30.0
    vs_currency: str = "usd"
    markets_per_page: int = 100

    # Response cache
    cache_ttl_seconds: float = 300

    # Fetch queue pacing and 429 backoff
    pacing_delay_ms: int = 1000
    retry_base_delay_ms: int = 3000
    max_attempts: int = 3

    # Client-facing throttle on /api/*
    client_rate_limit: int = 10
    client_rate_window_seconds: int = 60

    @property
    def pacing_delay_seconds(self) -> float:
        return self.pacing_delay_ms / 1000

    @property
    def retry_base_delay_seconds(self) -> float:
        return self.retry_base_delay_ms / 1000


@lru_cache
def get_settings() -> Settings:
    return Settings()
