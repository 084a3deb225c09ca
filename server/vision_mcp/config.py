from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import model_validator


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, case_sensitive=False)

    environment: str = "dev"

    cache_mode: str = "redis"
    redis_url: str = "redis://localhost:6379"
    redis_encryption_key: str | None = None

    binding_ttl_seconds: int = 86400
    store_timeout_seconds: float = 2.0
    store_reconnect_interval_seconds: float = 5.0

    vision_base_url: str = "https://beta.api.1492.vision"
    http_timeout_seconds: float = 30.0

    host: str = "0.0.0.0"
    port: int = 8000

    disable_otel: bool = True
    otel_exporter_otlp_endpoint: str | None = None
    datadog_api_key: str | None = None

    @model_validator(mode="after")
    def validate_store(self) -> "Settings":
        if self.cache_mode.lower() not in ("redis", "memory"):
            raise ValueError("CACHE_MODE must be 'redis' or 'memory'")
        if self.binding_ttl_seconds < 0:
            raise ValueError("BINDING_TTL_SECONDS must be >= 0")
        if self.store_timeout_seconds <= 0:
            raise ValueError("STORE_TIMEOUT_SECONDS must be > 0")
        if self.store_reconnect_interval_seconds <= 0:
            raise ValueError("STORE_RECONNECT_INTERVAL_SECONDS must be > 0")
        return self


settings = Settings()
