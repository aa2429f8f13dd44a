"""
Client configuration using Pydantic Settings.
Loads configuration from environment variables with sensible defaults.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from beanstalk_client.constants import DEFAULT_PORT, DEFAULT_TUBE, MIN_LEN_TO_BUFFER


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    beanstalk_host: str = "localhost"
    beanstalk_port: int = DEFAULT_PORT
    connect_timeout_seconds: float | None = 10.0

    # Transport
    write_buffer_threshold: int = MIN_LEN_TO_BUFFER

    # Job defaults
    default_priority: int = 2**31
    default_ttr_seconds: int = 120

    # Worker Configuration
    worker_tubes: list[str] = [DEFAULT_TUBE]
    worker_reserve_timeout_seconds: int = 5
    worker_poll_interval_seconds: float = 1.0
    worker_handler_modules: list[str] = []

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"  # json or console
    tracing_enabled: bool = False
    otel_exporter_otlp_endpoint: str = "http://localhost:4317"
    otel_service_name: str = "beanstalk-client"
    metrics_port: int | None = None

    @property
    def beanstalk_address(self) -> str:
        """The configured server as a host:port string, IPv6 hosts bracketed."""
        host = self.beanstalk_host
        if ":" in host and not host.startswith("["):
            host = f"[{host}]"
        return f"{host}:{self.beanstalk_port}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
