"""
Application settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Gateway settings with defaults for development."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    ws_path: str = "/ws"

    # Comma-separated list of allowed CORS origins (empty allows every origin)
    allowed_origins: str = ""

    # Environment
    environment: str = "development"
    debug: bool = True

    # Addressed delivery: channels look like "<namespace>.<kind>.<identity>"
    channel_namespace: str = "chat"
    channel_kind: str = "user"

    # Liveness: probe every 30s, sweep every 35s (offset from the probe),
    # evict after 65s of silence (one missed probe is tolerated)
    ws_probe_interval: float = 30.0
    ws_sweep_interval: float = 35.0
    ws_stale_threshold: float = 65.0

    # Protocol-level ping frames sent by uvicorn; browsers answer these
    # automatically, and a peer that misses one is closed by the transport
    ws_transport_ping_interval: float = 20.0
    ws_transport_ping_timeout: float = 20.0

    # Frames and fan-out
    ws_max_message_size: int = 64 * 1024  # 64 KB
    ws_broadcast_batch_size: int = 50  # Connections to send to in parallel
    ws_send_timeout: float = 5.0  # Seconds before a single write is abandoned

    # Shutdown: upper bound for waiting on in-flight connection teardown
    ws_shutdown_timeout: float = 10.0

    @property
    def cors_origins(self) -> list[str]:
        """Allowed CORS origins; ["*"] when none are configured."""
        origins = [o.strip() for o in self.allowed_origins.split(",") if o.strip()]
        return origins or ["*"]

    def validate_configuration(self) -> list[str]:
        """
        Validate setting combinations that pydantic cannot check field by field.

        Returns a list of validation errors. Empty list means all checks pass.
        """
        errors = []

        if self.ws_probe_interval <= 0 or self.ws_sweep_interval <= 0:
            errors.append("WS_PROBE_INTERVAL and WS_SWEEP_INTERVAL must be positive")

        if self.ws_stale_threshold <= self.ws_probe_interval:
            errors.append(
                "WS_STALE_THRESHOLD must be greater than WS_PROBE_INTERVAL, "
                "otherwise healthy connections are evicted between probes"
            )

        if not self.channel_namespace or not self.channel_kind:
            errors.append("CHANNEL_NAMESPACE and CHANNEL_KIND must not be empty")

        if "." in self.channel_namespace or "." in self.channel_kind:
            errors.append("CHANNEL_NAMESPACE and CHANNEL_KIND must not contain dots")

        if not self.ws_path.startswith("/"):
            errors.append("WS_PATH must start with '/'")

        if self.environment == "production" and self.debug:
            errors.append("DEBUG must be False in production")

        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience export
settings = get_settings()
