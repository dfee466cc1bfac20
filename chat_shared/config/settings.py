"""
Application settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with defaults for development."""

    # Environment
    environment: str = "development"
    debug: bool = True
    # Overrides the DEBUG/INFO default when set
    log_level: str | None = None

    # Server bind address
    chat_host: str = "0.0.0.0"
    chat_port: int = 3000

    # WebSocket
    # Probe period; a peer that misses two consecutive probes is evicted
    ws_heartbeat_interval: float = 30.0
    # Upper bound for a single send so one slow peer cannot stall a fan-out
    ws_send_timeout: float = 5.0
    ws_max_message_size: int = 64 * 1024  # 64 KB

    # Client
    chat_server_url: str = "ws://localhost:3000/ws/chat"
    client_reconnect_delay: float = 5.0
    # Fixed delay retried forever unless backoff is switched on
    client_reconnect_backoff: bool = False
    client_reconnect_max_delay: float = 60.0
    client_shutdown_grace: float = 1.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    def validate_runtime(self) -> list[str]:
        """
        Validate settings that would make the service misbehave at runtime.
        Returns a list of validation errors. Empty list means all checks pass.
        """
        errors = []

        if self.ws_heartbeat_interval <= 0:
            errors.append("WS_HEARTBEAT_INTERVAL must be positive")

        if self.ws_send_timeout <= 0:
            errors.append("WS_SEND_TIMEOUT must be positive")

        if not 0 < self.chat_port < 65536:
            errors.append("CHAT_PORT must be between 1 and 65535")

        if self.client_reconnect_delay <= 0:
            errors.append("CLIENT_RECONNECT_DELAY must be positive")

        if self.client_reconnect_max_delay < self.client_reconnect_delay:
            errors.append(
                "CLIENT_RECONNECT_MAX_DELAY must be >= CLIENT_RECONNECT_DELAY"
            )

        if self.log_level and self.log_level.upper() not in (
            "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"
        ):
            errors.append(f"LOG_LEVEL {self.log_level!r} is not a valid level")

        if self.environment == "production" and self.debug:
            errors.append("DEBUG must be False in production")

        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience exports
settings = get_settings()
