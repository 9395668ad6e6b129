"""Application settings loaded from .env via pydantic-settings."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration — values come from environment / .env file."""

    # Device control API
    device_port: int = 10767
    api_prefix: str = "/api/v1/playback/"
    token_header: str = "apptoken"
    request_timeout: float = 60.0

    # Command pacing
    debounce_seconds: float = 0.3
    pulse_seconds: float = 2.0

    # Event channel
    reconnect_attempts: int = 3
    reconnect_delay: float = 1.0
    connect_timeout: float = 10.0

    # Artwork
    artwork_size: int = 1024
    artwork_cache_size: int = 64

    # Device registry
    db_path: str = "./data/cider_remote.db"

    # Logging
    log_level: str = "INFO"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def db_abs_path(self) -> Path:
        """Return the database path as an absolute Path, creating parents if needed."""
        p = Path(self.db_path)
        p.parent.mkdir(parents=True, exist_ok=True)
        return p.resolve()


@lru_cache
def get_settings() -> Settings:
    """Cached singleton so .env is read only once."""
    return Settings()
