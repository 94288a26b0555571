"""Process configuration via environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class ConfigurationError(ValueError):
    """Raised at startup when the blog cannot be configured."""


class Settings(BaseSettings):
    """Server settings loaded from environment (``MDBLOG_*``)."""

    # Development mode: live-reload routes and filesystem watch
    dev: bool = False

    # Bind address (overridden by BlogSettings.hostname/port when set)
    hostname: str = "0.0.0.0"
    port: int = 8000

    log_level: str = "INFO"

    # Directory holding posts/ and static assets; empty means cwd
    content_root: str = ""

    # Upper bound on concurrent file reads during the initial load
    load_concurrency: int = 16

    model_config = {"env_prefix": "MDBLOG_", "env_file": ".env", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
