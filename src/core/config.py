"""Runtime settings for the version routing service.

Values come from the environment (or .env) and are turned into the
engine's VersioningConfig at startup.
"""

from typing import Optional

from pydantic_settings import BaseSettings

from src.core.versioning.config import DEFAULT_MEDIA_TYPE_PATTERN
from src.core.versioning.version import DEFAULT_TOKEN_PATTERN


class Settings(BaseSettings):
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    API_PREFIX: str = "/api"
    ADMIN_PREFIX: str = "/admin/versions"

    # Channel precedence, highest first (path|header|media_type|query)
    VERSION_CHANNEL_PRECEDENCE: str = "path,header,media_type,query"
    VERSION_PATH_POSITION: int = 0
    VERSION_HEADER_NAME: str = "API-Version"
    VERSION_QUERY_PARAM: str = "version"
    VERSION_MEDIA_TYPE_PATTERN: str = DEFAULT_MEDIA_TYPE_PATTERN
    VERSION_TOKEN_PATTERN: str = DEFAULT_TOKEN_PATTERN
    VERSION_MANDATORY: bool = False
    VERSION_DEFAULT: Optional[str] = "1"
    # Advisory only; exceeding it logs a warning
    VERSION_MAX_ACTIVE: int = 3

    # YAML file seeding the registry at startup (optional)
    VERSIONS_FILE: Optional[str] = None
    HANDLER_TIMEOUT_SECONDS: Optional[float] = None

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
    }


_settings_cache: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = Settings()
    return _settings_cache


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings_cache
    _settings_cache = None
