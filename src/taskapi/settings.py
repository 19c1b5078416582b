from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional

from .errors import ConfigurationError


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - PERSISTENCE_BACKEND: 'mongo' (default) or 'memory'
    - MONGODB_URI: MongoDB connection string (required when PERSISTENCE_BACKEND=mongo)
    - MONGODB_DATABASE: database name. Default 'studyboard'
    - MONGODB_COLLECTION: collection holding task documents. Default 'tasks'
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - LOG_LEVEL: root log level. Default 'INFO'
    - LOG_DIR: optional directory for the rotating JSON log file
    """

    persistence_backend: str
    mongodb_uri: Optional[str]
    mongodb_database: str
    mongodb_collection: str
    cors_allow_origins: List[str]
    log_level: str
    log_dir: Optional[str]

    def validate(self) -> "Settings":
        """
        Fail fast on configuration the process cannot start with.

        Raises:
            ConfigurationError: the mongo backend is selected without MONGODB_URI.
        """
        if self.persistence_backend == "mongo" and not self.mongodb_uri:
            raise ConfigurationError("MONGODB_URI must be set when PERSISTENCE_BACKEND=mongo")
        return self


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _get_optional_env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return value.strip()


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        # Star will be handled in main via allow_origins=["*"]
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("PERSISTENCE_BACKEND", "mongo").strip().lower()
    if backend not in {"mongo", "memory"}:
        backend = "mongo"

    return Settings(
        persistence_backend=backend,
        mongodb_uri=_get_optional_env("MONGODB_URI"),
        mongodb_database=_get_env("MONGODB_DATABASE", "studyboard").strip(),
        mongodb_collection=_get_env("MONGODB_COLLECTION", "tasks").strip(),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
        log_dir=_get_optional_env("LOG_DIR"),
    )
