from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional

from .models import MAX_TASK_TEXT_LENGTH

BACKENDS = {"memory", "local", "remote"}


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - PERSISTENCE_BACKEND: 'memory' (default), 'local' (JSON file key-value
      store) or 'remote' (per-user SQLite document store)
    - LOCAL_STORE_PATH: JSON file for the local backend. Default './data/local_storage.json'
    - REMOTE_DB_PATH: SQLite file for the remote backend. Default './data/documents.db'
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - ENABLE_BASIC_AUTH: 'true' to identify users via HTTP Basic Auth (default: false)
    - BASIC_AUTH_USERNAME: username for basic auth (required when ENABLE_BASIC_AUTH=true)
    - BASIC_AUTH_PASSWORD: password for basic auth (required when ENABLE_BASIC_AUTH=true)
    - LOG_LEVEL: logging level name (default: INFO)
    - MAX_TASK_TEXT_LENGTH: maximum task text length (default: 200)
    """

    persistence_backend: str
    local_store_path: str
    remote_db_path: str
    cors_allow_origins: List[str]
    enable_basic_auth: bool
    basic_auth_username: Optional[str]
    basic_auth_password: Optional[str]
    log_level: str = "INFO"
    max_task_text_length: int = MAX_TASK_TEXT_LENGTH


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_bool(value: str, default: bool = False) -> bool:
    v = value.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_int(value: str, default: int) -> int:
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("PERSISTENCE_BACKEND", "memory").strip().lower()
    if backend not in BACKENDS:
        backend = "memory"

    enable_basic_auth = _parse_bool(_get_env("ENABLE_BASIC_AUTH", "false"), False)
    basic_user = os.getenv("BASIC_AUTH_USERNAME") if enable_basic_auth else None
    basic_pass = os.getenv("BASIC_AUTH_PASSWORD") if enable_basic_auth else None

    return Settings(
        persistence_backend=backend,
        local_store_path=_get_env("LOCAL_STORE_PATH", "./data/local_storage.json").strip(),
        remote_db_path=_get_env("REMOTE_DB_PATH", "./data/documents.db").strip(),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        enable_basic_auth=enable_basic_auth,
        basic_auth_username=basic_user,
        basic_auth_password=basic_pass,
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
        max_task_text_length=_parse_int(_get_env("MAX_TASK_TEXT_LENGTH", str(MAX_TASK_TEXT_LENGTH)), MAX_TASK_TEXT_LENGTH),
    )
