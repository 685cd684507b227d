from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional

_DOCUMENT_BACKENDS = {"memory", "sqlite", "firestore"}
_STORAGE_BACKENDS = {"memory", "local", "supabase"}


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - PERSISTENCE_BACKEND: 'memory' (default), 'sqlite' or 'firestore'
    - SQLITE_DB_PATH: path to sqlite db file. Default './data/tasks.db'
    - FIRESTORE_PROJECT: Google Cloud project id (optional, defaults to the ambient credentials)
    - FIRESTORE_COLLECTION: Firestore collection holding tasks. Default 'task_tb'
    - STORAGE_BACKEND: 'memory' (default), 'local' or 'supabase'
    - STORAGE_BUCKET: bucket holding task images. Default 'task_bk'
    - LOCAL_STORAGE_DIR: root directory for the local object store. Default './data/objects'
    - PUBLIC_BASE_URL: base of public object URLs for memory/local stores. Default 'http://localhost:8000'
    - SUPABASE_URL / SUPABASE_KEY: Supabase project URL and API key (STORAGE_BACKEND=supabase)
    - MAX_IMAGE_BYTES: maximum accepted image size. Default 5 MiB
    - ORPHAN_GRACE_SECONDS: minimum age of an unreferenced object before reconciliation removes it
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - ENABLE_BASIC_AUTH: 'true' to enable optional HTTP Basic Auth (default: false)
    - BASIC_AUTH_USERNAME: username for basic auth (required when ENABLE_BASIC_AUTH=true)
    - BASIC_AUTH_PASSWORD: password for basic auth (required when ENABLE_BASIC_AUTH=true)
    - LOG_LEVEL: root log level. Default 'INFO'
    - LOG_FORMAT: 'plain' (default) or 'json'
    """

    persistence_backend: str
    sqlite_db_path: str
    firestore_project: Optional[str]
    firestore_collection: str
    storage_backend: str
    storage_bucket: str
    local_storage_dir: str
    public_base_url: str
    supabase_url: Optional[str]
    supabase_key: Optional[str]
    max_image_bytes: int
    orphan_grace_seconds: int
    cors_allow_origins: List[str]
    enable_basic_auth: bool
    basic_auth_username: Optional[str]
    basic_auth_password: Optional[str]
    log_level: str
    log_format: str


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
    return parsed if parsed >= 0 else default


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


def _choice(name: str, default: str, allowed: set) -> str:
    value = _get_env(name, default).strip().lower()
    # Fallback to the default if unsupported
    return value if value in allowed else default


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    enable_basic_auth = _parse_bool(_get_env("ENABLE_BASIC_AUTH", "false"), False)
    basic_user = os.getenv("BASIC_AUTH_USERNAME") if enable_basic_auth else None
    basic_pass = os.getenv("BASIC_AUTH_PASSWORD") if enable_basic_auth else None

    log_format = _get_env("LOG_FORMAT", "plain").strip().lower()
    if log_format not in {"plain", "json"}:
        log_format = "plain"

    return Settings(
        persistence_backend=_choice("PERSISTENCE_BACKEND", "memory", _DOCUMENT_BACKENDS),
        sqlite_db_path=_get_env("SQLITE_DB_PATH", "./data/tasks.db").strip(),
        firestore_project=os.getenv("FIRESTORE_PROJECT") or None,
        firestore_collection=_get_env("FIRESTORE_COLLECTION", "task_tb").strip(),
        storage_backend=_choice("STORAGE_BACKEND", "memory", _STORAGE_BACKENDS),
        storage_bucket=_get_env("STORAGE_BUCKET", "task_bk").strip(),
        local_storage_dir=_get_env("LOCAL_STORAGE_DIR", "./data/objects").strip(),
        public_base_url=_get_env("PUBLIC_BASE_URL", "http://localhost:8000").strip().rstrip("/"),
        supabase_url=os.getenv("SUPABASE_URL") or None,
        supabase_key=os.getenv("SUPABASE_KEY") or None,
        max_image_bytes=_parse_int(_get_env("MAX_IMAGE_BYTES", str(5 * 1024 * 1024)), 5 * 1024 * 1024),
        orphan_grace_seconds=_parse_int(_get_env("ORPHAN_GRACE_SECONDS", "300"), 300),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        enable_basic_auth=enable_basic_auth,
        basic_auth_username=basic_user,
        basic_auth_password=basic_pass,
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
        log_format=log_format,
    )
