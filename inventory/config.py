# inventory/config.py
# Environment-aware configuration for the inventory backend.
#
# Settings are read from the process environment exactly once (at boot) and
# handed to create_app(); nothing else in the package reads os.environ.

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Literal, Mapping, Optional, Tuple

Environment = Literal["dev", "staging", "prod"]

DEV_SECRET_KEY = "dev-secret-change-me"

# Frontend dev server is always allowed (Vite default port)
DEFAULT_CORS_ORIGINS: Tuple[str, ...] = ("http://localhost:5173",)

DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024


@dataclass(frozen=True)
class Settings:
    """
    Immutable process-wide configuration.

    Fields:
        env: Deployment environment (dev/staging/prod)
        secret_key: HS256 signing secret for session tokens
        access_token_hours: Session token lifetime
        database_url: PostgreSQL URL; empty means SQLite
        database_path: SQLite file used when database_url is empty
        sqlite_busy_timeout: Seconds SQLite waits on a locked database
        cors_origins: Origins allowed by the CORS middleware
        upload_dir: Directory for uploaded item photos (served under /uploads)
        max_upload_bytes: Largest accepted upload body
        base_url: Public URL of this API, used to build upload URLs
        cookie_secure: Whether the session cookie is marked Secure
        bootstrap_admin_name / bootstrap_admin_password: Optional first admin
    """
    env: Environment = "dev"
    secret_key: str = DEV_SECRET_KEY
    algorithm: str = "HS256"
    access_token_hours: int = 24
    database_url: str = ""
    database_path: str = "inventory.db"
    sqlite_busy_timeout: float = 30.0
    cors_origins: Tuple[str, ...] = field(default=DEFAULT_CORS_ORIGINS)
    upload_dir: str = "uploads"
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    base_url: str = "http://localhost:8080"
    cookie_secure: bool = False
    bootstrap_admin_name: Optional[str] = None
    bootstrap_admin_password: Optional[str] = None

    @property
    def is_dev(self) -> bool:
        return self.env == "dev"

    @property
    def is_prod(self) -> bool:
        return self.env == "prod"

    @property
    def is_postgres(self) -> bool:
        return self.database_url.startswith(("postgres://", "postgresql://"))


def _as_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from environment variables.

    Raises:
        RuntimeError: If JWT_SECRET is missing outside of dev, or ENV is unknown
    """
    env_vars = os.environ if environ is None else environ

    env = env_vars.get("ENV", "dev").strip().lower()
    if env not in ("dev", "staging", "prod"):
        raise RuntimeError(f"Unknown ENV: {env!r} (expected dev, staging or prod)")

    secret_key = env_vars.get("JWT_SECRET", "").strip()
    if not secret_key:
        if env != "dev":
            raise RuntimeError("JWT_SECRET must be set outside of dev")
        secret_key = DEV_SECRET_KEY

    origins = list(DEFAULT_CORS_ORIGINS)
    frontend_url = env_vars.get("FRONTEND_URL", "").strip()
    if frontend_url:
        origins.append(frontend_url)
    extra_origins = env_vars.get("CORS_ORIGINS", "")
    origins.extend(o.strip() for o in extra_origins.split(",") if o.strip())

    port = env_vars.get("PORT", "8080").strip() or "8080"

    return Settings(
        env=env,  # type: ignore[arg-type]
        secret_key=secret_key,
        access_token_hours=int(env_vars.get("ACCESS_TOKEN_HOURS", "24")),
        database_url=env_vars.get("DATABASE_URL", "").strip(),
        database_path=env_vars.get("DATABASE_PATH", "inventory.db"),
        sqlite_busy_timeout=float(env_vars.get("SQLITE_BUSY_TIMEOUT", "30")),
        cors_origins=tuple(dict.fromkeys(origins)),
        upload_dir=env_vars.get("UPLOAD_DIR", "uploads"),
        max_upload_bytes=int(env_vars.get("MAX_UPLOAD_BYTES", str(DEFAULT_MAX_UPLOAD_BYTES))),
        base_url=env_vars.get("BASE_URL", f"http://localhost:{port}").rstrip("/"),
        cookie_secure=_as_bool(env_vars.get("COOKIE_SECURE"), default=(env == "prod")),
        bootstrap_admin_name=env_vars.get("BOOTSTRAP_ADMIN_NAME") or None,
        bootstrap_admin_password=env_vars.get("BOOTSTRAP_ADMIN_PASSWORD") or None,
    )
