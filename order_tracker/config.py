import logging
import os
import secrets
from dataclasses import dataclass, replace
from typing import Optional

# Optional: load a local .env file if present.
try:
    from dotenv import load_dotenv

    load_dotenv()
except ImportError:
    # If python-dotenv isn't installed, the process environment is used as-is.
    pass


log = logging.getLogger(__name__)


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Returns:
      - True/False if the env var is set to a recognizable value
      - default if unset or unrecognized

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


_APP_ENV = (os.environ.get("APP_ENV") or os.environ.get("NODE_ENV") or "development").strip().lower()


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    IMPORTANT: Provide secrets via environment variables or a .env file.
    Do not hardcode secrets in source code.
    """

    # -----------------
    # Core
    # -----------------
    APP_ENV: str = _APP_ENV

    # Preferred: set ORDER_TRACKER_DATABASE_URL (or DATABASE_URL) to use Postgres.
    # Fallback: ORDER_TRACKER_DB_PATH for SQLite.
    DB_DSN: str = (
        os.environ.get("ORDER_TRACKER_DATABASE_URL")
        or os.environ.get("DATABASE_URL")
        or os.environ.get("ORDER_TRACKER_DB_PATH", "./order_tracker.sqlite")
    )

    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    # -----------------
    # Auth (JWT)
    # -----------------
    # Required in production. Outside production load_config() generates a
    # per-process secret when this is empty (sessions then die on restart).
    AUTH_JWT_SECRET: str = os.environ.get("AUTH_JWT_SECRET") or os.environ.get("JWT_SECRET") or ""
    AUTH_TOKEN_EXPIRE_MINUTES: int = int(os.environ.get("AUTH_TOKEN_EXPIRE_MINUTES", "1440"))  # 24 hours

    # bcrypt cost factor (log2 rounds). Valid range is 4..31.
    AUTH_BCRYPT_ROUNDS: int = int(os.environ.get("AUTH_BCRYPT_ROUNDS", "10"))

    # Bootstrap first admin user if users table is empty.
    # Leave the password unset to skip bootstrapping.
    AUTH_BOOTSTRAP_ADMIN_EMAIL: str = os.environ.get("AUTH_BOOTSTRAP_ADMIN_EMAIL", "admin@example.com")
    AUTH_BOOTSTRAP_ADMIN_PASSWORD: str | None = os.environ.get("AUTH_BOOTSTRAP_ADMIN_PASSWORD")

    # Cookie-based browser sessions
    AUTH_COOKIE_NAME: str = os.environ.get("AUTH_COOKIE_NAME", "token")
    AUTH_COOKIE_DOMAIN: str | None = (os.environ.get("AUTH_COOKIE_DOMAIN") or "").strip() or None
    AUTH_COOKIE_PATH: str = os.environ.get("AUTH_COOKIE_PATH", "/")
    AUTH_COOKIE_SAMESITE: str = os.environ.get("AUTH_COOKIE_SAMESITE", "strict")  # lax|strict|none

    # Secure cookies in production unless overridden with AUTH_COOKIE_SECURE=0/1.
    AUTH_COOKIE_SECURE: bool = (
        _env_bool("AUTH_COOKIE_SECURE", None)
        if _env_bool("AUTH_COOKIE_SECURE", None) is not None
        else _APP_ENV == "production"
    )

    # -----------------
    # CORS (development)
    # -----------------
    # Vite on :5173 -> API on :5000. Not needed when served from one origin.
    CORS_ALLOW_ORIGINS: str = os.environ.get(
        "CORS_ALLOW_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173",
    )

    # -----------------
    # Orders listing
    # -----------------
    ORDERS_PAGE_SIZE_DEFAULT: int = int(os.environ.get("ORDERS_PAGE_SIZE_DEFAULT", "20"))
    ORDERS_PAGE_SIZE_MAX: int = int(os.environ.get("ORDERS_PAGE_SIZE_MAX", "100"))

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"


def load_config(cfg: Optional[Config] = None) -> Config:
    """Build (or finish) the runtime config and enforce startup invariants.

    Raises RuntimeError in production when AUTH_JWT_SECRET is missing.
    """
    cfg = cfg or Config()
    if cfg.AUTH_JWT_SECRET:
        return cfg

    if cfg.is_production:
        raise RuntimeError("AUTH_JWT_SECRET must be set when APP_ENV=production")

    log.warning("AUTH_JWT_SECRET is not set; using a random per-process secret")
    return replace(cfg, AUTH_JWT_SECRET=secrets.token_urlsafe(48))
