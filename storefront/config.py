import os
from dataclasses import dataclass
from typing import Optional

# Optional: load a local .env file if present.
try:
    from dotenv import load_dotenv

    load_dotenv()
except Exception:
    # If python-dotenv isn't installed or .env isn't present, that's fine.
    pass


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_optional(name: str, default: Optional[str] = None) -> Optional[str]:
    """Read an env var, treating a blank value as unset."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip() or None


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    Created once at process start and handed to `create_app`; nothing reads
    the environment after that.

    IMPORTANT: Provide SECRET_KEY via environment variables or a .env file.
    Do not hardcode secrets in source code.
    """

    # -----------------
    # Document store
    # -----------------
    MONGO_URI: str = os.environ.get("MONGO_URI", "mongodb://localhost:27017")
    MONGO_DB_NAME: str = os.environ.get("MONGO_DB_NAME", "storefront")

    # -----------------
    # HTTP
    # -----------------
    API_HOST: str = os.environ.get("API_HOST", "0.0.0.0")
    PORT: int = _env_int("PORT", 5000)

    # Comma-separated origins; "*" allows any origin.
    CORS_ALLOW_ORIGINS: str = os.environ.get("CORS_ALLOW_ORIGINS", "*")

    # -----------------
    # Auth (JWT)
    # -----------------
    # NOTE: In dev, this defaults to a fixed string so you can get started.
    # In production, you MUST set SECRET_KEY to a strong random value.
    # Changing it invalidates every token issued so far.
    SECRET_KEY: str = os.environ.get("SECRET_KEY", "dev_change_me")
    AUTH_TOKEN_EXPIRE_MINUTES: int = _env_int("AUTH_TOKEN_EXPIRE_MINUTES", 60)

    # Bootstrap first admin user if the users collection is empty.
    # Opt-in: nothing is created until AUTH_BOOTSTRAP_ADMIN_PASSWORD is set.
    AUTH_BOOTSTRAP_ADMIN_NAME: Optional[str] = _env_optional("AUTH_BOOTSTRAP_ADMIN_NAME", "admin")
    AUTH_BOOTSTRAP_ADMIN_PASSWORD: Optional[str] = _env_optional("AUTH_BOOTSTRAP_ADMIN_PASSWORD")


def load_config() -> Config:
    return Config()
