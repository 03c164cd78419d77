import os
from dataclasses import dataclass
from typing import Mapping, Optional

from src.api.errors import ConfigurationError


@dataclass(frozen=True)
class Settings:
    """
    Process-wide configuration, read once at startup and handed to create_app.
    """
    secret_key: str
    database_url: str = "sqlite:///./notes.db"
    access_token_expire_minutes: int = 60
    frontend_origin: str = "http://localhost:3000"
    host: str = "0.0.0.0"
    port: int = 4000
    log_level: str = "INFO"


def _int_option(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


# PUBLIC_INTERFACE
def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from the process environment.

    Raises:
        ConfigurationError if SECRET_KEY is missing or a numeric option is malformed.
    """
    env = os.environ if environ is None else environ
    secret_key = env.get("SECRET_KEY", "").strip()
    if not secret_key:
        raise ConfigurationError("SECRET_KEY must be set")
    return Settings(
        secret_key=secret_key,
        database_url=env.get("DATABASE_URL") or Settings.database_url,
        access_token_expire_minutes=_int_option(
            env, "ACCESS_TOKEN_EXPIRE_MINUTES", Settings.access_token_expire_minutes
        ),
        frontend_origin=env.get("FRONTEND_ORIGIN") or Settings.frontend_origin,
        host=env.get("HOST") or Settings.host,
        port=_int_option(env, "PORT", Settings.port),
        log_level=(env.get("LOG_LEVEL") or Settings.log_level).upper(),
    )
