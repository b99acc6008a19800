"""Configuration module for the WEBERIS CRM application."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import urlparse

from dotenv import load_dotenv

from weberis.core.exceptions import ConfigurationError

load_dotenv()

PLACEHOLDER_SECRET = "change_me_secret_key"
PLACEHOLDER_ADMIN_PASSWORD = "change_this_password"


def _as_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Config:
    """Runtime configuration with validation."""

    APP_NAME: str
    APP_VERSION: str
    ENV: str
    DEBUG: bool
    DATABASE_URL: str
    DB_CONNECTIVITY_REQUIRED: bool
    SECRET_KEY: str
    SESSION_TTL_MINUTES: int
    MASTER_ADMIN_EMAIL: str
    MASTER_ADMIN_NAME: str
    MASTER_ADMIN_PASSWORD: str
    PAGE_SIZE: int
    NOTIFICATION_PAGE_SIZE: int
    MIN_PASSWORD_LENGTH: int
    API_PREFIX: str
    LOG_LEVEL: str
    LOG_FILE: str

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"


def _build_config(env: str | None = None) -> Config:
    resolved_env = (env or os.getenv("ENV", "development")).strip().lower()
    debug = _as_bool(os.getenv("DEBUG"), default=(resolved_env != "production"))

    config = Config(
        APP_NAME=os.getenv("APP_NAME", "WEBERIS CRM"),
        APP_VERSION=os.getenv("APP_VERSION", "1.0.0"),
        ENV=resolved_env,
        DEBUG=debug if resolved_env != "production" else False,
        DATABASE_URL=os.getenv("DATABASE_URL", "sqlite:///./weberis.db"),
        DB_CONNECTIVITY_REQUIRED=_as_bool(os.getenv("DB_CONNECTIVITY_REQUIRED"), default=resolved_env == "production"),
        SECRET_KEY=os.getenv("SECRET_KEY", PLACEHOLDER_SECRET),
        SESSION_TTL_MINUTES=int(os.getenv("SESSION_TTL_MINUTES", "480")),
        MASTER_ADMIN_EMAIL=os.getenv("MASTER_ADMIN_EMAIL", "admin@weberis.local").strip().lower(),
        MASTER_ADMIN_NAME=os.getenv("MASTER_ADMIN_NAME", "Master Admin"),
        MASTER_ADMIN_PASSWORD=os.getenv("MASTER_ADMIN_PASSWORD", PLACEHOLDER_ADMIN_PASSWORD),
        PAGE_SIZE=int(os.getenv("PAGE_SIZE", "10")),
        NOTIFICATION_PAGE_SIZE=int(os.getenv("NOTIFICATION_PAGE_SIZE", "20")),
        MIN_PASSWORD_LENGTH=int(os.getenv("MIN_PASSWORD_LENGTH", "8")),
        API_PREFIX=os.getenv("API_PREFIX", "/api/v1"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").upper(),
        LOG_FILE=os.getenv("LOG_FILE", ""),
    )
    _validate_config(config)
    return config


def _validate_database_url(database_url: str) -> None:
    parsed = urlparse(database_url)
    if parsed.scheme not in {"sqlite", "postgresql", "postgresql+psycopg2"}:
        raise ConfigurationError(
            "DATABASE_URL must use sqlite:// or postgresql:// style URL."
        )
    if parsed.scheme.startswith("postgresql") and not parsed.hostname:
        raise ConfigurationError("PostgreSQL DATABASE_URL is missing hostname.")


def _validate_config(config: Config) -> None:
    _validate_database_url(config.DATABASE_URL)

    if config.SESSION_TTL_MINUTES < 1:
        raise ConfigurationError("SESSION_TTL_MINUTES must be >= 1.")
    if config.PAGE_SIZE < 1 or config.NOTIFICATION_PAGE_SIZE < 1:
        raise ConfigurationError("PAGE_SIZE and NOTIFICATION_PAGE_SIZE must be >= 1.")
    if config.MIN_PASSWORD_LENGTH < 8:
        raise ConfigurationError("MIN_PASSWORD_LENGTH must be >= 8.")
    if "@" not in config.MASTER_ADMIN_EMAIL:
        raise ConfigurationError("MASTER_ADMIN_EMAIL must be an email address.")
    if config.LOG_LEVEL not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise ConfigurationError("LOG_LEVEL must be one of DEBUG/INFO/WARNING/ERROR/CRITICAL.")
    if config.is_production and config.SECRET_KEY == PLACEHOLDER_SECRET:
        raise ConfigurationError("Production SECRET_KEY uses the placeholder value.")


@lru_cache(maxsize=8)
def get_config(env: str | None = None) -> Config:
    """Get validated configuration for the requested environment."""
    return _build_config(env)
