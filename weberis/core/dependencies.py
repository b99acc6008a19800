"""Dependency providers for API handlers."""

from __future__ import annotations

from collections.abc import Generator

from sqlalchemy.orm import Session

from weberis.auth.actor_context import ActorContext
from weberis.core.config import Config, get_config
from weberis.core.exceptions import AuthenticationError
from weberis.database.db import get_db
from weberis.services.auth_service import AuthService


def get_settings() -> Config:
    """Return validated application configuration."""
    return get_config()


def get_db_session() -> Generator[Session, None, None]:
    """Yield SQLAlchemy session for dependency injection."""
    yield from get_db()


def extract_bearer_token(authorization: str | None) -> str:
    if authorization is None or not authorization.strip():
        raise AuthenticationError("Authorization header is required.")
    parts = authorization.strip().split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthenticationError("Authorization header must use Bearer token.")
    return parts[1].strip()


def get_actor(authorization: str | None, db: Session, settings: Config | None = None) -> ActorContext:
    """Resolve the calling actor from the ``Authorization`` header."""
    token = extract_bearer_token(authorization)
    return AuthService(db, settings or get_settings()).resolve_actor(token)
