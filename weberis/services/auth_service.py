"""Login, logout and bearer-token actor resolution."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from weberis.auth.actor_context import ActorContext, from_user
from weberis.auth.jwt import create_access_token, read_access_token
from weberis.core.config import Config, get_config
from weberis.core.exceptions import AuthenticationError
from weberis.core.security import verify_password
from weberis.models import User, UserSession

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password."


@dataclass(frozen=True)
class LoginResult:
    access_token: str
    actor: ActorContext


class AuthService:
    """Server-side sessions addressed by signed bearer tokens."""

    def __init__(self, db: Session, config: Config | None = None) -> None:
        self.db = db
        self.config = config or get_config()

    def login(self, email: str, password: str) -> LoginResult:
        user = self.db.scalars(select(User).where(func.lower(User.email) == email.strip().lower())).first()
        if user is None or not verify_password(password, user.password):
            logger.info("auth.login.failed", extra={"event": "auth.login.failed"})
            raise AuthenticationError(INVALID_CREDENTIALS)

        session = UserSession(id=secrets.token_urlsafe(32), user_id=user.id)
        self.db.add(session)
        self.db.commit()

        token = create_access_token(
            user_id=user.id,
            session_id=session.id,
            secret=self.config.SECRET_KEY,
            ttl_minutes=self.config.SESSION_TTL_MINUTES,
        )
        logger.info(
            "auth.login.succeeded",
            extra={"event": "auth.login.succeeded", "user_id": user.id, "session_id": session.id},
        )
        return LoginResult(access_token=token, actor=from_user(user, session_id=session.id))

    def logout(self, session_id: str | None) -> bool:
        session = self.db.get(UserSession, session_id) if session_id else None
        if session is None:
            return False
        self.db.delete(session)
        self.db.commit()
        logger.info("auth.logout", extra={"event": "auth.logout", "session_id": session_id})
        return True

    def resolve_actor(self, token: str) -> ActorContext:
        """Token -> session -> user -> role."""
        claims = read_access_token(token, secret=self.config.SECRET_KEY)
        user_id, session_id = claims.user_id, claims.session_id

        session = self.db.get(UserSession, session_id)
        if session is None or session.user_id != user_id:
            raise AuthenticationError("Session is no longer valid.")

        now = datetime.now(timezone.utc)
        last_seen = session.last_seen_at
        if last_seen.tzinfo is None:
            last_seen = last_seen.replace(tzinfo=timezone.utc)
        if now - last_seen > timedelta(minutes=self.config.SESSION_TTL_MINUTES):
            self.db.delete(session)
            self.db.commit()
            raise AuthenticationError("Session has expired.")

        user = self.db.get(User, user_id)
        if user is None:
            raise AuthenticationError("User no longer exists.")

        session.last_seen_at = now
        self.db.commit()
        return from_user(user, session_id=session.id)
