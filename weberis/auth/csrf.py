"""Per-session CSRF token guard for mutating requests."""

from __future__ import annotations

import hmac
import secrets

from sqlalchemy.orm import Session

from weberis.models import UserSession

CSRF_ERROR_MESSAGE = "Invalid request. Please try again."


class CsrfGuard:
    """Issues and checks single-use tokens stored on the server-side session."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _load(self, session_id: str | None) -> UserSession | None:
        if not session_id:
            return None
        return self.db.get(UserSession, session_id)

    def issue(self, session_id: str | None) -> str | None:
        """Return the outstanding token, generating one when none exists."""
        session = self._load(session_id)
        if session is None:
            return None
        if not session.csrf_token:
            session.csrf_token = secrets.token_hex(32)
            self.db.commit()
        return session.csrf_token

    def validate(self, session_id: str | None, supplied: str | None) -> bool:
        session = self._load(session_id)
        if session is None or not session.csrf_token or not supplied:
            return False
        if not hmac.compare_digest(session.csrf_token, supplied):
            return False
        # Consumed; persisted with the workflow's own transaction.
        session.csrf_token = None
        self.db.flush()
        return True
