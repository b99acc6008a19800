"""Signed bearer tokens that point at a server-side session.

A token only names a ``UserSession``; whether that session is still alive
is decided by the session row, not the token. The signature is HS256 over
the compact header and claims segments.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from weberis.core.exceptions import AuthenticationError

ALGORITHM = "HS256"
_HEADER = {"alg": ALGORITHM, "typ": "JWT"}


@dataclass(frozen=True)
class SessionClaims:
    user_id: int
    session_id: str
    issued_at: int
    expires_at: int


def _encode_segment(value: dict[str, Any]) -> str:
    raw = json.dumps(value, separators=(",", ":"), sort_keys=True).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _decode_segment(segment: str) -> dict[str, Any]:
    try:
        raw = base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))
        value = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
        raise AuthenticationError("Invalid token payload.") from exc
    if not isinstance(value, dict):
        raise AuthenticationError("Invalid token payload.")
    return value


def _signature(signing_input: str, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), signing_input.encode("ascii"), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def _require_secret(secret: str) -> None:
    if not secret:
        raise AuthenticationError("JWT secret must be configured.")


def create_access_token(
    user_id: int,
    session_id: str,
    secret: str,
    ttl_minutes: int = 480,
    now: datetime | None = None,
) -> str:
    """Create an access token bound to a server-side session."""
    _require_secret(secret)
    issued = now or datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "sid": session_id,
        "iat": int(issued.timestamp()),
        "exp": int((issued + timedelta(minutes=ttl_minutes)).timestamp()),
        "jti": uuid.uuid4().hex,
    }
    signing_input = f"{_encode_segment(_HEADER)}.{_encode_segment(claims)}"
    return f"{signing_input}.{_signature(signing_input, secret)}"


def read_access_token(token: str, secret: str, now: datetime | None = None) -> SessionClaims:
    """Verify ``token`` and return the session it names.

    Raises ``AuthenticationError`` for a malformed, forged, expired or
    incomplete token.
    """
    _require_secret(secret)
    parts = (token or "").split(".")
    if len(parts) != 3:
        raise AuthenticationError("Invalid token format.")
    header_segment, claims_segment, signature = parts

    if _decode_segment(header_segment).get("alg") != ALGORITHM:
        raise AuthenticationError("Unsupported token algorithm.")
    if not hmac.compare_digest(_signature(f"{header_segment}.{claims_segment}", secret), signature):
        raise AuthenticationError("Invalid token signature.")

    claims = _decode_segment(claims_segment)
    try:
        expires_at = int(claims["exp"])
        issued_at = int(claims.get("iat", 0))
        user_id = int(claims["sub"])
        session_id = str(claims["sid"])
    except (KeyError, TypeError, ValueError) as exc:
        raise AuthenticationError("Token claims are missing session context.") from exc

    current = int((now or datetime.now(timezone.utc)).timestamp())
    if expires_at <= current:
        raise AuthenticationError("Token has expired.")
    return SessionClaims(user_id=user_id, session_id=session_id, issued_at=issued_at, expires_at=expires_at)
