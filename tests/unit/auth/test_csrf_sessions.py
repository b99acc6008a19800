from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from weberis.auth.csrf import CSRF_ERROR_MESSAGE, CsrfGuard
from weberis.core.dependencies import extract_bearer_token, get_actor
from weberis.core.exceptions import AuthenticationError
from weberis.models import Business, UserSession
from weberis.services.auth_service import AuthService
from weberis.services.business_service import BusinessService


def test_csrf_token_is_single_use(db, admin):
    guard = CsrfGuard(db)
    token = guard.issue(admin.session_id)
    assert guard.issue(admin.session_id) == token

    assert guard.validate(admin.session_id, token) is True
    db.commit()
    assert guard.validate(admin.session_id, token) is False
    assert guard.issue(admin.session_id) != token


def test_csrf_validate_rejects_missing_session_or_token(db, admin):
    guard = CsrfGuard(db)
    guard.issue(admin.session_id)
    assert guard.validate(None, "anything") is False
    assert guard.validate(admin.session_id, None) is False
    assert guard.validate("unknown-session", "anything") is False


def test_mismatched_csrf_token_changes_nothing(db, admin, csrf):
    token = csrf(admin)
    result = BusinessService(db).create_business(admin, {"name": "Fjord AS"}, csrf_token="not-the-token")

    assert result.ok is False
    assert result.error_code == "forbidden"
    assert result.message == CSRF_ERROR_MESSAGE
    assert result.submitted == {"name": "Fjord AS"}
    assert db.scalar(select(func.count(Business.id))) == 0
    # The outstanding token is still usable.
    assert BusinessService(db).create_business(admin, {"name": "Fjord AS"}, csrf_token=token).ok is True


def test_failed_workflow_keeps_the_token(db, admin, csrf):
    token = csrf(admin)
    result = BusinessService(db).create_business(admin, {"name": ""}, csrf_token=token)
    assert result.error_code == "validation_error"
    assert CsrfGuard(db).validate(admin.session_id, token) is True


def test_login_and_resolve_actor(db, config, make_user, password):
    user = make_user("manager", email="kari@example.com")
    result = AuthService(db, config).login("KARI@example.com", password)

    actor = get_actor(f"Bearer {result.access_token}", db, config)
    assert actor.user_id == user.id
    assert actor.role == "manager"
    assert actor.session_id == result.actor.session_id


def test_login_rejects_bad_password(db, config, make_user):
    make_user("user", email="ola@example.com")
    with pytest.raises(AuthenticationError, match="Invalid email or password"):
        AuthService(db, config).login("ola@example.com", "nope")


def test_logout_invalidates_token(db, config, make_user, password):
    make_user("user", email="per@example.com")
    service = AuthService(db, config)
    result = service.login("per@example.com", password)

    assert service.logout(result.actor.session_id) is True
    with pytest.raises(AuthenticationError, match="no longer valid"):
        service.resolve_actor(result.access_token)


def test_idle_session_expires(db, config, make_user, password):
    make_user("user", email="idle@example.com")
    service = AuthService(db, config)
    result = service.login("idle@example.com", password)

    session = db.get(UserSession, result.actor.session_id)
    session.last_seen_at = datetime.now(timezone.utc) - timedelta(minutes=config.SESSION_TTL_MINUTES + 1)
    db.commit()

    with pytest.raises(AuthenticationError, match="expired"):
        service.resolve_actor(result.access_token)
    assert db.get(UserSession, result.actor.session_id) is None


def test_extract_bearer_token_requires_scheme():
    assert extract_bearer_token("Bearer abc") == "abc"
    with pytest.raises(AuthenticationError):
        extract_bearer_token(None)
    with pytest.raises(AuthenticationError):
        extract_bearer_token("Token abc")
