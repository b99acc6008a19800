from __future__ import annotations

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest

from weberis.auth.jwt import create_access_token, read_access_token
from weberis.auth.rbac import ALL_PERMISSION_KEYS, DEFAULT_ROLE_PERMISSIONS, PermissionRegistry, permission_key
from weberis.core.exceptions import AuthenticationError
from weberis.core.security import hash_password, verify_password


def test_access_token_names_user_and_session():
    issued = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)
    token = create_access_token(user_id=10, session_id="abc123", secret="test-secret", ttl_minutes=30, now=issued)
    claims = read_access_token(token, secret="test-secret", now=issued + timedelta(minutes=5))
    assert claims.user_id == 10
    assert claims.session_id == "abc123"
    assert claims.expires_at - claims.issued_at == 30 * 60


def test_access_token_rejects_wrong_secret_and_expiry():
    token = create_access_token(user_id=1, session_id="s", secret="one")
    with pytest.raises(AuthenticationError, match="signature"):
        read_access_token(token, secret="two")

    issued = datetime.now(timezone.utc) - timedelta(hours=2)
    expired = create_access_token(user_id=1, session_id="s", secret="one", ttl_minutes=60, now=issued)
    with pytest.raises(AuthenticationError, match="expired"):
        read_access_token(expired, secret="one")


def test_access_token_rejects_malformed_and_foreign_algorithm():
    with pytest.raises(AuthenticationError, match="format"):
        read_access_token("not-a-token", secret="one")

    token = create_access_token(user_id=1, session_id="s", secret="one")
    _, claims_segment, signature = token.split(".")
    header = base64.urlsafe_b64encode(json.dumps({"alg": "none"}).encode()).decode().rstrip("=")
    with pytest.raises(AuthenticationError, match="algorithm"):
        read_access_token(f"{header}.{claims_segment}.{signature}", secret="one")


def test_password_hash_roundtrip():
    hashed = hash_password("s3cret-value", iterations=1000)
    assert hashed.startswith("pbkdf2_sha256$1000$")
    assert verify_password("s3cret-value", hashed) is True
    assert verify_password("wrong", hashed) is False
    assert verify_password("s3cret-value", "plain-text") is False


def test_permission_keys_are_action_then_module():
    assert permission_key("service_agreement", "edit") == "edit_service_agreement"
    assert len(ALL_PERMISSION_KEYS) == 45
    assert "view_time_reports" in ALL_PERMISSION_KEYS


def test_default_role_permission_sets():
    manager = DEFAULT_ROLE_PERMISSIONS["manager"]
    assert "delete_lead" in manager
    assert not any(key.endswith(("_user", "_role", "_setting")) for key in manager)
    user = DEFAULT_ROLE_PERMISSIONS["user"]
    assert user - {key for key in user if key.startswith("view_")} == {"add_time", "edit_time", "delete_time"}
    assert "view_time_reports" not in user
    assert "view_time_reports" in manager
    assert DEFAULT_ROLE_PERMISSIONS["admin"] == ALL_PERMISSION_KEYS


def test_registry_authorizes_by_role(db, config, manager, viewer, master_admin):
    registry = PermissionRegistry(db, config.MASTER_ADMIN_EMAIL)
    assert registry.authorize(manager, "add_business") is True
    assert registry.authorize(manager, "add_user") is False
    assert registry.authorize(viewer, "view_lead") is True
    assert registry.authorize(viewer, "edit_lead") is False
    assert registry.authorize(master_admin, "delete_role") is True
    assert registry.authorize(None, "view_lead") is False


def test_registry_groups_permissions_by_module(db):
    grouped = PermissionRegistry(db).grouped_permissions()
    assert set(grouped) == {
        "business",
        "contact",
        "lead",
        "offer",
        "project",
        "service_agreement",
        "task",
        "time",
        "time_reports",
        "user",
        "role",
        "setting",
    }
    assert {permission.action for permission in grouped["lead"]} == {"view", "add", "edit", "delete"}
