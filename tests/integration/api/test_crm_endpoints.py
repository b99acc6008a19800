from __future__ import annotations

import asyncio
import json

import pytest
from fastapi import HTTPException, Response

from weberis.api.v1 import access, agreements, auth, businesses, feed, health, time_tracking
from weberis.api.v1._authz import CSRF_HEADER, WorkflowFailed
from weberis.auth.jwt import create_access_token
from weberis.main import create_app, workflow_failed_handler
from weberis.schemas.access import LoginRequest
from weberis.schemas.feed import SettingsUpdateRequest


def _bearer(actor, config) -> str:
    return f"Bearer {create_access_token(actor.user_id, actor.session_id, config.SECRET_KEY)}"


def test_health_endpoint_works():
    assert health.health()["status"] == "ok"


def test_app_mounts_versioned_routes(config):
    paths = set(create_app().openapi()["paths"])
    assert f"{config.API_PREFIX}/businesses" in paths
    assert f"{config.API_PREFIX}/service-agreements/{{agreement_id}}/renew" in paths
    assert f"{config.API_PREFIX}/tasks/{{task_id}}/complete" in paths
    assert f"{config.API_PREFIX}/time-entries/timer/start" in paths
    assert f"{config.API_PREFIX}/profile" in paths


def test_endpoint_requires_auth(db):
    with pytest.raises(HTTPException) as exc:
        businesses.list_businesses(search="", page=1, authorization=None, db=db)
    assert exc.value.status_code == 401


def test_login_returns_token_and_csrf(db, make_user, password):
    make_user("manager", email="liv@example.com")
    token = auth.login(LoginRequest(email="liv@example.com", password=password), db=db)
    assert token.token_type == "bearer"
    assert token.csrf_token

    me = auth.me(authorization=f"Bearer {token.access_token}", db=db)
    assert me["email"] == "liv@example.com"
    assert me["role"] == "manager"


def test_login_with_bad_password_is_401(db, make_user):
    make_user("manager", email="eva@example.com")
    with pytest.raises(HTTPException) as exc:
        auth.login(LoginRequest(email="eva@example.com", password="wrong"), db=db)
    assert exc.value.status_code == 401


def test_create_business_rotates_csrf_token(db, config, manager, csrf):
    response = Response()
    token = csrf(manager)
    body = businesses.create_business(
        response=response,
        payload={"name": "Kystlinje AS", "email": "post@kystlinje.no"},
        authorization=_bearer(manager, config),
        x_csrf_token=token,
        db=db,
    )
    assert body["name"] == "Kystlinje AS"
    assert body["created_by"] == manager.user_id
    assert response.headers[CSRF_HEADER] not in ("", token)


@pytest.mark.parametrize(
    ("payload", "status_code", "error_code"),
    [
        ({"name": ""}, 422, "validation_error"),
        ({"name": "Duplicate AS"}, 409, "conflict"),
    ],
)
def test_workflow_failures_map_to_status_codes(db, config, manager, csrf, payload, status_code, error_code):
    businesses.create_business(
        response=Response(),
        payload={"name": "Duplicate AS"},
        authorization=_bearer(manager, config),
        x_csrf_token=csrf(manager),
        db=db,
    )
    with pytest.raises(WorkflowFailed) as exc:
        businesses.create_business(
            response=Response(),
            payload=payload,
            authorization=_bearer(manager, config),
            x_csrf_token=csrf(manager),
            db=db,
        )
    assert exc.value.status_code == status_code
    assert exc.value.envelope.error_code == error_code
    assert exc.value.envelope.submitted == payload


def test_forbidden_and_not_found(db, config, viewer, manager, csrf):
    with pytest.raises(WorkflowFailed) as exc:
        access.list_roles(authorization=_bearer(manager, config), db=db)
    assert exc.value.status_code == 403

    with pytest.raises(WorkflowFailed) as exc:
        businesses.get_business(business_id=404, authorization=_bearer(viewer, config), db=db)
    assert exc.value.status_code == 404


def test_error_handler_renders_envelope(db, config, viewer, csrf):
    with pytest.raises(WorkflowFailed) as exc:
        businesses.create_business(
            response=Response(),
            payload={"name": "Nope"},
            authorization=_bearer(viewer, config),
            x_csrf_token=csrf(viewer),
            db=db,
        )
    rendered = asyncio.run(workflow_failed_handler(None, exc.value))
    assert rendered.status_code == 403
    assert json.loads(rendered.body) == {
        "status": "error",
        "error_code": "forbidden",
        "detail": "You do not have permission to perform this action.",
        "submitted": {"name": "Nope"},
    }


def test_roles_endpoint_lists_permission_names(db, config, admin):
    body = access.list_roles(authorization=_bearer(admin, config), db=db)
    by_name = {item["name"]: item for item in body["items"]}
    assert set(by_name) == {"admin", "manager", "user"}
    assert "view_lead" in by_name["user"]["permissions"]
    assert by_name["admin"]["user_count"] == 2


def test_agreement_types_include_usage(db, config, viewer):
    body = agreements.list_agreement_types(active_only=False, authorization=_bearer(viewer, config), db=db)
    assert {item["name"] for item in body["items"]} == {"standard", "premium", "maintenance", "hosting"}
    assert all(item["usage_count"] == 0 for item in body["items"])


def test_settings_update_and_notifications_feed(db, config, admin, csrf):
    response = Response()
    body = feed.update_settings(
        payload=SettingsUpdateRequest(values={"currency_symbol": "EUR"}),
        response=response,
        authorization=_bearer(admin, config),
        x_csrf_token=csrf(admin),
        db=db,
    )
    assert body["updated"] == 1
    assert feed.get_settings(authorization=_bearer(admin, config), db=db)["settings"]["currency_symbol"] == "EUR"

    listing = feed.view_notifications(page=1, authorization=_bearer(admin, config), db=db)
    assert listing["total"] == 0


def test_permission_catalogue_is_grouped_by_module(db, config, admin, manager):
    body = access.list_permissions(authorization=_bearer(admin, config), db=db)
    assert sorted(item["name"] for item in body["service_agreement"]) == [
        "add_service_agreement",
        "delete_service_agreement",
        "edit_service_agreement",
        "view_service_agreement",
    ]
    with pytest.raises(WorkflowFailed) as exc:
        access.list_permissions(authorization=_bearer(manager, config), db=db)
    assert exc.value.status_code == 403


def test_timer_endpoints_start_and_stop(db, config, viewer, csrf):
    bearer = _bearer(viewer, config)
    assert time_tracking.active_timer(authorization=bearer, db=db) == {"timer": None}

    response = Response()
    started = time_tracking.start_timer(
        response=response,
        payload={"description": "Helpdesk"},
        authorization=bearer,
        x_csrf_token=csrf(viewer),
        db=db,
    )
    assert started["end_time"] is None
    assert started["duration_label"] == "N/A"
    assert response.headers[CSRF_HEADER]
    assert time_tracking.active_timer(authorization=bearer, db=db)["timer"]["id"] == started["id"]

    stopped = time_tracking.stop_timer(
        response=Response(), payload=None, authorization=bearer, x_csrf_token=csrf(viewer), db=db
    )
    assert stopped["id"] == started["id"]
    assert stopped["duration"] is not None

    listing = time_tracking.list_time_entries(
        search="helpdesk",
        page=1,
        user_id=None,
        task_id=None,
        project_id=None,
        business_id=None,
        billable=None,
        start_date=None,
        end_date=None,
        authorization=bearer,
        db=db,
    )
    assert listing["total"] == 1


def test_profile_endpoint_updates_own_name(db, config, viewer, csrf):
    body = access.update_profile(
        response=Response(),
        payload={"name": "Ola Nordmann"},
        authorization=_bearer(viewer, config),
        x_csrf_token=csrf(viewer),
        db=db,
    )
    assert body["name"] == "Ola Nordmann"
    assert access.get_profile(authorization=_bearer(viewer, config), db=db)["id"] == viewer.user_id
