"""Settings and notification endpoints for API v1."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Query, Response
from sqlalchemy.orm import Session

from weberis.api.v1._authz import page_payload, resolve_actor, rotate_csrf, unwrap
from weberis.core.dependencies import get_db_session
from weberis.schemas.feed import NotificationResponse, SettingsUpdateRequest
from weberis.services.notification_service import NotificationService
from weberis.services.settings_service import SettingsService

router = APIRouter(tags=["feed"])


@router.get("/settings")
def get_settings(
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    resolve_actor(authorization, db)
    return {"settings": SettingsService(db).all_settings(public_only=True)}


@router.put("/settings")
def update_settings(
    payload: SettingsUpdateRequest,
    response: Response,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    service = SettingsService(db)
    updated = unwrap(service.set_all(actor, payload.values, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return {"status": "ok", "updated": updated, "settings": service.all_settings()}


@router.get("/notifications")
def view_notifications(
    page: int = Query(default=1, ge=1),
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    """Listing the feed marks it read; items show their state before marking."""
    actor = resolve_actor(authorization, db)
    return page_payload(NotificationService(db).view_all(actor.user_id, page), NotificationResponse)


@router.get("/notifications/recent")
def recent_notifications(
    limit: int = Query(default=5, ge=1, le=50),
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    summary = NotificationService(db).recent_summary(actor.user_id, limit)
    summary["notifications"] = [
        NotificationResponse.model_validate(item).model_dump(mode="json") for item in summary["notifications"]
    ]
    return summary


@router.post("/notifications/mark-all-read")
def mark_all_read(
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    return {"status": "ok", "updated": NotificationService(db).mark_all_read(actor.user_id)}
