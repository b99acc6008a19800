"""Time entry and timer endpoints for API v1."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Header, Query, Response, status
from sqlalchemy.orm import Session

from weberis.api.v1._authz import dump, page_payload, resolve_actor, rotate_csrf, unwrap
from weberis.core.dependencies import get_db_session
from weberis.schemas.time_entries import TimeEntryResponse
from weberis.services.base_service import ListQuery
from weberis.services.time_service import TimeEntryService

router = APIRouter(prefix="/time-entries", tags=["time"])


@router.get("")
def list_time_entries(
    search: str = Query(default="", max_length=200),
    page: int = Query(default=1, ge=1),
    user_id: int | None = Query(default=None),
    task_id: int | None = Query(default=None),
    project_id: int | None = Query(default=None),
    business_id: int | None = Query(default=None),
    billable: str | None = Query(default=None, pattern="^(yes|no)$"),
    start_date: str | None = Query(default=None),
    end_date: str | None = Query(default=None),
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    query = ListQuery(
        search=search,
        page=page,
        filters={
            "user_id": user_id,
            "task_id": task_id,
            "project_id": project_id,
            "business_id": business_id,
            "billable": billable,
            "start_date": start_date,
            "end_date": end_date,
        },
    )
    return page_payload(unwrap(TimeEntryService(db).list_entries(actor, query)), TimeEntryResponse)


@router.get("/timer")
def active_timer(
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    entry = unwrap(TimeEntryService(db).active_timer(actor))
    return {"timer": dump(TimeEntryResponse, entry) if entry is not None else None}


@router.post("/timer/start", status_code=status.HTTP_201_CREATED)
def start_timer(
    response: Response,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    entry = unwrap(TimeEntryService(db).start_timer(actor, payload, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return dump(TimeEntryResponse, entry)


@router.post("/timer/stop")
def stop_timer(
    response: Response,
    payload: dict[str, Any] | None = Body(default=None),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    entry = unwrap(TimeEntryService(db).stop_timer(actor, payload, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return dump(TimeEntryResponse, entry)


@router.delete("/timer")
def discard_timer(
    response: Response,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    discarded_id = unwrap(TimeEntryService(db).discard_timer(actor, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return {"status": "ok", "id": discarded_id}


@router.get("/{entry_id}")
def get_time_entry(
    entry_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    return dump(TimeEntryResponse, unwrap(TimeEntryService(db).get_entry(actor, entry_id)))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_time_entry(
    response: Response,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    entry = unwrap(TimeEntryService(db).create_entry(actor, payload, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return dump(TimeEntryResponse, entry)


@router.put("/{entry_id}")
def update_time_entry(
    entry_id: int,
    response: Response,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    entry = unwrap(TimeEntryService(db).update_entry(actor, entry_id, payload, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return dump(TimeEntryResponse, entry)


@router.delete("/{entry_id}")
def delete_time_entry(
    entry_id: int,
    response: Response,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    deleted_id = unwrap(TimeEntryService(db).delete_entry(actor, entry_id, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return {"status": "ok", "id": deleted_id}
