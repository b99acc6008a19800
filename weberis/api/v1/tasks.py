"""Task endpoints for API v1."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Header, Query, Response, status
from sqlalchemy.orm import Session

from weberis.api.v1._authz import dump, page_payload, resolve_actor, rotate_csrf, unwrap
from weberis.core.dependencies import get_db_session
from weberis.schemas.projects import TaskResponse
from weberis.services.base_service import ListQuery
from weberis.services.project_service import TaskService

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("")
def list_tasks(
    search: str = Query(default="", max_length=200),
    page: int = Query(default=1, ge=1),
    status_filter: str | None = Query(default=None, alias="status"),
    priority: str | None = Query(default=None),
    assigned_to: int | None = Query(default=None),
    project_id: int | None = Query(default=None),
    business_id: int | None = Query(default=None),
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    query = ListQuery(
        search=search,
        page=page,
        status=status_filter,
        filters={
            "priority": priority,
            "assigned_to": assigned_to,
            "project_id": project_id,
            "business_id": business_id,
        },
    )
    return page_payload(unwrap(TaskService(db).list_tasks(actor, query)), TaskResponse)


@router.get("/{task_id}")
def get_task(
    task_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    return dump(TaskResponse, unwrap(TaskService(db).get_task(actor, task_id)))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_task(
    response: Response,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    task = unwrap(TaskService(db).create_task(actor, payload, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return dump(TaskResponse, task)


@router.put("/{task_id}")
def update_task(
    task_id: int,
    response: Response,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    task = unwrap(TaskService(db).update_task(actor, task_id, payload, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return dump(TaskResponse, task)


@router.post("/{task_id}/complete")
def complete_task(
    task_id: int,
    response: Response,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    task = unwrap(TaskService(db).complete_task(actor, task_id, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return dump(TaskResponse, task)


@router.delete("/{task_id}")
def delete_task(
    task_id: int,
    response: Response,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    deleted_id = unwrap(TaskService(db).delete_task(actor, task_id, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return {"status": "ok", "id": deleted_id}
