"""Role, permission and user endpoints for API v1."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Header, Query, Response, status
from sqlalchemy.orm import Session

from weberis.api.v1._authz import dump, page_payload, resolve_actor, rotate_csrf, unwrap
from weberis.core.dependencies import get_db_session
from weberis.models import Role
from weberis.schemas.access import PermissionResponse, RoleResponse, UserResponse
from weberis.services.access_service import ProfileService, RoleService, UserService
from weberis.services.base_service import ListQuery

router = APIRouter(tags=["access"])


def _role_payload(role: Role, user_count: int) -> dict:
    return RoleResponse(
        id=role.id,
        name=role.name,
        description=role.description,
        permissions=[permission.name for permission in role.permissions],
        user_count=user_count,
    ).model_dump(mode="json")


@router.get("/permissions")
def list_permissions(
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    grouped = unwrap(RoleService(db).permission_catalogue(actor))
    return {module: [dump(PermissionResponse, item) for item in items] for module, items in grouped.items()}


@router.get("/roles")
def list_roles(
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    rows = unwrap(RoleService(db).list_roles(actor))
    return {"items": [_role_payload(row["role"], row["user_count"]) for row in rows]}


@router.get("/roles/{role_id}")
def get_role(
    role_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    service = RoleService(db)
    role = unwrap(service.get_role(actor, role_id))
    return _role_payload(role, service.user_count(role.id))


@router.post("/roles", status_code=status.HTTP_201_CREATED)
def create_role(
    response: Response,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    role = unwrap(RoleService(db).create_role(actor, payload, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return _role_payload(role, 0)


@router.put("/roles/{role_id}")
def update_role(
    role_id: int,
    response: Response,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    service = RoleService(db)
    role = unwrap(service.update_role(actor, role_id, payload, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return _role_payload(role, service.user_count(role.id))


@router.delete("/roles/{role_id}")
def delete_role(
    role_id: int,
    response: Response,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    deleted_id = unwrap(RoleService(db).delete_role(actor, role_id, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return {"status": "ok", "id": deleted_id}


@router.get("/users")
def list_users(
    search: str = Query(default="", max_length=200),
    page: int = Query(default=1, ge=1),
    role_id: int | None = Query(default=None),
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    query = ListQuery(search=search, page=page, filters={"role_id": role_id})
    return page_payload(unwrap(UserService(db).list_users(actor, query)), UserResponse)


@router.get("/users/{user_id}")
def get_user(
    user_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    return dump(UserResponse, unwrap(UserService(db).get_user(actor, user_id)))


@router.post("/users", status_code=status.HTTP_201_CREATED)
def create_user(
    response: Response,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    user = unwrap(UserService(db).create_user(actor, payload, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return dump(UserResponse, user)


@router.put("/users/{user_id}")
def update_user(
    user_id: int,
    response: Response,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    user = unwrap(UserService(db).update_user(actor, user_id, payload, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return dump(UserResponse, user)


@router.delete("/users/{user_id}")
def delete_user(
    user_id: int,
    response: Response,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    deleted_id = unwrap(UserService(db).delete_user(actor, user_id, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return {"status": "ok", "id": deleted_id}


@router.get("/profile")
def get_profile(
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    return dump(UserResponse, unwrap(ProfileService(db).get_own(actor)))


@router.put("/profile")
def update_profile(
    response: Response,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    user = unwrap(ProfileService(db).update_own(actor, payload, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return dump(UserResponse, user)
