"""Business and contact endpoints for API v1."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Header, Query, Response, status
from sqlalchemy.orm import Session

from weberis.api.v1._authz import dump, page_payload, resolve_actor, rotate_csrf, unwrap
from weberis.core.dependencies import get_db_session
from weberis.schemas.businesses import BusinessResponse, ContactResponse
from weberis.services.base_service import ListQuery
from weberis.services.business_service import BusinessService, ContactService

router = APIRouter(tags=["businesses"])


@router.get("/businesses")
def list_businesses(
    search: str = Query(default="", max_length=200),
    page: int = Query(default=1, ge=1),
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    result = BusinessService(db).list_businesses(actor, ListQuery(search=search, page=page))
    return page_payload(unwrap(result), BusinessResponse)


@router.get("/businesses/{business_id}")
def get_business(
    business_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    return dump(BusinessResponse, unwrap(BusinessService(db).get_business(actor, business_id)))


@router.post("/businesses", status_code=status.HTTP_201_CREATED)
def create_business(
    response: Response,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    business = unwrap(BusinessService(db).create_business(actor, payload, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return dump(BusinessResponse, business)


@router.put("/businesses/{business_id}")
def update_business(
    business_id: int,
    response: Response,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    business = unwrap(BusinessService(db).update_business(actor, business_id, payload, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return dump(BusinessResponse, business)


@router.delete("/businesses/{business_id}")
def delete_business(
    business_id: int,
    response: Response,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    deleted_id = unwrap(BusinessService(db).delete_business(actor, business_id, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return {"status": "ok", "id": deleted_id}


@router.get("/contacts")
def list_contacts(
    search: str = Query(default="", max_length=200),
    page: int = Query(default=1, ge=1),
    business_id: int | None = Query(default=None),
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    query = ListQuery(search=search, page=page, filters={"business_id": business_id})
    return page_payload(unwrap(ContactService(db).list_contacts(actor, query)), ContactResponse)


@router.get("/contacts/{contact_id}")
def get_contact(
    contact_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    return dump(ContactResponse, unwrap(ContactService(db).get_contact(actor, contact_id)))


@router.post("/contacts", status_code=status.HTTP_201_CREATED)
def create_contact(
    response: Response,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    contact = unwrap(ContactService(db).create_contact(actor, payload, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return dump(ContactResponse, contact)


@router.put("/contacts/{contact_id}")
def update_contact(
    contact_id: int,
    response: Response,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    contact = unwrap(ContactService(db).update_contact(actor, contact_id, payload, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return dump(ContactResponse, contact)


@router.delete("/contacts/{contact_id}")
def delete_contact(
    contact_id: int,
    response: Response,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    deleted_id = unwrap(ContactService(db).delete_contact(actor, contact_id, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return {"status": "ok", "id": deleted_id}
