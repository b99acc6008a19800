"""Lead, offer and project endpoints for API v1."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Header, Query, Response, status
from sqlalchemy.orm import Session

from weberis.api.v1._authz import dump, page_payload, resolve_actor, rotate_csrf, unwrap
from weberis.core.dependencies import get_db_session
from weberis.schemas.leads import LeadResponse, OfferResponse
from weberis.schemas.projects import ProjectResponse
from weberis.services.base_service import ListQuery
from weberis.services.lead_service import LeadService, OfferService
from weberis.services.project_service import ProjectService

router = APIRouter(tags=["pipeline"])


@router.get("/leads")
def list_leads(
    search: str = Query(default="", max_length=200),
    page: int = Query(default=1, ge=1),
    status_filter: str | None = Query(default=None, alias="status"),
    business_id: int | None = Query(default=None),
    contact_id: int | None = Query(default=None),
    assigned_to: int | None = Query(default=None),
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    query = ListQuery(
        search=search,
        page=page,
        status=status_filter,
        filters={"business_id": business_id, "contact_id": contact_id, "assigned_to": assigned_to},
    )
    return page_payload(unwrap(LeadService(db).list_leads(actor, query)), LeadResponse)


@router.get("/leads/{lead_id}")
def get_lead(
    lead_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    return dump(LeadResponse, unwrap(LeadService(db).get_lead(actor, lead_id)))


@router.post("/leads", status_code=status.HTTP_201_CREATED)
def create_lead(
    response: Response,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    lead = unwrap(LeadService(db).create_lead(actor, payload, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return dump(LeadResponse, lead)


@router.put("/leads/{lead_id}")
def update_lead(
    lead_id: int,
    response: Response,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    lead = unwrap(LeadService(db).update_lead(actor, lead_id, payload, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return dump(LeadResponse, lead)


@router.delete("/leads/{lead_id}")
def delete_lead(
    lead_id: int,
    response: Response,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    deleted_id = unwrap(LeadService(db).delete_lead(actor, lead_id, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return {"status": "ok", "id": deleted_id}


@router.get("/offers")
def list_offers(
    search: str = Query(default="", max_length=200),
    page: int = Query(default=1, ge=1),
    status_filter: str | None = Query(default=None, alias="status"),
    business_id: int | None = Query(default=None),
    lead_id: int | None = Query(default=None),
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    query = ListQuery(
        search=search, page=page, status=status_filter, filters={"business_id": business_id, "lead_id": lead_id}
    )
    return page_payload(unwrap(OfferService(db).list_offers(actor, query)), OfferResponse)


@router.get("/offers/{offer_id}")
def get_offer(
    offer_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    return dump(OfferResponse, unwrap(OfferService(db).get_offer(actor, offer_id)))


@router.post("/offers", status_code=status.HTTP_201_CREATED)
def create_offer(
    response: Response,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    offer = unwrap(OfferService(db).create_offer(actor, payload, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return dump(OfferResponse, offer)


@router.put("/offers/{offer_id}")
def update_offer(
    offer_id: int,
    response: Response,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    offer = unwrap(OfferService(db).update_offer(actor, offer_id, payload, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return dump(OfferResponse, offer)


@router.delete("/offers/{offer_id}")
def delete_offer(
    offer_id: int,
    response: Response,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    deleted_id = unwrap(OfferService(db).delete_offer(actor, offer_id, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return {"status": "ok", "id": deleted_id}


@router.get("/projects")
def list_projects(
    search: str = Query(default="", max_length=200),
    page: int = Query(default=1, ge=1),
    status_filter: str | None = Query(default=None, alias="status"),
    business_id: int | None = Query(default=None),
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    query = ListQuery(search=search, page=page, status=status_filter, filters={"business_id": business_id})
    return page_payload(unwrap(ProjectService(db).list_projects(actor, query)), ProjectResponse)


@router.get("/projects/{project_id}")
def get_project(
    project_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    return dump(ProjectResponse, unwrap(ProjectService(db).get_project(actor, project_id)))


@router.post("/projects", status_code=status.HTTP_201_CREATED)
def create_project(
    response: Response,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    project = unwrap(ProjectService(db).create_project(actor, payload, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return dump(ProjectResponse, project)


@router.put("/projects/{project_id}")
def update_project(
    project_id: int,
    response: Response,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    project = unwrap(ProjectService(db).update_project(actor, project_id, payload, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return dump(ProjectResponse, project)


@router.delete("/projects/{project_id}")
def delete_project(
    project_id: int,
    response: Response,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    deleted_id = unwrap(ProjectService(db).delete_project(actor, project_id, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return {"status": "ok", "id": deleted_id}
