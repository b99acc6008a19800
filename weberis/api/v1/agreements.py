"""Agreement type and service agreement endpoints for API v1."""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Body, Depends, Header, Query, Response, status
from sqlalchemy.orm import Session

from weberis.api.v1._authz import dump, page_payload, resolve_actor, rotate_csrf, unwrap
from weberis.core.dependencies import get_db_session
from weberis.schemas.agreements import AgreementTypeResponse, ServiceAgreementResponse
from weberis.services.agreement_service import AgreementTypeService, ServiceAgreementService
from weberis.services.base_service import ListQuery

router = APIRouter(tags=["agreements"])


@router.get("/agreement-types")
def list_agreement_types(
    active_only: bool = Query(default=False),
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    rows = unwrap(AgreementTypeService(db).list_types(actor, active_only=active_only))
    items = []
    for row in rows:
        item = dump(AgreementTypeResponse, row["agreement_type"])
        item["usage_count"] = row["usage_count"]
        items.append(item)
    return {"items": items}


@router.post("/agreement-types", status_code=status.HTTP_201_CREATED)
def create_agreement_type(
    response: Response,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    agreement_type = unwrap(AgreementTypeService(db).create_type(actor, payload, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return dump(AgreementTypeResponse, agreement_type)


@router.put("/agreement-types/{type_id}")
def update_agreement_type(
    type_id: int,
    response: Response,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    service = AgreementTypeService(db)
    agreement_type = unwrap(service.update_type(actor, type_id, payload, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    item = dump(AgreementTypeResponse, agreement_type)
    item["usage_count"] = service.usage_count(agreement_type.name)
    return item


@router.delete("/agreement-types/{type_id}")
def delete_agreement_type(
    type_id: int,
    response: Response,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    deleted_id = unwrap(AgreementTypeService(db).delete_type(actor, type_id, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return {"status": "ok", "id": deleted_id}


@router.get("/service-agreements")
def list_service_agreements(
    search: str = Query(default="", max_length=200),
    page: int = Query(default=1, ge=1),
    status_filter: str | None = Query(default=None, alias="status"),
    business_id: int | None = Query(default=None),
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    query = ListQuery(search=search, page=page, status=status_filter, filters={"business_id": business_id})
    return page_payload(unwrap(ServiceAgreementService(db).list_agreements(actor, query)), ServiceAgreementResponse)


@router.get("/service-agreements/{agreement_id}")
def get_service_agreement(
    agreement_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    return dump(ServiceAgreementResponse, unwrap(ServiceAgreementService(db).get_agreement(actor, agreement_id)))


@router.post("/service-agreements", status_code=status.HTTP_201_CREATED)
def create_service_agreement(
    response: Response,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    agreement = unwrap(ServiceAgreementService(db).create_agreement(actor, payload, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return dump(ServiceAgreementResponse, agreement)


@router.put("/service-agreements/{agreement_id}")
def update_service_agreement(
    agreement_id: int,
    response: Response,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    agreement = unwrap(
        ServiceAgreementService(db).update_agreement(actor, agreement_id, payload, csrf_token=x_csrf_token)
    )
    rotate_csrf(response, db, actor)
    return dump(ServiceAgreementResponse, agreement)


@router.get("/service-agreements/{agreement_id}/renewal")
def get_renewal_proposal(
    agreement_id: int,
    today: date | None = Query(default=None),
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    proposal = unwrap(ServiceAgreementService(db).renewal_proposal(actor, agreement_id, today=today))
    return proposal.model_dump(mode="json")


@router.post("/service-agreements/{agreement_id}/renew")
def renew_service_agreement(
    agreement_id: int,
    response: Response,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    agreement = unwrap(
        ServiceAgreementService(db).renew_agreement(actor, agreement_id, payload, csrf_token=x_csrf_token)
    )
    rotate_csrf(response, db, actor)
    return dump(ServiceAgreementResponse, agreement)


@router.delete("/service-agreements/{agreement_id}")
def delete_service_agreement(
    agreement_id: int,
    response: Response,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_csrf_token: str | None = Header(default=None, alias="X-CSRF-Token"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    deleted_id = unwrap(ServiceAgreementService(db).delete_agreement(actor, agreement_id, csrf_token=x_csrf_token))
    rotate_csrf(response, db, actor)
    return {"status": "ok", "id": deleted_id}
