"""Shared actor resolution and result mapping for API v1 route modules."""

from __future__ import annotations

from typing import Any, TypeVar

from fastapi import HTTPException, Response, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from weberis.auth.actor_context import ActorContext
from weberis.auth.csrf import CsrfGuard
from weberis.core.dependencies import get_actor
from weberis.core.exceptions import AuthenticationError
from weberis.schemas.common import ErrorEnvelope
from weberis.services.base_service import Page, WorkflowResult

T = TypeVar("T")

CSRF_HEADER = "X-CSRF-Token"

ERROR_STATUS: dict[str, int] = {
    "validation_error": 422,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "not_found": status.HTTP_404_NOT_FOUND,
    "conflict": status.HTTP_409_CONFLICT,
    "operation_failed": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class WorkflowFailed(Exception):
    """Carries a failed workflow result up to the JSON error handler."""

    def __init__(self, status_code: int, envelope: ErrorEnvelope) -> None:
        super().__init__(envelope.detail)
        self.status_code = status_code
        self.envelope = envelope


def resolve_actor(authorization: str | None, db: Session) -> ActorContext:
    try:
        return get_actor(authorization, db)
    except AuthenticationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc


def unwrap(result: WorkflowResult[T]) -> T:
    if result.ok:
        return result.value
    code = result.error_code or "operation_failed"
    raise WorkflowFailed(
        ERROR_STATUS.get(code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        ErrorEnvelope(error_code=code, detail=result.message or "Request failed.", submitted=result.submitted),
    )


def rotate_csrf(response: Response, db: Session, actor: ActorContext) -> None:
    """Hand the client the token for its next mutation."""
    token = CsrfGuard(db).issue(actor.session_id)
    if token:
        response.headers[CSRF_HEADER] = token


def dump(schema: type[BaseModel], value: Any) -> dict[str, Any]:
    return schema.model_validate(value).model_dump(mode="json")


def page_payload(page: Page, schema: type[BaseModel]) -> dict[str, Any]:
    return {
        "items": [dump(schema, item) for item in page.items],
        "total": page.total,
        "page": page.page,
        "per_page": page.per_page,
        "total_pages": page.total_pages,
        "statuses": page.statuses,
    }
