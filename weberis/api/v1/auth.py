"""Auth endpoints for API v1."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from weberis.api.v1._authz import resolve_actor
from weberis.auth.csrf import CsrfGuard
from weberis.core.dependencies import get_db_session
from weberis.core.exceptions import AuthenticationError
from weberis.schemas.access import LoginRequest, TokenResponse
from weberis.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db_session)) -> TokenResponse:
    try:
        result = AuthService(db).login(payload.email, payload.password)
    except AuthenticationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc

    csrf_token = CsrfGuard(db).issue(result.actor.session_id)
    return TokenResponse(access_token=result.access_token, csrf_token=csrf_token)


@router.post("/logout")
def logout(
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    AuthService(db).logout(actor.session_id)
    return {"status": "ok"}


@router.get("/csrf")
def csrf_token(
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    return {"csrf_token": CsrfGuard(db).issue(actor.session_id)}


@router.get("/me")
def me(
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = resolve_actor(authorization, db)
    return {
        "user_id": actor.user_id,
        "name": actor.name,
        "email": actor.email,
        "role_id": actor.role_id,
        "role": actor.role,
    }
