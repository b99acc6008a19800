"""Shared service base: session lifecycle, workflow results and listings."""

from __future__ import annotations

import enum
import functools
import logging
import math
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import pydantic
from sqlalchemy import ColumnElement, Select, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from weberis.auth.actor_context import ActorContext
from weberis.auth.csrf import CSRF_ERROR_MESSAGE, CsrfGuard
from weberis.auth.rbac import PermissionRegistry
from weberis.core.config import Config, get_config
from weberis.core.exceptions import CRMError, Forbidden, NotFound, OperationFailed, ValidationError
from weberis.core.logging import LogContext, build_log_event
from weberis.database.db import SessionLocal

logger = logging.getLogger(__name__)

T = TypeVar("T")
FormT = TypeVar("FormT", bound=pydantic.BaseModel)
E = TypeVar("E", bound=enum.Enum)

FORBIDDEN_MESSAGE = "You do not have permission to perform this action."
STORE_FAILURE_MESSAGE = "The operation could not be completed. Please try again."
_HIDDEN_INPUT_KEYS = ("password", "confirm_password", "current_password", "csrf_token")


@dataclass
class WorkflowResult(Generic[T]):
    """Outcome of a workflow call: a value, or one typed error."""

    ok: bool
    value: T | None = None
    error_code: str | None = None
    message: str | None = None
    submitted: dict[str, Any] | None = None

    @classmethod
    def success(cls, value: T | None = None) -> "WorkflowResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: CRMError, submitted: dict[str, Any] | None = None) -> "WorkflowResult[T]":
        return cls(ok=False, error_code=error.code, message=error.message, submitted=submitted)


@dataclass
class ListQuery:
    search: str = ""
    page: int = 1
    status: str | None = None
    filters: dict[str, Any] = field(default_factory=dict)


@dataclass
class Page(Generic[T]):
    items: list[T]
    total: int
    page: int
    per_page: int
    total_pages: int
    statuses: list[str] = field(default_factory=list)


def _echo_input(args: tuple[Any, ...], kwargs: dict[str, Any]) -> dict[str, Any] | None:
    data = kwargs.get("data")
    if data is None:
        data = next((arg for arg in args if isinstance(arg, Mapping)), None)
    if not isinstance(data, Mapping):
        return None
    return {key: value for key, value in data.items() if key not in _HIDDEN_INPUT_KEYS}


def workflow(name: str) -> Callable[[Callable[..., T]], Callable[..., WorkflowResult[T]]]:
    """Turn a service method into a workflow returning ``WorkflowResult``.

    ``CRMError`` subclasses become failure results after the session is rolled
    back. Store errors become ``operation_failed``. The submitted form (the
    ``data`` argument) is echoed back on failure, minus secrets.
    """

    def decorator(func_: Callable[..., T]) -> Callable[..., WorkflowResult[T]]:
        @functools.wraps(func_)
        def wrapper(self: "BaseService", actor: ActorContext, *args: Any, **kwargs: Any) -> WorkflowResult[T]:
            context = LogContext(
                user_id=actor.user_id if actor else None,
                session_id=actor.session_id if actor else None,
                workflow=name,
            )
            try:
                value = func_(self, actor, *args, **kwargs)
            except CRMError as exc:
                self.rollback()
                logger.info(
                    "workflow.rejected",
                    extra=build_log_event("workflow.rejected", context, error_code=exc.code),
                )
                return WorkflowResult.failure(exc, _echo_input(args, kwargs))
            except SQLAlchemyError:
                self.rollback()
                logger.exception(
                    "workflow.store_failed",
                    extra=build_log_event("workflow.store_failed", context, error_code=OperationFailed.code),
                )
                return WorkflowResult.failure(OperationFailed(STORE_FAILURE_MESSAGE), _echo_input(args, kwargs))
            return WorkflowResult.success(value)

        return wrapper

    return decorator


def validate_form(form_cls: type[FormT], data: Mapping[str, Any] | None) -> FormT:
    """Parse submitted input, reporting the first problem as one message."""
    try:
        return form_cls.model_validate(dict(data or {}))
    except pydantic.ValidationError as exc:
        raise ValidationError(_first_error_message(exc)) from exc


def _first_error_message(exc: pydantic.ValidationError) -> str:
    error = exc.errors()[0]
    message = error.get("msg", "Invalid input.")
    if message.startswith("Value error, "):
        return message[len("Value error, "):]
    location = ".".join(str(part) for part in error.get("loc", ()))
    label = location.replace("_", " ").capitalize() if location else "Input"
    return f"{label}: {message}."


def search_clause(term: str, *columns: ColumnElement[Any]) -> ColumnElement[bool]:
    """Case-insensitive substring match across any of ``columns``."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    pattern = f"%{escaped}%"
    return or_(*(column.ilike(pattern, escape="\\") for column in columns))


class BaseService:
    """Base class for services that operate on a SQLAlchemy session."""

    def __init__(self, db: Session | None = None, config: Config | None = None) -> None:
        self.db = db or SessionLocal()
        self.config = config or get_config()
        self.registry = PermissionRegistry(self.db, self.config.MASTER_ADMIN_EMAIL)
        self.csrf = CsrfGuard(self.db)

    def commit(self) -> None:
        """Commit current transaction and rollback on failure."""
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def rollback(self) -> None:
        self.db.rollback()

    def close(self) -> None:
        self.db.close()

    def __enter__(self) -> "BaseService":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type:
            self.rollback()
        self.close()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Commit on success; a store failure rolls back and becomes ``OperationFailed``."""
        try:
            yield self.db
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise OperationFailed(STORE_FAILURE_MESSAGE) from exc
        except Exception:
            self.db.rollback()
            raise

    def log_extra(self, actor: ActorContext, event: str, **fields: Any) -> dict[str, Any]:
        """Structured ``extra=`` payload for a workflow log line."""
        context = LogContext(user_id=actor.user_id, session_id=actor.session_id, workflow=event.rsplit(".", 1)[0])
        return build_log_event(event, context, **fields)

    def require_permission(self, actor: ActorContext | None, key: str) -> None:
        if not self.registry.authorize(actor, key):
            raise Forbidden(FORBIDDEN_MESSAGE)

    def require_csrf(self, actor: ActorContext, token: str | None) -> None:
        if not self.csrf.validate(actor.session_id, token):
            raise Forbidden(CSRF_ERROR_MESSAGE)

    def guard_mutation(self, actor: ActorContext, key: str, csrf_token: str | None) -> None:
        """Authorization first, then the CSRF token."""
        self.require_permission(actor, key)
        self.require_csrf(actor, csrf_token)

    def get_or_404(self, model: type[T], entity_id: int | None, label: str) -> T:
        entity = self.db.get(model, entity_id) if entity_id is not None else None
        if entity is None:
            raise NotFound(f"{label} not found.")
        return entity

    def ensure_exists(self, model: type, entity_id: int | None, label: str) -> None:
        """Validate an optional reference submitted in a form."""
        if entity_id is not None and self.db.get(model, entity_id) is None:
            raise ValidationError(f"Selected {label.lower()} does not exist.")

    def paginate(
        self,
        stmt: Select,
        query: ListQuery,
        per_page: int | None = None,
        status_column: Any = None,
    ) -> Page:
        size = per_page or self.config.PAGE_SIZE
        page = max(int(query.page or 1), 1)
        total = self.db.scalar(select(func.count()).select_from(stmt.order_by(None).subquery())) or 0
        items = list(self.db.scalars(stmt.limit(size).offset((page - 1) * size)).unique().all())
        statuses: list[str] = []
        if status_column is not None:
            values = self.db.scalars(select(status_column).distinct()).all()
            statuses = sorted(getattr(value, "value", value) for value in values if value is not None)
        return Page(
            items=items,
            total=total,
            page=page,
            per_page=size,
            total_pages=max(1, math.ceil(total / size)),
            statuses=statuses,
        )


def require(value: Any, message: str) -> None:
    """Reject a blank required field."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(message)


def parse_enum(enum_cls: type[E], value: Any, label: str) -> E | None:
    if value in (None, ""):
        return None
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid {label}.") from exc


def null_references(db: Session, column: Any, entity_id: int) -> int:
    """Bulk-clear an optional foreign key pointing at ``entity_id``."""
    stmt = update(column.class_).where(column == entity_id).values({column.key: None})
    return db.execute(stmt).rowcount or 0


def count_references(db: Session, column: Any, value: Any) -> int:
    return db.scalar(select(func.count()).select_from(column.class_).where(column == value)) or 0
