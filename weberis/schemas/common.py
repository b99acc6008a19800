"""Common schema module."""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from weberis.utils.validators import is_valid_email, sanitize_text


class APIEnvelope(BaseModel):
    status: str = "ok"
    message: str | None = None


class Pagination(BaseModel):
    search: str = Field(default="", max_length=200)
    page: int = Field(default=1, ge=1)


class ErrorEnvelope(BaseModel):
    status: str = "error"
    error_code: str
    detail: str
    submitted: dict[str, Any] | None = None


class PageResponse(BaseModel):
    items: list[Any]
    total: int
    page: int
    per_page: int
    total_pages: int
    statuses: list[str] = Field(default_factory=list)


class FormModel(BaseModel):
    """Base for submitted forms.

    Strings are sanitized and blank values become ``None`` so optional
    references and numbers may be submitted empty.
    """

    model_config = ConfigDict(extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _clean_strings(cls, value: Any, info: ValidationInfo) -> Any:
        if not isinstance(value, str):
            return value
        if info.field_name and "password" in info.field_name:
            cleaned = value.replace("\x00", "")
        else:
            cleaned = sanitize_text(value)
        return cleaned or None


EMAIL_MAX_LENGTH = 100


def check_email(value: str | None) -> str | None:
    if value is not None and len(value) > EMAIL_MAX_LENGTH:
        raise ValueError(f"Email must be at most {EMAIL_MAX_LENGTH} characters.")
    if value is not None and not is_valid_email(value):
        raise ValueError("Invalid email format.")
    return value


EmailValue = Annotated[str | None, AfterValidator(check_email)]
