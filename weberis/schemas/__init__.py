"""Pydantic request/response schemas."""

from weberis.schemas.common import APIEnvelope, ErrorEnvelope, FormModel, PageResponse, Pagination

__all__ = ["APIEnvelope", "ErrorEnvelope", "FormModel", "PageResponse", "Pagination"]
