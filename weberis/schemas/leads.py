"""Lead and offer schemas."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from weberis.models.enums import LeadSource, LeadStatus, OfferStatus
from weberis.schemas.common import FormModel


class LeadForm(FormModel):
    title: str | None = Field(default=None, max_length=100)
    description: str | None = Field(default=None, max_length=5000)
    source: LeadSource | None = None
    status: LeadStatus | None = None
    value: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    business_id: int | None = None
    contact_id: int | None = None
    assigned_to: int | None = None


class OfferForm(FormModel):
    title: str | None = Field(default=None, max_length=100)
    description: str | None = Field(default=None, max_length=5000)
    amount: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    status: OfferStatus | None = None
    valid_until: date | None = None
    business_id: int | None = None
    contact_id: int | None = None
    lead_id: int | None = None


class LeadResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str | None = None
    source: LeadSource | None = None
    status: LeadStatus
    value: Decimal | None = None
    business_id: int | None = None
    contact_id: int | None = None
    assigned_to: int | None = None
    created_by: int | None = None
    created_at: datetime | None = None


class OfferResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str | None = None
    amount: Decimal
    status: OfferStatus
    valid_until: date | None = None
    business_id: int | None = None
    contact_id: int | None = None
    lead_id: int | None = None
    created_by: int | None = None
    created_at: datetime | None = None
