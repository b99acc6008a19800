"""Agreement type and service agreement schemas."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from weberis.models.enums import AgreementStatus, BillingCycle
from weberis.schemas.common import FormModel


class AgreementTypeForm(FormModel):
    name: str | None = Field(default=None, max_length=50)
    label: str | None = Field(default=None, max_length=100)
    description: str | None = Field(default=None, max_length=2000)
    is_active: bool | None = None


class ServiceAgreementForm(FormModel):
    title: str | None = Field(default=None, max_length=100)
    description: str | None = Field(default=None, max_length=5000)
    business_id: int | None = None
    status: AgreementStatus | None = None
    start_date: date | None = None
    end_date: date | None = None
    renewal_date: date | None = None
    price: Decimal | None = Field(default=None, max_digits=10, decimal_places=2)
    billing_cycle: BillingCycle | None = None
    agreement_type: str | None = Field(default=None, max_length=50)


class RenewalForm(FormModel):
    status: AgreementStatus | None = None
    start_date: date | None = None
    end_date: date | None = None
    renewal_date: date | None = None
    price: Decimal | None = Field(default=None, max_digits=10, decimal_places=2)


class AgreementTypeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    label: str
    description: str | None = None
    is_active: bool
    usage_count: int = 0


class ServiceAgreementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str | None = None
    business_id: int
    status: AgreementStatus
    start_date: date
    end_date: date | None = None
    renewal_date: date | None = None
    price: Decimal
    billing_cycle: BillingCycle
    agreement_type: str
    created_by: int | None = None
    created_at: datetime | None = None


class RenewalProposal(BaseModel):
    start_date: date
    end_date: date
    renewal_date: date | None = None
    price: Decimal
    status: AgreementStatus = AgreementStatus.ACTIVE
