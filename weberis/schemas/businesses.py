"""Business and contact schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from weberis.schemas.common import EmailValue, FormModel


class BusinessForm(FormModel):
    name: str | None = Field(default=None, max_length=100)
    registration_number: str | None = Field(default=None, max_length=50)
    address: str | None = Field(default=None, max_length=2000)
    phone: str | None = Field(default=None, max_length=20)
    email: EmailValue = None
    website: str | None = Field(default=None, max_length=100)
    industry: str | None = Field(default=None, max_length=100)
    description: str | None = Field(default=None, max_length=5000)


class ContactForm(FormModel):
    first_name: str | None = Field(default=None, max_length=50)
    last_name: str | None = Field(default=None, max_length=50)
    email: EmailValue = None
    phone: str | None = Field(default=None, max_length=20)
    position: str | None = Field(default=None, max_length=100)
    notes: str | None = Field(default=None, max_length=5000)
    business_id: int | None = None


class BusinessResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    registration_number: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    website: str | None = None
    industry: str | None = None
    description: str | None = None
    created_by: int | None = None
    created_at: datetime | None = None


class ContactResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    last_name: str
    full_name: str
    email: str | None = None
    phone: str | None = None
    position: str | None = None
    notes: str | None = None
    business_id: int | None = None
    created_by: int | None = None
    created_at: datetime | None = None
