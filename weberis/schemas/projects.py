"""Project and task schemas."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from weberis.models.enums import ProjectStatus, TaskPriority, TaskStatus
from weberis.schemas.common import FormModel


class ProjectForm(FormModel):
    name: str | None = Field(default=None, max_length=100)
    description: str | None = Field(default=None, max_length=5000)
    status: ProjectStatus | None = None
    start_date: date | None = None
    end_date: date | None = None
    budget: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    business_id: int | None = None
    offer_id: int | None = None


class TaskForm(FormModel):
    title: str | None = Field(default=None, max_length=100)
    description: str | None = Field(default=None, max_length=5000)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: date | None = None
    business_id: int | None = None
    project_id: int | None = None
    assigned_to: int | None = None


class ProjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None
    status: ProjectStatus
    start_date: date | None = None
    end_date: date | None = None
    budget: Decimal | None = None
    business_id: int | None = None
    offer_id: int | None = None
    created_by: int | None = None
    created_at: datetime | None = None


class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str | None = None
    status: TaskStatus
    priority: TaskPriority
    due_date: date | None = None
    business_id: int | None = None
    project_id: int | None = None
    assigned_to: int | None = None
    created_by: int | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None
