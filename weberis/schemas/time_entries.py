"""Time entry and timer schemas."""

from __future__ import annotations

from datetime import date, datetime, time

from pydantic import BaseModel, ConfigDict, Field, computed_field

from weberis.schemas.common import FormModel
from weberis.services.formatting import format_duration


class TimeEntryForm(FormModel):
    description: str | None = Field(default=None, max_length=5000)
    work_date: date | None = None
    start_time: time | None = None
    end_time: time | None = None
    task_id: int | None = None
    project_id: int | None = None
    business_id: int | None = None
    is_billable: bool | None = None


class TimerForm(FormModel):
    description: str | None = Field(default=None, max_length=5000)
    task_id: int | None = None
    project_id: int | None = None
    business_id: int | None = None
    is_billable: bool | None = None


class TimeEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    task_id: int | None = None
    project_id: int | None = None
    business_id: int | None = None
    description: str | None = None
    start_time: datetime
    end_time: datetime | None = None
    duration: int | None = None
    is_billable: bool

    @computed_field
    @property
    def duration_label(self) -> str:
        return format_duration(self.duration)
