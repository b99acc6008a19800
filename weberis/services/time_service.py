"""Time entry and timer workflows."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from sqlalchemy import select

from weberis.auth.actor_context import ActorContext
from weberis.auth.rbac import TIME_REPORTS_KEY
from weberis.core.exceptions import Conflict, Forbidden, NotFound, ValidationError
from weberis.models import Business, Project, Task, TimeEntry, User
from weberis.schemas.time_entries import TimeEntryForm, TimerForm
from weberis.services.base_service import (
    BaseService,
    ListQuery,
    Page,
    require,
    search_clause,
    validate_form,
    workflow,
)

logger = logging.getLogger(__name__)

TIME_PAGE_SIZE = 20
OWN_ENTRIES_ONLY = "You can only change your own time entries."


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; stored values are UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _filter_date(value: Any) -> date:
    try:
        return date.fromisoformat(str(value))
    except ValueError as exc:
        raise ValidationError("Invalid date filter.") from exc


def entry_window(work_date: date, start: time, end: time) -> tuple[datetime, datetime, int]:
    """Start, end and duration in seconds of a same-day block of work."""
    started = datetime.combine(work_date, start, tzinfo=timezone.utc)
    ended = datetime.combine(work_date, end, tzinfo=timezone.utc)
    if ended <= started:
        raise ValidationError("End time must be after start time.")
    return started, ended, int((ended - started).total_seconds())


class TimeEntryService(BaseService):
    """Hours logged against tasks, projects and businesses.

    Everyone works with their own entries. Holders of ``view_time_reports``
    see and correct everyone's. A task fills in its project and business,
    and a project fills in its business, when those are left empty.
    """

    def _sees_everyone(self, actor: ActorContext) -> bool:
        return self.registry.authorize(actor, TIME_REPORTS_KEY)

    def _own_or_reports(self, actor: ActorContext, entry: TimeEntry) -> None:
        if entry.user_id != actor.user_id and not self._sees_everyone(actor):
            raise Forbidden(OWN_ENTRIES_ONLY)

    def _resolve_links(self, values: dict[str, Any]) -> None:
        task_id = values.get("task_id")
        if task_id is not None:
            task = self.db.get(Task, task_id)
            if task is None:
                raise ValidationError("Selected task does not exist.")
            if values.get("project_id") is None:
                values["project_id"] = task.project_id
            if values.get("business_id") is None:
                values["business_id"] = task.business_id
        project_id = values.get("project_id")
        if project_id is not None:
            project = self.db.get(Project, project_id)
            if project is None:
                raise ValidationError("Selected project does not exist.")
            if values.get("business_id") is None:
                values["business_id"] = project.business_id
        self.ensure_exists(Business, values.get("business_id"), "Business")

    def _running(self, user_id: int) -> TimeEntry | None:
        stmt = (
            select(TimeEntry)
            .where(TimeEntry.user_id == user_id, TimeEntry.end_time.is_(None))
            .order_by(TimeEntry.start_time.desc())
        )
        return self.db.scalars(stmt).first()

    @workflow("time.list")
    def list_entries(self, actor: ActorContext, query: ListQuery | None = None) -> Page[TimeEntry]:
        self.require_permission(actor, "view_time")
        query = query or ListQuery()
        filters = query.filters
        stmt = (
            select(TimeEntry)
            .outerjoin(User, TimeEntry.user_id == User.id)
            .outerjoin(Task, TimeEntry.task_id == Task.id)
            .outerjoin(Project, TimeEntry.project_id == Project.id)
            .outerjoin(Business, TimeEntry.business_id == Business.id)
        )
        if query.search:
            stmt = stmt.where(
                search_clause(query.search, TimeEntry.description, User.name, Project.name, Business.name, Task.title)
            )

        if not self._sees_everyone(actor):
            stmt = stmt.where(TimeEntry.user_id == actor.user_id)
        elif filters.get("user_id"):
            stmt = stmt.where(TimeEntry.user_id == int(filters["user_id"]))
        for key, column in (
            ("task_id", TimeEntry.task_id),
            ("project_id", TimeEntry.project_id),
            ("business_id", TimeEntry.business_id),
        ):
            if filters.get(key):
                stmt = stmt.where(column == int(filters[key]))
        if filters.get("billable") in ("yes", "no"):
            stmt = stmt.where(TimeEntry.is_billable == (filters["billable"] == "yes"))
        if filters.get("start_date"):
            start = datetime.combine(_filter_date(filters["start_date"]), time.min, tzinfo=timezone.utc)
            stmt = stmt.where(TimeEntry.start_time >= start)
        if filters.get("end_date"):
            end = datetime.combine(_filter_date(filters["end_date"]), time.min, tzinfo=timezone.utc)
            stmt = stmt.where(TimeEntry.start_time < end + timedelta(days=1))

        stmt = stmt.order_by(TimeEntry.start_time.desc(), TimeEntry.id.desc())
        return self.paginate(stmt, query, per_page=TIME_PAGE_SIZE)

    @workflow("time.get")
    def get_entry(self, actor: ActorContext, entry_id: int) -> TimeEntry:
        self.require_permission(actor, "view_time")
        entry = self.get_or_404(TimeEntry, entry_id, "Time entry")
        if entry.user_id != actor.user_id and not self._sees_everyone(actor):
            raise Forbidden("You can only view your own time entries.")
        return entry

    @workflow("time.create")
    def create_entry(self, actor: ActorContext, data: dict[str, Any], csrf_token: str | None = None) -> TimeEntry:
        self.guard_mutation(actor, "add_time", csrf_token)
        form = validate_form(TimeEntryForm, data)
        require(form.work_date, "Date is required.")
        require(form.start_time, "Start time is required.")
        require(form.end_time, "End time is required.")
        started, ended, duration = entry_window(form.work_date, form.start_time, form.end_time)
        values = form.model_dump(include={"task_id", "project_id", "business_id"})
        self._resolve_links(values)

        entry = TimeEntry(
            **values,
            user_id=actor.user_id,
            description=form.description,
            start_time=started,
            end_time=ended,
            duration=duration,
            is_billable=True if form.is_billable is None else form.is_billable,
        )
        with self.transaction():
            self.db.add(entry)
        logger.info("time.created", extra=self.log_extra(actor, "time.created", entity_id=entry.id))
        return entry

    @workflow("time.update")
    def update_entry(
        self, actor: ActorContext, entry_id: int, data: dict[str, Any], csrf_token: str | None = None
    ) -> TimeEntry:
        self.guard_mutation(actor, "edit_time", csrf_token)
        form = validate_form(TimeEntryForm, data)
        values = form.model_dump(exclude_unset=True)
        entry = self.get_or_404(TimeEntry, entry_id, "Time entry")
        self._own_or_reports(actor, entry)
        if entry.is_running:
            raise Conflict("Stop the running timer before editing this entry.")

        window = None
        if values.keys() & {"work_date", "start_time", "end_time"}:
            started, ended = as_utc(entry.start_time), as_utc(entry.end_time)
            window = entry_window(
                values.get("work_date") or started.date(),
                values.get("start_time") or started.time(),
                values.get("end_time") or ended.time(),
            )
        links = {key: values[key] for key in ("task_id", "project_id", "business_id") if key in values}
        if links:
            self._resolve_links(links)

        with self.transaction():
            for key, value in links.items():
                setattr(entry, key, value)
            if "description" in values:
                entry.description = values["description"]
            if values.get("is_billable") is not None:
                entry.is_billable = values["is_billable"]
            if window is not None:
                entry.start_time, entry.end_time, entry.duration = window
        logger.info("time.updated", extra=self.log_extra(actor, "time.updated", entity_id=entry.id))
        return entry

    @workflow("time.delete")
    def delete_entry(self, actor: ActorContext, entry_id: int, csrf_token: str | None = None) -> int:
        self.guard_mutation(actor, "delete_time", csrf_token)
        entry = self.get_or_404(TimeEntry, entry_id, "Time entry")
        self._own_or_reports(actor, entry)

        with self.transaction():
            self.db.delete(entry)
        logger.info("time.deleted", extra=self.log_extra(actor, "time.deleted", entity_id=entry_id))
        return entry_id

    @workflow("time.timer.active")
    def active_timer(self, actor: ActorContext) -> TimeEntry | None:
        self.require_permission(actor, "add_time")
        return self._running(actor.user_id)

    @workflow("time.timer.start")
    def start_timer(
        self,
        actor: ActorContext,
        data: dict[str, Any],
        csrf_token: str | None = None,
        now: datetime | None = None,
    ) -> TimeEntry:
        self.guard_mutation(actor, "add_time", csrf_token)
        form = validate_form(TimerForm, data)
        require(form.description, "Description is required.")
        if self._running(actor.user_id) is not None:
            raise Conflict("You already have an active timer running. Please stop it before starting a new one.")
        values = form.model_dump(include={"task_id", "project_id", "business_id"})
        self._resolve_links(values)

        entry = TimeEntry(
            **values,
            user_id=actor.user_id,
            description=form.description,
            start_time=now or datetime.now(timezone.utc),
            is_billable=True if form.is_billable is None else form.is_billable,
        )
        with self.transaction():
            self.db.add(entry)
        logger.info("time.timer.started", extra=self.log_extra(actor, "time.timer.started", entity_id=entry.id))
        return entry

    @workflow("time.timer.stop")
    def stop_timer(
        self,
        actor: ActorContext,
        data: dict[str, Any] | None = None,
        csrf_token: str | None = None,
        now: datetime | None = None,
    ) -> TimeEntry:
        """Close the running timer; submitted fields replace what it was started with."""
        self.guard_mutation(actor, "add_time", csrf_token)
        form = validate_form(TimerForm, data)
        values = form.model_dump(exclude_unset=True)
        entry = self._running(actor.user_id)
        if entry is None:
            raise NotFound("No timer is running.")
        if "description" in values:
            require(values["description"], "Description is required.")
        links = {key: values[key] for key in ("task_id", "project_id", "business_id") if key in values}
        if links:
            self._resolve_links(links)

        ended = now or datetime.now(timezone.utc)
        with self.transaction():
            for key, value in links.items():
                setattr(entry, key, value)
            if "description" in values:
                entry.description = values["description"]
            if values.get("is_billable") is not None:
                entry.is_billable = values["is_billable"]
            entry.end_time = ended
            entry.duration = max(int((ended - as_utc(entry.start_time)).total_seconds()), 0)
        logger.info(
            "time.timer.stopped",
            extra=self.log_extra(actor, "time.timer.stopped", entity_id=entry.id),
        )
        return entry

    @workflow("time.timer.discard")
    def discard_timer(self, actor: ActorContext, csrf_token: str | None = None) -> int:
        self.guard_mutation(actor, "add_time", csrf_token)
        entry = self._running(actor.user_id)
        if entry is None:
            raise NotFound("No timer is running.")
        entry_id = entry.id

        with self.transaction():
            self.db.delete(entry)
        logger.info("time.timer.discarded", extra=self.log_extra(actor, "time.timer.discarded", entity_id=entry_id))
        return entry_id
