"""Project and task workflows."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select

from weberis.auth.actor_context import ActorContext
from weberis.core.exceptions import Forbidden, ValidationError
from weberis.models import (
    Business,
    NotificationType,
    Offer,
    OfferStatus,
    Project,
    ProjectStatus,
    Task,
    TaskPriority,
    TaskStatus,
    TimeEntry,
    User,
)
from weberis.schemas.projects import ProjectForm, TaskForm
from weberis.services.base_service import (
    BaseService,
    ListQuery,
    Page,
    null_references,
    parse_enum,
    require,
    search_clause,
    validate_form,
    workflow,
)
from weberis.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


def check_date_order(start, end, message: str = "End date cannot be earlier than start date.") -> None:
    if start is not None and end is not None and end < start:
        raise ValidationError(message)


class ProjectService(BaseService):
    """Projects may be started from an accepted offer."""

    def _apply_offer(self, values: dict[str, Any], submitted: set[str]) -> None:
        offer_id = values.get("offer_id")
        if offer_id is None:
            return
        offer = self.db.get(Offer, offer_id)
        if offer is None:
            raise ValidationError("Selected offer does not exist.")
        if offer.status != OfferStatus.ACCEPTED:
            raise ValidationError("Only accepted offers can be linked to a project.")
        # Submitted values win over what the offer suggests.
        if "business_id" not in submitted or values.get("business_id") is None:
            values["business_id"] = offer.business_id
        if "budget" not in submitted or values.get("budget") is None:
            values["budget"] = offer.amount

    @workflow("project.list")
    def list_projects(self, actor: ActorContext, query: ListQuery | None = None) -> Page[Project]:
        self.require_permission(actor, "view_project")
        query = query or ListQuery()
        stmt = select(Project).outerjoin(Business, Project.business_id == Business.id)
        if query.search:
            stmt = stmt.where(search_clause(query.search, Project.name, Project.description, Business.name))
        status = parse_enum(ProjectStatus, query.status, "status filter")
        if status is not None:
            stmt = stmt.where(Project.status == status)
        if query.filters.get("business_id"):
            stmt = stmt.where(Project.business_id == int(query.filters["business_id"]))
        stmt = stmt.order_by(Project.start_date.desc(), Project.created_at.desc(), Project.id.desc())
        return self.paginate(stmt, query, status_column=Project.status)

    @workflow("project.get")
    def get_project(self, actor: ActorContext, project_id: int) -> Project:
        self.require_permission(actor, "view_project")
        return self.get_or_404(Project, project_id, "Project")

    @workflow("project.create")
    def create_project(self, actor: ActorContext, data: dict[str, Any], csrf_token: str | None = None) -> Project:
        self.guard_mutation(actor, "add_project", csrf_token)
        form = validate_form(ProjectForm, data)
        require(form.name, "Project name is required.")
        check_date_order(form.start_date, form.end_date)
        values = form.model_dump()
        self._apply_offer(values, form.model_fields_set)
        self.ensure_exists(Business, values.get("business_id"), "Business")

        project = Project(**values, created_by=actor.user_id)
        project.status = form.status or ProjectStatus.NOT_STARTED
        with self.transaction():
            self.db.add(project)
        logger.info("project.created", extra=self.log_extra(actor, "project.created", entity_id=project.id))
        return project

    @workflow("project.update")
    def update_project(
        self, actor: ActorContext, project_id: int, data: dict[str, Any], csrf_token: str | None = None
    ) -> Project:
        self.guard_mutation(actor, "edit_project", csrf_token)
        form = validate_form(ProjectForm, data)
        values = form.model_dump(exclude_unset=True)
        if "name" in values:
            require(values["name"], "Project name is required.")
        if "status" in values and values["status"] is None:
            values.pop("status")
        project = self.get_or_404(Project, project_id, "Project")
        check_date_order(
            values.get("start_date", project.start_date),
            values.get("end_date", project.end_date),
        )
        if values.get("offer_id") is not None and values["offer_id"] != project.offer_id:
            self._apply_offer(values, form.model_fields_set)
        self.ensure_exists(Business, values.get("business_id"), "Business")

        with self.transaction():
            for key, value in values.items():
                setattr(project, key, value)
        logger.info("project.updated", extra=self.log_extra(actor, "project.updated", entity_id=project.id))
        return project

    @workflow("project.delete")
    def delete_project(self, actor: ActorContext, project_id: int, csrf_token: str | None = None) -> int:
        self.guard_mutation(actor, "delete_project", csrf_token)
        project = self.get_or_404(Project, project_id, "Project")

        with self.transaction():
            null_references(self.db, Task.project_id, project.id)
            null_references(self.db, TimeEntry.project_id, project.id)
            self.db.delete(project)
        logger.info("project.deleted", extra=self.log_extra(actor, "project.deleted", entity_id=project_id))
        return project_id


class TaskService(BaseService):
    """Tasks notify their assignee and creator as they change hands."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.notifications = NotificationService(self.db, self.config)

    def _check_references(self, values: dict[str, Any]) -> None:
        self.ensure_exists(Business, values.get("business_id"), "Business")
        self.ensure_exists(User, values.get("assigned_to"), "User")
        project_id = values.get("project_id")
        if project_id is None:
            return
        project = self.db.get(Project, project_id)
        if project is None:
            raise ValidationError("Selected project does not exist.")
        if values.get("business_id") is None and project.business_id is not None:
            values["business_id"] = project.business_id

    def _notify_assignee(self, actor: ActorContext, task: Task) -> None:
        if task.assigned_to is None or task.assigned_to == actor.user_id:
            return
        self.notifications.append(
            task.assigned_to,
            NotificationType.TASK_ASSIGNED,
            "New Task Assigned",
            f"{actor.name} assigned you a task: {task.title}",
            link=f"/tasks/{task.id}",
            related_id=task.id,
        )

    @workflow("task.list")
    def list_tasks(self, actor: ActorContext, query: ListQuery | None = None) -> Page[Task]:
        self.require_permission(actor, "view_task")
        query = query or ListQuery()
        stmt = select(Task).outerjoin(Business, Task.business_id == Business.id)
        if query.search:
            stmt = stmt.where(search_clause(query.search, Task.title, Task.description, Business.name))
        status = parse_enum(TaskStatus, query.status, "status filter")
        if status is not None:
            stmt = stmt.where(Task.status == status)
        priority = parse_enum(TaskPriority, query.filters.get("priority"), "priority filter")
        if priority is not None:
            stmt = stmt.where(Task.priority == priority)
        for key, column in (
            ("assigned_to", Task.assigned_to),
            ("project_id", Task.project_id),
            ("business_id", Task.business_id),
        ):
            if query.filters.get(key):
                stmt = stmt.where(column == int(query.filters[key]))
        stmt = stmt.order_by(
            Task.due_date.is_(None), Task.due_date.asc(), Task.created_at.desc(), Task.id.desc()
        )
        return self.paginate(stmt, query, status_column=Task.status)

    @workflow("task.get")
    def get_task(self, actor: ActorContext, task_id: int) -> Task:
        self.require_permission(actor, "view_task")
        return self.get_or_404(Task, task_id, "Task")

    @workflow("task.create")
    def create_task(self, actor: ActorContext, data: dict[str, Any], csrf_token: str | None = None) -> Task:
        self.guard_mutation(actor, "add_task", csrf_token)
        form = validate_form(TaskForm, data)
        require(form.title, "Task title is required.")
        values = form.model_dump()
        self._check_references(values)

        task = Task(**values, created_by=actor.user_id)
        task.status = form.status or TaskStatus.PENDING
        task.priority = form.priority or TaskPriority.MEDIUM
        if task.status == TaskStatus.COMPLETED:
            task.completed_at = datetime.now(timezone.utc)
        with self.transaction():
            self.db.add(task)
            self.db.flush()
            self._notify_assignee(actor, task)
        logger.info("task.created", extra=self.log_extra(actor, "task.created", entity_id=task.id))
        return task

    @workflow("task.update")
    def update_task(self, actor: ActorContext, task_id: int, data: dict[str, Any], csrf_token: str | None = None) -> Task:
        self.guard_mutation(actor, "edit_task", csrf_token)
        form = validate_form(TaskForm, data)
        values = form.model_dump(exclude_unset=True)
        if "title" in values:
            require(values["title"], "Task title is required.")
        for key in ("status", "priority"):
            if key in values and values[key] is None:
                values.pop(key)
        task = self.get_or_404(Task, task_id, "Task")
        self._check_references(values)
        reassigned = "assigned_to" in values and values["assigned_to"] != task.assigned_to

        with self.transaction():
            for key, value in values.items():
                setattr(task, key, value)
            if task.status == TaskStatus.COMPLETED and task.completed_at is None:
                task.completed_at = datetime.now(timezone.utc)
            elif task.status != TaskStatus.COMPLETED:
                task.completed_at = None
            if reassigned:
                self._notify_assignee(actor, task)
        logger.info("task.updated", extra=self.log_extra(actor, "task.updated", entity_id=task.id))
        return task

    @workflow("task.complete")
    def complete_task(self, actor: ActorContext, task_id: int, csrf_token: str | None = None) -> Task:
        self.guard_mutation(actor, "edit_task", csrf_token)
        task = self.get_or_404(Task, task_id, "Task")
        if task.assigned_to != actor.user_id and not actor.is_admin_role:
            raise Forbidden("Only the assigned user or an administrator can complete this task.")
        if task.status == TaskStatus.COMPLETED:
            self.commit()
            return task

        with self.transaction():
            task.status = TaskStatus.COMPLETED
            task.completed_at = datetime.now(timezone.utc)
            if task.created_by is not None and task.created_by != actor.user_id:
                self.notifications.append(
                    task.created_by,
                    NotificationType.TASK_COMPLETED,
                    "Task Completed",
                    f"{actor.name} completed the task: {task.title}",
                    link=f"/tasks/{task.id}",
                    related_id=task.id,
                )
        logger.info("task.completed", extra=self.log_extra(actor, "task.completed", entity_id=task.id))
        return task

    @workflow("task.delete")
    def delete_task(self, actor: ActorContext, task_id: int, csrf_token: str | None = None) -> int:
        self.guard_mutation(actor, "delete_task", csrf_token)
        task = self.get_or_404(Task, task_id, "Task")

        with self.transaction():
            if task.assigned_to is not None and task.assigned_to != actor.user_id:
                self.notifications.append(
                    task.assigned_to,
                    NotificationType.TASK_DELETED,
                    "Task Deleted",
                    f"{actor.name} deleted the task: {task.title}",
                    related_id=task.id,
                )
            null_references(self.db, TimeEntry.task_id, task.id)
            self.db.delete(task)
        logger.info("task.deleted", extra=self.log_extra(actor, "task.deleted", entity_id=task_id))
        return task_id
