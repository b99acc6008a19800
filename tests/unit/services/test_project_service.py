from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select

from weberis.models import Notification, NotificationType, Task, TaskStatus
from weberis.services.business_service import BusinessService
from weberis.services.lead_service import OfferService
from weberis.services.project_service import ProjectService, TaskService


def _project(db, actor, csrf, **fields):
    result = ProjectService(db).create_project(actor, {"name": "Intranet", **fields}, csrf_token=csrf(actor))
    assert result.ok, result.message
    return result.value


def test_project_end_date_cannot_precede_start(db, manager, csrf):
    rejected = ProjectService(db).create_project(
        manager,
        {"name": "Intranet", "start_date": "2025-01-10", "end_date": "2025-01-05"},
        csrf_token=csrf(manager),
    )
    assert rejected.error_code == "validation_error"
    assert rejected.message == "End date cannot be earlier than start date."

    accepted = ProjectService(db).create_project(
        manager,
        {"name": "Intranet", "start_date": "2025-01-10", "end_date": "2025-01-15"},
        csrf_token=csrf(manager),
    )
    assert accepted.ok


def test_project_update_checks_dates_against_stored_values(db, manager, csrf):
    project = _project(db, manager, csrf, start_date="2025-03-01")
    result = ProjectService(db).update_project(
        manager, project.id, {"end_date": "2025-02-01"}, csrf_token=csrf(manager)
    )
    assert result.error_code == "validation_error"


def test_project_from_accepted_offer_inherits_business_and_budget(db, manager, csrf):
    business = BusinessService(db).create_business(manager, {"name": "Vestland IT"}, csrf_token=csrf(manager)).value
    offer = OfferService(db).create_offer(
        manager,
        {"title": "Build", "amount": "25000", "status": "accepted", "business_id": business.id},
        csrf_token=csrf(manager),
    ).value

    project = _project(db, manager, csrf, offer_id=offer.id)
    assert project.business_id == business.id
    assert project.budget == Decimal("25000")


def test_project_rejects_offer_that_is_not_accepted(db, manager, csrf):
    offer = OfferService(db).create_offer(manager, {"title": "Draft"}, csrf_token=csrf(manager)).value
    result = ProjectService(db).create_project(
        manager, {"name": "Too early", "offer_id": offer.id}, csrf_token=csrf(manager)
    )
    assert result.error_code == "validation_error"


def test_delete_project_unlinks_tasks(db, manager, csrf):
    project = _project(db, manager, csrf)
    task = TaskService(db).create_task(
        manager, {"title": "Kickoff", "project_id": project.id}, csrf_token=csrf(manager)
    ).value

    assert ProjectService(db).delete_project(manager, project.id, csrf_token=csrf(manager)).ok
    assert db.get(Task, task.id).project_id is None


def test_assigning_a_task_notifies_the_assignee(db, manager, make_user, csrf):
    assignee = make_user("user")
    task = TaskService(db).create_task(
        manager, {"title": "Call client", "assigned_to": assignee.id}, csrf_token=csrf(manager)
    ).value

    notifications = db.scalars(select(Notification).where(Notification.user_id == assignee.id)).all()
    assert len(notifications) == 1
    assert notifications[0].type == NotificationType.TASK_ASSIGNED
    assert notifications[0].related_id == task.id
    assert notifications[0].is_read is False


def test_self_assignment_sends_no_notification(db, manager, csrf):
    TaskService(db).create_task(
        manager, {"title": "Own task", "assigned_to": manager.user_id}, csrf_token=csrf(manager)
    )
    assert db.scalars(select(Notification)).all() == []


def test_complete_task_is_limited_to_assignee_or_admin(db, manager, actor_for, admin, csrf):
    assignee = actor_for("manager")
    task = TaskService(db).create_task(
        manager, {"title": "Send invoice", "assigned_to": assignee.user_id}, csrf_token=csrf(manager)
    ).value

    other = actor_for("manager")
    denied = TaskService(db).complete_task(other, task.id, csrf_token=csrf(other))
    assert denied.error_code == "forbidden"

    done = TaskService(db).complete_task(assignee, task.id, csrf_token=csrf(assignee))
    assert done.ok
    assert done.value.status == TaskStatus.COMPLETED
    assert done.value.completed_at is not None

    creator_feed = db.scalars(select(Notification).where(Notification.user_id == manager.user_id)).all()
    assert [item.type for item in creator_feed] == [NotificationType.TASK_COMPLETED]

    again = TaskService(db).complete_task(admin, task.id, csrf_token=csrf(admin))
    assert again.ok


def test_reopening_a_task_clears_completed_at(db, manager, csrf):
    task = TaskService(db).create_task(
        manager, {"title": "Review", "status": "completed"}, csrf_token=csrf(manager)
    ).value
    assert task.completed_at is not None

    reopened = TaskService(db).update_task(manager, task.id, {"status": "in_progress"}, csrf_token=csrf(manager))
    assert reopened.value.completed_at is None


def test_task_takes_business_from_project(db, manager, csrf):
    business = BusinessService(db).create_business(manager, {"name": "Bergen Byg"}, csrf_token=csrf(manager)).value
    project = _project(db, manager, csrf, business_id=business.id)
    task = TaskService(db).create_task(
        manager, {"title": "Site visit", "project_id": project.id}, csrf_token=csrf(manager)
    ).value
    assert task.business_id == business.id


def test_deleting_a_task_notifies_the_assignee(db, manager, make_user, csrf):
    assignee = make_user("user")
    task = TaskService(db).create_task(
        manager, {"title": "Archive files", "assigned_to": assignee.id}, csrf_token=csrf(manager)
    ).value

    assert TaskService(db).delete_task(manager, task.id, csrf_token=csrf(manager)).ok
    types = db.scalars(select(Notification.type).where(Notification.user_id == assignee.id)).all()
    assert sorted(item.value for item in types) == ["task_assigned", "task_deleted"]
