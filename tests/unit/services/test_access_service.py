from __future__ import annotations

from sqlalchemy import create_engine, select

from weberis.auth.actor_context import from_user
from weberis.auth.csrf import CsrfGuard
from weberis.auth.rbac import ALL_PERMISSION_KEYS
from weberis.core.security import verify_password
from weberis.database.db import build_session_factory
from weberis.database.seed import seed_all
from weberis.models import Base, Role, User, UserSession
from weberis.services.access_service import ProfileService, RoleService, UserService
from weberis.services.base_service import ListQuery


def _role(db, name):
    return db.scalars(select(Role).where(Role.name == name)).one()


def test_admin_role_cannot_be_deleted(db, master_admin, csrf):
    result = RoleService(db).delete_role(master_admin, _role(db, "admin").id, csrf_token=csrf(master_admin))
    assert result.error_code == "conflict"
    assert result.message == "The admin role cannot be deleted."


def test_role_in_use_cannot_be_deleted_until_reassigned(db, admin, make_user, csrf):
    support = RoleService(db).create_role(
        admin, {"name": "support", "permissions": ["view_business", "view_contact"]}, csrf_token=csrf(admin)
    ).value
    members = [make_user("user"), make_user("user")]
    for member in members:
        member.role_id = support.id
    db.commit()

    blocked = RoleService(db).delete_role(admin, support.id, csrf_token=csrf(admin))
    assert blocked.error_code == "conflict"
    assert "2 user(s)" in blocked.message

    fallback = _role(db, "user")
    for member in members:
        assert UserService(db).update_user(admin, member.id, {"role_id": fallback.id}, csrf_token=csrf(admin)).ok

    assert RoleService(db).delete_role(admin, support.id, csrf_token=csrf(admin)).ok
    assert db.get(Role, support.id) is None


def test_role_rejects_unknown_permission(db, admin, csrf):
    result = RoleService(db).create_role(
        admin, {"name": "auditor", "permissions": ["view_lead", "fly_rocket"]}, csrf_token=csrf(admin)
    )
    assert result.error_code == "validation_error"
    assert result.message == "Unknown permission: fly_rocket."


def test_admin_role_keeps_name_and_every_permission(db, admin, csrf):
    admin_role = _role(db, "admin")
    result = RoleService(db).update_role(
        admin, admin_role.id, {"name": "root", "permissions": ["view_lead"]}, csrf_token=csrf(admin)
    )
    assert result.ok
    assert result.value.name == "admin"
    assert {permission.name for permission in result.value.permissions} == ALL_PERMISSION_KEYS


def test_manager_cannot_manage_roles(db, manager, csrf):
    result = RoleService(db).create_role(manager, {"name": "x"}, csrf_token=csrf(manager))
    assert result.error_code == "forbidden"


def test_master_admin_email_and_role_are_immutable(db, config, admin, csrf):
    master = db.scalars(select(User).where(User.email == config.MASTER_ADMIN_EMAIL)).one()
    result = UserService(db).update_user(
        admin,
        master.id,
        {"name": "Chief", "email": "someone@example.com", "role_id": _role(db, "user").id},
        csrf_token=csrf(admin),
    )
    assert result.ok
    assert result.value.name == "Chief"
    assert result.value.email == config.MASTER_ADMIN_EMAIL
    assert result.value.role_id == _role(db, "admin").id


def test_master_admin_cannot_be_deleted(db, config, admin, csrf):
    master = db.scalars(select(User).where(User.email == config.MASTER_ADMIN_EMAIL)).one()
    result = UserService(db).delete_user(admin, master.id, csrf_token=csrf(admin))
    assert result.error_code == "conflict"


def test_user_cannot_delete_own_account_even_as_admin(db, admin, csrf):
    result = UserService(db).delete_user(admin, admin.user_id, csrf_token=csrf(admin))
    assert result.error_code == "conflict"
    assert result.message == "You cannot delete your own account."
    assert db.get(User, admin.user_id) is not None


def test_create_user_checks_password_and_hides_it(db, admin, csrf):
    payload = {
        "name": "Nora",
        "email": "nora@example.com",
        "password": "longenough1",
        "confirm_password": "different1",
        "role_id": _role(db, "user").id,
    }
    mismatch = UserService(db).create_user(admin, payload, csrf_token=csrf(admin))
    assert mismatch.message == "Passwords do not match."
    assert "password" not in mismatch.submitted
    assert "confirm_password" not in mismatch.submitted
    assert mismatch.submitted["email"] == "nora@example.com"

    payload["confirm_password"] = "longenough1"
    created = UserService(db).create_user(admin, payload, csrf_token=csrf(admin)).value
    assert verify_password("longenough1", created.password)

    duplicate = UserService(db).create_user(admin, {**payload, "email": "NORA@example.com"}, csrf_token=csrf(admin))
    assert duplicate.error_code == "conflict"


def test_update_user_password_change_rules(db, admin, make_user, password, csrf):
    member = make_user("user")
    service = UserService(db)

    short = service.update_user(
        admin, member.id, {"password": "short", "confirm_password": "short"}, csrf_token=csrf(admin)
    )
    assert short.error_code == "validation_error"
    assert short.message == "Password must be at least 8 characters long."

    unconfirmed = service.update_user(admin, member.id, {"password": "longenough1"}, csrf_token=csrf(admin))
    assert unconfirmed.error_code == "validation_error"
    assert unconfirmed.message == "Please confirm the password."

    mismatch = service.update_user(
        admin, member.id, {"password": "longenough1", "confirm_password": "longenough2"}, csrf_token=csrf(admin)
    )
    assert mismatch.message == "Passwords do not match."
    db.refresh(member)
    assert verify_password(password, member.password)

    changed = service.update_user(
        admin, member.id, {"password": "longenough1", "confirm_password": "longenough1"}, csrf_token=csrf(admin)
    )
    assert changed.ok
    db.refresh(member)
    assert verify_password("longenough1", member.password)
    assert not verify_password(password, member.password)


def test_update_user_without_password_keeps_hash(db, admin, make_user, password, csrf):
    member = make_user("user")
    result = UserService(db).update_user(admin, member.id, {"name": "Renamed"}, csrf_token=csrf(admin))
    assert result.ok
    db.refresh(member)
    assert member.name == "Renamed"
    assert verify_password(password, member.password)


def test_deleting_a_user_removes_sessions(db, admin, actor_for, csrf):
    leaving = actor_for("user")
    assert UserService(db).delete_user(admin, leaving.user_id, csrf_token=csrf(admin)).ok
    assert db.get(User, leaving.user_id) is None
    assert db.scalars(select(UserSession).where(UserSession.user_id == leaving.user_id)).all() == []


def test_list_users_filters_by_role(db, admin, make_user):
    make_user("manager", name="Mona Manager")
    page = UserService(db).list_users(admin, ListQuery(filters={"role_id": _role(db, "manager").id})).value
    assert [user.name for user in page.items] == ["Mona Manager"]


def test_profile_update_needs_no_user_permission(db, viewer, csrf):
    result = ProfileService(db).update_own(
        viewer, {"name": "Kari Nordmann", "email": "kari@example.com"}, csrf_token=csrf(viewer)
    )
    assert result.ok, result.message
    assert db.get(User, viewer.user_id).email == "kari@example.com"

    stale = ProfileService(db).update_own(viewer, {"name": "Kari N"}, csrf_token="not-a-token")
    assert stale.error_code == "forbidden"


def test_profile_password_change_requires_current_password(db, viewer, password, csrf):
    service = ProfileService(db)
    change = {"password": "longenough1", "confirm_password": "longenough1"}

    missing = service.update_own(viewer, change, csrf_token=csrf(viewer))
    assert missing.message == "Current password is required."

    wrong = service.update_own(viewer, {**change, "current_password": "guess"}, csrf_token=csrf(viewer))
    assert wrong.message == "Current password is incorrect."
    assert "current_password" not in wrong.submitted
    assert "password" not in wrong.submitted

    short = service.update_own(
        viewer, {"password": "short", "confirm_password": "short", "current_password": password}, csrf_token=csrf(viewer)
    )
    assert short.message == "Password must be at least 8 characters long."

    changed = service.update_own(viewer, {**change, "current_password": password}, csrf_token=csrf(viewer))
    assert changed.ok, changed.message
    stored = db.get(User, viewer.user_id).password
    assert verify_password("longenough1", stored)
    assert not verify_password(password, stored)


def test_profile_keeps_master_admin_email(db, config, master_admin, csrf):
    result = ProfileService(db).update_own(
        master_admin, {"name": "Root", "email": "other@example.com"}, csrf_token=csrf(master_admin)
    )
    assert result.ok, result.message
    assert result.value.name == "Root"
    assert result.value.email == config.MASTER_ADMIN_EMAIL


def test_profile_email_must_stay_unique(db, viewer, make_user, csrf):
    taken = make_user("user")
    result = ProfileService(db).update_own(viewer, {"email": taken.email}, csrf_token=csrf(viewer))
    assert result.error_code == "conflict"


def test_concurrent_role_edits_last_write_wins(tmp_path, config):
    # Known race: no version column, so the later commit silently wins.
    engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}")
    Base.metadata.create_all(bind=engine)
    factory = build_session_factory(engine)

    with factory() as setup:
        seed_all(setup, config)
        role_id = setup.scalars(select(Role.id).where(Role.name == "manager")).one()
        master = setup.scalars(select(User).where(User.email == config.MASTER_ADMIN_EMAIL)).one()
        for session_id in ("first", "second"):
            setup.add(UserSession(id=session_id, user_id=master.id))
        setup.commit()
        actors = [from_user(master, session_id="first"), from_user(master, session_id="second")]

    first, second = factory(), factory()
    try:
        tokens = [CsrfGuard(first).issue("first"), CsrfGuard(second).issue("second")]
        first.get(Role, role_id)
        second.get(Role, role_id)

        assert RoleService(first, config).update_role(
            actors[0], role_id, {"description": "Edited in tab one"}, csrf_token=tokens[0]
        ).ok
        assert RoleService(second, config).update_role(
            actors[1], role_id, {"description": "Edited in tab two"}, csrf_token=tokens[1]
        ).ok
    finally:
        first.close()
        second.close()

    with factory() as check:
        assert check.get(Role, role_id).description == "Edited in tab two"
    engine.dispose()
