"""Role and user administration workflows."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, func, select

from weberis.auth.actor_context import ActorContext
from weberis.auth.rbac import ALL_PERMISSION_KEYS
from weberis.core.exceptions import Conflict, ValidationError
from weberis.core.security import hash_password, verify_password
from weberis.models import (
    Business,
    Contact,
    Lead,
    Notification,
    Offer,
    Permission,
    Project,
    Role,
    ServiceAgreement,
    Task,
    TimeEntry,
    User,
    UserSession,
)
from weberis.schemas.access import ProfileForm, RoleForm, UserForm
from weberis.services.base_service import (
    BaseService,
    ListQuery,
    Page,
    null_references,
    require,
    search_clause,
    validate_form,
    workflow,
)

logger = logging.getLogger(__name__)


class RoleService(BaseService):
    """Roles and their permission sets.

    The ``admin`` role always holds every permission and keeps its name;
    it can never be deleted. Other roles can only be deleted once no user
    holds them.
    """

    def _ensure_unique_name(self, name: str, exclude_id: int | None = None) -> None:
        stmt = select(Role.id).where(func.lower(Role.name) == name.lower())
        if exclude_id is not None:
            stmt = stmt.where(Role.id != exclude_id)
        if self.db.scalars(stmt).first() is not None:
            raise Conflict("A role with this name already exists.")

    def _resolve_permissions(self, keys: list[str]) -> list[Permission]:
        wanted = set(keys)
        permissions = list(self.db.scalars(select(Permission).where(Permission.name.in_(wanted))).all())
        unknown = wanted - {permission.name for permission in permissions}
        if unknown:
            raise ValidationError(f"Unknown permission: {sorted(unknown)[0]}.")
        return permissions

    def user_count(self, role_id: int) -> int:
        return self.db.scalar(select(func.count(User.id)).where(User.role_id == role_id)) or 0

    @workflow("permission.list")
    def permission_catalogue(self, actor: ActorContext) -> dict[str, list[Permission]]:
        self.require_permission(actor, "view_role")
        return self.registry.grouped_permissions()

    @workflow("role.list")
    def list_roles(self, actor: ActorContext) -> list[dict[str, Any]]:
        self.require_permission(actor, "view_role")
        counts = dict(self.db.execute(select(User.role_id, func.count(User.id)).group_by(User.role_id)).all())
        roles = self.db.scalars(select(Role).order_by(Role.name.asc())).all()
        return [{"role": role, "user_count": counts.get(role.id, 0)} for role in roles]

    @workflow("role.get")
    def get_role(self, actor: ActorContext, role_id: int) -> Role:
        self.require_permission(actor, "view_role")
        return self.get_or_404(Role, role_id, "Role")

    @workflow("role.create")
    def create_role(self, actor: ActorContext, data: dict[str, Any], csrf_token: str | None = None) -> Role:
        self.guard_mutation(actor, "add_role", csrf_token)
        form = validate_form(RoleForm, data)
        require(form.name, "Role name is required.")
        self._ensure_unique_name(form.name)
        permissions = self._resolve_permissions(form.permissions)

        role = Role(name=form.name, description=form.description, permissions=permissions)
        with self.transaction():
            self.db.add(role)
        logger.info(
            "role.created",
            extra=self.log_extra(actor, "role.created", entity_id=role.id, permissions=len(permissions)),
        )
        return role

    @workflow("role.update")
    def update_role(self, actor: ActorContext, role_id: int, data: dict[str, Any], csrf_token: str | None = None) -> Role:
        self.guard_mutation(actor, "edit_role", csrf_token)
        form = validate_form(RoleForm, data)
        values = form.model_dump(exclude_unset=True)
        if "name" in values:
            require(values["name"], "Role name is required.")
        role = self.get_or_404(Role, role_id, "Role")

        if role.is_admin:
            values.pop("name", None)
            permissions = self._resolve_permissions(sorted(ALL_PERMISSION_KEYS))
        else:
            if "name" in values:
                self._ensure_unique_name(values["name"], exclude_id=role.id)
            permissions = self._resolve_permissions(values["permissions"]) if "permissions" in values else None

        with self.transaction():
            if "name" in values:
                role.name = values["name"]
            if "description" in values:
                role.description = values["description"]
            if permissions is not None:
                role.permissions = permissions
        logger.info("role.updated", extra=self.log_extra(actor, "role.updated", entity_id=role.id))
        return role

    @workflow("role.delete")
    def delete_role(self, actor: ActorContext, role_id: int, csrf_token: str | None = None) -> int:
        self.guard_mutation(actor, "delete_role", csrf_token)
        role = self.get_or_404(Role, role_id, "Role")
        if role.is_admin:
            raise Conflict("The admin role cannot be deleted.")
        users = self.user_count(role.id)
        if users:
            raise Conflict(
                f"Cannot delete this role because it is assigned to {users} user(s). Reassign them first."
            )

        # Association rows go with the role.
        with self.transaction():
            self.db.delete(role)
        logger.info("role.deleted", extra=self.log_extra(actor, "role.deleted", entity_id=role_id))
        return role_id


class UserService(BaseService):
    """User accounts.

    The master admin (configured by email) keeps its email and role and
    cannot be deleted. Nobody can delete their own account.
    """

    def is_master_admin(self, user: User) -> bool:
        return user.email.strip().lower() == self.config.MASTER_ADMIN_EMAIL

    def _ensure_unique_email(self, email: str, exclude_id: int | None = None) -> None:
        stmt = select(User.id).where(func.lower(User.email) == email.lower())
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        if self.db.scalars(stmt).first() is not None:
            raise Conflict("Email already exists.")

    def _check_password(self, password: str | None, confirm: str | None) -> str:
        require(password, "Password is required.")
        require(confirm, "Please confirm the password.")
        if password != confirm:
            raise ValidationError("Passwords do not match.")
        if len(password) < self.config.MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {self.config.MIN_PASSWORD_LENGTH} characters long.")
        return password

    @workflow("user.list")
    def list_users(self, actor: ActorContext, query: ListQuery | None = None) -> Page[User]:
        self.require_permission(actor, "view_user")
        query = query or ListQuery()
        stmt = select(User)
        if query.search:
            stmt = stmt.where(search_clause(query.search, User.name, User.email))
        if query.filters.get("role_id"):
            stmt = stmt.where(User.role_id == int(query.filters["role_id"]))
        return self.paginate(stmt.order_by(User.name.asc(), User.id.asc()), query)

    @workflow("user.get")
    def get_user(self, actor: ActorContext, user_id: int) -> User:
        self.require_permission(actor, "view_user")
        return self.get_or_404(User, user_id, "User")

    @workflow("user.create")
    def create_user(self, actor: ActorContext, data: dict[str, Any], csrf_token: str | None = None) -> User:
        self.guard_mutation(actor, "add_user", csrf_token)
        form = validate_form(UserForm, data)
        require(form.name, "Name is required.")
        require(form.email, "Email is required.")
        password = self._check_password(form.password, form.confirm_password)
        require(form.role_id, "Role is required.")
        self.ensure_exists(Role, form.role_id, "Role")
        self._ensure_unique_email(form.email)

        user = User(name=form.name, email=form.email, password=hash_password(password), role_id=form.role_id)
        with self.transaction():
            self.db.add(user)
        logger.info("user.created", extra=self.log_extra(actor, "user.created", entity_id=user.id))
        return user

    @workflow("user.update")
    def update_user(self, actor: ActorContext, user_id: int, data: dict[str, Any], csrf_token: str | None = None) -> User:
        self.guard_mutation(actor, "edit_user", csrf_token)
        form = validate_form(UserForm, data)
        values = form.model_dump(exclude_unset=True)
        for key, message in (("name", "Name is required."), ("email", "Email is required."), ("role_id", "Role is required.")):
            if key in values:
                require(values[key], message)
        new_password = None
        if values.get("password") or values.get("confirm_password"):
            new_password = self._check_password(values.get("password"), values.get("confirm_password"))
        user = self.get_or_404(User, user_id, "User")

        if self.is_master_admin(user):
            values.pop("email", None)
            values.pop("role_id", None)
        if "role_id" in values:
            self.ensure_exists(Role, values["role_id"], "Role")
        if "email" in values:
            self._ensure_unique_email(values["email"], exclude_id=user.id)

        with self.transaction():
            for key in ("name", "email", "role_id"):
                if key in values:
                    setattr(user, key, values[key])
            if new_password is not None:
                user.password = hash_password(new_password)
        logger.info(
            "user.updated",
            extra=self.log_extra(actor, "user.updated", entity_id=user.id, password_changed=new_password is not None),
        )
        return user

    @workflow("user.delete")
    def delete_user(self, actor: ActorContext, user_id: int, csrf_token: str | None = None) -> int:
        self.guard_mutation(actor, "delete_user", csrf_token)
        user = self.get_or_404(User, user_id, "User")
        if self.is_master_admin(user):
            raise Conflict("The master administrator account cannot be deleted.")
        if user.id == actor.user_id:
            raise Conflict("You cannot delete your own account.")

        with self.transaction():
            for column in (
                Business.created_by,
                Contact.created_by,
                Lead.created_by,
                Lead.assigned_to,
                Offer.created_by,
                Project.created_by,
                ServiceAgreement.created_by,
                Task.created_by,
                Task.assigned_to,
            ):
                null_references(self.db, column, user.id)
            self.db.execute(delete(UserSession).where(UserSession.user_id == user.id))
            self.db.execute(delete(Notification).where(Notification.user_id == user.id))
            self.db.execute(delete(TimeEntry).where(TimeEntry.user_id == user.id))
            self.db.delete(user)
        logger.info("user.deleted", extra=self.log_extra(actor, "user.deleted", entity_id=user_id))
        return user_id


class ProfileService(UserService):
    """Self-service changes to the actor's own account.

    No ``edit_user`` permission is needed, only a valid CSRF token. The
    master admin still cannot change their email here, and a new password
    needs the current one.
    """

    @workflow("profile.get")
    def get_own(self, actor: ActorContext) -> User:
        return self.get_or_404(User, actor.user_id, "User")

    @workflow("profile.update")
    def update_own(self, actor: ActorContext, data: dict[str, Any], csrf_token: str | None = None) -> User:
        self.require_csrf(actor, csrf_token)
        form = validate_form(ProfileForm, data)
        values = form.model_dump(exclude_unset=True)
        for key, message in (("name", "Name is required."), ("email", "Email is required.")):
            if key in values:
                require(values[key], message)
        new_password = None
        if values.get("password") or values.get("confirm_password"):
            require(values.get("current_password"), "Current password is required.")
            new_password = self._check_password(values.get("password"), values.get("confirm_password"))
        user = self.get_or_404(User, actor.user_id, "User")

        if new_password is not None and not verify_password(values["current_password"], user.password):
            raise ValidationError("Current password is incorrect.")
        if self.is_master_admin(user):
            values.pop("email", None)
        if "email" in values:
            self._ensure_unique_email(values["email"], exclude_id=user.id)

        with self.transaction():
            for key in ("name", "email"):
                if key in values:
                    setattr(user, key, values[key])
            if new_password is not None:
                user.password = hash_password(new_password)
        logger.info(
            "profile.updated",
            extra=self.log_extra(actor, "profile.updated", entity_id=user.id, password_changed=new_password is not None),
        )
        return user
