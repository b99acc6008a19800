"""Permission catalogue and role-based authorization."""

from __future__ import annotations

from collections import defaultdict

from sqlalchemy import select
from sqlalchemy.orm import Session

from weberis.auth.actor_context import ActorContext
from weberis.models import ADMIN_ROLE_NAME, Permission, Role, role_permissions

PERMISSION_MODULES: tuple[str, ...] = (
    "business",
    "contact",
    "lead",
    "offer",
    "project",
    "service_agreement",
    "task",
    "time",
    "user",
    "role",
    "setting",
)
PERMISSION_ACTIONS: tuple[str, ...] = ("view", "add", "edit", "delete")
# Single keys outside the module/action grid.
EXTRA_PERMISSIONS: tuple[tuple[str, str], ...] = (("time_reports", "view"),)


def permission_key(module: str, action: str) -> str:
    """Return the stored permission name for a module/action pair."""
    return f"{action}_{module}"


def permission_catalogue() -> list[tuple[str, str]]:
    """Every ``(module, action)`` pair the system knows about."""
    pairs = [(module, action) for module in PERMISSION_MODULES for action in PERMISSION_ACTIONS]
    pairs.extend(EXTRA_PERMISSIONS)
    return pairs


ALL_PERMISSION_KEYS: frozenset[str] = frozenset(
    permission_key(module, action) for module, action in permission_catalogue()
)

TIME_REPORTS_KEY = permission_key("time_reports", "view")
# Regular users log and correct their own hours.
OWN_TIME_KEYS: frozenset[str] = frozenset(permission_key("time", action) for action in ("add", "edit", "delete"))

_MANAGER_EXCLUDED_MODULES = {"user", "role", "setting"}

DEFAULT_ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    ADMIN_ROLE_NAME: ALL_PERMISSION_KEYS,
    "manager": frozenset(
        permission_key(module, action)
        for module, action in permission_catalogue()
        if module not in _MANAGER_EXCLUDED_MODULES
    ),
    "user": frozenset(permission_key(module, "view") for module in PERMISSION_MODULES) | OWN_TIME_KEYS,
}

DEFAULT_ROLE_DESCRIPTIONS: dict[str, str] = {
    ADMIN_ROLE_NAME: "Administrator with full access",
    "manager": "Manager with access to most features",
    "user": "Regular user with limited access",
}

_PERMISSION_DESCRIPTIONS = {TIME_REPORTS_KEY: "View and manage everyone's time entries"}


def describe_permission(module: str, action: str) -> str:
    key = permission_key(module, action)
    return _PERMISSION_DESCRIPTIONS.get(key, f"{action.capitalize()} {module.replace('_', ' ')} records")


class PermissionRegistry:
    """Answers whether an actor holds a permission key.

    The master-admin account and the ``admin`` role are granted every key.
    Everyone else is checked against the permissions assigned to their role.
    Lookups never write.
    """

    def __init__(self, db: Session, master_admin_email: str | None = None) -> None:
        self.db = db
        self.master_admin_email = (master_admin_email or "").strip().lower()

    def is_master_admin(self, actor: ActorContext | None) -> bool:
        if actor is None or not self.master_admin_email:
            return False
        return actor.email.strip().lower() == self.master_admin_email

    def authorize(self, actor: ActorContext | None, key: str) -> bool:
        if actor is None:
            return False
        if self.is_master_admin(actor) or actor.role == ADMIN_ROLE_NAME:
            return True
        return key in self.permissions_for_role(actor.role_id)

    def permissions_for_role(self, role_id: int) -> set[str]:
        stmt = (
            select(Permission.name)
            .join(role_permissions, role_permissions.c.permission_id == Permission.id)
            .where(role_permissions.c.role_id == role_id)
        )
        return set(self.db.scalars(stmt).all())

    def all_permissions(self) -> list[Permission]:
        return list(self.db.scalars(select(Permission).order_by(Permission.module, Permission.action)).all())

    def grouped_permissions(self) -> dict[str, list[Permission]]:
        grouped: dict[str, list[Permission]] = defaultdict(list)
        for permission in self.all_permissions():
            grouped[permission.module].append(permission)
        return dict(grouped)

    def role_by_name(self, name: str) -> Role | None:
        return self.db.scalars(select(Role).where(Role.name == name)).first()
