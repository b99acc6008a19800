"""Idempotent seed data: permissions, default roles, master admin, settings."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from weberis.auth.rbac import (
    DEFAULT_ROLE_DESCRIPTIONS,
    DEFAULT_ROLE_PERMISSIONS,
    describe_permission,
    permission_catalogue,
    permission_key,
)
from weberis.core.config import Config, get_config
from weberis.core.security import hash_password
from weberis.models import AgreementType, Permission, Role, Setting, User
from weberis.services.settings_service import default_settings

logger = logging.getLogger(__name__)

DEFAULT_AGREEMENT_TYPES: tuple[tuple[str, str, str], ...] = (
    ("standard", "Standard", "Standard service agreement"),
    ("premium", "Premium", "Premium service agreement with extended support"),
    ("maintenance", "Maintenance", "Maintenance and support agreement"),
    ("hosting", "Hosting", "Hosting service agreement"),
)


def seed_permissions(db: Session) -> dict[str, Permission]:
    existing = {permission.name: permission for permission in db.scalars(select(Permission)).all()}
    for module, action in permission_catalogue():
        key = permission_key(module, action)
        if key not in existing:
            permission = Permission(
                name=key, module=module, action=action, description=describe_permission(module, action)
            )
            db.add(permission)
            existing[key] = permission
    db.flush()
    return existing


def seed_roles(db: Session, permissions: dict[str, Permission]) -> dict[str, Role]:
    """Create missing default roles; existing roles keep their permission sets."""
    roles: dict[str, Role] = {}
    for name, keys in DEFAULT_ROLE_PERMISSIONS.items():
        role = db.scalars(select(Role).where(Role.name == name)).first()
        if role is None:
            role = Role(
                name=name,
                description=DEFAULT_ROLE_DESCRIPTIONS.get(name),
                permissions=[permissions[key] for key in sorted(keys)],
            )
            db.add(role)
        roles[name] = role
    db.flush()
    return roles


def seed_master_admin(db: Session, admin_role: Role, config: Config) -> User:
    user = db.scalars(select(User).where(User.email == config.MASTER_ADMIN_EMAIL)).first()
    if user is None:
        user = User(
            name=config.MASTER_ADMIN_NAME,
            email=config.MASTER_ADMIN_EMAIL,
            password=hash_password(config.MASTER_ADMIN_PASSWORD),
            role_id=admin_role.id,
        )
        db.add(user)
        db.flush()
    return user


def seed_agreement_types(db: Session) -> None:
    existing = set(db.scalars(select(AgreementType.name)).all())
    for name, label, description in DEFAULT_AGREEMENT_TYPES:
        if name not in existing:
            db.add(AgreementType(name=name, label=label, description=description, is_active=True))


def seed_settings(db: Session, config: Config) -> None:
    existing = set(db.scalars(select(Setting.key)).all())
    for key, value, description in default_settings(config.APP_NAME):
        if key not in existing:
            db.add(Setting(key=key, value=value, description=description, is_public=True))


def seed_all(db: Session, config: Config | None = None) -> None:
    cfg = config or get_config()
    permissions = seed_permissions(db)
    roles = seed_roles(db, permissions)
    seed_master_admin(db, roles["admin"], cfg)
    seed_agreement_types(db)
    seed_settings(db, cfg)
    db.commit()
    logger.info("database.seeded", extra={"event": "database.seeded", "roles": sorted(roles)})
