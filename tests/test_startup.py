from __future__ import annotations

from contextlib import contextmanager
from dataclasses import replace

import pytest
from sqlalchemy import select

import weberis.core.startup as startup_module
from weberis.core.config import PLACEHOLDER_ADMIN_PASSWORD
from weberis.core.exceptions import ConfigurationError
from weberis.core.security import hash_password
from weberis.database.db import build_session_factory
from weberis.models import Role, User


def _master(db, config) -> User:
    return db.scalars(select(User).where(User.email == config.MASTER_ADMIN_EMAIL)).one()


def _set_master_password(db, config, plain: str) -> None:
    _master(db, config).password = hash_password(plain, iterations=1000)
    db.commit()


def _use(monkeypatch, config, db=None, reachable=True, url="postgresql://crm@db.internal/weberis"):
    monkeypatch.setattr(startup_module, "get_config", lambda: config)
    monkeypatch.setattr(startup_module, "verify_database_connection", lambda: reachable)
    monkeypatch.setattr(startup_module, "get_active_database_url", lambda: url)

    @contextmanager
    def _session():
        yield db

    monkeypatch.setattr(startup_module, "get_db_session", _session)


def test_seeded_database_is_ready(db, config):
    _set_master_password(db, config, "a-real-admin-password")
    assert startup_module.check_seed_state(db, config) == []


def test_empty_schema_reports_missing_admin_role_and_account(engine, config):
    db = build_session_factory(engine)()
    try:
        problems = startup_module.check_seed_state(db, config)
    finally:
        db.close()
    assert len(problems) == 2
    assert "'admin' role is missing" in problems[0]
    assert config.MASTER_ADMIN_EMAIL in problems[1]


def test_master_admin_outside_admin_role_is_reported(db, config):
    _set_master_password(db, config, "a-real-admin-password")
    _master(db, config).role_id = db.scalars(select(Role).where(Role.name == "user")).one().id
    db.commit()
    assert startup_module.check_seed_state(db, config) == ["The master admin account is not in the 'admin' role."]


def test_placeholder_master_password_is_reported(db, config):
    _set_master_password(db, config, PLACEHOLDER_ADMIN_PASSWORD)
    assert startup_module.check_seed_state(db, config) == [
        "The master admin account still uses the placeholder password."
    ]


def test_production_refuses_placeholder_master_password(monkeypatch, db, config):
    _set_master_password(db, config, PLACEHOLDER_ADMIN_PASSWORD)
    _use(monkeypatch, replace(config, ENV="production"), db)

    with pytest.raises(ConfigurationError, match="placeholder password"):
        startup_module.validate_startup_config()


def test_development_starts_with_problems_logged(monkeypatch, db, config):
    _set_master_password(db, config, PLACEHOLDER_ADMIN_PASSWORD)
    _use(monkeypatch, replace(config, ENV="development"), db)

    report = startup_module.validate_startup_config()
    assert report.database_ok
    assert not report.ready
    assert report.problems == ["The master admin account still uses the placeholder password."]


def test_production_starts_when_seed_is_complete(monkeypatch, db, config):
    _set_master_password(db, config, "a-real-admin-password")
    _use(monkeypatch, replace(config, ENV="production"), db)

    assert startup_module.validate_startup_config().ready


def test_schema_bootstrap_refuses_placeholder_password_setting_in_production(monkeypatch, config):
    production = replace(config, ENV="production", MASTER_ADMIN_PASSWORD=PLACEHOLDER_ADMIN_PASSWORD)
    _use(monkeypatch, production)

    with pytest.raises(ConfigurationError, match="MASTER_ADMIN_PASSWORD"):
        startup_module.validate_startup_config(require_seed=False)


def test_unreachable_database_is_tolerated_when_optional(monkeypatch, config):
    _use(monkeypatch, replace(config, DB_CONNECTIVITY_REQUIRED=False), reachable=False)

    report = startup_module.validate_startup_config()
    assert report.database_ok is False
    assert report.problems == []


def test_unreachable_database_is_fatal_when_required(monkeypatch, config):
    _use(monkeypatch, replace(config, DB_CONNECTIVITY_REQUIRED=True), reachable=False)

    with pytest.raises(ConfigurationError, match="Database connectivity check failed"):
        startup_module.validate_startup_config()
