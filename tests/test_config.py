from __future__ import annotations

import pytest

from weberis.core.config import _build_config
from weberis.core.exceptions import ConfigurationError


def test_development_defaults_are_valid(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("PAGE_SIZE", raising=False)
    monkeypatch.delenv("DEBUG", raising=False)
    cfg = _build_config("development")
    assert cfg.DEBUG is True
    assert cfg.DATABASE_URL.startswith("sqlite")
    assert cfg.PAGE_SIZE == 10


def test_rejects_unsupported_database_url(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "mysql://root@localhost/weberis")
    with pytest.raises(ConfigurationError, match="DATABASE_URL"):
        _build_config("development")


def test_production_refuses_placeholder_secret(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://crm:crm@db:5432/weberis")
    monkeypatch.delenv("SECRET_KEY", raising=False)
    with pytest.raises(ConfigurationError, match="SECRET_KEY"):
        _build_config("production")


def test_rejects_short_minimum_password_length(monkeypatch):
    monkeypatch.setenv("MIN_PASSWORD_LENGTH", "4")
    with pytest.raises(ConfigurationError, match="MIN_PASSWORD_LENGTH"):
        _build_config("development")
