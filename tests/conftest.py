from __future__ import annotations

import itertools
import secrets

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.pool import StaticPool

from weberis.auth.actor_context import from_user
from weberis.auth.csrf import CsrfGuard
from weberis.core.config import get_config
from weberis.core.security import hash_password
from weberis.database.db import build_session_factory
from weberis.database.seed import seed_all
from weberis.models import Base, Role, User, UserSession

TEST_PASSWORD = "correct-horse-battery"
# Low iteration count keeps fixture setup fast; verify_password reads it from the hash.
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD, iterations=1000)


def open_session(db, user: User):
    """Create a server-side session for ``user`` and return its actor."""
    session = UserSession(id=secrets.token_urlsafe(24), user_id=user.id)
    db.add(session)
    db.commit()
    return from_user(user, session_id=session.id)


@pytest.fixture
def password():
    return TEST_PASSWORD


@pytest.fixture
def config():
    return get_config()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine, config):
    session = build_session_factory(engine)()
    seed_all(session, config)
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make_user(role_name: str = "user", email: str | None = None, name: str | None = None) -> User:
        role = db.scalars(select(Role).where(Role.name == role_name)).one()
        number = next(counter)
        user = User(
            name=name or f"{role_name.title()} {number}",
            email=email or f"{role_name}{number}@example.com",
            password=TEST_PASSWORD_HASH,
            role_id=role.id,
        )
        db.add(user)
        db.commit()
        return user

    return _make_user


@pytest.fixture
def actor_for(db, make_user):
    def _actor_for(role_name: str = "user", **kwargs):
        return open_session(db, make_user(role_name, **kwargs))

    return _actor_for


@pytest.fixture
def master_admin(db, config):
    user = db.scalars(select(User).where(User.email == config.MASTER_ADMIN_EMAIL)).one()
    return open_session(db, user)


@pytest.fixture
def admin(actor_for):
    return actor_for("admin")


@pytest.fixture
def manager(actor_for):
    return actor_for("manager")


@pytest.fixture
def viewer(actor_for):
    return actor_for("user")


@pytest.fixture
def csrf(db):
    """Issue the next single-use token for an actor's session."""

    def _issue(actor) -> str:
        return CsrfGuard(db).issue(actor.session_id)

    return _issue
