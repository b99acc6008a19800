"""Deploy readiness checks run before the API starts serving."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from weberis.core.config import PLACEHOLDER_ADMIN_PASSWORD, Config, get_config
from weberis.core.exceptions import ConfigurationError
from weberis.core.logging_config import configure_logging
from weberis.core.security import verify_password
from weberis.database.db import get_active_database_url, get_db_session, verify_database_connection
from weberis.models import ADMIN_ROLE_NAME, Role, User

logger = logging.getLogger(__name__)

SEED_HINT = "Run `python -m weberis.database.init_db`."


@dataclass
class StartupReport:
    database_ok: bool
    problems: list[str] = field(default_factory=list)

    @property
    def ready(self) -> bool:
        return self.database_ok and not self.problems


def check_seed_state(db: Session, config: Config) -> list[str]:
    """Problems with the seeded access-control rows, in the order found."""
    try:
        admin_role = db.scalars(select(Role).where(Role.name == ADMIN_ROLE_NAME)).first()
        master = db.scalars(select(User).where(func.lower(User.email) == config.MASTER_ADMIN_EMAIL)).first()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("startup.schema.unreadable", extra={"event": "startup.schema.unreadable"})
        return [f"The CRM schema is missing or unreadable. {SEED_HINT}"]

    problems: list[str] = []
    if admin_role is None:
        problems.append(f"The '{ADMIN_ROLE_NAME}' role is missing. {SEED_HINT}")
    if master is None:
        problems.append(f"The master admin account {config.MASTER_ADMIN_EMAIL} is missing. {SEED_HINT}")
        return problems
    if admin_role is not None and master.role_id != admin_role.id:
        problems.append(f"The master admin account is not in the '{ADMIN_ROLE_NAME}' role.")
    if verify_password(PLACEHOLDER_ADMIN_PASSWORD, master.password):
        problems.append("The master admin account still uses the placeholder password.")
    return problems


def check_admin_password_setting(config: Config) -> None:
    """Seeding a production database with the placeholder password is refused."""
    if config.is_production and config.MASTER_ADMIN_PASSWORD == PLACEHOLDER_ADMIN_PASSWORD:
        raise ConfigurationError("Production MASTER_ADMIN_PASSWORD uses the placeholder value.")


def validate_startup_config(require_seed: bool = True) -> StartupReport:
    """Check connectivity and the seeded master admin.

    In production any problem is fatal. Elsewhere problems are logged and
    returned so a developer can still start against a half-built database.
    ``require_seed=False`` is for the schema bootstrap itself, which runs
    before the seed exists.
    """
    config = get_config()
    scheme = get_active_database_url().split("://", 1)[0]
    report = StartupReport(database_ok=verify_database_connection())

    if not report.database_ok:
        if config.DB_CONNECTIVITY_REQUIRED:
            raise ConfigurationError("Database connectivity check failed.")
        logger.warning(
            "startup.database.unreachable",
            extra={"event": "startup.database.unreachable", "database_url_scheme": scheme},
        )
    elif require_seed:
        with get_db_session() as db:
            report.problems = check_seed_state(db, config)
    else:
        check_admin_password_setting(config)

    if config.is_production and scheme == "sqlite":
        logger.warning("startup.production.sqlite", extra={"event": "startup.production.sqlite"})

    if report.problems:
        if config.is_production:
            raise ConfigurationError(report.problems[0])
        logger.warning(
            "startup.readiness.degraded",
            extra={"event": "startup.readiness.degraded", "problems": report.problems},
        )

    logger.info(
        "startup.readiness.checked",
        extra={
            "event": "startup.readiness.checked",
            "env": config.ENV,
            "database_url_scheme": scheme,
            "ready": report.ready,
        },
    )
    return report


def bootstrap(require_seed: bool = True) -> StartupReport:
    """Initialize logging and run the readiness checks."""
    configure_logging()
    return validate_startup_config(require_seed=require_seed)
