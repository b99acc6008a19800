import logging
from pathlib import Path

from alembic import command
from alembic.config import Config as AlembicConfig

import weberis.database.db as db_module
from weberis.core.startup import bootstrap
from weberis.database.seed import seed_all
from weberis.models import Base

logger = logging.getLogger(__name__)
PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _build_alembic_config(database_url: str) -> AlembicConfig:
    cfg = AlembicConfig(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", database_url)
    cfg.attributes["url_from_caller"] = True
    cfg.attributes["skip_logging_config"] = True
    return cfg


def init_db(run_migrations: bool = True) -> None:
    bootstrap(require_seed=False)
    active_url = db_module.get_active_database_url()
    if run_migrations:
        command.upgrade(_build_alembic_config(active_url), "head")

    Base.metadata.create_all(bind=db_module.get_engine())
    logger.info(
        "database.tables.created",
        extra={
            "event": "database.tables.created",
            "database_url_scheme": active_url.split("://", 1)[0],
        },
    )

    with db_module.get_db_session() as db:
        seed_all(db)


if __name__ == "__main__":
    init_db()
