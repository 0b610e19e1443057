"""Database migration utilities.

Migrations run before the server starts accepting requests. Alembic drives
the same async drivers as the application (see migrations/env.py), so no
sync driver is needed.
"""

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config as AlembicConfig

from fedauth.infrastructure.persistence.database import expand_sqlite_path

logger = logging.getLogger(__name__)

# Project root where alembic.ini lives
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent


def get_alembic_config(database_url: str) -> AlembicConfig:
    """Create Alembic config with the given database URL."""
    config = AlembicConfig(str(PROJECT_ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    config.set_main_option("sqlalchemy.url", expand_sqlite_path(database_url))
    config.attributes["configure_logger"] = False
    return config


def run_migrations(database_url: str) -> None:
    """Run pending Alembic migrations.

    Must not be called from inside a running event loop: env.py starts its
    own with asyncio.run().
    """
    command.upgrade(get_alembic_config(database_url), "head")
    logger.info("Database migrations complete")
