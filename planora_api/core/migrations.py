"""Alembic helpers for bringing the schema to head.

Run ``python -m planora_api.core.migrations`` before starting the API.
"""

from pathlib import Path

from alembic import command
from alembic.config import Config

from planora_api.logging_config import get_logger

logger = get_logger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


def get_alembic_config() -> Config:
    """Build the Alembic config from the project's alembic.ini."""
    alembic_ini = _PROJECT_ROOT / "alembic.ini"
    if not alembic_ini.exists():
        raise FileNotFoundError(f"alembic.ini not found at {alembic_ini}")

    config = Config(str(alembic_ini))
    config.set_main_option("script_location", str(_PROJECT_ROOT / "migrations"))
    return config


def run_migrations() -> None:
    """Upgrade the database to the latest revision."""
    logger.info("Running database migrations")
    try:
        command.upgrade(get_alembic_config(), "head")
    except Exception as e:
        logger.error("Database migration failed", error=str(e))
        raise
    logger.info("Database migrations completed")


if __name__ == "__main__":
    run_migrations()
