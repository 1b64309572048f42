"""
Command line entry point for the TaskHub API server.

Loads the settings document, opens the task database and serves the FastAPI
app with uvicorn. A settings or storage failure at startup is fatal: the cause
is logged and the process exits with status 1.
"""

import logging
import sys
from typing import Optional

import click
import uvicorn

from .api import create_app
from .config import (
    CONFIG_PATH_ENV,
    ConfigError,
    DatabaseCredentials,
    Settings,
    load_settings,
    resolve_config_path,
    resolve_port,
)
from .database import StorageError, TaskDatabase

logger = logging.getLogger(__name__)

UVICORN_LOG_LEVELS = ("critical", "error", "warning", "info", "debug", "trace")

LOG_FORMATS = {
    "text": "%(asctime)s %(levelname)s %(name)s: %(message)s",
    "compact": "%(levelname)s: %(message)s",
}


def configure_logging(settings: Settings) -> None:
    """Configure root logging from the settings document."""
    level = logging.getLevelName(settings.logging.level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    fmt = LOG_FORMATS.get(settings.logging.format.lower(), LOG_FORMATS["text"])
    logging.basicConfig(level=level, format=fmt, force=True)


def uvicorn_log_level(settings: Settings) -> str:
    level = settings.logging.level.lower()
    return level if level in UVICORN_LOG_LEVELS else "info"


def open_database(settings: Settings) -> TaskDatabase:
    """Log the (unused) credential variables and open the configured database."""
    credentials = DatabaseCredentials.from_environ()
    logger.info(
        f"Database config - User: {credentials.user}, Host: {credentials.host}, "
        f"Password: {credentials.masked_password()}"
    )

    if settings.database.type.lower() != "sqlite":
        logger.warning(f"Unsupported database type {settings.database.type!r}, using SQLite")

    db = TaskDatabase(settings.database.path, timeout_seconds=settings.database.timeout)
    logger.info(f"Database initialized: {settings.database.path}")
    return db


def fail(message: str) -> None:
    logger.critical(message)
    sys.exit(1)


@click.command()
@click.option("--config", "config_path", default=None, envvar=CONFIG_PATH_ENV,
              help="Path to the YAML settings document [default: ./config.yaml]")
@click.option("--host", default="0.0.0.0", show_default=True, help="Interface to bind")
def main(config_path: Optional[str], host: str):
    """Run the TaskHub REST API."""
    # Logging is unconfigured until the settings are read, so startup errors
    # still need a handler.
    logging.basicConfig(level=logging.INFO)

    config_path = config_path or resolve_config_path()
    try:
        settings = load_settings(config_path)
    except ConfigError as e:
        fail(f"Failed to load config: {e}")

    configure_logging(settings)

    if settings.security.cors_origins != ["*"]:
        logger.info(
            f"CORS origins configured as {settings.security.cors_origins}; "
            "responses still allow any origin"
        )

    try:
        db = open_database(settings)
    except StorageError as e:
        fail(f"Failed to initialize database: {e}")

    app = create_app(settings, db)
    port = resolve_port(settings)

    logger.info(f"Starting {settings.app.name} v{settings.app.version} on port {port}")
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level=uvicorn_log_level(settings),
        access_log=not settings.is_production
    )


if __name__ == "__main__":
    main()
