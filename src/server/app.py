"""Flask application for the backup service.

Serves the REST API used by update scripts and maintenance jobs:

    GET  /api/status
    GET  /api/backups
    POST /api/backups
    POST /api/restore
    POST /api/cleanup
    GET  /api/events
    GET  /api/config
"""

import logging
import os

from flask import Flask

from src.backup.backup_config import DEFAULT_CONFIG_PATH, BackupSettings, load_settings
from src.backup.backup_store import BackupStore
from src.backup.maintenance import MaintenanceTask
from src.database.event_logger import EventLogger
from src.server.routes import api, init_routes

logger = logging.getLogger(__name__)


def create_app(
    config_path: str = None,
    settings: BackupSettings = None,
    store: BackupStore = None,
    event_logger: EventLogger = None,
) -> Flask:
    """Application factory.

    Accepts pre-built service instances (for testing) or constructs
    defaults from config.
    """
    if settings is None:
        settings = load_settings(config_path or DEFAULT_CONFIG_PATH)

    if event_logger is None:
        event_logger = EventLogger(settings.event_db_path)

    if store is None:
        store = BackupStore.from_settings(settings, event_logger=event_logger)

    maintenance = MaintenanceTask(store, settings)

    app = Flask(__name__)
    init_routes(
        store=store,
        event_logger=event_logger,
        settings=settings,
        maintenance=maintenance,
    )
    app.register_blueprint(api)

    # Store references for test access
    app.backup_store = store
    app.event_logger = event_logger
    app.settings = settings
    app.maintenance = maintenance

    return app


def main():
    import argparse

    parser = argparse.ArgumentParser(description="Backup File Store - HTTP API")
    parser.add_argument(
        "-c", "--config",
        default=DEFAULT_CONFIG_PATH,
        help="Path to config.json",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        default=5000,
        type=int,
        help="Port to listen on (default: 5000)",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    app = create_app(config_path=args.config)
    logger.info("Backup API starting on http://%s:%d", args.host, args.port)
    app.run(host=args.host, port=args.port, debug=False)


if __name__ == "__main__":
    main()
