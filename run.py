"""Unified launcher for the Backup File Store.

One-off operations run against the configured backup root; ``serve``
starts the HTTP API with the maintenance loop in a background thread.

Usage:
    python run.py create config/app.json
    python run.py list config/app.json
    python run.py restore storage/app/backups/app.backup.20250201-143000.json
    python run.py cleanup --days 7
    python run.py verify storage/app/backups/app.backup.20250201-143000.json
    python run.py serve --port 5000
    python run.py maintain --once
"""

import argparse
import logging
import os
import signal
import sys
import threading
from pathlib import Path

from src.backup.backup_config import load_settings
from src.backup.backup_store import BackupStore
from src.backup.errors import BackupStoreError
from src.backup.maintenance import MaintenanceTask
from src.database.event_logger import EventLogger

PROJECT_ROOT = Path(__file__).resolve().parent
DEFAULT_CONFIG = str(PROJECT_ROOT / "config" / "config.json")

logger = logging.getLogger("backup_store")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Backup File Store",
    )
    parser.add_argument(
        "-c", "--config",
        default=DEFAULT_CONFIG,
        help="Path to config.json (default: config/config.json)",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("create", help="Back up a file")
    p.add_argument("path")

    p = sub.add_parser("restore", help="Restore a backup")
    p.add_argument("backup_path")
    p.add_argument("--target", help="Restore here instead of the original path")

    p = sub.add_parser("list", help="List backups, newest first")
    p.add_argument("path", nargs="?", help="Only backups of this file")

    p = sub.add_parser("cleanup", help="Delete backups past the retention window")
    p.add_argument("--days", type=int, help="Override retention_days")

    p = sub.add_parser("verify", help="Check a backup against its recorded hash")
    p.add_argument("backup_path")

    p = sub.add_parser("serve", help="Run the HTTP API")
    p.add_argument("--host", default="127.0.0.1",
                   help="API host (default: 127.0.0.1)")
    p.add_argument("--port", default=5000, type=int,
                   help="API port (default: 5000)")
    p.add_argument("--no-maintenance", action="store_true",
                   help="Do not run scheduled cleanup alongside the API")

    p = sub.add_parser("maintain", help="Run scheduled cleanup")
    p.add_argument("--once", action="store_true",
                   help="Run a single cleanup pass and exit")
    return parser


def run_command(args, store: BackupStore, settings) -> int:
    if args.command == "create":
        print(store.create_backup(args.path))
        cleaned = MaintenanceTask(store, settings).run_once()
        if cleaned:
            logger.info("Automatic cleanup removed %d backup(s)", cleaned)

    elif args.command == "restore":
        target = args.target
        if target is None and os.path.isfile(args.backup_path):
            target = store.derive_original_path(args.backup_path)
        store.restore_from_backup(args.backup_path, target)
        print(target)

    elif args.command == "list":
        if args.path:
            for path in store.get_backups_for_file(args.path):
                print(path)
        else:
            for record in store.list_backups():
                print(f"{record.timestamp.isoformat()}  {record.backup_path}")

    elif args.command == "cleanup":
        if args.days is not None and args.days < 0:
            print("error: --days must not be negative", file=sys.stderr)
            return 2
        print(store.cleanup_old_backups(args.days))

    elif args.command == "verify":
        ok = store.verify_backup(args.backup_path)
        print({True: "ok", False: "MISMATCH", None: "no hash recorded"}[ok])
        if ok is False:
            return 1

    return 0


def run_maintenance(store, settings, stop_event, once=False):
    task = MaintenanceTask(store, settings)
    if once:
        task.run_once()
        return
    task.run_forever(stop_event)


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        settings = load_settings(args.config)
    except ValueError as exc:
        parser.error(f"Invalid configuration: {exc}")

    if args.command == "serve":
        return serve(args, settings)

    event_logger = EventLogger(settings.event_db_path)
    try:
        store = BackupStore.from_settings(settings, event_logger=event_logger)
        if args.command == "maintain":
            stop_event = threading.Event()
            if not args.once:
                install_signal_handlers(stop_event)
            run_maintenance(store, settings, stop_event, once=args.once)
            return 0
        return run_command(args, store, settings)
    except BackupStoreError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        event_logger.close()


def install_signal_handlers(stop_event):
    def handle_signal(signum, frame):
        logger.info("Received signal %s, shutting down...", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)


def serve(args, settings) -> int:
    from src.server.app import create_app

    app = create_app(settings=settings)
    stop_event = threading.Event()

    maintenance_thread = None
    if not args.no_maintenance:
        maintenance_thread = threading.Thread(
            target=run_maintenance,
            args=(app.backup_store, settings, stop_event),
            daemon=True,
            name="backup-maintenance",
        )
        maintenance_thread.start()

    logger.info("Backup API: http://%s:%d", args.host, args.port)
    try:
        app.run(host=args.host, port=args.port, debug=False)
    finally:
        stop_event.set()
        if maintenance_thread is not None:
            maintenance_thread.join(timeout=5)
        app.event_logger.close()
        logger.info("System stopped.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
