"""Scheduled retention cleanup.

The store never decides on its own whether cleanup should happen; this
task applies the ``auto_cleanup`` / ``retention_days`` gating for periodic
and post-backup callers.
"""

import logging
import threading

from src.backup.backup_config import BackupSettings
from src.backup.backup_store import BackupStore

logger = logging.getLogger(__name__)


class MaintenanceTask:
    def __init__(self, store: BackupStore, settings: BackupSettings):
        self.store = store
        self.settings = settings
        self.last_cleaned: int | None = None

    def should_run(self) -> bool:
        return self.settings.auto_cleanup and self.settings.retention_days > 0

    def run_once(self) -> int | None:
        """Run cleanup if automatic cleanup is enabled.

        Returns the number of removed backups, or None when skipped.
        """
        if not self.should_run():
            logger.debug(
                "Automatic cleanup skipped (auto_cleanup=%s, retention_days=%d)",
                self.settings.auto_cleanup, self.settings.retention_days,
            )
            return None
        self.last_cleaned = self.store.cleanup_old_backups(self.settings.retention_days)
        return self.last_cleaned

    def run_forever(self, stop_event: threading.Event, interval: float = None):
        """Run cleanup every ``interval`` seconds until stop_event is set."""
        if interval is None:
            interval = self.settings.cleanup_interval_minutes * 60
        logger.info("Maintenance loop started (every %.0fs)", interval)
        while not stop_event.is_set():
            try:
                self.run_once()
            except OSError:
                logger.exception("Scheduled cleanup failed")
            stop_event.wait(timeout=interval)
        logger.info("Maintenance loop stopped.")
