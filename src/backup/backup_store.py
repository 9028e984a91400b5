"""Backup store façade.

Creates timestamped copies of files before they are overwritten, restores
them, lists the backups of a file and purges backups past the retention
window. The only component callers use directly.

Usage::

    store = BackupStore("/srv/app/storage/app/backups", retention_days=30)
    backup = store.create_backup("/srv/app/composer.json")
    store.restore_from_backup(backup)
    store.cleanup_old_backups()
"""

import logging
import os
import shutil
import sqlite3
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Callable

from src.backup.backup_config import (
    DEFAULT_RESTORE_RULES,
    DEFAULT_RETENTION_DAYS,
    PROJECT_ROOT,
    BackupSettings,
)
from src.backup.directory import BackupDirectory, ensure_directory
from src.backup.errors import (
    BackupNotFound,
    CopyFailed,
    DuplicateBackup,
    IntegrityCheckFailed,
    InvalidBackupName,
    RestoreFailed,
    SourceNotFound,
    TimestampParseError,
)
from src.backup.metadata import SidecarStore, file_sha256
from src.backup.naming import BackupRecord, NamingScheme, format_timestamp
from src.backup.retention import RetentionPolicy

logger = logging.getLogger(__name__)


def atomic_copy(src: Path, dest: Path, on_copied: Callable[[str], None] = None):
    """Copy ``src`` to ``dest`` through a temp file in dest's directory.

    ``dest`` only ever appears complete. ``on_copied`` runs against the
    temp file before it is moved into place; if anything fails the temp
    file is removed and the error propagates.
    """
    fd, tmp = tempfile.mkstemp(prefix=".", suffix=".partial", dir=str(dest.parent))
    os.close(fd)
    try:
        shutil.copyfile(str(src), tmp)
        shutil.copymode(str(src), tmp)
        if on_copied is not None:
            on_copied(tmp)
        os.replace(tmp, str(dest))
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


class BackupStore:
    """Timestamped file backups under a single backup root."""

    def __init__(
        self,
        backup_dir: str,
        clock: Callable[[], datetime] = datetime.now,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        restore_rules=DEFAULT_RESTORE_RULES,
        app_root: str = None,
        event_logger=None,
    ):
        self.directory = BackupDirectory(backup_dir)
        self.naming = NamingScheme(clock)
        self.retention = RetentionPolicy(self.naming, retention_days)
        self.sidecars = SidecarStore(self.directory.metadata_path)
        self.restore_rules = [dict(r) for r in restore_rules]
        self.app_root = Path(app_root or PROJECT_ROOT)
        self.event_logger = event_logger

    @classmethod
    def from_settings(
        cls,
        settings: BackupSettings,
        event_logger=None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> "BackupStore":
        return cls(
            backup_dir=settings.backup_dir,
            clock=clock,
            retention_days=settings.retention_days,
            restore_rules=settings.restore_rules,
            app_root=settings.app_root,
            event_logger=event_logger,
        )

    @property
    def retention_days(self) -> int:
        return self.retention.retention_days

    def get_backup_directory(self) -> str:
        return str(self.directory.path)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_backup(self, source_path: str) -> str:
        """Copy ``source_path`` into the backup root and return the copy's path.

        Raises SourceNotFound, DuplicateBackup (a backup of this file
        already exists for the current second), DirectoryCreateFailed
        or CopyFailed.
        """
        source = Path(source_path)
        if not source.is_file():
            raise SourceNotFound(
                f"Source file does not exist: {source_path}", path=str(source_path),
            )
        source = source.resolve()

        self.directory.ensure()
        ts = self.naming.now()
        dest = self.directory.path / self.naming.build_name(str(source), ts)
        if dest.exists():
            raise DuplicateBackup(
                f"Backup already exists for this second: {dest}", path=str(dest),
            )

        file_hash = None

        def write_sidecar(tmp):
            nonlocal file_hash
            file_hash = file_sha256(tmp)
            self.sidecars.write(str(dest), str(source), ts, file_hash)

        try:
            atomic_copy(source, dest, on_copied=write_sidecar)
        except OSError as exc:
            self.sidecars.remove(str(dest))
            logger.error(
                "Backup creation failed for %s: %s", source, exc,
                extra={"event": "backup_failed", "source_path": str(source)},
            )
            self._record_event("backup_failed", None, str(source), str(exc))
            raise CopyFailed(
                f"Failed to create backup of {source}: {exc}",
                path=str(source), cause=exc,
            ) from exc

        stamp = format_timestamp(ts)
        logger.info(
            "Backup created: %s -> %s (hash=%s)", source, dest,
            file_hash[:12] if file_hash else "N/A",
            extra={
                "event": "backup_created",
                "source_path": str(source),
                "backup_path": str(dest),
                "backup_timestamp": stamp,
            },
        )
        self._record_event("backup_created", str(dest), str(source), stamp)
        return str(dest)

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    def restore_from_backup(self, backup_path: str, target_path: str = None) -> bool:
        """Copy a backup over ``target_path`` (or its derived original path).

        The overwrite is unconditional. Raises BackupNotFound,
        InvalidBackupName, IntegrityCheckFailed, DirectoryCreateFailed or
        RestoreFailed.
        """
        backup = Path(backup_path)
        if not backup.is_file():
            raise BackupNotFound(
                f"Backup file does not exist: {backup_path}", path=str(backup_path),
            )
        record = self.get_backup_record(str(backup))

        meta = self._read_sidecar(str(backup))
        if meta and meta.get("sha256"):
            current = file_sha256(str(backup))
            if current != meta["sha256"]:
                logger.error(
                    "Refusing to restore %s: hash mismatch", backup,
                    extra={"event": "restore_failed", "backup_path": str(backup)},
                )
                raise IntegrityCheckFailed(
                    f"Integrity check failed for {backup}: hash mismatch",
                    path=str(backup),
                )

        if target_path is None:
            target_path = self._derive_original_path(record, meta)
        target = Path(target_path)
        ensure_directory(target.parent)

        try:
            atomic_copy(backup, target)
        except OSError as exc:
            logger.error(
                "Backup restoration failed: %s -> %s: %s", backup, target, exc,
                extra={
                    "event": "restore_failed",
                    "backup_path": str(backup),
                    "restored_to": str(target),
                },
            )
            self._record_event("restore_failed", str(backup), str(target), str(exc))
            raise RestoreFailed(
                f"Failed to restore {backup} to {target}: {exc}",
                path=str(backup), cause=exc,
            ) from exc

        logger.info(
            "Restored %s from %s", target, backup,
            extra={
                "event": "backup_restored",
                "backup_path": str(backup),
                "restored_to": str(target),
            },
        )
        self._record_event("backup_restored", str(backup), str(target))
        return True

    def derive_original_path(self, backup_path: str) -> str:
        """Where a backup restores to when no target is given."""
        record = self.get_backup_record(backup_path)
        return self._derive_original_path(record, self._read_sidecar(backup_path))

    def _derive_original_path(self, record: BackupRecord, meta: dict | None) -> str:
        if meta and meta.get("original_path"):
            return meta["original_path"]

        name = record.original_name
        for rule in self.restore_rules:
            if rule["match"] in name:
                return os.path.normpath(
                    os.path.join(str(self.app_root), rule["target_dir"], name)
                )
        return os.path.join(os.path.dirname(record.backup_path), name)

    def verify_backup(self, backup_path: str) -> bool | None:
        """Check whether a backup still matches its recorded SHA-256.

        Returns True/False, or None if no digest was recorded.
        """
        if not os.path.isfile(backup_path):
            raise BackupNotFound(
                f"Backup file does not exist: {backup_path}", path=backup_path,
            )
        meta = self._read_sidecar(backup_path)
        if not meta or not meta.get("sha256"):
            return None
        return file_sha256(backup_path) == meta["sha256"]

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    def cleanup_old_backups(self, retention_days: int = None) -> int:
        """Delete backups strictly older than the retention window.

        Best effort: a file that cannot be deleted is logged and skipped.
        Sidecars left behind by backups deleted outside the store are
        removed too. Returns the number of backups actually removed.
        """
        if retention_days is None:
            retention_days = self.retention.retention_days
        decision = self.retention.evaluate(self.directory.entries(), retention_days)

        cleaned = 0
        for record in decision.expired:
            try:
                os.unlink(record.backup_path)
            except FileNotFoundError:
                logger.debug("Backup already gone: %s", record.backup_path)
                self.sidecars.remove(record.backup_path)
                continue
            except OSError as exc:
                logger.error(
                    "Could not delete old backup %s: %s", record.backup_path, exc,
                    extra={"event": "backup_delete_failed",
                           "backup_path": record.backup_path},
                )
                continue

            self.sidecars.remove(record.backup_path)
            cleaned += 1
            logger.info(
                "Old backup file cleaned up: %s (file date %s, cutoff %s)",
                record.backup_path, record.timestamp, decision.cutoff,
                extra={
                    "event": "backup_deleted",
                    "backup_path": record.backup_path,
                    "backup_timestamp": format_timestamp(record.timestamp),
                },
            )
            self._record_event("backup_deleted", record.backup_path, None,
                               record.timestamp.isoformat())

        orphans = self.sidecars.prune_orphans(self.directory.path)
        if orphans:
            logger.info("Removed %d orphaned backup metadata file(s)", orphans)

        logger.info(
            "Backup cleanup completed: %d file(s) removed, retention %d day(s)",
            cleaned, retention_days,
            extra={
                "event": "backup_cleanup",
                "files_cleaned": cleaned,
                "retention_days": retention_days,
            },
        )
        return cleaned

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def get_backup_record(self, backup_path: str) -> BackupRecord:
        try:
            return self.naming.parse(backup_path)
        except TimestampParseError as exc:
            raise InvalidBackupName(str(exc), path=backup_path, cause=exc) from exc

    def get_backups_for_file(self, original_path: str) -> list[str]:
        """Backup paths of ``original_path``, newest first. Empty if none."""
        return [
            r.backup_path
            for r in self._scan(lambda r: self.naming.matches(r, original_path))
        ]

    def list_backups(self) -> list[BackupRecord]:
        """Every recognised backup in the root, newest first."""
        return self._scan()

    def _scan(self, predicate=None) -> list[BackupRecord]:
        found = []
        for path in self.directory.entries():
            try:
                record = self.naming.parse(str(path))
            except (InvalidBackupName, TimestampParseError):
                continue
            if predicate is not None and not predicate(record):
                continue
            try:
                mtime = path.stat().st_mtime
            except FileNotFoundError:
                continue
            found.append((mtime, path.name, record))
        found.sort(key=lambda item: (item[0], item[1]), reverse=True)
        return [record for _, _, record in found]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _read_sidecar(self, backup_path: str) -> dict | None:
        # Sidecars only describe files that live in this store's root
        if Path(backup_path).resolve().parent != self.directory.path:
            return None
        return self.sidecars.read(backup_path)

    def _record_event(self, event_type, backup_path, original_path, detail=None):
        if self.event_logger is None:
            return
        try:
            self.event_logger.log_event(
                event_type=event_type,
                backup_path=backup_path,
                original_path=original_path,
                detail=detail,
            )
        except sqlite3.Error:
            logger.exception("Could not persist %s event for %s",
                             event_type, backup_path)
