"""Sidecar records for backups.

Each backup gets a JSON record under ``<backup-root>/.meta/`` holding the
absolute path it was taken from and its SHA-256 digest:

    backups/
    +-- composer.backup.20250201-143000.json
    +-- .meta/
        +-- composer.backup.20250201-143000.json.json

The sidecar directory sits below the root, so the non-recursive scans of
the store never see these files.
"""

import hashlib
import json
import logging
import os
import time
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)


def file_sha256(path: str) -> str | None:
    """Return hex SHA-256 digest of a file, or None if unreadable."""
    h = hashlib.sha256()
    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(65536), b""):
                h.update(chunk)
        return h.hexdigest()
    except OSError:
        return None


class SidecarStore:
    def __init__(self, metadata_dir):
        self.metadata_dir = Path(metadata_dir)

    def path_for(self, backup_path: str) -> Path:
        return self.metadata_dir / f"{os.path.basename(backup_path)}.json"

    def write(
        self,
        backup_path: str,
        original_path: str,
        timestamp: datetime,
        file_hash: str | None,
    ) -> Path:
        self.metadata_dir.mkdir(parents=True, exist_ok=True)
        meta_path = self.path_for(backup_path)
        meta_path.write_text(json.dumps({
            "original_path": original_path,
            "backup_filename": os.path.basename(backup_path),
            "timestamp": timestamp.isoformat(),
            "sha256": file_hash,
        }, indent=2))
        return meta_path

    def read(self, backup_path: str) -> dict | None:
        """Return the sidecar for a backup, or None if absent or unreadable."""
        meta_path = self.path_for(backup_path)
        if not meta_path.is_file():
            return None
        try:
            return json.loads(meta_path.read_text())
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Ignoring unreadable backup metadata %s: %s", meta_path, exc)
            return None

    def remove(self, backup_path: str):
        try:
            self.path_for(backup_path).unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Could not remove backup metadata for %s: %s",
                           backup_path, exc)

    def prune_orphans(self, backup_root, grace_seconds: int = 60) -> int:
        """Remove sidecars whose backup is no longer in ``backup_root``.

        Sidecars younger than ``grace_seconds`` are left alone: a backup
        being created has its sidecar written before the file is renamed
        into place.
        """
        now = time.time()
        if not self.metadata_dir.is_dir():
            return 0
        removed = 0
        for meta_path in self.metadata_dir.glob("*.json"):
            backup_name = meta_path.name[:-len(".json")]
            if os.path.lexists(os.path.join(str(backup_root), backup_name)):
                continue
            try:
                if now - meta_path.stat().st_mtime < grace_seconds:
                    continue
                meta_path.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.warning("Could not remove orphaned metadata %s: %s",
                               meta_path, exc)
                continue
            removed += 1
            logger.debug("Removed orphaned backup metadata %s", meta_path)
        return removed
