"""Backup root ownership."""

import logging
import os
from pathlib import Path

from src.backup.backup_config import METADATA_DIR_NAME
from src.backup.errors import DirectoryCreateFailed

logger = logging.getLogger(__name__)

BACKUP_DIR_MODE = 0o755


def ensure_directory(path, mode: int = BACKUP_DIR_MODE) -> Path:
    """Create ``path`` (and parents) if missing. Idempotent."""
    path = Path(path)
    try:
        path.mkdir(mode=mode, parents=True, exist_ok=True)
    except OSError as exc:
        raise DirectoryCreateFailed(
            f"Could not create directory {path}: {exc}", path=str(path), cause=exc,
        ) from exc
    if not path.is_dir():
        raise DirectoryCreateFailed(
            f"Path exists but is not a directory: {path}", path=str(path),
        )
    return path


class BackupDirectory:
    """The single directory all backups live in.

    Created on construction and re-created by ``ensure`` before writes, so
    a root removed while the process runs comes back on the next backup.
    """

    def __init__(self, path):
        self.path = ensure_directory(Path(os.path.expanduser(str(path))).resolve())
        self.metadata_path = self.path / METADATA_DIR_NAME
        logger.debug("Backup directory ready at %s", self.path)

    def ensure(self) -> Path:
        return ensure_directory(self.path)

    def __str__(self):
        return str(self.path)

    def entries(self) -> list[Path]:
        """Regular files directly under the root (non-recursive)."""
        try:
            with os.scandir(self.path) as it:
                return [Path(e.path) for e in it if e.is_file(follow_symlinks=False)]
        except FileNotFoundError:
            logger.warning("Backup directory vanished: %s", self.path)
            return []
