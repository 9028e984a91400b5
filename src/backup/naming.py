"""Backup file naming scheme.

    config.json   ->  config.backup.20250201-143000.json
    Makefile      ->  Makefile.backup.20250201-143000
    .env          ->  .env.backup.20250201-143000

Only names that parse with BACKUP_NAME_RE and carry a valid timestamp are
backups. Names that have a ``.backup.`` segment but a malformed timestamp
raise TimestampParseError so callers can warn about them; anything else is
not a backup at all.
"""

import os
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from src.backup.backup_config import TIMESTAMP_FORMAT
from src.backup.errors import InvalidBackupName, TimestampParseError

BACKUP_MARKER = ".backup."

BACKUP_NAME_RE = re.compile(
    r"^(?P<base>.+)\.backup\.(?P<stamp>\d{8}-\d{6})(?:\.(?P<ext>[^.]+))?$"
)
# Same shape with any timestamp segment, to spot malformed backups
LOOSE_BACKUP_NAME_RE = re.compile(
    r"^(?P<base>.+)\.backup\.(?P<stamp>[^.]+)(?:\.(?P<ext>[^.]+))?$"
)


@dataclass(frozen=True)
class BackupRecord:
    original_base_name: str
    extension: str
    timestamp: datetime
    backup_path: str

    @property
    def original_name(self) -> str:
        if self.extension:
            return f"{self.original_base_name}.{self.extension}"
        return self.original_base_name

    def to_dict(self) -> dict:
        return {
            "original_base_name": self.original_base_name,
            "extension": self.extension,
            "original_name": self.original_name,
            "timestamp": self.timestamp.isoformat(),
            "backup_path": self.backup_path,
        }


def split_name(path: str) -> tuple[str, str]:
    """Return (base name, extension without dot) for a file path."""
    name = os.path.basename(path)
    base, ext = os.path.splitext(name)
    return base, ext[1:]


def format_timestamp(ts: datetime) -> str:
    return ts.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(stamp: str) -> datetime:
    try:
        return datetime.strptime(stamp, TIMESTAMP_FORMAT)
    except ValueError as exc:
        raise TimestampParseError(
            f"Malformed backup timestamp: {stamp!r}", cause=exc,
        ) from exc


class NamingScheme:
    """Encodes and decodes backup file names; ``clock`` supplies 'now'."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self.clock = clock

    def now(self) -> datetime:
        return self.clock().replace(microsecond=0)

    def build_name(self, source_path: str, timestamp: datetime = None) -> str:
        base, ext = split_name(source_path)
        stamp = format_timestamp(timestamp or self.now())
        name = f"{base}{BACKUP_MARKER}{stamp}"
        if ext:
            name += f".{ext}"
        return name

    def parse(self, backup_path: str) -> BackupRecord:
        """Decode a backup path.

        Raises InvalidBackupName for names outside the scheme and
        TimestampParseError when only the timestamp segment is bad.
        """
        name = os.path.basename(backup_path)
        m = BACKUP_NAME_RE.match(name)
        if m is None:
            loose = LOOSE_BACKUP_NAME_RE.match(name)
            if loose is None:
                raise InvalidBackupName(
                    f"Not a backup file name: {name}", path=backup_path,
                )
            raise TimestampParseError(
                f"Malformed backup timestamp: {loose.group('stamp')!r}",
                path=backup_path,
            )
        try:
            ts = parse_timestamp(m.group("stamp"))
        except TimestampParseError as exc:
            exc.path = backup_path
            raise
        return BackupRecord(
            original_base_name=m.group("base"),
            extension=m.group("ext") or "",
            timestamp=ts,
            backup_path=backup_path,
        )

    def original_name(self, backup_path: str) -> str:
        """Strip the ``.backup.<timestamp>`` segment from a backup name."""
        return self.parse(backup_path).original_name

    def matches(self, record: BackupRecord, original_path: str) -> bool:
        base, ext = split_name(original_path)
        return record.original_base_name == base and record.extension == ext
