"""Retention policy: which backups are past the retention window."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Iterable

from src.backup.errors import InvalidBackupName, TimestampParseError
from src.backup.naming import BackupRecord, NamingScheme

logger = logging.getLogger(__name__)


@dataclass
class RetentionDecision:
    cutoff: datetime
    expired: list[BackupRecord]
    kept: list[BackupRecord]
    unparsable: list[str]


class RetentionPolicy:
    def __init__(
        self,
        naming: NamingScheme,
        retention_days: int = 30,
        clock: Callable[[], datetime] = None,
    ):
        if retention_days < 0:
            raise ValueError(f"Retention days must not be negative: {retention_days}")
        self.naming = naming
        self.retention_days = retention_days
        self.clock = clock or naming.clock

    def cutoff(self, retention_days: int | None = None) -> datetime:
        days = self.retention_days if retention_days is None else retention_days
        if days < 0:
            raise ValueError(f"Retention days must not be negative: {days}")
        return self.clock() - timedelta(days=days)

    def is_expired(self, record: BackupRecord, cutoff: datetime) -> bool:
        # Strictly older only; a backup exactly at the cutoff survives
        return record.timestamp < cutoff

    def evaluate(
        self,
        paths: Iterable[Path],
        retention_days: int | None = None,
    ) -> RetentionDecision:
        """Sort directory entries into expired, kept and unparsable.

        Entries outside the naming scheme are ignored entirely. Entries
        with a malformed timestamp are reported as unparsable and never
        treated as expired.
        """
        cutoff = self.cutoff(retention_days)
        decision = RetentionDecision(cutoff=cutoff, expired=[], kept=[], unparsable=[])
        for path in paths:
            try:
                record = self.naming.parse(str(path))
            except InvalidBackupName:
                continue
            except TimestampParseError as exc:
                logger.warning(
                    "Could not parse backup file timestamp: %s (%s)", path, exc,
                    extra={"event": "timestamp_unparsable", "backup_path": str(path)},
                )
                decision.unparsable.append(str(path))
                continue
            if self.is_expired(record, cutoff):
                decision.expired.append(record)
            else:
                decision.kept.append(record)
        return decision
