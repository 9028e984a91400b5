"""Exception taxonomy for the backup store.

Single-target operations (create, restore) raise these and never return a
partial result. TimestampParseError is the only non-fatal one: cleanup logs
it and keeps the offending file.
"""


class BackupStoreError(Exception):
    """Base class. Carries the path involved and the underlying cause."""

    def __init__(self, message: str, path: str | None = None,
                 cause: BaseException | None = None):
        super().__init__(message)
        self.path = path
        self.cause = cause


class SourceNotFound(BackupStoreError):
    pass


class CopyFailed(BackupStoreError):
    pass


class DuplicateBackup(BackupStoreError):
    """A backup of the same file already exists for this second."""


class BackupNotFound(BackupStoreError):
    pass


class InvalidBackupName(BackupStoreError):
    """File name does not follow <base>.backup.<YYYYMMDD-HHMMSS>[.<ext>]."""


class RestoreFailed(BackupStoreError):
    pass


class IntegrityCheckFailed(RestoreFailed):
    """Backup content no longer matches the digest recorded at creation."""


class TimestampParseError(BackupStoreError):
    pass


class DirectoryCreateFailed(BackupStoreError):
    pass
