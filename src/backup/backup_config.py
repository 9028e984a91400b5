"""Backup store configuration and retention defaults.

Settings come from the ``backup`` section of config/config.json, with the
environment variables below taking precedence:

    BACKUP_RETENTION_DAYS   days to keep backups (0 disables auto cleanup)
    BACKUP_DIRECTORY        backup root, relative to the storage path
    BACKUP_AUTO_CLEANUP     true/false
    BACKUP_STORAGE_PATH     application storage root
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DEFAULT_CONFIG_PATH = str(PROJECT_ROOT / "config" / "config.json")

DEFAULT_RETENTION_DAYS = 30
DEFAULT_DIRECTORY = "backups"
DEFAULT_STORAGE_PATH = "storage/app"
DEFAULT_CLEANUP_INTERVAL_MINUTES = 60
DEFAULT_EVENT_DB_PATH = "data/backup_events.db"

# Timestamp segment embedded in backup file names
TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"

# Sidecar records live in this hidden subdirectory of the backup root
METADATA_DIR_NAME = ".meta"

# Used only when a backup has no sidecar: a file name containing ``match``
# restores into ``target_dir`` (relative to the application root).
DEFAULT_RESTORE_RULES = (
    {"match": "package.json", "target_dir": "../front"},
    {"match": "composer.json", "target_dir": "."},
)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass
class BackupSettings:
    retention_days: int = DEFAULT_RETENTION_DAYS
    directory: str = DEFAULT_DIRECTORY
    auto_cleanup: bool = True
    storage_path: str = DEFAULT_STORAGE_PATH
    app_root: str = str(PROJECT_ROOT)
    restore_rules: list[dict] = field(
        default_factory=lambda: [dict(r) for r in DEFAULT_RESTORE_RULES]
    )
    cleanup_interval_minutes: int = DEFAULT_CLEANUP_INTERVAL_MINUTES
    event_db_path: str = DEFAULT_EVENT_DB_PATH
    log_level: str = "INFO"

    @property
    def backup_dir(self) -> str:
        """Absolute backup root resolved from storage path and directory."""
        directory = Path(os.path.expanduser(self.directory))
        if directory.is_absolute():
            return str(directory)
        storage = Path(os.path.expanduser(self.storage_path))
        if not storage.is_absolute():
            storage = Path(self.app_root) / storage
        return str((storage / directory).resolve())

    def validate(self):
        if self.retention_days < 0:
            raise ValueError(
                f"Retention days must not be negative: {self.retention_days}"
            )
        if self.cleanup_interval_minutes <= 0:
            raise ValueError(
                "Cleanup interval must be positive: "
                f"{self.cleanup_interval_minutes}"
            )
        for rule in self.restore_rules:
            if not rule.get("match") or "target_dir" not in rule:
                raise ValueError(f"Invalid restore rule: {rule}")

    def to_dict(self) -> dict:
        data = asdict(self)
        data["backup_dir"] = self.backup_dir
        return data


def parse_bool(value, name: str = "value") -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean for {name}: {value!r}")


def parse_int(value, name: str = "value") -> int:
    if isinstance(value, bool):
        raise ValueError(f"Invalid integer for {name}: {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid integer for {name}: {value!r}") from None


def load_settings(config_path: str = None, environ=None) -> BackupSettings:
    """Build settings from the JSON config file plus environment overrides.

    A missing config file is not an error; defaults apply.
    """
    env = os.environ if environ is None else environ
    config = {}
    path = Path(config_path or DEFAULT_CONFIG_PATH)
    if path.is_file():
        with open(path) as f:
            config = json.load(f)
    else:
        logger.debug("Config file not found, using defaults: %s", path)

    backup_cfg = config.get("backup", {})
    settings = BackupSettings(
        retention_days=parse_int(
            backup_cfg.get("retention_days", DEFAULT_RETENTION_DAYS),
            "retention_days",
        ),
        directory=backup_cfg.get("directory", DEFAULT_DIRECTORY),
        auto_cleanup=parse_bool(backup_cfg.get("auto_cleanup", True),
                                "auto_cleanup"),
        storage_path=backup_cfg.get("storage_path", DEFAULT_STORAGE_PATH),
        app_root=backup_cfg.get("app_root") or str(PROJECT_ROOT),
        cleanup_interval_minutes=parse_int(
            backup_cfg.get("cleanup_interval_minutes",
                           DEFAULT_CLEANUP_INTERVAL_MINUTES),
            "cleanup_interval_minutes",
        ),
        event_db_path=config.get("database", {}).get(
            "path", DEFAULT_EVENT_DB_PATH
        ),
        log_level=config.get("logging", {}).get("level", "INFO"),
    )
    if "restore_rules" in backup_cfg:
        settings.restore_rules = list(backup_cfg["restore_rules"])

    if "BACKUP_RETENTION_DAYS" in env:
        settings.retention_days = parse_int(env["BACKUP_RETENTION_DAYS"],
                                            "BACKUP_RETENTION_DAYS")
    if "BACKUP_DIRECTORY" in env:
        settings.directory = env["BACKUP_DIRECTORY"]
    if "BACKUP_AUTO_CLEANUP" in env:
        settings.auto_cleanup = parse_bool(env["BACKUP_AUTO_CLEANUP"],
                                           "BACKUP_AUTO_CLEANUP")
    if "BACKUP_STORAGE_PATH" in env:
        settings.storage_path = env["BACKUP_STORAGE_PATH"]

    settings.validate()
    return settings
