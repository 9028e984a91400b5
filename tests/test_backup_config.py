"""Tests for configuration loading and environment overrides."""

import json
import os

import pytest

from src.backup.backup_config import (
    DEFAULT_RESTORE_RULES,
    PROJECT_ROOT,
    BackupSettings,
    load_settings,
    parse_bool,
)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "backup": {
            "directory": "snapshots",
            "storage_path": str(tmp_path / "storage"),
            "retention_days": 14,
            "auto_cleanup": False,
            "cleanup_interval_minutes": 5,
            "restore_rules": [{"match": "app.ini", "target_dir": "etc"}],
        },
        "database": {"path": str(tmp_path / "events.db")},
        "logging": {"level": "DEBUG"},
    }))
    return str(path)


class TestLoadSettings:
    def test_defaults_when_file_missing(self, tmp_path):
        settings = load_settings(str(tmp_path / "missing.json"), environ={})
        assert settings.retention_days == 30
        assert settings.directory == "backups"
        assert settings.auto_cleanup is True
        assert settings.restore_rules == [dict(r) for r in DEFAULT_RESTORE_RULES]
        assert settings.backup_dir == str(PROJECT_ROOT / "storage" / "app" / "backups")

    def test_values_from_file(self, config_file, tmp_path):
        settings = load_settings(config_file, environ={})
        assert settings.retention_days == 14
        assert settings.auto_cleanup is False
        assert settings.cleanup_interval_minutes == 5
        assert settings.restore_rules == [{"match": "app.ini", "target_dir": "etc"}]
        assert settings.event_db_path == str(tmp_path / "events.db")
        assert settings.log_level == "DEBUG"
        assert settings.backup_dir == str((tmp_path / "storage" / "snapshots").resolve())

    def test_environment_overrides(self, config_file, tmp_path):
        env = {
            "BACKUP_RETENTION_DAYS": "0",
            "BACKUP_DIRECTORY": "other",
            "BACKUP_AUTO_CLEANUP": "true",
            "BACKUP_STORAGE_PATH": str(tmp_path / "alt"),
        }
        settings = load_settings(config_file, environ=env)
        assert settings.retention_days == 0
        assert settings.auto_cleanup is True
        assert settings.backup_dir == str((tmp_path / "alt" / "other").resolve())

    def test_absolute_directory_wins(self, tmp_path):
        target = tmp_path / "abs_backups"
        settings = load_settings(str(tmp_path / "missing.json"),
                                 environ={"BACKUP_DIRECTORY": str(target)})
        assert settings.backup_dir == str(target)

    def test_invalid_retention(self, tmp_path):
        with pytest.raises(ValueError):
            load_settings(str(tmp_path / "missing.json"),
                          environ={"BACKUP_RETENTION_DAYS": "thirty"})

    def test_negative_retention(self, tmp_path):
        with pytest.raises(ValueError):
            load_settings(str(tmp_path / "missing.json"),
                          environ={"BACKUP_RETENTION_DAYS": "-1"})

    def test_invalid_rule(self):
        settings = BackupSettings(restore_rules=[{"target_dir": "x"}])
        with pytest.raises(ValueError):
            settings.validate()

    def test_to_dict_includes_backup_dir(self):
        data = BackupSettings(directory=os.path.abspath("/srv/b")).to_dict()
        assert data["backup_dir"] == os.path.abspath("/srv/b")
        assert data["retention_days"] == 30


class TestParseBool:
    @pytest.mark.parametrize("value", ["1", "true", "TRUE", "yes", "on", True])
    def test_true(self, value):
        assert parse_bool(value) is True

    @pytest.mark.parametrize("value", ["0", "false", "no", "off", "", False])
    def test_false(self, value):
        assert parse_bool(value) is False

    def test_garbage(self):
        with pytest.raises(ValueError):
            parse_bool("maybe")
