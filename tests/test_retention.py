"""Tests for the retention policy."""

import logging
from datetime import datetime
from pathlib import Path

import pytest

from src.backup.naming import NamingScheme
from src.backup.retention import RetentionPolicy

NOW = datetime(2025, 2, 1, 12, 0, 0)


@pytest.fixture
def policy():
    return RetentionPolicy(NamingScheme(clock=lambda: NOW), retention_days=10)


class TestCutoff:
    def test_default(self, policy):
        assert policy.cutoff() == datetime(2025, 1, 22, 12, 0, 0)

    def test_override(self, policy):
        assert policy.cutoff(1) == datetime(2025, 1, 31, 12, 0, 0)

    def test_zero_is_now(self, policy):
        assert policy.cutoff(0) == NOW

    def test_negative_rejected(self, policy):
        with pytest.raises(ValueError):
            policy.cutoff(-1)

    def test_negative_default_rejected(self):
        with pytest.raises(ValueError):
            RetentionPolicy(NamingScheme(), retention_days=-5)


class TestEvaluate:
    def test_partitions_entries(self, policy, caplog):
        paths = [
            Path("/b/a.backup.20250122-115959.txt"),   # expired
            Path("/b/a.backup.20250122-120000.txt"),   # exactly at cutoff
            Path("/b/a.backup.20250131-000000.txt"),   # recent
            Path("/b/weird.backup.notadate.txt"),      # unparsable
            Path("/b/README.md"),                      # not a backup
        ]
        with caplog.at_level(logging.WARNING, logger="src.backup.retention"):
            decision = policy.evaluate(paths)

        assert [r.backup_path for r in decision.expired] == ["/b/a.backup.20250122-115959.txt"]
        assert [r.backup_path for r in decision.kept] == [
            "/b/a.backup.20250122-120000.txt",
            "/b/a.backup.20250131-000000.txt",
        ]
        assert decision.unparsable == ["/b/weird.backup.notadate.txt"]
        assert decision.cutoff == datetime(2025, 1, 22, 12, 0, 0)
        assert any(getattr(r, "event", None) == "timestamp_unparsable"
                   for r in caplog.records)

    def test_empty(self, policy):
        decision = policy.evaluate([])
        assert decision.expired == [] and decision.kept == [] and decision.unparsable == []
