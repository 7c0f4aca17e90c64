"""Tests for save backups and retention."""

from datetime import datetime, timedelta

import pytest

from valley_sync.context import ExecutionContext
from valley_sync.domain.sync import BackupError, BackupManager


class Ticker:
    """Clock that advances one second per call."""

    def __init__(self):
        self.now = datetime(2024, 3, 14, 21, 0, 0)

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def saves(tmp_path):
    folder = tmp_path / "saves" / "Farm_1"
    folder.mkdir(parents=True)
    (folder / "Farm_1").write_text("v1")
    return folder.parent


@pytest.fixture
def manager(ctx, saves, tmp_path):
    return BackupManager(ctx, saves, tmp_path / "backups", clock=Ticker())


class TestBackupManager:
    """Tests for BackupManager."""

    def test_backup_copies_folder(self, manager):
        target = manager.backup("Farm_1")
        assert (target / "Farm_1").read_text() == "v1"
        assert target.name == "20240314-210001-000000"

    def test_missing_source(self, manager):
        assert manager.backup("Nope") is None

    def test_keeps_only_newest_five(self, manager, saves):
        """After seven backups only the five newest remain, newest first."""
        created = []
        for version in range(7):
            (saves / "Farm_1" / "Farm_1").write_text(f"v{version}")
            created.append(manager.backup("Farm_1"))

        kept = manager.generations("Farm_1")
        assert kept == list(reversed(created[2:]))
        assert (kept[0] / "Farm_1").read_text() == "v6"

    def test_same_stamp_gets_suffix(self, ctx, saves, tmp_path):
        frozen = datetime(2024, 3, 14, 21, 0, 0)
        manager = BackupManager(ctx, saves, tmp_path / "backups", clock=lambda: frozen)
        first = manager.backup("Farm_1")
        second = manager.backup("Farm_1")
        assert second.name == first.name + "-1"
        assert manager.generations("Farm_1")[0] == second

    def test_retention_from_config(self, ctx, saves, tmp_path):
        ctx.config.sync.backup_retention = 2
        manager = BackupManager(ctx, saves, tmp_path / "backups", clock=Ticker())
        for _ in range(4):
            manager.backup("Farm_1")
        assert len(manager.generations("Farm_1")) == 2

    def test_dry_run_writes_nothing(self, config, saves, tmp_path):
        manager = BackupManager(ExecutionContext(config=config, dry_run=True), saves, tmp_path / "backups")
        assert manager.backup("Farm_1") is None
        assert not (tmp_path / "backups").exists()

    def test_unwritable_backups_dir_raises_backup_error(self, ctx, saves, tmp_path):
        """A copy that cannot be written surfaces as BackupError, not a raw OSError."""
        blocked = tmp_path / "backups"
        blocked.write_text("not a folder")
        manager = BackupManager(ctx, saves, blocked, clock=Ticker())

        with pytest.raises(BackupError):
            manager.backup("Farm_1")
        assert blocked.is_file()
