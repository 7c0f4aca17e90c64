"""Tests for the reconciliation engine."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from fakes import Answers, set_mtime
from valley_sync.context import ExecutionContext
from valley_sync.domain.sync import ReconciliationEngine, SyncAction, SyncCandidate, decide

BASE = datetime(2024, 3, 14, 21, 0, tzinfo=timezone.utc)


def both(delta_seconds: float) -> SyncCandidate:
    """Candidate present on both sides, device newer by delta_seconds."""
    return SyncCandidate(
        name="Farm_1",
        local_exists=True,
        device_exists=True,
        local_modified_at=BASE,
        device_modified_at=BASE + timedelta(seconds=delta_seconds),
    )


class TestDecide:
    """Tests for the per-candidate decision."""

    @pytest.mark.parametrize("delta", [0, 30, -30, 59, -59])
    def test_within_tolerance_is_skip(self, delta):
        assert decide(both(delta), 60).action is SyncAction.SKIP

    def test_device_newer_pulls_with_backup(self):
        decision = decide(both(300), 60)
        assert decision.action is SyncAction.PULL
        assert decision.backup
        assert decision.default_answer is True
        assert "device is newer by 5m 0s" == decision.reason

    def test_local_newer_pushes_without_backup(self):
        decision = decide(both(-300), 60)
        assert decision.action is SyncAction.PUSH
        assert not decision.backup
        assert decision.default_answer is True

    def test_tolerance_is_symmetric(self):
        """The same gap in either direction gives a mirrored decision."""
        assert decide(both(61), 60).action is SyncAction.PULL
        assert decide(both(-61), 60).action is SyncAction.PUSH

    def test_gap_equal_to_tolerance_is_not_skipped(self):
        assert decide(both(60), 60).action is SyncAction.PULL
        assert decide(both(-60), 60).action is SyncAction.PUSH

    def test_only_local_defaults_to_no(self):
        candidate = SyncCandidate("Farm_2", local_exists=True, device_exists=False)
        decision = decide(candidate, 60)
        assert decision.action is SyncAction.PUSH
        assert decision.default_answer is False

    def test_only_device_defaults_to_no(self):
        candidate = SyncCandidate("Farm_2", local_exists=False, device_exists=True)
        decision = decide(candidate, 60)
        assert decision.action is SyncAction.PULL
        assert decision.default_answer is False
        assert not decision.backup

    def test_missing_timestamp_is_skip(self):
        candidate = SyncCandidate("Farm_1", True, True, BASE, None)
        assert decide(candidate, 60).action is SyncAction.SKIP


def make_save(folder: Path, content: str, stamp: float) -> None:
    folder.mkdir(parents=True, exist_ok=True)
    (folder / folder.name).write_text(content)
    (folder / "SaveGameInfo").write_text("<Farmer/>")
    set_mtime(folder, stamp)


class TestSyncSaves:
    """End-to-end save sync over both transports."""

    def test_device_newer_is_backed_up_then_pulled(self, ctx, transport, app_root, config, answers, now):
        """Farm_1 local at T and device at T+300: confirm, back up, pull."""
        local = Path(config.paths.saves_dir) / "Farm_1"
        make_save(local, "local", now - 3600)
        make_save(app_root / "Saves" / "Farm_1", "device", now - 3300)

        summary = ReconciliationEngine(ctx, transport).sync_saves()

        assert summary.pulled == ["Farm_1"]
        assert (local / "Farm_1").read_text() == "device"
        backups = list((Path(config.paths.backups_dir) / "Farm_1").iterdir())
        assert len(backups) == 1
        assert (backups[0] / "Farm_1").read_text() == "local"
        assert answers.prompts[0][1] is True

    def test_local_newer_is_pushed_without_backup(self, ctx, transport, app_root, config, now):
        local = Path(config.paths.saves_dir) / "Farm_1"
        make_save(local, "local", now - 3300)
        make_save(app_root / "Saves" / "Farm_1", "device", now - 3600)

        summary = ReconciliationEngine(ctx, transport).sync_saves()

        assert summary.pushed == ["Farm_1"]
        assert (app_root / "Saves" / "Farm_1" / "Farm_1").read_text() == "local"
        assert not (Path(config.paths.backups_dir) / "Farm_1").exists()

    def test_in_sync_is_skipped_without_prompt(self, ctx, transport, app_root, config, answers, now):
        make_save(Path(config.paths.saves_dir) / "Farm_1", "same", now - 3600)
        make_save(app_root / "Saves" / "Farm_1", "same", now - 3600)

        summary = ReconciliationEngine(ctx, transport).sync_saves()

        assert summary.skipped == ["Farm_1"]
        assert answers.prompts == []

    def test_declined_prompt_changes_nothing(self, config, transport, app_root, now):
        answers = Answers(False)
        ctx = ExecutionContext(config=config, confirm=answers)
        transport.ctx = ctx
        local = Path(config.paths.saves_dir) / "Farm_1"
        make_save(local, "local", now - 3600)
        make_save(app_root / "Saves" / "Farm_1", "device", now - 3300)

        summary = ReconciliationEngine(ctx, transport).sync_saves()

        assert summary.declined == ["Farm_1"]
        assert (local / "Farm_1").read_text() == "local"

    def test_one_sided_saves_default_to_no(self, ctx, transport, app_root, config, answers, now):
        """New saves on one side are offered but not copied unless confirmed."""
        make_save(Path(config.paths.saves_dir) / "Farm_2", "local only", now)
        make_save(app_root / "Saves" / "Farm_3", "device only", now)

        summary = ReconciliationEngine(ctx, transport).sync_saves()

        assert sorted(summary.declined) == ["Farm_2", "Farm_3"]
        assert [default for _, default in answers.prompts] == [False, False]

    def test_force_skips_prompts(self, config, transport, app_root, now):
        answers = Answers()
        ctx = ExecutionContext(config=config, force=True, confirm=answers)
        transport.ctx = ctx
        make_save(Path(config.paths.saves_dir) / "Farm_2", "local only", now)

        summary = ReconciliationEngine(ctx, transport).sync_saves()

        assert summary.pushed == ["Farm_2"]
        assert answers.prompts == []

    def test_dry_run_touches_nothing(self, config, transport, app_root, now):
        ctx = ExecutionContext(config=config, dry_run=True, force=True)
        transport.ctx = ctx
        local = Path(config.paths.saves_dir) / "Farm_1"
        make_save(local, "local", now - 3600)
        make_save(app_root / "Saves" / "Farm_1", "device", now - 3300)

        ReconciliationEngine(ctx, transport).sync_saves()

        assert (local / "Farm_1").read_text() == "local"
        assert not Path(config.paths.backups_dir, "Farm_1").exists()


class TestSyncMods:
    """Tests for push-missing mod sync."""

    @pytest.fixture
    def example_mod(self, config):
        mod = Path(config.paths.mods_dir) / "ExampleMod"
        mod.mkdir()
        (mod / "manifest.json").write_text('{"Name": "ExampleMod", "UniqueID": "a.b"}')
        return mod

    def test_pushes_missing_then_is_idempotent(self, ctx, transport, app_root, example_mod):
        """A second run finds nothing to push."""
        engine = ReconciliationEngine(ctx, transport)

        first = engine.sync_mods()
        assert first.pushed == ["ExampleMod"]
        assert (app_root / "Mods" / "ExampleMod" / "manifest.json").exists()

        second = engine.sync_mods()
        assert second.pushed == []
        assert second.skipped == ["ExampleMod"]

    def test_device_only_mods_are_reported_not_pulled(self, ctx, transport, app_root, config):
        (app_root / "Mods" / "DeviceOnly").mkdir()
        (app_root / "Mods" / "DeviceOnly" / "manifest.json").write_text("{}")

        summary = ReconciliationEngine(ctx, transport).sync_mods()

        assert summary.device_only == ["DeviceOnly"]
        assert not (Path(config.paths.mods_dir) / "DeviceOnly").exists()

    def test_pull_mods_copies_device_only(self, ctx, transport, app_root, config):
        (app_root / "Mods" / "DeviceOnly").mkdir()
        (app_root / "Mods" / "DeviceOnly" / "manifest.json").write_text("{}")

        summary = ReconciliationEngine(ctx, transport).pull_mods()

        assert summary.pulled == ["DeviceOnly"]
        assert (Path(config.paths.mods_dir) / "DeviceOnly" / "manifest.json").exists()

    def test_push_mods_replaces_device_copy(self, ctx, transport, app_root, example_mod):
        stale = app_root / "Mods" / "ExampleMod"
        stale.mkdir()
        (stale / "old.dll").write_text("old")

        summary = ReconciliationEngine(ctx, transport).push_mods()

        assert summary.pushed == ["ExampleMod"]
        assert not (stale / "old.dll").exists()
        assert (stale / "manifest.json").exists()


class TestOneDirectionSaves:
    """Tests for pull_saves and push_saves."""

    def test_pull_saves_backs_up_first(self, ctx, transport, app_root, config, now):
        local = Path(config.paths.saves_dir) / "Farm_1"
        make_save(local, "local", now)
        make_save(app_root / "Saves" / "Farm_1", "device", now)

        summary = ReconciliationEngine(ctx, transport).pull_saves()

        assert summary.pulled == ["Farm_1"]
        assert (local / "Farm_1").read_text() == "device"
        assert len(list((Path(config.paths.backups_dir) / "Farm_1").iterdir())) == 1

    def test_push_saves(self, ctx, transport, app_root, config, now):
        make_save(Path(config.paths.saves_dir) / "Farm_1", "local", now)
        summary = ReconciliationEngine(ctx, transport).push_saves()
        assert summary.pushed == ["Farm_1"]
        assert (app_root / "Saves" / "Farm_1" / "Farm_1").read_text() == "local"


class TestBackupFailure:
    """A save that cannot be backed up is never overwritten."""

    def test_failed_backup_skips_pull_and_continues(self, config, transport, app_root, now):
        ctx = ExecutionContext(config=config, force=True)
        transport.ctx = ctx
        Path(config.paths.backups_dir).rmdir()
        Path(config.paths.backups_dir).write_text("not a folder")
        for name in ("Farm_1", "Farm_2"):
            make_save(Path(config.paths.saves_dir) / name, "local", now - 3600)
            make_save(app_root / "Saves" / name, "device", now - 3300)

        summary = ReconciliationEngine(ctx, transport).sync_saves()

        assert summary.failed == ["Farm_1", "Farm_2"]
        assert summary.pulled == []
        for name in ("Farm_1", "Farm_2"):
            assert (Path(config.paths.saves_dir) / name / name).read_text() == "local"


class TestRepeatedSync:
    """A completed copy leaves both sides comparing equal on the next run."""

    def test_push_then_rerun_is_skipped(self, ctx, transport, app_root, config, answers, now):
        make_save(Path(config.paths.saves_dir) / "Farm_1", "local", now - 3300)
        make_save(app_root / "Saves" / "Farm_1", "device", now - 3600)
        engine = ReconciliationEngine(ctx, transport)

        assert engine.sync_saves().pushed == ["Farm_1"]
        prompts = len(answers.prompts)

        second = engine.sync_saves()
        assert second.skipped == ["Farm_1"]
        assert len(answers.prompts) == prompts

    def test_pull_then_rerun_is_skipped(self, ctx, transport, app_root, config, answers, now):
        local = Path(config.paths.saves_dir) / "Farm_1"
        make_save(local, "local", now - 3600)
        make_save(app_root / "Saves" / "Farm_1", "device", now - 3300)
        engine = ReconciliationEngine(ctx, transport)

        assert engine.sync_saves().pulled == ["Farm_1"]
        prompts = len(answers.prompts)

        second = engine.sync_saves()
        assert second.skipped == ["Farm_1"]
        assert len(answers.prompts) == prompts
        assert (local / "Farm_1").read_text() == "device"
