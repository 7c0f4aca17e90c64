"""Tests for mod config sync."""

from pathlib import Path

import pytest

from fakes import set_mtime
from valley_sync.domain.sync import ConfigSync


@pytest.fixture
def device_mod(app_root):
    mod = app_root / "Mods" / "ExampleMod"
    mod.mkdir()
    return mod


@pytest.fixture
def local_configs(config):
    return Path(config.paths.configs_dir)


def write_config(folder: Path, content: str, stamp: float) -> Path:
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / "config.json"
    path.write_text(content)
    set_mtime(path, stamp)
    return path


class TestConfigSync:
    """Tests for ConfigSync."""

    def test_newer_device_config_wins_without_prompt(
        self, ctx, transport, device_mod, local_configs, answers, now
    ):
        write_config(local_configs / "ExampleMod", "local", now - 3600)
        write_config(device_mod, "device", now - 3300)

        summary = ConfigSync(ctx, transport).sync()

        assert "ExampleMod" in summary.pulled
        assert (local_configs / "ExampleMod" / "config.json").read_text() == "device"
        assert answers.prompts == []

    def test_newer_local_config_is_pushed(self, ctx, transport, device_mod, local_configs, now):
        write_config(local_configs / "ExampleMod", "local", now - 3300)
        write_config(device_mod, "device", now - 3600)

        summary = ConfigSync(ctx, transport).sync()

        assert "ExampleMod" in summary.pushed
        assert (device_mod / "config.json").read_text() == "local"

    def test_never_backs_up(self, ctx, transport, device_mod, local_configs, config, now):
        write_config(local_configs / "ExampleMod", "local", now - 3600)
        write_config(device_mod, "device", now - 3300)
        ConfigSync(ctx, transport).sync()
        assert list(Path(config.paths.backups_dir).iterdir()) == []

    def test_device_only_config_is_pulled(self, ctx, transport, device_mod, local_configs, now):
        write_config(device_mod, "device", now)
        ConfigSync(ctx, transport).sync()
        assert (local_configs / "ExampleMod" / "config.json").read_text() == "device"

    def test_config_for_missing_mod_stays_local(self, ctx, transport, app_root, local_configs, now):
        write_config(local_configs / "Uninstalled", "local", now)

        summary = ConfigSync(ctx, transport).sync()

        assert "Uninstalled" in summary.skipped
        assert not (app_root / "Mods" / "Uninstalled").exists()

    def test_internal_config_is_synced(self, ctx, transport, app_root, local_configs, now):
        internal = app_root / "Mods" / "smapi-internal"
        internal.mkdir()
        (internal / "config.user.json").write_text('{"DeveloperMode": true}')

        summary = ConfigSync(ctx, transport).sync()

        assert "_internal" in summary.pulled
        assert (local_configs / "_internal" / "config.user.json").exists()

    def test_push_all_and_pull_all(self, ctx, transport, device_mod, local_configs, now):
        write_config(local_configs / "ExampleMod", "local", now)
        assert ConfigSync(ctx, transport).push_all().pushed == ["ExampleMod"]
        assert (device_mod / "config.json").read_text() == "local"

        (device_mod / "config.json").write_text("device")
        assert "ExampleMod" in ConfigSync(ctx, transport).pull_all().pulled
        assert (local_configs / "ExampleMod" / "config.json").read_text() == "device"
