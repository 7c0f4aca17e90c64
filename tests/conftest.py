"""Shared fixtures: an isolated config, an execution context and an emulated device."""

import time
from pathlib import Path

import pytest

from fakes import SERIAL, Answers, FakeAdbClient, FakeFolder, FakeShell
from valley_sync.context import ExecutionContext
from valley_sync.core.config import Config, PathsConfig
from valley_sync.domain.transport import DeviceInfo, DirectTransport, MediaCopyTransport, ShellSession


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep XDG lookups and the Nexus key away from the real home directory."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg-data"))
    monkeypatch.delenv("NEXUS_API_KEY", raising=False)


@pytest.fixture
def config(tmp_path) -> Config:
    base = tmp_path / "local"
    cfg = Config()
    cfg.paths = PathsConfig(
        saves_dir=str(base / "saves"),
        mods_dir=str(base / "mods"),
        configs_dir=str(base / "configs"),
        backups_dir=str(base / "backups"),
        downloads_dir=str(base / "downloads"),
        apk_dir=str(base / "apks"),
        logs_dir=str(base / "logs"),
        profiles_file=str(base / "devices.json"),
        sync_log_file=str(base / "last_sync.log"),
    )
    cfg.device.poll_interval_seconds = 0.01
    cfg.device.copy_timeout_seconds = 5
    for directory in ("saves", "mods", "configs", "backups", "downloads", "apks", "logs"):
        (base / directory).mkdir(parents=True)
    return cfg


@pytest.fixture
def answers():
    return Answers()


@pytest.fixture
def ctx(config, answers) -> ExecutionContext:
    return ExecutionContext(config=config, confirm=answers)


@pytest.fixture
def device_root(tmp_path) -> Path:
    return tmp_path / "device"


@pytest.fixture
def app_root(device_root, config) -> Path:
    root = device_root / config.device.app_data_root.lstrip("/")
    (root / "Saves").mkdir(parents=True)
    (root / "Mods").mkdir()
    return root


@pytest.fixture
def storage(device_root) -> Path:
    return device_root / "storage" / "emulated" / "0"


@pytest.fixture
def fake_adb(device_root) -> FakeAdbClient:
    return FakeAdbClient(device_root)


@pytest.fixture
def device_info() -> DeviceInfo:
    return DeviceInfo(identity=SERIAL, display_name="Pixel 7", model="Pixel 7")


@pytest.fixture
def direct(ctx, device_info, fake_adb, app_root) -> DirectTransport:
    fake_adb.with_serial(SERIAL)
    return DirectTransport(ctx, device_info, fake_adb)


@pytest.fixture
def media(ctx, device_info, storage, app_root) -> MediaCopyTransport:
    session = ShellSession(factory=lambda: FakeShell(storage))
    return MediaCopyTransport(ctx, device_info, session, FakeFolder(app_root), sleep=lambda s: None)


@pytest.fixture(params=["direct", "media"])
def transport(request):
    """Each file-contract test runs against both transport kinds."""
    return request.getfixturevalue(request.param)


@pytest.fixture
def now() -> float:
    return time.time()
