"""Tests for update installation."""

import zipfile
from pathlib import Path
from unittest.mock import patch

import pytest

from fakes import FakeResponse, FakeSession
from valley_sync.context import ExecutionContext
from valley_sync.domain.mods import InstallError, ModInstaller, UpdateCandidate, scan_manifests


def make_zip(path, files):
    with zipfile.ZipFile(path, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return path


@pytest.fixture
def installed_foo(config):
    mod = Path(config.paths.mods_dir) / "Foo"
    mod.mkdir()
    (mod / "manifest.json").write_text(
        '{"Name": "Foo", "UniqueID": "someone.Foo", "Version": "1.0", "UpdateKeys": ["Nexus:1234"]}'
    )
    (mod / "Foo.dll").write_text("old")
    (mod / "obsolete.txt").write_text("old")
    (mod / "config.json").write_bytes(b'{"Hotkey": "F5"}\r\n')
    [manifest] = scan_manifests(Path(config.paths.mods_dir))
    return manifest


@pytest.fixture
def update_zip(tmp_path):
    return make_zip(
        tmp_path / "Foo 2.0.zip",
        {
            "Foo/manifest.json": '{"Name": "Foo", "UniqueID": "someone.Foo", "Version": "2.0"}',
            "Foo/Foo.dll": "new",
            "Foo/config.json": '{"Hotkey": "F1"}',
        },
    )


class DropArchive:
    """Manual-tier operator that places a prepared archive in the holding folder."""

    def __init__(self, holding: Path, archive: Path):
        self.holding = holding
        self.archive = archive
        self.opened = []

    def open_browser(self, url):
        self.opened.append(url)

    def wait(self, message):
        self.holding.mkdir(parents=True, exist_ok=True)
        (self.holding / self.archive.name).write_bytes(self.archive.read_bytes())


class TestInstallArchive:
    """Tests for replacing a mod folder from an archive."""

    def test_replaces_folder_and_keeps_config(self, ctx, installed_foo, update_zip):
        assert ModInstaller(ctx).install_archive(installed_foo, update_zip)

        folder = installed_foo.local_path
        assert (folder / "Foo.dll").read_text() == "new"
        assert not (folder / "obsolete.txt").exists()
        assert (folder / "config.json").read_bytes() == b'{"Hotkey": "F5"}\r\n'

    def test_archive_without_manifest(self, ctx, installed_foo, tmp_path):
        archive = make_zip(tmp_path / "bad.zip", {"readme.txt": "x"})
        with pytest.raises(InstallError):
            ModInstaller(ctx).install_archive(installed_foo, archive)
        assert (installed_foo.local_path / "Foo.dll").read_text() == "old"

    def test_failed_copy_leaves_installed_mod(self, ctx, installed_foo, update_zip):
        """A copy that dies partway never touches the installed folder."""
        folder = installed_foo.local_path
        with patch("valley_sync.domain.mods.installer.shutil.copytree", side_effect=OSError("disk full")):
            with pytest.raises(InstallError):
                ModInstaller(ctx).install_archive(installed_foo, update_zip)

        assert (folder / "Foo.dll").read_text() == "old"
        assert (folder / "obsolete.txt").exists()
        assert sorted(p.name for p in folder.parent.iterdir()) == ["Foo"]

    def test_unreadable_config_is_install_error(self, ctx, installed_foo, update_zip):
        with patch.object(Path, "read_bytes", side_effect=PermissionError("locked")):
            with pytest.raises(InstallError):
                ModInstaller(ctx).install_archive(installed_foo, update_zip)

        assert (installed_foo.local_path / "Foo.dll").read_text() == "old"

    def test_dry_run(self, config, installed_foo, update_zip):
        installer = ModInstaller(ExecutionContext(config=config, dry_run=True))
        assert not installer.install_archive(installed_foo, update_zip)
        assert (installed_foo.local_path / "Foo.dll").read_text() == "old"


class TestInstall:
    """End-to-end install through the manual tier."""

    def test_manual_tier_install_and_push(self, ctx, config, transport, app_root, installed_foo, update_zip):
        """Foo 1.0 -> 2.0 with no hosted download installs from the manual archive and pushes it."""
        operator = DropArchive(Path(config.paths.manual_downloads_dir), update_zip)
        installer = ModInstaller(ctx, transport, FakeSession(), operator.open_browser, operator.wait)

        result = installer.install(UpdateCandidate(installed_foo, "2.0", nexus_id=1234))

        assert result.installed and result.pushed and result.error is None
        assert len(operator.opened) == 1
        assert (app_root / "Mods" / "Foo" / "Foo.dll").read_text() == "new"
        assert (app_root / "Mods" / "Foo" / "config.json").read_bytes() == b'{"Hotkey": "F5"}\r\n'

    def test_bad_archive_is_reported(self, ctx, config, installed_foo, tmp_path):
        bad = make_zip(tmp_path / "bad.zip", {"readme.txt": "x"})
        operator = DropArchive(Path(config.paths.manual_downloads_dir), bad)
        installer = ModInstaller(ctx, None, FakeSession(), operator.open_browser, operator.wait)

        result = installer.install(UpdateCandidate(installed_foo, "2.0"))

        assert not result.installed
        assert "manifest" in result.error

    def test_nested_mod_is_pushed_to_same_place(self, ctx, config, transport, app_root, tmp_path):
        pack = Path(config.paths.mods_dir) / "Pack" / "A"
        pack.mkdir(parents=True)
        (pack / "manifest.json").write_text('{"Name": "A", "UniqueID": "p.A", "Version": "1"}')
        [manifest] = scan_manifests(Path(config.paths.mods_dir))

        assert ModInstaller(ctx, transport).push(manifest)
        assert (app_root / "Mods" / "Pack" / "A" / "manifest.json").exists()


class TestInstallAll:
    """A failing update is reported and the batch moves on."""

    def test_malformed_nexus_payload_does_not_stop_batch(self, config, installed_foo, tmp_path):
        config.nexus_api_key = "secret"
        ctx = ExecutionContext(config=config)
        bar = Path(config.paths.mods_dir) / "Bar"
        bar.mkdir()
        (bar / "manifest.json").write_text('{"Name": "Bar", "UniqueID": "someone.Bar", "Version": "1.0"}')
        bar_manifest = next(m for m in scan_manifests(Path(config.paths.mods_dir)) if m.display_name == "Bar")
        bar_zip = make_zip(
            tmp_path / "Bar 2.0.zip",
            {"Bar/manifest.json": '{"Name": "Bar", "UniqueID": "someone.Bar", "Version": "2.0"}'},
        )
        nexus = "https://api.nexusmods.com/v1/games/stardewvalley/mods/1234"
        session = FakeSession(
            {
                f"{nexus}/files.json": FakeResponse(payload={"files": [{"file_id": 9, "uploaded_timestamp": 1}]}),
                f"{nexus}/files/9/download_link.json": FakeResponse(payload=[{}]),
            }
        )
        holding = Path(config.paths.manual_downloads_dir)
        waits = []

        def wait(message):
            # Nothing for Foo; the Bar archive arrives on the second prompt
            waits.append(message)
            if len(waits) == 2:
                holding.mkdir(parents=True, exist_ok=True)
                (holding / bar_zip.name).write_bytes(bar_zip.read_bytes())

        installer = ModInstaller(ctx, None, session, lambda url: True, wait)
        results = installer.install_all(
            [UpdateCandidate(installed_foo, "2.0", nexus_id=1234), UpdateCandidate(bar_manifest, "2.0")]
        )

        assert [r.installed for r in results] == [False, True]
        assert results[0].error == "no download tier succeeded"
        assert (installed_foo.local_path / "Foo.dll").read_text() == "old"
