"""
Update installation.

An update replaces the installed mod folder wholesale with the archive's
contents, except for the mod's own config file, whose bytes survive the
replacement. When a device is connected the fresh folder is pushed too.
"""

import os
import shutil
import tempfile
import webbrowser
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, List, Optional

import requests
from loguru import logger

from valley_sync.context import ExecutionContext
from valley_sync.core.output import log
from valley_sync.domain.transport.models import Transport
from valley_sync.domain.transport.paths import mods_root

from .archives import extract_archive, find_mod_root
from .catalog import UpdateCandidate
from .exceptions import InstallError
from .manifest import ModManifest
from .sources import download_update, prompt_operator


@dataclass
class InstallResult:
    name: str
    installed: bool = False
    pushed: bool = False
    error: Optional[str] = None


def swap_in(staged: Path, target: Path, retired: Path) -> None:
    """Rename staged into target's place, restoring the old folder if that fails."""
    shutil.rmtree(retired, ignore_errors=True)
    had_target = target.exists()
    if had_target:
        os.replace(target, retired)
    try:
        os.replace(staged, target)
    except OSError:
        if had_target:
            os.replace(retired, target)
        raise
    shutil.rmtree(retired, ignore_errors=True)


class ModInstaller:
    """Downloads and installs mod updates, optionally pushing them to the device."""

    def __init__(
        self,
        ctx: ExecutionContext,
        transport: Optional[Transport] = None,
        session: Any = requests,
        open_browser: Callable[[str], Any] = webbrowser.open,
        wait_for_operator: Callable[[str], None] = prompt_operator,
    ):
        self.ctx = ctx
        self.transport = transport
        self.session = session
        self.open_browser = open_browser
        self.wait_for_operator = wait_for_operator
        self.config_file_name = ctx.config.device.config_file_name

    def install_archive(self, manifest: ModManifest, archive: Path) -> bool:
        """Replace the mod folder with the archive's mod root, keeping config.json.

        The new folder is staged beside the old one and swapped in with
        renames, so a failed copy leaves the installed mod untouched.

        Returns:
            True when the folder was replaced (always False in dry-run)

        Raises:
            InstallError: Extraction, staging or the swap failed
        """
        target = manifest.local_path
        if self.ctx.dry_run:
            log(f"[dry-run] would replace {target} with {archive.name}")
            return False

        staged = target.with_name(f".{target.name}.updating")
        retired = target.with_name(f".{target.name}.old")
        downloads = Path(self.ctx.config.paths.downloads_dir)
        try:
            downloads.mkdir(parents=True, exist_ok=True)
            with tempfile.TemporaryDirectory(dir=downloads, prefix=".extract-") as tmp:
                root = find_mod_root(extract_archive(archive, Path(tmp)))

                config_file = target / self.config_file_name
                preserved = config_file.read_bytes() if config_file.is_file() else None

                shutil.rmtree(staged, ignore_errors=True)
                shutil.copytree(root, staged)
                if preserved is not None:
                    (staged / self.config_file_name).write_bytes(preserved)
            swap_in(staged, target, retired)
        except OSError as e:
            shutil.rmtree(staged, ignore_errors=True)
            raise InstallError(f"Could not replace {target}: {e}") from e

        logger.info(f"Installed {archive.name} into {target}")
        return True

    def push(self, manifest: ModManifest) -> bool:
        """Push the installed folder to the same relative place on the device."""
        if self.transport is None:
            return False
        parent = mods_root(self.ctx.config.device)
        for part in manifest.relative_path.parent.parts:
            parent = parent / part
        return self.transport.push_folder(parent, manifest.local_path)

    def install(self, candidate: UpdateCandidate) -> InstallResult:
        result = InstallResult(name=candidate.name)
        log(
            f"Updating {candidate.name} {candidate.manifest.version} -> {candidate.target_version}",
            level="info",
        )

        archive = download_update(
            self.ctx, candidate, self.session, self.open_browser, self.wait_for_operator
        )
        if archive is None:
            result.error = "no download tier succeeded"
            log(f"❌ Could not download {candidate.name}", level="error")
            return result

        try:
            result.installed = self.install_archive(candidate.manifest, archive)
        except InstallError as e:
            result.error = str(e)
            log(f"❌ {candidate.name}: {e}", level="error")
            return result

        if result.installed:
            log(f"✓ Installed {candidate.name} {candidate.target_version}", level="success")
            if self.transport is not None:
                result.pushed = self.push(candidate.manifest)
                if not result.pushed:
                    log(f"⚠ {candidate.name} installed locally but not pushed", level="warning")
        return result

    def install_all(self, candidates: List[UpdateCandidate]) -> List[InstallResult]:
        return [self.install(c) for c in candidates]
