"""
Per-mod configuration sync.

The local configs folder mirrors mod names: configs/<mod>/config.json pairs
with Mods/<mod>/config.json on the device. The loader's own internal config
file is synced alongside as configs/_internal/<file name>. Newer always wins;
this flow never prompts and never backs up.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List

from loguru import logger

from valley_sync.context import ExecutionContext
from valley_sync.core.output import log
from valley_sync.domain.transport.models import LogicalPath, Transport
from valley_sync.domain.transport.paths import internal_config_path, mods_root

from .engine import SyncAction, SyncCandidate, SyncSummary, decide, local_modified_at

INTERNAL_CONFIG_DIR = "_internal"


@dataclass(frozen=True)
class ConfigTarget:
    """One config file as seen from both sides."""

    name: str  # Mod name, or INTERNAL_CONFIG_DIR
    device_dir: LogicalPath
    file_name: str
    local_file: Path


class ConfigSync:
    """Reconciles mod configuration files, newest side wins."""

    def __init__(self, ctx: ExecutionContext, transport: Transport):
        self.ctx = ctx
        self.transport = transport
        self.configs_dir = Path(ctx.config.paths.configs_dir)
        self.mods_root = mods_root(ctx.config.device)
        self.file_name = ctx.config.device.config_file_name

    def _mod_target(self, mod: str) -> ConfigTarget:
        return ConfigTarget(
            name=mod,
            device_dir=self.mods_root / mod,
            file_name=self.file_name,
            local_file=self.configs_dir / mod / self.file_name,
        )

    def internal_target(self) -> ConfigTarget:
        path = internal_config_path(self.ctx.config.device)
        return ConfigTarget(
            name=INTERNAL_CONFIG_DIR,
            device_dir=path.parent,
            file_name=path.name,
            local_file=self.configs_dir / INTERNAL_CONFIG_DIR / path.name,
        )

    def _device_has_file(self, target: ConfigTarget) -> bool:
        return any(
            e.name == target.file_name and not e.is_folder
            for e in self.transport.list_directory(target.device_dir)
        )

    def local_mods_with_config(self) -> List[str]:
        if not self.configs_dir.is_dir():
            return []
        return sorted(
            p.name
            for p in self.configs_dir.iterdir()
            if p.is_dir() and p.name != INTERNAL_CONFIG_DIR and (p / self.file_name).is_file()
        )

    def device_mods(self) -> List[str]:
        return sorted(e.name for e in self.transport.list_directory(self.mods_root) if e.is_folder)

    def targets(self) -> List[tuple[ConfigTarget, bool]]:
        """Every config target with whether its mod folder exists on the device."""
        device_mods = set(self.device_mods())
        names = sorted(set(self.local_mods_with_config()) | device_mods)
        result = [(self._mod_target(name), name in device_mods) for name in names]
        result.append((self.internal_target(), True))
        return result

    def candidate(self, target: ConfigTarget) -> SyncCandidate:
        local_exists = target.local_file.is_file()
        device_exists = self._device_has_file(target)
        local_time = device_time = None
        if local_exists and device_exists:
            local_time = local_modified_at(target.local_file)
            device_time = self.transport.get_modification_time(target.device_dir, target.file_name)
        return SyncCandidate(
            name=target.name,
            local_exists=local_exists,
            device_exists=device_exists,
            local_modified_at=local_time,
            device_modified_at=device_time,
        )

    def _pull(self, target: ConfigTarget) -> bool:
        return self.transport.pull_file(target.device_dir, target.file_name, target.local_file)

    def _push(self, target: ConfigTarget) -> bool:
        return self.transport.push_file(target.device_dir, target.local_file)

    def _apply(self, target: ConfigTarget, action: SyncAction, summary: SyncSummary) -> None:
        if action is SyncAction.PULL:
            ok, bucket, verb = self._pull(target), summary.pulled, "Pulled"
        else:
            ok, bucket, verb = self._push(target), summary.pushed, "Pushed"

        if ok:
            bucket.append(target.name)
            log(f"✓ {verb} config for {target.name}", level="success")
        else:
            summary.failed.append(target.name)
            log(f"❌ Config transfer for {target.name} failed", level="error")

    def sync(self) -> SyncSummary:
        """Bidirectional config sync, newer side wins unconditionally."""
        summary = SyncSummary()
        tolerance = self.ctx.config.sync.tolerance_seconds

        for target, mod_on_device in self.targets():
            if not mod_on_device:
                logger.info(f"{target.name}: mod not on device, config left local")
                summary.skipped.append(target.name)
                continue

            candidate = self.candidate(target)
            decision = decide(candidate, tolerance)
            if decision.action is SyncAction.SKIP:
                logger.debug(f"{target.name}: {decision.reason}")
                summary.skipped.append(target.name)
                continue
            self._apply(target, decision.action, summary)

        return summary

    def pull_all(self) -> SyncSummary:
        """Copy every device config file into the local configs folder."""
        summary = SyncSummary()
        for target, mod_on_device in self.targets():
            if mod_on_device and self._device_has_file(target):
                self._apply(target, SyncAction.PULL, summary)
        return summary

    def push_all(self) -> SyncSummary:
        """Copy every local config file onto the device."""
        summary = SyncSummary()
        for target, mod_on_device in self.targets():
            if not target.local_file.is_file():
                continue
            if not mod_on_device:
                summary.skipped.append(target.name)
                continue
            self._apply(target, SyncAction.PUSH, summary)
        return summary
