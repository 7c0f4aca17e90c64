"""
Reconciliation between the local mirror and the device.

Saves use the full bidirectional flow: every name present on either side is
classified, compared by modification time and turned into a pull, a push or
nothing. Mods use the push-missing flow, which never adopts device-only
content automatically.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional

from loguru import logger

from valley_sync.context import ExecutionContext
from valley_sync.core.output import log
from valley_sync.domain.transport.models import LogicalPath, Transport
from valley_sync.domain.transport.paths import mods_root, saves_root

from .backup import BackupManager
from .exceptions import BackupError


class SyncAction(str, Enum):
    PULL = "pull"
    PUSH = "push"
    SKIP = "skip"


@dataclass(frozen=True)
class SyncCandidate:
    """One named item under reconciliation."""

    name: str
    local_exists: bool
    device_exists: bool
    local_modified_at: Optional[datetime] = None
    device_modified_at: Optional[datetime] = None


@dataclass(frozen=True)
class SyncDecision:
    action: SyncAction
    reason: str
    default_answer: bool = False  # Pre-selected answer when asking the operator
    backup: bool = False  # Snapshot the local copy before pulling


@dataclass
class SyncSummary:
    """Counts for the end-of-run report."""

    pulled: List[str] = field(default_factory=list)
    pushed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    declined: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    device_only: List[str] = field(default_factory=list)

    def merge(self, other: "SyncSummary") -> "SyncSummary":
        return SyncSummary(
            pulled=self.pulled + other.pulled,
            pushed=self.pushed + other.pushed,
            skipped=self.skipped + other.skipped,
            declined=self.declined + other.declined,
            failed=self.failed + other.failed,
            device_only=self.device_only + other.device_only,
        )

    @property
    def ok(self) -> bool:
        return not self.failed

    def __str__(self) -> str:
        return (
            f"pulled={len(self.pulled)} pushed={len(self.pushed)} "
            f"skipped={len(self.skipped)} declined={len(self.declined)} "
            f"failed={len(self.failed)}"
        )


def decide(candidate: SyncCandidate, tolerance_seconds: float) -> SyncDecision:
    """Choose the action for one candidate.

    Args:
        candidate: Presence and timestamps on both sides
        tolerance_seconds: Deltas smaller than this count as in sync

    Returns:
        SyncDecision for the candidate
    """
    if candidate.local_exists and candidate.device_exists:
        local, device = candidate.local_modified_at, candidate.device_modified_at
        if local is None or device is None:
            return SyncDecision(SyncAction.SKIP, "modification time unavailable")

        delta = (device - local).total_seconds()
        if abs(delta) < tolerance_seconds:
            return SyncDecision(SyncAction.SKIP, "already in sync")
        if delta > 0:
            return SyncDecision(
                SyncAction.PULL, f"device is newer by {_fmt_delta(delta)}", True, True
            )
        return SyncDecision(
            SyncAction.PUSH, f"local is newer by {_fmt_delta(-delta)}", True, False
        )

    if candidate.local_exists:
        return SyncDecision(SyncAction.PUSH, "only on this computer", False, False)
    if candidate.device_exists:
        return SyncDecision(SyncAction.PULL, "only on the device", False, False)
    return SyncDecision(SyncAction.SKIP, "missing on both sides")


def _fmt_delta(seconds: float) -> str:
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def local_modified_at(path: Path) -> Optional[datetime]:
    """Newest modification time of a file, or of a folder's direct children.

    An empty folder falls back to its own mtime. Measured the same way as the
    device side so copies in either direction compare equal.
    """
    try:
        stamps = [child.stat().st_mtime for child in path.iterdir()] if path.is_dir() else []
        if not stamps:
            stamps = [path.stat().st_mtime]
    except OSError:
        return None
    return datetime.fromtimestamp(max(stamps), tz=timezone.utc)


def local_folders(directory: Path) -> List[str]:
    if not directory.is_dir():
        return []
    return sorted(p.name for p in directory.iterdir() if p.is_dir() and not p.name.startswith("."))


class ReconciliationEngine:
    """Drives save and mod reconciliation over one transport."""

    def __init__(
        self,
        ctx: ExecutionContext,
        transport: Transport,
        backups: Optional[BackupManager] = None,
    ):
        self.ctx = ctx
        self.transport = transport
        paths = ctx.config.paths
        self.saves_dir = Path(paths.saves_dir)
        self.mods_dir = Path(paths.mods_dir)
        self.backups = backups or BackupManager(ctx, self.saves_dir, Path(paths.backups_dir))
        self.saves_root = saves_root(ctx.config.device)
        self.mods_root = mods_root(ctx.config.device)

    # -- shared ---------------------------------------------------------------

    def device_folders(self, path: LogicalPath) -> List[str]:
        return sorted(e.name for e in self.transport.list_directory(path) if e.is_folder)

    def build_candidates(self, local_dir: Path, device_path: LogicalPath) -> List[SyncCandidate]:
        """Classify the union of local and device folder names."""
        local = set(local_folders(local_dir))
        device = set(self.device_folders(device_path))

        candidates = []
        for name in sorted(local | device):
            local_time = device_time = None
            if name in local and name in device:
                local_time = local_modified_at(local_dir / name)
                device_time = self.transport.get_modification_time(device_path, name)
            candidates.append(
                SyncCandidate(
                    name=name,
                    local_exists=name in local,
                    device_exists=name in device,
                    local_modified_at=local_time,
                    device_modified_at=device_time,
                )
            )
        return candidates

    # -- saves ----------------------------------------------------------------

    def _pull_save(self, name: str, backup: bool) -> bool:
        if backup:
            try:
                self.backups.backup(name)
            except BackupError as e:
                # Never overwrite a save that could not be backed up
                log(f"❌ {e}", level="error")
                return False
        return self.transport.pull_folder(self.saves_root / name, self.saves_dir / name)

    def _push_save(self, name: str) -> bool:
        return self.transport.push_folder(self.saves_root, self.saves_dir / name)

    def sync_saves(self) -> SyncSummary:
        """Bidirectional save sync with confirmation unless forced."""
        summary = SyncSummary()
        tolerance = self.ctx.config.sync.tolerance_seconds

        for candidate in self.build_candidates(self.saves_dir, self.saves_root):
            decision = decide(candidate, tolerance)
            name = candidate.name

            if decision.action is SyncAction.SKIP:
                logger.info(f"{name}: {decision.reason}")
                summary.skipped.append(name)
                continue

            verb = "Pull" if decision.action is SyncAction.PULL else "Push"
            if not self.ctx.ask(f"{verb} save {name} ({decision.reason})?", decision.default_answer):
                log(f"  skipped {name}", level="info")
                summary.declined.append(name)
                continue

            if decision.action is SyncAction.PULL:
                ok = self._pull_save(name, decision.backup)
                target = summary.pulled
            else:
                ok = self._push_save(name)
                target = summary.pushed

            if ok:
                target.append(name)
                log(f"✓ {verb}ed {name}", level="success")
            else:
                summary.failed.append(name)
                log(f"❌ {verb} of {name} failed", level="error")

        return summary

    def pull_saves(self) -> SyncSummary:
        """Copy every device save over the local mirror, backing each up first."""
        summary = SyncSummary()
        for name in self.device_folders(self.saves_root):
            if self._pull_save(name, backup=True):
                summary.pulled.append(name)
                log(f"✓ Pulled {name}", level="success")
            else:
                summary.failed.append(name)
                log(f"❌ Pull of {name} failed", level="error")
        return summary

    def push_saves(self) -> SyncSummary:
        """Copy every local save onto the device."""
        summary = SyncSummary()
        for name in local_folders(self.saves_dir):
            if self._push_save(name):
                summary.pushed.append(name)
                log(f"✓ Pushed {name}", level="success")
            else:
                summary.failed.append(name)
                log(f"❌ Push of {name} failed", level="error")
        return summary

    # -- mods -----------------------------------------------------------------

    def sync_mods(self) -> SyncSummary:
        """Push local mods missing on the device; report device-only mods."""
        summary = SyncSummary()
        local = local_folders(self.mods_dir)
        device = set(self.device_folders(self.mods_root))

        for name in local:
            if name in device:
                summary.skipped.append(name)
                continue
            if self.transport.push_folder(self.mods_root, self.mods_dir / name):
                summary.pushed.append(name)
                log(f"✓ Pushed mod {name}", level="success")
            else:
                summary.failed.append(name)
                log(f"❌ Push of mod {name} failed", level="error")

        summary.device_only = sorted(device - set(local))
        for name in summary.device_only:
            log(f"  {name} is only on the device (use pull-mods to copy it here)", level="info")

        if not summary.pushed and not summary.failed:
            log("✓ All local mods are already on the device", level="success")
        return summary

    def pull_mods(self) -> SyncSummary:
        """Copy device-only mods into the local mods folder."""
        summary = SyncSummary()
        local = set(local_folders(self.mods_dir))
        for name in self.device_folders(self.mods_root):
            if name in local:
                summary.skipped.append(name)
                continue
            if self.transport.pull_folder(self.mods_root / name, self.mods_dir / name):
                summary.pulled.append(name)
                log(f"✓ Pulled mod {name}", level="success")
            else:
                summary.failed.append(name)
                log(f"❌ Pull of mod {name} failed", level="error")
        return summary

    def push_mods(self) -> SyncSummary:
        """Replace every device mod with its local copy."""
        summary = SyncSummary()
        for name in local_folders(self.mods_dir):
            if self.transport.push_folder(self.mods_root, self.mods_dir / name):
                summary.pushed.append(name)
                log(f"✓ Pushed mod {name}", level="success")
            else:
                summary.failed.append(name)
                log(f"❌ Push of mod {name} failed", level="error")
        return summary
