"""
Local save backups with bounded retention.

Each backup is a full copy of one save folder stored as
<backups_dir>/<save name>/<capture stamp>. Stamps sort chronologically by
name, so rotation only needs a name sort.
"""

import shutil
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from loguru import logger

from valley_sync.context import ExecutionContext
from valley_sync.core.output import log

from .exceptions import BackupError

STAMP_FORMAT = "%Y%m%d-%H%M%S-%f"


class BackupManager:
    """Snapshots local save folders before they are overwritten."""

    def __init__(
        self,
        ctx: ExecutionContext,
        source_dir: Path,
        backups_dir: Path,
        retention: Optional[int] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.ctx = ctx
        self.source_dir = Path(source_dir)
        self.backups_dir = Path(backups_dir)
        self.retention = retention if retention is not None else ctx.config.sync.backup_retention
        self._clock = clock

    def generations(self, name: str) -> List[Path]:
        """Backups of one item, newest first."""
        item_dir = self.backups_dir / name
        if not item_dir.is_dir():
            return []
        return sorted((p for p in item_dir.iterdir() if p.is_dir()), key=lambda p: p.name, reverse=True)

    def backup(self, name: str) -> Optional[Path]:
        """Copy the current local folder into a new generation, then rotate.

        Returns:
            Path of the new backup, or None if there was nothing to back up

        Raises:
            BackupError: The copy failed; nothing was recorded
        """
        source = self.source_dir / name
        if not source.is_dir():
            return None

        stamp = self._clock().strftime(STAMP_FORMAT)
        target = self.backups_dir / name / stamp
        if self.ctx.dry_run:
            log(f"[dry-run] would back up {source} -> {target}")
            return None

        suffix = 1
        while target.exists():
            target = self.backups_dir / name / f"{stamp}-{suffix}"
            suffix += 1

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copytree(source, target)
        except OSError as e:
            shutil.rmtree(target, ignore_errors=True)
            raise BackupError(f"Could not back up {source}: {e}") from e
        logger.info(f"Backed up {source} -> {target}")

        try:
            self.rotate(name)
        except OSError as e:
            logger.warning(f"Could not prune old backups of {name}: {e}")
        return target

    def rotate(self, name: str) -> List[Path]:
        """Delete every generation beyond the retention count, oldest first."""
        removed = []
        for old in self.generations(name)[self.retention :]:
            shutil.rmtree(old)
            removed.append(old)
            logger.debug(f"Pruned backup {old}")
        return removed
