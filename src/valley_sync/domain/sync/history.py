"""Append-only log of completed syncs."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


def record_sync(path: Path, summary: str, now: Optional[datetime] = None) -> None:
    """Append one timestamped line for a finished sync."""
    now = now or datetime.now(timezone.utc)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        f.write(f"{now.isoformat()}\t{summary}\n")


def last_sync(path: Path) -> Optional[datetime]:
    """Timestamp of the most recent sync, or None if there never was one."""
    if not path.exists():
        return None
    lines = [line for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]
    if not lines:
        return None
    try:
        return datetime.fromisoformat(lines[-1].split("\t", 1)[0])
    except ValueError:
        return None
