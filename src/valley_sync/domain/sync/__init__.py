"""Sync domain - reconciliation between the local mirror and the device.

This domain handles:
- Bidirectional save sync with timestamp tie-breaking
- Backups of local saves before they are overwritten
- Push-missing mod sync
- Per-mod configuration sync (newer side wins)
- The append-only last-sync log
"""

from .backup import BackupManager
from .configs import ConfigSync
from .engine import (
    ReconciliationEngine,
    SyncAction,
    SyncCandidate,
    SyncDecision,
    SyncSummary,
    decide,
)
from .exceptions import BackupError, SyncError
from .history import last_sync, record_sync

__all__ = [
    "BackupError",
    "BackupManager",
    "ConfigSync",
    "ReconciliationEngine",
    "SyncAction",
    "SyncCandidate",
    "SyncDecision",
    "SyncError",
    "SyncSummary",
    "decide",
    "last_sync",
    "record_sync",
]
