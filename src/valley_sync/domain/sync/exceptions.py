"""Sync-specific exceptions for error handling."""


class SyncError(Exception):
    """Base exception for sync operations."""

    pass


class BackupError(SyncError):
    """Raised when a local save could not be backed up."""

    pass
