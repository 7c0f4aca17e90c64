"""Mod-management exceptions for error handling."""


class ModError(Exception):
    """Base exception for mod operations."""

    pass


class ManifestParseError(ModError):
    """Raised when a manifest cannot be read or lacks required fields."""

    pass


class CatalogQueryError(ModError):
    """Raised when the update catalog request fails or returns garbage."""

    pass


class DownloadError(ModError):
    """Raised when a download tier found a file but could not fetch it."""

    pass


class TierUnavailableError(ModError):
    """Raised when a download tier does not apply to a mod; try the next one."""

    pass


class InstallError(ModError):
    """Raised when an archive cannot be turned into an installed mod."""

    pass
