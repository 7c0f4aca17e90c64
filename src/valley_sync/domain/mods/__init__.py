"""Mod manifests, update checks and update installation."""

from .archives import extract_archive, find_mod_root
from .catalog import UpdateCandidate, check_updates
from .exceptions import (
    CatalogQueryError,
    DownloadError,
    InstallError,
    ManifestParseError,
    ModError,
    TierUnavailableError,
)
from .installer import InstallResult, ModInstaller
from .manifest import ModManifest, scan_manifests
from .sources import download_update

__all__ = [
    "CatalogQueryError",
    "DownloadError",
    "InstallError",
    "InstallResult",
    "ManifestParseError",
    "ModError",
    "ModInstaller",
    "ModManifest",
    "TierUnavailableError",
    "UpdateCandidate",
    "check_updates",
    "download_update",
    "extract_archive",
    "find_mod_root",
    "scan_manifests",
]
