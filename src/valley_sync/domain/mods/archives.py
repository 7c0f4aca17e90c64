"""
Archive extraction for downloaded mods (.zip and .7z).
"""

import zipfile
from pathlib import Path

import py7zr

from .exceptions import InstallError
from .manifest import MANIFEST_NAME


def is_path_within(root: Path, path: Path) -> bool:
    """Check that path resolves inside root."""
    try:
        path.resolve().relative_to(root.resolve())
        return True
    except (ValueError, OSError, RuntimeError):
        return False


def _extract_zip(archive: Path, dest: Path) -> None:
    with zipfile.ZipFile(archive) as zf:
        for member in zf.namelist():
            if not is_path_within(dest, dest / member):
                raise InstallError(f"{archive.name}: entry {member!r} escapes the archive root")
        zf.extractall(dest)


def _extract_7z(archive: Path, dest: Path) -> None:
    with py7zr.SevenZipFile(archive, mode="r") as zf:
        for member in zf.getnames():
            if not is_path_within(dest, dest / member):
                raise InstallError(f"{archive.name}: entry {member!r} escapes the archive root")
        zf.extractall(path=dest)


def extract_archive(archive: Path, dest: Path) -> Path:
    """Extract a .zip or .7z archive into dest.

    Raises:
        InstallError: Unsupported format or a corrupt archive
    """
    dest.mkdir(parents=True, exist_ok=True)
    suffix = archive.suffix.lower()
    try:
        if suffix == ".zip":
            _extract_zip(archive, dest)
        elif suffix == ".7z":
            _extract_7z(archive, dest)
        else:
            raise InstallError(f"Unsupported archive format: {archive.name}")
    except (zipfile.BadZipFile, py7zr.Bad7zFile, OSError) as e:
        raise InstallError(f"Could not extract {archive.name}: {e}") from e
    return dest


def find_mod_root(extracted: Path) -> Path:
    """Folder holding the shallowest manifest in an extracted archive."""
    manifests = sorted(
        extracted.rglob(MANIFEST_NAME),
        key=lambda p: (len(p.relative_to(extracted).parts), str(p)),
    )
    if not manifests:
        raise InstallError(f"No {MANIFEST_NAME} found in the archive")
    return manifests[0].parent
