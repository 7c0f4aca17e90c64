"""
Mod manifest scanning.

Manifests are JSON in spirit only: authors leave comments and trailing
commas in them, and collapse single-element UpdateKeys lists to a bare
string. All of that is normalized here before anything else sees it.
"""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List

from loguru import logger

from .exceptions import ManifestParseError

MANIFEST_NAME = "manifest.json"

_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_LINE_COMMENT = re.compile(r"^\s*//.*$", re.MULTILINE)
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")


@dataclass
class ModManifest:
    """Parsed manifest of one installed mod."""

    display_name: str
    unique_id: str
    version: str
    update_keys: List[str] = field(default_factory=list)
    local_path: Path = Path(".")  # Folder that owns the manifest
    relative_path: Path = Path(".")  # local_path relative to the mods folder

    @property
    def has_update_keys(self) -> bool:
        return bool(self.update_keys)


def strip_comments(text: str) -> str:
    """Remove /* */ blocks, whole-line // comments and trailing commas."""
    text = _BLOCK_COMMENT.sub("", text)
    text = _LINE_COMMENT.sub("", text)
    return _TRAILING_COMMA.sub(r"\1", text)


def normalize_update_keys(value: Any) -> List[str]:
    """Materialize UpdateKeys as a list, whatever shape the manifest used."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        value = [value]
    return [str(v).strip() for v in value if v is not None and str(v).strip()]


def coerce_version(value: Any) -> str:
    """Return a version string from either a plain value or the legacy object form."""
    if isinstance(value, dict):
        lowered = {k.lower(): v for k, v in value.items()}
        version = ".".join(
            str(lowered.get(part, 0))
            for part in ("majorversion", "minorversion", "patchversion")
        )
        build = lowered.get("build")
        return f"{version}-{build}" if build else version
    if value is None:
        return ""
    return str(value)


def parse_manifest(text: str, manifest_path: Path, mods_dir: Path) -> ModManifest:
    """Parse one manifest's text.

    Args:
        text: Raw manifest content
        manifest_path: Location of the manifest file
        mods_dir: Root of the local mods folder

    Returns:
        ModManifest with normalized fields

    Raises:
        ManifestParseError: Invalid JSON or missing Name/UniqueID
    """
    try:
        data = json.loads(strip_comments(text))
    except json.JSONDecodeError as e:
        raise ManifestParseError(f"{manifest_path}: {e}") from e
    if not isinstance(data, dict):
        raise ManifestParseError(f"{manifest_path}: manifest is not an object")

    fields = {k.lower(): v for k, v in data.items()}
    name = fields.get("name")
    unique_id = fields.get("uniqueid")
    if not name or not unique_id:
        raise ManifestParseError(f"{manifest_path}: missing Name or UniqueID")

    local_path = manifest_path.parent
    return ModManifest(
        display_name=str(name),
        unique_id=str(unique_id),
        version=coerce_version(fields.get("version")),
        update_keys=normalize_update_keys(fields.get("updatekeys")),
        local_path=local_path,
        relative_path=local_path.relative_to(mods_dir),
    )


def scan_manifests(mods_dir: Path) -> List[ModManifest]:
    """Find and parse every manifest under the mods folder, nested ones included.

    Unreadable manifests are logged and skipped.
    """
    mods_dir = Path(mods_dir)
    if not mods_dir.is_dir():
        return []

    manifests = []
    for manifest_path in sorted(mods_dir.rglob(MANIFEST_NAME)):
        try:
            text = manifest_path.read_text(encoding="utf-8-sig")
            manifests.append(parse_manifest(text, manifest_path, mods_dir))
        except (OSError, ManifestParseError) as e:
            logger.warning(f"Skipping manifest: {e}")
    return manifests
