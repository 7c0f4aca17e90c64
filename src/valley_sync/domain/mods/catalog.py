"""
Update catalog client.

One batch request to the SMAPI web API tells us, per installed mod, whether
a newer version exists and where the mod is hosted.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests
from loguru import logger

from valley_sync.context import ExecutionContext
from valley_sync.core.config import UpdatesConfig

from .exceptions import CatalogQueryError
from .manifest import ModManifest

_NEXUS_KEY = re.compile(r"^\s*nexus\s*:\s*(\d+)", re.IGNORECASE)
_GITHUB_KEY = re.compile(r"^\s*github\s*:\s*([\w.-]+/[\w.-]+)", re.IGNORECASE)


@dataclass
class UpdateCandidate:
    """An installed mod with a newer version available."""

    manifest: ModManifest
    target_version: str
    nexus_id: Optional[int] = None
    github_repo: Optional[str] = None  # owner/repo
    page_url: Optional[str] = None

    @property
    def name(self) -> str:
        return self.manifest.display_name


def nexus_id_from_keys(keys: List[str]) -> Optional[int]:
    for key in keys:
        match = _NEXUS_KEY.match(key)
        if match:
            return int(match.group(1))
    return None


def github_repo_from_keys(keys: List[str]) -> Optional[str]:
    for key in keys:
        match = _GITHUB_KEY.match(key)
        if match:
            return match.group(1)
    return None


def build_request(manifests: List[ModManifest], cfg: UpdatesConfig) -> Dict[str, Any]:
    """Request body for the batch endpoint."""
    return {
        "mods": [
            {
                "id": m.unique_id,
                "updateKeys": m.update_keys,
                "installedVersion": m.version,
                "isBroken": False,
            }
            for m in manifests
        ],
        "apiVersion": cfg.api_version,
        "gameVersion": cfg.game_version,
        "platform": cfg.platform,
        "includeExtendedMetadata": True,
    }


def _candidate(manifest: ModManifest, entry: Dict[str, Any]) -> Optional[UpdateCandidate]:
    suggested = entry.get("suggestedUpdate") or {}
    version = suggested.get("version")
    if not version or str(version) == manifest.version:
        return None

    metadata = entry.get("metadata") or {}
    nexus_id = metadata.get("nexusID")
    if nexus_id is None:
        nexus_id = nexus_id_from_keys(manifest.update_keys)
    return UpdateCandidate(
        manifest=manifest,
        target_version=str(version),
        nexus_id=int(nexus_id) if nexus_id is not None else None,
        github_repo=github_repo_from_keys(manifest.update_keys),
        page_url=suggested.get("url"),
    )


def check_updates(
    ctx: ExecutionContext,
    manifests: List[ModManifest],
    session: Any = requests,
) -> List[UpdateCandidate]:
    """Ask the catalog which mods have newer versions.

    Mods without update keys are not sent.

    Args:
        ctx: Execution context
        manifests: Installed mods
        session: Object with a requests-style post() (the requests module by default)

    Returns:
        Update candidates, in manifest order

    Raises:
        CatalogQueryError: Network failure or unexpected response
    """
    cfg = ctx.config.updates
    queryable = [m for m in manifests if m.has_update_keys]
    skipped = len(manifests) - len(queryable)
    if skipped:
        logger.info(f"{skipped} mod(s) have no update keys and were not checked")
    if not queryable:
        return []

    try:
        response = session.post(
            cfg.catalog_url,
            json=build_request(queryable, cfg),
            headers={"Accept": "application/json"},
            timeout=cfg.request_timeout_seconds,
        )
        response.raise_for_status()
        results = response.json()
    except requests.RequestException as e:
        raise CatalogQueryError(f"Update catalog request failed: {e}") from e
    except ValueError as e:
        raise CatalogQueryError(f"Update catalog returned invalid JSON: {e}") from e

    if not isinstance(results, list):
        raise CatalogQueryError("Update catalog returned an unexpected payload")

    by_id = {str(entry.get("id", "")).lower(): entry for entry in results if isinstance(entry, dict)}
    candidates = []
    for manifest in queryable:
        entry = by_id.get(manifest.unique_id.lower())
        if entry is None:
            continue
        for error in entry.get("errors") or []:
            logger.debug(f"{manifest.unique_id}: {error}")
        candidate = _candidate(manifest, entry)
        if candidate is not None:
            candidates.append(candidate)
    return candidates
