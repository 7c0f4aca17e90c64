"""
Update command handlers: check-updates and update [name].
"""

from pathlib import Path
from typing import List, Optional

from valley_sync.context import ExecutionContext
from valley_sync.core.output import log
from valley_sync.domain.mods import (
    CatalogQueryError,
    ModInstaller,
    UpdateCandidate,
    check_updates,
    scan_manifests,
)
from valley_sync.domain.transport.detector import AnyTransport

from .sync import report_updates


def select_candidates(candidates: List[UpdateCandidate], name: Optional[str]) -> List[UpdateCandidate]:
    """All candidates, or those whose display name or unique id matches name."""
    if not name:
        return candidates
    wanted = name.lower()
    return [
        c
        for c in candidates
        if c.name.lower() == wanted or c.manifest.unique_id.lower() == wanted
    ]


def handle_check_updates_command(ctx: ExecutionContext, transport: Optional[AnyTransport]) -> int:
    report_updates(ctx)
    return 0


def handle_update_command(
    ctx: ExecutionContext,
    transport: Optional[AnyTransport],
    name: Optional[str] = None,
    installer: Optional[ModInstaller] = None,
) -> int:
    """Install available updates; the result is pushed when a device is connected."""
    manifests = scan_manifests(Path(ctx.config.paths.mods_dir))
    try:
        candidates = check_updates(ctx, manifests)
    except CatalogQueryError as e:
        log(f"❌ Update check failed: {e}", level="error")
        return 0

    selected = select_candidates(candidates, name)
    if not selected:
        if name:
            log(f"No update available for {name}", level="info")
        else:
            log("✓ All mods are up to date", level="success")
        return 0

    installer = installer or ModInstaller(ctx, transport)
    results = installer.install_all(selected)

    installed = [r for r in results if r.installed]
    failed = [r for r in results if r.error]
    log(
        f"Updates: installed={len(installed)} failed={len(failed)}",
        level="warning" if failed else "success",
    )
    for result in failed:
        log(f"  ✗ {result.name}: {result.error}", level="error")
    return 0
