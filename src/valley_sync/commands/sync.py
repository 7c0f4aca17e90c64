"""
Sync command handlers: saves, mods, configs and the combined sync.
"""

from pathlib import Path
from typing import Optional

from valley_sync.context import ExecutionContext
from valley_sync.core.output import log
from valley_sync.domain.mods import CatalogQueryError, check_updates, scan_manifests
from valley_sync.domain.sync import ConfigSync, ReconciliationEngine, SyncSummary, record_sync
from valley_sync.domain.transport.detector import AnyTransport


def print_summary(title: str, summary: SyncSummary) -> None:
    level = "success" if summary.ok else "warning"
    log(f"{title}: {summary}", level=level)
    for name in summary.failed:
        log(f"  ✗ {name}", level="error")


def handle_saves_command(ctx: ExecutionContext, transport: AnyTransport) -> int:
    """Bidirectional save sync."""
    summary = ReconciliationEngine(ctx, transport).sync_saves()
    print_summary("Saves", summary)
    return 0


def handle_pull_saves_command(ctx: ExecutionContext, transport: AnyTransport) -> int:
    print_summary("Pull saves", ReconciliationEngine(ctx, transport).pull_saves())
    return 0


def handle_push_saves_command(ctx: ExecutionContext, transport: AnyTransport) -> int:
    print_summary("Push saves", ReconciliationEngine(ctx, transport).push_saves())
    return 0


def handle_mods_command(ctx: ExecutionContext, transport: AnyTransport) -> int:
    """Push local mods the device is missing."""
    print_summary("Mods", ReconciliationEngine(ctx, transport).sync_mods())
    return 0


def handle_pull_mods_command(ctx: ExecutionContext, transport: AnyTransport) -> int:
    print_summary("Pull mods", ReconciliationEngine(ctx, transport).pull_mods())
    return 0


def handle_push_mods_command(ctx: ExecutionContext, transport: AnyTransport) -> int:
    print_summary("Push mods", ReconciliationEngine(ctx, transport).push_mods())
    return 0


def handle_configs_command(ctx: ExecutionContext, transport: AnyTransport) -> int:
    print_summary("Configs", ConfigSync(ctx, transport).sync())
    return 0


def handle_pull_configs_command(ctx: ExecutionContext, transport: AnyTransport) -> int:
    print_summary("Pull configs", ConfigSync(ctx, transport).pull_all())
    return 0


def handle_push_configs_command(ctx: ExecutionContext, transport: AnyTransport) -> int:
    print_summary("Push configs", ConfigSync(ctx, transport).push_all())
    return 0


def handle_deploy_command(ctx: ExecutionContext, transport: AnyTransport) -> int:
    """Push every local mod, then every local config."""
    mods = ReconciliationEngine(ctx, transport).push_mods()
    print_summary("Push mods", mods)
    configs = ConfigSync(ctx, transport).push_all()
    print_summary("Push configs", configs)
    return 0


def report_updates(ctx: ExecutionContext) -> Optional[int]:
    """Log available updates; returns the count, or None if the catalog failed."""
    manifests = scan_manifests(Path(ctx.config.paths.mods_dir))
    try:
        candidates = check_updates(ctx, manifests)
    except CatalogQueryError as e:
        log(f"⚠ Update check failed: {e}", level="warning")
        return None

    if not candidates:
        log("✓ All mods are up to date", level="success")
    for candidate in candidates:
        log(
            f"  ⬆ {candidate.name}: {candidate.manifest.version} -> {candidate.target_version}",
            level="info",
        )
    return len(candidates)


def handle_sync_command(ctx: ExecutionContext, transport: AnyTransport) -> int:
    """Saves, then push-missing mods, then configs, then an update report."""
    engine = ReconciliationEngine(ctx, transport)

    log("Syncing saves...", level="info")
    saves = engine.sync_saves()
    print_summary("Saves", saves)

    log("Syncing mods...", level="info")
    mods = engine.sync_mods()
    print_summary("Mods", mods)

    log("Syncing configs...", level="info")
    configs = ConfigSync(ctx, transport).sync()
    print_summary("Configs", configs)

    log("Checking for updates...", level="info")
    updates = report_updates(ctx)

    total = saves.merge(mods).merge(configs)
    if not ctx.dry_run:
        line = f"{transport.device.identity} {total}"
        if updates:
            line += f" updates={updates}"
        record_sync(Path(ctx.config.paths.sync_log_file), line)
    print_summary("Sync complete", total)
    return 0
