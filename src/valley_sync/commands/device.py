"""
Device command handlers: status, logs, launch and APK management.
"""

from pathlib import Path
from typing import Optional

from valley_sync.context import ExecutionContext
from valley_sync.core.console import get_console, safe_print
from valley_sync.core.output import log
from valley_sync.domain.device import (
    DeviceProfileStore,
    apk_install,
    apk_pull,
    apk_status,
    launch,
    smapi_install,
)
from valley_sync.domain.sync import BackupManager, last_sync
from valley_sync.domain.sync.engine import local_folders
from valley_sync.domain.transport.detector import AnyTransport
from valley_sync.domain.transport.paths import error_log_path

LOG_TAIL_LINES = 40


def handle_status_command(ctx: ExecutionContext, transport: Optional[AnyTransport]) -> int:
    """Show the detected transport and the local mirror. Never fails for a missing device."""
    paths = ctx.config.paths

    safe_print("Device", style="bold")
    if transport is None:
        log("No device connected", level="warning")
    else:
        device = transport.device
        log(f"  Name:        {device.display_name or '-'}")
        log(f"  Identity:    {device.identity}")
        log(f"  Transport:   {transport.kind.value}")
        log(f"  Commands:    {'yes' if transport.can_execute_commands else 'no'}")
        log(f"  File access: {'direct' if transport.can_access_files_directly else 'copy only'}")

    saves = local_folders(Path(paths.saves_dir))
    configs_dir = Path(paths.configs_dir)
    config_count = len(list(configs_dir.rglob(ctx.config.device.config_file_name))) if configs_dir.is_dir() else 0
    synced = last_sync(Path(paths.sync_log_file))

    safe_print("\nLocal", style="bold")
    log(f"  Saves:     {len(saves)}")
    log(f"  Mods:      {len(local_folders(Path(paths.mods_dir)))}")
    log(f"  Configs:   {config_count}")
    log(f"  Last sync: {synced.strftime('%Y-%m-%d %H:%M:%S %Z').strip() if synced else 'never'}")

    if saves:
        safe_print("\nBackups", style="bold")
        backups = BackupManager(ctx, Path(paths.saves_dir), Path(paths.backups_dir))
        for name in saves:
            found = backups.generations(name)
            newest = f" (newest {found[0].name})" if found else ""
            log(f"  {name}: {len(found)} generation(s){newest}")
    return 0


def handle_logs_command(ctx: ExecutionContext, transport: AnyTransport) -> int:
    """Pull the loader's latest error log and print its tail."""
    remote = error_log_path(ctx.config.device)
    logs_dir = Path(ctx.config.paths.logs_dir)
    local = logs_dir / remote.name

    if ctx.dry_run:
        log(f"[dry-run] would pull {remote} to {local}")
        return 0
    if not transport.pull_file(remote.parent, remote.name, local):
        log(f"❌ Could not pull {remote}", level="error")
        return 0

    lines = local.read_text(encoding="utf-8", errors="replace").splitlines()
    log(f"✓ Saved {local} ({len(lines)} lines)", level="success")
    console = get_console()
    for line in lines[-LOG_TAIL_LINES:]:
        console.print(line, markup=False)
    return 0


def handle_launch_command(ctx: ExecutionContext, transport: AnyTransport) -> int:
    profile = DeviceProfileStore(Path(ctx.config.paths.profiles_file)).get(transport.device.identity)
    launch(ctx, transport, profile)
    return 0


def handle_apk_status_command(ctx: ExecutionContext, transport: AnyTransport) -> int:
    status = apk_status(ctx, transport)
    package = ctx.config.device.package_name
    if not status.installed:
        log(f"{package} is not installed", level="warning")
        return 0
    log(f"{package} {status.version or '(unknown version)'}", level="success")
    for path in status.paths:
        log(f"  {path}", level="info")
    return 0


def handle_apk_pull_command(ctx: ExecutionContext, transport: AnyTransport) -> int:
    pulled = apk_pull(ctx, transport)
    log(f"Pulled {len(pulled)} APK file(s) into {ctx.config.paths.apk_dir}", level="info")
    return 0


def handle_apk_install_command(ctx: ExecutionContext, transport: AnyTransport) -> int:
    apk_install(ctx, transport)
    return 0


def handle_smapi_install_command(ctx: ExecutionContext, transport: AnyTransport) -> int:
    smapi_install(ctx, transport)
    return 0
