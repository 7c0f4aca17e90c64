"""
Device-control actions over the adb command channel.

Fire-and-forget shell commands plus APK copy/install. Every action needs a
command-capable transport; callers get CommandNotSupportedError otherwise.
"""

import re
import shlex
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from loguru import logger

from valley_sync.context import ExecutionContext
from valley_sync.core.output import log
from valley_sync.domain.transport.adb import AdbClient, DirectTransport, check_result
from valley_sync.domain.transport.detector import AnyTransport
from valley_sync.domain.transport.exceptions import (
    CommandNotSupportedError,
    TransportError,
    TransportTimeoutError,
)
from valley_sync.domain.transport.media import MediaCopyTransport
from valley_sync.domain.transport.polling import wait_until

from .profiles import DeviceProfile

LAUNCH_TAP_DELAY_SECONDS = 8.0


@dataclass
class ApkStatus:
    """Installed state of the game package."""

    installed: bool
    paths: List[str] = field(default_factory=list)
    version: Optional[str] = None


def command_client(transport: AnyTransport) -> AdbClient:
    """Return the adb client behind a transport's command channel.

    Raises:
        CommandNotSupportedError: If the transport has no command channel
    """
    match transport:
        case DirectTransport(client=client):
            return client
        case MediaCopyTransport(adb=AdbClient() as client):
            return client
        case _:
            raise CommandNotSupportedError(
                "This action needs USB debugging (adb); the device is only "
                "reachable through file transfer"
            )


def launch(
    ctx: ExecutionContext,
    transport: AnyTransport,
    profile: Optional[DeviceProfile] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Force-stop and relaunch the game, then inject the profile's tap if any."""
    client = command_client(transport)
    package = shlex.quote(ctx.config.device.package_name)
    commands = [
        f"am force-stop {package}",
        f"monkey -p {package} -c android.intent.category.LAUNCHER 1",
    ]

    if ctx.dry_run:
        for command in commands:
            log(f"[dry-run] would run: {command}")
        if profile and profile.tap:
            log(f"[dry-run] would tap at {profile.tap[0]},{profile.tap[1]}")
        return True

    try:
        for command in commands:
            result = client.shell(command)
            if result.returncode != 0:
                log(f"❌ {command} failed: {(result.stderr or result.stdout).strip()}", level="error")
                return False

        if profile and profile.tap:
            sleep(LAUNCH_TAP_DELAY_SECONDS)
            x, y = profile.tap
            client.shell(f"input tap {x} {y}")
    except TransportError as e:
        log(f"❌ Launch failed: {e}", level="error")
        return False

    log("✓ Game launched", level="success")
    return True


def apk_status(ctx: ExecutionContext, transport: AnyTransport) -> ApkStatus:
    """Report installed APK paths and version of the game package.

    A package query that cannot be run reports the game as not installed.
    """
    client = command_client(transport)
    package = shlex.quote(ctx.config.device.package_name)

    try:
        result = client.shell(f"pm path {package}")
    except TransportError as e:
        log(f"❌ Could not query {package}: {e}", level="error")
        return ApkStatus(installed=False)
    paths = [
        line.split(":", 1)[1].strip()
        for line in (result.stdout or "").splitlines()
        if line.startswith("package:")
    ]
    if not paths:
        return ApkStatus(installed=False)

    version = None
    try:
        dump = client.shell(f"dumpsys package {package}")
    except TransportError as e:
        logger.warning(f"No version for {package}: {e}")
    else:
        match = re.search(r"versionName=(\S+)", dump.stdout or "")
        if match:
            version = match.group(1)
    return ApkStatus(installed=True, paths=paths, version=version)


def apk_pull(ctx: ExecutionContext, transport: AnyTransport) -> List[Path]:
    """Copy every APK file of the installed package into the local apk directory."""
    status = apk_status(ctx, transport)
    if not status.installed:
        log(f"{ctx.config.device.package_name} is not installed", level="warning")
        return []

    client = command_client(transport)
    apk_dir = Path(ctx.config.paths.apk_dir)
    apk_dir.mkdir(parents=True, exist_ok=True)

    pulled = []
    for remote in status.paths:
        local = apk_dir / Path(remote).name
        if ctx.dry_run:
            log(f"[dry-run] would pull {remote} -> {local}")
            pulled.append(local)
            continue
        try:
            check_result(client.run("pull", remote, str(local)), remote)
            pulled.append(local)
            logger.info(f"Pulled {remote}")
        except TransportError as e:
            log(f"❌ Could not pull {remote}: {e}", level="error")
    return pulled


def _install(ctx: ExecutionContext, client: AdbClient, apks: List[Path]) -> bool:
    names = ", ".join(a.name for a in apks)
    if ctx.dry_run:
        log(f"[dry-run] would install {names}")
        return True

    verb = "install-multiple" if len(apks) > 1 else "install"
    try:
        result = client.run(verb, "-r", *[str(a) for a in apks])
    except TransportError as e:
        log(f"❌ Install failed: {e}", level="error")
        return False

    output = f"{result.stdout or ''}{result.stderr or ''}"
    if result.returncode != 0 or "Success" not in output:
        log(f"❌ Install failed: {output.strip()}", level="error")
        return False
    log(f"✓ Installed {names}", level="success")
    return True


def apk_install(ctx: ExecutionContext, transport: AnyTransport) -> bool:
    """Install the APK set stored in the local apk directory."""
    client = command_client(transport)
    apks = sorted(Path(ctx.config.paths.apk_dir).glob("*.apk"))
    if not apks:
        log(f"No .apk files in {ctx.config.paths.apk_dir}", level="warning")
        return False
    return _install(ctx, client, apks)


def find_loader_apk(apk_dir: Path) -> Optional[Path]:
    """Newest APK in the directory whose name mentions smapi."""
    candidates = [p for p in apk_dir.glob("*.apk") if "smapi" in p.name.lower()]
    if not candidates:
        return None
    return max(candidates, key=lambda p: p.stat().st_mtime)


def smapi_install(
    ctx: ExecutionContext,
    transport: AnyTransport,
    apk: Optional[Path] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Install the mod loader and wait for its app-data folder to appear.

    The folder only exists once the loader has started, so the package is
    launched after install and the folder polled for, bounded by
    install_timeout_seconds.
    """
    client = command_client(transport)
    device_cfg = ctx.config.device
    apk = apk or find_loader_apk(Path(ctx.config.paths.apk_dir))
    if apk is None:
        log(f"No SMAPI loader APK found in {ctx.config.paths.apk_dir}", level="error")
        return False

    if not _install(ctx, client, [apk]):
        return False
    if ctx.dry_run:
        log(f"[dry-run] would wait for {device_cfg.app_data_root}")
        return True

    package = shlex.quote(device_cfg.package_name)
    try:
        client.shell(f"monkey -p {package} -c android.intent.category.LAUNCHER 1")
    except TransportError as e:
        log(f"❌ Could not start {package} after install: {e}", level="error")
        return False

    root = shlex.quote(device_cfg.app_data_root)

    def root_exists() -> bool:
        try:
            return client.shell(f"test -d {root}").returncode == 0
        except TransportError:
            return False

    try:
        wait_until(
            root_exists,
            timeout=device_cfg.install_timeout_seconds,
            interval=max(device_cfg.poll_interval_seconds, 1.0),
            description="the app data folder",
            sleep=sleep,
        )
    except TransportTimeoutError as e:
        log(f"⚠ {e}", level="warning")
        return False

    log("✓ Loader installed and app data folder ready", level="success")
    return True
