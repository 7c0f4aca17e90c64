"""
Valley Sync CLI - entry point.

Parses the command line, builds the execution context once, detects the
device transport when the command needs one and dispatches to a handler in
valley_sync.commands.
"""

import argparse
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from loguru import logger

from valley_sync.commands import device, sync, updates
from valley_sync.context import ExecutionContext
from valley_sync.core.config import Config, ensure_directories, get_data_dir, load_config
from valley_sync.core.output import log, setup_loguru
from valley_sync.domain.device import DeviceProfileStore
from valley_sync.domain.transport import (
    CommandNotSupportedError,
    TransportUnavailableError,
    open_transport,
    require_transport,
)

# Device requirement per command
REQUIRED = "required"  # Exit 1 without a device
OPTIONAL = "optional"  # Detect, but run either way
NONE = "none"  # Never touch the device

Handler = Callable[..., int]

COMMANDS: Dict[str, Tuple[Handler, str, str]] = {
    "sync": (sync.handle_sync_command, REQUIRED, "Sync saves, mods and configs, then check for updates"),
    "status": (device.handle_status_command, OPTIONAL, "Show device and local state"),
    "check-updates": (updates.handle_check_updates_command, NONE, "List mods with newer versions"),
    "update": (updates.handle_update_command, OPTIONAL, "Install mod updates (all, or one by name)"),
    "saves": (sync.handle_saves_command, REQUIRED, "Bidirectional save sync"),
    "pull-saves": (sync.handle_pull_saves_command, REQUIRED, "Copy every device save here"),
    "push-saves": (sync.handle_push_saves_command, REQUIRED, "Copy every local save to the device"),
    "mods": (sync.handle_mods_command, REQUIRED, "Push local mods missing on the device"),
    "pull-mods": (sync.handle_pull_mods_command, REQUIRED, "Copy device-only mods here"),
    "push-mods": (sync.handle_push_mods_command, REQUIRED, "Replace every device mod with the local copy"),
    "configs": (sync.handle_configs_command, REQUIRED, "Sync mod config files, newer wins"),
    "pull-configs": (sync.handle_pull_configs_command, REQUIRED, "Copy every device config here"),
    "push-configs": (sync.handle_push_configs_command, REQUIRED, "Copy every local config to the device"),
    "deploy": (sync.handle_deploy_command, REQUIRED, "push-mods followed by push-configs"),
    "logs": (device.handle_logs_command, REQUIRED, "Pull and show the latest loader error log"),
    "launch": (device.handle_launch_command, REQUIRED, "Restart the game on the device"),
    "apk-status": (device.handle_apk_status_command, REQUIRED, "Show the installed game package"),
    "apk-pull": (device.handle_apk_pull_command, REQUIRED, "Copy the installed APK files here"),
    "apk-install": (device.handle_apk_install_command, REQUIRED, "Install the local APK files"),
    "smapi-install": (device.handle_smapi_install_command, REQUIRED, "Install the mod loader APK"),
}


class _Parser(argparse.ArgumentParser):
    """ArgumentParser that exits with status 1 on usage errors."""

    def error(self, message: str) -> None:
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _Parser(
        prog="valley-sync",
        description="Valley Sync - keep saves, mods and configs in step with an Android device",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--force", action="store_true", help="Skip confirmations; newer side wins")
    parser.add_argument("--dry-run", action="store_true", help="Show what would happen without doing it")

    # Same flags after the subcommand; SUPPRESS keeps the top-level value when absent
    flags = argparse.ArgumentParser(add_help=False)
    flags.add_argument("--force", action="store_true", default=argparse.SUPPRESS, help=argparse.SUPPRESS)
    flags.add_argument("--dry-run", action="store_true", default=argparse.SUPPRESS, help=argparse.SUPPRESS)

    subparsers = parser.add_subparsers(dest="command", parser_class=_Parser, help="Available commands")
    for name, (_, _, help_text) in COMMANDS.items():
        sub = subparsers.add_parser(name, parents=[flags], help=help_text)
        if name == "update":
            sub.add_argument("name", nargs="?", help="Mod name or unique id (default: all)")
    return parser


def setup_logging(config: Config) -> None:
    log_file = Path(config.logging.log_file) if config.logging.log_file else get_data_dir() / "valley-sync.log"
    setup_loguru(log_file, config.logging.level, config.logging.console_output)


def dispatch(ctx: ExecutionContext, command: str, args: argparse.Namespace) -> int:
    handler, requirement, _ = COMMANDS[command]
    extra = {"name": args.name} if command == "update" else {}

    if requirement == NONE:
        return handler(ctx, None, **extra)

    with open_transport(ctx) as transport:
        if transport is None and requirement != REQUIRED:
            return handler(ctx, None, **extra)
        transport = require_transport(transport)

        DeviceProfileStore(Path(ctx.config.paths.profiles_file)).record(transport.device, transport.kind)
        logger.info(f"{command}: using {transport!r}")
        return handler(ctx, transport, **extra)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the valley-sync command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    config = load_config()
    setup_logging(config)
    ensure_directories(config)
    ctx = ExecutionContext(config=config, dry_run=args.dry_run, force=args.force)
    if ctx.dry_run:
        log("Dry run: nothing will be changed", level="warning")

    try:
        return dispatch(ctx, args.command, args)
    except (TransportUnavailableError, CommandNotSupportedError) as e:
        log(f"❌ {e}", level="error")
        return 1
    except KeyboardInterrupt:
        log("Interrupted", level="warning")
        return 1


if __name__ == "__main__":
    sys.exit(main())
