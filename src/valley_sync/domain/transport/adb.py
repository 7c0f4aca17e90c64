"""
Command-capable transport over adb.

DirectTransport runs every file operation as an adb pull/push or a device
shell command against the application-data root.
"""

import shlex
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from loguru import logger

from valley_sync.context import ExecutionContext

from .base import TransportBase
from .exceptions import (
    FileAccessDeniedError,
    PathNotFoundError,
    TransportError,
    TransportTimeoutError,
    TransportUnavailableError,
)
from .models import DeviceInfo, DirEntry, LogicalPath, RootAccess, TransportKind
from .paths import to_shell_path


@dataclass(frozen=True)
class AdbDevice:
    """One line of `adb devices -l`."""

    serial: str
    state: str
    model: str = ""
    product: str = ""

    @property
    def ready(self) -> bool:
        return self.state == "device"


def parse_devices(output: str) -> List[AdbDevice]:
    """Parse `adb devices -l` output.

    Example line:
        R58M123ABC  device usb:1-1 product:beyond1lte model:SM_G973F device:beyond1
    """
    devices = []
    for line in output.splitlines():
        line = line.strip()
        if not line or line.startswith("List of devices") or line.startswith("*"):
            continue
        parts = line.split()
        if len(parts) < 2:
            continue
        props = dict(p.split(":", 1) for p in parts[2:] if ":" in p)
        devices.append(
            AdbDevice(
                serial=parts[0],
                state=parts[1],
                model=props.get("model", "").replace("_", " "),
                product=props.get("product", ""),
            )
        )
    return devices


class AdbClient:
    """Thin subprocess wrapper around the adb executable."""

    def __init__(
        self, adb_path: str = "adb", serial: Optional[str] = None, timeout: float = 300.0
    ):
        self.adb_path = adb_path
        self.serial = serial
        self.timeout = timeout

    def with_serial(self, serial: str) -> "AdbClient":
        return AdbClient(self.adb_path, serial, self.timeout)

    def available(self) -> bool:
        """Check whether the adb executable can be found."""
        return shutil.which(self.adb_path) is not None or Path(self.adb_path).is_file()

    def run(self, *args: str, timeout: Optional[float] = None) -> subprocess.CompletedProcess:
        """Run one adb invocation and capture its output.

        Raises:
            TransportUnavailableError: If adb itself cannot be executed
            TransportTimeoutError: If adb does not return within the timeout
        """
        cmd = [self.adb_path]
        if self.serial:
            cmd += ["-s", self.serial]
        cmd += [str(a) for a in args]
        logger.debug(f">> {' '.join(cmd)}")
        try:
            return subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout or self.timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise TransportUnavailableError(f"adb not found: {self.adb_path}") from e
        except subprocess.TimeoutExpired as e:
            raise TransportTimeoutError(f"adb {' '.join(args)} timed out") from e

    def shell(self, command: str, timeout: Optional[float] = None) -> subprocess.CompletedProcess:
        return self.run("shell", command, timeout=timeout)

    def list_devices(self) -> List[AdbDevice]:
        result = self.run("devices", "-l", timeout=15)
        return parse_devices(result.stdout or "")

    def get_prop(self, name: str) -> str:
        result = self.shell(f"getprop {shlex.quote(name)}", timeout=15)
        return (result.stdout or "").strip()


def check_result(result: subprocess.CompletedProcess, target: str) -> str:
    """Translate adb output into the transport error taxonomy.

    Returns:
        Combined stdout/stderr text when the command succeeded

    Raises:
        FileAccessDeniedError: Device refused access
        PathNotFoundError: Target does not exist
        TransportError: Any other non-zero exit
    """
    output = f"{result.stdout or ''}{result.stderr or ''}"
    lowered = output.lower()
    if "permission denied" in lowered:
        raise FileAccessDeniedError(f"Permission denied: {target}")
    if "no such file" in lowered or "does not exist" in lowered:
        raise PathNotFoundError(target)
    if result.returncode != 0:
        raise TransportError(output.strip() or f"adb exited with {result.returncode}")
    return output


class DirectTransport(TransportBase):
    """File access and commands through the adb debug channel."""

    kind = TransportKind.DIRECT

    def __init__(
        self,
        ctx: ExecutionContext,
        device: DeviceInfo,
        client: AdbClient,
        files_accessible: bool = True,
    ):
        super().__init__(ctx, device)
        self.client = client
        self.files_accessible = files_accessible

    @property
    def can_execute_commands(self) -> bool:
        return True

    @property
    def can_access_files_directly(self) -> bool:
        return self.files_accessible

    def _remote(self, path: LogicalPath, name: Optional[str] = None) -> str:
        return to_shell_path(self.device_config.app_data_root, path, name)

    def _sh(self, command: str, target: str) -> str:
        return check_result(self.client.shell(command), target)

    def probe_root(self) -> RootAccess:
        """List the application-data root to find out whether files are reachable."""
        root = self.device_config.app_data_root
        try:
            self._sh(f"ls {shlex.quote(root)}", root)
        except FileAccessDeniedError:
            return RootAccess.DENIED
        except PathNotFoundError:
            return RootAccess.NOT_FOUND
        except TransportError as e:
            logger.warning(f"Root probe failed: {e}")
            return RootAccess.DENIED
        return RootAccess.OK

    def list_directory(self, path: LogicalPath) -> list[DirEntry]:
        remote = self._remote(path)
        try:
            output = self._sh(f"ls -1p {shlex.quote(remote)}", remote)
        except PathNotFoundError:
            return []
        except TransportError as e:
            self._failed(f"list {remote}", e)
            return []

        entries = []
        for line in output.splitlines():
            name = line.rstrip("\r")
            if not name:
                continue
            if name.endswith("/"):
                entries.append(DirEntry(name=name.rstrip("/"), is_folder=True))
            else:
                entries.append(DirEntry(name=name, is_folder=False))
        return entries

    def get_modification_time(self, path: LogicalPath, name: str) -> Optional[datetime]:
        """Newest mtime of a file, or of a folder's direct children.

        A folder's own mtime is only used when it is empty: push recreates the
        folder, so its own stamp is the transfer time, not the content's.
        """
        remote = self._remote(path, name)
        quoted = shlex.quote(remote)
        try:
            # Unmatched glob on an empty folder or a file is silenced
            result = self.client.shell(f"stat -c %Y {quoted} {quoted}/* 2>/dev/null")
        except TransportError as e:
            logger.debug(f"No modification time for {remote}: {e}")
            return None

        stamps = [int(line) for line in (result.stdout or "").split() if line.isdigit()]
        if not stamps:
            logger.debug(f"No modification time for {remote}")
            return None
        own, children = stamps[0], stamps[1:]
        return datetime.fromtimestamp(max(children) if children else own, tz=timezone.utc)

    def pull_file(self, path: LogicalPath, name: str, local_dest: Path) -> bool:
        remote = self._remote(path, name)
        if self._dry_run(f"pull {remote} -> {local_dest}"):
            return True
        try:
            local_dest.parent.mkdir(parents=True, exist_ok=True)
            check_result(self.client.run("pull", "-a", remote, str(local_dest)), remote)
            return True
        except (TransportError, OSError) as e:
            return self._failed(f"pull {remote}", e)

    def push_file(self, path: LogicalPath, local_file: Path) -> bool:
        remote_dir = self._remote(path)
        remote = self._remote(path, local_file.name)
        if self._dry_run(f"push {local_file} -> {remote}"):
            return True
        try:
            self._sh(f"mkdir -p {shlex.quote(remote_dir)}", remote_dir)
            check_result(self.client.run("push", str(local_file), remote), remote)
            return True
        except TransportError as e:
            return self._failed(f"push {local_file}", e)

    def pull_folder(self, path: LogicalPath, local_dest: Path) -> bool:
        remote = self._remote(path)
        if self._dry_run(f"pull folder {remote} -> {local_dest}"):
            return True
        try:
            local_dest.parent.mkdir(parents=True, exist_ok=True)
            # adb nests the folder under the target, so pull into a staging dir
            with tempfile.TemporaryDirectory(dir=local_dest.parent) as staging:
                check_result(self.client.run("pull", "-a", remote, staging), remote)
                pulled = Path(staging) / path.name
                if not pulled.is_dir():
                    raise TransportError(f"adb pull produced no folder for {remote}")
                if local_dest.exists():
                    shutil.rmtree(local_dest)
                shutil.move(str(pulled), str(local_dest))
            return True
        except (TransportError, OSError) as e:
            return self._failed(f"pull folder {remote}", e)

    def push_folder(self, path: LogicalPath, local_dir: Path) -> bool:
        remote_parent = self._remote(path)
        remote = self._remote(path, local_dir.name)
        if self._dry_run(f"push folder {local_dir} -> {remote}"):
            return True
        try:
            # Clear first: pushing onto an existing folder nests a second copy inside it
            self._sh(f"rm -rf {shlex.quote(remote)}", remote)
            self._sh(f"mkdir -p {shlex.quote(remote_parent)}", remote_parent)
            check_result(self.client.run("push", str(local_dir), remote_parent), remote)
            return True
        except TransportError as e:
            return self._failed(f"push folder {local_dir}", e)

    def delete_item(self, path: LogicalPath, name: str) -> bool:
        remote = self._remote(path, name)
        if self._dry_run(f"delete {remote}"):
            return True
        try:
            self._sh(f"rm -rf {shlex.quote(remote)}", remote)
            return True
        except TransportError as e:
            return self._failed(f"delete {remote}", e)

    def shell(self, command: str) -> tuple[bool, str]:
        try:
            result = self.client.shell(command)
        except TransportError as e:
            return False, str(e)
        output = f"{result.stdout or ''}{result.stderr or ''}"
        return result.returncode == 0, output
