"""
Copy-based transport through the Windows Shell portable-device namespace.

Used when the device blocks direct file access over adb. The Shell copy
engine is asynchronous and has no completion callback, so every copy, move
and delete is followed by a bounded poll. Folder listings are re-read for
every poll and snapshotted before any mutation of the same folder.
"""

import os
import re
import shutil
import sys
import tempfile
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence

from loguru import logger

from valley_sync.context import ExecutionContext

from .adb import AdbClient
from .base import TransportBase
from .exceptions import (
    CommandNotSupportedError,
    PathNotFoundError,
    TransportError,
    TransportUnavailableError,
)
from .models import DeviceInfo, DirEntry, LogicalPath, TransportKind
from .paths import find_by_name, resolve_segments
from .polling import wait_until

# Shell special folder for "This PC"
SSF_DRIVES = 17

# FOF_SILENT | FOF_NOCONFIRMATION | FOF_NOCONFIRMMKDIR | FOF_NOERRORUI
COPY_FLAGS = 4 | 16 | 512 | 1024

# Detail columns that carry a date on the devices seen so far
DATE_COLUMNS = (3, 2, 4, 5, 12, 13)

DATE_FORMATS = (
    "%m/%d/%Y %I:%M %p",
    "%m/%d/%Y %H:%M",
    "%d/%m/%Y %H:%M",
    "%d.%m.%Y %H:%M",
    "%Y-%m-%d %H:%M",
    "%Y/%m/%d %H:%M",
    "%m/%d/%Y %I:%M:%S %p",
    "%d/%m/%Y %H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
)

_INVISIBLE = dict.fromkeys(map(ord, "\u200e\u200f\u202a\u202b\u202c\u202d\u202e"), None)


class ShellSession:
    """Scoped Shell.Application automation session.

    The COM object is created on first use and released by close(), which
    also runs when the session is used as a context manager.
    """

    def __init__(self, factory: Optional[Callable[[], Any]] = None):
        self._factory = factory
        self._shell = None
        self._com_initialized = False

    @property
    def shell(self) -> Any:
        if self._shell is None:
            self._shell = self._factory() if self._factory else self._dispatch()
        return self._shell

    def _dispatch(self) -> Any:
        if sys.platform != "win32":
            raise TransportUnavailableError("Portable-device copy requires Windows")
        try:
            import pythoncom
            import win32com.client
        except ImportError as e:
            raise TransportUnavailableError("pywin32 is not installed") from e

        pythoncom.CoInitialize()
        self._com_initialized = True
        return win32com.client.Dispatch("Shell.Application")

    def close(self) -> None:
        self._shell = None
        if self._com_initialized:
            import pythoncom

            pythoncom.CoUninitialize()
            self._com_initialized = False

    def __enter__(self) -> "ShellSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def children(folder: Any) -> List[Any]:
    """Snapshot a folder's items into a list."""
    items = folder.Items()
    return [items.Item(i) for i in range(items.Count)]


def child_folder(folder: Any, name: str) -> Optional[Any]:
    item = find_by_name(children(folder), name, lambda i: i.Name)
    if item is None or not item.IsFolder:
        return None
    return item.GetFolder


def parse_details_date(text: str) -> Optional[datetime]:
    """Parse a Shell detail column as a local timestamp.

    Returns None unless the text parses as a date after the year 2000,
    which rules out size and type columns that happen to parse.
    """
    cleaned = " ".join((text or "").translate(_INVISIBLE).split())
    if not cleaned:
        return None
    for fmt in DATE_FORMATS:
        try:
            parsed = datetime.strptime(cleaned, fmt)
        except ValueError:
            continue
        if parsed.year > 2000:
            return parsed.astimezone()
    return None


def _details_date(folder: Any, item: Any) -> Optional[datetime]:
    for column in DATE_COLUMNS:
        parsed = parse_details_date(folder.GetDetailsOf(item, column))
        if parsed is not None:
            return parsed
    return None


def _is_drive(path: str) -> bool:
    return bool(re.match(r"^[A-Za-z]:\\", path or ""))


def _identity_from_path(path: str, fallback: str) -> str:
    """Pull the USB serial out of a portable-device parsing name."""
    match = re.search(r"usb#vid_[0-9a-f]+&pid_[0-9a-f]+(?:&[^#]*)?#([^#]+)#", path or "", re.I)
    return match.group(1) if match else fallback


@dataclass
class MediaDevice:
    """A portable device whose storage exposes the application-data root."""

    name: str
    identity: str
    root: Any


def find_media_device(session: ShellSession, root_segments: Sequence[str]) -> Optional[MediaDevice]:
    """Find the first portable device that exposes the application-data root.

    Args:
        session: Shell automation session
        root_segments: Folder names below a storage root leading to the app data

    Returns:
        MediaDevice, or None when no device resolves the segments
    """
    this_pc = session.shell.NameSpace(SSF_DRIVES)
    if this_pc is None:
        return None

    for item in children(this_pc):
        if not item.IsFolder or _is_drive(item.Path):
            continue
        for storage in children(item.GetFolder):
            if not storage.IsFolder:
                continue
            try:
                root = resolve_segments(storage.GetFolder, root_segments, child_folder)
            except PathNotFoundError:
                continue
            logger.info(f"Portable device {item.Name!r} exposes app data under {storage.Name!r}")
            return MediaDevice(
                name=item.Name,
                identity=_identity_from_path(item.Path, item.Name),
                root=root,
            )
    return None


class _SettledFile:
    """Poll predicate: file exists and its size held steady since the last poll."""

    def __init__(self, path: Path):
        self.path = path
        self.last_size: Optional[int] = None

    def __call__(self) -> bool:
        if not self.path.is_file():
            return False
        size = self.path.stat().st_size
        settled = size == self.last_size
        self.last_size = size
        return settled


class MediaCopyTransport(TransportBase):
    """File access through the Shell copy engine; commands optionally via adb."""

    kind = TransportKind.MEDIA_COPY

    def __init__(
        self,
        ctx: ExecutionContext,
        device: DeviceInfo,
        session: ShellSession,
        root: Any,
        adb: Optional[AdbClient] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(ctx, device)
        self.session = session
        self.root = root
        self.adb = adb
        self._sleep = sleep

    @property
    def can_execute_commands(self) -> bool:
        return self.adb is not None

    @property
    def can_access_files_directly(self) -> bool:
        return False

    # -- helpers -------------------------------------------------------------

    def _folder(self, path: LogicalPath) -> Any:
        return resolve_segments(self.root, path.segments, child_folder)

    def _ensure_folder(self, path: LogicalPath) -> Any:
        folder = self.root
        for segment in path.segments:
            child = child_folder(folder, segment)
            if child is None:
                folder.NewFolder(segment)
                self._wait(
                    lambda f=folder, s=segment: child_folder(f, s) is not None,
                    f"folder {segment}",
                )
                child = child_folder(folder, segment)
            folder = child
        return folder

    def _item(self, folder: Any, name: str) -> Any:
        item = find_by_name(children(folder), name, lambda i: i.Name)
        if item is None:
            raise PathNotFoundError(name)
        return item

    def _names(self, folder: Any) -> set[str]:
        return {item.Name for item in children(folder)}

    def _local_namespace(self, directory: Path | str) -> Any:
        namespace = self.session.shell.NameSpace(str(directory))
        if namespace is None:
            raise TransportError(f"Shell cannot open local folder {directory}")
        return namespace

    def _wait(self, condition: Callable[[], bool], description: str) -> None:
        cfg = self.device_config
        wait_until(
            condition,
            timeout=cfg.copy_timeout_seconds,
            interval=cfg.poll_interval_seconds,
            description=description,
            sleep=self._sleep,
        )

    def _remove(self, folder: Any, item: Any) -> None:
        """Delete by moving into a throwaway local folder, then dropping it."""
        name = item.Name
        with tempfile.TemporaryDirectory(prefix="valley-sync-trash-") as trash:
            self._local_namespace(trash).MoveHere(item, COPY_FLAGS)
            self._wait(lambda: name not in self._names(folder), f"removal of {name}")

    # -- contract ------------------------------------------------------------

    def list_directory(self, path: LogicalPath) -> list[DirEntry]:
        try:
            folder = self._folder(path)
            return [DirEntry(name=i.Name, is_folder=bool(i.IsFolder)) for i in children(folder)]
        except PathNotFoundError:
            return []
        except Exception as e:  # COM errors surface as pywintypes.com_error
            self._failed(f"list {path}", e)
            return []

    def get_modification_time(self, path: LogicalPath, name: str) -> Optional[datetime]:
        """Newest date of a file, or of a folder's direct children."""
        try:
            folder = self._folder(path)
            item = self._item(folder, name)
            if item.IsFolder:
                inner = item.GetFolder
                stamps = [d for d in (_details_date(inner, c) for c in children(inner)) if d is not None]
                if stamps:
                    return max(stamps)
            return _details_date(folder, item)
        except Exception as e:
            logger.debug(f"No modification time for {path}/{name}: {e}")
        return None

    def pull_file(self, path: LogicalPath, name: str, local_dest: Path) -> bool:
        if self._dry_run(f"copy {path}/{name} -> {local_dest}"):
            return True
        try:
            item = self._item(self._folder(path), name)
            local_dest.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.TemporaryDirectory(dir=local_dest.parent) as staging:
                self._local_namespace(staging).CopyHere(item, COPY_FLAGS)
                staged = Path(staging) / name
                self._wait(_SettledFile(staged), f"copy of {name}")
                os.replace(staged, local_dest)
            return True
        except Exception as e:
            return self._failed(f"copy {path}/{name}", e)

    def push_file(self, path: LogicalPath, local_file: Path) -> bool:
        name = local_file.name
        if self._dry_run(f"copy {local_file} -> {path}/{name}"):
            return True
        try:
            folder = self._ensure_folder(path)
            existing = find_by_name(children(folder), name, lambda i: i.Name)
            if existing is not None:
                self._remove(folder, existing)
            folder.CopyHere(str(local_file), COPY_FLAGS)
            self._wait(lambda: name in self._names(folder), f"copy of {name}")
            return True
        except Exception as e:
            return self._failed(f"copy {local_file}", e)

    def pull_folder(self, path: LogicalPath, local_dest: Path) -> bool:
        if self._dry_run(f"copy folder {path} -> {local_dest}"):
            return True
        try:
            item = self._item(self._folder(path.parent), path.name)
            expected = len(children(item.GetFolder))
            local_dest.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.TemporaryDirectory(dir=local_dest.parent) as staging:
                self._local_namespace(staging).CopyHere(item, COPY_FLAGS)
                staged = Path(staging) / path.name
                self._wait(
                    lambda: staged.is_dir() and len(list(staged.iterdir())) >= expected,
                    f"copy of folder {path.name}",
                )
                if local_dest.exists():
                    shutil.rmtree(local_dest)
                os.replace(staged, local_dest)
            return True
        except Exception as e:
            return self._failed(f"copy folder {path}", e)

    def push_folder(self, path: LogicalPath, local_dir: Path) -> bool:
        name = local_dir.name
        if self._dry_run(f"copy folder {local_dir} -> {path}/{name}"):
            return True
        try:
            folder = self._ensure_folder(path)
            existing = find_by_name(children(folder), name, lambda i: i.Name)
            if existing is not None:
                self._remove(folder, existing)
            expected = len(list(local_dir.iterdir()))
            folder.CopyHere(str(local_dir), COPY_FLAGS)

            def copied() -> bool:
                target = child_folder(folder, name)
                return target is not None and len(children(target)) >= expected

            self._wait(copied, f"copy of folder {name}")
            return True
        except Exception as e:
            return self._failed(f"copy folder {local_dir}", e)

    def delete_item(self, path: LogicalPath, name: str) -> bool:
        if self._dry_run(f"delete {path}/{name}"):
            return True
        try:
            folder = self._folder(path)
            self._remove(folder, self._item(folder, name))
            return True
        except PathNotFoundError:
            return True
        except Exception as e:
            return self._failed(f"delete {path}/{name}", e)

    def shell(self, command: str) -> tuple[bool, str]:
        if self.adb is None:
            raise CommandNotSupportedError("No command channel on this device")
        try:
            result = self.adb.shell(command)
        except TransportError as e:
            return False, str(e)
        return result.returncode == 0, f"{result.stdout or ''}{result.stderr or ''}"

    def close(self) -> None:
        self.session.close()
