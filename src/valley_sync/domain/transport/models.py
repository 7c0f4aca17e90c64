"""
Transport data model.

LogicalPath addresses everything relative to the device's application-data
root; each transport turns it into its own native address.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol


class TransportKind(str, Enum):
    """The two mutually exclusive ways of reaching the device."""

    DIRECT = "direct"
    MEDIA_COPY = "media_copy"


class RootAccess(str, Enum):
    """Outcome of listing the application-data root over adb."""

    OK = "ok"
    DENIED = "denied"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class LogicalPath:
    """Ordered path segments below the application-data root."""

    segments: tuple[str, ...] = ()

    @classmethod
    def of(cls, *segments: str) -> "LogicalPath":
        parts: list[str] = []
        for segment in segments:
            parts.extend(p for p in segment.split("/") if p)
        return cls(tuple(parts))

    def __truediv__(self, other: str) -> "LogicalPath":
        return LogicalPath.of(*self.segments, other)

    @property
    def name(self) -> str:
        return self.segments[-1] if self.segments else ""

    @property
    def parent(self) -> "LogicalPath":
        return LogicalPath(self.segments[:-1])

    def __str__(self) -> str:
        return "/".join(self.segments) or "."


@dataclass(frozen=True)
class DirEntry:
    """One child of a device folder."""

    name: str
    is_folder: bool


@dataclass(frozen=True)
class DeviceInfo:
    """Identity of the attached device."""

    identity: str
    display_name: str
    model: str


class Transport(Protocol):
    """Uniform file-operation contract implemented once per transport kind.

    Mutating operations honour the execution context's dry-run flag and
    report success without touching the device. Failures are logged by the
    implementation and collapse to False / [] / None.
    """

    kind: TransportKind
    device: DeviceInfo

    @property
    def can_execute_commands(self) -> bool: ...

    @property
    def can_access_files_directly(self) -> bool: ...

    def list_directory(self, path: LogicalPath) -> list[DirEntry]: ...

    def pull_file(self, path: LogicalPath, name: str, local_dest: Path) -> bool: ...

    def push_file(self, path: LogicalPath, local_file: Path) -> bool: ...

    def pull_folder(self, path: LogicalPath, local_dest: Path) -> bool: ...

    def push_folder(self, path: LogicalPath, local_dir: Path) -> bool: ...

    def delete_item(self, path: LogicalPath, name: str) -> bool: ...

    def get_modification_time(
        self, path: LogicalPath, name: str
    ) -> Optional[datetime]: ...

    def shell(self, command: str) -> tuple[bool, str]: ...

    def close(self) -> None: ...
