"""
Path resolution from logical paths to transport-native addresses.

Pure functions: the command-capable transport gets a slash-joined shell path,
the copy-based transport walks folder handles one name comparison per segment.
"""

import posixpath
from typing import Callable, Iterable, Optional, Sequence, TypeVar

from valley_sync.core.config import DeviceConfig

from .exceptions import PathNotFoundError
from .models import LogicalPath

Node = TypeVar("Node")


def saves_root(device: DeviceConfig) -> LogicalPath:
    """Logical root of the save-games folder."""
    return LogicalPath.of(device.saves_folder)


def mods_root(device: DeviceConfig) -> LogicalPath:
    """Logical root of the mods folder."""
    return LogicalPath.of(device.mods_folder)


def internal_config_path(device: DeviceConfig) -> LogicalPath:
    """Logical path of the loader's own configuration file."""
    return LogicalPath.of(*device.internal_config)


def error_log_path(device: DeviceConfig) -> LogicalPath:
    """Logical path of the loader's latest error log."""
    return LogicalPath.of(*device.error_log)


def to_shell_path(root: str, path: LogicalPath, name: str | None = None) -> str:
    """Join a logical path onto the device-side shell root.

    Args:
        root: Absolute shell path of the application-data root
        path: Logical path below the root
        name: Optional final child name

    Returns:
        Absolute POSIX path on the device
    """
    parts = list(path.segments)
    if name:
        parts.append(name)
    return posixpath.join(root.rstrip("/") or "/", *parts) if parts else root


def resolve_segments(
    start: Node,
    segments: Sequence[str],
    lookup: Callable[[Node, str], Optional[Node]],
) -> Node:
    """Walk folder handles by name, one lookup per segment.

    Args:
        start: Handle of the folder the segments are relative to
        segments: Folder names to descend through
        lookup: Returns the named child handle of a folder, or None

    Returns:
        Handle of the final folder

    Raises:
        PathNotFoundError: If any segment is absent
    """
    node = start
    for segment in segments:
        child = lookup(node, segment)
        if child is None:
            raise PathNotFoundError(segment)
        node = child
    return node


def find_by_name(items: Iterable[Node], name: str, get_name: Callable[[Node], str]) -> Optional[Node]:
    """Return the first item whose name matches exactly."""
    for item in items:
        if get_name(item) == name:
            return item
    return None
