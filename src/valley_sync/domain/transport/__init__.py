"""Transport domain - one uniform file contract over two device connections.

This domain handles:
- Detecting the attached device and choosing a transport
- Direct file access and shell commands over adb
- Copy-based file access through the portable-device Shell namespace
- Mapping logical paths to each transport's native addresses
"""

from .adb import AdbClient, DirectTransport
from .detector import AnyTransport, detect, open_transport, require_transport
from .exceptions import (
    CommandNotSupportedError,
    FileAccessDeniedError,
    PathNotFoundError,
    TransportError,
    TransportTimeoutError,
    TransportUnavailableError,
)
from .media import MediaCopyTransport, ShellSession
from .models import DeviceInfo, DirEntry, LogicalPath, RootAccess, Transport, TransportKind

__all__ = [
    "AdbClient",
    "AnyTransport",
    "CommandNotSupportedError",
    "DeviceInfo",
    "DirectTransport",
    "DirEntry",
    "FileAccessDeniedError",
    "LogicalPath",
    "MediaCopyTransport",
    "PathNotFoundError",
    "RootAccess",
    "ShellSession",
    "Transport",
    "TransportError",
    "TransportKind",
    "TransportTimeoutError",
    "TransportUnavailableError",
    "detect",
    "open_transport",
    "require_transport",
]
