"""Device domain - per-device profiles and device-control actions."""

from .control import (
    ApkStatus,
    apk_install,
    apk_pull,
    apk_status,
    command_client,
    launch,
    smapi_install,
)
from .profiles import DeviceProfile, DeviceProfileStore

__all__ = [
    "ApkStatus",
    "DeviceProfile",
    "DeviceProfileStore",
    "apk_install",
    "apk_pull",
    "apk_status",
    "command_client",
    "launch",
    "smapi_install",
]
