"""Behaviour shared by both transport kinds."""

from loguru import logger

from valley_sync.context import ExecutionContext
from valley_sync.core.output import log

from .models import DeviceInfo, TransportKind


class TransportBase:
    """Holds the device identity and the execution context.

    Subclasses fill in the file operations; this class only centralises the
    dry-run short-circuit and failure reporting.
    """

    kind: TransportKind

    def __init__(self, ctx: ExecutionContext, device: DeviceInfo):
        self.ctx = ctx
        self.device = device

    @property
    def device_config(self):
        return self.ctx.config.device

    def _dry_run(self, action: str) -> bool:
        """Log the intended action and report whether the caller must stop here."""
        if self.ctx.dry_run:
            log(f"[dry-run] would {action}", level="info")
            return True
        return False

    def _failed(self, action: str, error: Exception) -> bool:
        logger.warning(f"{self.kind.value}: {action} failed: {error}")
        return False

    def close(self) -> None:
        """Release transport resources. Nothing to release by default."""
        return None

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(identity={self.device.identity!r}, "
            f"commands={self.can_execute_commands}, "
            f"files={self.can_access_files_directly})"
        )
