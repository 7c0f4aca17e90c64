"""
Transport detection.

Probes the environment once per invocation and returns exactly one transport,
in priority order:

1. adb device that can list the app-data root  -> Direct (files + commands)
2. adb device blocked, portable device found    -> MediaCopy (commands via adb)
3. adb device blocked, no portable device       -> Direct (commands only)
4. no adb device, portable device found         -> MediaCopy (files only)
5. nothing                                      -> None
"""

from contextlib import contextmanager
from typing import Iterator, Optional, Union

from loguru import logger

from valley_sync.context import ExecutionContext
from valley_sync.core.output import log

from .adb import AdbClient, AdbDevice, DirectTransport
from .exceptions import TransportError, TransportUnavailableError
from .media import MediaCopyTransport, MediaDevice, ShellSession, find_media_device
from .models import DeviceInfo, RootAccess

AnyTransport = Union[DirectTransport, MediaCopyTransport]


def _find_adb_device(adb: AdbClient) -> Optional[AdbDevice]:
    """Return the first ready adb device, or None when adb has none."""
    try:
        devices = adb.list_devices()
    except TransportError as e:
        logger.info(f"adb unavailable: {e}")
        return None

    for device in devices:
        if device.ready:
            return device
        logger.warning(f"Ignoring adb device {device.serial} in state {device.state!r}")
    return None


def _find_media_device(session: ShellSession, ctx: ExecutionContext) -> Optional[MediaDevice]:
    try:
        return find_media_device(session, ctx.config.device.media_root_segments)
    except TransportUnavailableError as e:
        logger.info(f"Portable-device copy unavailable: {e}")
    except Exception as e:  # COM errors surface as pywintypes.com_error
        logger.warning(f"Portable-device scan failed: {e}")
    return None


def _adb_device_info(client: AdbClient, device: AdbDevice) -> DeviceInfo:
    model = device.model
    display_name = model or device.serial
    try:
        display_name = client.get_prop("ro.product.marketname") or display_name
        model = model or client.get_prop("ro.product.model")
    except TransportError as e:
        logger.debug(f"getprop failed for {device.serial}: {e}")
    return DeviceInfo(identity=device.serial, display_name=display_name, model=model)


def detect(
    ctx: ExecutionContext,
    adb: Optional[AdbClient] = None,
    session: Optional[ShellSession] = None,
) -> Optional[AnyTransport]:
    """Produce the single live transport for this invocation, or None.

    Args:
        ctx: Execution context
        adb: adb client (built from config when omitted)
        session: Shell automation session (created lazily when omitted)

    Returns:
        DirectTransport, MediaCopyTransport, or None when no tier matched
    """
    cfg = ctx.config.device
    adb = adb or AdbClient(cfg.adb_path, timeout=cfg.command_timeout_seconds)
    session = session or ShellSession()

    adb_device = _find_adb_device(adb)
    if adb_device is not None:
        client = adb.with_serial(adb_device.serial)
        info = _adb_device_info(client, adb_device)
        direct = DirectTransport(ctx, info, client)

        access = direct.probe_root()
        if access is RootAccess.OK:
            session.close()
            logger.info(f"Using direct transport for {info.identity}")
            return direct

        log(
            f"Direct file access to {cfg.app_data_root} is {access.value}; "
            "looking for a portable-device connection",
            level="warning",
        )
        media = _find_media_device(session, ctx)
        if media is not None:
            logger.info(f"Using media-copy transport with adb commands for {info.identity}")
            return MediaCopyTransport(
                ctx,
                DeviceInfo(info.identity, media.name or info.display_name, info.model),
                session,
                media.root,
                adb=client,
            )

        session.close()
        log("No portable-device connection found; file operations will fail", level="warning")
        return DirectTransport(ctx, info, client, files_accessible=False)

    media = _find_media_device(session, ctx)
    if media is not None:
        logger.info(f"Using media-copy transport without commands for {media.identity}")
        return MediaCopyTransport(
            ctx, DeviceInfo(media.identity, media.name, media.name), session, media.root
        )

    session.close()
    return None


@contextmanager
def open_transport(
    ctx: ExecutionContext,
    adb: Optional[AdbClient] = None,
    session: Optional[ShellSession] = None,
) -> Iterator[Optional[AnyTransport]]:
    """Detect a transport and release it on every exit path."""
    transport = detect(ctx, adb=adb, session=session)
    try:
        yield transport
    finally:
        if transport is not None:
            transport.close()


def require_transport(transport: Optional[AnyTransport]) -> AnyTransport:
    """Raise TransportUnavailableError when detection found nothing."""
    if transport is None:
        raise TransportUnavailableError(
            "No device found. Connect the device with USB debugging enabled "
            "or in file-transfer mode."
        )
    return transport
