"""Tests for transport detection priority."""

import pytest

from fakes import SERIAL, FakeAdbClient, FakeShell
from valley_sync.domain.transport import (
    DirectTransport,
    MediaCopyTransport,
    ShellSession,
    TransportUnavailableError,
    detect,
    open_transport,
    require_transport,
)


@pytest.fixture
def media_session(storage, app_root):
    return ShellSession(lambda: FakeShell(storage))


@pytest.fixture
def empty_session():
    return ShellSession(lambda: FakeShell(None))


class TestDetect:
    """One transport per invocation, chosen by capability."""

    def test_adb_with_file_access_is_direct(self, ctx, fake_adb, app_root, media_session):
        transport = detect(ctx, adb=fake_adb, session=media_session)
        assert isinstance(transport, DirectTransport)
        assert transport.can_execute_commands
        assert transport.can_access_files_directly
        assert transport.device.identity == SERIAL

    def test_adb_blocked_with_media_device(self, ctx, fake_adb, config, media_session):
        """Blocked adb falls back to copy-based files, keeping adb for commands."""
        fake_adb.denied = (config.device.app_data_root,)
        transport = detect(ctx, adb=fake_adb, session=media_session)
        assert isinstance(transport, MediaCopyTransport)
        assert transport.can_execute_commands
        assert not transport.can_access_files_directly
        assert transport.adb is fake_adb

    def test_adb_blocked_without_media_device(self, ctx, fake_adb, config, app_root, empty_session):
        fake_adb.denied = (config.device.app_data_root,)
        transport = detect(ctx, adb=fake_adb, session=empty_session)
        assert isinstance(transport, DirectTransport)
        assert transport.can_execute_commands
        assert not transport.can_access_files_directly

    def test_media_only(self, ctx, device_root, media_session):
        adb = FakeAdbClient(device_root, devices=[])
        transport = detect(ctx, adb=adb, session=media_session)
        assert isinstance(transport, MediaCopyTransport)
        assert not transport.can_execute_commands
        assert transport.device.identity == SERIAL

    def test_nothing_connected(self, ctx, device_root, empty_session):
        adb = FakeAdbClient(device_root, devices=[])
        assert detect(ctx, adb=adb, session=empty_session) is None

    def test_unauthorized_adb_device_is_ignored(self, ctx, device_root, media_session):
        adb = FakeAdbClient(device_root, devices=[f"{SERIAL}\tunauthorized transport_id:1"])
        transport = detect(ctx, adb=adb, session=media_session)
        assert isinstance(transport, MediaCopyTransport)
        assert not transport.can_execute_commands

    def test_device_name_from_props(self, ctx, device_root, app_root, media_session):
        adb = FakeAdbClient(device_root, props={"ro.product.marketname": "Pixel 7 Pro"})
        transport = detect(ctx, adb=adb, session=media_session)
        assert transport.device.display_name == "Pixel 7 Pro"


class TestOpenTransport:
    """Tests for scoped transport acquisition."""

    def test_closes_on_exit(self, ctx, device_root, media_session):
        adb = FakeAdbClient(device_root, devices=[])
        with open_transport(ctx, adb=adb, session=media_session) as transport:
            transport.session.shell
        assert transport.session._shell is None

    def test_closes_on_error(self, ctx, device_root, media_session):
        adb = FakeAdbClient(device_root, devices=[])
        with pytest.raises(RuntimeError):
            with open_transport(ctx, adb=adb, session=media_session) as transport:
                raise RuntimeError("boom")
        assert transport.session._shell is None

    def test_require_transport(self):
        with pytest.raises(TransportUnavailableError):
            require_transport(None)
