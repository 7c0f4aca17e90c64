"""Tests for the last-sync log."""

from datetime import datetime, timezone

from valley_sync.domain.sync import last_sync, record_sync


class TestHistory:
    """Tests for record_sync and last_sync."""

    def test_never_synced(self, tmp_path):
        assert last_sync(tmp_path / "last_sync.log") is None

    def test_returns_latest(self, tmp_path):
        path = tmp_path / "last_sync.log"
        first = datetime(2024, 3, 14, 21, 0, tzinfo=timezone.utc)
        second = datetime(2024, 3, 15, 8, 30, tzinfo=timezone.utc)
        record_sync(path, "pulled=1", now=first)
        record_sync(path, "pushed=2", now=second)

        assert last_sync(path) == second
        assert path.read_text().splitlines()[0].endswith("\tpulled=1")

    def test_garbage_line(self, tmp_path):
        path = tmp_path / "last_sync.log"
        path.write_text("not a timestamp\n")
        assert last_sync(path) is None
