"""Tests for the named pipe manager."""

import os
import stat
from pathlib import Path

import pytest

from discord_entropy.errors import PipeCreationFailure
from discord_entropy.pipe import PipeLock, PipeManager, is_fifo

DEAD_PID = 999_999_999


def test_fifo_detection(tmp_path):
    fifo_path = tmp_path / "fifo"
    os.mkfifo(fifo_path)
    assert is_fifo(fifo_path) is True

    file_path = tmp_path / "regular"
    file_path.write_text("not a fifo")
    assert is_fifo(file_path) is False

    assert is_fifo("/nonexistent/path") is False


class TestPipeManager:
    def test_creates_fifo(self, tmp_path):
        path = tmp_path / "rng"
        pm = PipeManager(path)
        assert pm.ensure() == path
        assert stat.S_ISFIFO(os.stat(path).st_mode)
        assert pm.created
        pm.teardown()
        assert not path.exists()

    def test_reuses_existing_fifo(self, tmp_path):
        path = tmp_path / "rng"
        os.mkfifo(path)
        pm = PipeManager(path)
        pm.ensure()
        assert is_fifo(path)
        assert not pm.created
        pm.teardown()

    def test_rejects_regular_file(self, tmp_path):
        path = tmp_path / "rng"
        path.write_bytes(b"data")
        with pytest.raises(PipeCreationFailure):
            PipeManager(path).ensure()
        assert path.read_bytes() == b"data"
        assert not (tmp_path / "rng.lock").exists()

    def test_missing_directory(self, tmp_path):
        with pytest.raises(PipeCreationFailure):
            PipeManager(tmp_path / "missing" / "rng", lock=False).ensure()

    def test_teardown_idempotent(self, tmp_path):
        pm = PipeManager(tmp_path / "rng")
        pm.teardown()
        pm.ensure()
        pm.teardown()
        pm.teardown()
        assert not (tmp_path / "rng").exists()

    def test_teardown_leaves_non_fifo(self, tmp_path):
        path = tmp_path / "rng"
        pm = PipeManager(path, lock=False)
        pm.ensure()
        path.unlink()
        path.write_text("someone else's file")
        pm.teardown()
        assert path.read_text() == "someone else's file"

    def test_context_manager(self, tmp_path):
        path = tmp_path / "rng"
        with PipeManager(path) as p:
            assert is_fifo(p)
            assert (tmp_path / "rng.lock").exists()
        assert not path.exists()
        assert not (tmp_path / "rng.lock").exists()


class TestLocking:
    def test_second_owner_rejected(self, tmp_path):
        path = tmp_path / "rng"
        first = PipeManager(path)
        first.ensure()
        with pytest.raises(PipeCreationFailure, match="held by"):
            PipeManager(path).ensure()
        first.teardown()

        second = PipeManager(path)
        second.ensure()
        second.teardown()

    def test_lock_records_pid(self, tmp_path):
        lock = PipeLock(tmp_path / "x.lock")
        lock.acquire()
        assert (tmp_path / "x.lock").read_text().strip() == str(os.getpid())
        lock.release()
        assert not (tmp_path / "x.lock").exists()

    def test_stale_lock_reclaimed(self, tmp_path):
        (tmp_path / "rng.lock").write_text(f"{DEAD_PID}\n")
        pm = PipeManager(tmp_path / "rng")
        pm.ensure()
        assert (tmp_path / "rng.lock").read_text().strip() == str(os.getpid())
        pm.teardown()

    def test_garbage_lock_reclaimed(self, tmp_path):
        (tmp_path / "rng.lock").write_text("not a pid")
        pm = PipeManager(tmp_path / "rng")
        pm.ensure()
        pm.teardown()

    def test_lock_appears_with_pid(self, tmp_path, monkeypatch):
        linked = []
        real_link = os.link

        def spy(src, dst):
            linked.append((Path(src).read_text(), Path(dst).exists()))
            return real_link(src, dst)

        monkeypatch.setattr(os, "link", spy)
        lock = PipeLock(tmp_path / "x.lock")
        lock.acquire()
        assert linked == [(f"{os.getpid()}\n", False)]
        assert sorted(p.name for p in tmp_path.iterdir()) == ["x.lock"]
        lock.release()

    def test_rejected_lock_leaves_no_temp_file(self, tmp_path):
        (tmp_path / "rng.lock").write_text(f"{os.getppid()}\n")
        with pytest.raises(PipeCreationFailure, match="held by"):
            PipeManager(tmp_path / "rng").ensure()
        assert sorted(p.name for p in tmp_path.iterdir()) == ["rng.lock"]
