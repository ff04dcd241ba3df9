"""Tests for sinks and the writer task."""

import os
import threading
import time

import pytest

from discord_entropy.conditioning import derive_seed, expand, iter_expand
from discord_entropy.errors import WriterTerminationFailure
from discord_entropy.sinks import FileSink, PipeSink, StreamSink
from discord_entropy.writer import WriterOutcome, WriterTask


class StuckSink(StreamSink):
    """Ignores cancellation until released."""

    name = "stuck"

    def __init__(self):
        self.release = threading.Event()
        self.entered = threading.Event()
        self.aborted = False

    def open(self, cancel):
        return True

    def write(self, data, cancel):
        self.entered.set()
        self.release.wait()
        return True

    def close(self):
        pass

    def abort(self):
        self.aborted = True


def _read_fifo(path, n, out):
    with open(path, "rb") as f:
        out.append(f.read(n))


class TestFileSink:
    def test_writes_exact_length(self, tmp_path):
        seed = derive_seed(b"file")
        out = tmp_path / "out.bin"
        task = WriterTask(iter_expand(seed, 1000), FileSink(str(out)))
        assert task.run() is WriterOutcome.COMPLETED
        assert out.read_bytes() == expand(seed, 1000)
        assert task.bytes_written == 1000

    def test_cancel_before_open(self, tmp_path):
        out = tmp_path / "out.bin"
        task = WriterTask(iter_expand(derive_seed(b""), 10), FileSink(str(out)))
        task.cancel()
        assert task.run() is WriterOutcome.CANCELLED
        assert not out.exists()

    def test_write_failure_is_reported(self, tmp_path):
        task = WriterTask(iter_expand(derive_seed(b""), 10), FileSink(str(tmp_path / "no" / "dir.bin")))
        assert task.run() is WriterOutcome.FAILED
        assert isinstance(task.error, OSError)


class TestPipeSink:
    def test_reader_receives_stream(self, tmp_path):
        path = tmp_path / "fifo"
        os.mkfifo(path)
        seed = derive_seed(b"pipe")
        got = []
        reader = threading.Thread(target=_read_fifo, args=(path, 200, got))
        reader.start()

        task = WriterTask(iter_expand(seed, chunk_size=64), PipeSink(str(path), poll_interval=0.01))
        task.start()
        reader.join(5)
        assert got == [expand(seed, 200)]

        # reader closed: the task must end on its own, cleanly
        assert task.join(5)
        assert task.outcome is WriterOutcome.READER_CLOSED

    def test_reconnect_serves_next_reader(self, tmp_path):
        path = tmp_path / "fifo"
        os.mkfifo(path)
        seed = derive_seed(b"pipe")
        first, second = [], []
        task = WriterTask(iter_expand(seed, chunk_size=64), PipeSink(str(path), poll_interval=0.01),
                          reconnect=True)
        task.start()
        _read_fifo(path, 200, first)

        deadline = time.monotonic() + 5
        while task.reconnects == 0 and time.monotonic() < deadline:
            time.sleep(0.01)
        assert task.reconnects == 1
        assert task.alive

        _read_fifo(path, 64, second)
        assert task.stop(grace=1.0) is WriterOutcome.CANCELLED

        # the second reader continues the stream; nothing is replayed
        full = expand(seed, 1 << 20)
        assert first == [full[:200]]
        assert full.index(second[0]) >= 200

    def test_cancel_while_waiting_for_reader(self, tmp_path):
        path = tmp_path / "fifo"
        os.mkfifo(path)
        task = WriterTask(iter_expand(derive_seed(b"")), PipeSink(str(path), poll_interval=0.01))
        task.start()
        time.sleep(0.05)
        assert task.alive
        assert task.stop(grace=1.0) is WriterOutcome.CANCELLED
        assert not task.alive

    def test_cancel_while_pipe_full(self, tmp_path):
        path = tmp_path / "fifo"
        os.mkfifo(path)
        # a reader that never reads keeps the pipe open and full
        rfd = os.open(path, os.O_RDONLY | os.O_NONBLOCK)
        try:
            task = WriterTask(iter_expand(derive_seed(b"")), PipeSink(str(path), poll_interval=0.01))
            task.start()
            time.sleep(0.2)
            assert task.stop(grace=1.0) is WriterOutcome.CANCELLED
            assert task.bytes_written > 0
        finally:
            os.close(rfd)


class TestWriterTask:
    def test_start_twice(self, tmp_path):
        task = WriterTask(iter([]), FileSink(str(tmp_path / "x")))
        task.start()
        with pytest.raises(RuntimeError):
            task.start()
        task.stop()

    def test_stop_unstarted(self, tmp_path):
        task = WriterTask(iter([]), FileSink(str(tmp_path / "x")))
        assert task.stop() is WriterOutcome.PENDING

    def test_escalation(self):
        sink = StuckSink()
        task = WriterTask(iter([b"x"] * 3), sink)
        task.start()
        assert sink.entered.wait(1)
        with pytest.raises(WriterTerminationFailure):
            task.stop(grace=0.05)
        assert sink.aborted
        sink.release.set()
        assert task.join(1)
