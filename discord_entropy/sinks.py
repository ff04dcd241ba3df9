"""Byte-stream destinations: plain files, stdout and named pipes."""

from __future__ import annotations

import errno
import logging
import os
import select
import threading
from abc import ABC, abstractmethod

import click

from discord_entropy.errors import SinkClosed

log = logging.getLogger(__name__)


class StreamSink(ABC):
    """A destination that accepts an ordered byte sequence.

    ``open`` and ``write`` take the owning task's cancellation event and
    return ``False`` if it was set before they could finish.
    """

    name: str = "sink"

    @abstractmethod
    def open(self, cancel: threading.Event) -> bool:
        ...

    @abstractmethod
    def write(self, data: bytes, cancel: threading.Event) -> bool:
        ...

    @abstractmethod
    def close(self) -> None:
        ...

    def abort(self) -> None:
        """Force the sink shut from another thread."""
        self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


class FileSink(StreamSink):
    """Regular file, or stdout when *path* is ``-``."""

    def __init__(self, path: str) -> None:
        self.path = path
        self.name = "stdout" if path == "-" else path
        self._fh = None

    def open(self, cancel: threading.Event) -> bool:
        if cancel.is_set():
            return False
        self._fh = click.open_file(self.path, "wb")
        return True

    def write(self, data: bytes, cancel: threading.Event) -> bool:
        if cancel.is_set():
            return False
        try:
            self._fh.write(data)
            self._fh.flush()
        except BrokenPipeError as e:
            raise SinkClosed(f"{self.name}: reader closed") from e
        return True

    def close(self) -> None:
        fh, self._fh = self._fh, None
        if fh is None:
            return
        try:
            fh.close()
        except BrokenPipeError:
            pass


class PipeSink(StreamSink):
    """Writer end of a named pipe.

    The FIFO is opened non-blocking so that waiting for a reader and waiting
    for pipe capacity both poll the cancellation event every
    *poll_interval* seconds.
    """

    def __init__(self, path: str, poll_interval: float = 0.1) -> None:
        self.path = str(path)
        self.name = self.path
        self.poll_interval = poll_interval
        self._fd: int | None = None
        self._lock = threading.Lock()

    def open(self, cancel: threading.Event) -> bool:
        while not cancel.is_set():
            try:
                fd = os.open(self.path, os.O_WRONLY | os.O_NONBLOCK)
            except OSError as e:
                # ENXIO: no reader attached yet
                if e.errno != errno.ENXIO:
                    raise
                cancel.wait(self.poll_interval)
                continue
            with self._lock:
                self._fd = fd
            log.debug("reader attached to %s", self.path)
            return True
        return False

    def write(self, data: bytes, cancel: threading.Event) -> bool:
        view = memoryview(data)
        while view:
            if cancel.is_set():
                return False
            with self._lock:
                fd = self._fd
                if fd is None:
                    raise SinkClosed(f"{self.path}: sink aborted")
                _, writable, _ = select.select([], [fd], [], self.poll_interval)
                if not writable:
                    continue
                try:
                    n = os.write(fd, view)
                except BlockingIOError:
                    continue
                except BrokenPipeError as e:
                    raise SinkClosed(f"{self.path}: reader closed") from e
            view = view[n:]
        return True

    def close(self) -> None:
        with self._lock:
            fd, self._fd = self._fd, None
        if fd is not None:
            os.close(fd)

    def abort(self) -> None:
        if not self._lock.acquire(timeout=max(self.poll_interval * 10, 1.0)):
            log.error("could not abort %s: writer holds the descriptor", self.path)
            return
        try:
            fd, self._fd = self._fd, None
        finally:
            self._lock.release()
        if fd is not None:
            os.close(fd)
