"""Refresh daemon — keeps a named pipe fed while rotating the seed.

Cycle::

    INITIALIZING   ensure FIFO, collect, derive seed, start writer
    STREAMING      wait ``interval`` seconds (or until stopped)
    REFRESHING     collect, derive seed, stop old writer, start new writer
    TERMINATING    stop writer, remove FIFO

The old writer is always reaped before the new one starts, so readers see
end-of-stream at each refresh boundary.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from collections.abc import Callable
from pathlib import Path

from discord_entropy.collectors.base import Collector
from discord_entropy.conditioning import derive_seed, iter_expand
from discord_entropy.errors import CollectionFailure, WriterTerminationFailure
from discord_entropy.pipe import PipeManager
from discord_entropy.sinks import PipeSink
from discord_entropy.writer import WriterTask

log = logging.getLogger(__name__)

DEFAULT_INTERVAL = 10.0


class DaemonState(enum.Enum):
    INITIALIZING = "initializing"
    STREAMING = "streaming"
    REFRESHING = "refreshing"
    TERMINATING = "terminating"


WriterFactory = Callable[[bytes, str], WriterTask]


class RefreshDaemon:
    """Collect → seed → stream into a FIFO, refreshed every *interval* seconds.

    Parameters
    ----------
    collector:
        Source of content blobs.
    pipe:
        Manager of the FIFO the writers stream into.
    interval:
        Seconds between refresh cycles.
    grace:
        Seconds to wait for a cancelled writer before forcing it.
    collect_timeout:
        Deadline, in seconds, handed to each ``collector.collect`` call.
    buffer_size:
        Chunk size of each pipe write.
    max_cycles:
        Stop after this many successful seed installs (``None`` = forever).
    writer_factory:
        ``(seed, pipe_path) -> WriterTask``; defaults to an unbounded chain
        expansion into a :class:`PipeSink`.
    on_ready:
        Called with the FIFO path once it exists.
    """

    def __init__(
        self,
        collector: Collector,
        pipe: PipeManager,
        interval: float = DEFAULT_INTERVAL,
        grace: float = 2.0,
        collect_timeout: float | None = None,
        buffer_size: int = 4096,
        max_cycles: int | None = None,
        writer_factory: WriterFactory | None = None,
        on_ready: Callable[[Path], None] | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.collector = collector
        self.pipe = pipe
        self.interval = interval
        self.grace = grace
        self.collect_timeout = collect_timeout
        self.buffer_size = buffer_size
        self.max_cycles = max_cycles
        self._writer_factory = writer_factory or self._default_writer
        self._on_ready = on_ready

        self.state = DaemonState.INITIALIZING
        self.cycles = 0
        self.failures = 0
        self._writer: WriterTask | None = None
        self._stop = threading.Event()

    # ── public ──

    @property
    def writer(self) -> WriterTask | None:
        return self._writer

    def stop(self) -> None:
        """Request shutdown. Safe to call from a signal handler."""
        self._stop.set()

    def run(self) -> None:
        """Run until :meth:`stop` is called or ``max_cycles`` is reached.

        Raises :class:`PipeCreationFailure` if the FIFO cannot be set up and
        :class:`WriterTerminationFailure` if a writer cannot be reaped.
        """
        self._set_state(DaemonState.INITIALIZING)
        path = self.pipe.ensure()
        try:
            if self._on_ready is not None:
                self._on_ready(path)
            self._refresh()
            while True:
                self._set_state(DaemonState.STREAMING)
                if self._stop.wait(self.interval) or self._done():
                    break
                self._set_state(DaemonState.REFRESHING)
                self._refresh()
        finally:
            self._terminate()

    # ── cycle ──

    def _refresh(self) -> None:
        seed = self._collect_seed()
        if seed is None:
            if self._writer is not None:
                log.info("keeping previous stream until the next refresh")
            return
        self._stop_writer()
        writer = self._writer_factory(seed, str(self.pipe.path))
        writer.start()
        self._writer = writer
        self.cycles += 1
        log.info("cycle %d: streaming seed %s… into %s", self.cycles, seed.hex()[:16], self.pipe.path)

    def _collect_seed(self) -> bytes | None:
        deadline = None
        if self.collect_timeout is not None:
            deadline = time.monotonic() + self.collect_timeout
        try:
            blob = self.collector.collect(deadline)
        except CollectionFailure as e:
            self.failures += 1
            log.warning("collection failed, retrying in %.1fs: %s", self.interval, e)
            return None
        log.debug("collected %d bytes from %s", len(blob), self.collector.name)
        return derive_seed(blob)

    def _stop_writer(self) -> None:
        writer, self._writer = self._writer, None
        if writer is None:
            return
        outcome = writer.stop(self.grace)
        log.debug("%s finished: %s after %d bytes", writer.name, outcome.value, writer.bytes_written)

    def _default_writer(self, seed: bytes, path: str) -> WriterTask:
        stream = iter_expand(seed, chunk_size=self.buffer_size)
        return WriterTask(stream, PipeSink(path), name=f"writer-{self.cycles + 1}", reconnect=True)

    def _done(self) -> bool:
        return self.max_cycles is not None and self.cycles >= self.max_cycles

    def _terminate(self) -> None:
        self._set_state(DaemonState.TERMINATING)
        try:
            self._stop_writer()
        except WriterTerminationFailure:
            log.error("writer could not be reaped; removing pipe anyway")
            raise
        finally:
            self.pipe.teardown()

    def _set_state(self, state: DaemonState) -> None:
        if state is not self.state:
            log.debug("daemon: %s -> %s", self.state.value, state.value)
        self.state = state
