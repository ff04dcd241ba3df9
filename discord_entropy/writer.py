"""WriterTask — drives a byte stream into a sink until done or cancelled."""

from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Iterable

from discord_entropy.errors import SinkClosed, WriterTerminationFailure
from discord_entropy.sinks import StreamSink

log = logging.getLogger(__name__)


class WriterOutcome(enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    READER_CLOSED = "reader_closed"
    FAILED = "failed"


class WriterTask:
    """Structured handle for a single writer.

    The task owns its cancellation event and, once started, its thread.
    ``stop()`` is the only supported way to tear a started task down: it
    cancels, joins, and escalates to ``sink.abort()`` if the thread does not
    exit within the grace period.

    Usage::

        task = WriterTask(iter_expand(seed), PipeSink(path))
        task.start()
        ...
        task.stop(grace=2.0)
    """

    def __init__(
        self,
        stream: Iterable[bytes],
        sink: StreamSink,
        name: str | None = None,
        reconnect: bool = False,
    ) -> None:
        self.stream = iter(stream)
        self.sink = sink
        self.name = name or f"writer:{sink.name}"
        self.outcome = WriterOutcome.PENDING
        self.bytes_written = 0
        self.reconnect = reconnect
        self.reconnects = 0
        self.error: BaseException | None = None
        self._cancel = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    # ── execution ──

    def run(self) -> WriterOutcome:
        """Run to completion in the calling thread and return the outcome."""
        self.outcome = WriterOutcome.RUNNING
        try:
            self.outcome = self._pump()
        except SinkClosed as e:
            log.info("%s: %s", self.name, e)
            self.outcome = WriterOutcome.READER_CLOSED
        except OSError as e:
            log.warning("%s failed: %s", self.name, e)
            self.error = e
            self.outcome = WriterOutcome.FAILED
        finally:
            try:
                self.sink.close()
            except OSError as e:
                log.debug("%s: close failed: %s", self.name, e)
        return self.outcome

    def _pump(self) -> WriterOutcome:
        while True:
            if not self.sink.open(self._cancel):
                return WriterOutcome.CANCELLED
            try:
                for chunk in self.stream:
                    if not self.sink.write(chunk, self._cancel):
                        return WriterOutcome.CANCELLED
                    self.bytes_written += len(chunk)
                return WriterOutcome.COMPLETED
            except SinkClosed as e:
                if not self.reconnect:
                    raise
                # the stream carries on where it stopped; no bytes are replayed
                log.info("%s: %s; waiting for the next reader", self.name, e)
                self.sink.close()
                self.reconnects += 1

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError(f"{self.name} already started")
        self._thread = threading.Thread(target=self.run, name=self.name, daemon=True)
        self._thread.start()

    # ── teardown ──

    def cancel(self) -> None:
        self._cancel.set()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the thread; return True once it has exited."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def stop(self, grace: float = 2.0) -> WriterOutcome:
        """Cancel and reap the task, forcing the sink shut after *grace* seconds."""
        self.cancel()
        if self.join(grace):
            return self.outcome

        log.warning("%s ignored cancellation for %.1fs; forcing sink shut", self.name, grace)
        self.sink.abort()
        if self.join(grace):
            return self.outcome
        raise WriterTerminationFailure(f"{self.name} still alive after forced termination")

    def __repr__(self) -> str:
        return f"<WriterTask name={self.name!r} outcome={self.outcome.value} bytes={self.bytes_written}>"
