"""Named pipe (FIFO) lifecycle and single-owner locking."""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path

from discord_entropy.errors import PipeCreationFailure

log = logging.getLogger(__name__)

DEFAULT_PIPE_PATH = "/tmp/discordrandom"


def is_fifo(path: str | os.PathLike) -> bool:
    try:
        return stat.S_ISFIFO(os.stat(path).st_mode)
    except OSError:
        return False


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class PipeLock:
    """Lock file holding the owner's PID.

    The PID is written to a private temp file first and then hard-linked
    into place, so the lock path never exists without its owner. A lock
    left behind by a dead process is reclaimed.
    """

    def __init__(self, path: str | os.PathLike) -> None:
        self.path = Path(path)
        self.held = False

    def acquire(self) -> None:
        tmp = self.path.with_name(f"{self.path.name}.{os.getpid()}.tmp")
        try:
            tmp.write_text(f"{os.getpid()}\n")
        except OSError as e:
            raise PipeCreationFailure(f"could not create lock {self.path}: {e}") from e
        try:
            for _ in range(2):
                try:
                    os.link(tmp, self.path)
                except FileExistsError:
                    owner = self._owner()
                    if owner is not None and _pid_alive(owner):
                        raise PipeCreationFailure(
                            f"{self.path} is held by running process {owner}"
                        ) from None
                    log.warning("reclaiming stale lock %s (pid %s)", self.path, owner)
                    self.path.unlink(missing_ok=True)
                    continue
                except OSError as e:
                    raise PipeCreationFailure(f"could not create lock {self.path}: {e}") from e
                self.held = True
                return
            raise PipeCreationFailure(f"could not acquire lock {self.path}")
        finally:
            tmp.unlink(missing_ok=True)

    def release(self) -> None:
        if not self.held:
            return
        self.held = False
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

    def _owner(self) -> int | None:
        try:
            return int(self.path.read_text().strip())
        except (OSError, ValueError):
            return None


class PipeManager:
    """Owns one persistent FIFO at a well-known path.

    Usage::

        with PipeManager("/tmp/discordrandom") as path:
            ...  # FIFO exists here
        # FIFO and lock removed
    """

    def __init__(self, path: str | os.PathLike = DEFAULT_PIPE_PATH, lock: bool = True) -> None:
        self.path = Path(path)
        self._lock = PipeLock(f"{self.path}.lock") if lock else None
        self.created = False

    def ensure(self) -> Path:
        """Create the FIFO if absent; reuse an existing FIFO."""
        if self._lock is not None:
            self._lock.acquire()
        try:
            self._ensure_fifo()
        except PipeCreationFailure:
            if self._lock is not None:
                self._lock.release()
            raise
        return self.path

    def _ensure_fifo(self) -> None:
        if os.path.lexists(self.path):
            if not is_fifo(self.path):
                raise PipeCreationFailure(f"{self.path} exists and is not a FIFO")
            log.info("reusing existing FIFO %s", self.path)
            return
        try:
            os.mkfifo(self.path)
        except OSError as e:
            raise PipeCreationFailure(f"could not create FIFO at {self.path}: {e}") from e
        self.created = True
        log.info("created FIFO %s", self.path)

    def teardown(self) -> None:
        """Remove the FIFO and release the lock. Safe to call repeatedly."""
        if is_fifo(self.path):
            try:
                self.path.unlink()
                log.info("removed FIFO %s", self.path)
            except FileNotFoundError:
                pass
        if self._lock is not None:
            self._lock.release()

    def __enter__(self) -> Path:
        return self.ensure()

    def __exit__(self, *exc) -> None:
        self.teardown()
