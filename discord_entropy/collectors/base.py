"""Abstract base class for content collectors."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod

from discord_entropy.errors import CollectionFailure


class Collector(ABC):
    """Supplies the raw content blob a seed is derived from.

    Implementations raise :class:`CollectionFailure` when no blob can be
    produced. ``deadline`` is an absolute ``time.monotonic()`` timestamp;
    ``None`` means no deadline.
    """

    name: str = "unnamed"
    description: str = ""

    @abstractmethod
    def collect(self, deadline: float | None = None) -> bytes:
        ...

    @staticmethod
    def _remaining(deadline: float | None, default: float | None = None) -> float | None:
        """Seconds left before *deadline*, capped at *default*."""
        if deadline is None:
            return default
        left = deadline - time.monotonic()
        if left <= 0:
            raise CollectionFailure("collection deadline expired")
        return left if default is None else min(left, default)

    def close(self) -> None:
        """Release any resources held by the collector."""

    def __enter__(self) -> Collector:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
