"""Collectors backed by in-memory bytes or local files."""

from __future__ import annotations

import os
from pathlib import Path

from discord_entropy.collectors.base import Collector
from discord_entropy.errors import CollectionFailure


class StaticCollector(Collector):
    """Returns the same blob on every call."""

    name = "static"
    description = "Fixed in-memory content"

    def __init__(self, blob: bytes = b"") -> None:
        self.blob = bytes(blob)

    def collect(self, deadline: float | None = None) -> bytes:
        self._remaining(deadline)
        return self.blob


class FileCollector(Collector):
    """Concatenates the given files, in order, on every call."""

    name = "file"
    description = "Concatenated local files"

    def __init__(self, paths: list[str | os.PathLike]) -> None:
        self.paths = [Path(p) for p in paths]

    def collect(self, deadline: float | None = None) -> bytes:
        blob = bytearray()
        for path in self.paths:
            self._remaining(deadline)
            try:
                blob.extend(path.read_bytes())
            except OSError as e:
                raise CollectionFailure(f"could not read {path}: {e}") from e
        return bytes(blob)
