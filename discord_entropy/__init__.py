"""
discord-entropy: random-looking bytes from whatever a Discord channel says.

Collects recent messages and images, reduces them to a SHA-256 seed and
stretches the seed with a hash chain — once into a file, or continuously
into a named pipe that is re-seeded on a timer.
"""

__version__ = "0.3.0"
__author__ = "Amenti Labs"

from discord_entropy.collectors.base import Collector
from discord_entropy.conditioning import derive_seed, expand, iter_expand
from discord_entropy.daemon import DaemonState, RefreshDaemon
from discord_entropy.errors import (
    CollectionFailure,
    DiscordEntropyError,
    PipeCreationFailure,
    WriterTerminationFailure,
)
from discord_entropy.pipe import PipeManager
from discord_entropy.writer import WriterOutcome, WriterTask

__all__ = [
    "Collector",
    "CollectionFailure",
    "DaemonState",
    "DiscordEntropyError",
    "PipeCreationFailure",
    "PipeManager",
    "RefreshDaemon",
    "WriterOutcome",
    "WriterTask",
    "WriterTerminationFailure",
    "derive_seed",
    "expand",
    "iter_expand",
    "__version__",
]
