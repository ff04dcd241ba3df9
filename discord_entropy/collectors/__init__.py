"""Content collectors."""

from discord_entropy.collectors.base import Collector
from discord_entropy.collectors.discord import DiscordCollector
from discord_entropy.collectors.local import FileCollector, StaticCollector

ALL_COLLECTORS: list[type[Collector]] = [
    DiscordCollector,
    FileCollector,
    StaticCollector,
]

__all__ = ["Collector", "DiscordCollector", "FileCollector", "StaticCollector", "ALL_COLLECTORS"]
