"""Exception taxonomy for discord-entropy."""


class DiscordEntropyError(Exception):
    """Base class for all errors raised by this package."""


class CollectionFailure(DiscordEntropyError):
    """A collector could not produce a content blob."""


class PipeCreationFailure(DiscordEntropyError):
    """The named pipe could not be created or claimed."""


class WriterTerminationFailure(DiscordEntropyError):
    """A cancelled writer did not exit, even after forced termination."""


class SinkClosed(DiscordEntropyError):
    """The reader on the other end of a sink went away."""
