"""CLI for discord-entropy."""

from __future__ import annotations

import functools
import signal
import time

import click

from discord_entropy import __version__
from discord_entropy.conditioning import SEED_SIZE, derive_seed, expand, iter_expand
from discord_entropy.errors import DiscordEntropyError
from discord_entropy.log import setup_logging
from discord_entropy.pipe import DEFAULT_PIPE_PATH


@click.group()
@click.version_option(__version__)
@click.option("-v", "--verbose", count=True, help="More diagnostics on stderr (repeatable).")
@click.option("-q", "--quiet", is_flag=True, help="Only report errors.")
def main(verbose: int, quiet: bool) -> None:
    """discord-entropy — random-looking bytes from a Discord channel."""
    setup_logging(-1 if quiet else verbose)


# ────────────────────────────────────────────────────────────
# Shared options
# ────────────────────────────────────────────────────────────


def collector_options(f):
    """Options selecting and configuring the content collector."""
    options = [
        click.option("--token", envvar="DISCORD_TOKEN", default=None,
                     help="Discord token sent as the Authorization header."),
        click.option("--channel-id", envvar="DISCORD_CHANNEL_ID", default=None,
                     help="Channel to read recent messages from."),
        click.option("--limit", default=50, show_default=True, type=click.IntRange(min=1),
                     help="Number of recent messages to fetch."),
        click.option("--workdir", default=None, type=click.Path(file_okay=False),
                     help="Parent directory for the per-cycle download area."),
        click.option("--timeout", "collect_timeout", default=None, type=click.FloatRange(min=0, min_open=True),
                     help="Deadline in seconds for one collection."),
        click.option("--from-file", "from_files", multiple=True, type=click.Path(exists=True, dir_okay=False),
                     help="Use local file content instead of Discord (repeatable)."),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def _fatal(f):
    """Turn package errors into a clean ``Error: ...`` and exit code 1."""

    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except DiscordEntropyError as e:
            raise click.ClickException(str(e)) from e

    return wrapper


def _make_collector(token, channel_id, limit, workdir, from_files, **_):
    if from_files:
        from discord_entropy.collectors import FileCollector

        return FileCollector(list(from_files))

    if not token or not channel_id:
        raise click.UsageError("both --token and --channel-id are required (or use --from-file).")

    from discord_entropy.collectors import DiscordCollector

    return DiscordCollector(token, channel_id, limit=limit, workdir=workdir)


def _collect_seed(seed_hex: str | None, **collector_kw) -> bytes:
    if seed_hex is not None:
        try:
            seed = bytes.fromhex(seed_hex)
        except ValueError:
            seed = b""
        if len(seed) != SEED_SIZE:
            raise click.BadParameter(f"expected {SEED_SIZE * 2} hex characters", param_hint="--seed")
        return seed

    timeout = collector_kw.get("collect_timeout")
    with _make_collector(**collector_kw) as collector:
        deadline = time.monotonic() + timeout if timeout else None
        blob = collector.collect(deadline)
    click.echo(f"collected {len(blob):,} bytes of content from {collector.name}", err=True)
    return derive_seed(blob)


seed_option = click.option("--seed", "seed_hex", default=None,
                           help="Expand this hex seed instead of collecting content.")


# ────────────────────────────────────────────────────────────
# Finite mode
# ────────────────────────────────────────────────────────────


@main.command()
@click.option("--length", "--entropy-size", "length", default=1024, show_default=True,
              type=click.IntRange(min=1), help="Bytes of random data to produce.")
@click.option("--output", "-o", default="-", type=click.Path(dir_okay=False, allow_dash=True),
              help="Output file ('-' = stdout).")
@click.option("--format", "fmt", type=click.Choice(["raw", "hex", "base64"]), default="raw",
              help="Output format.")
@seed_option
@collector_options
@_fatal
def generate(length: int, output: str, fmt: str, seed_hex: str | None, **collector_kw) -> None:
    """Collect content once and write LENGTH random bytes.

    Examples:

        discord-entropy generate --token $T --channel-id 123 --length 4096 -o out.bin

        discord-entropy generate --from-file notes.txt --format hex --length 64
    """
    import base64

    from discord_entropy.sinks import FileSink
    from discord_entropy.writer import WriterOutcome, WriterTask

    seed = _collect_seed(seed_hex, **collector_kw)
    click.echo(f"generating {length} bytes of random data from collected content...", err=True)

    if fmt == "hex":
        stream = (chunk.hex().encode("ascii") for chunk in iter_expand(seed, length))
    elif fmt == "base64":
        # 3-byte aligned chunks concatenate to one valid base64 string
        stream = (base64.b64encode(chunk) for chunk in iter_expand(seed, length, chunk_size=3072))
    else:
        stream = iter_expand(seed, length)

    task = WriterTask(stream, FileSink(output), name="generate")
    outcome = task.run()
    if outcome is WriterOutcome.FAILED:
        raise click.ClickException(f"could not write {output}: {task.error}")
    if outcome is not WriterOutcome.COMPLETED:
        raise click.ClickException(
            f"short write to {output}: {outcome.value} after {task.bytes_written} of {length} bytes"
        )


@main.command()
@seed_option
@collector_options
@_fatal
def seed(seed_hex: str | None, **collector_kw) -> None:
    """Print the hex seed derived from the collected content."""
    click.echo(_collect_seed(seed_hex, **collector_kw).hex())


# ────────────────────────────────────────────────────────────
# Streaming mode — named pipe refreshed on a timer
# ────────────────────────────────────────────────────────────


@main.command()
@click.option("--pipe", "pipe_path", default=DEFAULT_PIPE_PATH, show_default=True,
              help="Path of the named pipe to create.")
@click.option("--interval", default=10.0, show_default=True, type=click.FloatRange(min=0, min_open=True),
              help="Seconds between content refreshes.")
@click.option("--grace", default=2.0, show_default=True, type=click.FloatRange(min=0),
              help="Seconds to wait for a cancelled writer before forcing it.")
@click.option("--cycles", default=0, type=click.IntRange(min=0),
              help="Stop after N refresh cycles (0 = run until interrupted).")
@click.option("--buffer-size", default=4096, show_default=True, type=click.IntRange(min=1),
              help="Write buffer size in bytes.")
@collector_options
@_fatal
def stream(pipe_path: str, interval: float, grace: float, cycles: int, buffer_size: int, **collector_kw) -> None:
    """Serve a continuously refreshed random stream on a named pipe.

    Read from it with:

        head -c 32 /tmp/discordrandom | xxd
    """
    from discord_entropy.daemon import RefreshDaemon
    from discord_entropy.pipe import PipeManager

    def _ready(path) -> None:
        click.echo(f"named pipe created at: {path}", err=True)
        click.echo(f"read from it to receive continuous random data: cat {path}", err=True)
        click.echo("press Ctrl+C to stop the service", err=True)

    collector = _make_collector(**collector_kw)
    daemon = RefreshDaemon(
        collector,
        PipeManager(pipe_path),
        interval=interval,
        grace=grace,
        collect_timeout=collector_kw.get("collect_timeout"),
        buffer_size=buffer_size,
        max_cycles=cycles or None,
        on_ready=_ready,
    )

    def _shutdown(signum, frame):
        daemon.stop()

    old_int = signal.signal(signal.SIGINT, _shutdown)
    old_term = signal.signal(signal.SIGTERM, _shutdown)
    try:
        with collector:
            daemon.run()
    finally:
        signal.signal(signal.SIGINT, old_int)
        signal.signal(signal.SIGTERM, old_term)
    click.echo(f"stopped after {daemon.cycles} cycle(s), {daemon.failures} failed collection(s)", err=True)


# ────────────────────────────────────────────────────────────
# Quality report
# ────────────────────────────────────────────────────────────


@main.command()
@click.option("--bytes", "n_bytes", default=10000, show_default=True, type=click.IntRange(min=1),
              help="Bytes of output to analyse.")
@seed_option
@collector_options
@_fatal
def inspect(n_bytes: int, seed_hex: str | None, **collector_kw) -> None:
    """Generate output and print a randomness quality report."""
    from discord_entropy.stats import full_report

    seed_bytes = _collect_seed(seed_hex, **collector_kw)
    r = full_report(expand(seed_bytes, n_bytes), label=seed_bytes.hex()[:16])

    click.echo(f"Seed:            {seed_bytes.hex()}")
    click.echo(f"  Grade:           {r['grade']} ({r['quality_score']:.1f}/100)")
    click.echo(f"  Samples:         {r['samples']:,}")
    click.echo(f"  Shannon entropy: {r['shannon_entropy']:.4f} / 8.0 bits")
    click.echo(f"  Min-entropy:     {r['min_entropy']:.4f} / 8.0 bits")
    click.echo(f"  Compression:     {r['compression_ratio']:.4f}")
    click.echo(f"  Chi-squared:     {r['chi_squared']['chi2']:.2f} "
               f"({'uniform' if r['chi_squared']['uniform'] else 'non-uniform'})")
    click.echo(f"  Serial corr.:    {r['serial_correlation']:+.6f}")
    click.echo(f"  Unique values:   {r['unique_values']}")
