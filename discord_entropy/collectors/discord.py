"""Discord channel collector.

Fetches the most recent messages of a channel, keeps their text, downloads
image attachments and embeds, and concatenates everything into one blob::

    text of every message (one per line, API order)
    || bytes of every downloaded image (sorted URL order)
"""

from __future__ import annotations

import logging
import tempfile
import time
from collections.abc import Callable
from pathlib import Path
from urllib.parse import urlsplit

import httpx

from discord_entropy.collectors.base import Collector
from discord_entropy.errors import CollectionFailure

log = logging.getLogger(__name__)

API_BASE = "https://discord.com/api/v9"
USER_AGENT = "DiscordBot (https://github.com/discord/discord-api-docs)"
IMAGE_EXTENSIONS = frozenset({"png", "jpg", "jpeg", "gif", "webp", "bmp", "tiff", "svg"})
REQUEST_TIMEOUT = 30.0


def url_extension(url: str) -> str:
    """Text after the last dot, with any query string removed."""
    return url.rsplit(".", 1)[-1].split("?", 1)[0]


def is_image_url(url: str) -> bool:
    return url_extension(url) in IMAGE_EXTENSIONS


def extract_text(messages: list[dict]) -> bytes:
    """One line per message; a missing or null ``content`` reads as ``null``."""
    lines = []
    for m in messages:
        content = m.get("content")
        lines.append("null" if content is None else str(content))
    return "".join(f"{line}\n" for line in lines).encode("utf-8")


def extract_media_urls(messages: list[dict]) -> list[str]:
    """Attachment and embed URLs, de-duplicated and sorted."""
    urls: list[str] = []
    for m in messages:
        for att in m.get("attachments") or []:
            urls.append(att.get("url") or "")
        for emb in m.get("embeds") or []:
            urls.append(emb.get("url") or "")
            urls.append((emb.get("thumbnail") or {}).get("url") or "")
            urls.append((emb.get("image") or {}).get("url") or "")
    return sorted({u for u in urls if u})


class DiscordCollector(Collector):
    """Collects recent messages and images from one Discord channel.

    Parameters
    ----------
    token:
        Value sent verbatim in the ``Authorization`` header.
    channel_id:
        Channel to read from.
    limit:
        Number of most recent messages to fetch.
    workdir:
        Parent directory for the per-call download area. ``None`` uses the
        system temp directory. The area is removed once the blob is built.
    client:
        Optional pre-configured ``httpx.Client`` (tests pass one backed by
        ``httpx.MockTransport``).
    """

    name = "discord"
    description = "Recent messages and images from a Discord channel"

    def __init__(
        self,
        token: str,
        channel_id: str,
        limit: int = 50,
        workdir: str | Path | None = None,
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if limit <= 0:
            raise ValueError("limit must be a positive integer")
        self.token = token
        self.channel_id = str(channel_id)
        self.limit = limit
        self.workdir = Path(workdir) if workdir is not None else None
        self._client = client or httpx.Client(follow_redirects=True)
        self._sleep = sleep

    @property
    def messages_url(self) -> str:
        return f"{API_BASE}/channels/{self.channel_id}/messages"

    def collect(self, deadline: float | None = None) -> bytes:
        log.info("fetching messages from channel id: %s", self.channel_id)
        messages = self.fetch_messages(deadline)
        try:
            text = extract_text(messages)
            urls = extract_media_urls(messages)
        except (AttributeError, TypeError) as e:
            raise CollectionFailure(f"malformed message list: {e}") from e
        log.info("found %d text messages and %d media items", len(messages), len(urls))

        blob = bytearray(text)
        try:
            if self.workdir is not None:
                self.workdir.mkdir(parents=True, exist_ok=True)
            with tempfile.TemporaryDirectory(prefix="discord-entropy-", dir=self.workdir) as tmp:
                for path in self.download_images(urls, Path(tmp), deadline):
                    blob.extend(path.read_bytes())
        except OSError as e:
            raise CollectionFailure(f"download area unusable: {e}") from e
        return bytes(blob)

    # ── API ──

    def fetch_messages(self, deadline: float | None = None) -> list[dict]:
        resp = self._get_messages(deadline)
        if resp.status_code == 429:
            retry_after = self._retry_after(resp)
            remaining = self._remaining(deadline)
            if remaining is not None and retry_after > remaining:
                raise CollectionFailure(
                    f"rate limited for {retry_after:.1f}s, past the collection deadline"
                )
            log.warning("rate limited. waiting %.1fs before continuing...", retry_after)
            self._sleep(retry_after)
            resp = self._get_messages(deadline)

        if resp.status_code != 200 or not resp.content:
            raise CollectionFailure(
                f"failed to fetch messages (status: {resp.status_code}). "
                "check your token and channel id."
            )
        try:
            messages = resp.json()
        except ValueError as e:
            raise CollectionFailure(f"malformed message list: {e}") from e
        if not isinstance(messages, list):
            raise CollectionFailure("malformed message list: expected a JSON array")
        log.info("successfully fetched %d messages", len(messages))
        return messages

    def _get_messages(self, deadline: float | None) -> httpx.Response:
        timeout = self._remaining(deadline, REQUEST_TIMEOUT)
        try:
            return self._client.get(
                self.messages_url,
                params={"limit": self.limit},
                headers={"Authorization": self.token, "User-Agent": USER_AGENT},
                timeout=timeout,
            )
        except httpx.HTTPError as e:
            raise CollectionFailure(f"could not reach Discord: {e}") from e

    @staticmethod
    def _retry_after(resp: httpx.Response) -> float:
        try:
            return float(resp.json().get("retry_after", 1))
        except (ValueError, AttributeError, TypeError):
            return 1.0

    # ── media ──

    def download_images(
        self, urls: list[str], dest: Path, deadline: float | None = None
    ) -> list[Path]:
        """Download image URLs into *dest*; failures are logged and skipped."""
        saved: list[Path] = []
        for url in urls:
            if not is_image_url(url):
                log.debug("skipping non-image file: %s (extension: %s)", url, url_extension(url))
                continue
            clean_url = url[:-1] if url.endswith("&") else url
            target = dest / f"{len(saved):04d}_image"
            log.debug("downloading image: %s", clean_url)
            try:
                filename = Path(urlsplit(clean_url).path).name
                if filename:
                    target = dest / f"{len(saved):04d}_{filename}"
                self._download(clean_url, target, deadline)
            except (httpx.HTTPError, httpx.InvalidURL, ValueError, OSError) as e:
                log.warning("failed to download: %s (%s)", clean_url, e)
                target.unlink(missing_ok=True)
                continue
            saved.append(target)
        log.info("downloaded %d images", len(saved))
        return saved

    def _download(self, url: str, target: Path, deadline: float | None) -> None:
        timeout = self._remaining(deadline, REQUEST_TIMEOUT)
        with self._client.stream("GET", url, timeout=timeout) as resp:
            resp.raise_for_status()
            with open(target, "wb") as f:
                for chunk in resp.iter_bytes():
                    self._remaining(deadline)
                    f.write(chunk)

    def close(self) -> None:
        self._client.close()
