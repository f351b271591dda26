"""Client for a smee.io style webhook relay.

The relay hands out a public URL; anything POSTed to it is forwarded to
subscribers of the channel's server-sent event stream. Push checks give that
URL to the server under test and observe the notifications here.
"""

import asyncio
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import aiohttp
from yarl import URL

log = logging.getLogger(__name__)

READY_TIMEOUT = 5.0
POLL_INTERVAL = 0.2

CONTROL_EVENTS = frozenset({"ready", "ping"})


@dataclass(kw_only=True)
class SseParser:
    """Incremental parser turning stream lines into ``(event, data)`` frames."""

    event: str = ""
    data: list[str] = field(default_factory=list)
    pending: bytearray = field(default_factory=bytearray, repr=False)

    def feed_chunk(self, chunk: bytes) -> list[tuple[str, str]]:
        """Consume raw stream bytes; return the frames they complete.

        Lines may span chunks and have no length limit.
        """
        self.pending += chunk
        *lines, rest = self.pending.split(b"\n")
        self.pending = bytearray(rest)
        frames = []
        for raw in lines:
            frame = self.feed(raw.decode("utf-8", errors="replace").rstrip("\r"))
            if frame is not None:
                frames.append(frame)
        return frames

    def feed(self, line: str) -> tuple[str, str] | None:
        """Consume one line; return a frame when a blank line completes it."""
        if line.startswith("event:"):
            self.event = line[6:].strip()
        elif line.startswith("data:"):
            self.data.append(line[5:].strip())
        elif line == "":
            frame = (self.event, "\n".join(self.data))
            self.event = ""
            self.data = []
            if frame != ("", ""):
                return frame
        return None


def unwrap(data: str) -> Any | None:
    """Decode a relay frame and strip the relay's envelope.

    Returns ``None`` for frames that cannot be decoded. An envelope whose
    ``body`` is null is kept whole.
    """
    try:
        payload = json.loads(data)
    except (ValueError, RecursionError):
        return None
    if isinstance(payload, dict) and payload.get("body") is not None:
        return payload["body"]
    return payload


async def create_channel_url(http: aiohttp.ClientSession, relay_url: str) -> str | None:
    """Ask the relay for a fresh channel URL, or ``None`` if it is unreachable."""
    try:
        async with http.get(
            f"{relay_url.rstrip('/')}/new", allow_redirects=False
        ) as response:
            if location := response.headers.get("Location"):
                return str(response.url.join(URL(location)))
            if response.ok:
                return str(response.url)
            log.warning("Event relay refused channel creation: %s", response.status)
    except (aiohttp.ClientError, TimeoutError) as exc:
        log.warning("Event relay unreachable: %s", exc)
    return None


@dataclass(kw_only=True)
class EventChannel:
    """A connected relay channel with an append-only event buffer.

    The background reader is the only producer. Consumers never remove
    events; they scan snapshots of the buffer.
    """

    url: str
    http: aiohttp.ClientSession = field(repr=False)
    poll_interval: float = POLL_INTERVAL
    events: list[Any] = field(default_factory=list)
    ready: asyncio.Event = field(default_factory=asyncio.Event, repr=False)
    _reader: asyncio.Task[None] | None = field(default=None, repr=False)
    _closed: bool = field(default=False, repr=False)

    @classmethod
    async def connect(
        cls,
        relay_url: str,
        ready_timeout: float = READY_TIMEOUT,
        poll_interval: float = POLL_INTERVAL,
    ) -> "EventChannel | None":
        """Open a channel and start streaming.

        Returns ``None`` when the relay cannot hand out a channel. Waiting for
        the relay's ``ready`` frame is bounded by ``ready_timeout``; on
        timeout the channel is returned anyway.
        """
        http = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=None, sock_connect=30)
        )
        url = await create_channel_url(http, relay_url)
        if url is None:
            await http.close()
            return None

        channel = cls(url=url, http=http, poll_interval=poll_interval)
        channel._reader = asyncio.create_task(channel._read_stream())
        try:
            await asyncio.wait_for(channel.ready.wait(), ready_timeout)
        except TimeoutError:
            log.warning(
                "Event relay did not signal ready within %.1fs, continuing", ready_timeout
            )
        log.info("Event channel: %s", url)
        return channel

    async def _read_stream(self) -> None:
        parser = SseParser()
        try:
            async with self.http.get(
                self.url, headers={"Accept": "text/event-stream"}
            ) as response:
                if not response.ok:
                    log.warning("Event stream rejected: HTTP %s", response.status)
                    return
                async for chunk in response.content.iter_any():
                    for frame in parser.feed_chunk(chunk):
                        self._handle_frame(*frame)
        except Exception as exc:
            log.warning("Event stream failed: %r", exc)
        finally:
            # Waiters must not block on a stream that is gone
            self.ready.set()

    def _handle_frame(self, event: str, data: str) -> None:
        if event == "ready":
            self.ready.set()
            return
        if event in CONTROL_EVENTS or not data:
            return
        if (payload := unwrap(data)) is not None:
            log.debug("Event received: %s", data[:500])
            self.events.append(payload)

    async def wait_for_count(self, count: int, timeout: float) -> list[Any]:
        """Wait until at least ``count`` events arrived or ``timeout`` elapsed.

        Returns a snapshot of the buffer either way.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while len(self.events) < count and loop.time() < deadline:
            await asyncio.sleep(min(self.poll_interval, max(deadline - loop.time(), 0)))
        return list(self.events)

    async def wait_for_match(
        self, predicate: Callable[[Any], bool], timeout: float
    ) -> Any | None:
        """Return the first buffered event matching ``predicate``.

        Returns ``None`` if nothing matches before ``timeout`` elapses.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            for event in list(self.events):
                if predicate(event):
                    return event
            remaining = deadline - loop.time()
            if remaining <= 0:
                return None
            await asyncio.sleep(min(self.poll_interval, remaining))

    def clear(self) -> None:
        """Forget all events received so far."""
        self.events.clear()

    async def close(self) -> None:
        """Stop the reader and release the connection. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        try:
            if self._reader is not None:
                self._reader.cancel()
                try:
                    await self._reader
                except asyncio.CancelledError:
                    pass
                except Exception as exc:
                    log.warning("Event reader ended with an error: %r", exc)
        finally:
            await self.http.close()
