"""Tests for the event relay channel."""

import asyncio
import logging
from unittest.mock import AsyncMock, Mock

import aiohttp
import pytest
from aioresponses import aioresponses as Aioresponses

from jmap_conformance.events import EventChannel, SseParser, create_channel_url, unwrap


def make_channel(**kwargs: object) -> EventChannel:
    http = Mock(spec=aiohttp.ClientSession)
    http.close = AsyncMock()
    return EventChannel(url="http://relay.test/abc", http=http, poll_interval=0.01, **kwargs)


class TestSseParser:
    """Tests for SseParser."""

    def test_event_and_data(self) -> None:
        """A blank line completes a frame."""
        parser = SseParser()

        assert parser.feed("event: ready") is None
        assert parser.feed("data: {}") is None
        assert parser.feed("") == ("ready", "{}")

    def test_multiline_data(self) -> None:
        """Data lines are joined with newlines."""
        parser = SseParser()
        for line in ("data: a", "data: b"):
            parser.feed(line)

        assert parser.feed("") == ("", "a\nb")

    def test_resets_between_frames(self) -> None:
        """State does not leak into the next frame."""
        parser = SseParser()
        for line in ("event: ping", "data: 1", ""):
            parser.feed(line)
        parser.feed("data: 2")

        assert parser.feed("") == ("", "2")

    def test_chunks_split_mid_line(self) -> None:
        """Lines are reassembled across chunk boundaries."""
        parser = SseParser()

        assert parser.feed_chunk(b"event: rea") == []
        assert parser.feed_chunk(b"dy\r\ndata: {}\r\n") == []
        assert parser.feed_chunk(b"\r\ndata: 1\n\ndata") == [("ready", "{}"), ("", "1")]
        assert parser.pending == bytearray(b"data")

    def test_long_line(self) -> None:
        """A line larger than any read buffer is still one frame."""
        parser = SseParser()
        big = b"x" * 300000

        frames = parser.feed_chunk(b"data: " + big + b"\n\ndata: 2\n\n")

        assert frames == [("", big.decode()), ("", "2")]

    def test_ignores_empty_frames_and_comments(self) -> None:
        """Keep-alive comments and stray blank lines yield nothing."""
        parser = SseParser()

        assert parser.feed(": keep-alive") is None
        assert parser.feed("") is None
        assert parser.feed("id: 7") is None


class TestUnwrap:
    """Tests for unwrap."""

    def test_strips_relay_envelope(self) -> None:
        """The relay's body field holds the forwarded payload."""
        data = '{"body": {"@type": "StateChange"}, "x-forwarded-for": "1.2.3.4"}'
        assert unwrap(data) == {"@type": "StateChange"}

    def test_bare_payload(self) -> None:
        """Payloads without an envelope pass through."""
        assert unwrap('{"@type": "PushVerification"}') == {"@type": "PushVerification"}

    def test_not_json(self) -> None:
        """Frames that are not JSON are dropped."""
        assert unwrap("hello") is None

    def test_deeply_nested(self) -> None:
        """Frames too deep to decode are dropped."""
        assert unwrap("[" * 200000) is None

    def test_null_body_keeps_payload(self) -> None:
        """An envelope with a null body is not stripped."""
        assert unwrap('{"body": null}') == {"body": None}


class TestHandleFrame:
    """Tests for frame dispatch."""

    async def test_control_frames(self) -> None:
        """ready sets the flag; ready and ping are not buffered."""
        channel = make_channel()

        channel._handle_frame("ready", "{}")
        channel._handle_frame("ping", "{}")

        assert channel.ready.is_set()
        assert channel.events == []

    async def test_data_frames_are_buffered(self) -> None:
        """Data frames are unwrapped and appended in order."""
        channel = make_channel()

        channel._handle_frame("", '{"body": {"n": 1}}')
        channel._handle_frame("message", '{"body": {"n": 2}}')
        channel._handle_frame("", "garbage")
        channel._handle_frame("", "")

        assert channel.events == [{"n": 1}, {"n": 2}]


class TestWaiting:
    """Tests for the buffer consumers."""

    async def test_wait_for_count_returns_early(self) -> None:
        """Returns as soon as enough events are buffered."""
        channel = make_channel(events=[{"n": 1}, {"n": 2}])

        events = await channel.wait_for_count(2, timeout=5)

        assert events == [{"n": 1}, {"n": 2}]

    async def test_wait_for_count_times_out_with_snapshot(self) -> None:
        """On timeout the partial buffer is returned."""
        channel = make_channel(events=[{"n": 1}])
        loop = asyncio.get_running_loop()
        start = loop.time()

        events = await channel.wait_for_count(3, timeout=0.05)

        assert events == [{"n": 1}]
        assert loop.time() - start >= 0.05
        events.append({"n": 9})
        assert channel.events == [{"n": 1}]

    async def test_wait_for_match_sees_late_events(self) -> None:
        """Events appended while waiting are found."""
        channel = make_channel()

        async def produce() -> None:
            await asyncio.sleep(0.03)
            channel.events.append({"@type": "StateChange"})

        producer = asyncio.create_task(produce())
        event = await channel.wait_for_match(lambda e: e.get("@type") == "StateChange", 1)
        await producer

        assert event == {"@type": "StateChange"}

    async def test_wait_for_match_timeout(self) -> None:
        """None when nothing matches in time; the buffer is untouched."""
        channel = make_channel(events=[{"@type": "Other"}])

        event = await channel.wait_for_match(lambda e: e.get("@type") == "StateChange", 0.03)

        assert event is None
        assert channel.events == [{"@type": "Other"}]

    async def test_wait_for_match_timeout_is_bounded(self) -> None:
        """A miss returns within one poll interval after the timeout."""
        channel = make_channel()
        channel.poll_interval = 0.05
        loop = asyncio.get_running_loop()
        start = loop.time()

        assert await channel.wait_for_match(lambda e: True, 0.2) is None

        elapsed = loop.time() - start
        assert 0.2 <= elapsed < 0.2 + 0.05 + 0.1

    async def test_wait_for_match_late_event_returns_before_timeout(self) -> None:
        """A match arriving mid-wait returns well before the timeout."""
        channel = make_channel()
        loop = asyncio.get_running_loop()
        loop.call_later(0.05, channel.events.append, {"n": 1})
        start = loop.time()

        event = await channel.wait_for_match(lambda e: e.get("n") == 1, 1)

        assert event == {"n": 1}
        assert loop.time() - start < 0.5

    async def test_clear(self) -> None:
        """clear forgets buffered events."""
        channel = make_channel(events=[{"n": 1}])

        channel.clear()

        assert channel.events == []


class TestClose:
    """Tests for close."""

    async def test_close_is_idempotent(self) -> None:
        """The connection is released once."""
        channel = make_channel()
        channel._reader = asyncio.create_task(asyncio.sleep(60))

        await channel.close()
        await channel.close()

        assert channel._reader.cancelled()
        channel.http.close.assert_awaited_once()

    async def test_close_after_reader_error(self) -> None:
        """A reader that died with an error does not stop the release."""

        async def broken() -> None:
            raise RuntimeError("boom")

        channel = make_channel()
        channel._reader = asyncio.create_task(broken())
        await asyncio.sleep(0)

        await channel.close()

        channel.http.close.assert_awaited_once()


class TestCreateChannelUrl:
    """Tests for create_channel_url."""

    async def test_follows_location(self, aioresponses: Aioresponses) -> None:
        """The redirect target is the channel URL."""
        aioresponses.get("http://relay.test/new", status=307, headers={"Location": "/abc123"})

        async with aiohttp.ClientSession() as http:
            url = await create_channel_url(http, "http://relay.test/")

        assert url == "http://relay.test/abc123"

    async def test_refused(
        self, aioresponses: Aioresponses, caplog: pytest.LogCaptureFixture
    ) -> None:
        """An error status without a redirect yields no channel."""
        aioresponses.get("http://relay.test/new", status=503)

        with caplog.at_level(logging.WARNING):
            async with aiohttp.ClientSession() as http:
                url = await create_channel_url(http, "http://relay.test")

        assert url is None
        assert "refused channel creation: 503" in caplog.text

    async def test_unreachable(self, aioresponses: Aioresponses) -> None:
        """Connection failures yield no channel."""
        aioresponses.get(
            "http://relay.test/new", exception=aiohttp.ClientConnectionError("refused")
        )

        async with aiohttp.ClientSession() as http:
            url = await create_channel_url(http, "http://relay.test")

        assert url is None

    async def test_connect_without_relay(self, aioresponses: Aioresponses) -> None:
        """connect returns None when no channel can be created."""
        aioresponses.get(
            "http://relay.test/new", exception=aiohttp.ClientConnectionError("refused")
        )

        assert await EventChannel.connect("http://relay.test") is None
