"""Event channel against a local relay speaking the smee.io protocol."""

import json
from collections.abc import AsyncIterator

import pytest
from aiohttp import test_utils, web

from jmap_conformance.events import EventChannel

STATE_CHANGE = {
    "@type": "StateChange",
    "changed": {"acc1": {"Email": "s2", "Mailbox": "s7"}},
}


async def new_channel(request: web.Request) -> web.Response:
    return web.Response(status=307, headers={"Location": "/chan-1"})


async def stream(request: web.Request) -> web.StreamResponse:
    response = web.StreamResponse(headers={"Content-Type": "text/event-stream"})
    await response.prepare(request)
    await response.write(b"event: ready\ndata: {}\n\n")
    await response.write(b"event: ping\ndata: {}\n\n")
    envelope = {"body": STATE_CHANGE, "timestamp": 1700000000000}
    await response.write(f"data: {json.dumps(envelope)}\n\n".encode())
    await response.write(b"data: not json\n\n")
    return response


async def new_noisy_channel(request: web.Request) -> web.Response:
    return web.Response(status=307, headers={"Location": "/noisy/chan"})


async def noisy_stream(request: web.Request) -> web.StreamResponse:
    response = web.StreamResponse(headers={"Content-Type": "text/event-stream"})
    await response.prepare(request)
    await response.write(b"event: ready\ndata: {}\n\n")
    await response.write(b"data: " + b"[" * 200000 + b"\n\n")
    await response.write(b'data: {"body": 1}\n\n')
    return response


@pytest.fixture
async def relay_url() -> AsyncIterator[str]:
    app = web.Application()
    app.router.add_get("/new", new_channel)
    app.router.add_get("/chan-1", stream)
    app.router.add_get("/noisy/new", new_noisy_channel)
    app.router.add_get("/noisy/chan", noisy_stream)
    async with test_utils.TestServer(app) as server:
        yield str(server.make_url(""))


async def test_receives_forwarded_payloads(relay_url: str) -> None:
    """Control frames are dropped and forwarded payloads are unwrapped."""
    channel = await EventChannel.connect(relay_url, ready_timeout=2, poll_interval=0.01)
    assert channel is not None
    try:
        assert channel.url.endswith("/chan-1")
        assert channel.ready.is_set()

        event = await channel.wait_for_match(
            lambda e: e.get("@type") == "StateChange", timeout=2
        )

        assert event == STATE_CHANGE
        assert await channel.wait_for_count(1, timeout=0.1) == [STATE_CHANGE]
    finally:
        await channel.close()


async def test_relay_without_channels(relay_url: str) -> None:
    """A relay that cannot hand out a channel yields none."""
    channel = await EventChannel.connect(
        relay_url.rstrip("/") + "/missing", ready_timeout=2, poll_interval=0.01
    )
    assert channel is None


async def test_undecodable_frame_does_not_stop_reader(relay_url: str) -> None:
    """Frames after one that cannot be decoded are still delivered."""
    channel = await EventChannel.connect(
        relay_url.rstrip("/") + "/noisy", ready_timeout=2, poll_interval=0.01
    )
    assert channel is not None
    try:
        assert await channel.wait_for_count(1, timeout=2) == [1]
    finally:
        await channel.close()
