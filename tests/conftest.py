"""Shared fixtures."""

from collections.abc import Iterator

import pytest
from aioresponses import aioresponses as aioresponses_cls

from jmap_conformance.config import HarnessConfig
from jmap_conformance.context import RunContext
from jmap_conformance.testing.factories import make_config
from jmap_conformance.testing.fakes import FakeJmapClient


@pytest.fixture
def aioresponses() -> Iterator[aioresponses_cls]:
    """Intercept aiohttp requests."""
    with aioresponses_cls() as mocked:
        yield mocked


@pytest.fixture
def config() -> HarnessConfig:
    """Configuration with a primary account only."""
    return make_config()


@pytest.fixture
def fake_client() -> FakeJmapClient:
    """Empty in-memory account with the system mailboxes."""
    return FakeJmapClient()


@pytest.fixture
def ctx(fake_client: FakeJmapClient, config: HarnessConfig) -> RunContext:
    """Run context over the in-memory account."""
    return RunContext(client=fake_client, config=config)  # type: ignore[arg-type]
