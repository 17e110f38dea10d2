import os

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# No outbound backend or upstream event stream in tests
os.environ["EVENTS_URL"] = ""
os.environ["BACKEND_URL"] = "http://backend.test"
os.environ["DEFAULT_TARGET_LANGS"] = "vi"

from meetsync.deps import get_engine, get_event_source, get_overlay
from meetsync.main import app
from meetsync.services.engine import ReconciliationEngine
from meetsync.services.event_bus import EventBus
from meetsync.services.overlay_mirror import OverlayMirror
from meetsync.services.subscriptions import SubscriptionManager

from helpers import FakeCommands


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def commands():
    return FakeCommands()


@pytest.fixture
def engine(bus, commands):
    return ReconciliationEngine(bus, commands, source_lang="en", target_langs=["vi"])


@pytest_asyncio.fixture
async def started_engine(engine):
    """Engine with a running meeting whose id is 42."""
    await engine.start_meeting()
    yield engine
    await engine.close()


@pytest.fixture
def overlay(bus):
    return OverlayMirror(SubscriptionManager(bus), max_captions=4)


@pytest.fixture
def api_app(bus, engine, overlay):
    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_overlay] = lambda: overlay
    app.dependency_overrides[get_event_source] = lambda: bus
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def async_client(api_app):
    """Provide an async httpx client for HTTP tests."""
    async with AsyncClient(
        transport=ASGITransport(app=api_app),
        base_url="http://test",
    ) as ac:
        yield ac
