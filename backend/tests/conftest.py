"""Shared test fixtures and configuration for backend tests."""
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from burnchat.chat.gateway import Notifier
from burnchat.chat.registry import RoomRegistry
from burnchat.chat.service import ChatService
from burnchat.config import AppConfig, ReaperConfig
from burnchat.main import create_app


class FakeClock:
    """Manually advanced time source (seconds since the epoch)."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class RecordingNotifier(Notifier):
    """Collects published events instead of delivering them."""

    def __init__(self) -> None:
        self.events = []

    async def publish(self, event) -> None:
        self.events.append(event)

    def types(self):
        return [event.type for event in self.events]

    def clear(self) -> None:
        self.events.clear()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    """Default config with the periodic sweep disabled (tests drive it)."""
    return AppConfig(reaper=ReaperConfig(enabled=False))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def registry(config):
    return RoomRegistry(config.rooms, config.presence, config.messages)


@pytest_asyncio.fixture
async def service(registry, notifier, config, clock):
    """ChatService on a fake clock; pending grace timers are cancelled after."""
    svc = ChatService(registry, notifier, config, clock=clock)
    yield svc
    await svc.reaper.stop()


@pytest.fixture
def api_client(config, clock):
    """TestClient for an isolated app instance (own registry, fake clock).

    Used as a context manager so the lifespan runs and every request shares
    one event loop.
    """
    app = create_app(config, clock=clock)
    with TestClient(app) as client:
        yield client
