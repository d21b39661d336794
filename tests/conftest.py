"""
Configuration for pytest.

Common fixtures for the remindq unit tests: an isolated configuration, a
controllable clock, and an engine wired to in-memory backends.
"""

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from remindq.config.config_loader import reset_config_loader
from remindq.config.settings import Settings
from remindq.delivery.agent_client import AgentClient
from remindq.delivery.dispatcher import DeliveryDispatcher
from remindq.engine import QueueEngine
from remindq.lease.base import LockMode
from remindq.lease.memory_lease import MemoryLease
from remindq.store.base import ReminderStore
from remindq.store.memory_store import MemoryBlobStore

_ENV_VARS = [
    "REMINDQ_CONFIG",
    "REMINDQ_ENV",
    "REMINDQ_STORE_BACKEND",
    "REMINDQ_STORE_NAME",
    "REMINDQ_STORE_PATH",
    "REMINDQ_LOCK_BACKEND",
    "REMINDQ_LOCK_MODE",
    "REMINDQ_TIMEZONE",
    "REMINDQ_DEFAULT_CC",
    "REMINDQ_AGENT_API_BASE",
    "REMINDQ_AGENT_TOKEN",
    "REMINDQ_NOTIFY_PROVIDER",
    "REMINDQ_NOTIFY_CHANNEL",
    "REMINDQ_NOTIFY_TOKEN",
    "REMINDQ_NOTIFY_URL",
    "REMINDQ_OUTPUT_FILE",
    "LOG_LEVEL",
    "REMINDQ_LOG_FORMAT",
]


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path, monkeypatch):
    """Run every test without config files or REMINDQ_* variables in scope."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    reset_config_loader()
    yield
    reset_config_loader()


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 1, 15, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings():
    return Settings(
        store_backend="memory",
        lock_backend="memory",
        store_retry_attempts=1,
        lock_mode=LockMode.AUTO,
        lock_timeout=1.0,
        lock_poll_interval=0.01,
    )


@pytest.fixture
def store():
    return ReminderStore(MemoryBlobStore(), name="reminders")


def _make_agent(handler) -> AgentClient:
    """AgentClient whose HTTP traffic goes to *handler*."""
    return AgentClient(
        api_base="https://agent.test/v1",
        token="secret-token",
        transport=httpx.MockTransport(handler),
    )


def _ok_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"status": "ok"})


@pytest.fixture
def make_agent():
    """Factory for AgentClients backed by an httpx.MockTransport handler."""
    return _make_agent


@pytest.fixture
def dispatcher():
    return DeliveryDispatcher(agent=_make_agent(_ok_handler))


@pytest.fixture
def engine(store, settings, clock, dispatcher):
    return QueueEngine(
        store=store,
        settings=settings,
        lease=MemoryLease(timeout=settings.lock_timeout, poll_interval=settings.lock_poll_interval),
        dispatcher=dispatcher,
        clock=clock,
    )
