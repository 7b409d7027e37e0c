"""Pytest fixtures shared by unit and integration tests.

Provides:
- A controllable monotonic clock for TTL tests
- A store and an already-greeted MailSession wired to it
- A listener bound to a free loopback port
"""

import pytest
import pytest_asyncio

from tmpmail.smtp.listener import SMTPListener
from tmpmail.smtp.session import MailSession
from tmpmail.store.expiring_store import ExpiringStore


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> ExpiringStore:
    """Store with the default 20 minute TTL on a fake clock"""
    return ExpiringStore(ttl_seconds=1200, clock=clock)


@pytest.fixture
def session(store) -> MailSession:
    """Session past the greeting, ready for commands"""
    session = MailSession(store)
    session.start()
    return session


@pytest_asyncio.fixture
async def listener():
    """Listener on 127.0.0.1 with an OS-assigned port and a real-time store"""
    listener = SMTPListener(ExpiringStore(ttl_seconds=60), host="127.0.0.1", port=0)
    await listener.start()
    yield listener
    await listener.stop()
