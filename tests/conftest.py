"""Pytest configuration and fixtures."""

import asyncio
import os
import sys
import tempfile
from datetime import datetime, timezone
from unittest.mock import Mock, AsyncMock

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from domains.reminders.store import DeliveryStore
from domains.reminders.wake import WakeSignal


# Monday
REFERENCE_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class RecordingNotifier:
    """Notifier double that records targets and can fail on demand."""

    def __init__(self, fail_times: int = 0, delay: float = 0.0):
        self.fail_times = fail_times
        self.delay = delay
        self.delivered: list[dict] = []
        self.delivered_at: list[datetime] = []
        self.attempts = 0
        self.started = asyncio.Event()
        self.event = asyncio.Event()

    async def deliver(self, target: dict) -> None:
        self.attempts += 1
        self.started.set()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_times > 0:
            self.fail_times -= 1
            raise ConnectionError("Simulated delivery failure")
        self.delivered.append(target)
        self.delivered_at.append(datetime.now(timezone.utc))
        self.event.set()

    async def wait_for_deliveries(self, count: int, timeout: float = 5.0) -> None:
        """Block until at least count deliveries have succeeded."""
        async def _wait():
            while len(self.delivered) < count:
                self.event.clear()
                await self.event.wait()
        await asyncio.wait_for(_wait(), timeout)


@pytest.fixture
def temp_db_path():
    """Unique temp database path, removed after the test."""
    fd, temp_path = tempfile.mkstemp(suffix="_deliveries_test.db")
    os.close(fd)
    os.unlink(temp_path)  # Let the store create it

    yield temp_path

    for suffix in ["", "-wal", "-shm"]:
        try:
            os.unlink(temp_path + suffix)
        except FileNotFoundError:
            pass


@pytest.fixture
def store(temp_db_path):
    """Open delivery store on a fresh database."""
    delivery_store = DeliveryStore(temp_db_path).open()
    yield delivery_store
    delivery_store.close()


@pytest.fixture
def wake_signal():
    return WakeSignal(capacity=2)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def mock_message():
    """Create a mock Discord command message."""
    message = Mock()
    message.id = 1111
    message.content = "/remindme in 10 minutes"
    message.channel = Mock(id=2222)
    message.author = Mock(id=3333)
    return message


@pytest.fixture
def mock_discord_bot():
    """Create a mock Discord bot."""
    channel = Mock(id=2222, send=AsyncMock())
    bot = Mock()
    bot.get_channel = Mock(return_value=channel)
    bot.fetch_channel = AsyncMock(return_value=channel)
    bot.user = Mock(name="TestBot#1234")
    return bot
