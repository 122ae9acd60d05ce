"""Wake signal used to cut the delivery worker's sleep short.

The signal carries no payload. Waking up only means "something changed,
look at the store again".

Each listener owns a small buffer of pending notifications (2 by default)
so a burst of submissions while the worker is busy still leaves at least
one wake-up waiting for it. Notifications beyond the buffer are dropped:
the listener is already going to wake.
"""

import asyncio
from enum import Enum
from typing import Optional

from logger import logger
from . import config


class WaitOutcome(Enum):
    """Why WakeListener.wait returned."""
    WOKEN = "woken"          # notify() fired
    TIMEOUT = "timeout"      # Deadline elapsed
    CANCELLED = "cancelled"  # Shutdown requested


class WakeListener:
    """One subscriber of a WakeSignal."""

    def __init__(self, signal: "WakeSignal", capacity: int):
        self._signal = signal
        self._pending: asyncio.Queue[None] = asyncio.Queue(maxsize=capacity)

    @property
    def pending(self) -> int:
        """Notifications received but not yet consumed."""
        return self._pending.qsize()

    def _push(self) -> None:
        try:
            self._pending.put_nowait(None)
        except asyncio.QueueFull:
            pass  # Already has wake-ups queued

    async def wait(self, timeout: Optional[float], shutdown: asyncio.Event) -> WaitOutcome:
        """Wait for a notification, a shutdown request or the timeout.

        Shutdown wins over a pending notification. A notification that
        arrived before the call returns immediately.

        Args:
            timeout: Seconds to wait, or None to wait without a deadline
            shutdown: Event set when the process is stopping

        Returns:
            The WaitOutcome that ended the wait
        """
        if shutdown.is_set():
            return WaitOutcome.CANCELLED
        if not self._pending.empty():
            self._pending.get_nowait()
            return WaitOutcome.WOKEN

        wake_task = asyncio.ensure_future(self._pending.get())
        stop_task = asyncio.ensure_future(shutdown.wait())
        try:
            done, _ = await asyncio.wait(
                {wake_task, stop_task},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for task in (wake_task, stop_task):
                if not task.done():
                    task.cancel()

        if stop_task in done:
            return WaitOutcome.CANCELLED
        if wake_task in done:
            return WaitOutcome.WOKEN
        return WaitOutcome.TIMEOUT

    def close(self) -> None:
        """Stop receiving notifications."""
        self._signal._unsubscribe(self)

    def __enter__(self) -> "WakeListener":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class WakeSignal:
    """Broadcast "re-check" notification for in-process listeners.

    Usage:
        signal = WakeSignal()

        with signal.subscribe() as listener:
            outcome = await listener.wait(timeout=60, shutdown=shutdown_event)

        # Elsewhere, after a successful insert:
        signal.notify()

    notify() must be called from the event loop thread.
    """

    def __init__(self, capacity: Optional[int] = None):
        capacity = config.WAKE_CAPACITY if capacity is None else capacity
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._listeners: list[WakeListener] = []

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self) -> WakeListener:
        """Register a new listener."""
        listener = WakeListener(self, self.capacity)
        self._listeners.append(listener)
        return listener

    def _unsubscribe(self, listener: WakeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def notify(self) -> None:
        """Wake every listener. Never blocks; fine with no listeners."""
        for listener in list(self._listeners):
            listener._push()
        logger.debug(f"Wake signal sent to {len(self._listeners)} listener(s)")
