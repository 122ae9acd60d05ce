"""Background delivery worker for scheduled reminders.

States:
- DRAINING: Deliver everything already due, then work out how long to sleep
- IDLE_WAIT: Sleep until the next due time, a wake signal, or shutdown
- STOPPED: Shutdown requested, loop exited

Transitions:
- DRAINING → IDLE_WAIT: After the due scan and the earliest-delivery lookup
- IDLE_WAIT → DRAINING: On timeout or wake signal
- IDLE_WAIT → STOPPED: On shutdown

Nothing is remembered between iterations: the next due time is read from
the store again after every wake-up. A delivery is only removed after the
notifier accepts it, so a failing notifier means a retry, never a loss.
"""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from logger import logger
from . import config
from .notifier import Notifier
from .store import DeliveryStore, StoreError
from .wake import WakeSignal, WaitOutcome


class WorkerState(Enum):
    """Delivery worker states."""
    DRAINING = "draining"
    IDLE_WAIT = "idle_wait"
    STOPPED = "stopped"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeliveryWorker:
    """Single long-lived task that sends reminders when they fall due.

    Usage:
        worker = DeliveryWorker(store, notifier, wake_signal, shutdown_event)
        worker.start()
        ...
        await worker.stop()
    """

    def __init__(
        self,
        store: DeliveryStore,
        notifier: Notifier,
        wake_signal: WakeSignal,
        shutdown: Optional[asyncio.Event] = None,
        *,
        fallback_ceiling: Optional[float] = None,
        store_retry_delay: Optional[float] = None,
        notifier_retry_delay: Optional[float] = None,
        clock: Callable[[], datetime] = _utcnow
    ):
        """Initialize the worker.

        Args:
            store: Pending deliveries
            notifier: Sends a delivery's target when due
            wake_signal: Fired by the submission path after each insert
            shutdown: Set to stop the worker (created if not given)
            fallback_ceiling: Longest sleep in seconds (default from config)
            store_retry_delay: Sleep after a store read error (default from config)
            notifier_retry_delay: Sleep after a failed delivery (default from config)
            clock: Returns the current aware UTC time
        """
        self.store = store
        self.notifier = notifier
        self.wake_signal = wake_signal
        self.shutdown = shutdown or asyncio.Event()
        self.fallback_ceiling = fallback_ceiling if fallback_ceiling is not None else config.FALLBACK_CEILING
        self.store_retry_delay = store_retry_delay if store_retry_delay is not None else config.STORE_RETRY_DELAY
        self.notifier_retry_delay = (
            notifier_retry_delay if notifier_retry_delay is not None else config.NOTIFIER_RETRY_DELAY
        )
        self.clock = clock

        self.state = WorkerState.STOPPED
        self._task: Optional[asyncio.Task] = None

        # Stats for monitoring
        self._total_delivered = 0
        self._total_failed = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def get_stats(self) -> dict:
        """Get worker statistics."""
        return {
            "state": self.state.value,
            "total_delivered": self._total_delivered,
            "total_failed": self._total_failed,
        }

    def start(self) -> asyncio.Task:
        """Run the worker loop as a background task."""
        if self.running:
            return self._task
        self._task = asyncio.create_task(self.run(), name="reminder-delivery-worker")
        self._task.add_done_callback(self._on_task_done)
        return self._task

    def _on_task_done(self, task: asyncio.Task) -> None:
        """Report a loop that died instead of exiting on shutdown."""
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.critical(f"Delivery worker crashed: {error!r}", exc_info=error)

    async def stop(self) -> None:
        """Request shutdown and wait for the loop to exit.

        A delivery already in flight is allowed to finish. If the loop
        crashed, its exception is raised here.
        """
        self.shutdown.set()
        task, self._task = self._task, None
        if task is not None:
            await task

    async def run(self) -> None:
        """Deliver reminders until shutdown is requested."""
        logger.info(f"Delivery worker started (fallback ceiling {self.fallback_ceiling:.0f}s)")

        # Subscribe before the first scan so no insert can slip between scan and wait
        with self.wake_signal.subscribe() as listener:
            try:
                while True:
                    self.state = WorkerState.DRAINING
                    timeout = await self.run_once()

                    self.state = WorkerState.IDLE_WAIT
                    logger.debug(f"Delivery worker sleeping {timeout:.1f}s")
                    outcome = await listener.wait(timeout, self.shutdown)

                    if outcome is WaitOutcome.CANCELLED:
                        break
                    if outcome is WaitOutcome.WOKEN:
                        logger.debug("Delivery worker woken by new submission")
            finally:
                self.state = WorkerState.STOPPED

        logger.info(
            f"Delivery worker stopped - delivered={self._total_delivered}, failed={self._total_failed}"
        )

    async def run_once(self) -> float:
        """Deliver everything due now and return how long to sleep.

        Returns:
            Seconds until the next scan should happen (0 = immediately)
        """
        now = self.clock()
        try:
            due = await asyncio.to_thread(self.store.iterate_due, now)
        except StoreError as e:
            logger.error(f"Delivery worker: failed to read due deliveries: {e}")
            return min(self.store_retry_delay, self.fallback_ceiling)

        failed = 0
        for delivery in due:
            if self.shutdown.is_set():
                logger.info("Delivery worker: shutdown requested, stopping drain")
                break

            try:
                await self.notifier.deliver(delivery.target)
            except Exception as e:
                # Left in the store: it is already due, so the next scan retries it
                failed += 1
                self._total_failed += 1
                logger.error(f"Failed to deliver {delivery.id}, will retry: {e}")
                continue

            self._total_delivered += 1
            logger.info(f"Delivered {delivery.id} (due {delivery.due_at.isoformat()})")

            try:
                await asyncio.to_thread(self.store.delete, delivery.id)
            except StoreError as e:
                failed += 1
                logger.error(f"Delivered {delivery.id} but could not remove it: {e}")

        return await self._next_timeout(had_failures=failed > 0)

    async def _next_timeout(self, had_failures: bool) -> float:
        """Seconds until the earliest pending delivery, clamped to the ceiling."""
        try:
            earliest = await asyncio.to_thread(self.store.peek_earliest)
        except StoreError as e:
            logger.error(f"Delivery worker: failed to read next delivery: {e}")
            return min(self.store_retry_delay, self.fallback_ceiling)

        if earliest is None:
            return self.fallback_ceiling

        remaining = (earliest.due_at - self.clock()).total_seconds()
        if remaining <= 0:
            # Already due: either it just fell due, or it failed this pass
            if had_failures:
                return min(self.notifier_retry_delay, self.fallback_ceiling)
            return 0.0
        return min(remaining, self.fallback_ceiling)
