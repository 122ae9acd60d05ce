"""Accept a reminder request and hand it to the delivery worker."""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

from logger import logger
from .resolver import ResolutionError, resolve_time
from .store import DeliveryStore, StoreError
from .wake import WakeSignal


class SubmissionStatus(Enum):
    SCHEDULED = "scheduled"
    UNRECOGNIZED_TIME = "unrecognized_time"
    STORE_ERROR = "store_error"


@dataclass
class SubmissionResult:
    """Outcome of a reminder request."""
    status: SubmissionStatus
    due_at: Optional[datetime] = None
    delivery_id: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is SubmissionStatus.SCHEDULED


async def submit_reminder(
    target: dict[str, Any],
    text: str,
    *,
    store: DeliveryStore,
    wake_signal: WakeSignal,
    resolver: Callable[[str, datetime], datetime] = resolve_time,
    now: Optional[datetime] = None
) -> SubmissionResult:
    """Resolve the time, persist the delivery, then wake the worker.

    Nothing is written if the time can't be resolved, and the worker is
    only woken once the delivery is on disk.

    Args:
        target: Addressing payload passed to the notifier when due
        text: Free-form time text ("in 10 minutes", "tomorrow 9am")
        store: Delivery store to insert into
        wake_signal: Signal observed by the delivery worker
        resolver: Turns (text, now) into an aware UTC datetime
        now: Reference time (defaults to now, UTC)

    Returns:
        SubmissionResult describing what happened
    """
    now = now or datetime.now(timezone.utc)

    try:
        due_at = resolver(text, now)
    except ResolutionError as e:
        logger.info(f"Unrecognized reminder time {text!r}: {e}")
        return SubmissionResult(SubmissionStatus.UNRECOGNIZED_TIME, error=str(e))

    try:
        delivery_id = await asyncio.to_thread(store.insert, target, due_at)
    except StoreError as e:
        logger.error(f"Failed to save reminder due {due_at.isoformat()}: {e}")
        return SubmissionResult(SubmissionStatus.STORE_ERROR, due_at=due_at, error=str(e))

    wake_signal.notify()
    logger.info(f"Scheduled delivery {delivery_id} for {due_at.isoformat()}")
    return SubmissionResult(SubmissionStatus.SCHEDULED, due_at=due_at, delivery_id=delivery_id)
