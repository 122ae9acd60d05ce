"""Reminders module for one-off delayed notifications.

Uses a SQLite delivery store drained by a single background worker.
"""

from .store import Delivery, DeliveryStore, StoreError
from .wake import WakeSignal, WakeListener, WaitOutcome
from .worker import DeliveryWorker, WorkerState
from .resolver import resolve_time, ResolutionError
from .submission import submit_reminder, SubmissionResult, SubmissionStatus
from .notifier import Notifier, DiscordNotifier, build_target
from .commands import handle_remindme, help_text

__all__ = [
    "Delivery",
    "DeliveryStore",
    "StoreError",
    "WakeSignal",
    "WakeListener",
    "WaitOutcome",
    "DeliveryWorker",
    "WorkerState",
    "resolve_time",
    "ResolutionError",
    "submit_reminder",
    "SubmissionResult",
    "SubmissionStatus",
    "Notifier",
    "DiscordNotifier",
    "build_target",
    "handle_remindme",
    "help_text",
]
