"""Reminders domain configuration - durable delayed delivery."""

import os

# SQLite file holding pending deliveries (created on first start)
REMINDER_DB = os.environ.get("REMINDER_DB", "./data/reminders.db")

# Zone used for times the user types without an explicit offset
REMINDER_TIMEZONE = os.environ.get("REMINDER_TIMEZONE", "UTC")

# Worker timing (seconds)
FALLBACK_CEILING = float(os.environ.get("REMINDER_FALLBACK_CEILING", 3600))  # Max idle sleep
STORE_RETRY_DELAY = float(os.environ.get("REMINDER_STORE_RETRY", 30))  # After a store read error
NOTIFIER_RETRY_DELAY = float(os.environ.get("REMINDER_NOTIFIER_RETRY", 10))  # After a failed delivery

# Pending wake-ups buffered per listener
WAKE_CAPACITY = int(os.environ.get("REMINDER_WAKE_CAPACITY", 2))

# SQLite busy timeout (milliseconds)
DB_BUSY_TIMEOUT_MS = 5000
