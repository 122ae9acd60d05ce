"""Reminder command handlers for the bot."""

import discord

from .notifier import build_target
from .store import DeliveryStore
from .submission import SubmissionStatus, submit_reminder
from .wake import WakeSignal

# Command name -> description, shown by /help
COMMANDS = {
    "help": "shows this text",
    "remindme": "Reminds you on the solicited date",
}

USAGE = "Usage: `{prefix}remindme <when>` - e.g. `in 10 minutes`, `tomorrow 9am`, `25/12/2026 08:00`"


def help_text(prefix: str = "/") -> str:
    """List the supported commands."""
    lines = ["The following commands are supported:", ""]
    for name, description in COMMANDS.items():
        lines.append(f"{prefix}{name} - {description}")
    return "\n".join(lines)


async def handle_remindme(
    message: discord.Message,
    text: str,
    store: DeliveryStore,
    wake_signal: WakeSignal,
    prefix: str = "/"
) -> str:
    """Schedule a reminder for the message author.

    Args:
        message: The command message (the reminder replies to it)
        text: Time text after the command
        store: Delivery store
        wake_signal: Delivery worker's wake signal
        prefix: Command prefix, for the usage hint

    Returns:
        Reply to send back to the user
    """
    if not text or not text.strip():
        return USAGE.format(prefix=prefix)

    result = await submit_reminder(
        build_target(message),
        text,
        store=store,
        wake_signal=wake_signal
    )

    if result.status is SubmissionStatus.UNRECOGNIZED_TIME:
        return "Unrecognized time format"
    if result.status is SubmissionStatus.STORE_ERROR:
        return "Error saving to the database"
    return f"I'll remind you at {result.due_at.strftime('%Y-%m-%d %H:%M:%S')} UTC"
