"""Deliver due reminders to Discord."""

from typing import Any, Protocol

import discord

from logger import logger

REMINDER_TEXT = "Reminding you"


class Notifier(Protocol):
    """Anything that can send a due reminder to its target.

    deliver() raises on failure; the worker keeps the delivery and retries.
    """

    async def deliver(self, target: dict[str, Any]) -> None:
        ...


def build_target(message: discord.Message) -> dict[str, Any]:
    """Addressing payload for a reminder requested by this message."""
    return {
        "channel_id": message.channel.id,
        "message_id": message.id,
        "user_id": message.author.id,
        "note": message.content,
    }


class DiscordNotifier:
    """Replies to the original request message when the reminder is due."""

    def __init__(self, bot: discord.Client):
        self.bot = bot

    async def deliver(self, target: dict[str, Any]) -> None:
        """Send the reminder.

        Args:
            target: Payload produced by build_target

        Raises:
            KeyError: If the target has no channel_id
            discord.DiscordException: If the channel can't be reached or the send fails
        """
        channel_id = int(target["channel_id"])
        channel = self.bot.get_channel(channel_id)
        if not channel:
            channel = await self.bot.fetch_channel(channel_id)

        content = REMINDER_TEXT
        user_id = target.get("user_id")
        if user_id:
            content = f"<@{user_id}> {content}"

        reference = None
        message_id = target.get("message_id")
        if message_id:
            # Original may have been deleted - still post the reminder
            reference = discord.MessageReference(
                message_id=int(message_id),
                channel_id=channel_id,
                fail_if_not_exists=False
            )

        await channel.send(content, reference=reference)
        logger.info(f"Reminder sent to channel {channel_id} (reply to {message_id})")
