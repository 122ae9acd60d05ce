"""Remind Me - Discord reminder bot.

Users ask to be reminded with `/remindme <when>`. Reminders are stored in
SQLite and delivered by a background worker as a reply to the original
message, surviving bot restarts.
"""

import asyncio
import signal
import sys

import discord
from discord.ext import commands

from logger import logger
from config import DISCORD_TOKEN, COMMAND_PREFIX
from domains.reminders import (
    DeliveryStore,
    DeliveryWorker,
    DiscordNotifier,
    StoreError,
    WakeSignal,
    handle_remindme,
    help_text,
)


class RemindMeBot(commands.Bot):
    """Bot that owns the delivery store and the delivery worker."""

    def __init__(self, store: DeliveryStore, **kwargs):
        super().__init__(**kwargs)
        self.store = store
        self.wake_signal = WakeSignal()
        self.shutdown_event = asyncio.Event()
        self.worker: DeliveryWorker | None = None
        self._close_task: asyncio.Task | None = None

    async def setup_hook(self) -> None:
        """Start the delivery worker once the event loop is running."""
        self.worker = DeliveryWorker(
            self.store,
            DiscordNotifier(self),
            self.wake_signal,
            self.shutdown_event
        )
        self.worker.start()
        self._install_signal_handlers()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._request_shutdown, sig)
            except (NotImplementedError, RuntimeError):
                # Windows: bot.run() still turns Ctrl+C into close()
                pass

    def _request_shutdown(self, sig: signal.Signals) -> None:
        logger.info(f"Received {sig.name}, shutting down")
        self.shutdown_event.set()
        # The loop only keeps a weak reference to tasks
        self._close_task = asyncio.create_task(self.close())

    async def close(self) -> None:
        """Stop the worker (letting an in-flight delivery finish), then disconnect."""
        self.shutdown_event.set()
        try:
            if self.worker is not None:
                await self.worker.stop()
        except Exception as e:
            logger.error(f"Delivery worker did not stop cleanly: {e}")
        finally:
            await super().close()


# Initialize bot
intents = discord.Intents.default()
intents.message_content = True
bot = RemindMeBot(
    DeliveryStore(),
    command_prefix=COMMAND_PREFIX,
    intents=intents,
    help_command=None
)


@bot.event
async def on_ready():
    """Called when bot is connected and ready."""
    logger.info(f"Logged in as {bot.user}")


@bot.command(name="help")
async def cmd_help(ctx: commands.Context):
    """Show the supported commands."""
    await ctx.send(help_text(COMMAND_PREFIX))


@bot.command(name="remindme")
async def cmd_remindme(ctx: commands.Context, *, when: str = ""):
    """Set a one-off reminder."""
    reply = await handle_remindme(ctx.message, when, bot.store, bot.wake_signal, COMMAND_PREFIX)
    try:
        await ctx.reply(reply, mention_author=False)
    except discord.HTTPException as e:
        logger.error(f"Failed to answer remindme from {ctx.author}: {e}")


@bot.event
async def on_command_error(ctx: commands.Context, error: commands.CommandError):
    """Handle command errors."""
    if isinstance(error, commands.CommandNotFound):
        return
    logger.error(f"Command {ctx.command} failed: {error}")


def main():
    """Entry point."""
    if not DISCORD_TOKEN:
        logger.error("DISCORD_TOKEN not set")
        return

    logger.info("Starting Remind Me bot...")

    try:
        bot.store.open()
    except StoreError as e:
        logger.critical(f"Cannot start without the delivery store: {e}")
        sys.exit(1)

    try:
        pending = bot.store.count()
        logger.info(f"{pending} pending reminder(s) in store")
        bot.run(DISCORD_TOKEN, log_handler=None)
    finally:
        bot.store.close()


if __name__ == "__main__":
    main()
