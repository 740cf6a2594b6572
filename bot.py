"""
Main Discord bot entry for the Wordle pot.
"""

import logging
import os

# Configure logging BEFORE importing discord to prevent duplicate handlers
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    force=True,  # Override any existing handlers (e.g., from discord.py)
)
logger = logging.getLogger("wordle_bot")


# Suppress PyNaCl warning since voice support isn't needed
class _PyNaClFilter(logging.Filter):
    def filter(self, record):
        return "PyNaCl is not installed" not in record.getMessage()


logging.getLogger("discord.client").addFilter(_PyNaClFilter())

import discord
from discord.ext import commands

# Remove the handler discord.py adds on import so records are not printed twice
_discord_logger = logging.getLogger("discord")
_discord_logger.handlers.clear()
_discord_logger.setLevel(logging.INFO)

from commands.wordle import DiscordMessenger
from infrastructure.service_container import ServiceConfig, ServiceContainer

intents = discord.Intents.default()
intents.message_content = True

bot = commands.Bot(command_prefix="!", intents=intents)

_container: ServiceContainer | None = None

EXTENSIONS = [
    "commands.wordle",
]


def _init_services():
    """Initialize all services via ServiceContainer (lazy, idempotent)."""
    global _container
    if _container is not None:
        return

    messenger = DiscordMessenger(bot)
    _container = ServiceContainer(ServiceConfig(), messenger=messenger)
    _container.initialize()
    _container.expose_to_bot(bot)
    bot.messenger = messenger


async def _load_extensions():
    """Load command extensions if not already loaded."""
    _init_services()

    loaded, failed = [], []
    for ext in EXTENSIONS:
        if ext in bot.extensions:
            logger.debug(f"Extension {ext} already loaded, skipping")
            continue
        try:
            await bot.load_extension(ext)
            loaded.append(ext)
            logger.info(f"Loaded extension: {ext}")
        except Exception as exc:
            failed.append(ext)
            logger.error(f"Failed to load extension {ext}: {exc}", exc_info=True)

    logger.info(f"Extension loading complete: {len(loaded)} loaded, {len(failed)} failed")


@bot.event
async def setup_hook():
    await _load_extensions()


@bot.event
async def on_ready():
    logger.info(f"{bot.user} connected. Guilds: {len(bot.guilds)}")
    try:
        synced = await bot.tree.sync()
        logger.info(f"Slash commands synced globally ({len(synced)} commands).")
    except Exception as exc:
        logger.error(f"Failed to sync slash commands: {exc}", exc_info=True)


def main():
    """Run the bot."""
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        from dotenv import load_dotenv

        load_dotenv()
        token = os.getenv("DISCORD_BOT_TOKEN")

    if not token:
        print("ERROR: DISCORD_BOT_TOKEN not found!")
        return

    try:
        # log_handler=None keeps the logging format configured above
        bot.run(token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Bot stopped by user (Ctrl+C)")
    except Exception as exc:
        logger.error(f"Bot crashed: {exc}", exc_info=True)


if __name__ == "__main__":
    main()
