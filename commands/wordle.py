"""
Wordle commands: guesses, pot status, stats and admin rollover.
"""

from __future__ import annotations

import logging
import re

import discord
from discord import app_commands
from discord.ext import commands

from domain.models.ledger import NATIVE_TOKEN
from services import error_codes
from services.game_service import GameService, TipEvent
from services.interfaces import IMessenger
from services.permissions import has_admin_permission
from services.result import Result
from utils.formatting import (
    format_amount,
    format_leaderboard,
    format_pool,
    format_winnings,
)
from utils.interaction_safety import safe_defer
from utils.rate_limiter import GLOBAL_RATE_LIMITER

logger = logging.getLogger("wordle_bot.commands.wordle")

GUESS_PATTERN = re.compile(r"^[A-Za-z]{5}$")

GUESS_RATE_LIMIT = 10
GUESS_RATE_WINDOW_SECONDS = 30

ERROR_MESSAGES = {
    error_codes.VALIDATION_ERROR: "❌ Guesses must be exactly 5 letters (a-z only).",
    error_codes.INVALID_WORD: "❌ That word isn't in the dictionary. Try another one.",
    error_codes.NOT_ELIGIBLE: "🔒 You need to tip the pot to play this round.",
    error_codes.GAME_NOT_ACTIVE: "⏳ This round is already over. A new one starts shortly.",
    error_codes.RACE_LOST: "😅 So close! Someone else solved it first.",
    error_codes.SETTLEMENT_FAILED: (
        "⚠️ You solved it, but the payout failed. The round is locked; "
        "please contact an admin."
    ),
    error_codes.INVALID_ADDRESS: "❌ That doesn't look like a wallet address (0x + 40 hex digits).",
    error_codes.PERMISSION_DENIED: "❌ Admin permission required.",
    error_codes.STATE_ERROR: "⚠️ The round changed while processing. Please try again.",
}


def message_for(result: Result) -> str:
    """Map a failed Result to its user-facing text."""
    return ERROR_MESSAGES.get(result.error_code, f"❌ {result.error}")


def channel_keys(guild, channel) -> tuple[str, str]:
    """
    Return (space_id, channel_id) for a Discord location.

    Threads play the game of their parent channel.
    """
    space_id = str(guild.id) if guild else "dm"
    if isinstance(channel, discord.Thread) and channel.parent_id:
        return space_id, str(channel.parent_id)
    return space_id, str(channel.id)


class DiscordMessenger(IMessenger):
    """Sends plain-text messages to Discord channels by id."""

    def __init__(self, bot: commands.Bot):
        self.bot = bot

    async def send_message(self, channel_id: str, text: str) -> None:
        channel = self.bot.get_channel(int(channel_id))
        if channel is None:
            channel = await self.bot.fetch_channel(int(channel_id))
        await channel.send(text)


class WordleCommands(commands.Cog):
    """Slash commands, thread guesses and tip events for the Wordle pot."""

    admin = app_commands.Group(name="wordle-admin", description="Wordle admin actions")

    def __init__(self, bot: commands.Bot, game_service: GameService, messenger: IMessenger):
        self.bot = bot
        self.game_service = game_service
        self.messenger = messenger

    # ------------------------------------------------------------------
    # Tips
    # ------------------------------------------------------------------

    @commands.Cog.listener()
    async def on_wordle_tip(self, event: TipEvent):
        """Handle tips dispatched by the chain watcher via bot.dispatch("wordle_tip", event)."""
        result = await self.game_service.record_tip(event)
        if not result.success:
            if result.error_code == error_codes.TIP_IGNORED:
                logger.debug(f"Ignored tip to {event.receiver_address}")
            else:
                logger.info(f"Rejected tip from {event.user_id}: {result.error}")
                await self._notify(event.channel_id, f"<@{event.user_id}> {message_for(result)}")
            return

        receipt = result.value
        amount = format_amount(receipt.deposit.token, receipt.deposit.amount)
        if receipt.late:
            text = (
                f"💸 Thanks <@{event.user_id}>! Your tip of {amount} arrived as the round closed, "
                "so it rolls into the next pot."
            )
        else:
            text = (
                f"✅ <@{event.user_id}> tipped {amount} and can now play "
                f"Wordle #{receipt.game.game_number}! Pot: {format_amount(receipt.deposit.token, receipt.pool_balance)}"
            )
        await self._notify(event.channel_id, text)

    async def _notify(self, channel_id: str, text: str) -> None:
        try:
            await self.messenger.send_message(channel_id, text)
        except Exception as exc:
            logger.warning(f"Failed to send tip notice to {channel_id}: {exc}")

    # ------------------------------------------------------------------
    # Guesses
    # ------------------------------------------------------------------

    async def _guess(self, guild, channel, user, word: str) -> str:
        space_id, channel_id = channel_keys(guild, channel)
        rl = GLOBAL_RATE_LIMITER.check(
            scope="guess",
            channel_id=channel_id,
            user_id=str(user.id),
            limit=GUESS_RATE_LIMIT,
            per_seconds=GUESS_RATE_WINDOW_SECONDS,
        )
        if not rl.allowed:
            return f"⏳ Slow down! Try again in {rl.retry_after_seconds}s."

        result = await self.game_service.submit_guess(space_id, channel_id, str(user.id), word)
        if not result.success:
            return message_for(result)

        outcome = result.value
        if not outcome.correct:
            return f"{user.mention} Wordle #{outcome.game.game_number}\n{outcome.rendered}"
        prize = ", ".join(format_amount(e.token, e.amount) for e in outcome.receipt.entries)
        return (
            f"{outcome.rendered}\n🎉 {user.mention} got it! {prize} is on its way."
        )

    @app_commands.command(name="guess", description="Guess the 5-letter word")
    @app_commands.describe(word="Your 5-letter guess")
    async def guess(self, interaction: discord.Interaction, word: str):
        if not await safe_defer(interaction):
            return
        text = await self._guess(interaction.guild, interaction.channel, interaction.user, word)
        await interaction.followup.send(text)

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message):
        """Treat a bare 5-letter word posted in a thread as a guess."""
        if message.author.bot or not isinstance(message.channel, discord.Thread):
            return
        content = (message.content or "").strip()
        if not GUESS_PATTERN.match(content):
            return
        try:
            text = await self._guess(message.guild, message.channel, message.author, content)
            await message.channel.send(text)
        except Exception as exc:
            logger.error(f"Error handling thread guess: {exc}", exc_info=True)

    # ------------------------------------------------------------------
    # Status and stats
    # ------------------------------------------------------------------

    @app_commands.command(name="wordle", description="Show the current Wordle round and how to play")
    async def wordle(self, interaction: discord.Interaction):
        if not await safe_defer(interaction):
            return
        space_id, channel_id = channel_keys(interaction.guild, interaction.channel)
        status = await self.game_service.status(space_id, channel_id)
        summary = await self.game_service.pool_summary(space_id, channel_id)
        state = "open for guesses" if status.game.is_active else "settling"
        await interaction.followup.send(
            f"🟩 **Wordle #{status.game.game_number}** is {state}.\n"
            f"👥 {status.eligible_count} eligible player(s), {status.guess_count} guess(es) so far.\n"
            f"💰 Pot:\n{format_pool(summary.balances)}\n\n"
            "**How to play**\n"
            "• Tip the bot to join the current round\n"
            "• `/guess <word>` or post a 5-letter word in a thread\n"
            "• First correct guess wins the whole pot\n"
            "• `/pool`, `/leaderboard`, `/wordle-stats`, `/wallet <address>`"
        )

    @app_commands.command(name="pool", description="Show the current prize pool")
    async def pool(self, interaction: discord.Interaction):
        if not await safe_defer(interaction):
            return
        space_id, channel_id = channel_keys(interaction.guild, interaction.channel)
        summary = await self.game_service.pool_summary(space_id, channel_id)
        if summary.custody_native_balance is None:
            custody = "unavailable"
        else:
            custody = format_amount(NATIVE_TOKEN, summary.custody_native_balance)
        await interaction.followup.send(
            f"💰 **Wordle #{summary.game.game_number} pot**\n{format_pool(summary.balances)}\n"
            f"👥 Eligible players: {summary.eligible_count}\n"
            f"🏦 Custody balance: {custody}"
        )

    @app_commands.command(name="leaderboard", description="Show top Wordle winners in this server")
    async def leaderboard(self, interaction: discord.Interaction):
        if not await safe_defer(interaction):
            return
        space_id, _ = channel_keys(interaction.guild, interaction.channel)
        entries = await self.game_service.leaderboard(space_id)
        await interaction.followup.send(f"🏆 **Wordle Leaderboard**\n{format_leaderboard(entries)}")

    @app_commands.command(name="wordle-stats", description="Show Wordle statistics for you or another player")
    @app_commands.describe(user="Player to look up (defaults to you)")
    async def wordle_stats(self, interaction: discord.Interaction, user: discord.Member | None = None):
        if not await safe_defer(interaction, ephemeral=True):
            return
        target = user or interaction.user
        space_id, _ = channel_keys(interaction.guild, interaction.channel)
        stats = await self.game_service.player_stats(space_id, str(target.id))
        await interaction.followup.send(
            f"📊 **Wordle stats for {target.display_name}**\n"
            f"Games played: {stats.games_played}\n"
            f"Guesses: {stats.total_guesses}\n"
            f"Wins: {stats.wins}\n"
            f"Winnings: {format_winnings(stats.total_winnings)}",
            ephemeral=True,
        )

    @app_commands.command(name="wallet", description="Set the address your winnings are paid to")
    @app_commands.describe(address="Your wallet address (0x...)")
    async def wallet(self, interaction: discord.Interaction, address: str):
        if not await safe_defer(interaction, ephemeral=True):
            return
        space_id, _ = channel_keys(interaction.guild, interaction.channel)
        result = await self.game_service.set_wallet(space_id, str(interaction.user.id), address)
        if not result.success:
            await interaction.followup.send(message_for(result), ephemeral=True)
            return
        await interaction.followup.send(f"✅ Winnings will be sent to `{result.value}`.", ephemeral=True)

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    async def _rollover(self, interaction: discord.Interaction):
        if not has_admin_permission(interaction):
            await interaction.response.send_message(
                ERROR_MESSAGES[error_codes.PERMISSION_DENIED], ephemeral=True
            )
            return
        if not await safe_defer(interaction, ephemeral=True):
            return
        space_id, channel_id = channel_keys(interaction.guild, interaction.channel)
        result = await self.game_service.rollover(space_id, channel_id)
        if not result.success:
            await interaction.followup.send(message_for(result), ephemeral=True)
            return
        rollover = result.value
        logger.info(
            f"Admin {interaction.user.id} rolled over {space_id}:{channel_id} "
            f"into game #{rollover.new_game.game_number}"
        )
        await interaction.followup.send(
            f"✅ Started Wordle #{rollover.new_game.game_number}. Carried:\n{format_pool(rollover.rolled)}",
            ephemeral=True,
        )

    @admin.command(name="reset", description="End the round without a winner and roll the pot over")
    async def admin_reset(self, interaction: discord.Interaction):
        await self._rollover(interaction)

    @admin.command(name="rollover", description="Alias for reset")
    async def admin_rollover(self, interaction: discord.Interaction):
        await self._rollover(interaction)


async def setup(bot: commands.Bot):
    game_service = getattr(bot, "game_service", None)
    if game_service is None:
        raise RuntimeError("Game service not registered on bot.")
    messenger = getattr(bot, "messenger", None) or DiscordMessenger(bot)
    await bot.add_cog(WordleCommands(bot, game_service, messenger))
