"""
Helpers for interactions that may expire before we respond.
"""

import logging

import discord

logger = logging.getLogger("wordle_bot.utils.interaction_safety")


async def safe_defer(interaction: discord.Interaction, ephemeral: bool = False) -> bool:
    """
    Defer an interaction response.

    Returns False when the interaction is gone (expired token or already
    acknowledged elsewhere), in which case the caller should stop.
    """
    if interaction.response.is_done():
        return True
    try:
        await interaction.response.defer(ephemeral=ephemeral)
        return True
    except discord.NotFound:
        logger.warning(f"Interaction {interaction.id} expired before it could be deferred")
        return False
    except discord.HTTPException as exc:
        logger.warning(f"Failed to defer interaction {interaction.id}: {exc}")
        return False
