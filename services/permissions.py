"""
Permission checking utilities for the bot.
"""

import discord

from config import ADMIN_USER_IDS


def has_admin_permission(interaction: discord.Interaction, admin_user_ids=None) -> bool:
    """
    Check whether the user may run /wordle-admin.

    The ADMIN_USER_IDS allowlist wins; otherwise Administrator or Manage Server
    in the guild is required.
    """
    admin_ids = ADMIN_USER_IDS if admin_user_ids is None else admin_user_ids
    if admin_ids and interaction.user.id in admin_ids:
        return True

    # Prefer guild member lookup, but fall back gracefully for mocks / partial objects.
    if interaction.guild:
        get_member = getattr(interaction.guild, "get_member", None)
        if callable(get_member):
            member = get_member(interaction.user.id)
            if member and getattr(member, "guild_permissions", None):
                return bool(
                    member.guild_permissions.administrator
                    or member.guild_permissions.manage_guild
                )

    perms = getattr(interaction.user, "guild_permissions", None)
    if perms:
        return bool(getattr(perms, "administrator", False) or getattr(perms, "manage_guild", False))

    return False
