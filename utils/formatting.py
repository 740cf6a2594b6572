"""
Shared formatting helpers for amounts, pools and leaderboards.
"""

from collections.abc import Iterable, Mapping

from config import NATIVE_DECIMALS, NATIVE_SYMBOL
from domain.models.game import LeaderboardEntry
from domain.models.ledger import NATIVE_TOKEN

MEDALS = {1: "🥇", 2: "🥈", 3: "🥉"}


def format_units(amount: int, decimals: int = NATIVE_DECIMALS, max_fraction_digits: int = 6) -> str:
    """
    Render an integer amount of minor units as a decimal string.

    Exact integer arithmetic; trailing zeros are trimmed and the fraction is
    truncated (never rounded up) to `max_fraction_digits`.
    """
    sign = "-" if amount < 0 else ""
    amount = abs(amount)
    if decimals <= 0:
        return f"{sign}{amount}"
    whole, fraction = divmod(amount, 10**decimals)
    fraction_str = str(fraction).rjust(decimals, "0")[:max_fraction_digits].rstrip("0")
    if fraction_str:
        return f"{sign}{whole}.{fraction_str}"
    return f"{sign}{whole}"


def token_label(token: str) -> str:
    """Return the display symbol for a ledger token (shortened address for contracts)."""
    if token == NATIVE_TOKEN:
        return NATIVE_SYMBOL
    return f"{token[:6]}…{token[-4:]}"


def format_amount(token: str, amount: int) -> str:
    if token == NATIVE_TOKEN:
        return f"{format_units(amount)} {NATIVE_SYMBOL}"
    # Contract token decimals are unknown here; show raw minor units
    return f"{amount} {token_label(token)}"


def format_pool(balances: Mapping[str, int]) -> str:
    """One line per non-zero token, or a friendly empty marker."""
    lines = [f"• {format_amount(token, amount)}" for token, amount in balances.items() if amount > 0]
    return "\n".join(lines) if lines else "Empty, tip to get it started!"


def format_winnings(winnings: Mapping[str, int]) -> str:
    """Join per-token winnings; amounts of different tokens are never summed."""
    parts = [format_amount(token, amount) for token, amount in winnings.items() if amount > 0]
    return ", ".join(parts) if parts else format_amount(NATIVE_TOKEN, 0)


def format_user(user_id: str) -> str:
    """Mention numeric chat ids; show anything else (addresses) as code."""
    if user_id.isdigit():
        return f"<@{user_id}>"
    return f"`{user_id}`"


def format_leaderboard(entries: Iterable[LeaderboardEntry]) -> str:
    lines = []
    for rank, entry in enumerate(entries, start=1):
        prefix = MEDALS.get(rank, f"{rank}.")
        avg = entry.total_guesses / entry.wins if entry.wins else 0
        lines.append(
            f"{prefix} {format_user(entry.user_id)}: {entry.wins} "
            f"win{'s' if entry.wins != 1 else ''}, "
            f"{format_winnings(entry.total_winnings)} won, "
            f"{avg:.1f} guesses/win"
        )
    return "\n".join(lines) if lines else "No winners yet."
