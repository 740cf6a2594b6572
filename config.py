"""
Centralized configuration for the Wordle Pot bot.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


def _parse_int(env_var: str, default: int) -> int:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_float(env_var: str, default: float) -> float:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _parse_bool(env_var: str, default: bool) -> bool:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


def _parse_int_list(env_var: str, default: list[int]) -> list[int]:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    try:
        return [int(x.strip()) for x in raw.split(",") if x.strip()]
    except ValueError:
        return default


_PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))

DB_PATH = os.getenv("DB_PATH", "wordle_pot.db")
DISCORD_BOT_TOKEN = os.getenv("DISCORD_BOT_TOKEN")
ADMIN_USER_IDS: list[int] = _parse_int_list("ADMIN_USER_IDS", [])

# Channel that receives settlement failure alerts; unset means alerts only go to logs
OPERATOR_CHANNEL_ID: int | None = None
_operator_channel_raw = os.getenv("OPERATOR_CHANNEL_ID")
if _operator_channel_raw:
    try:
        OPERATOR_CHANNEL_ID = int(_operator_channel_raw.strip())
    except ValueError:
        OPERATOR_CHANNEL_ID = None

# Word lists (newline-delimited, one word per line)
SOLUTION_WORDS_PATH = os.getenv(
    "SOLUTION_WORDS_PATH", os.path.join(_PROJECT_ROOT, "data", "wordlists", "solutions.txt")
)
GUESS_WORDS_PATH = os.getenv(
    "GUESS_WORDS_PATH", os.path.join(_PROJECT_ROOT, "data", "wordlists", "guesses.txt")
)

# Custody wallet (receives tips, funds payouts) and chain access
CUSTODY_ADDRESS = os.getenv("CUSTODY_ADDRESS", "")
RPC_URL = os.getenv("RPC_URL", "https://sepolia.base.org")
RPC_TIMEOUT_SECONDS = _parse_float("RPC_TIMEOUT_SECONDS", 10.0)
CONFIRMATION_POLL_SECONDS = _parse_float("CONFIRMATION_POLL_SECONDS", 2.0)
CONFIRMATION_TIMEOUT_SECONDS = _parse_float("CONFIRMATION_TIMEOUT_SECONDS", 180.0)

NATIVE_DECIMALS = _parse_int("NATIVE_DECIMALS", 18)
NATIVE_SYMBOL = os.getenv("NATIVE_SYMBOL", "ETH")

# Contract-backed (ERC-20) tips are tracked generically but rejected unless enabled
ALLOW_TOKEN_TIPS = _parse_bool("ALLOW_TOKEN_TIPS", False)

LEADERBOARD_LIMIT = _parse_int("LEADERBOARD_LIMIT", 10)

# Optional word definitions in winner announcements
DEFINITION_LOOKUP_ENABLED = _parse_bool("DEFINITION_LOOKUP_ENABLED", True)
DEFINITION_API_URL = os.getenv(
    "DEFINITION_API_URL", "https://api.dictionaryapi.dev/api/v2/entries/en/{word}"
)
DEFINITION_TIMEOUT_SECONDS = _parse_float("DEFINITION_TIMEOUT_SECONDS", 5.0)

# Restart recovery: seed an empty first pool from the custody's native balance
RECOVERY_SYNC_ENABLED = _parse_bool("RECOVERY_SYNC_ENABLED", False)
RECOVERY_SYNC_DUST_THRESHOLD = _parse_int("RECOVERY_SYNC_DUST_THRESHOLD", 10**14)  # 0.0001 ETH
