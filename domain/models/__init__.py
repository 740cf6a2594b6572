"""
Domain models - pure data structures representing business entities.
"""

from domain.models.game import Game, GameState, Guess, LeaderboardEntry, PlayerStats
from domain.models.ledger import (
    NATIVE_TOKEN,
    Deposit,
    Payout,
    PayoutPlanEntry,
    PayoutReceipt,
    PayoutStatus,
    Pool,
    TransferInstruction,
)

__all__ = [
    "Game",
    "GameState",
    "Guess",
    "LeaderboardEntry",
    "PlayerStats",
    "NATIVE_TOKEN",
    "Deposit",
    "Payout",
    "PayoutPlanEntry",
    "PayoutReceipt",
    "PayoutStatus",
    "Pool",
    "TransferInstruction",
]
