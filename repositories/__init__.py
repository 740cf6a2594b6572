"""
Repository layer for data access abstraction.
"""

from repositories.base_repository import BaseRepository
from repositories.game_repository import GameRepository
from repositories.interfaces import IGameRepository, ILedgerRepository, IWalletRepository
from repositories.ledger_repository import LedgerRepository
from repositories.wallet_repository import WalletRepository

__all__ = [
    "BaseRepository",
    "GameRepository",
    "LedgerRepository",
    "WalletRepository",
    "IGameRepository",
    "ILedgerRepository",
    "IWalletRepository",
]
