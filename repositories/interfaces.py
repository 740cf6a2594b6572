"""
Abstract repository interfaces for data access.

These interfaces define the contracts implemented by concrete repositories.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable

from domain.models.game import Game, Guess, LeaderboardEntry, PlayerStats
from domain.models.ledger import Deposit, Payout, PayoutStatus


class IGameRepository(ABC):
    @abstractmethod
    def create_game(self, space_id: str, channel_id: str, target_word: str) -> Game: ...

    @abstractmethod
    def get_or_create_current_game(
        self, space_id: str, channel_id: str, target_word_factory: Callable[[], str]
    ) -> tuple[Game, bool]: ...

    @abstractmethod
    def get_current_game(self, space_id: str, channel_id: str) -> Game | None: ...

    @abstractmethod
    def get_latest_game(self, space_id: str, channel_id: str) -> Game | None: ...

    @abstractmethod
    def get_game(self, game_id: str) -> Game | None: ...

    @abstractmethod
    def try_win_lock(self, game_id: str, winner_user_id: str) -> bool:
        """Atomically move an ACTIVE game to PAYOUT_PENDING with a winner."""
        ...

    @abstractmethod
    def end_without_winner(self, game_id: str) -> bool:
        """Atomically move an ACTIVE game to PAYOUT_PENDING without a winner."""
        ...

    @abstractmethod
    def record_guess(self, game_id: str, user_id: str, guess: str, feedback: str) -> Guess: ...

    @abstractmethod
    def list_guesses(self, game_id: str, user_id: str | None = None) -> list[Guess]: ...

    @abstractmethod
    def leaderboard(self, space_id: str, limit: int = 10) -> list[LeaderboardEntry]: ...

    @abstractmethod
    def user_stats(self, space_id: str, user_id: str) -> PlayerStats: ...


class ILedgerRepository(ABC):
    @abstractmethod
    def credit_pool(self, game_id: str, token: str, amount: int) -> int: ...

    @abstractmethod
    def pool_balance(self, game_id: str, token: str) -> int: ...

    @abstractmethod
    def pool_tokens(self, game_id: str) -> list[str]: ...

    @abstractmethod
    def pool_balances(self, game_id: str) -> dict[str, int]: ...

    @abstractmethod
    def record_deposit(
        self, game_id: str, sender: str, token: str, amount: int, after_close: bool = False
    ) -> Deposit: ...

    @abstractmethod
    def list_deposits(self, game_id: str) -> list[Deposit]: ...

    @abstractmethod
    def record_channel_deposit(
        self,
        space_id: str,
        channel_id: str,
        sender: str,
        token: str,
        amount: int,
        eligible_identifiers=(),
    ) -> Deposit:
        """Record a tip on the channel's latest game, deciding lateness inside the write."""

    @abstractmethod
    def record_payout(
        self,
        game_id: str,
        token: str,
        amount: int,
        tx_hash: str,
        status: PayoutStatus = PayoutStatus.SUCCESS,
    ) -> Payout: ...

    @abstractmethod
    def list_payouts(self, game_id: str) -> list[Payout]: ...

    @abstractmethod
    def paid_totals(self, game_id: str) -> dict[str, int]: ...

    @abstractmethod
    def unclaimed_totals(self, game_id: str) -> dict[str, int]: ...

    @abstractmethod
    def seed_pool_if_ledger_empty(self, game_id: str, token: str, amount: int) -> bool: ...

    @abstractmethod
    def mark_eligible(self, game_id: str, identifier: str) -> None: ...

    @abstractmethod
    def is_eligible(self, game_id: str, identifier: str) -> bool: ...

    @abstractmethod
    def list_eligible(self, game_id: str) -> list[str]: ...


class IWalletRepository(ABC):
    @abstractmethod
    def set_wallet(self, space_id: str, user_id: str, address: str) -> None: ...

    @abstractmethod
    def get_wallet(self, space_id: str, user_id: str) -> str | None: ...
