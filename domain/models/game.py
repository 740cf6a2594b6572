"""
Game round domain models.
"""

from dataclasses import dataclass
from enum import Enum


class GameState(str, Enum):
    """Lifecycle state of a round. PAYOUT_PENDING is terminal."""

    ACTIVE = "ACTIVE"
    PAYOUT_PENDING = "PAYOUT_PENDING"


@dataclass(frozen=True)
class Game:
    """
    A single Wordle round in one channel.

    At most one ACTIVE game exists per (space_id, channel_id). A game moves to
    PAYOUT_PENDING exactly once, either through a winning guess (winner_user_id
    and won_at set) or an admin rollover (no winner).
    """

    id: str
    space_id: str
    channel_id: str
    state: GameState
    target_word: str
    created_at: float
    game_number: int
    winner_user_id: str | None = None
    won_at: float | None = None

    @property
    def is_active(self) -> bool:
        return self.state == GameState.ACTIVE

    @property
    def has_winner(self) -> bool:
        return self.winner_user_id is not None


@dataclass(frozen=True)
class Guess:
    """An append-only guess submission. `feedback` is the emoji row."""

    id: str
    game_id: str
    user_id: str
    guess: str
    feedback: str
    created_at: float


@dataclass(frozen=True)
class LeaderboardEntry:
    user_id: str
    wins: int
    total_guesses: int
    total_winnings: dict[str, int]  # token -> minor units


@dataclass(frozen=True)
class PlayerStats:
    """Per-space statistics for one player."""

    user_id: str
    games_played: int
    total_guesses: int
    wins: int
    total_winnings: dict[str, int]  # token -> minor units
