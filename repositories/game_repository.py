"""
Repository for game rounds, game numbering and guesses.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from domain.models.game import Game, GameState, Guess, LeaderboardEntry, PlayerStats
from domain.models.ledger import NATIVE_TOKEN, PayoutStatus
from repositories.base_repository import BaseRepository
from repositories.interfaces import IGameRepository

logger = logging.getLogger("wordle_bot.repositories.game")


class GameRepository(BaseRepository, IGameRepository):
    """
    Handles the games, game_number_counters and guesses tables.

    Owns the two invariants that need storage-level enforcement: a single
    ACTIVE game per channel and the compare-and-set win lock.
    """

    _GAME_COLUMNS = (
        "id, space_id, channel_id, state, target_word, winner_user_id, "
        "created_at, won_at, game_number"
    )

    @staticmethod
    def _row_to_game(row) -> Game:
        return Game(
            id=row["id"],
            space_id=row["space_id"],
            channel_id=row["channel_id"],
            state=GameState(row["state"]),
            target_word=row["target_word"],
            created_at=row["created_at"],
            game_number=row["game_number"],
            winner_user_id=row["winner_user_id"],
            won_at=row["won_at"],
        )

    @staticmethod
    def _row_to_guess(row) -> Guess:
        return Guess(
            id=row["id"],
            game_id=row["game_id"],
            user_id=row["user_id"],
            guess=row["guess"],
            feedback=row["feedback"],
            created_at=row["created_at"],
        )

    def _select_active(self, cursor, space_id: str, channel_id: str):
        cursor.execute(
            f"""
            SELECT {self._GAME_COLUMNS}
            FROM games
            WHERE space_id = ? AND channel_id = ? AND state = ?
            LIMIT 1
            """,
            (space_id, channel_id, GameState.ACTIVE.value),
        )
        return cursor.fetchone()

    def _insert_game(self, cursor, space_id: str, channel_id: str, target_word: str) -> Game:
        """
        Allocate the next game number from the channel counter and insert the game.

        Must run inside an atomic transaction.
        """
        cursor.execute(
            """
            INSERT INTO game_number_counters (space_id, channel_id, count)
            VALUES (?, ?, 1)
            ON CONFLICT(space_id, channel_id) DO UPDATE SET count = count + 1
            """,
            (space_id, channel_id),
        )
        cursor.execute(
            "SELECT count FROM game_number_counters WHERE space_id = ? AND channel_id = ?",
            (space_id, channel_id),
        )
        game_number = int(cursor.fetchone()["count"])

        game = Game(
            id=self.new_id("game"),
            space_id=space_id,
            channel_id=channel_id,
            state=GameState.ACTIVE,
            target_word=target_word.lower(),
            created_at=self.now(),
            game_number=game_number,
        )
        cursor.execute(
            """
            INSERT INTO games (id, space_id, channel_id, state, target_word, created_at, game_number)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                game.id,
                game.space_id,
                game.channel_id,
                game.state.value,
                game.target_word,
                game.created_at,
                game.game_number,
            ),
        )
        logger.info(f"Created game #{game_number} ({game.id}) for {space_id}:{channel_id}")
        return game

    def create_game(self, space_id: str, channel_id: str, target_word: str) -> Game:
        """
        Create a new ACTIVE game with the next per-channel game number.

        Raises:
            ValueError: If the channel already has an ACTIVE game
        """
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            if self._select_active(cursor, space_id, channel_id):
                raise ValueError(f"Channel {space_id}:{channel_id} already has an active game.")
            return self._insert_game(cursor, space_id, channel_id, target_word)

    def get_or_create_current_game(
        self, space_id: str, channel_id: str, target_word_factory: Callable[[], str]
    ) -> tuple[Game, bool]:
        """
        Return the channel's ACTIVE game, creating one if none exists.

        Returns:
            (game, created)
        """
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            row = self._select_active(cursor, space_id, channel_id)
            if row:
                return self._row_to_game(row), False
            return self._insert_game(cursor, space_id, channel_id, target_word_factory()), True

    def get_current_game(self, space_id: str, channel_id: str) -> Game | None:
        with self.connection() as conn:
            row = self._select_active(conn.cursor(), space_id, channel_id)
            return self._row_to_game(row) if row else None

    def get_latest_game(self, space_id: str, channel_id: str) -> Game | None:
        """Return the most recently numbered game for the channel, in any state."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT {self._GAME_COLUMNS}
                FROM games
                WHERE space_id = ? AND channel_id = ?
                ORDER BY game_number DESC
                LIMIT 1
                """,
                (space_id, channel_id),
            )
            row = cursor.fetchone()
            return self._row_to_game(row) if row else None

    def get_game(self, game_id: str) -> Game | None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {self._GAME_COLUMNS} FROM games WHERE id = ?", (game_id,))
            row = cursor.fetchone()
            return self._row_to_game(row) if row else None

    def try_win_lock(self, game_id: str, winner_user_id: str) -> bool:
        """
        Compare-and-set ACTIVE -> PAYOUT_PENDING, recording the winner.

        The state check and the write are one UPDATE statement, so among any
        number of concurrent callers exactly one sees a changed row.

        Returns:
            True if this call claimed the win
        """
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE games
                SET state = ?, winner_user_id = ?, won_at = ?
                WHERE id = ? AND state = ?
                """,
                (
                    GameState.PAYOUT_PENDING.value,
                    winner_user_id,
                    self.now(),
                    game_id,
                    GameState.ACTIVE.value,
                ),
            )
            locked = cursor.rowcount == 1
        if locked:
            logger.info(f"Win lock acquired on {game_id} by {winner_user_id}")
        else:
            logger.info(f"Win lock refused on {game_id} for {winner_user_id}")
        return locked

    def end_without_winner(self, game_id: str) -> bool:
        """Compare-and-set ACTIVE -> PAYOUT_PENDING with no winner (admin rollover)."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE games SET state = ? WHERE id = ? AND state = ?",
                (GameState.PAYOUT_PENDING.value, game_id, GameState.ACTIVE.value),
            )
            return cursor.rowcount == 1

    def record_guess(self, game_id: str, user_id: str, guess: str, feedback: str) -> Guess:
        entry = Guess(
            id=self.new_id("guess"),
            game_id=game_id,
            user_id=user_id,
            guess=guess.lower(),
            feedback=feedback,
            created_at=self.now(),
        )
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO guesses (id, game_id, user_id, guess, feedback, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (entry.id, entry.game_id, entry.user_id, entry.guess, entry.feedback, entry.created_at),
            )
        return entry

    def list_guesses(self, game_id: str, user_id: str | None = None) -> list[Guess]:
        """List guesses for a game in submission order, optionally for one user."""
        with self.connection() as conn:
            cursor = conn.cursor()
            if user_id is None:
                cursor.execute(
                    """
                    SELECT id, game_id, user_id, guess, feedback, created_at
                    FROM guesses WHERE game_id = ?
                    ORDER BY created_at, rowid
                    """,
                    (game_id,),
                )
            else:
                cursor.execute(
                    """
                    SELECT id, game_id, user_id, guess, feedback, created_at
                    FROM guesses WHERE game_id = ? AND user_id = ?
                    ORDER BY created_at, rowid
                    """,
                    (game_id, user_id),
                )
            return [self._row_to_guess(row) for row in cursor.fetchall()]

    def _winnings_by_winner(
        self, cursor, space_id: str, winner_user_id: str | None = None
    ) -> dict[str, dict[str, int]]:
        """
        Sum successful payouts per winner and token.

        Amounts are TEXT, so summing happens here. Different tokens are never
        added together.
        """
        query = """
            SELECT ga.winner_user_id AS user_id, p.token, p.amount
            FROM payouts p
            JOIN games ga ON ga.id = p.game_id
            WHERE ga.space_id = ? AND ga.winner_user_id IS NOT NULL AND p.status = ?
        """
        params: list = [space_id, PayoutStatus.SUCCESS.value]
        if winner_user_id is not None:
            query += " AND ga.winner_user_id = ?"
            params.append(winner_user_id)
        cursor.execute(query, params)
        totals: dict[str, dict[str, int]] = {}
        for row in cursor.fetchall():
            per_token = totals.setdefault(row["user_id"], {})
            per_token[row["token"]] = per_token.get(row["token"], 0) + int(row["amount"])
        return totals

    def leaderboard(self, space_id: str, limit: int = 10) -> list[LeaderboardEntry]:
        """
        Rank winners in a space.

        wins: games won; total_guesses: the winner's guesses in games they won;
        total_winnings: successful payouts of those games, per token. Sorted by
        wins, then native winnings, both descending; ties keep first-win order.
        """
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT ga.winner_user_id AS user_id,
                       COUNT(*) AS wins,
                       MIN(ga.won_at) AS first_win
                FROM games ga
                WHERE ga.space_id = ? AND ga.winner_user_id IS NOT NULL
                GROUP BY ga.winner_user_id
                ORDER BY first_win, ga.winner_user_id
                """,
                (space_id,),
            )
            win_rows = cursor.fetchall()
            if not win_rows:
                return []

            cursor.execute(
                """
                SELECT ga.winner_user_id AS user_id, COUNT(g.id) AS guess_count
                FROM games ga
                JOIN guesses g ON g.game_id = ga.id AND g.user_id = ga.winner_user_id
                WHERE ga.space_id = ? AND ga.winner_user_id IS NOT NULL
                GROUP BY ga.winner_user_id
                """,
                (space_id,),
            )
            guess_counts = {row["user_id"]: row["guess_count"] for row in cursor.fetchall()}
            winnings = self._winnings_by_winner(cursor, space_id)

        entries = [
            LeaderboardEntry(
                user_id=row["user_id"],
                wins=row["wins"],
                total_guesses=guess_counts.get(row["user_id"], 0),
                total_winnings=winnings.get(row["user_id"], {}),
            )
            for row in win_rows
        ]
        entries.sort(key=lambda e: (-e.wins, -e.total_winnings.get(NATIVE_TOKEN, 0)))
        return entries[:limit]

    def user_stats(self, space_id: str, user_id: str) -> PlayerStats:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT COUNT(DISTINCT g.game_id) AS games_played, COUNT(g.id) AS total_guesses
                FROM guesses g
                JOIN games ga ON ga.id = g.game_id
                WHERE ga.space_id = ? AND g.user_id = ?
                """,
                (space_id, user_id),
            )
            guess_row = cursor.fetchone()
            cursor.execute(
                "SELECT COUNT(*) AS wins FROM games WHERE space_id = ? AND winner_user_id = ?",
                (space_id, user_id),
            )
            wins = cursor.fetchone()["wins"]
            winnings = self._winnings_by_winner(cursor, space_id, user_id)

        return PlayerStats(
            user_id=user_id,
            games_played=guess_row["games_played"],
            total_guesses=guess_row["total_guesses"],
            wins=wins,
            total_winnings=winnings.get(user_id, {}),
        )
