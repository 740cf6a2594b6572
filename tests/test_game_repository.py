"""
Tests for GameRepository: numbering, single active game, win lock, guesses
and leaderboard aggregation.
"""

import sqlite3
import threading

import pytest

from domain.models.game import GameState
from domain.models.ledger import NATIVE_TOKEN, PayoutStatus
from tests.conftest import (
    TEST_CHANNEL_ID,
    TEST_CHANNEL_ID_SECONDARY,
    TEST_SPACE_ID,
    TEST_SPACE_ID_SECONDARY,
    TOKEN_ADDRESS,
)


def finish(game_repo, game, winner="u1"):
    assert game_repo.try_win_lock(game.id, winner)


class TestGameNumbering:
    def test_first_game_is_number_one(self, game_repo):
        game = game_repo.create_game(TEST_SPACE_ID, TEST_CHANNEL_ID, "CRANE")
        assert game.game_number == 1
        assert game.state == GameState.ACTIVE
        assert game.target_word == "crane"

    def test_numbers_increase_per_channel(self, game_repo):
        numbers = []
        for _ in range(3):
            game = game_repo.create_game(TEST_SPACE_ID, TEST_CHANNEL_ID, "crane")
            numbers.append(game.game_number)
            finish(game_repo, game)
        assert numbers == [1, 2, 3]

    def test_channels_are_numbered_independently(self, game_repo):
        a = game_repo.create_game(TEST_SPACE_ID, TEST_CHANNEL_ID, "crane")
        b = game_repo.create_game(TEST_SPACE_ID, TEST_CHANNEL_ID_SECONDARY, "sheep")
        c = game_repo.create_game(TEST_SPACE_ID_SECONDARY, TEST_CHANNEL_ID, "speed")
        assert (a.game_number, b.game_number, c.game_number) == (1, 1, 1)

        finish(game_repo, a)
        a2 = game_repo.create_game(TEST_SPACE_ID, TEST_CHANNEL_ID, "crane")
        assert a2.game_number == 2


class TestSingleActiveGame:
    def test_create_rejects_second_active_game(self, game_repo):
        game_repo.create_game(TEST_SPACE_ID, TEST_CHANNEL_ID, "crane")
        with pytest.raises(ValueError):
            game_repo.create_game(TEST_SPACE_ID, TEST_CHANNEL_ID, "sheep")

    def test_unique_index_backs_the_invariant(self, game_repo, repo_db_path):
        game = game_repo.create_game(TEST_SPACE_ID, TEST_CHANNEL_ID, "crane")
        conn = sqlite3.connect(repo_db_path)
        try:
            with pytest.raises(sqlite3.IntegrityError):
                conn.execute(
                    "INSERT INTO games (id, space_id, channel_id, state, target_word, created_at, game_number) "
                    "VALUES ('x', ?, ?, 'ACTIVE', 'sheep', 0, 99)",
                    (TEST_SPACE_ID, TEST_CHANNEL_ID),
                )
        finally:
            conn.close()
        assert game_repo.get_current_game(TEST_SPACE_ID, TEST_CHANNEL_ID).id == game.id

    def test_get_or_create_reuses_active_game(self, game_repo):
        first, created = game_repo.get_or_create_current_game(TEST_SPACE_ID, TEST_CHANNEL_ID, lambda: "crane")
        second, created_again = game_repo.get_or_create_current_game(
            TEST_SPACE_ID, TEST_CHANNEL_ID, lambda: "sheep"
        )
        assert created and not created_again
        assert first.id == second.id
        assert second.target_word == "crane"

    def test_concurrent_get_or_create_makes_one_game(self, game_repo):
        results = []

        def worker():
            results.append(game_repo.get_or_create_current_game(TEST_SPACE_ID, TEST_CHANNEL_ID, lambda: "crane"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len({game.id for game, _ in results}) == 1
        assert sum(1 for _, created in results if created) == 1

    def test_latest_game_survives_payout_pending(self, game_repo):
        game = game_repo.create_game(TEST_SPACE_ID, TEST_CHANNEL_ID, "crane")
        finish(game_repo, game)
        assert game_repo.get_current_game(TEST_SPACE_ID, TEST_CHANNEL_ID) is None
        latest = game_repo.get_latest_game(TEST_SPACE_ID, TEST_CHANNEL_ID)
        assert latest.id == game.id
        assert latest.state == GameState.PAYOUT_PENDING


class TestWinLock:
    def test_lock_records_winner(self, game_repo):
        game = game_repo.create_game(TEST_SPACE_ID, TEST_CHANNEL_ID, "crane")
        assert game_repo.try_win_lock(game.id, "winner")
        locked = game_repo.get_game(game.id)
        assert locked.state == GameState.PAYOUT_PENDING
        assert locked.winner_user_id == "winner"
        assert locked.won_at is not None

    def test_second_lock_fails_and_keeps_first_winner(self, game_repo):
        game = game_repo.create_game(TEST_SPACE_ID, TEST_CHANNEL_ID, "crane")
        assert game_repo.try_win_lock(game.id, "first")
        assert not game_repo.try_win_lock(game.id, "second")
        assert game_repo.get_game(game.id).winner_user_id == "first"

    def test_concurrent_locks_have_exactly_one_winner(self, game_repo):
        game = game_repo.create_game(TEST_SPACE_ID, TEST_CHANNEL_ID, "crane")
        outcomes = {}
        barrier = threading.Barrier(10)

        def worker(user_id):
            barrier.wait()
            outcomes[user_id] = game_repo.try_win_lock(game.id, user_id)

        threads = [threading.Thread(target=worker, args=(f"u{i}",)) for i in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        winners = [uid for uid, won in outcomes.items() if won]
        assert len(winners) == 1
        assert game_repo.get_game(game.id).winner_user_id == winners[0]

    def test_end_without_winner(self, game_repo):
        game = game_repo.create_game(TEST_SPACE_ID, TEST_CHANNEL_ID, "crane")
        assert game_repo.end_without_winner(game.id)
        ended = game_repo.get_game(game.id)
        assert ended.state == GameState.PAYOUT_PENDING
        assert ended.winner_user_id is None
        assert not game_repo.end_without_winner(game.id)
        assert not game_repo.try_win_lock(game.id, "late")


class TestGuesses:
    def test_guesses_listed_in_order_with_duplicates(self, game_repo):
        game = game_repo.create_game(TEST_SPACE_ID, TEST_CHANNEL_ID, "crane")
        game_repo.record_guess(game.id, "u1", "SLATE", "⬜⬜🟩⬜🟩")
        game_repo.record_guess(game.id, "u2", "trace", "⬜🟩🟩🟩🟩")
        game_repo.record_guess(game.id, "u1", "slate", "⬜⬜🟩⬜🟩")

        all_guesses = game_repo.list_guesses(game.id)
        assert [g.guess for g in all_guesses] == ["slate", "trace", "slate"]
        assert [g.guess for g in game_repo.list_guesses(game.id, "u1")] == ["slate", "slate"]


class TestLeaderboard:
    def _win(self, game_repo, ledger_repo, winner, guesses, payout, channel=TEST_CHANNEL_ID):
        game = game_repo.create_game(TEST_SPACE_ID, channel, "crane")
        for _ in range(guesses):
            game_repo.record_guess(game.id, winner, "crane", "🟩🟩🟩🟩🟩")
        game_repo.record_guess(game.id, "bystander", "slate", "⬜⬜🟩⬜🟩")
        finish(game_repo, game, winner)
        if payout:
            ledger_repo.record_payout(game.id, NATIVE_TOKEN, payout, "0xtx")
        return game

    def test_sorted_by_wins_then_winnings(self, game_repo, ledger_repo):
        self._win(game_repo, ledger_repo, "alice", 3, 100)
        self._win(game_repo, ledger_repo, "bob", 2, 500)
        self._win(game_repo, ledger_repo, "carol", 1, 50)
        self._win(game_repo, ledger_repo, "carol", 4, 50)

        board = game_repo.leaderboard(TEST_SPACE_ID, limit=10)

        assert [e.user_id for e in board] == ["carol", "bob", "alice"]
        carol = board[0]
        assert (carol.wins, carol.total_guesses, carol.total_winnings) == (2, 5, {NATIVE_TOKEN: 100})

    def test_failed_payouts_do_not_count(self, game_repo, ledger_repo):
        game = self._win(game_repo, ledger_repo, "alice", 1, 0)
        ledger_repo.record_payout(game.id, NATIVE_TOKEN, 999, "0xbad", status=PayoutStatus.FAILED)
        assert game_repo.leaderboard(TEST_SPACE_ID)[0].total_winnings == {}

    def test_truncated_to_limit(self, game_repo, ledger_repo):
        for name in ["a", "b", "c", "d"]:
            self._win(game_repo, ledger_repo, name, 1, 10)
        assert len(game_repo.leaderboard(TEST_SPACE_ID, limit=2)) == 2

    def test_rollovers_and_other_spaces_excluded(self, game_repo, ledger_repo):
        game = game_repo.create_game(TEST_SPACE_ID, TEST_CHANNEL_ID, "crane")
        game_repo.end_without_winner(game.id)
        other = game_repo.create_game(TEST_SPACE_ID_SECONDARY, TEST_CHANNEL_ID, "crane")
        finish(game_repo, other, "elsewhere")
        assert game_repo.leaderboard(TEST_SPACE_ID) == []

    def test_user_stats(self, game_repo, ledger_repo):
        self._win(game_repo, ledger_repo, "alice", 2, 300)
        stats = game_repo.user_stats(TEST_SPACE_ID, "alice")
        assert (stats.games_played, stats.total_guesses, stats.wins, stats.total_winnings) == (
            1, 2, 1, {NATIVE_TOKEN: 300}
        )

        bystander = game_repo.user_stats(TEST_SPACE_ID, "bystander")
        assert (bystander.games_played, bystander.wins, bystander.total_winnings) == (1, 0, {})

    def test_winnings_kept_per_token(self, game_repo, ledger_repo):
        game = self._win(game_repo, ledger_repo, "alice", 1, 100)
        ledger_repo.record_payout(game.id, TOKEN_ADDRESS, 7, "0xtx")
        self._win(game_repo, ledger_repo, "alice", 1, 20)

        [entry] = game_repo.leaderboard(TEST_SPACE_ID)
        stats = game_repo.user_stats(TEST_SPACE_ID, "alice")

        assert entry.total_winnings == {NATIVE_TOKEN: 120, TOKEN_ADDRESS: 7}
        assert stats.total_winnings == {NATIVE_TOKEN: 120, TOKEN_ADDRESS: 7}

    def test_token_winnings_do_not_outrank_native(self, game_repo, ledger_repo):
        big_token = self._win(game_repo, ledger_repo, "alice", 1, 0)
        ledger_repo.record_payout(big_token.id, TOKEN_ADDRESS, 10**9, "0xtx")
        self._win(game_repo, ledger_repo, "bob", 1, 5)

        assert [e.user_id for e in game_repo.leaderboard(TEST_SPACE_ID)] == ["bob", "alice"]
