"""
Tests for GameService: tip routing, guess validation order, the win path,
concurrent winners and late tips.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from domain.models.game import GameState
from domain.models.ledger import NATIVE_TOKEN
from services import error_codes
from tests.conftest import (
    OPERATOR_CHANNEL,
    OTHER_ADDRESS,
    PLAYER_ADDRESS,
    TEST_CHANNEL_ID,
    TEST_SPACE_ID,
    TOKEN_ADDRESS,
    make_tip,
)


@pytest.fixture
def game(game_repo):
    """Pin the target word so guesses are deterministic."""
    return game_repo.create_game(TEST_SPACE_ID, TEST_CHANNEL_ID, "crane")


async def guess(game_service, user_id, word):
    return await game_service.submit_guess(TEST_SPACE_ID, TEST_CHANNEL_ID, user_id, word)


class TestRecordTip:
    @pytest.mark.asyncio
    async def test_tip_credits_pool_and_grants_eligibility(self, game_service, ledger_repo, wallet_repo, game):
        result = await game_service.record_tip(make_tip(amount=1000))

        assert result.success
        receipt = result.value
        assert receipt.game.id == game.id
        assert receipt.pool_balance == 1000
        assert not receipt.late
        assert ledger_repo.is_eligible(game.id, "42")
        assert ledger_repo.is_eligible(game.id, PLAYER_ADDRESS)
        assert wallet_repo.get_wallet(TEST_SPACE_ID, "42") == PLAYER_ADDRESS

    @pytest.mark.asyncio
    async def test_first_tip_creates_game(self, game_service, game_repo):
        result = await game_service.record_tip(make_tip())
        assert result.value.game.game_number == 1
        assert game_repo.get_current_game(TEST_SPACE_ID, TEST_CHANNEL_ID) is not None

    @pytest.mark.asyncio
    async def test_tip_to_other_address_ignored(self, game_service, ledger_repo, game):
        result = await game_service.record_tip(make_tip(receiver=OTHER_ADDRESS))
        assert result.error_code == error_codes.TIP_IGNORED
        assert ledger_repo.list_deposits(game.id) == []

    @pytest.mark.asyncio
    async def test_custody_match_is_case_insensitive(self, game_service):
        result = await game_service.record_tip(make_tip(receiver=("0x" + "C" * 40)))
        assert result.success

    @pytest.mark.asyncio
    async def test_token_tips_rejected_unless_enabled(self, game_service, ledger_repo, game):
        result = await game_service.record_tip(make_tip(currency=TOKEN_ADDRESS))
        assert result.error_code == error_codes.UNSUPPORTED_ASSET

        game_service.allow_token_tips = True
        result = await game_service.record_tip(make_tip(currency=TOKEN_ADDRESS))
        assert result.success
        assert ledger_repo.pool_balances(game.id) == {TOKEN_ADDRESS: 1000}

    @pytest.mark.asyncio
    async def test_unknown_currency_rejected(self, game_service):
        result = await game_service.record_tip(make_tip(currency="DOGE"))
        assert result.error_code == error_codes.UNSUPPORTED_ASSET

    @pytest.mark.asyncio
    async def test_zero_amount_rejected(self, game_service, ledger_repo, game):
        result = await game_service.record_tip(make_tip(amount=0))
        assert result.error_code == error_codes.VALIDATION_ERROR
        assert ledger_repo.list_deposits(game.id) == []

    @pytest.mark.asyncio
    async def test_late_tip_recorded_without_eligibility(self, game_service, game_repo, ledger_repo, game):
        game_repo.try_win_lock(game.id, "winner")

        result = await game_service.record_tip(make_tip(user_id="77", amount=30))

        assert result.success and result.value.late
        assert [(d.amount, d.after_close) for d in ledger_repo.list_deposits(game.id)] == [(30, True)]
        assert ledger_repo.unclaimed_totals(game.id) == {NATIVE_TOKEN: 30}
        assert ledger_repo.list_eligible(game.id) == []

    @pytest.mark.asyncio
    async def test_tip_read_against_settled_round_lands_on_next_round(
        self, game_service, settlement_service, game_repo, ledger_repo, game
    ):
        """The round is looked up before settlement but written after the next round opens."""
        game_repo.try_win_lock(game.id, "winner")
        next_game = await settlement_service.start_new_game(TEST_SPACE_ID, TEST_CHANNEL_ID, carry_from=game)

        with patch.object(game_service, "get_or_create_game", AsyncMock(return_value=game)):
            result = await game_service.record_tip(make_tip(user_id="77", amount=30))

        receipt = result.value
        assert receipt.game.id == next_game.id
        assert receipt.deposit.game_id == next_game.id
        assert not receipt.late
        assert receipt.pool_balance == 30
        assert ledger_repo.is_eligible(next_game.id, "77")
        assert ledger_repo.list_deposits(game.id) == []
        assert ledger_repo.unclaimed_totals(game.id) == {}

    @pytest.mark.asyncio
    async def test_sender_address_whitespace_is_stripped(self, game_service, ledger_repo, wallet_repo, game):
        result = await game_service.record_tip(make_tip(sender=PLAYER_ADDRESS + "\n"))

        assert result.value.deposit.sender == PLAYER_ADDRESS
        assert wallet_repo.get_wallet(TEST_SPACE_ID, "42") == PLAYER_ADDRESS
        assert ledger_repo.is_eligible(game.id, PLAYER_ADDRESS)


class TestGuessValidation:
    @pytest.mark.asyncio
    async def test_not_eligible(self, game_service, game):
        result = await guess(game_service, "stranger", "slate")
        assert result.error_code == error_codes.NOT_ELIGIBLE

    @pytest.mark.asyncio
    async def test_wrong_length(self, game_service, game):
        await game_service.record_tip(make_tip())
        for word in ("", "cran", "cranes"):
            result = await guess(game_service, "42", word)
            assert result.error_code == error_codes.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_not_in_dictionary(self, game_service, game):
        await game_service.record_tip(make_tip())
        result = await guess(game_service, "42", "zzzzz")
        assert result.error_code == error_codes.INVALID_WORD

    @pytest.mark.asyncio
    async def test_eligibility_checked_before_format(self, game_service, game):
        result = await guess(game_service, "stranger", "x")
        assert result.error_code == error_codes.NOT_ELIGIBLE

    @pytest.mark.asyncio
    async def test_closed_round_rejected_first(self, game_service, game_repo, game):
        game_repo.try_win_lock(game.id, "winner")
        result = await guess(game_service, "stranger", "x")
        assert result.error_code == error_codes.GAME_NOT_ACTIVE

    @pytest.mark.asyncio
    async def test_rejections_record_nothing(self, game_service, game_repo, game):
        await guess(game_service, "stranger", "slate")
        await game_service.record_tip(make_tip())
        await guess(game_service, "42", "zzzzz")
        assert game_repo.list_guesses(game.id) == []

    @pytest.mark.asyncio
    async def test_sender_address_can_guess(self, game_service, game):
        await game_service.record_tip(make_tip(user_id="42", sender=PLAYER_ADDRESS))
        result = await guess(game_service, PLAYER_ADDRESS.upper().replace("0X", "0x"), "slate")
        assert result.success


class TestGuessScoring:
    @pytest.mark.asyncio
    async def test_wrong_guess_returns_feedback(self, game_service, game_repo, game):
        await game_service.record_tip(make_tip())

        result = await guess(game_service, "42", " T R A C E ")

        assert result.success
        outcome = result.value
        assert not outcome.correct
        assert outcome.guess.guess == "trace"
        assert outcome.feedback.emoji == "⬜🟩🟩🟨🟩"
        assert game_repo.get_game(game.id).state == GameState.ACTIVE

    @pytest.mark.asyncio
    async def test_winning_guess_settles_and_starts_next_round(
        self, game_service, game_repo, ledger_repo, fake_transport, fake_messenger, game
    ):
        await game_service.record_tip(make_tip(amount=1000))
        fake_transport.balances[NATIVE_TOKEN] = 1000

        result = await guess(game_service, "42", "crane")

        assert result.success
        outcome = result.value
        assert outcome.correct
        assert outcome.receipt.entries[0].amount == 1000
        assert outcome.next_game.game_number == 2
        won = game_repo.get_game(game.id)
        assert won.state == GameState.PAYOUT_PENDING
        assert won.winner_user_id == "42"
        assert ledger_repo.paid_totals(game.id) == {NATIVE_TOKEN: 1000}
        assert game_repo.get_current_game(TEST_SPACE_ID, TEST_CHANNEL_ID).id == outcome.next_game.id
        assert len(fake_messenger.texts_for(TEST_CHANNEL_ID)) == 2  # winner + new round

    @pytest.mark.asyncio
    async def test_settlement_failure_keeps_game_locked_and_alerts(
        self, game_service, game_repo, ledger_repo, fake_transport, fake_messenger, game
    ):
        await game_service.record_tip(make_tip(amount=1000))
        fake_transport.balances[NATIVE_TOKEN] = 1000
        fake_transport.fail_transfer = True

        result = await guess(game_service, "42", "crane")

        assert result.error_code == error_codes.SETTLEMENT_FAILED
        assert game_repo.get_game(game.id).state == GameState.PAYOUT_PENDING
        assert ledger_repo.list_payouts(game.id) == []
        assert game_repo.get_current_game(TEST_SPACE_ID, TEST_CHANNEL_ID) is None
        assert len(fake_messenger.texts_for(OPERATOR_CHANNEL)) == 1

        follow_up = await guess(game_service, "42", "crane")
        assert follow_up.error_code == error_codes.GAME_NOT_ACTIVE

    @pytest.mark.asyncio
    async def test_partial_transfer_alert_names_submitted_hashes(
        self, game_service, ledger_repo, fake_transport, fake_messenger, game
    ):
        game_service.allow_token_tips = True
        await game_service.record_tip(make_tip(amount=1000))
        await game_service.record_tip(make_tip(currency=TOKEN_ADDRESS, amount=20))
        fake_transport.balances.update({NATIVE_TOKEN: 1000, TOKEN_ADDRESS: 20})
        fake_transport.fail_after = 1

        result = await guess(game_service, "42", "crane")

        assert result.error_code == error_codes.SETTLEMENT_FAILED
        [alert] = fake_messenger.texts_for(OPERATOR_CHANNEL)
        assert "0xpart1" in alert
        assert [(p.token, p.tx_hash) for p in ledger_repo.list_payouts(game.id)] == [
            (NATIVE_TOKEN, "0xpart1")
        ]

    @pytest.mark.asyncio
    async def test_admin_rollover_recovers_failed_settlement(
        self, game_service, game_repo, ledger_repo, fake_transport, game
    ):
        await game_service.record_tip(make_tip(amount=1000))
        await guess(game_service, "42", "crane")  # empty custody: NOTHING_TO_PAY

        result = await game_service.rollover(TEST_SPACE_ID, TEST_CHANNEL_ID)

        assert result.success
        assert ledger_repo.pool_balances(result.value.new_game.id) == {NATIVE_TOKEN: 1000}

    @pytest.mark.asyncio
    async def test_concurrent_correct_guesses_have_one_winner(
        self, game_service, ledger_repo, fake_transport, game
    ):
        users = [str(i) for i in range(1, 9)]
        for user_id in users:
            await game_service.record_tip(make_tip(user_id=user_id, sender=f"0x{int(user_id):040x}", amount=100))
        fake_transport.balances[NATIVE_TOKEN] = 800

        results = await asyncio.gather(*(guess(game_service, uid, "crane") for uid in users))

        winners = [r for r in results if r.success]
        assert len(winners) == 1
        # Losers either lose the lock or arrive after the round closed
        losing_codes = {error_codes.RACE_LOST, error_codes.GAME_NOT_ACTIVE, error_codes.NOT_ELIGIBLE}
        assert all(r.error_code in losing_codes for r in results if not r.success)
        assert len(fake_transport.transfers) == 1
        assert ledger_repo.paid_totals(game.id) == {NATIVE_TOKEN: 800}

    @pytest.mark.asyncio
    async def test_late_tips_carried_into_next_round(
        self, game_service, game_repo, ledger_repo, fake_transport, game
    ):
        await game_service.record_tip(make_tip(amount=500))
        fake_transport.balances[NATIVE_TOKEN] = 500

        # A tip that lands while settlement is in progress
        original_execute = game_service.settlement.execute_payout

        async def execute_with_late_tip(game_, winner):
            late = await game_service.record_tip(make_tip(user_id="77", amount=40))
            assert late.value.late
            return await original_execute(game_, winner)

        game_service.settlement.execute_payout = execute_with_late_tip

        result = await guess(game_service, "42", "crane")

        next_game = result.value.next_game
        assert result.value.receipt.entries[0].amount == 500
        assert ledger_repo.pool_balances(next_game.id) == {NATIVE_TOKEN: 40}


class TestQueries:
    @pytest.mark.asyncio
    async def test_pool_summary(self, game_service, fake_transport, game):
        await game_service.record_tip(make_tip(amount=250))
        fake_transport.balances[NATIVE_TOKEN] = 9999

        summary = await game_service.pool_summary(TEST_SPACE_ID, TEST_CHANNEL_ID)

        assert summary.balances == {NATIVE_TOKEN: 250}
        assert summary.custody_native_balance == 9999
        assert summary.eligible_count == 2  # user id and funding address

    @pytest.mark.asyncio
    async def test_pool_summary_degrades_when_chain_unavailable(self, game_service, fake_transport, game):
        fake_transport.failing_balance_tokens.add(NATIVE_TOKEN)
        summary = await game_service.pool_summary(TEST_SPACE_ID, TEST_CHANNEL_ID)
        assert summary.custody_native_balance is None

    @pytest.mark.asyncio
    async def test_status(self, game_service, game):
        await game_service.record_tip(make_tip())
        await guess(game_service, "42", "slate")
        status = await game_service.status(TEST_SPACE_ID, TEST_CHANNEL_ID)
        assert (status.game.game_number, status.eligible_count, status.guess_count) == (1, 2, 1)

    @pytest.mark.asyncio
    async def test_set_wallet_validates_address(self, game_service, wallet_repo):
        bad = await game_service.set_wallet(TEST_SPACE_ID, "42", "not-an-address")
        assert bad.error_code == error_codes.INVALID_ADDRESS

        good = await game_service.set_wallet(TEST_SPACE_ID, "42", f"  {OTHER_ADDRESS} ")
        assert good.value == OTHER_ADDRESS
        assert wallet_repo.get_wallet(TEST_SPACE_ID, "42") == OTHER_ADDRESS

    @pytest.mark.asyncio
    async def test_leaderboard_and_stats_after_win(self, game_service, fake_transport, game):
        await game_service.record_tip(make_tip(amount=100))
        fake_transport.balances[NATIVE_TOKEN] = 100
        await guess(game_service, "42", "slate")
        await guess(game_service, "42", "crane")

        board = await game_service.leaderboard(TEST_SPACE_ID)
        stats = await game_service.player_stats(TEST_SPACE_ID, "42")

        assert [(e.user_id, e.wins, e.total_guesses, e.total_winnings) for e in board] == [
            ("42", 1, 2, {NATIVE_TOKEN: 100})
        ]
        assert stats.wins == 1
