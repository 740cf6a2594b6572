"""
Game orchestration: tips, guesses, status queries and admin actions.

Transport independent. The Discord cog turns chat events into these calls
and turns the returned Results into messages.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from config import ALLOW_TOKEN_TIPS, CUSTODY_ADDRESS, LEADERBOARD_LIMIT
from domain.models.game import Game, Guess, LeaderboardEntry, PlayerStats
from domain.models.ledger import (
    NATIVE_TOKEN,
    Deposit,
    PayoutReceipt,
    is_address,
    normalize_token,
)
from domain.services.feedback_service import (
    WORD_LENGTH,
    Feedback,
    compute_feedback,
    format_feedback,
    is_correct,
)
from repositories.interfaces import IGameRepository, ILedgerRepository, IWalletRepository
from services import error_codes
from services.result import Result
from services.settlement_service import RolloverResult, SettlementService
from services.word_service import WordService

logger = logging.getLogger("wordle_bot.services.game")


@dataclass(frozen=True)
class TipEvent:
    """
    An observed tip to the custody address.

    `user_id` is the chat user credited with the tip; `sender_address` is the
    funding address. For wallet-only tips both may be the same address.
    """

    space_id: str
    channel_id: str
    user_id: str
    sender_address: str
    receiver_address: str
    currency: str | None
    amount: int
    tx_hash: str | None = None


@dataclass(frozen=True)
class TipReceipt:
    game: Game
    deposit: Deposit
    pool_balance: int
    late: bool = False


@dataclass(frozen=True)
class GuessOutcome:
    game: Game
    guess: Guess
    feedback: Feedback
    rendered: str
    correct: bool = False
    receipt: PayoutReceipt | None = None
    next_game: Game | None = None


@dataclass(frozen=True)
class PoolSummary:
    game: Game
    balances: dict[str, int]
    custody_native_balance: int | None  # None when the chain query failed
    eligible_count: int


@dataclass(frozen=True)
class GameStatus:
    game: Game
    eligible_count: int
    guess_count: int


class GameService:
    """
    Routes inbound tips, guesses and queries for every channel.

    Routing always targets the channel's latest game. A latest game in
    PAYOUT_PENDING means the round is being settled (or failed to settle) and
    no further guesses are taken until a new round exists.
    """

    def __init__(
        self,
        game_repo: IGameRepository,
        ledger_repo: ILedgerRepository,
        wallet_repo: IWalletRepository,
        word_service: WordService,
        settlement: SettlementService,
        custody_address: str | None = None,
        allow_token_tips: bool | None = None,
        leaderboard_limit: int | None = None,
    ):
        self.game_repo = game_repo
        self.ledger_repo = ledger_repo
        self.wallet_repo = wallet_repo
        self.word_service = word_service
        self.settlement = settlement
        self.custody_address = custody_address if custody_address is not None else CUSTODY_ADDRESS
        self.allow_token_tips = allow_token_tips if allow_token_tips is not None else ALLOW_TOKEN_TIPS
        self.leaderboard_limit = (
            leaderboard_limit if leaderboard_limit is not None else LEADERBOARD_LIMIT
        )

    def _latest_or_create(self, space_id: str, channel_id: str) -> tuple[Game, bool]:
        latest = self.game_repo.get_latest_game(space_id, channel_id)
        if latest is not None:
            return latest, False
        return self.game_repo.get_or_create_current_game(
            space_id, channel_id, self.word_service.random_target
        )

    async def get_or_create_game(self, space_id: str, channel_id: str) -> Game:
        """Return the channel's latest game, creating game #1 on first access."""
        game, created = await asyncio.to_thread(self._latest_or_create, space_id, channel_id)
        if created:
            logger.info(f"First game created for {space_id}:{channel_id}")
            await self.settlement.sync_custody_balance(game)
        return game

    # ------------------------------------------------------------------
    # Tips
    # ------------------------------------------------------------------

    async def record_tip(self, event: TipEvent) -> Result[TipReceipt]:
        """
        Record a tip into the channel's pot and grant eligibility.

        The tip goes to the channel's latest round as it stands when the
        deposit is written. If that round is being settled the tip is still
        recorded (flagged late, no eligibility) and the next round carries it.
        """
        if not self.custody_address or (
            event.receiver_address.strip().lower() != self.custody_address.strip().lower()
        ):
            return Result.fail("Tip was not sent to the pot.", code=error_codes.TIP_IGNORED)

        try:
            token = normalize_token(event.currency)
        except ValueError:
            return Result.fail(
                f"Unsupported currency {event.currency!r}.", code=error_codes.UNSUPPORTED_ASSET
            )
        if token != NATIVE_TOKEN and not self.allow_token_tips:
            return Result.fail(
                "Only native-currency tips count toward the pot.",
                code=error_codes.UNSUPPORTED_ASSET,
            )
        if event.amount <= 0:
            return Result.fail("Tip amount must be positive.", code=error_codes.VALIDATION_ERROR)

        await self.get_or_create_game(event.space_id, event.channel_id)
        sender_address = (event.sender_address or "").strip()
        sender = sender_address or event.user_id

        def _write() -> tuple[Game, Deposit, int]:
            # The ledger picks the target round under the write lock; a round
            # opened since our lookup receives the tip.
            deposit = self.ledger_repo.record_channel_deposit(
                event.space_id,
                event.channel_id,
                sender,
                token,
                event.amount,
                eligible_identifiers=(event.user_id, sender),
            )
            if is_address(sender_address):
                self.wallet_repo.set_wallet(event.space_id, event.user_id, sender_address)
            game = self.game_repo.get_game(deposit.game_id)
            return game, deposit, self.ledger_repo.pool_balance(deposit.game_id, token)

        game, deposit, balance = await asyncio.to_thread(_write)
        late = deposit.after_close
        logger.info(
            f"Tip {event.amount} {token} from {event.user_id} ({sender}) "
            f"recorded on game {game.id}{' after close' if late else ''}"
        )
        return Result.ok(TipReceipt(game=game, deposit=deposit, pool_balance=balance, late=late))

    # ------------------------------------------------------------------
    # Guesses
    # ------------------------------------------------------------------

    async def submit_guess(
        self, space_id: str, channel_id: str, user_id: str, raw_guess: str
    ) -> Result[GuessOutcome]:
        """
        Score a guess and, if it solves the round, settle it.

        Checks run in a fixed order (round open, eligibility, length,
        dictionary) so each rejection carries its own error code. Among
        concurrent correct guesses only the one that wins the lock settles;
        the others get RACE_LOST.
        """
        game = await self.get_or_create_game(space_id, channel_id)
        if not game.is_active:
            return Result.fail(
                "This round is already over, a new one starts shortly.",
                code=error_codes.GAME_NOT_ACTIVE,
            )

        eligible = await asyncio.to_thread(self.ledger_repo.is_eligible, game.id, user_id)
        if not eligible:
            return Result.fail(
                "Tip the pot to join this round before guessing.",
                code=error_codes.NOT_ELIGIBLE,
            )

        word = self.word_service.normalize_guess(raw_guess or "")
        if len(word) != WORD_LENGTH:
            return Result.fail(
                f"Guesses must be exactly {WORD_LENGTH} letters.",
                code=error_codes.VALIDATION_ERROR,
            )
        if not self.word_service.is_valid_guess(word):
            return Result.fail(f"'{word.upper()}' is not in the word list.", code=error_codes.INVALID_WORD)

        feedback = compute_feedback(word, game.target_word)
        guess = await asyncio.to_thread(
            self.game_repo.record_guess, game.id, user_id, word, feedback.emoji
        )
        rendered = format_feedback(word, feedback)
        if not is_correct(feedback):
            return Result.ok(GuessOutcome(game=game, guess=guess, feedback=feedback, rendered=rendered))

        locked = await asyncio.to_thread(self.game_repo.try_win_lock, game.id, user_id)
        if not locked:
            return Result.fail("Someone else solved it first!", code=error_codes.RACE_LOST)

        payout = await self.settlement.execute_payout(game, user_id)
        if not payout.success:
            logger.error(
                f"Settlement failed for game {game.id} won by {user_id}: "
                f"{payout.error_code}: {payout.error}"
            )
            await self.settlement.alert_operator(
                f"Settlement failed for Wordle #{game.game_number} in channel {channel_id} "
                f"(game {game.id}, winner {user_id}): {payout.error_code}: {payout.error}. "
                "Use /wordle-admin rollover once resolved."
            )
            return Result.fail(
                f"You solved it, but the payout failed ({payout.error}). "
                "An admin has been notified.",
                code=error_codes.SETTLEMENT_FAILED,
            )

        receipt = payout.value
        await self.settlement.announce_winner(game, user_id, receipt)
        next_game = await self.settlement.start_new_game(space_id, channel_id, carry_from=game)
        return Result.ok(
            GuessOutcome(
                game=game,
                guess=guess,
                feedback=feedback,
                rendered=rendered,
                correct=True,
                receipt=receipt,
                next_game=next_game,
            )
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def pool_summary(self, space_id: str, channel_id: str) -> PoolSummary:
        game = await self.get_or_create_game(space_id, channel_id)
        balances = await asyncio.to_thread(self.ledger_repo.pool_balances, game.id)
        eligible = await asyncio.to_thread(self.ledger_repo.list_eligible, game.id)
        try:
            custody_balance = await self.settlement.transport.get_balance(
                NATIVE_TOKEN, self.custody_address
            )
        except Exception as exc:
            logger.warning(f"Custody balance unavailable: {exc}")
            custody_balance = None
        return PoolSummary(
            game=game,
            balances=balances,
            custody_native_balance=custody_balance,
            eligible_count=len(eligible),
        )

    async def status(self, space_id: str, channel_id: str) -> GameStatus:
        game = await self.get_or_create_game(space_id, channel_id)
        eligible = await asyncio.to_thread(self.ledger_repo.list_eligible, game.id)
        guesses = await asyncio.to_thread(self.game_repo.list_guesses, game.id)
        return GameStatus(game=game, eligible_count=len(eligible), guess_count=len(guesses))

    async def leaderboard(self, space_id: str, limit: int | None = None) -> list[LeaderboardEntry]:
        limit = limit if limit is not None else self.leaderboard_limit
        return await asyncio.to_thread(self.game_repo.leaderboard, space_id, limit)

    async def player_stats(self, space_id: str, user_id: str) -> PlayerStats:
        return await asyncio.to_thread(self.game_repo.user_stats, space_id, user_id)

    async def set_wallet(self, space_id: str, user_id: str, address: str) -> Result[str]:
        address = (address or "").strip()
        if not is_address(address):
            return Result.fail(
                "That doesn't look like a wallet address (0x followed by 40 hex digits).",
                code=error_codes.INVALID_ADDRESS,
            )
        await asyncio.to_thread(self.wallet_repo.set_wallet, space_id, user_id, address)
        logger.info(f"Wallet for {user_id} in {space_id} set to {address}")
        return Result.ok(address)

    async def rollover(self, space_id: str, channel_id: str) -> Result[RolloverResult]:
        """Admin rollover. Permission is checked by the caller."""
        try:
            result = await self.settlement.rollover(space_id, channel_id)
        except ValueError as exc:
            return Result.fail(str(exc), code=error_codes.STATE_ERROR)
        return Result.ok(result)
