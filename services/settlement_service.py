"""
Settlement orchestration: payout plans, transfers, new rounds and rollovers.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from config import (
    CUSTODY_ADDRESS,
    OPERATOR_CHANNEL_ID,
    RECOVERY_SYNC_DUST_THRESHOLD,
    RECOVERY_SYNC_ENABLED,
)
from domain.models.game import Game
from domain.models.ledger import (
    NATIVE_TOKEN,
    PayoutPlanEntry,
    PayoutReceipt,
    PayoutStatus,
    TransferInstruction,
)
from repositories.interfaces import IGameRepository, ILedgerRepository
from services import error_codes
from services.interfaces import (
    IAssetTransport,
    IDefinitionLookup,
    IIdentityResolver,
    IMessenger,
    PartialTransferError,
)
from services.result import Result
from services.word_service import WordService
from utils.formatting import format_amount, format_pool, format_user

logger = logging.getLogger("wordle_bot.services.settlement")


@dataclass(frozen=True)
class RolloverResult:
    """Outcome of an admin rollover. `rolled` maps token to the amount carried."""

    previous_game: Game | None
    new_game: Game
    rolled: dict[str, int] = field(default_factory=dict)


class SettlementService:
    """
    Coordinates everything that happens after a round is decided.

    The win lock itself lives in the game repository; this service only runs
    on the path that acquired it. Payouts are never retried automatically:
    a failed settlement leaves the game PAYOUT_PENDING for an admin rollover.
    """

    def __init__(
        self,
        game_repo: IGameRepository,
        ledger_repo: ILedgerRepository,
        word_service: WordService,
        transport: IAssetTransport,
        identity: IIdentityResolver,
        messenger: IMessenger,
        definitions: IDefinitionLookup | None = None,
        custody_address: str | None = None,
        operator_channel_id: int | str | None = None,
        recovery_sync_enabled: bool | None = None,
        recovery_dust_threshold: int | None = None,
    ):
        self.game_repo = game_repo
        self.ledger_repo = ledger_repo
        self.word_service = word_service
        self.transport = transport
        self.identity = identity
        self.messenger = messenger
        self.definitions = definitions
        self.custody_address = custody_address if custody_address is not None else CUSTODY_ADDRESS
        self.operator_channel_id = (
            operator_channel_id if operator_channel_id is not None else OPERATOR_CHANNEL_ID
        )
        self.recovery_sync_enabled = (
            recovery_sync_enabled if recovery_sync_enabled is not None else RECOVERY_SYNC_ENABLED
        )
        self.recovery_dust_threshold = (
            recovery_dust_threshold
            if recovery_dust_threshold is not None
            else RECOVERY_SYNC_DUST_THRESHOLD
        )

    # ------------------------------------------------------------------
    # Messaging helpers
    # ------------------------------------------------------------------

    async def _send(self, channel_id, text: str) -> None:
        """Fire-and-forget send; delivery failures are logged, never raised."""
        try:
            await self.messenger.send_message(str(channel_id), text)
        except Exception as exc:
            logger.warning(f"Failed to send message to channel {channel_id}: {exc}")

    async def alert_operator(self, text: str) -> None:
        if self.operator_channel_id is None:
            logger.error(f"Operator alert (no operator channel configured): {text}")
            return
        await self._send(self.operator_channel_id, f"⚠️ {text}")

    # ------------------------------------------------------------------
    # Payout
    # ------------------------------------------------------------------

    async def build_payout_plan(self, game: Game) -> list[PayoutPlanEntry]:
        """
        Cap each tracked balance by what the custody address really holds.

        Tokens whose balance query fails are skipped; they stay in the ledger
        and can be carried by a later rollover.
        """
        balances = await asyncio.to_thread(self.ledger_repo.pool_balances, game.id)
        plan: list[PayoutPlanEntry] = []
        for token, tracked in balances.items():
            if tracked <= 0:
                continue
            try:
                actual = await self.transport.get_balance(token, self.custody_address)
            except Exception as exc:
                logger.warning(f"Balance query for {token} failed, skipping it in payout plan: {exc}")
                continue
            amount = min(tracked, actual)
            if amount < tracked:
                logger.warning(
                    f"Game {game.id}: tracked {tracked} of {token} but custody holds {actual}"
                )
            if amount > 0:
                plan.append(PayoutPlanEntry(token=token, amount=amount))
        return plan

    async def execute_payout(self, game: Game, winner_user_id: str) -> Result[PayoutReceipt]:
        """
        Pay the whole plan to the winner in one batched transfer.

        A transfer rejected before anything was submitted leaves the ledger
        untouched. Anything submitted but not confirmed is recorded as a
        pending payout under its hash, so a later rollover cannot pay it
        twice and the operator can reconcile it.
        """
        address = await asyncio.to_thread(
            self.identity.resolve_payout_address, game.space_id, winner_user_id
        )
        if not address:
            return Result.fail(
                f"No payout address is known for {winner_user_id}.",
                code=error_codes.WINNER_UNRESOLVABLE,
            )

        plan = await self.build_payout_plan(game)
        if not plan:
            return Result.fail("The pot is empty.", code=error_codes.NOTHING_TO_PAY)

        instructions = [
            TransferInstruction(to=address, token=entry.token, amount=entry.amount)
            for entry in plan
        ]
        try:
            tx_reference = await self.transport.transfer(self.custody_address, instructions)
        except PartialTransferError as exc:
            logger.error(f"Payout transfer for game {game.id} partially submitted: {exc}", exc_info=True)
            for instruction, tx_hash in exc.sent:
                await asyncio.to_thread(
                    self.ledger_repo.record_payout,
                    game.id,
                    instruction.token,
                    instruction.amount,
                    tx_hash,
                    PayoutStatus.PENDING,
                )
            return Result.fail(
                f"Transfer failed after submitting {', '.join(exc.tx_hashes)}: {exc.cause}",
                code=error_codes.TRANSFER_FAILED,
            )
        except Exception as exc:
            logger.error(f"Payout transfer for game {game.id} failed: {exc}", exc_info=True)
            return Result.fail(f"Transfer failed: {exc}", code=error_codes.TRANSFER_FAILED)

        try:
            await self.transport.await_confirmation(tx_reference)
        except Exception as exc:
            logger.error(f"Payout {tx_reference} for game {game.id} unconfirmed: {exc}", exc_info=True)
            for entry in plan:
                await asyncio.to_thread(
                    self.ledger_repo.record_payout,
                    game.id,
                    entry.token,
                    entry.amount,
                    tx_reference,
                    PayoutStatus.PENDING,
                )
            return Result.fail(
                f"Transfer {tx_reference} was not confirmed: {exc}",
                code=error_codes.TRANSFER_FAILED,
            )

        for entry in plan:
            await asyncio.to_thread(
                self.ledger_repo.record_payout, game.id, entry.token, entry.amount, tx_reference
            )
        logger.info(
            f"Paid game {game.id} to {winner_user_id} ({address}): "
            f"{', '.join(f'{e.amount} {e.token}' for e in plan)} in {tx_reference}"
        )
        return Result.ok(PayoutReceipt(tx_reference=tx_reference, entries=tuple(plan)))

    async def announce_winner(self, game: Game, winner_user_id: str, receipt: PayoutReceipt) -> None:
        prize = ", ".join(format_amount(e.token, e.amount) for e in receipt.entries)
        lines = [
            f"🎉 {format_user(winner_user_id)} solved Wordle #{game.game_number}! "
            f"The word was **{game.target_word.upper()}**.",
            f"💰 Prize: {prize}",
            f"🔗 Transaction: `{receipt.tx_reference}`",
        ]
        if self.definitions is not None:
            try:
                definition = await self.definitions.define(game.target_word)
            except Exception as exc:
                logger.warning(f"Definition lookup failed for {game.target_word}: {exc}")
                definition = None
            if definition:
                lines.append(f"📖 *{game.target_word.upper()}*: {definition}")
        await self._send(game.channel_id, "\n".join(lines))

    # ------------------------------------------------------------------
    # New rounds
    # ------------------------------------------------------------------

    async def start_new_game(self, space_id: str, channel_id: str, carry_from: Game | None = None) -> Game:
        """
        Open the next round for a channel.

        Reuses a round created concurrently by first access. Whatever
        `carry_from` still holds unpaid is credited forward: late tips, and
        any part of the pot the payout could not cover. The carry is read
        after the new round exists, so later tips route to the new round
        and nothing lands on `carry_from` afterwards.
        """
        game, created = await asyncio.to_thread(
            self.game_repo.get_or_create_current_game,
            space_id,
            channel_id,
            self.word_service.random_target,
        )
        carried: dict[str, int] = {}
        if carry_from is not None:
            carried = await asyncio.to_thread(self.ledger_repo.unclaimed_totals, carry_from.id)
            for token, amount in carried.items():
                await asyncio.to_thread(self.ledger_repo.credit_pool, game.id, token, amount)
            if carried:
                logger.info(f"Carried unclaimed {carried} from {carry_from.id} to {game.id}")

        if created:
            text = f"🟩 Wordle #{game.game_number} has started! Tip the pot to join, then guess with `/guess`."
            if carried:
                text += f"\nCarried into this round:\n{format_pool(carried)}"
            await self._send(channel_id, text)
        return game

    async def rollover(self, space_id: str, channel_id: str) -> RolloverResult:
        """
        Close the current round without a winner and carry its unclaimed balance.

        Unclaimed means tracked minus successful and pending payouts, per
        token. Nothing moves on chain. The balance is read once the new round
        exists, so a tip racing the rollover is either counted here or routed
        to the new round.

        Raises:
            ValueError: If the round was won while the rollover was in progress
        """
        previous = await asyncio.to_thread(self.game_repo.get_latest_game, space_id, channel_id)
        if previous is not None and previous.is_active:
            ended = await asyncio.to_thread(self.game_repo.end_without_winner, previous.id)
            if not ended:
                raise ValueError(f"Game {previous.id} was settled before the rollover could close it.")

        game, _ = await asyncio.to_thread(
            self.game_repo.get_or_create_current_game,
            space_id,
            channel_id,
            self.word_service.random_target,
        )
        rolled: dict[str, int] = {}
        if previous is not None:
            rolled = await asyncio.to_thread(self.ledger_repo.unclaimed_totals, previous.id)
        for token, amount in rolled.items():
            await asyncio.to_thread(self.ledger_repo.credit_pool, game.id, token, amount)

        logger.info(
            f"Rollover in {space_id}:{channel_id}: "
            f"{previous.id if previous else 'none'} -> {game.id}, carried {rolled}"
        )
        text = f"🔄 The round was rolled over. Wordle #{game.game_number} has started!"
        if previous is not None:
            text += f" The word was **{previous.target_word.upper()}**."
        text += f"\nCarried into the new pot:\n{format_pool(rolled)}"
        await self._send(channel_id, text)
        return RolloverResult(previous_game=previous, new_game=game, rolled=rolled)

    async def sync_custody_balance(self, game: Game) -> int:
        """
        Seed an empty pool from the custody's native balance.

        Lets a bot restarted with funds but no ledger still pay out. One
        custody address backs every channel, so only the first game created
        on an empty ledger is seeded. Returns the amount credited (0 when
        disabled, skipped or failed).
        """
        if not self.recovery_sync_enabled:
            return 0
        tokens = await asyncio.to_thread(self.ledger_repo.pool_tokens, game.id)
        if tokens:
            return 0
        try:
            balance = await self.transport.get_balance(NATIVE_TOKEN, self.custody_address)
        except Exception as exc:
            logger.warning(f"Custody balance sync failed: {exc}")
            return 0
        if balance <= self.recovery_dust_threshold:
            return 0
        seeded = await asyncio.to_thread(
            self.ledger_repo.seed_pool_if_ledger_empty, game.id, NATIVE_TOKEN, balance
        )
        if not seeded:
            logger.info(f"Ledger already holds pools, not syncing custody balance into {game.id}")
            return 0
        logger.info(f"Synced custody balance {balance} into game {game.id}")
        return balance
