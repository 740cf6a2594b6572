"""
Repository for the prize ledger: pools, deposits, payouts and eligibility.
"""

from __future__ import annotations

import logging

from domain.models.game import GameState
from domain.models.ledger import Deposit, Payout, PayoutStatus
from repositories.base_repository import BaseRepository
from repositories.interfaces import ILedgerRepository

logger = logging.getLogger("wordle_bot.repositories.ledger")


class LedgerRepository(BaseRepository, ILedgerRepository):
    """
    Handles CRUD operations for pools, deposits, payouts and eligible_players.

    Amounts are unbounded ints stored as decimal TEXT; every read converts back
    to int and every arithmetic step happens in Python. Pools are only ever
    credited here.
    """

    @staticmethod
    def _row_to_deposit(row) -> Deposit:
        return Deposit(
            id=row["id"],
            game_id=row["game_id"],
            sender=row["sender"],
            token=row["token"],
            amount=int(row["amount"]),
            at=row["at"],
            after_close=bool(row["after_close"]),
        )

    @staticmethod
    def _row_to_payout(row) -> Payout:
        return Payout(
            id=row["id"],
            game_id=row["game_id"],
            token=row["token"],
            amount=int(row["amount"]),
            tx_hash=row["tx_hash"],
            status=PayoutStatus(row["status"]),
            created_at=row["created_at"],
        )

    def _credit_pool(self, cursor, game_id: str, token: str, amount: int) -> int:
        """Additive upsert of a pool row. Must run inside an atomic transaction."""
        if amount < 0:
            raise ValueError("Pool credits must be non-negative.")
        cursor.execute(
            "SELECT tracked_balance FROM pools WHERE game_id = ? AND token = ?",
            (game_id, token),
        )
        row = cursor.fetchone()
        new_balance = (int(row["tracked_balance"]) if row else 0) + amount
        cursor.execute(
            """
            INSERT INTO pools (game_id, token, tracked_balance, last_updated)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(game_id, token) DO UPDATE
            SET tracked_balance = excluded.tracked_balance, last_updated = excluded.last_updated
            """,
            (game_id, token, str(new_balance), self.now()),
        )
        return new_balance

    def credit_pool(self, game_id: str, token: str, amount: int) -> int:
        """
        Add `amount` to the game's pool for `token`, creating the row if absent.

        Returns:
            The new tracked balance
        """
        with self.atomic_transaction() as conn:
            return self._credit_pool(conn.cursor(), game_id, token, amount)

    def pool_balance(self, game_id: str, token: str) -> int:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT tracked_balance FROM pools WHERE game_id = ? AND token = ?",
                (game_id, token),
            )
            row = cursor.fetchone()
            return int(row["tracked_balance"]) if row else 0

    def pool_tokens(self, game_id: str) -> list[str]:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT token FROM pools WHERE game_id = ? ORDER BY rowid",
                (game_id,),
            )
            return [row["token"] for row in cursor.fetchall()]

    def pool_balances(self, game_id: str) -> dict[str, int]:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT token, tracked_balance FROM pools WHERE game_id = ? ORDER BY rowid",
                (game_id,),
            )
            return {row["token"]: int(row["tracked_balance"]) for row in cursor.fetchall()}

    def _insert_deposit(
        self, cursor, game_id: str, sender: str, token: str, amount: int, after_close: bool
    ) -> Deposit:
        """Insert a deposit row and credit its pool. Must run inside an atomic transaction."""
        if amount <= 0:
            raise ValueError("Deposit amount must be positive.")
        deposit = Deposit(
            id=self.new_id("deposit"),
            game_id=game_id,
            sender=sender,
            token=token,
            amount=amount,
            at=self.now(),
            after_close=after_close,
        )
        cursor.execute(
            """
            INSERT INTO deposits (id, game_id, sender, token, amount, at, after_close)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                deposit.id,
                deposit.game_id,
                deposit.sender,
                deposit.token,
                str(deposit.amount),
                deposit.at,
                1 if after_close else 0,
            ),
        )
        self._credit_pool(cursor, game_id, token, amount)
        return deposit

    def record_deposit(
        self, game_id: str, sender: str, token: str, amount: int, after_close: bool = False
    ) -> Deposit:
        """
        Record a tip and credit the pool in one transaction.

        A deposit row never exists without its matching pool credit.
        """
        with self.atomic_transaction() as conn:
            return self._insert_deposit(conn.cursor(), game_id, sender, token, amount, after_close)

    def record_channel_deposit(
        self,
        space_id: str,
        channel_id: str,
        sender: str,
        token: str,
        amount: int,
        eligible_identifiers=(),
    ) -> Deposit:
        """
        Record a tip against the channel's latest game.

        The target game and its state are read inside the write transaction,
        so a tip can never land on a round that was locked or superseded after
        the caller looked it up. On an ACTIVE game the identifiers become
        eligible; on a PAYOUT_PENDING game the deposit is flagged after_close
        and grants nothing.

        Raises:
            ValueError: If the amount is not positive or the channel has no game
        """
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT id, state FROM games
                WHERE space_id = ? AND channel_id = ?
                ORDER BY game_number DESC
                LIMIT 1
                """,
                (space_id, channel_id),
            )
            row = cursor.fetchone()
            if row is None:
                raise ValueError(f"Channel {space_id}:{channel_id} has no game.")
            late = row["state"] != GameState.ACTIVE.value
            deposit = self._insert_deposit(cursor, row["id"], sender, token, amount, late)
            if not late:
                for identifier in eligible_identifiers:
                    self._mark_eligible(cursor, row["id"], identifier)
        return deposit

    def list_deposits(self, game_id: str) -> list[Deposit]:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT id, game_id, sender, token, amount, at, after_close
                FROM deposits WHERE game_id = ?
                ORDER BY at, rowid
                """,
                (game_id,),
            )
            return [self._row_to_deposit(row) for row in cursor.fetchall()]

    def record_payout(
        self,
        game_id: str,
        token: str,
        amount: int,
        tx_hash: str,
        status: PayoutStatus = PayoutStatus.SUCCESS,
    ) -> Payout:
        payout = Payout(
            id=self.new_id("payout"),
            game_id=game_id,
            token=token,
            amount=amount,
            tx_hash=tx_hash,
            status=PayoutStatus(status),
            created_at=self.now(),
        )
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO payouts (id, game_id, token, amount, tx_hash, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    payout.id,
                    payout.game_id,
                    payout.token,
                    str(payout.amount),
                    payout.tx_hash,
                    payout.status.value,
                    payout.created_at,
                ),
            )
        return payout

    def list_payouts(self, game_id: str) -> list[Payout]:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT id, game_id, token, amount, tx_hash, status, created_at
                FROM payouts WHERE game_id = ?
                ORDER BY created_at, rowid
                """,
                (game_id,),
            )
            return [self._row_to_payout(row) for row in cursor.fetchall()]

    def paid_totals(self, game_id: str) -> dict[str, int]:
        """Per-token totals of successful payouts for a game."""
        totals: dict[str, int] = {}
        for payout in self.list_payouts(game_id):
            if payout.status == PayoutStatus.SUCCESS:
                totals[payout.token] = totals.get(payout.token, 0) + payout.amount
        return totals

    def unclaimed_totals(self, game_id: str) -> dict[str, int]:
        """
        Per-token tracked balance not yet paid out.

        Pending payouts count as paid: their transactions were submitted and
        the funds may already have left custody.
        """
        committed: dict[str, int] = {}
        for payout in self.list_payouts(game_id):
            if payout.status in (PayoutStatus.SUCCESS, PayoutStatus.PENDING):
                committed[payout.token] = committed.get(payout.token, 0) + payout.amount
        unclaimed = {}
        for token, tracked in self.pool_balances(game_id).items():
            remaining = tracked - committed.get(token, 0)
            if remaining > 0:
                unclaimed[token] = remaining
        return unclaimed

    def seed_pool_if_ledger_empty(self, game_id: str, token: str, amount: int) -> bool:
        """
        Credit `amount` to the game only while no pool exists for any game.

        The custody balance is shared by every channel, so it may seed at
        most one ledger.

        Returns:
            True if the pool was seeded
        """
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1 FROM pools LIMIT 1")
            if cursor.fetchone():
                return False
            self._credit_pool(cursor, game_id, token, amount)
            return True

    def _mark_eligible(self, cursor, game_id: str, identifier: str) -> None:
        normalized = self.normalize_identifier(identifier or "")
        if not normalized:
            return
        cursor.execute(
            """
            INSERT OR IGNORE INTO eligible_players (game_id, identifier, added_at)
            VALUES (?, ?, ?)
            """,
            (game_id, normalized, self.now()),
        )

    def mark_eligible(self, game_id: str, identifier: str) -> None:
        """Add an identifier to the game's eligible set. Idempotent."""
        with self.connection() as conn:
            self._mark_eligible(conn.cursor(), game_id, identifier)

    def is_eligible(self, game_id: str, identifier: str) -> bool:
        """
        True if the identifier was marked eligible, or matches (case-insensitively)
        the sender of any deposit for this game.
        """
        normalized = self.normalize_identifier(identifier)
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT 1 FROM eligible_players WHERE game_id = ? AND identifier = ?",
                (game_id, normalized),
            )
            if cursor.fetchone():
                return True
            cursor.execute(
                "SELECT 1 FROM deposits WHERE game_id = ? AND LOWER(sender) = ? LIMIT 1",
                (game_id, normalized),
            )
            return cursor.fetchone() is not None

    def list_eligible(self, game_id: str) -> list[str]:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT identifier FROM eligible_players WHERE game_id = ? ORDER BY added_at, rowid",
                (game_id,),
            )
            return [row["identifier"] for row in cursor.fetchall()]
