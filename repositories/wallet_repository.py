"""
Repository for player payout wallets.
"""

from repositories.base_repository import BaseRepository
from repositories.interfaces import IWalletRepository


class WalletRepository(BaseRepository, IWalletRepository):
    """
    Maps a chat user to the address their winnings are sent to.

    Rows are written from the funding address of each tip and from /wallet.
    The latest write wins.
    """

    def set_wallet(self, space_id: str, user_id: str, address: str) -> None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO player_wallets (space_id, user_id, address, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(space_id, user_id) DO UPDATE
                SET address = excluded.address, updated_at = excluded.updated_at
                """,
                (space_id, user_id, address, self.now()),
            )

    def get_wallet(self, space_id: str, user_id: str) -> str | None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT address FROM player_wallets WHERE space_id = ? AND user_id = ?",
                (space_id, user_id),
            )
            row = cursor.fetchone()
            return row["address"] if row else None
