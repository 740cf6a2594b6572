"""
Schema and migration management for SQLite database.
"""

import logging
import sqlite3

logger = logging.getLogger("wordle_bot.schema")


class SchemaManager:
    """
    Owns schema creation and migrations.

    Call initialize() to ensure schema is present and migrations are applied.
    """

    def __init__(self, db_path: str, use_uri: bool = False):
        self.db_path = db_path
        self.use_uri = use_uri

    def initialize(self) -> None:
        """Create base schema and apply migrations."""
        logger.info(f"Initializing database schema: {self.db_path}")
        with self._connect() as conn:
            cursor = conn.cursor()
            self._create_base_schema(cursor)
            self._create_schema_migrations_table(cursor)
            self._run_migrations(cursor)
            conn.commit()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, uri=self.use_uri)
        conn.row_factory = sqlite3.Row
        if not self.use_uri:  # Skip WAL for in-memory databases
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA busy_timeout=5000")
        return conn

    def _create_base_schema(self, cursor) -> None:
        # Games (one row per round)
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS games (
                id TEXT PRIMARY KEY,
                space_id TEXT NOT NULL,
                channel_id TEXT NOT NULL,
                state TEXT NOT NULL,
                target_word TEXT NOT NULL,
                winner_user_id TEXT,
                created_at REAL NOT NULL,
                won_at REAL,
                game_number INTEGER NOT NULL
            )
            """
        )

        # Guesses (append-only)
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS guesses (
                id TEXT PRIMARY KEY,
                game_id TEXT NOT NULL,
                user_id TEXT NOT NULL,
                guess TEXT NOT NULL,
                feedback TEXT NOT NULL,
                created_at REAL NOT NULL,
                FOREIGN KEY (game_id) REFERENCES games(id)
            )
            """
        )

        # Per-channel game number counters
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS game_number_counters (
                space_id TEXT NOT NULL,
                channel_id TEXT NOT NULL,
                count INTEGER NOT NULL DEFAULT 0,
                PRIMARY KEY (space_id, channel_id)
            )
            """
        )

    # --- Migration helpers ---

    def _add_column_if_not_exists(self, cursor, table: str, column: str, column_type: str) -> None:
        try:
            cursor.execute(f"ALTER TABLE {table} ADD COLUMN {column} {column_type}")
        except sqlite3.OperationalError:
            pass

    def _create_schema_migrations_table(self, cursor) -> None:
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                name TEXT PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )

    def _run_migrations(self, cursor) -> None:
        applied = {row["name"] for row in cursor.execute("SELECT name FROM schema_migrations")}
        for name, action in self._get_migrations():
            if name in applied:
                continue
            logger.info(f"Applying migration: {name}")
            action(cursor)
            cursor.execute(
                "INSERT INTO schema_migrations (name) VALUES (?)",
                (name,),
            )

    def _get_migrations(self):
        return [
            ("create_ledger_tables", self._migration_create_ledger_tables),
            ("create_eligible_players_table", self._migration_create_eligible_players_table),
            ("add_active_game_unique_index", self._migration_add_active_game_unique_index),
            ("add_deposit_after_close_column", self._migration_add_deposit_after_close_column),
            ("create_player_wallets_table", self._migration_create_player_wallets_table),
            ("add_leaderboard_indexes", self._migration_add_leaderboard_indexes),
        ]

    # --- Migrations ---

    def _migration_create_ledger_tables(self, cursor) -> None:
        """Pools, deposits and payouts. Amounts are stored as decimal TEXT (unbounded ints)."""
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS pools (
                game_id TEXT NOT NULL,
                token TEXT NOT NULL,
                tracked_balance TEXT NOT NULL,
                last_updated REAL NOT NULL,
                PRIMARY KEY (game_id, token),
                FOREIGN KEY (game_id) REFERENCES games(id)
            )
            """
        )
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS deposits (
                id TEXT PRIMARY KEY,
                game_id TEXT NOT NULL,
                sender TEXT NOT NULL,
                token TEXT NOT NULL,
                amount TEXT NOT NULL,
                at REAL NOT NULL,
                FOREIGN KEY (game_id) REFERENCES games(id)
            )
            """
        )
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS payouts (
                id TEXT PRIMARY KEY,
                game_id TEXT NOT NULL,
                token TEXT NOT NULL,
                amount TEXT NOT NULL,
                tx_hash TEXT NOT NULL,
                status TEXT NOT NULL,
                created_at REAL NOT NULL,
                FOREIGN KEY (game_id) REFERENCES games(id)
            )
            """
        )
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_deposits_game ON deposits(game_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_payouts_game ON payouts(game_id)")

    def _migration_create_eligible_players_table(self, cursor) -> None:
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS eligible_players (
                game_id TEXT NOT NULL,
                identifier TEXT NOT NULL,
                added_at REAL NOT NULL,
                PRIMARY KEY (game_id, identifier),
                FOREIGN KEY (game_id) REFERENCES games(id)
            )
            """
        )

    def _migration_add_active_game_unique_index(self, cursor) -> None:
        """At most one ACTIVE game per channel."""
        cursor.execute(
            """
            CREATE UNIQUE INDEX IF NOT EXISTS idx_games_one_active_per_channel
            ON games(space_id, channel_id) WHERE state = 'ACTIVE'
            """
        )
        cursor.execute(
            """
            CREATE UNIQUE INDEX IF NOT EXISTS idx_games_channel_number
            ON games(space_id, channel_id, game_number)
            """
        )

    def _migration_add_deposit_after_close_column(self, cursor) -> None:
        """Flag tips that arrived after the round was locked for payout."""
        self._add_column_if_not_exists(cursor, "deposits", "after_close", "INTEGER NOT NULL DEFAULT 0")

    def _migration_create_player_wallets_table(self, cursor) -> None:
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS player_wallets (
                space_id TEXT NOT NULL,
                user_id TEXT NOT NULL,
                address TEXT NOT NULL,
                updated_at REAL NOT NULL,
                PRIMARY KEY (space_id, user_id)
            )
            """
        )

    def _migration_add_leaderboard_indexes(self, cursor) -> None:
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_games_space_winner ON games(space_id, winner_user_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_guesses_game_user ON guesses(game_id, user_id)")
