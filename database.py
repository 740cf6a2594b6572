"""
Database bootstrap for the Wordle Pot bot.
"""

import logging
import sqlite3

from infrastructure.schema_manager import SchemaManager

logger = logging.getLogger("wordle_bot.database")


class Database:
    """
    Ensures the SQLite schema exists at `db_path`.

    Repositories open their own connections; this class only owns schema
    initialization and a convenience connection for scripts and tests.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        SchemaManager(db_path).initialize()

    def get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn
