"""
Base repository with common database operations.
"""

import logging
import sqlite3
import time
import uuid
from abc import ABC
from contextlib import contextmanager

from database import Database

logger = logging.getLogger("wordle_bot.repositories")


class BaseRepository(ABC):
    """
    Base class for all repositories.

    Provides common database connection management and utilities.
    """

    # Track DB paths that have already had schema initialization performed
    _schema_initialized_paths = set()

    def __init__(self, db_path: str):
        """
        Initialize repository with database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        # Ensure schema is initialized for this database path (idempotent)
        if db_path not in type(self)._schema_initialized_paths:
            Database(db_path)
            type(self)._schema_initialized_paths.add(db_path)

    @staticmethod
    def new_id(prefix: str) -> str:
        """Generate a unique row id such as ``game-3f2a...``."""
        return f"{prefix}-{uuid.uuid4().hex}"

    @staticmethod
    def now() -> float:
        return time.time()

    @staticmethod
    def normalize_identifier(identifier: str) -> str:
        """
        Normalize a user id or address for case-insensitive matching.

        Chat ids and checksummed addresses may arrive in different cases, so
        identifiers are always stored and compared lower-cased.
        """
        return identifier.strip().lower()

    def get_connection(self) -> sqlite3.Connection:
        """Get database connection with row factory enabled."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA busy_timeout=5000")
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    @contextmanager
    def connection(self):
        """
        Context manager for database connections.

        Automatically commits on success, rolls back on exception,
        and always closes the connection.
        """
        conn = self.get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def atomic_transaction(self):
        """
        Context manager for atomic transactions with immediate write lock.

        Uses BEGIN IMMEDIATE to acquire a write lock immediately, preventing
        concurrent writes from interleaving. Used wherever a read decides the
        following write (game number allocation, pool credits).

        The transaction commits on success and rolls back on exception.
        """
        conn = self.get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
