"""Relational schema and connection management for SQLite."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Optional


def init_database(db_path: str) -> None:
    """
    Initialize database and create tables if they don't exist.
    """
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    with get_db_connection(db_path) as conn:
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                user_id TEXT PRIMARY KEY,
                email TEXT UNIQUE NOT NULL,
                password_hash TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS files (
                file_id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                owner_id TEXT NOT NULL,
                parent_id TEXT,
                kind TEXT NOT NULL CHECK (kind IN ('file', 'folder')),
                size_bytes INTEGER NOT NULL DEFAULT 0,
                content_type TEXT NOT NULL,
                storage_key TEXT NOT NULL,
                created_at TEXT NOT NULL,
                FOREIGN KEY(owner_id) REFERENCES users(user_id),
                FOREIGN KEY(parent_id) REFERENCES files(file_id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS file_shares (
                file_id TEXT NOT NULL,
                owner_id TEXT NOT NULL,
                shared_with_id TEXT NOT NULL,
                created_at TEXT NOT NULL,
                PRIMARY KEY(file_id, shared_with_id),
                FOREIGN KEY(file_id) REFERENCES files(file_id) ON DELETE CASCADE,
                FOREIGN KEY(shared_with_id) REFERENCES users(user_id)
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_files_owner_parent ON files(owner_id, parent_id)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_shares_shared_with ON file_shares(shared_with_id)
        """)

        conn.commit()


@contextmanager
def get_db_connection(db_path: str) -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database connections.
    """
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
    finally:
        conn.close()


def get_row_value(row: Optional[sqlite3.Row], column: str, default: Any = None) -> Any:
    """
    Read a column from a sqlite3.Row, tolerating missing columns and NULLs.
    """
    if row is None or column not in row.keys():
        return default
    value = row[column]
    return default if value is None else value
