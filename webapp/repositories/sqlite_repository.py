"""Relational repositories backed by SQLite (users, files, file_shares)."""

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Generator, List, Optional

from common.logging_config import get_logger
from webapp.database import get_db_connection, get_row_value
from webapp.domain import Node, NodeKind, User
from webapp.exceptions import (
    ConflictError,
    NodeNotFoundError,
    StoreUnavailableError,
    UserAlreadyExistsError,
)
from webapp.repositories.base import NodeRepository, UserRepository
from webapp.utils import utc_now

logger = get_logger(__name__)


_NODE_SELECT = """
    SELECT f.file_id, f.name, f.owner_id, f.parent_id, f.kind, f.size_bytes,
           f.content_type, f.storage_key, f.created_at,
           GROUP_CONCAT(s.shared_with_id) AS shared_with
    FROM files f
    LEFT JOIN file_shares s ON s.file_id = f.file_id
"""


def _row_to_node(row: sqlite3.Row) -> Node:
    shared = get_row_value(row, "shared_with", "")
    return Node(
        id=row["file_id"],
        name=row["name"],
        owner_id=row["owner_id"],
        parent_id=row["parent_id"],
        kind=NodeKind(row["kind"]),
        size_bytes=row["size_bytes"],
        content_type=row["content_type"],
        storage_key=row["storage_key"],
        created_at=datetime.fromisoformat(row["created_at"]),
        shared_with=frozenset(shared.split(",")) if shared else frozenset(),
    )


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        user_id=row["user_id"],
        email=row["email"],
        password_hash=row["password_hash"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class _SqliteRepository:
    def __init__(self, db_path: str):
        self.db_path = db_path

    @contextmanager
    def _connect(self) -> Generator[sqlite3.Connection, None, None]:
        try:
            with get_db_connection(self.db_path) as conn:
                yield conn
        except sqlite3.OperationalError as e:
            logger.error(f"SQLite store unavailable at {self.db_path}: {e}", exc_info=True)
            raise StoreUnavailableError("Metadata database is unavailable") from e

    def ping(self) -> None:
        with self._connect() as conn:
            conn.execute("SELECT 1")


class SqliteUserRepository(_SqliteRepository, UserRepository):
    def create_user(self, user: User) -> User:
        logger.debug(f"Creating user [user_id={user.user_id}]")
        with self._connect() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO users (user_id, email, password_hash, created_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (user.user_id, user.email, user.password_hash, user.created_at.isoformat())
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                logger.warning(f"User insert rejected by constraint [user_id={user.user_id}]: {e}")
                raise UserAlreadyExistsError(f"User with email '{user.email}' already exists") from e

        logger.info(f"User created [user_id={user.user_id}]")
        return user

    def get_by_id(self, user_id: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT user_id, email, password_hash, created_at FROM users WHERE user_id = ?",
                (user_id,)
            ).fetchone()
            return _row_to_user(row) if row else None

    def get_by_email(self, email: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT user_id, email, password_hash, created_at FROM users WHERE email = ?",
                (email,)
            ).fetchone()
            return _row_to_user(row) if row else None


class SqliteNodeRepository(_SqliteRepository, NodeRepository):
    def create_node(self, node: Node) -> Node:
        logger.debug(f"Creating node {node.id} ({node.kind.value}) [owner_id={node.owner_id}]")
        with self._connect() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO files (file_id, name, owner_id, parent_id, kind, size_bytes,
                                       content_type, storage_key, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (node.id, node.name, node.owner_id, node.parent_id, node.kind.value,
                     node.size_bytes, node.content_type, node.storage_key, node.created_at.isoformat())
                )
                for user_id in node.shared_with:
                    self._insert_share(conn, node.id, node.owner_id, user_id)
                conn.commit()
            except sqlite3.IntegrityError as e:
                conn.rollback()
                logger.warning(f"Node insert rejected by constraint [file_id={node.id}]: {e}")
                raise ConflictError(f"Node '{node.id}' could not be created: {e}") from e
        return node

    def get_node(self, node_id: str) -> Optional[Node]:
        with self._connect() as conn:
            return self._fetch_node(conn, node_id)

    def find_by_storage_key(self, storage_key: str) -> Optional[Node]:
        with self._connect() as conn:
            row = conn.execute(
                _NODE_SELECT + """
                WHERE f.storage_key = ?
                GROUP BY f.file_id
                """,
                (storage_key,)
            ).fetchone()
            return _row_to_node(row) if row else None

    def list_children(self, owner_id: str, parent_id: Optional[str]) -> List[Node]:
        with self._connect() as conn:
            if parent_id is None:
                rows = conn.execute(
                    _NODE_SELECT + """
                    WHERE f.owner_id = ? AND f.parent_id IS NULL
                    GROUP BY f.file_id
                    ORDER BY f.name
                    """,
                    (owner_id,)
                ).fetchall()
            else:
                rows = conn.execute(
                    _NODE_SELECT + """
                    WHERE f.owner_id = ? AND f.parent_id = ?
                    GROUP BY f.file_id
                    ORDER BY f.name
                    """,
                    (owner_id, parent_id)
                ).fetchall()
            return [_row_to_node(row) for row in rows]

    def list_owned(self, owner_id: str) -> List[Node]:
        with self._connect() as conn:
            rows = conn.execute(
                _NODE_SELECT + """
                WHERE f.owner_id = ?
                GROUP BY f.file_id
                ORDER BY f.name
                """,
                (owner_id,)
            ).fetchall()
            return [_row_to_node(row) for row in rows]

    def list_shared_with(self, user_id: str) -> List[Node]:
        with self._connect() as conn:
            rows = conn.execute(
                _NODE_SELECT + """
                JOIN file_shares mine ON mine.file_id = f.file_id AND mine.shared_with_id = ?
                GROUP BY f.file_id
                ORDER BY f.name
                """,
                (user_id,)
            ).fetchall()
            return [_row_to_node(row) for row in rows]

    def count_nodes(self, owner_id: str) -> int:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS total FROM files WHERE owner_id = ?",
                (owner_id,)
            ).fetchone()
            return row["total"]

    def rename_node(self, node_id: str, name: str) -> Node:
        return self._update_column(node_id, "name", name)

    def set_parent(self, node_id: str, parent_id: Optional[str]) -> Node:
        return self._update_column(node_id, "parent_id", parent_id)

    def add_share(self, node_id: str, owner_id: str, user_id: str) -> None:
        with self._connect() as conn:
            try:
                self._insert_share(conn, node_id, owner_id, user_id)
                conn.commit()
            except sqlite3.IntegrityError as e:
                conn.rollback()
                raise NodeNotFoundError(f"Node '{node_id}' or user '{user_id}' not found") from e
        logger.debug(f"Share ensured [file_id={node_id}] [shared_with={user_id}]")

    def remove_share(self, node_id: str, user_id: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM file_shares WHERE file_id = ? AND shared_with_id = ?",
                (node_id, user_id)
            )
            conn.commit()
        logger.debug(f"Share removed [file_id={node_id}] [shared_with={user_id}]")

    def delete_node(self, node_id: str) -> bool:
        with self._connect() as conn:
            try:
                cursor = conn.execute("DELETE FROM files WHERE file_id = ?", (node_id,))
                conn.commit()
            except sqlite3.IntegrityError as e:
                conn.rollback()
                logger.warning(f"Node delete rejected by constraint [file_id={node_id}]: {e}")
                raise ConflictError(f"Node '{node_id}' still has children") from e
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info(f"Node deleted [file_id={node_id}]")
        return deleted

    def _fetch_node(self, conn: sqlite3.Connection, node_id: str) -> Optional[Node]:
        row = conn.execute(
            _NODE_SELECT + """
            WHERE f.file_id = ?
            GROUP BY f.file_id
            """,
            (node_id,)
        ).fetchone()
        return _row_to_node(row) if row else None

    def _update_column(self, node_id: str, column: str, value: Optional[str]) -> Node:
        with self._connect() as conn:
            cursor = conn.execute(
                f"UPDATE files SET {column} = ? WHERE file_id = ?",
                (value, node_id)
            )
            if cursor.rowcount == 0:
                raise NodeNotFoundError(f"Node '{node_id}' not found")
            conn.commit()
            return self._fetch_node(conn, node_id)

    @staticmethod
    def _insert_share(conn: sqlite3.Connection, node_id: str, owner_id: str, user_id: str) -> None:
        conn.execute(
            """
            INSERT OR IGNORE INTO file_shares (file_id, owner_id, shared_with_id, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (node_id, owner_id, user_id, utc_now().isoformat())
        )
