"""Repository layer for metadata and credential storage."""

from webapp.repositories.base import NodeRepository, UserRepository
from webapp.repositories.dynamo_repository import DynamoNodeRepository, DynamoUserRepository
from webapp.repositories.sqlite_repository import SqliteNodeRepository, SqliteUserRepository

__all__ = [
    "UserRepository",
    "NodeRepository",
    "SqliteUserRepository",
    "SqliteNodeRepository",
    "DynamoUserRepository",
    "DynamoNodeRepository",
]
