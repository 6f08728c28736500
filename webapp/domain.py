"""Domain types shared by repositories, services and routes."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import FrozenSet, List, Optional


class NodeKind(str, Enum):
    FILE = "file"
    FOLDER = "folder"


@dataclass(frozen=True)
class User:
    user_id: str
    email: str
    password_hash: str
    created_at: datetime


@dataclass(frozen=True)
class SharedUser:
    user_id: str
    email: str


@dataclass(frozen=True)
class Node:
    """
    A file or folder record in a user's hierarchy.

    ``parent_id`` is None for top-level nodes. ``shared_with`` holds the ids
    of users granted read access and never contains ``owner_id``.
    """
    id: str
    name: str
    owner_id: str
    parent_id: Optional[str]
    kind: NodeKind
    size_bytes: int
    content_type: str
    storage_key: str
    created_at: datetime
    shared_with: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_folder(self) -> bool:
        return self.kind is NodeKind.FOLDER

    def can_read(self, user_id: str) -> bool:
        return user_id == self.owner_id or user_id in self.shared_with


@dataclass(frozen=True)
class FolderListing:
    folders: List[Node]
    files: List[Node]


@dataclass(frozen=True)
class BlobInfo:
    size_bytes: int
    content_type: str


@dataclass(frozen=True)
class UploadGrant:
    file_id: str
    storage_key: str
    upload_url: str
    expires_in: int


@dataclass(frozen=True)
class UploadConfirmation:
    """
    What a client reports after writing bytes through an upload grant.
    """
    file_id: Optional[str]
    file_name: str
    storage_key: str
    size_bytes: int
    content_type: str
    parent_id: Optional[str] = None


@dataclass(frozen=True)
class DownloadGrant:
    url: str
    expires_in: int
    file_name: str
