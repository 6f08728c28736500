"""Pydantic schemas for file and folder endpoints."""

from typing import List, Optional

from webapp.domain import Node, SharedUser
from webapp.schemas.common import CamelModel


class NodeResponse(CamelModel):
    """A file or folder as clients see it."""
    id: str
    name: str
    owner_id: str
    parent_folder_id: Optional[str] = None
    is_folder: bool
    size: int
    content_type: str
    storage_key: str
    shared_with: List[str] = []
    created_at: str

    @classmethod
    def from_node(cls, node: Node) -> "NodeResponse":
        return cls(
            id=node.id,
            name=node.name,
            owner_id=node.owner_id,
            parent_folder_id=node.parent_id,
            is_folder=node.is_folder,
            size=node.size_bytes,
            content_type=node.content_type,
            storage_key=node.storage_key,
            shared_with=sorted(node.shared_with),
            created_at=node.created_at.isoformat(),
        )


class ListFilesResponse(CamelModel):
    """Owned nodes at one level plus everything shared with the caller."""
    owned_files: List[NodeResponse]
    shared_files: List[NodeResponse]


class SharedFilesResponse(CamelModel):
    shared_files: List[NodeResponse]


class FileResponse(CamelModel):
    file: NodeResponse


class PresignUploadRequest(CamelModel):
    file_name: str
    content_type: Optional[str] = None


class PresignUploadResponse(CamelModel):
    file_id: str
    storage_key: str
    url: str
    expires_in: int


class ConfirmUploadRequest(CamelModel):
    """Request model for recording a pre-signed upload."""
    file_id: Optional[str] = None
    file_name: str
    storage_key: str
    size: int = 0
    content_type: Optional[str] = None
    parent_folder_id: Optional[str] = None


class PublicMetadataResponse(CamelModel):
    file: NodeResponse
    download_url: Optional[str] = None


class DownloadResponse(CamelModel):
    url: str
    expires_in: int
    file_name: str


class ContentResponse(CamelModel):
    file_id: str
    file_name: str
    content_type: str
    content: str


class DeleteResponse(CamelModel):
    """Response model for file and folder deletion."""
    success: bool = True
    deleted_ids: List[str]


class RenameRequest(CamelModel):
    file_id: str
    new_file_name: str


class MoveRequest(CamelModel):
    file_id: str
    destination_folder_id: Optional[str] = None


class ShareRequest(CamelModel):
    """Request model for sharing or unsharing a file by email."""
    file_id: str
    email: str


class SharedUserResponse(CamelModel):
    user_id: str
    email: str

    @classmethod
    def from_shared_user(cls, shared_user: SharedUser) -> "SharedUserResponse":
        return cls(user_id=shared_user.user_id, email=shared_user.email)


class SharedUsersResponse(CamelModel):
    shared_users: List[SharedUserResponse]
