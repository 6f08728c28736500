"""Upload and download coordination between metadata and blob storage."""

from typing import Optional, Tuple

from common.constants import DEFAULT_CONTENT_TYPE
from common.logging_config import get_logger
from webapp.blob_store import S3BlobStore
from webapp.config import Settings
from webapp.domain import DownloadGrant, Node, NodeKind, UploadConfirmation, UploadGrant
from webapp.exceptions import (
    ConflictError,
    DriveException,
    NodeNotFoundError,
    PermissionDeniedError,
    StoreUnavailableError,
    ValidationError,
)
from webapp.repositories.base import NodeRepository
from webapp.utils import build_file_key, generate_uuid, is_file_key, owner_prefix, sanitize_name, utc_now

logger = get_logger(__name__)


class TransferService:
    """
    Issues time-limited grants for direct blob access and records the
    metadata of uploaded files.

    Grants are plain pre-signed URLs; once issued they cannot be revoked or
    renewed, only allowed to expire.
    """

    def __init__(self, node_repo: NodeRepository, blob_store: S3BlobStore, settings: Settings):
        self.node_repo = node_repo
        self.blob_store = blob_store
        self.settings = settings

    def prepare_upload(self, owner_id: str, file_name: str, content_type: Optional[str] = None) -> UploadGrant:
        name = sanitize_name(file_name)
        content_type = content_type or DEFAULT_CONTENT_TYPE
        storage_key = build_file_key(owner_id, name)
        expires_in = self.settings.grant_ttl_seconds

        upload_url = self.blob_store.create_upload_url(storage_key, content_type, expires_in)
        logger.info(f"Issued upload grant for '{name}' -> {storage_key} [user_id={owner_id}]")
        return UploadGrant(
            file_id=generate_uuid(),
            storage_key=storage_key,
            upload_url=upload_url,
            expires_in=expires_in,
        )

    def confirm_upload(self, owner_id: str, confirmation: UploadConfirmation) -> Node:
        """
        Record a file whose bytes the client already wrote through an upload grant.

        In ``verify`` mode the object is looked up and its actual size and
        content type are stored. In ``trust`` mode the reported values are
        stored as given.

        Raises:
            PermissionDeniedError: If the storage key lies outside the owner's prefix
            ValidationError: If the key is not a file key or verification finds no object under it
            ConflictError: If another node already references the key
            NodeNotFoundError: If the parent folder is missing or foreign
        """
        if not confirmation.storage_key.startswith(owner_prefix(owner_id)):
            logger.warning(
                f"Rejected upload confirmation for foreign key {confirmation.storage_key} [user_id={owner_id}]"
            )
            raise PermissionDeniedError("Storage key does not belong to you")
        if not is_file_key(owner_id, confirmation.storage_key):
            raise ValidationError("Storage key was not issued for a file upload")
        if self.node_repo.find_by_storage_key(confirmation.storage_key) is not None:
            logger.warning(
                f"Rejected upload confirmation for key already in use {confirmation.storage_key} [user_id={owner_id}]"
            )
            raise ConflictError("Storage key is already in use")

        name = sanitize_name(confirmation.file_name)
        self._require_parent_folder(owner_id, confirmation.parent_id)

        size_bytes = confirmation.size_bytes
        content_type = confirmation.content_type or DEFAULT_CONTENT_TYPE
        if self.settings.upload_confirmation_mode == "verify":
            blob = self.blob_store.head_object(confirmation.storage_key)
            if blob is None:
                raise ValidationError("Uploaded object was not found in storage")
            if blob.size_bytes != size_bytes:
                logger.info(
                    f"Reported size {size_bytes} differs from stored size {blob.size_bytes} "
                    f"for {confirmation.storage_key}"
                )
            size_bytes = blob.size_bytes
            content_type = blob.content_type or content_type
        elif size_bytes < 0:
            raise ValidationError("File size must not be negative")

        node = Node(
            id=confirmation.file_id or generate_uuid(),
            name=name,
            owner_id=owner_id,
            parent_id=confirmation.parent_id,
            kind=NodeKind.FILE,
            size_bytes=size_bytes,
            content_type=content_type,
            storage_key=confirmation.storage_key,
            created_at=utc_now(),
        )
        self.node_repo.create_node(node)
        logger.info(f"Recorded upload {node.id} ({size_bytes} bytes) [user_id={owner_id}]")
        return node

    def upload_file(
        self,
        owner_id: str,
        file_name: str,
        content_type: Optional[str],
        data: bytes,
        parent_id: Optional[str] = None,
    ) -> Node:
        name = sanitize_name(file_name)
        self._require_parent_folder(owner_id, parent_id)
        if len(data) > self.settings.max_upload_bytes:
            raise ValidationError(f"File exceeds the maximum upload size of {self.settings.max_upload_bytes} bytes")

        node = Node(
            id=generate_uuid(),
            name=name,
            owner_id=owner_id,
            parent_id=parent_id,
            kind=NodeKind.FILE,
            size_bytes=len(data),
            content_type=content_type or DEFAULT_CONTENT_TYPE,
            storage_key=build_file_key(owner_id, name),
            created_at=utc_now(),
        )

        self.blob_store.put_object(node.storage_key, data, node.content_type)
        try:
            self.node_repo.create_node(node)
        except DriveException:
            logger.error(f"Failed to record upload {node.id}; removing blob {node.storage_key}")
            try:
                self.blob_store.delete_object(node.storage_key)
            except StoreUnavailableError:
                logger.exception(f"Rollback failed, blob left orphaned: {node.storage_key}")
            raise

        logger.info(f"Uploaded file {node.id} '{name}' ({node.size_bytes} bytes) [user_id={owner_id}]")
        return node

    def prepare_download(self, file_id: str, requester_id: str) -> DownloadGrant:
        node = self._require_readable_file(file_id, requester_id)
        expires_in = self.settings.grant_ttl_seconds
        url = self.blob_store.create_download_url(node.storage_key, expires_in, file_name=node.name)
        logger.info(f"Issued download grant for {file_id} [user_id={requester_id}]")
        return DownloadGrant(url=url, expires_in=expires_in, file_name=node.name)

    def read_content(self, file_id: str, requester_id: str) -> Tuple[Node, str]:
        """
        Return a file's bytes decoded as text for inline preview.

        Undecodable bytes are replaced rather than rejected.

        Raises:
            ValidationError: If the node is a folder or larger than the preview limit
        """
        node = self._require_readable_file(file_id, requester_id)
        if node.size_bytes > self.settings.preview_max_bytes:
            raise ValidationError(f"File is too large to preview (limit {self.settings.preview_max_bytes} bytes)")

        data = self.blob_store.read_object(node.storage_key)
        if len(data) > self.settings.preview_max_bytes:
            raise ValidationError(f"File is too large to preview (limit {self.settings.preview_max_bytes} bytes)")
        return node, data.decode("utf-8", errors="replace")

    def _require_readable_file(self, file_id: str, requester_id: str) -> Node:
        node = self.node_repo.get_node(file_id)
        if node is None:
            raise NodeNotFoundError(f"File '{file_id}' not found")
        if not node.can_read(requester_id):
            logger.warning(f"Access denied to file {file_id} [user_id={requester_id}]")
            raise PermissionDeniedError("You do not have permission to access this file")
        if node.is_folder:
            raise ValidationError("Folders cannot be downloaded")
        return node

    def _require_parent_folder(self, owner_id: str, parent_id: Optional[str]) -> None:
        if parent_id is None:
            return
        parent = self.node_repo.get_node(parent_id)
        if parent is None or parent.owner_id != owner_id or not parent.is_folder:
            raise NodeNotFoundError(f"Folder '{parent_id}' not found")
