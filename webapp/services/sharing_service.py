"""Sharing service for business logic."""

from typing import List, Optional, Tuple

from common.logging_config import get_logger
from webapp.blob_store import S3BlobStore
from webapp.config import Settings
from webapp.domain import Node, SharedUser
from webapp.exceptions import (
    InvalidOperationError,
    NodeNotFoundError,
    PermissionDeniedError,
    UserNotFoundError,
    ValidationError,
)
from webapp.repositories.base import NodeRepository, UserRepository
from webapp.utils import normalize_email

logger = get_logger(__name__)


class SharingService:
    def __init__(
        self,
        node_repo: NodeRepository,
        user_repo: UserRepository,
        blob_store: S3BlobStore,
        settings: Settings,
    ):
        self.node_repo = node_repo
        self.user_repo = user_repo
        self.blob_store = blob_store
        self.settings = settings

    def share_file(self, file_id: str, owner_id: str, target_email: str) -> List[SharedUser]:
        """
        Grant read access on a node to the user registered under ``target_email``.

        Every check runs before anything is written. Sharing with a user who
        already has access changes nothing.

        Returns:
            Users the node is shared with after the change
        """
        node = self._require_owned(file_id, owner_id, "share")
        target = self._require_user(target_email)
        if target.user_id == owner_id:
            raise InvalidOperationError("Cannot share a file with yourself")

        if target.user_id in node.shared_with:
            logger.info(f"Node {file_id} already shared with {target.user_id} [user_id={owner_id}]")
        else:
            self.node_repo.add_share(file_id, owner_id, target.user_id)
            logger.info(f"Shared node {file_id} with {target.user_id} [user_id={owner_id}]")

        return self.list_shared_users(file_id, owner_id)

    def unshare_file(self, file_id: str, owner_id: str, target_email: str) -> List[SharedUser]:
        self._require_owned(file_id, owner_id, "unshare")
        target = self._require_user(target_email)

        self.node_repo.remove_share(file_id, target.user_id)
        logger.info(f"Revoked access to node {file_id} for {target.user_id} [user_id={owner_id}]")
        return self.list_shared_users(file_id, owner_id)

    def list_shared_users(self, file_id: str, requester_id: str) -> List[SharedUser]:
        node = self._require_owned(file_id, requester_id, "view sharing for")

        shared_users = []
        for user_id in sorted(node.shared_with):
            user = self.user_repo.get_by_id(user_id)
            if user is None:
                logger.warning(f"Share entry on node {file_id} points at missing user {user_id}")
                continue
            shared_users.append(SharedUser(user_id=user.user_id, email=user.email))

        shared_users.sort(key=lambda shared: shared.email)
        return shared_users

    def list_files_shared_with_me(self, user_id: str) -> List[Node]:
        nodes = self.node_repo.list_shared_with(user_id)
        logger.debug(f"Found {len(nodes)} nodes shared with user [user_id={user_id}]")
        return nodes

    def get_public_metadata(self, file_id: str) -> Tuple[Node, Optional[str]]:
        """
        Describe a node reachable through a shared link.

        Only nodes shared with at least one user are exposed. Files come back
        with a download URL, folders without one.

        Raises:
            NodeNotFoundError: If the node does not exist
            PermissionDeniedError: If the node is not shared with anyone
        """
        node = self.node_repo.get_node(file_id)
        if node is None:
            raise NodeNotFoundError(f"File '{file_id}' not found")
        if not node.shared_with:
            raise PermissionDeniedError("This file is not shared")

        download_url = None
        if not node.is_folder:
            download_url = self.blob_store.create_download_url(
                node.storage_key,
                self.settings.grant_ttl_seconds,
                file_name=node.name,
            )
        return node, download_url

    def _require_owned(self, file_id: str, owner_id: str, action: str) -> Node:
        node = self.node_repo.get_node(file_id)
        if node is None:
            raise NodeNotFoundError(f"File '{file_id}' not found")
        if node.owner_id != owner_id:
            logger.warning(f"Attempt to {action} node {file_id} by non-owner [user_id={owner_id}]")
            raise PermissionDeniedError(f"You do not have permission to {action} this file")
        return node

    def _require_user(self, email: str):
        try:
            normalized = normalize_email(email)
        except ValidationError:
            raise UserNotFoundError("User not found")

        user = self.user_repo.get_by_email(normalized)
        if user is None:
            raise UserNotFoundError("User not found")
        return user
