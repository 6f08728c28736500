"""Folder/file hierarchy service for business logic.

Nodes form one forest per owner. Every mutation checks existence and
ownership before touching the metadata store, and moves walk the
destination's ancestor chain so that no node can become its own ancestor.
"""

from typing import Iterator, List, Optional

from common.constants import FOLDER_CONTENT_TYPE
from common.logging_config import get_logger
from webapp.blob_store import S3BlobStore
from webapp.domain import FolderListing, Node, NodeKind
from webapp.exceptions import (
    DriveException,
    FolderNotEmptyError,
    HierarchyCorruptionError,
    InvalidDestinationError,
    NodeNotFoundError,
    PermissionDeniedError,
    StoreUnavailableError,
)
from webapp.repositories.base import NodeRepository
from webapp.utils import build_folder_prefix, generate_uuid, owner_prefix, sanitize_name, utc_now

logger = get_logger(__name__)


class HierarchyService:
    def __init__(self, node_repo: NodeRepository, blob_store: S3BlobStore, folder_delete_policy: str = "reject"):
        self.node_repo = node_repo
        self.blob_store = blob_store
        self.folder_delete_policy = folder_delete_policy

    def create_folder(self, owner_id: str, name: str, parent_id: Optional[str] = None) -> Node:
        folder_name = sanitize_name(name)
        logger.info(f"Creating folder '{folder_name}' under {parent_id or 'top level'} [user_id={owner_id}]")

        if parent_id is not None:
            parent = self.require_owned_folder(owner_id, parent_id)
            parent_prefix = parent.storage_key
        else:
            parent_prefix = owner_prefix(owner_id)

        folder = Node(
            id=generate_uuid(),
            name=folder_name,
            owner_id=owner_id,
            parent_id=parent_id,
            kind=NodeKind.FOLDER,
            size_bytes=0,
            content_type=FOLDER_CONTENT_TYPE,
            storage_key=build_folder_prefix(parent_prefix, folder_name),
            created_at=utc_now(),
        )

        self.blob_store.put_folder_marker(folder.storage_key)
        try:
            self.node_repo.create_node(folder)
        except DriveException:
            logger.error(f"Failed to record folder {folder.id}; removing marker under {folder.storage_key}")
            try:
                self.blob_store.delete_folder_marker(folder.storage_key)
            except StoreUnavailableError:
                logger.exception(f"Rollback failed, folder marker left orphaned: {folder.storage_key}")
            raise
        logger.info(f"Folder created [folder_id={folder.id}] [user_id={owner_id}]")
        return folder

    def list_children(self, owner_id: str, parent_id: Optional[str] = None) -> FolderListing:
        if parent_id is not None:
            self.require_owned_folder(owner_id, parent_id)

        children = self.node_repo.list_children(owner_id, parent_id)
        folders = [node for node in children if node.is_folder]
        files = [node for node in children if not node.is_folder]
        logger.debug(
            f"Listed {len(folders)} folders and {len(files)} files under {parent_id or 'top level'} "
            f"[user_id={owner_id}]"
        )
        return FolderListing(folders=folders, files=files)

    def get_node(self, node_id: str, requester_id: str) -> Node:
        node = self._require_node(node_id)
        if not node.can_read(requester_id):
            logger.warning(f"Read denied [node_id={node_id}] [user_id={requester_id}]")
            raise PermissionDeniedError("You do not have permission to view this item")
        return node

    def get_folder(self, folder_id: str, requester_id: str) -> Node:
        node = self.get_node(folder_id, requester_id)
        if not node.is_folder:
            raise NodeNotFoundError(f"Folder '{folder_id}' not found")
        return node

    def folder_path(self, folder_id: str, requester_id: str) -> List[Node]:
        """
        Return the chain of folders from the top level down to ``folder_id``.

        For a sharee the chain stops at the shared folder itself, since the
        owner's enclosing folders are not theirs to see.
        """
        folder = self.get_folder(folder_id, requester_id)
        if folder.owner_id != requester_id:
            return [folder]

        chain = [folder]
        for ancestor in self._ancestors(folder):
            chain.append(ancestor)
        chain.reverse()
        return chain

    def rename_node(self, node_id: str, requester_id: str, new_name: str) -> Node:
        node = self._require_owned_node(node_id, requester_id, "rename")
        name = sanitize_name(new_name)
        if name == node.name:
            return node

        # Storage keys are fixed at creation, so renames only touch metadata.
        renamed = self.node_repo.rename_node(node_id, name)
        logger.info(f"Renamed node {node_id} '{node.name}' -> '{name}' [user_id={requester_id}]")
        return renamed

    def move_node(self, node_id: str, requester_id: str, destination_parent_id: Optional[str] = None) -> Node:
        node = self._require_owned_node(node_id, requester_id, "move")

        if destination_parent_id is not None:
            destination = self.node_repo.get_node(destination_parent_id)
            if destination is None:
                raise InvalidDestinationError("Destination folder not found")
            if destination.owner_id != requester_id:
                raise InvalidDestinationError("You do not have permission to move to this folder")
            if not destination.is_folder:
                raise InvalidDestinationError("Destination is not a folder")
            if destination.id == node.id:
                raise InvalidDestinationError("Cannot move a folder into itself")
            for ancestor in self._ancestors(destination):
                if ancestor.id == node.id:
                    raise InvalidDestinationError("Cannot move a folder into one of its descendants")

        if node.parent_id == destination_parent_id:
            return node

        moved = self.node_repo.set_parent(node_id, destination_parent_id)
        logger.info(
            f"Moved node {node_id} from {node.parent_id or 'top level'} to "
            f"{destination_parent_id or 'top level'} [user_id={requester_id}]"
        )
        return moved

    def delete_node(self, node_id: str, requester_id: str) -> List[str]:
        """
        Delete a file, or a folder according to the configured policy.

        Returns:
            Ids of every node removed, deepest first
        """
        node = self._require_owned_node(node_id, requester_id, "delete")

        if not node.is_folder:
            self._remove(node)
            return [node.id]

        subtree = self._collect_subtree(node)
        if len(subtree) > 1 and self.folder_delete_policy != "cascade":
            logger.warning(f"Refusing to delete non-empty folder {node_id} [user_id={requester_id}]")
            raise FolderNotEmptyError("Folder is not empty")

        deleted_ids = []
        for descendant in reversed(subtree):
            self._remove(descendant)
            deleted_ids.append(descendant.id)

        logger.info(f"Deleted folder {node_id} and {len(deleted_ids) - 1} descendants [user_id={requester_id}]")
        return deleted_ids

    def require_owned_folder(self, owner_id: str, folder_id: str) -> Node:
        """
        Resolve a folder id that must belong to ``owner_id``.

        Raises:
            NodeNotFoundError: If it is missing, foreign or not a folder
        """
        folder = self.node_repo.get_node(folder_id)
        if folder is None or folder.owner_id != owner_id or not folder.is_folder:
            raise NodeNotFoundError(f"Folder '{folder_id}' not found")
        return folder

    def _require_node(self, node_id: str) -> Node:
        node = self.node_repo.get_node(node_id)
        if node is None:
            raise NodeNotFoundError(f"Item '{node_id}' not found")
        return node

    def _require_owned_node(self, node_id: str, requester_id: str, action: str) -> Node:
        node = self._require_node(node_id)
        if node.owner_id != requester_id:
            logger.warning(f"{action.capitalize()} denied [node_id={node_id}] [user_id={requester_id}]")
            raise PermissionDeniedError(f"You do not have permission to {action} this item")
        return node

    def _ancestors(self, node: Node) -> Iterator[Node]:
        """
        Yield the parents of ``node`` up to the top level.

        A chain longer than the owner's node count can only mean the stored
        parents already loop.
        """
        limit = self.node_repo.count_nodes(node.owner_id)
        steps = 0
        parent_id = node.parent_id
        while parent_id is not None:
            steps += 1
            if steps > limit:
                logger.error(f"Ancestor chain of {node.id} exceeds {limit} nodes [user_id={node.owner_id}]")
                raise HierarchyCorruptionError("Folder hierarchy is corrupted")
            parent = self.node_repo.get_node(parent_id)
            if parent is None:
                logger.warning(f"Dangling parent reference {parent_id} above node {node.id}")
                return
            yield parent
            parent_id = parent.parent_id

    def _collect_subtree(self, root: Node) -> List[Node]:
        """
        Breadth-first list of ``root`` and everything below it.
        """
        limit = self.node_repo.count_nodes(root.owner_id)
        subtree = [root]
        seen = {root.id}
        index = 0
        while index < len(subtree):
            current = subtree[index]
            index += 1
            if not current.is_folder:
                continue
            for child in self.node_repo.list_children(root.owner_id, current.id):
                if child.id in seen or len(subtree) >= limit + 1:
                    raise HierarchyCorruptionError("Folder hierarchy is corrupted")
                seen.add(child.id)
                subtree.append(child)
        return subtree

    def _remove(self, node: Node) -> None:
        if not self.node_repo.delete_node(node.id):
            raise NodeNotFoundError(f"Item '{node.id}' not found")

        try:
            if node.is_folder:
                self.blob_store.delete_folder_marker(node.storage_key)
            else:
                self.blob_store.delete_object(node.storage_key)
        except StoreUnavailableError:
            logger.exception(f"Failed to delete blob for node {node.id} (orphaned): {node.storage_key}")
