"""Storage-agnostic repository interfaces.

Services depend only on these classes. Each metadata backend (relational,
key-value) provides one implementation of each, and both must behave the
same way for every method below.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from webapp.domain import Node, User


class UserRepository(ABC):
    """Credential store: user records keyed by id, unique by email."""

    @abstractmethod
    def create_user(self, user: User) -> User:
        """
        Persist a new user.

        Raises:
            UserAlreadyExistsError: If the email or id is already taken
        """

    @abstractmethod
    def get_by_id(self, user_id: str) -> Optional[User]:
        ...

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[User]:
        ...


class NodeRepository(ABC):
    """Metadata store for file and folder nodes.

    Parent references are ``Optional[str]`` at this boundary; ``None`` means
    top level. Any sentinel a backend needs stays inside that backend.
    """

    @abstractmethod
    def create_node(self, node: Node) -> Node:
        """
        Persist a new node.

        Raises:
            ConflictError: If a node with the same id already exists
        """

    @abstractmethod
    def get_node(self, node_id: str) -> Optional[Node]:
        ...

    @abstractmethod
    def find_by_storage_key(self, storage_key: str) -> Optional[Node]:
        """
        Return the node whose blob or folder prefix is ``storage_key``, if any.
        """

    @abstractmethod
    def list_children(self, owner_id: str, parent_id: Optional[str]) -> List[Node]:
        """
        Return the direct children of ``parent_id`` owned by ``owner_id``.
        """

    @abstractmethod
    def list_owned(self, owner_id: str) -> List[Node]:
        ...

    @abstractmethod
    def list_shared_with(self, user_id: str) -> List[Node]:
        """
        Return every node whose share set contains ``user_id``.
        """

    @abstractmethod
    def count_nodes(self, owner_id: str) -> int:
        ...

    @abstractmethod
    def rename_node(self, node_id: str, name: str) -> Node:
        """
        Raises:
            NodeNotFoundError: If the node does not exist
        """

    @abstractmethod
    def set_parent(self, node_id: str, parent_id: Optional[str]) -> Node:
        """
        Raises:
            NodeNotFoundError: If the node does not exist
        """

    @abstractmethod
    def add_share(self, node_id: str, owner_id: str, user_id: str) -> None:
        """
        Add ``user_id`` to the node's share set. Re-adding is a no-op.
        """

    @abstractmethod
    def remove_share(self, node_id: str, user_id: str) -> None:
        """
        Remove ``user_id`` from the node's share set. Removing an absent entry is a no-op.
        """

    @abstractmethod
    def delete_node(self, node_id: str) -> bool:
        """
        Delete a node and its share entries.

        Returns:
            False if the node did not exist
        """

    @abstractmethod
    def ping(self) -> None:
        """
        Raises:
            StoreUnavailableError: If the backing store cannot be reached
        """
