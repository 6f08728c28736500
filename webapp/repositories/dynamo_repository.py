"""Key-value repositories backed by DynamoDB tables keyed by ``id``.

Listing is done with paginated scans and filter expressions; there are no
secondary indexes. Top-level nodes carry ``parentFolderId = "root"``, which
is translated to and from ``None`` here and nowhere else.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Generator, List, Optional

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

from common.constants import ROOT_FOLDER_SENTINEL
from common.logging_config import get_logger
from webapp.domain import Node, NodeKind, User
from webapp.exceptions import (
    ConflictError,
    NodeNotFoundError,
    StoreUnavailableError,
    UserAlreadyExistsError,
)
from webapp.repositories.base import NodeRepository, UserRepository

logger = get_logger(__name__)

_SHARE_UPDATE_ATTEMPTS = 5


def create_tables(dynamodb, files_table: str, users_table: str) -> None:
    """
    Create the files and users tables if they don't exist.

    Args:
        dynamodb: boto3 DynamoDB service resource
        files_table: Name of the files table
        users_table: Name of the users table
    """
    existing = {table.name for table in dynamodb.tables.all()}
    for table_name in (files_table, users_table):
        if table_name in existing:
            continue
        logger.info(f"Creating DynamoDB table {table_name}")
        table = dynamodb.create_table(
            TableName=table_name,
            KeySchema=[{"AttributeName": "id", "KeyType": "HASH"}],
            AttributeDefinitions=[{"AttributeName": "id", "AttributeType": "S"}],
            BillingMode="PAY_PER_REQUEST",
        )
        table.wait_until_exists()


def _parent_to_item(parent_id: Optional[str]) -> str:
    return parent_id if parent_id is not None else ROOT_FOLDER_SENTINEL


def _parent_from_item(value: Optional[str]) -> Optional[str]:
    if value is None or value == ROOT_FOLDER_SENTINEL:
        return None
    return value


def _node_to_item(node: Node) -> Dict[str, Any]:
    return {
        "id": node.id,
        "name": node.name,
        "ownerId": node.owner_id,
        "parentFolderId": _parent_to_item(node.parent_id),
        "kind": node.kind.value,
        "isFolder": node.is_folder,
        "size": node.size_bytes,
        "contentType": node.content_type,
        "storageKey": node.storage_key,
        "sharedWith": sorted(node.shared_with),
        "createdAt": node.created_at.isoformat(),
    }


def _item_to_node(item: Dict[str, Any]) -> Node:
    return Node(
        id=item["id"],
        name=item["name"],
        owner_id=item["ownerId"],
        parent_id=_parent_from_item(item.get("parentFolderId")),
        kind=NodeKind(item["kind"]),
        size_bytes=int(item.get("size", 0)),
        content_type=item["contentType"],
        storage_key=item["storageKey"],
        created_at=datetime.fromisoformat(item["createdAt"]),
        shared_with=frozenset(item.get("sharedWith") or []),
    )


def _item_to_user(item: Dict[str, Any]) -> User:
    return User(
        user_id=item["id"],
        email=item["email"],
        password_hash=item["passwordHash"],
        created_at=datetime.fromisoformat(item["createdAt"]),
    )


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


class _DynamoRepository:
    def __init__(self, dynamodb, table_name: str):
        self.table_name = table_name
        self.table = dynamodb.Table(table_name)

    @contextmanager
    def _translate_errors(self) -> Generator[None, None, None]:
        try:
            yield
        except ClientError as e:
            if _error_code(e) == "ResourceNotFoundException":
                logger.error(f"DynamoDB table not found: {self.table_name}")
                raise StoreUnavailableError(f"Table '{self.table_name}' is not set up") from e
            raise
        except BotoCoreError as e:
            logger.error(f"DynamoDB unreachable: {e}", exc_info=True)
            raise StoreUnavailableError("Metadata store is unavailable") from e

    def _scan(self, filter_expression) -> List[Dict[str, Any]]:
        kwargs: Dict[str, Any] = {"FilterExpression": filter_expression}
        items: List[Dict[str, Any]] = []
        with self._translate_errors():
            while True:
                response = self.table.scan(**kwargs)
                items.extend(response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                kwargs["ExclusiveStartKey"] = last_key
        return items

    def _get_item(self, key: str) -> Optional[Dict[str, Any]]:
        with self._translate_errors():
            response = self.table.get_item(Key={"id": key})
        return response.get("Item")

    def ping(self) -> None:
        with self._translate_errors():
            self.table.load()


class DynamoUserRepository(_DynamoRepository, UserRepository):
    def create_user(self, user: User) -> User:
        logger.debug(f"Creating user [user_id={user.user_id}]")
        if self.get_by_email(user.email) is not None:
            raise UserAlreadyExistsError(f"User with email '{user.email}' already exists")

        try:
            with self._translate_errors():
                self.table.put_item(
                    Item={
                        "id": user.user_id,
                        "email": user.email,
                        "passwordHash": user.password_hash,
                        "createdAt": user.created_at.isoformat(),
                    },
                    ConditionExpression=Attr("id").not_exists(),
                )
        except ClientError as e:
            if _error_code(e) == "ConditionalCheckFailedException":
                raise UserAlreadyExistsError(f"User '{user.user_id}' already exists") from e
            raise

        logger.info(f"User created [user_id={user.user_id}]")
        return user

    def get_by_id(self, user_id: str) -> Optional[User]:
        item = self._get_item(user_id)
        return _item_to_user(item) if item else None

    def get_by_email(self, email: str) -> Optional[User]:
        items = self._scan(Attr("email").eq(email))
        return _item_to_user(items[0]) if items else None


class DynamoNodeRepository(_DynamoRepository, NodeRepository):
    def create_node(self, node: Node) -> Node:
        logger.debug(f"Creating node {node.id} ({node.kind.value}) [owner_id={node.owner_id}]")
        try:
            with self._translate_errors():
                self.table.put_item(
                    Item=_node_to_item(node),
                    ConditionExpression=Attr("id").not_exists(),
                )
        except ClientError as e:
            if _error_code(e) == "ConditionalCheckFailedException":
                raise ConflictError(f"Node '{node.id}' already exists") from e
            raise
        return node

    def get_node(self, node_id: str) -> Optional[Node]:
        item = self._get_item(node_id)
        return _item_to_node(item) if item else None

    def find_by_storage_key(self, storage_key: str) -> Optional[Node]:
        items = self._scan(Attr("storageKey").eq(storage_key))
        return _item_to_node(items[0]) if items else None

    def list_children(self, owner_id: str, parent_id: Optional[str]) -> List[Node]:
        items = self._scan(
            Attr("ownerId").eq(owner_id) & Attr("parentFolderId").eq(_parent_to_item(parent_id))
        )
        return sorted((_item_to_node(item) for item in items), key=lambda node: node.name)

    def list_owned(self, owner_id: str) -> List[Node]:
        items = self._scan(Attr("ownerId").eq(owner_id))
        return sorted((_item_to_node(item) for item in items), key=lambda node: node.name)

    def list_shared_with(self, user_id: str) -> List[Node]:
        items = self._scan(Attr("sharedWith").contains(user_id))
        return sorted((_item_to_node(item) for item in items), key=lambda node: node.name)

    def count_nodes(self, owner_id: str) -> int:
        kwargs: Dict[str, Any] = {"FilterExpression": Attr("ownerId").eq(owner_id), "Select": "COUNT"}
        total = 0
        with self._translate_errors():
            while True:
                response = self.table.scan(**kwargs)
                total += response.get("Count", 0)
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                kwargs["ExclusiveStartKey"] = last_key
        return total

    def rename_node(self, node_id: str, name: str) -> Node:
        return self._set_attribute(node_id, "name", name)

    def set_parent(self, node_id: str, parent_id: Optional[str]) -> Node:
        return self._set_attribute(node_id, "parentFolderId", _parent_to_item(parent_id))

    def add_share(self, node_id: str, owner_id: str, user_id: str) -> None:
        try:
            with self._translate_errors():
                self.table.update_item(
                    Key={"id": node_id},
                    UpdateExpression="SET #shared = list_append(if_not_exists(#shared, :empty), :user)",
                    ConditionExpression="attribute_exists(#id) AND NOT contains(#shared, :uid)",
                    ExpressionAttributeNames={"#id": "id", "#shared": "sharedWith"},
                    ExpressionAttributeValues={":empty": [], ":user": [user_id], ":uid": user_id},
                )
        except ClientError as e:
            if _error_code(e) != "ConditionalCheckFailedException":
                raise
            if self._get_item(node_id) is None:
                raise NodeNotFoundError(f"Node '{node_id}' not found") from e
            return
        logger.debug(f"Share added [file_id={node_id}] [shared_with={user_id}]")

    def remove_share(self, node_id: str, user_id: str) -> None:
        # Lists can only be trimmed by index, so the element at that index is
        # re-checked in the condition and the read is retried if it moved.
        for _ in range(_SHARE_UPDATE_ATTEMPTS):
            item = self._get_item(node_id)
            if item is None:
                raise NodeNotFoundError(f"Node '{node_id}' not found")
            shared_with = list(item.get("sharedWith") or [])
            if user_id not in shared_with:
                return

            index = shared_with.index(user_id)
            try:
                with self._translate_errors():
                    self.table.update_item(
                        Key={"id": node_id},
                        UpdateExpression=f"REMOVE #shared[{index}]",
                        ConditionExpression=f"#shared[{index}] = :uid",
                        ExpressionAttributeNames={"#shared": "sharedWith"},
                        ExpressionAttributeValues={":uid": user_id},
                    )
            except ClientError as e:
                if _error_code(e) == "ConditionalCheckFailedException":
                    logger.debug(f"Share list changed concurrently, retrying [file_id={node_id}]")
                    continue
                raise
            logger.debug(f"Share removed [file_id={node_id}] [shared_with={user_id}]")
            return

        raise ConflictError(f"Share list of node '{node_id}' kept changing; try again")

    def delete_node(self, node_id: str) -> bool:
        with self._translate_errors():
            response = self.table.delete_item(Key={"id": node_id}, ReturnValues="ALL_OLD")
        deleted = "Attributes" in response
        if deleted:
            logger.info(f"Node deleted [file_id={node_id}]")
        return deleted

    def _set_attribute(self, node_id: str, attribute: str, value: Any) -> Node:
        try:
            with self._translate_errors():
                response = self.table.update_item(
                    Key={"id": node_id},
                    UpdateExpression="SET #attr = :value",
                    ExpressionAttributeNames={"#attr": attribute},
                    ExpressionAttributeValues={":value": value},
                    ConditionExpression=Attr("id").exists(),
                    ReturnValues="ALL_NEW",
                )
        except ClientError as e:
            if _error_code(e) == "ConditionalCheckFailedException":
                raise NodeNotFoundError(f"Node '{node_id}' not found") from e
            raise
        return _item_to_node(response["Attributes"])
