"""Construction of storage clients, repositories and services.

Everything that talks to an external store is built here once and handed
down explicitly; nothing in the service layer creates its own clients.
"""

from dataclasses import dataclass
from typing import Optional

import boto3
from fastapi import Request

from common.logging_config import get_logger
from webapp.blob_store import S3BlobStore
from webapp.config import Settings
from webapp.database import init_database
from webapp.repositories import (
    DynamoNodeRepository,
    DynamoUserRepository,
    NodeRepository,
    SqliteNodeRepository,
    SqliteUserRepository,
    UserRepository,
)
from webapp.services import AuthService, HierarchyService, SharingService, TransferService

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    user_repo: UserRepository
    node_repo: NodeRepository
    blob_store: S3BlobStore
    auth_service: AuthService
    hierarchy_service: HierarchyService
    sharing_service: SharingService
    transfer_service: TransferService


def _client_kwargs(settings: Settings) -> dict:
    kwargs = {"region_name": settings.aws_region}
    if settings.aws_endpoint_url:
        kwargs["endpoint_url"] = settings.aws_endpoint_url
    return kwargs


def build_repositories(settings: Settings):
    """
    Create the user and node repositories for the configured backend.

    Returns:
        Tuple of (user_repo, node_repo)
    """
    if settings.metadata_backend == "dynamodb":
        dynamodb = boto3.resource("dynamodb", **_client_kwargs(settings))
        logger.info(
            f"Using DynamoDB metadata backend (files={settings.dynamodb_files_table}, "
            f"users={settings.dynamodb_users_table})"
        )
        return (
            DynamoUserRepository(dynamodb, settings.dynamodb_users_table),
            DynamoNodeRepository(dynamodb, settings.dynamodb_files_table),
        )

    init_database(settings.database_path)
    logger.info(f"Using SQLite metadata backend at {settings.database_path}")
    return (
        SqliteUserRepository(settings.database_path),
        SqliteNodeRepository(settings.database_path),
    )


def build_container(
    settings: Settings,
    user_repo: Optional[UserRepository] = None,
    node_repo: Optional[NodeRepository] = None,
    blob_store: Optional[S3BlobStore] = None,
) -> ServiceContainer:
    """
    Wire repositories and services together.

    Any collaborator passed in is used as is; the rest are built from settings.
    """
    if user_repo is None or node_repo is None:
        default_user_repo, default_node_repo = build_repositories(settings)
        user_repo = user_repo or default_user_repo
        node_repo = node_repo or default_node_repo

    if blob_store is None:
        s3_client = boto3.client("s3", **_client_kwargs(settings))
        blob_store = S3BlobStore(s3_client, settings.s3_bucket_name)

    return ServiceContainer(
        settings=settings,
        user_repo=user_repo,
        node_repo=node_repo,
        blob_store=blob_store,
        auth_service=AuthService(user_repo, settings),
        hierarchy_service=HierarchyService(node_repo, blob_store, settings.folder_delete_policy),
        sharing_service=SharingService(node_repo, user_repo, blob_store, settings),
        transfer_service=TransferService(node_repo, blob_store, settings),
    )


def get_container(request: Request) -> ServiceContainer:
    """
    FastAPI dependency returning the container the application was built with.
    """
    return request.app.state.container
