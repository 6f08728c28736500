"""Folder API routes."""

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, status

from webapp.auth import get_current_user
from webapp.container import ServiceContainer, get_container
from webapp.schemas.common import ERROR_RESPONSES
from webapp.schemas.files import DeleteResponse, NodeResponse
from webapp.schemas.folders import CreateFolderRequest, DeleteFolderRequest
from webapp.utils import normalize_parent_id

router = APIRouter(prefix="/folders", tags=["Folders"], responses=ERROR_RESPONSES)


@router.post("/create", response_model=NodeResponse, status_code=status.HTTP_201_CREATED)
def create_folder(
    request: CreateFolderRequest,
    current_user: str = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """
    Create a folder at the top level or inside one of the caller's folders.

    Parameters:
        - folderName: Display name (unsafe characters are replaced)
        - parentFolderId: Parent folder id; null, "" or "root" for top level

    Raises:
        - 400: Empty or overlong name
        - 401: Missing or invalid token
        - 404: Parent folder not found
    """
    folder = container.hierarchy_service.create_folder(
        owner_id=current_user,
        name=request.folder_name,
        parent_id=normalize_parent_id(request.parent_folder_id),
    )
    return NodeResponse.from_node(folder)


@router.delete("/delete", response_model=DeleteResponse)
def delete_folder(
    request: DeleteFolderRequest = Body(...),
    current_user: str = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """
    Delete a folder.

    Raises:
        - 403: Caller does not own the folder
        - 404: Folder not found
        - 409: Folder is not empty and the delete policy is 'reject'
    """
    deleted_ids = container.hierarchy_service.delete_node(request.folder_id, current_user)
    return DeleteResponse(deleted_ids=deleted_ids)


@router.get("/info", response_model=NodeResponse)
def folder_info(
    folder_id: str = Query(..., alias="folderId"),
    current_user: str = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    folder = container.hierarchy_service.get_folder(folder_id, current_user)
    return NodeResponse.from_node(folder)


@router.get("/list", response_model=List[NodeResponse])
def list_folders(
    parent_folder_id: Optional[str] = Query(None, alias="parentFolderId"),
    current_user: str = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """
    List the caller's folders directly under a parent, for folder pickers.
    """
    listing = container.hierarchy_service.list_children(current_user, normalize_parent_id(parent_folder_id))
    return [NodeResponse.from_node(folder) for folder in listing.folders]


@router.get("/path", response_model=List[NodeResponse])
def folder_path(
    folder_id: str = Query(..., alias="folderId"),
    current_user: str = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """
    Breadcrumb from the top level down to the folder, inclusive.
    """
    chain = container.hierarchy_service.folder_path(folder_id, current_user)
    return [NodeResponse.from_node(folder) for folder in chain]
