"""File API routes."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from webapp.auth import get_current_user
from webapp.container import ServiceContainer, get_container
from webapp.domain import UploadConfirmation
from webapp.exceptions import ValidationError
from webapp.schemas.files import (
    ConfirmUploadRequest,
    ContentResponse,
    DeleteResponse,
    DownloadResponse,
    FileResponse,
    ListFilesResponse,
    MoveRequest,
    NodeResponse,
    PresignUploadRequest,
    PresignUploadResponse,
    PublicMetadataResponse,
    RenameRequest,
    ShareRequest,
    SharedFilesResponse,
    SharedUserResponse,
    SharedUsersResponse,
)
from webapp.schemas.common import ERROR_RESPONSES
from webapp.utils import normalize_parent_id

router = APIRouter(prefix="/files", tags=["Files"], responses=ERROR_RESPONSES)


_UPLOAD_CHUNK_BYTES = 1024 * 1024


def _read_upload(upload: UploadFile, max_bytes: int) -> bytes:
    """Read an uploaded file, stopping as soon as it passes ``max_bytes``."""
    too_large = f"File exceeds the maximum upload size of {max_bytes} bytes"
    if upload.size is not None and upload.size > max_bytes:
        raise ValidationError(too_large)

    chunks = []
    total = 0
    while True:
        chunk = upload.file.read(min(_UPLOAD_CHUNK_BYTES, max_bytes + 1 - total))
        if not chunk:
            break
        total += len(chunk)
        if total > max_bytes:
            raise ValidationError(too_large)
        chunks.append(chunk)
    return b"".join(chunks)


def _shared_users_response(shared_users) -> SharedUsersResponse:
    return SharedUsersResponse(
        shared_users=[SharedUserResponse.from_shared_user(shared_user) for shared_user in shared_users]
    )


@router.get("", response_model=ListFilesResponse)
def list_files(
    parent_folder_id: Optional[str] = Query(None, alias="parentFolderId"),
    current_user: str = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """
    List the caller's folders and files at one level, plus everything shared with them.

    Parameters:
        - parentFolderId: Folder to list; omitted, "" or "root" for top level

    Returns:
        - ownedFiles: Folders first, then files, each sorted by name
        - sharedFiles: Nodes other users shared with the caller

    Raises:
        - 401: Missing or invalid token
        - 404: Parent folder not found
    """
    listing = container.hierarchy_service.list_children(current_user, normalize_parent_id(parent_folder_id))
    shared = container.sharing_service.list_files_shared_with_me(current_user)
    return ListFilesResponse(
        owned_files=[NodeResponse.from_node(node) for node in listing.folders + listing.files],
        shared_files=[NodeResponse.from_node(node) for node in shared],
    )


@router.post("/upload", response_model=NodeResponse, status_code=status.HTTP_201_CREATED)
def upload_file(
    file: UploadFile = File(...),
    parent_folder_id: Optional[str] = Form(None, alias="parentFolderId"),
    current_user: str = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """
    Upload a file through the server in a single request.

    Parameters:
        - file: File to upload (multipart/form-data)
        - parentFolderId: Destination folder; omitted for top level

    Raises:
        - 400: Empty name or file above the upload size limit
        - 404: Parent folder not found
        - 503: Blob storage unavailable
    """
    data = _read_upload(file, container.settings.max_upload_bytes)
    node = container.transfer_service.upload_file(
        owner_id=current_user,
        file_name=file.filename,
        content_type=file.content_type,
        data=data,
        parent_id=normalize_parent_id(parent_folder_id),
    )
    return NodeResponse.from_node(node)


@router.post("/presign-upload", response_model=PresignUploadResponse)
def presign_upload(
    request: PresignUploadRequest,
    current_user: str = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """
    Issue a pre-signed URL the client can PUT the file bytes to.

    No file record exists until the upload is confirmed via POST /files/metadata.
    """
    grant = container.transfer_service.prepare_upload(current_user, request.file_name, request.content_type)
    return PresignUploadResponse(
        file_id=grant.file_id,
        storage_key=grant.storage_key,
        url=grant.upload_url,
        expires_in=grant.expires_in,
    )


@router.post("/metadata", response_model=NodeResponse, status_code=status.HTTP_201_CREATED)
def confirm_upload(
    request: ConfirmUploadRequest,
    current_user: str = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """
    Record a file uploaded through a pre-signed URL.

    Raises:
        - 400: Object not found in storage (verify mode)
        - 403: Storage key outside the caller's prefix
        - 404: Parent folder not found
    """
    confirmation = UploadConfirmation(
        file_id=request.file_id,
        file_name=request.file_name,
        storage_key=request.storage_key,
        size_bytes=request.size,
        content_type=request.content_type,
        parent_id=normalize_parent_id(request.parent_folder_id),
    )
    node = container.transfer_service.confirm_upload(current_user, confirmation)
    return NodeResponse.from_node(node)


@router.get("/metadata", response_model=PublicMetadataResponse)
def public_metadata(
    file_id: str = Query(..., alias="fileId"),
    container: ServiceContainer = Depends(get_container),
):
    """
    Public view of a shared file, used by shared links. No authentication.

    Raises:
        - 403: File is not shared with anyone
        - 404: File not found
    """
    node, download_url = container.sharing_service.get_public_metadata(file_id)
    return PublicMetadataResponse(file=NodeResponse.from_node(node), download_url=download_url)


@router.get("/download", response_model=DownloadResponse)
def download_file(
    file_id: str = Query(..., alias="fileId"),
    current_user: str = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """
    Issue a time-limited download URL for a file the caller owns or was shared.

    Raises:
        - 400: Node is a folder
        - 403: Caller may not read the file
        - 404: File not found
    """
    grant = container.transfer_service.prepare_download(file_id, current_user)
    return DownloadResponse(url=grant.url, expires_in=grant.expires_in, file_name=grant.file_name)


@router.get("/content", response_model=ContentResponse)
def file_content(
    file_id: str = Query(..., alias="fileId"),
    current_user: str = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    node, content = container.transfer_service.read_content(file_id, current_user)
    return ContentResponse(
        file_id=node.id,
        file_name=node.name,
        content_type=node.content_type,
        content=content,
    )


@router.delete("/delete", response_model=DeleteResponse)
def delete_file(
    file_id: str = Query(..., alias="fileId"),
    current_user: str = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """
    Delete a file (or folder) the caller owns.

    Raises:
        - 403: Caller is not the owner
        - 404: File not found
        - 409: Non-empty folder under the 'reject' policy
    """
    deleted_ids = container.hierarchy_service.delete_node(file_id, current_user)
    return DeleteResponse(deleted_ids=deleted_ids)


@router.post("/rename", response_model=FileResponse)
def rename_file(
    request: RenameRequest,
    current_user: str = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    node = container.hierarchy_service.rename_node(request.file_id, current_user, request.new_file_name)
    return FileResponse(file=NodeResponse.from_node(node))


@router.post("/move", response_model=FileResponse)
def move_file(
    request: MoveRequest,
    current_user: str = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """
    Move a file or folder under another of the caller's folders, or to the top level.

    Raises:
        - 400: Destination missing, foreign, not a folder, or inside the moved folder
        - 403: Caller is not the owner
        - 404: Node not found
    """
    node = container.hierarchy_service.move_node(
        request.file_id,
        current_user,
        normalize_parent_id(request.destination_folder_id),
    )
    return FileResponse(file=NodeResponse.from_node(node))


@router.post("/share", response_model=SharedUsersResponse)
def share_file(
    request: ShareRequest,
    current_user: str = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """
    Share a file with another registered user by email.

    Raises:
        - 400: Sharing with yourself
        - 403: Caller is not the owner
        - 404: File or user not found
    """
    shared_users = container.sharing_service.share_file(request.file_id, current_user, request.email)
    return _shared_users_response(shared_users)


@router.get("/share", response_model=SharedUsersResponse)
def list_shared_users(
    file_id: str = Query(..., alias="fileId"),
    action: str = Query("list"),
    current_user: str = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    if action != "list":
        raise ValidationError(f"Unsupported share action: {action}")
    shared_users = container.sharing_service.list_shared_users(file_id, current_user)
    return _shared_users_response(shared_users)


@router.post("/unshare", response_model=SharedUsersResponse)
def unshare_file(
    request: ShareRequest,
    current_user: str = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    shared_users = container.sharing_service.unshare_file(request.file_id, current_user, request.email)
    return _shared_users_response(shared_users)


@router.get("/shared", response_model=SharedFilesResponse)
def shared_with_me(
    current_user: str = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """
    List files and folders other users shared with the caller.
    """
    nodes = container.sharing_service.list_files_shared_with_me(current_user)
    return SharedFilesResponse(shared_files=[NodeResponse.from_node(node) for node in nodes])
