"""Pydantic schemas for API requests and responses."""

from webapp.schemas.auth import (
    RegisterRequest,
    RegisterResponse,
    LoginRequest,
    LoginResponse,
    UserResponse,
)
from webapp.schemas.files import (
    NodeResponse,
    ListFilesResponse,
    SharedFilesResponse,
    FileResponse,
    PresignUploadRequest,
    PresignUploadResponse,
    ConfirmUploadRequest,
    PublicMetadataResponse,
    DownloadResponse,
    ContentResponse,
    DeleteResponse,
    RenameRequest,
    MoveRequest,
    ShareRequest,
    SharedUserResponse,
    SharedUsersResponse,
)
from webapp.schemas.folders import CreateFolderRequest, DeleteFolderRequest
from webapp.schemas.common import ERROR_RESPONSES, CamelModel, ErrorResponse, SuccessResponse

__all__ = [
    "RegisterRequest",
    "RegisterResponse",
    "LoginRequest",
    "LoginResponse",
    "UserResponse",
    "NodeResponse",
    "ListFilesResponse",
    "SharedFilesResponse",
    "FileResponse",
    "PresignUploadRequest",
    "PresignUploadResponse",
    "ConfirmUploadRequest",
    "PublicMetadataResponse",
    "DownloadResponse",
    "ContentResponse",
    "DeleteResponse",
    "RenameRequest",
    "MoveRequest",
    "ShareRequest",
    "SharedUserResponse",
    "SharedUsersResponse",
    "CreateFolderRequest",
    "DeleteFolderRequest",
    "CamelModel",
    "ERROR_RESPONSES",
    "ErrorResponse",
    "SuccessResponse",
]
