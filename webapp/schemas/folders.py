"""Pydantic schemas for folder endpoints."""

from typing import Optional

from webapp.schemas.common import CamelModel


class CreateFolderRequest(CamelModel):
    """Request model for folder creation."""
    folder_name: str
    parent_folder_id: Optional[str] = None


class DeleteFolderRequest(CamelModel):
    folder_id: str
