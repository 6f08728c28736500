"""API routes package."""

from webapp.routes.auth_routes import router as auth_router
from webapp.routes.file_routes import router as file_router
from webapp.routes.folder_routes import router as folder_router

__all__ = ["auth_router", "file_router", "folder_router"]
