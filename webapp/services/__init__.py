"""Service layer for business logic."""

from webapp.services.auth_service import AuthService
from webapp.services.hierarchy_service import HierarchyService
from webapp.services.sharing_service import SharingService
from webapp.services.transfer_service import TransferService

__all__ = [
    "AuthService",
    "HierarchyService",
    "SharingService",
    "TransferService",
]
