"""Application layer - photo storage services.

This layer contains application services that orchestrate the stores.
Services are independent of any UI and can be tested in isolation.
"""

from .services.permission_service import PermissionService
from .services.authorization_service import AuthorizationNegotiator
from .services.router_service import StorageRouter

__all__ = [
    "PermissionService",
    "AuthorizationNegotiator",
    "StorageRouter",
]
