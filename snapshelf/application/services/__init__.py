"""Application services - storage routing and delete authorization."""

from .permission_service import PermissionService, PermissionState
from .authorization_service import (
    AuthorizationNegotiator,
    ConsentOutcome,
    DeleteAttempt,
    DeleteState,
)
from .router_service import StorageRouter, Target, choose_photo_target, create_router

__all__ = [
    "PermissionService",
    "PermissionState",
    "AuthorizationNegotiator",
    "ConsentOutcome",
    "DeleteAttempt",
    "DeleteState",
    "StorageRouter",
    "Target",
    "choose_photo_target",
    "create_router",
]
