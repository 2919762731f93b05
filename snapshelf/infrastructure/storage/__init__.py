"""Photo storage layer.

Two stores: the app-private directory and the shared media index.
"""
from .base import (
    StorageError,
    FileNotFoundError,
    StorageConfig,
    ErrorKind,
    Result,
    CapabilityTier,
    PrivatePhoto,
    SharedPhoto,
    AuthorizationReason,
    AuthorizationRequest,
    Deleted,
    NeedsAuthorization,
    DeleteOutcome,
)
from .private_storage import PrivateStore
from .media_index import MediaIndex, DeleteDenied, RecoverableDeleteDenied, PlatformError
from .shared_storage import SharedStore
from .factory import get_storage_config, get_storage_from_config

__all__ = [
    "StorageError",
    "FileNotFoundError",
    "StorageConfig",
    "ErrorKind",
    "Result",
    "CapabilityTier",
    "PrivatePhoto",
    "SharedPhoto",
    "AuthorizationReason",
    "AuthorizationRequest",
    "Deleted",
    "NeedsAuthorization",
    "DeleteOutcome",
    "PrivateStore",
    "MediaIndex",
    "DeleteDenied",
    "RecoverableDeleteDenied",
    "PlatformError",
    "SharedStore",
    "get_storage_config",
    "get_storage_from_config",
]
