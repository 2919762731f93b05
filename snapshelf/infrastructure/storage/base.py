"""Storage data model, error taxonomy and abstract photo store interface."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Generic, Optional, TypeVar, Union

from PIL import Image

T = TypeVar("T")

# Opaque handle issued by the media index for a consent flow
ConsentToken = str


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class FileNotFoundError(StorageError):
    """Photo not found in storage."""
    pass


class EncodeError(StorageError):
    """Failed to encode image."""
    pass


class UploadError(StorageError):
    """Failed to write photo data."""
    pass


class DownloadError(StorageError):
    """Failed to read photo data."""
    pass


class DeleteError(StorageError):
    """Failed to delete photo."""
    pass


class IndexInsertError(StorageError):
    """Media index refused the new record."""
    pass


class ErrorKind(Enum):
    """Failure kinds reported through Result."""
    ENCODE_FAILED = "encode_failed"
    IO_FAILED = "io_failed"
    INDEX_INSERT_FAILED = "index_insert_failed"
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    AUTHORIZATION_DENIED = "authorization_denied"
    ALREADY_PENDING = "already_pending"


ERROR_KINDS = {
    EncodeError: ErrorKind.ENCODE_FAILED,
    UploadError: ErrorKind.IO_FAILED,
    DownloadError: ErrorKind.IO_FAILED,
    DeleteError: ErrorKind.IO_FAILED,
    FileNotFoundError: ErrorKind.NOT_FOUND,
    IndexInsertError: ErrorKind.INDEX_INSERT_FAILED,
}


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a store operation.

    Store operations never raise to their callers; they return either
    ``Result.success(value)`` or ``Result.failure(kind, message)``.
    """
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str = "") -> "Result[T]":
        return cls(error=kind, message=message)

    @classmethod
    def from_error(cls, exc: StorageError) -> "Result[T]":
        """Map an internal storage exception to a failed result."""
        for exc_type, kind in ERROR_KINDS.items():
            if isinstance(exc, exc_type):
                return cls.failure(kind, str(exc))
        return cls.failure(ErrorKind.IO_FAILED, str(exc))


@dataclass(frozen=True)
class PrivatePhoto:
    """Photo held in the app-private directory."""
    name: str
    image: Image.Image = field(compare=False, repr=False)


@dataclass(frozen=True)
class SharedPhoto:
    """Row of the shared media index."""
    id: int
    display_name: str
    width: int
    height: int
    locator: str


class CapabilityTier(Enum):
    """Platform version class gating the deletion-authorization protocol.

    LEGACY (tier A): direct delete only, no consent path.
    SCOPED (tier B): denial carries a recoverable consent token; the
        caller re-issues the delete once consent is granted.
    MODERN (tier C): batch delete requests; the platform deletes on consent.
    """
    LEGACY = "legacy"
    SCOPED = "scoped"
    MODERN = "modern"

    @classmethod
    def parse(cls, value: Union[str, "CapabilityTier"]) -> "CapabilityTier":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown capability tier: {value!r}")


class AuthorizationReason(Enum):
    OWNED_BY_OTHER_APP = "owned_by_other_app"
    PLATFORM_REQUIRES_CONSENT = "platform_requires_consent"


@dataclass(frozen=True)
class AuthorizationRequest:
    """A denied delete that needs the user's consent before it can complete.

    ``denial`` is the platform's denial detail (a ``DeleteDenied``); the
    consent token is derived from it by the authorization negotiator.
    """
    locator: str
    reason: AuthorizationReason
    consent_token: Optional[ConsentToken] = None
    denial: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Deleted:
    """The record is gone."""
    locator: str


@dataclass(frozen=True)
class NeedsAuthorization:
    """The platform refused the delete; consent is required."""
    request: AuthorizationRequest


DeleteOutcome = Union[Deleted, NeedsAuthorization]


@dataclass
class StorageConfig:
    """Storage configuration."""
    private_dir: Path
    shared_dir: Path
    index_path: Path
    app_id: str
    capability_tier: str = "modern"
    jpeg_quality: int = 95

    def __post_init__(self):
        self.private_dir = Path(self.private_dir)
        self.shared_dir = Path(self.shared_dir)
        self.index_path = Path(self.index_path)


class PhotoStoreInterface(ABC):
    """Abstract interface shared by the private and shared photo stores.

    Implementations:
    - PrivateStore: app-exclusive directory, no permission needed
    - SharedStore: system-wide media index, discoverable by other apps
    """

    @abstractmethod
    async def list(self) -> list:
        """List photos held by the store.

        Returns:
            Sequence of photos; never raises
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> Result:
        """Delete a photo.

        Args:
            key: File name (private) or locator (shared)

        Returns:
            Result describing the outcome
        """
        pass
