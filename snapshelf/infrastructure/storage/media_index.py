"""Shared media index: system-wide photo records discoverable by other apps.

The index owns its records. Apps insert records, write their data through a
write channel, query and delete them. Deletion of another app's record is
denied; how that denial can be recovered depends on the capability tier.
"""
import logging
import secrets
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional, Union

import aiofiles

from ...config import EXTERNAL_CONTENT_URI, IMAGE_EXTENSION
from ..database import connect, init_schema
from ..repositories import MediaRepository
from ..services.changes import ChangeSubscription
from .base import CapabilityTier, ConsentToken, StorageConfig

logger = logging.getLogger(__name__)

KIND_RECOVERABLE = "recoverable"
KIND_DELETE_REQUEST = "delete_request"


class PlatformError(Exception):
    """Base exception raised by the media index."""
    pass


class RecordNotFound(PlatformError):
    """No record behind the locator."""
    pass


class DeleteDenied(PlatformError):
    """Caller may not delete the record (ownership rules)."""

    recovery_token: Optional[ConsentToken] = None

    def __init__(self, locator: str, message: str = None):
        self.locator = locator
        super().__init__(message or f"{locator} is owned by another app")


class RecoverableDeleteDenied(DeleteDenied):
    """Denial that the user can lift by approving the attached consent token."""

    def __init__(self, locator: str, recovery_token: ConsentToken):
        super().__init__(locator)
        self.recovery_token = recovery_token


def locator_for(media_id: int) -> str:
    """Build the content URI addressing a record."""
    return f"{EXTERNAL_CONTENT_URI}/{media_id}"


def parse_locator(locator: str) -> int:
    """Extract the record id from a content URI."""
    prefix = EXTERNAL_CONTENT_URI + "/"
    if not isinstance(locator, str) or not locator.startswith(prefix):
        raise RecordNotFound(f"Not a media locator: {locator!r}")
    try:
        return int(locator[len(prefix):])
    except ValueError:
        raise RecordNotFound(f"Not a media locator: {locator!r}")


class MediaIndex:
    """Platform facade over the media database and the shared media directory."""

    def __init__(
        self,
        repository: MediaRepository,
        media_dir: Path,
        tier: Union[str, CapabilityTier] = CapabilityTier.MODERN
    ):
        self._repo = repository
        self.media_dir = Path(media_dir)
        self.media_dir.mkdir(parents=True, exist_ok=True)
        self.tier = CapabilityTier.parse(tier)
        self._subscriptions: list[ChangeSubscription] = []
        self._conn = None

    @classmethod
    async def open(cls, config: StorageConfig) -> "MediaIndex":
        """Open (and create if needed) the index described by config."""
        conn = await connect(config.index_path)
        await init_schema(conn)
        index = cls(MediaRepository(conn), config.shared_dir, config.capability_tier)
        index._conn = conn
        return index

    async def close(self) -> None:
        for subscription in list(self._subscriptions):
            subscription.close()
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    # -- queries ----------------------------------------------------------

    async def query(self) -> list[dict]:
        """Rows {id, display_name, width, height} sorted by display name."""
        return await self._repo.list_published()

    async def _require(self, locator: str) -> dict:
        record = await self._repo.get_by_id(parse_locator(locator))
        if not record:
            raise RecordNotFound(f"No media record for {locator}")
        return record

    # -- writes -----------------------------------------------------------

    async def insert(self, values: dict, owner: str) -> Optional[str]:
        """Insert a pending record.

        Args:
            values: display_name, mime_type, width, height
            owner: Identity of the inserting app

        Returns:
            Locator of the new record, or None if the record is refused
        """
        display_name = values.get("display_name")
        mime_type = values.get("mime_type") or ""
        if not display_name or not mime_type.startswith("image/"):
            logger.warning("Refusing media record %r (%s)", display_name, mime_type)
            return None

        data_path = uuid.uuid4().hex + IMAGE_EXTENSION
        media_id = await self._repo.create(
            display_name=display_name,
            mime_type=mime_type,
            owner=owner,
            data_path=data_path,
            width=values.get("width"),
            height=values.get("height"),
        )
        return locator_for(media_id)

    @asynccontextmanager
    async def open_write(self, locator: str) -> AsyncIterator:
        """Open the write channel of a record.

        The record becomes visible to queries once the channel closes
        without error.
        """
        record = await self._require(locator)
        path = self.media_dir / record["data_path"]
        async with aiofiles.open(path, "wb") as f:
            yield f
        await self._repo.publish(record["id"])
        self._notify_change(locator)

    async def open_read(self, locator: str) -> bytes:
        record = await self._require(locator)
        async with aiofiles.open(self.media_dir / record["data_path"], "rb") as f:
            return await f.read()

    # -- deletion and consent ----------------------------------------------

    async def delete(self, locator: str, caller: str) -> int:
        """Delete a record on behalf of caller.

        Returns:
            Number of records deleted (0 if none matched)

        Raises:
            DeleteDenied: Caller neither owns the record nor holds a grant for it
        """
        try:
            record = await self._require(locator)
        except RecordNotFound:
            return 0

        if record["owner"] != caller and not await self._repo.has_grant(record["id"], caller):
            if self.tier is CapabilityTier.SCOPED:
                raise await self._recoverable_denial(locator, record, caller)
            raise self._denial(locator, record, caller)

        await self._remove(record)
        return 1

    def _denial(self, locator: str, record: dict, caller: str) -> DeleteDenied:
        logger.info("Delete of %s by %s denied (owner %s)", locator, caller, record["owner"])
        return DeleteDenied(locator)

    async def _recoverable_denial(self, locator: str, record: dict, caller: str) -> DeleteDenied:
        token = secrets.token_urlsafe(16)
        await self._repo.create_consent_request(token, KIND_RECOVERABLE, [record["id"]], caller)
        logger.info("Delete of %s by %s denied, consent token issued", locator, caller)
        return RecoverableDeleteDenied(locator, token)

    async def create_delete_request(self, locators: list[str], caller: str) -> ConsentToken:
        """Ask the platform to delete records once the user consents.

        Only available on the MODERN tier.
        """
        if self.tier is not CapabilityTier.MODERN:
            raise PlatformError(f"Delete requests are not supported on tier {self.tier.value}")
        if not locators:
            raise PlatformError("Delete request needs at least one locator")

        media_ids = []
        for locator in locators:
            record = await self._require(locator)
            media_ids.append(record["id"])

        token = secrets.token_urlsafe(16)
        await self._repo.create_consent_request(token, KIND_DELETE_REQUEST, media_ids, caller)
        return token

    async def grant_consent(self, token: ConsentToken) -> bool:
        """The user approved the consent flow for token.

        Recoverable tokens grant the requester access to the records;
        delete requests are carried out by the platform itself.

        Returns:
            False if the token is unknown
        """
        request = await self._repo.get_consent_request(token)
        if not request:
            return False

        for media_id in request["media_ids"]:
            if request["kind"] == KIND_RECOVERABLE:
                await self._repo.add_grant(media_id, request["requester"])
            else:
                record = await self._repo.get_by_id(media_id)
                if record:
                    await self._remove(record)

        await self._repo.delete_consent_request(token)
        return True

    async def reject_consent(self, token: ConsentToken) -> bool:
        """The user declined the consent flow for token."""
        return await self._repo.delete_consent_request(token)

    async def _remove(self, record: dict) -> None:
        await self._repo.delete(record["id"])
        (self.media_dir / record["data_path"]).unlink(missing_ok=True)
        if not record["is_pending"]:
            self._notify_change(locator_for(record["id"]))

    # -- change notifications ----------------------------------------------

    def subscribe(
        self,
        uri: str = EXTERNAL_CONTENT_URI,
        notify_descendants: bool = True
    ) -> ChangeSubscription:
        """Register interest in changes under uri."""
        subscription = ChangeSubscription(uri, notify_descendants, on_close=self._unsubscribe)
        self._subscriptions.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: ChangeSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def _notify_change(self, uri: str) -> None:
        for subscription in list(self._subscriptions):
            subscription.notify(uri)
