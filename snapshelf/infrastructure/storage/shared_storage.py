"""Shared media storage backed by the system media index."""
import logging
import sqlite3
from typing import List

from ...config import IMAGE_EXTENSION, JPEG_MIME_TYPE
from ..services.changes import ChangeSubscription
from ..services.media import ImageSource, encode_jpeg, open_image
from .base import (
    AuthorizationReason,
    AuthorizationRequest,
    ConsentToken,
    Deleted,
    DeleteOutcome,
    EncodeError,
    ErrorKind,
    IndexInsertError,
    NeedsAuthorization,
    PhotoStoreInterface,
    Result,
    SharedPhoto,
    StorageConfig,
    StorageError,
    UploadError
)
from .media_index import (
    DeleteDenied,
    MediaIndex,
    PlatformError,
    RecordNotFound,
    locator_for
)

logger = logging.getLogger(__name__)

INDEX_ERRORS = (PlatformError, OSError, sqlite3.Error)


class SharedStore(PhotoStoreInterface):
    """Photo storage in the shared, system-indexed media collection.

    Records belong to the index, not to this process. Callers check
    read/write permission before listing or saving; the store itself
    does not.
    """

    def __init__(self, index: MediaIndex, config: StorageConfig):
        """Initialize shared storage.

        Args:
            index: Open media index
            config: Storage configuration (app_id, jpeg_quality)
        """
        self.index = index
        self.config = config
        self.app_id = config.app_id

    async def list(self) -> List[SharedPhoto]:
        """List shared photos ordered by display name (ties by id)."""
        try:
            rows = await self.index.query()
        except INDEX_ERRORS as e:
            logger.warning("Shared photo query failed: %s", e)
            return []

        return [
            SharedPhoto(
                id=row["id"],
                display_name=row["display_name"],
                width=row["width"] or 0,
                height=row["height"] or 0,
                locator=locator_for(row["id"]),
            )
            for row in rows
        ]

    async def save(
        self,
        display_name: str,
        image: ImageSource,
        width: int = None,
        height: int = None
    ) -> Result[str]:
        """Insert an index record and write the image into it as JPEG.

        Args:
            display_name: Record name; '.jpg' is appended when missing
            image: Encoded image bytes or a PIL image
            width: Image width (defaults to the decoded image's width)
            height: Image height (defaults to the decoded image's height)

        Returns:
            Result holding the new record's locator
        """
        if not display_name.endswith(IMAGE_EXTENSION):
            display_name += IMAGE_EXTENSION

        locator = None
        try:
            try:
                img = open_image(image)
            except ValueError as e:
                raise EncodeError(str(e))

            values = {
                "display_name": display_name,
                "mime_type": JPEG_MIME_TYPE,
                "width": img.width if width is None else width,
                "height": img.height if height is None else height,
            }
            try:
                locator = await self.index.insert(values, owner=self.app_id)
                if locator is None:
                    raise IndexInsertError(f"Couldn't create media store entry for {display_name}")

                async with self.index.open_write(locator) as stream:
                    try:
                        data = encode_jpeg(img, self.config.jpeg_quality)
                    except ValueError as e:
                        raise EncodeError(str(e))
                    await stream.write(data)
            except INDEX_ERRORS as e:
                raise UploadError(f"Failed to save {display_name}: {e}")
        except StorageError as e:
            logger.warning("Shared save failed for %s: %s", display_name, e)
            if locator is not None:
                await self._discard(locator)
            return Result.from_error(e)

        logger.debug("Saved shared photo %s as %s", display_name, locator)
        return Result.success(locator)

    async def _discard(self, locator: str) -> None:
        """Remove a record whose data never got written."""
        try:
            await self.index.delete(locator, self.app_id)
        except INDEX_ERRORS as e:
            logger.warning("Couldn't discard pending record %s: %s", locator, e)

    async def delete(self, locator: str) -> Result[DeleteOutcome]:
        """Delete a record directly through the index.

        A denial under the platform's ownership rules is an outcome, not a
        failure: the result holds ``NeedsAuthorization`` with the denial
        detail attached.
        """
        try:
            deleted = await self.index.delete(locator, self.app_id)
        except DeleteDenied as e:
            request = AuthorizationRequest(
                locator=locator,
                reason=AuthorizationReason.OWNED_BY_OTHER_APP,
                denial=e,
            )
            return Result.success(NeedsAuthorization(request))
        except RecordNotFound as e:
            return Result.failure(ErrorKind.NOT_FOUND, str(e))
        except INDEX_ERRORS as e:
            logger.warning("Shared delete failed for %s: %s", locator, e)
            return Result.failure(ErrorKind.IO_FAILED, str(e))

        if not deleted:
            return Result.failure(ErrorKind.NOT_FOUND, f"No media record for {locator}")
        return Result.success(Deleted(locator))

    async def create_delete_request(self, locators: List[str]) -> Result[ConsentToken]:
        """Ask the platform for a consent token that deletes locators on approval."""
        try:
            token = await self.index.create_delete_request(locators, self.app_id)
        except RecordNotFound as e:
            return Result.failure(ErrorKind.NOT_FOUND, str(e))
        except PlatformError as e:
            return Result.failure(ErrorKind.AUTHORIZATION_DENIED, str(e))
        except (OSError, sqlite3.Error) as e:
            return Result.failure(ErrorKind.IO_FAILED, str(e))
        return Result.success(token)

    async def reject_consent(self, token: ConsentToken) -> Result[bool]:
        """Withdraw a consent token nobody is going to approve.

        Returns:
            Result holding False if the token was already gone
        """
        try:
            return Result.success(await self.index.reject_consent(token))
        except (OSError, sqlite3.Error) as e:
            logger.warning("Couldn't withdraw consent token: %s", e)
            return Result.failure(ErrorKind.IO_FAILED, str(e))

    async def open_read(self, locator: str) -> Result[bytes]:
        """Read the encoded data of a record."""
        try:
            return Result.success(await self.index.open_read(locator))
        except RecordNotFound as e:
            return Result.failure(ErrorKind.NOT_FOUND, str(e))
        except INDEX_ERRORS as e:
            return Result.failure(ErrorKind.IO_FAILED, str(e))

    def subscribe(self) -> ChangeSubscription:
        """Subscribe to changes anywhere in the external images namespace."""
        return self.index.subscribe()
