"""Storage router - decides where photos go and keeps both listings current.

The UI layer talks to this service: it saves captured photos, lists both
collections, deletes from either, and hands consent answers back.
"""
import asyncio
import contextlib
import logging
import uuid
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from ...config import CHANGE_DEBOUNCE_SECONDS
from ...infrastructure.services.changes import ChangeSubscription
from ...infrastructure.services.media import ImageSource
from ...infrastructure.storage import (
    ErrorKind,
    PrivatePhoto,
    PrivateStore,
    Result,
    SharedPhoto,
    SharedStore,
    StorageConfig,
    get_storage_config,
    get_storage_from_config,
)
from .authorization_service import AuthorizationNegotiator, ConsentOutcome, DeleteAttempt
from .permission_service import PermissionService, PermissionState

logger = logging.getLogger(__name__)

PRIVATE = "private"
SHARED = "shared"

ListingListener = Callable[[str, list], None]


class Target(Enum):
    PRIVATE = "private"
    SHARED = "shared"
    REJECTED = "rejected"


def choose_photo_target(user_wants_private: bool, permission: PermissionState) -> Target:
    """Pick the store for a new photo.

    Private when the user asks for it; shared when write access is held;
    rejected otherwise.
    """
    if user_wants_private:
        return Target.PRIVATE
    if permission.can_write:
        return Target.SHARED
    return Target.REJECTED


class StorageRouter:
    """Routes photo operations to the private or shared store.

    Listings are refreshed per store; when refreshes overlap only the most
    recently started one publishes its result.
    """

    def __init__(
        self,
        private_store: PrivateStore,
        shared_store: SharedStore,
        permissions: PermissionService,
        negotiator: AuthorizationNegotiator = None,
        debounce: float = CHANGE_DEBOUNCE_SECONDS,
        owns_index: bool = False
    ):
        self.private_store = private_store
        self.shared_store = shared_store
        self.permissions = permissions
        self.negotiator = negotiator or AuthorizationNegotiator(shared_store, permissions.tier)
        self.debounce = debounce
        self.owns_index = owns_index

        self.private_photos: List[PrivatePhoto] = []
        self.shared_photos: List[SharedPhoto] = []
        self._generations: Dict[str, int] = {PRIVATE: 0, SHARED: 0}
        self._listeners: List[ListingListener] = []
        self._subscription: Optional[ChangeSubscription] = None
        self._watch_task: Optional[asyncio.Task] = None
        self.closed = False

    @property
    def permission(self) -> PermissionState:
        return self.permissions.state

    def choose_photo_target(
        self,
        user_wants_private: bool,
        permission: PermissionState = None
    ) -> Target:
        return choose_photo_target(user_wants_private, permission or self.permission)

    # -- listings -----------------------------------------------------------

    async def unified_listing(self) -> Tuple[List[PrivatePhoto], List[SharedPhoto]]:
        """Fetch both collections; the shared one only with read access."""
        if not self.permission.can_read:
            return await self.private_store.list(), []

        private, shared = await asyncio.gather(
            self.private_store.list(),
            self.shared_store.list(),
        )
        return private, shared

    def add_listing_listener(self, listener: ListingListener) -> None:
        """Register callback(store, photos) invoked when a listing is published."""
        self._listeners.append(listener)

    async def refresh_private(self) -> List[PrivatePhoto]:
        generation = self._next_generation(PRIVATE)
        photos = await self.private_store.list()
        if self._publish(PRIVATE, generation, photos):
            self.private_photos = photos
        return photos

    async def refresh_shared(self) -> List[SharedPhoto]:
        generation = self._next_generation(SHARED)
        photos = await self.shared_store.list() if self.permission.can_read else []
        if self._publish(SHARED, generation, photos):
            self.shared_photos = photos
        return photos

    def _next_generation(self, store: str) -> int:
        self._generations[store] += 1
        return self._generations[store]

    def _publish(self, store: str, generation: int, photos: list) -> bool:
        # A newer refresh started meanwhile; its result wins
        if self.closed or generation != self._generations[store]:
            return False
        for listener in list(self._listeners):
            listener(store, photos)
        return True

    # -- saving and deleting -------------------------------------------------

    async def save_photo(
        self,
        image: ImageSource,
        user_wants_private: bool,
        name: str = None
    ) -> Result[str]:
        """Save a captured photo to the store the user's choice allows.

        Args:
            image: Encoded image bytes or a PIL image
            user_wants_private: State of the "private" toggle
            name: Base name; a random UUID when omitted

        Returns:
            Result holding the private file name or the shared locator;
            PERMISSION_DENIED when neither store may be used
        """
        name = name or str(uuid.uuid4())
        target = self.choose_photo_target(user_wants_private)

        if target is Target.PRIVATE:
            result = await self.private_store.save(name, image)
            await self.refresh_private()
            return result

        if target is Target.SHARED:
            return await self.shared_store.save(name, image)

        logger.info("Photo %s rejected: no write access to shared storage", name)
        return Result.failure(ErrorKind.PERMISSION_DENIED, "Can't write to shared storage without permission")

    async def delete_private(self, name: str) -> Result[None]:
        result = await self.private_store.delete(name)
        if result.ok:
            await self.refresh_private()
        return result

    async def delete_shared(self, locator: str) -> Result[DeleteAttempt]:
        """Delete a shared photo, possibly leaving it awaiting consent."""
        return await self.negotiator.request_delete(locator)

    async def resolve_consent(self, token: str, outcome: ConsentOutcome) -> Result[DeleteAttempt]:
        return await self.negotiator.resolve_consent(token, outcome)

    # -- permissions and change notifications ------------------------------

    async def on_permission_result(self, results: Mapping[str, bool]) -> PermissionState:
        """Apply a permission prompt outcome; load shared photos once readable."""
        state = self.permissions.on_permission_result(results)
        if state.can_read:
            await self.refresh_shared()
        else:
            logger.info("Can't read shared files without permission")
        return state

    async def watch(self, subscription: ChangeSubscription) -> None:
        """Refetch the shared listing whenever the index reports a change.

        Events arriving without read access are ignored. A burst of events
        triggers one refresh.
        """
        async for _ in subscription:
            if self.closed:
                break
            if not self.permission.can_read:
                continue
            if self.debounce > 0:
                await asyncio.sleep(self.debounce)
            subscription.poll()
            await self.refresh_shared()

    def start(self) -> None:
        """Subscribe to shared index changes and watch them in the background."""
        if self._watch_task is not None:
            return
        self._subscription = self.shared_store.subscribe()
        self._watch_task = asyncio.create_task(self.watch(self._subscription))

    async def close(self) -> None:
        """Stop watching; results of in-flight refreshes are ignored.

        Closes the shared media index too when this router opened it.
        """
        self.closed = True
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        if self._watch_task is not None:
            self._watch_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._watch_task
            self._watch_task = None
        if self.owns_index:
            self.owns_index = False
            await self.shared_store.index.close()


async def create_router(config: StorageConfig = None) -> StorageRouter:
    """Assemble stores, permission state and negotiator from configuration.

    The returned router owns the media index it opened; ``close()`` releases it.
    """
    config = config or get_storage_config()
    private_store, shared_store = await get_storage_from_config(config)
    permissions = PermissionService(config.capability_tier)
    return StorageRouter(private_store, shared_store, permissions, owns_index=True)
