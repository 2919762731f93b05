"""Unit tests for StorageRouter."""
import asyncio

import pytest

from snapshelf.application.services.permission_service import (
    READ_EXTERNAL_STORAGE,
    PermissionService,
    PermissionState,
)
from snapshelf.application.services.router_service import (
    StorageRouter,
    Target,
    choose_photo_target,
    create_router,
)
from snapshelf.application.services.authorization_service import ConsentOutcome, DeleteState
from snapshelf.infrastructure.storage import ErrorKind


def make_router(private_store, shared_store, tier="modern", can_read=True, can_write=False):
    permissions = PermissionService(tier)
    permissions.refresh(can_read, can_write)
    return StorageRouter(private_store, shared_store, permissions, debounce=0)


class TestChoosePhotoTarget:
    """Target selection."""

    @pytest.mark.parametrize("can_read", [True, False])
    @pytest.mark.parametrize("can_write", [True, False])
    def test_private_always_wins(self, can_read, can_write):
        assert choose_photo_target(True, PermissionState(can_read, can_write)) is Target.PRIVATE

    def test_shared_needs_write(self):
        assert choose_photo_target(False, PermissionState(can_write=True)) is Target.SHARED
        assert choose_photo_target(False, PermissionState(can_write=False)) is Target.REJECTED

    def test_router_uses_current_permission(self, private_store):
        router = make_router(private_store, SlowSharedStore(), tier="legacy", can_write=False)

        assert router.choose_photo_target(False) is Target.REJECTED
        assert router.choose_photo_target(False, PermissionState(can_write=True)) is Target.SHARED


class TestUnifiedListing:
    """Listing both collections."""

    @pytest.mark.asyncio
    async def test_without_read_permission(self, private_store, shared_store, image_bytes):
        await private_store.save("private", image_bytes)
        await shared_store.save("shared", image_bytes)
        router = make_router(private_store, shared_store, can_read=False)

        private, shared = await router.unified_listing()

        assert [p.name for p in private] == ["private.jpg"]
        assert shared == []

    @pytest.mark.asyncio
    async def test_with_read_permission(self, private_store, shared_store, image_bytes):
        await private_store.save("private", image_bytes)
        await shared_store.save("shared", image_bytes)
        router = make_router(private_store, shared_store, can_read=True)

        private, shared = await router.unified_listing()

        assert len(private) == 1
        assert [p.display_name for p in shared] == ["shared.jpg"]


class TestSavePhoto:
    """Routing saves."""

    @pytest.mark.asyncio
    async def test_private_save_refreshes_listing(self, private_store, shared_store, image_bytes):
        router = make_router(private_store, shared_store)

        result = await router.save_photo(image_bytes, user_wants_private=True)

        assert result.ok
        assert [p.name for p in router.private_photos] == [result.value]
        assert await shared_store.list() == []

    @pytest.mark.asyncio
    async def test_shared_save_with_implicit_write(self, private_store, shared_store, image_bytes):
        router = make_router(private_store, shared_store, tier="modern", can_write=False)

        result = await router.save_photo(image_bytes, user_wants_private=False, name="cam")

        assert result.ok
        assert [p.display_name for p in await shared_store.list()] == ["cam.jpg"]
        assert await private_store.list() == []

    @pytest.mark.asyncio
    async def test_rejected_without_write(self, private_store, shared_store, image_bytes):
        router = make_router(private_store, shared_store, tier="legacy", can_write=False)

        result = await router.save_photo(image_bytes, user_wants_private=False)

        assert result.error is ErrorKind.PERMISSION_DENIED
        assert await shared_store.list() == []
        assert await private_store.list() == []


class TestDelete:
    """Deleting through the router."""

    @pytest.mark.asyncio
    async def test_delete_private(self, private_store, shared_store, image_bytes):
        router = make_router(private_store, shared_store)
        name = (await router.save_photo(image_bytes, user_wants_private=True)).value

        result = await router.delete_private(name)

        assert result.ok
        assert router.private_photos == []

    @pytest.mark.asyncio
    async def test_delete_private_missing(self, private_store, shared_store):
        router = make_router(private_store, shared_store)

        result = await router.delete_private("ghost.jpg")

        assert result.error is ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_delete_shared_with_consent(
        self, private_store, media_index, store_factory, other_app_id, image_bytes
    ):
        ours = store_factory(media_index)
        theirs = store_factory(media_index, other_app_id)
        locator = (await theirs.save("theirs", image_bytes)).value
        router = make_router(private_store, ours)

        attempt = (await router.delete_shared(locator)).value
        assert attempt.state is DeleteState.AWAITING_CONSENT

        await media_index.grant_consent(attempt.consent_token)
        result = await router.resolve_consent(attempt.consent_token, ConsentOutcome.GRANTED)

        assert result.value.state is DeleteState.DELETED
        assert await ours.list() == []


class SlowSharedStore:
    """Shared store whose listings complete only when released."""

    def __init__(self):
        self.gates = []

    async def list(self):
        gate = asyncio.Event()
        self.gates.append(gate)
        result = [f"listing-{len(self.gates)}"]
        await gate.wait()
        return result


class TestRefresh:
    """Overlapping refreshes and change notifications."""

    @pytest.mark.asyncio
    async def test_latest_refresh_wins(self, private_store):
        store = SlowSharedStore()
        router = make_router(private_store, store)
        published = []
        router.add_listing_listener(lambda name, photos: published.append((name, photos)))

        first = asyncio.create_task(router.refresh_shared())
        await asyncio.sleep(0)
        second = asyncio.create_task(router.refresh_shared())
        await asyncio.sleep(0)

        store.gates[1].set()
        await second
        store.gates[0].set()
        assert await first == ["listing-1"]

        assert router.shared_photos == ["listing-2"]
        assert published == [("shared", ["listing-2"])]

    @pytest.mark.asyncio
    async def test_refresh_without_read_is_empty(self, private_store, shared_store, image_bytes):
        await shared_store.save("hidden", image_bytes)
        router = make_router(private_store, shared_store, can_read=False)

        assert await router.refresh_shared() == []

    @pytest.mark.asyncio
    async def test_change_events_refresh_shared_listing(
        self, private_store, media_index, store_factory, other_app_id, image_bytes
    ):
        ours = store_factory(media_index)
        theirs = store_factory(media_index, other_app_id)
        router = make_router(private_store, ours, can_read=True)
        refreshed = asyncio.Event()
        router.add_listing_listener(lambda name, photos: refreshed.set())
        router.start()

        await theirs.save("external", image_bytes)
        await asyncio.wait_for(refreshed.wait(), timeout=2)

        assert [p.display_name for p in router.shared_photos] == ["external.jpg"]
        await router.close()

    @pytest.mark.asyncio
    async def test_change_events_ignored_without_read(
        self, private_store, shared_store, image_bytes
    ):
        router = make_router(private_store, shared_store, can_read=False)
        published = []
        router.add_listing_listener(lambda name, photos: published.append(name))
        router.start()

        await shared_store.save("unseen", image_bytes)
        await asyncio.sleep(0.05)

        assert published == []
        assert router.shared_photos == []
        await router.close()

    @pytest.mark.asyncio
    async def test_closed_router_ignores_results(self, private_store):
        store = SlowSharedStore()
        router = make_router(private_store, store)

        pending = asyncio.create_task(router.refresh_shared())
        await asyncio.sleep(0)
        await router.close()
        store.gates[0].set()
        await pending

        assert router.shared_photos == []


class TestPermissionResult:

    @pytest.mark.asyncio
    async def test_read_grant_loads_shared(self, private_store, shared_store, image_bytes):
        await shared_store.save("now-visible", image_bytes)
        router = make_router(private_store, shared_store, can_read=False)

        state = await router.on_permission_result({READ_EXTERNAL_STORAGE: True})

        assert state.can_read is True
        assert [p.display_name for p in router.shared_photos] == ["now-visible.jpg"]


@pytest.mark.asyncio
async def test_create_router_from_config(storage_config, image_bytes):
    router = await create_router(storage_config)
    try:
        assert router.permissions.tier.value == "modern"
        assert router.choose_photo_target(False) is Target.SHARED
        assert (await router.save_photo(image_bytes, user_wants_private=False)).ok
    finally:
        await router.close()

    assert router.shared_store.index._conn is None


@pytest.mark.asyncio
async def test_router_leaves_borrowed_index_open(private_store, shared_store):
    """An index passed in by the caller stays open after close()."""
    router = make_router(private_store, shared_store)

    await router.close()

    assert shared_store.index._conn is not None
    assert await shared_store.list() == []
