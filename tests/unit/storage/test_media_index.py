"""Unit tests for the shared media index platform rules."""
import pytest

from snapshelf.infrastructure.storage import (
    CapabilityTier,
    DeleteDenied,
    PlatformError,
    RecoverableDeleteDenied,
)
from snapshelf.infrastructure.storage.media_index import locator_for, parse_locator

OWNER = "com.snapshelf.test"
STRANGER = "com.example.camera"


async def insert_published(index, name="photo.jpg", owner=OWNER, data=b"jpeg-bytes"):
    locator = await index.insert(
        {"display_name": name, "mime_type": "image/jpeg", "width": 1, "height": 1}, owner
    )
    async with index.open_write(locator) as stream:
        await stream.write(data)
    return locator


def test_locator_round_trip():
    assert parse_locator(locator_for(42)) == 42


class TestInsertAndQuery:
    """Test record insertion and visibility."""

    @pytest.mark.asyncio
    async def test_pending_record_hidden_until_written(self, media_index):
        locator = await media_index.insert(
            {"display_name": "p.jpg", "mime_type": "image/jpeg"}, OWNER
        )

        assert await media_index.query() == []

        async with media_index.open_write(locator) as stream:
            await stream.write(b"data")

        rows = await media_index.query()
        assert [row["display_name"] for row in rows] == ["p.jpg"]

    @pytest.mark.asyncio
    async def test_insert_refuses_non_image(self, media_index):
        locator = await media_index.insert(
            {"display_name": "clip.mp4", "mime_type": "video/mp4"}, OWNER
        )

        assert locator is None

    @pytest.mark.asyncio
    async def test_insert_refuses_missing_name(self, media_index):
        assert await media_index.insert({"mime_type": "image/jpeg"}, OWNER) is None

    @pytest.mark.asyncio
    async def test_open_read_returns_written_data(self, media_index):
        locator = await insert_published(media_index, data=b"abc")

        assert await media_index.open_read(locator) == b"abc"


class TestDeletionRules:
    """Test ownership rules per capability tier."""

    @pytest.mark.asyncio
    async def test_owner_may_delete(self, media_index):
        locator = await insert_published(media_index)

        assert await media_index.delete(locator, OWNER) == 1
        assert await media_index.query() == []

    @pytest.mark.asyncio
    async def test_missing_record_deletes_nothing(self, media_index):
        assert await media_index.delete(locator_for(7), OWNER) == 0

    @pytest.mark.asyncio
    async def test_legacy_denial_has_no_token(self, index_factory):
        index = await index_factory("legacy")
        locator = await insert_published(index, owner=STRANGER)

        with pytest.raises(DeleteDenied) as exc_info:
            await index.delete(locator, OWNER)

        assert not isinstance(exc_info.value, RecoverableDeleteDenied)
        assert exc_info.value.recovery_token is None

    @pytest.mark.asyncio
    async def test_scoped_denial_is_recoverable(self, index_factory):
        index = await index_factory("scoped")
        locator = await insert_published(index, owner=STRANGER)

        with pytest.raises(RecoverableDeleteDenied) as exc_info:
            await index.delete(locator, OWNER)

        token = exc_info.value.recovery_token
        assert token
        assert await index.grant_consent(token) is True
        # The grant lets the requester delete on the next attempt
        assert await index.delete(locator, OWNER) == 1

    @pytest.mark.asyncio
    async def test_modern_denial_requires_delete_request(self, media_index):
        locator = await insert_published(media_index, owner=STRANGER)

        with pytest.raises(DeleteDenied) as exc_info:
            await media_index.delete(locator, OWNER)
        assert exc_info.value.recovery_token is None

        token = await media_index.create_delete_request([locator], OWNER)
        assert await media_index.grant_consent(token) is True
        assert await media_index.query() == []

    @pytest.mark.asyncio
    async def test_delete_request_only_on_modern(self, index_factory):
        index = await index_factory("scoped")
        locator = await insert_published(index, owner=STRANGER)

        with pytest.raises(PlatformError):
            await index.create_delete_request([locator], OWNER)

    @pytest.mark.asyncio
    async def test_rejected_consent_keeps_record(self, media_index):
        locator = await insert_published(media_index, owner=STRANGER)
        token = await media_index.create_delete_request([locator], OWNER)

        assert await media_index.reject_consent(token) is True
        assert await media_index.grant_consent(token) is False
        assert len(await media_index.query()) == 1

    @pytest.mark.asyncio
    async def test_unknown_token(self, media_index):
        assert await media_index.grant_consent("no-such-token") is False


class TestChangeNotifications:
    """Test change events emitted by the index."""

    @pytest.mark.asyncio
    async def test_publish_and_delete_notify(self, media_index):
        subscription = media_index.subscribe()

        locator = await insert_published(media_index)
        assert subscription.poll() is True

        await media_index.delete(locator, OWNER)
        assert subscription.poll() is True
        assert subscription.poll() is False

    @pytest.mark.asyncio
    async def test_pending_discard_is_silent(self, media_index):
        subscription = media_index.subscribe()
        locator = await media_index.insert(
            {"display_name": "p.jpg", "mime_type": "image/jpeg"}, OWNER
        )

        await media_index.delete(locator, OWNER)

        assert subscription.poll() is False

    @pytest.mark.asyncio
    async def test_closed_subscription_receives_nothing(self, media_index):
        subscription = media_index.subscribe()
        subscription.close()

        await insert_published(media_index)

        assert subscription.poll() is False
        assert await subscription.wait() is None


def test_tier_parse():
    assert CapabilityTier.parse("Scoped") is CapabilityTier.SCOPED
    assert CapabilityTier.parse(CapabilityTier.LEGACY) is CapabilityTier.LEGACY
    with pytest.raises(ValueError):
        CapabilityTier.parse("futuristic")
