"""Test configuration and fixtures for Snapshelf.

This module provides isolated test environments:
- Temporary private directory
- Temporary shared media directory and index database
- Stores owned by this app and by a second, foreign app
"""
import dataclasses
import os
import sys
from io import BytesIO
from pathlib import Path
from typing import Callable

import pytest
import pytest_asyncio
from PIL import Image

# Ensure snapshelf is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment BEFORE importing snapshelf modules
os.environ["SNAPSHELF_CHANGE_DEBOUNCE"] = "0"

from snapshelf.infrastructure.storage import (  # noqa: E402
    MediaIndex,
    PrivateStore,
    SharedStore,
    StorageConfig,
)

APP_ID = "com.snapshelf.test"
OTHER_APP_ID = "com.example.camera"


def make_image_bytes(
    size: tuple[int, int] = (32, 24),
    color: tuple = (200, 30, 30),
    fmt: str = "PNG",
    mode: str = "RGB"
) -> bytes:
    """Encode a solid-color test image."""
    output = BytesIO()
    Image.new(mode, size, color).save(output, fmt)
    return output.getvalue()


@pytest.fixture
def image_bytes() -> bytes:
    """A small decodable PNG."""
    return make_image_bytes()


@pytest.fixture
def storage_config(tmp_path: Path) -> StorageConfig:
    """Storage configuration rooted in a per-test temporary directory."""
    return StorageConfig(
        private_dir=tmp_path / "files",
        shared_dir=tmp_path / "media",
        index_path=tmp_path / "media.db",
        app_id=APP_ID,
        capability_tier="modern",
    )


@pytest.fixture
def private_store(storage_config: StorageConfig) -> PrivateStore:
    return PrivateStore(storage_config)


@pytest_asyncio.fixture
async def index_factory(storage_config: StorageConfig) -> Callable:
    """Open media indexes for a given capability tier; closed after the test.

    Usage:
        index = await index_factory("scoped")
    """
    opened = []

    async def _open(tier: str = "modern") -> MediaIndex:
        config = dataclasses.replace(storage_config, capability_tier=tier)
        index = await MediaIndex.open(config)
        opened.append(index)
        return index

    yield _open

    for index in opened:
        await index.close()


@pytest_asyncio.fixture
async def media_index(index_factory) -> MediaIndex:
    return await index_factory("modern")


@pytest.fixture
def shared_store(media_index: MediaIndex, storage_config: StorageConfig) -> SharedStore:
    return SharedStore(media_index, storage_config)


@pytest.fixture
def store_factory(storage_config: StorageConfig) -> Callable:
    """Build shared stores acting as a given app against an index.

    Usage:
        ours = store_factory(index)
        theirs = store_factory(index, OTHER_APP_ID)
    """
    def _make(index: MediaIndex, app_id: str = APP_ID) -> SharedStore:
        return SharedStore(index, dataclasses.replace(storage_config, app_id=app_id))
    return _make


@pytest.fixture
def other_app_id() -> str:
    return OTHER_APP_ID


@pytest.fixture
def image_factory() -> Callable[..., bytes]:
    """Build encoded test images: image_factory(size=(w, h), color=..., fmt=..., mode=...)."""
    return make_image_bytes
