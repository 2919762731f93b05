"""Factory for creating photo stores."""
import os
from pathlib import Path

from ... import config as app_config

from .base import CapabilityTier, StorageConfig
from .media_index import MediaIndex
from .private_storage import PrivateStore
from .shared_storage import SharedStore


def get_storage_config() -> StorageConfig:
    """Get storage configuration from environment variables.

    Environment variables:
    - SNAPSHELF_PRIVATE_DIR: App-private photo directory
    - SNAPSHELF_SHARED_DIR: Shared media data directory
    - SNAPSHELF_INDEX_PATH: Media index database file
    - SNAPSHELF_APP_ID: Owner identity at the media index
    - SNAPSHELF_CAPABILITY_TIER: 'legacy', 'scoped' or 'modern' (default)
    """
    tier = os.environ.get("SNAPSHELF_CAPABILITY_TIER", app_config.CAPABILITY_TIER)

    return StorageConfig(
        private_dir=Path(os.environ.get("SNAPSHELF_PRIVATE_DIR", str(app_config.PRIVATE_DIR))),
        shared_dir=Path(os.environ.get("SNAPSHELF_SHARED_DIR", str(app_config.SHARED_DIR))),
        index_path=Path(os.environ.get("SNAPSHELF_INDEX_PATH", str(app_config.INDEX_PATH))),
        app_id=os.environ.get("SNAPSHELF_APP_ID", app_config.APP_ID),
        capability_tier=CapabilityTier.parse(tier).value,
        jpeg_quality=app_config.JPEG_QUALITY,
    )


async def get_storage_from_config(config: StorageConfig) -> tuple[PrivateStore, SharedStore]:
    """Create both photo stores from configuration.

    Args:
        config: Storage configuration

    Returns:
        (PrivateStore, SharedStore) pair; the shared store's index is open
    """
    index = await MediaIndex.open(config)
    return PrivateStore(config), SharedStore(index, config)

