"""App-private filesystem photo storage."""
import builtins
import logging
import os
from pathlib import Path
from typing import List

import aiofiles
from PIL import Image

from ...config import IMAGE_EXTENSION
from ..services.media import ImageSource, decode_image, encode_jpeg
from .base import (
    PhotoStoreInterface,
    PrivatePhoto,
    Result,
    StorageConfig,
    StorageError,
    EncodeError,
    FileNotFoundError as StorageFileNotFoundError,
    UploadError,
    DownloadError,
    DeleteError
)

logger = logging.getLogger(__name__)


class PrivateStore(PhotoStoreInterface):
    """App-exclusive photo storage.

    Stores JPEG files flat in one directory:
        private_dir/
            <name>.jpg

    No permission is needed to read, write or delete here.
    """

    def __init__(self, config: StorageConfig):
        """Initialize private storage.

        Args:
            config: Storage configuration with private_dir
        """
        self.config = config
        self.base_path = Path(config.private_dir)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _get_path(self, name: str) -> Path:
        """Get full filesystem path for a file."""
        # Sanitize name to prevent directory traversal
        safe_name = Path(name).name
        return self.base_path / safe_name

    async def list(self) -> List[PrivatePhoto]:
        """List decodable JPEG files in the private directory.

        Unreadable or non-matching entries are skipped. A missing
        directory yields an empty list.
        """
        try:
            entries = sorted(self.base_path.iterdir())
        except OSError:
            return []

        photos = []
        for item in entries:
            if not item.name.endswith(IMAGE_EXTENSION) or item.name.startswith("."):
                continue
            if not item.is_file() or not os.access(item, os.R_OK):
                continue
            try:
                async with aiofiles.open(item, "rb") as f:
                    data = await f.read()
                photos.append(PrivatePhoto(item.name, decode_image(data)))
            except (OSError, ValueError, Image.DecompressionBombError) as e:
                logger.debug("Skipping unreadable private photo %s: %s", item.name, e)
        return photos

    async def load(self, name: str) -> Result[PrivatePhoto]:
        """Load a single photo by file name."""
        file_path = self._get_path(name)
        try:
            async with aiofiles.open(file_path, "rb") as f:
                data = await f.read()
        except builtins.FileNotFoundError:
            return Result.from_error(StorageFileNotFoundError(f"File not found: {name}"))
        except OSError as e:
            logger.warning("Failed to read private photo %s: %s", name, e)
            return Result.from_error(DownloadError(f"Failed to read {name}: {e}"))

        try:
            return Result.success(PrivatePhoto(file_path.name, decode_image(data)))
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            return Result.from_error(StorageError(f"Failed to decode {name}: {e}"))

    async def save(self, name: str, image: ImageSource) -> Result[str]:
        """Encode image as JPEG and write it to ``<name>.jpg``.

        The file is written to a temporary sibling first and moved into
        place, so a reader never observes a half-written photo. An existing
        photo of the same name is overwritten.

        Returns:
            Result holding the stored file name; IO_FAILED for names that
            would be hidden from ``list()`` (empty or starting with '.')
        """
        base_name = Path(name).name
        filename = base_name + IMAGE_EXTENSION
        file_path = self._get_path(filename)
        tmp_path = file_path.with_name(f".{filename}.part")

        try:
            if not base_name or base_name.startswith("."):
                raise UploadError(f"Invalid photo name: {name!r}")
            try:
                data = encode_jpeg(image, self.config.jpeg_quality)
            except ValueError as e:
                raise EncodeError(str(e))
            try:
                self.base_path.mkdir(parents=True, exist_ok=True)
                async with aiofiles.open(tmp_path, "wb") as f:
                    await f.write(data)
                os.replace(tmp_path, file_path)
            except (IOError, OSError) as e:
                _discard(tmp_path)
                raise UploadError(f"Failed to save {filename}: {e}")
        except StorageError as e:
            logger.warning("Private save failed for %s: %s", filename, e)
            return Result.from_error(e)

        logger.debug("Saved private photo %s (%d bytes)", filename, len(data))
        return Result.success(filename)

    async def delete(self, name: str) -> Result[None]:
        """Delete a photo from the private directory."""
        file_path = self._get_path(name)

        try:
            try:
                file_path.unlink()
            except builtins.FileNotFoundError:
                raise StorageFileNotFoundError(f"File not found: {name}")
            except (IOError, OSError) as e:
                raise DeleteError(f"Failed to delete {name}: {e}")
        except StorageError as e:
            logger.warning("Private delete failed for %s: %s", name, e)
            return Result.from_error(e)

        return Result.success()

    def exists(self, name: str) -> bool:
        """Check if photo exists."""
        file_path = self._get_path(name)
        return file_path.exists() and file_path.is_file()


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except OSError:
        pass
