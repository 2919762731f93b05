"""Application configuration and constants."""
import logging
import os
from pathlib import Path

# Directory paths
BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = Path(os.environ.get("SNAPSHELF_DATA_DIR", str(BASE_DIR / "data")))

# App-private photo directory (no permission required)
PRIVATE_DIR = Path(os.environ.get("SNAPSHELF_PRIVATE_DIR", str(DATA_DIR / "files")))

# Shared media store: data files plus the index database
SHARED_DIR = Path(os.environ.get("SNAPSHELF_SHARED_DIR", str(DATA_DIR / "media")))
INDEX_PATH = Path(os.environ.get("SNAPSHELF_INDEX_PATH", str(DATA_DIR / "media.db")))

# Identity this process uses as record owner at the media index
APP_ID = os.environ.get("SNAPSHELF_APP_ID", "com.snapshelf.app")

# Platform capability tier: legacy, scoped or modern
CAPABILITY_TIER = os.environ.get("SNAPSHELF_CAPABILITY_TIER", "modern").lower()

# Image encoding
IMAGE_EXTENSION = ".jpg"
JPEG_MIME_TYPE = "image/jpeg"
JPEG_QUALITY = 95

# Media index URI namespace
EXTERNAL_CONTENT_URI = "content://media/external/images/media"

# Seconds to wait after a change event before refetching the shared listing
CHANGE_DEBOUNCE_SECONDS = float(os.environ.get("SNAPSHELF_CHANGE_DEBOUNCE", "0.1"))

# Logging
LOG_LEVEL = os.environ.get("SNAPSHELF_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = None) -> None:
    """Configure root logging for the library's host process."""
    logging.basicConfig(level=level or LOG_LEVEL, format=LOG_FORMAT)
