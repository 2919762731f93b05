"""Media processing services (JPEG encoding, decoding)."""
from io import BytesIO
from typing import Union

from PIL import Image, ImageOps, UnidentifiedImageError

from ...config import JPEG_QUALITY

ImageSource = Union[bytes, Image.Image]


def open_image(source: ImageSource) -> Image.Image:
    """Return a loaded PIL image for raw bytes or an existing image."""
    if isinstance(source, Image.Image):
        return source
    try:
        with Image.open(BytesIO(source)) as img:
            # Apply EXIF orientation to fix rotated images from cameras/phones
            img = ImageOps.exif_transpose(img)
            img.load()
            return img
    except (UnidentifiedImageError, OSError, ValueError, TypeError) as e:
        raise ValueError(f"Cannot decode image: {e}")


def encode_jpeg(source: ImageSource, quality: int = JPEG_QUALITY) -> bytes:
    """Encode an image as JPEG, return the encoded bytes.

    Raises:
        ValueError: If the source cannot be decoded or compressed
    """
    img = open_image(source)
    # Convert RGBA/P to RGB for JPEG (no transparency support)
    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")

    output = BytesIO()
    try:
        img.save(output, "JPEG", quality=quality)
    except (OSError, ValueError) as e:
        raise ValueError(f"Couldn't save bitmap: {e}")

    data = output.getvalue()
    if not data:
        raise ValueError("Couldn't save bitmap: encoder produced no data")
    return data


def decode_image(data: bytes) -> Image.Image:
    """Decode stored image bytes into a loaded PIL image."""
    with Image.open(BytesIO(data)) as img:
        img.load()
        return img


def image_dimensions(source: ImageSource) -> tuple[int, int]:
    """Return (width, height) of an image."""
    return open_image(source).size
