"""
Image utility functions for validating, re-encoding and saving pose images.
"""

import base64
from io import BytesIO
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from ..config import ACCEPTED_MIME_TYPES, DOWNLOAD_FILENAME, PREVIEW_MAX_SIZE, TRANSFER_MIME_TYPE
from ..core.models import ImagePayload

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def validate_image_bytes(image_bytes: bytes, mime_type: str) -> None:
    """
    Check that uploaded bytes are an accepted, decodable image.

    Args:
        image_bytes: Raw uploaded file contents.
        mime_type: Mime type reported by the file picker.

    Raises:
        ValueError: If the type is not accepted or Pillow cannot decode the data.
    """
    if mime_type not in ACCEPTED_MIME_TYPES:
        raise ValueError(f"Unsupported image type: {mime_type or 'unknown'}")
    if not image_bytes:
        raise ValueError("Image file is empty")
    try:
        with Image.open(BytesIO(image_bytes)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ValueError(f"Could not decode image: {e}") from e


def reencode_as_png(image_bytes: bytes) -> bytes:
    """
    Decode any supported image and re-encode it as RGBA PNG.

    Ensures a consistent transfer format for Gemini regardless of source format.
    """
    img = Image.open(BytesIO(image_bytes)).convert("RGBA")
    buffer = BytesIO()
    img.save(buffer, format="PNG", compress_level=0, optimize=False)
    return buffer.getvalue()


def to_transfer_payload(image_bytes: bytes) -> ImagePayload:
    """Re-encode raw upload bytes into the payload sent to the describe/render calls."""
    return ImagePayload(reencode_as_png(image_bytes), TRANSFER_MIME_TYPE)


def encode_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("utf-8")


def decode_base64(data: str) -> bytes:
    return base64.b64decode(data)


def make_preview_png(image_bytes: bytes, max_size: int = PREVIEW_MAX_SIZE) -> bytes:
    """
    Build a downscaled PNG preview of an uploaded image.

    Args:
        image_bytes: Raw image data.
        max_size: Longest edge of the preview in pixels.

    Returns:
        PNG bytes of the thumbnail.
    """
    img = Image.open(BytesIO(image_bytes)).convert("RGBA")
    img.thumbnail((max_size, max_size), Image.Resampling.LANCZOS)
    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def as_png_bytes(image_bytes: bytes) -> bytes:
    """Return PNG data unchanged; convert any other image format to PNG."""
    if image_bytes.startswith(PNG_SIGNATURE):
        return image_bytes
    img = Image.open(BytesIO(image_bytes)).convert("RGBA")
    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def save_result_png(image_bytes: bytes, directory: Path, filename: str = DOWNLOAD_FILENAME) -> Path:
    """
    Write a generated pose to directory/filename as PNG.

    PNG data is written byte-for-byte; anything else is converted with Pillow.

    Args:
        image_bytes: Image bytes returned by the render call.
        directory: Destination folder (created if missing).
        filename: Output file name.

    Returns:
        Path to the saved file.
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    out_path = directory / filename
    out_path.write_bytes(as_png_bytes(image_bytes))
    return out_path


def png_data_url(image_bytes: bytes) -> str:
    """Return a PNG data URL for a generated image, converting it if needed."""
    return f"data:image/png;base64,{encode_base64(as_png_bytes(image_bytes))}"
