"""
Processing module for image validation, re-encoding and export.
"""

from .image_utils import (
    as_png_bytes,
    decode_base64,
    encode_base64,
    make_preview_png,
    png_data_url,
    reencode_as_png,
    save_result_png,
    to_transfer_payload,
    validate_image_bytes,
)

__all__ = [
    "as_png_bytes",
    "decode_base64",
    "encode_base64",
    "make_preview_png",
    "png_data_url",
    "reencode_as_png",
    "save_result_png",
    "to_transfer_payload",
    "validate_image_bytes",
]
