"""
Slot thumbnail export.

Slot Info carries a small raw RGB image (`smallImageData`, 3 bytes per
pixel, rows top to bottom). Its size comes from thumbnailWidth /
thumbnailHeight when the schema has them, otherwise a square is assumed.
"""

import logging
import math
from pathlib import Path
from typing import Tuple

from PIL import Image

from ..formats.sav.values import RecordValue, ValueKind

logger = logging.getLogger(__name__)

IMAGE_KEY = "smallImageData"
BYTES_PER_PIXEL = 3


def thumbnail_size(tree: RecordValue) -> Tuple[int, int]:
    """(width, height) of the thumbnail in a Slot Info tree."""
    image = tree.get(IMAGE_KEY)
    if image is None or image.kind != ValueKind.BLOB:
        raise ValueError(f"tree has no '{IMAGE_KEY}' image data")
    pixels, extra = divmod(len(image.value), BYTES_PER_PIXEL)
    if extra:
        raise ValueError(f"{len(image.value)} bytes is not whole RGB pixels")

    width = tree.get("thumbnailWidth")
    height = tree.get("thumbnailHeight")
    if width is not None and height is not None and width.value and height.value:
        size = (width.value, height.value)
    else:
        side = math.isqrt(pixels)
        size = (side, side)
    if size[0] * size[1] != pixels:
        raise ValueError(f"{pixels} pixels do not make a {size[0]}x{size[1]} image")
    return size


def thumbnail_image(tree: RecordValue) -> Image.Image:
    size = thumbnail_size(tree)
    return Image.frombytes("RGB", size, bytes(tree[IMAGE_KEY].value))


def export_thumbnail(tree: RecordValue, path) -> Tuple[int, int]:
    """Write the thumbnail to `path` (format from the extension); returns its size."""
    img = thumbnail_image(tree)
    img.save(Path(path))
    logger.info(f"Exported {img.width}x{img.height} thumbnail to {path}")
    return img.size
