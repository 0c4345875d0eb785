"""Raster image decoding for embedded textures."""

import io
from dataclasses import dataclass

import numpy as np
from PIL import Image


@dataclass
class DecodedImage:
    """Decoded RGBA pixels.

    Attributes:
        data: uint8 array of shape (height, width, 4)
        width: Image width in pixels
        height: Image height in pixels
    """

    data: np.ndarray
    width: int
    height: int


def decode_image(data: bytes) -> DecodedImage:
    """Decode an embedded image (JPEG, PNG, ...) to RGBA.

    Raises:
        ValueError: If the bytes are not a readable image
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            rgba = np.asarray(img.convert("RGBA"), dtype=np.uint8)
    except (OSError, Image.DecompressionBombError) as e:
        raise ValueError(f"Could not decode image: {e}") from e

    height, width = rgba.shape[:2]
    return DecodedImage(data=rgba, width=width, height=height)
