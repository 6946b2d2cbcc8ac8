"""
CPU-readable images.

Height fields travel between host and device as RGBA8 images, so height
precision is bounded by the encoding: 8 bits per channel, 256 levels in
[0, 1].
"""

from enum import Enum

import numpy as np


HEIGHT_PRECISION_BITS = 8
HEIGHT_LEVELS = (1 << HEIGHT_PRECISION_BITS) - 1


class ImageFormat(Enum):
    """Pixel formats shared by CPU images and GPU render images."""

    ARGB32 = (4, np.uint8)

    @property
    def channels(self) -> int:
        return self.value[0]

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(self.value[1])

    @property
    def bytes_per_pixel(self) -> int:
        return self.channels * self.dtype.itemsize


def encode_heights(heights: np.ndarray) -> np.ndarray:
    """Quantize a [0, 1] height array of shape (h, w) into RGBA8 pixels."""

    level = np.round(np.clip(heights, 0.0, 1.0) * HEIGHT_LEVELS).astype(np.uint8)
    alpha = np.full_like(level, HEIGHT_LEVELS)
    return np.stack([level, level, level, alpha], axis=-1)


class Image2D:
    """
    A CPU-readable 2D image stored as a (height, width, channels) array.

    Row ``y`` and column ``x`` address pixel ``pixels[y, x]``. The content
    of a freshly allocated image is undefined until it is written by a
    readback or constructed from data.
    """

    def __init__(self, width: int, height: int, fmt: ImageFormat = ImageFormat.ARGB32):
        self.width = int(width)
        self.height = int(height)
        self.format = fmt
        self.pixels = np.zeros((self.height, self.width, fmt.channels), dtype=fmt.dtype)

    @classmethod
    def from_heights(cls, heights: np.ndarray) -> "Image2D":
        """Build a height-field image from a float array of shape (h, w)."""

        heights = np.asarray(heights, dtype=np.float32)
        if heights.ndim != 2:
            raise ValueError(f"Height array must be 2D, got shape {heights.shape}")

        image = cls(heights.shape[1], heights.shape[0])
        image.pixels[...] = encode_heights(heights)
        return image

    @property
    def shape(self):
        return self.pixels.shape

    def heights(self) -> np.ndarray:
        """Decode the red channel into float32 heights in [0, 1]."""
        return self.pixels[..., 0].astype(np.float32) / HEIGHT_LEVELS

    def to_pil(self):
        """Convert to a Pillow RGBA image for previews."""

        from PIL import Image

        # (h, w, 4) uint8 arrays map to RGBA
        return Image.fromarray(np.ascontiguousarray(self.pixels))

    def __repr__(self) -> str:
        return f"Image2D(width={self.width}, height={self.height}, format={self.format.name})"
