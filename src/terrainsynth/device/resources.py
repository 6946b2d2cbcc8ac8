"""
Device-resident resources: structured compute buffers and render images.

Every resource is released exactly once. Releasing twice, or touching the
contents of a released resource, raises ``InvalidResourceError``.
"""

from typing import Optional, Tuple

import jax
import numpy as np

from ..errors import InvalidResourceError, LayoutError
from .images import ImageFormat

# Device buffers are addressed in 32-bit words
WORD_SIZE = 4


class DeviceResource:
    """Base class for memory owned by a ``ComputeDevice``."""

    kind = "resource"

    def __init__(self, device, nbytes: int, data: jax.Array):
        self.device = device
        self.nbytes = int(nbytes)
        self.handle: Optional[int] = None
        self._data: Optional[jax.Array] = data

    @property
    def released(self) -> bool:
        return self._data is None

    @property
    def contents(self) -> jax.Array:
        """Device array backing this resource."""

        if self._data is None:
            raise InvalidResourceError(f"{self!r} has already been released")
        return self._data

    def store(self, data: jax.Array):
        """Replace the contents with a same-shaped, same-typed device array."""

        current = self.contents
        if data.shape != current.shape or data.dtype != current.dtype:
            raise LayoutError(
                f"{self!r} expects {current.dtype}{current.shape}, "
                f"got {data.dtype}{data.shape}"
            )
        self._data = data

    def release(self):
        """Free the device memory. The resource is invalid afterwards."""

        data = self.contents
        self._data = None
        data.delete()
        self.device._untrack(self)


class ComputeBuffer(DeviceResource):
    """
    A structured buffer of ``count`` elements of ``stride`` bytes each.

    Host data is exchanged as numpy arrays whose element itemsize must equal
    the declared stride, e.g. a packed structured dtype, or a subarray dtype
    such as ``np.dtype((np.float32, 3))`` for vertices.
    """

    kind = "buffer"

    def __init__(self, device, count: int, stride: int, data: jax.Array):
        super().__init__(device, count * stride, data)
        self.count = int(count)
        self.stride = int(stride)

    def _check_layout(self, dtype: np.dtype):
        if dtype.itemsize != self.stride:
            raise LayoutError(
                f"Element size {dtype.itemsize} does not match buffer stride {self.stride}"
            )

    def set_data(self, array: np.ndarray):
        """Upload host elements to the start of the buffer."""

        array = np.asarray(array)
        element = np.dtype((array.dtype, array.shape[1:])) if array.ndim > 1 else array.dtype
        self._check_layout(element)

        if len(array) > self.count:
            raise LayoutError(f"{len(array)} elements do not fit a buffer of {self.count}")

        words = np.frombuffer(np.ascontiguousarray(array).tobytes(), dtype="<u4")
        current = self.contents
        updated = current.at[: words.size].set(jax.device_put(words, self.device.jax_device))
        self.store(updated)

    def get_data(self, dtype) -> np.ndarray:
        """Blocking readback of all elements, decoded with ``dtype``."""

        dtype = np.dtype(dtype)
        self._check_layout(dtype)
        raw = np.asarray(self.contents).astype("<u4", copy=False).tobytes()
        return np.frombuffer(raw, dtype=dtype).copy()

    def __repr__(self) -> str:
        return f"ComputeBuffer(handle={self.handle}, count={self.count}, stride={self.stride})"


class RenderImage(DeviceResource):
    """A GPU-writable image with random-write access from kernels."""

    kind = "image"

    def __init__(self, device, width: int, height: int, fmt: ImageFormat, data: jax.Array):
        super().__init__(device, width * height * fmt.bytes_per_pixel, data)
        self.width = int(width)
        self.height = int(height)
        self.format = fmt

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def __repr__(self) -> str:
        return f"RenderImage(handle={self.handle}, width={self.width}, height={self.height})"
