"""
Compute device: memory accounting, resource tracking and render-target state.

The device is the single owner of the "active render target". It is
mutable, device-wide state; every path that changes it goes through
``render_target()``, which always restores the previous value.
"""

import logging
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

import jax
import numpy as np

from ..errors import AllocationError, DispatchError, LayoutError, ResourceLoadError
from .images import Image2D, ImageFormat
from .resources import WORD_SIZE, ComputeBuffer, DeviceResource, RenderImage

logger = logging.getLogger(__name__)


class ComputeDevice:
    """
    A JAX device with explicit allocate / release bookkeeping.

    Args:
        platform: JAX platform name ("cpu", "gpu", ...) or None for the default backend
        memory_limit_bytes: Optional cap on live device memory; allocations past it fail
    """

    def __init__(self, platform: Optional[str] = None, memory_limit_bytes: Optional[int] = None):
        try:
            devices = jax.devices(platform) if platform else jax.devices()
        except RuntimeError as exc:
            raise ResourceLoadError(f"Compute platform '{platform}' is not available") from exc

        self.jax_device = devices[0]
        self.memory_limit_bytes = memory_limit_bytes
        self.active_render_target: Optional[RenderImage] = None

        self.bytes_in_use = 0
        self.allocations = 0
        self.releases = 0
        self.dispatches = 0

        self._live: Dict[int, DeviceResource] = {}
        self._next_handle = 0

        logger.debug("Compute device initialized on %s", self.jax_device)

    @property
    def platform(self) -> str:
        return self.jax_device.platform

    @property
    def live_resources(self) -> List[DeviceResource]:
        return list(self._live.values())

    # -- allocation -------------------------------------------------------

    def create_buffer(self, count: int, stride: int) -> ComputeBuffer:
        """Allocate a zero-filled structured buffer of ``count`` x ``stride`` bytes."""

        if count <= 0 or stride <= 0:
            raise AllocationError(f"Invalid buffer size: count={count}, stride={stride}")
        if stride % WORD_SIZE:
            raise LayoutError(f"Buffer stride {stride} is not a multiple of {WORD_SIZE} bytes")

        nbytes = count * stride
        data = self._allocate(np.zeros(nbytes // WORD_SIZE, dtype=np.uint32))
        return self._track(ComputeBuffer(self, count, stride, data))

    def create_render_image(
        self, width: int, height: int, fmt: ImageFormat = ImageFormat.ARGB32
    ) -> RenderImage:
        """Allocate a GPU-writable image with undefined (zeroed) content."""

        if width <= 0 or height <= 0:
            raise AllocationError(f"Invalid image size: {width}x{height}")

        data = self._allocate(np.zeros((height, width, fmt.channels), dtype=fmt.dtype))
        return self._track(RenderImage(self, width, height, fmt, data))

    def _allocate(self, host: np.ndarray) -> jax.Array:
        nbytes = host.nbytes
        if self.memory_limit_bytes is not None and self.bytes_in_use + nbytes > self.memory_limit_bytes:
            raise AllocationError(
                f"Cannot reserve {nbytes} bytes: {self.bytes_in_use} of "
                f"{self.memory_limit_bytes} bytes already in use"
            )

        try:
            data = jax.device_put(host, self.jax_device)
        except RuntimeError as exc:
            # XlaRuntimeError (RESOURCE_EXHAUSTED) derives from RuntimeError
            raise AllocationError(f"Device allocation of {nbytes} bytes failed") from exc

        self.bytes_in_use += nbytes
        return data

    def _track(self, resource: DeviceResource):
        resource.handle = self._next_handle
        self._next_handle += 1
        self._live[resource.handle] = resource
        self.allocations += 1
        self.on_allocate(resource)
        return resource

    def _untrack(self, resource: DeviceResource):
        self._live.pop(resource.handle, None)
        self.bytes_in_use -= resource.nbytes
        self.releases += 1
        self.on_release(resource)

    def on_allocate(self, resource: DeviceResource):
        """Hook called after every allocation."""

    def on_release(self, resource: DeviceResource):
        """Hook called after every release."""

    # -- render target ----------------------------------------------------

    @contextmanager
    def render_target(self, image: Optional[RenderImage]) -> Iterator[Optional[RenderImage]]:
        """Make ``image`` the active render target for the duration of the block."""

        previous = self.active_render_target
        self.active_render_target = image
        try:
            yield image
        finally:
            self.active_render_target = previous

    def blit(self, source: Image2D, target: RenderImage):
        """Copy a CPU image into a GPU image of the same size."""

        if (source.width, source.height) != target.size:
            raise DispatchError(
                f"Blit size mismatch: {source.width}x{source.height} into "
                f"{target.width}x{target.height}"
            )
        target.store(jax.device_put(source.pixels, self.jax_device))

    def read_pixels(self, destination: Image2D):
        """Read the active render target into ``destination`` (blocking)."""

        source = self.active_render_target
        if source is None:
            raise DispatchError("No active render target to read from")
        if (destination.width, destination.height) != source.size:
            raise DispatchError(
                f"Readback size mismatch: {source.width}x{source.height} into "
                f"{destination.width}x{destination.height}"
            )

        destination.pixels[...] = np.asarray(source.contents)

    def __repr__(self) -> str:
        return (
            f"ComputeDevice(device={self.jax_device}, live={len(self._live)}, "
            f"bytes_in_use={self.bytes_in_use})"
        )
