"""
Image transfer between host and device.

Every function keeps the device's active render target scoped: it is saved
before the call touches it and restored afterwards, on success or failure.
"""

import logging
from typing import Tuple

from ..device.context import ComputeDevice
from ..device.images import Image2D
from ..device.resources import RenderImage

logger = logging.getLogger(__name__)


def allocate_gpu_image(device: ComputeDevice, width: int, height: int) -> Tuple[RenderImage, Image2D]:
    """
    Allocate a GPU-writable image and its CPU-readable counterpart.

    Args:
        device: Device to allocate on
        width, height: Image size in pixels

    Returns:
        Tuple of (render_image, image). Contents are undefined until written.

    Raises:
        AllocationError: on a non-positive size or when the device is out of memory
    """

    render_image = device.create_render_image(width, height)
    return render_image, Image2D(width, height)


def upload_to_gpu_image(device: ComputeDevice, image: Image2D) -> RenderImage:
    """Copy a CPU image into a newly allocated GPU image of the same size."""

    render_image = device.create_render_image(image.width, image.height)
    try:
        with device.render_target(render_image):
            device.blit(image, render_image)
    except Exception:
        render_image.release()
        raise

    return render_image


def read_back_and_release(device: ComputeDevice, render_image: RenderImage, image: Image2D):
    """
    Read a GPU image into a CPU image, then release the GPU image.

    The GPU image is released even when the readback fails and must not be
    used afterwards.
    """

    try:
        with device.render_target(render_image):
            device.read_pixels(image)
    finally:
        render_image.release()

    logger.debug("Read back %dx%d image", image.width, image.height)
