"""
Device layer: JAX-backed memory, images and compute programs.
"""

from .context import ComputeDevice
from .images import Image2D, ImageFormat
from .programs import ComputeProgram, KernelSpec
from .resources import ComputeBuffer, DeviceResource, RenderImage

__all__ = [
    "ComputeDevice",
    "Image2D",
    "ImageFormat",
    "ComputeProgram",
    "KernelSpec",
    "ComputeBuffer",
    "DeviceResource",
    "RenderImage",
]
