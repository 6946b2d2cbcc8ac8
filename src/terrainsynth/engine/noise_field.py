"""
Noise field synthesis on the compute device.

One kernel invocation per output pixel. A single layer is evaluated by
``GenerateNoise``; up to ``MAX_NOISE_LAYERS`` weighted layers are packed
into a structured buffer and composited by ``GenerateLayeredNoise`` in one
dispatch.
"""

import logging
from typing import Optional, Sequence, Tuple, Union

from ..device.images import Image2D
from ..procgen.layout import (
    MAX_NOISE_LAYERS,
    NOISE_CONFIG_STRIDE,
    NoiseLayerConfig,
    NoiseType,
    limit_layers,
    pack_layers,
)
from ..procgen.programs import NOISE_PROGRAM
from ..procgen.provider import ProgramProvider, get_default_provider
from .transfer import allocate_gpu_image, read_back_and_release

logger = logging.getLogger(__name__)


class NoiseFieldSynthesizer:
    """
    Generates height fields from noise layers.

    Args:
        provider: Program provider (the process-wide default when None)
    """

    def __init__(self, provider: Optional[ProgramProvider] = None):
        self.provider = provider if provider is not None else get_default_provider()

    @property
    def device(self):
        return self.provider.device

    def generate(
        self,
        width: int,
        height: int,
        scale_multiplier: float,
        offset: Tuple[int, int],
        noise_type: Union[NoiseType, str, int],
        seed: int = 0,
        warp: bool = False
    ) -> Image2D:
        """
        Generate a single-layer noise field.

        Args:
            width, height: Output size in pixels
            scale_multiplier: Zoom of the noise domain
            offset: Integer pixel offset into the noise domain
            noise_type: Simplex, Perlin, Voronoi or VoronoiSmoothed
            seed: 32-bit seed
            warp: Apply domain warping before sampling

        Returns:
            CPU-readable height field
        """

        layer = NoiseLayerConfig(
            seed=seed,
            noise_type=noise_type,
            offset=offset,
            scale_multiplier=scale_multiplier,
            warp=warp,
        )
        program, kernel = self.provider.kernel(NOISE_PROGRAM, "GenerateNoise")

        render_image, image = allocate_gpu_image(self.device, width, height)
        try:
            program.set_texture(kernel, "NoiseTexture", render_image)
            program.set_int("noise_type", int(layer.noise_type))
            program.set_uint("seed", layer.seed)
            program.set_bool("warping", layer.warp)
            program.set_float("scale_multiplier", layer.scale_multiplier)
            program.set_vector("offset", (layer.offset[0], layer.offset[1]))
            program.dispatch(kernel, width, height, 1)
        finally:
            read_back_and_release(self.device, render_image, image)

        logger.debug("Generated %dx%d %s noise field", width, height, layer.noise_type.name)
        return image

    def generate_layers(
        self,
        width: int,
        height: int,
        layers: Sequence[NoiseLayerConfig]
    ) -> Image2D:
        """
        Generate a height field as the weighted sum of up to six layers.

        Layers past the sixth are dropped. Each pixel holds
        ``sum(noise_k(p) * weight_k)`` clamped to [0, 1] by the image encoding.

        Args:
            width, height: Output size in pixels
            layers: Layer configurations, evaluated in order

        Returns:
            CPU-readable height field
        """

        if len(layers) == 0:
            raise ValueError("At least one noise layer is required")
        if len(layers) > MAX_NOISE_LAYERS:
            logger.debug("Truncating %d noise layers to %d", len(layers), MAX_NOISE_LAYERS)

        layers = limit_layers(layers)
        packed = pack_layers(layers)
        program, kernel = self.provider.kernel(NOISE_PROGRAM, "GenerateLayeredNoise")

        render_image, image = allocate_gpu_image(self.device, width, height)
        try:
            config_buffer = self.device.create_buffer(len(packed), NOISE_CONFIG_STRIDE)
            try:
                config_buffer.set_data(packed)
                program.set_texture(kernel, "NoiseTexture", render_image)
                program.set_buffer(kernel, "NoiseConfigArray", config_buffer)
                program.set_int("config_size", len(packed))
                program.dispatch(kernel, width, height, 1)
            finally:
                config_buffer.release()
        finally:
            read_back_and_release(self.device, render_image, image)

        logger.debug("Generated %dx%d noise field from %d layers", width, height, len(layers))
        return image
