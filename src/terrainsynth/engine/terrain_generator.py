"""
End-to-end terrain generation: noise settings -> height field -> chunk grid.
"""

import logging
from typing import Optional

import numpy as np

from ..config import TerrainSettings
from ..device.context import ComputeDevice
from ..device.images import Image2D
from ..procgen.provider import ProgramProvider
from .chunked import ChunkedMeshSynthesizer, ChunkGrid
from .noise_field import NoiseFieldSynthesizer

logger = logging.getLogger(__name__)


class TerrainGenerator:
    """
    Loads noise and terrain according to a ``TerrainSettings``.

    The last generated height field and chunk grid are kept until ``clear()``;
    placing the chunks in a scene is left to the caller via ``placements()``.

    Args:
        settings: Terrain configuration (defaults when None)
        provider: Program provider; when None one is created on a device
            built from ``settings.device``
    """

    def __init__(self, settings: Optional[TerrainSettings] = None, provider: Optional[ProgramProvider] = None):
        self.settings = settings if settings is not None else TerrainSettings()

        if provider is None:
            device = ComputeDevice(
                self.settings.device.platform,
                self.settings.device.memory_limit_bytes,
            )
            provider = ProgramProvider(device)

        self.provider = provider
        self.noise_synthesizer = NoiseFieldSynthesizer(provider)
        self.chunk_synthesizer = ChunkedMeshSynthesizer(provider)

        self.height_field: Optional[Image2D] = None
        self.grid: Optional[ChunkGrid] = None

    def load_noise(self) -> Image2D:
        """Generate the height field from the configured layers."""

        noise = self.settings.noise
        self.height_field = self.noise_synthesizer.generate_layers(noise.width, noise.height, noise.layers)
        logger.info("Loaded %dx%d noise field (%d layers)", noise.width, noise.height, len(noise.layers))
        return self.height_field

    def load_terrain(self, height_field: Optional[Image2D] = None) -> ChunkGrid:
        """
        Generate the chunk grid.

        Args:
            height_field: Field to mesh; the configured noise is generated
                first when None and no field has been loaded yet

        Returns:
            The new chunk grid
        """

        if height_field is None:
            height_field = self.height_field if self.height_field is not None else self.load_noise()
        else:
            self.height_field = height_field

        mesh = self.settings.mesh
        self.clear_terrain()
        self.grid = self.chunk_synthesizer.generate(
            height_field,
            mesh.chunk_resolution,
            height_multiplier=mesh.height_multiplier,
            scaling=mesh.scaling,
            blend_seams=mesh.blend_seams,
            show_progress=mesh.show_progress,
        )
        return self.grid

    def placements(self) -> np.ndarray:
        """World position of every chunk of the current grid."""

        if self.grid is None:
            raise RuntimeError("No terrain loaded; call load_terrain() first")
        return self.grid.placements()

    def clear_terrain(self):
        self.grid = None

    def clear(self):
        """Drop the cached height field and chunk grid."""

        self.height_field = None
        self.clear_terrain()
