"""
Single-mesh generation from a height field.
"""

import logging
import warnings
from dataclasses import dataclass, field
from typing import List, Optional

from ..device.images import Image2D
from ..errors import AdvisoryWarning
from ..procgen.programs import INDICES_PER_CELL, MAP_PROGRAM
from ..procgen.provider import ProgramProvider, get_default_provider
from .mesh import INDEX_DTYPE, INDEX_STRIDE, VERTEX_DTYPE, VERTEX_STRIDE, GeometryMesh
from .transfer import upload_to_gpu_image

logger = logging.getLogger(__name__)

# Above this many pixels a single mesh gets unwieldy; chunked generation is advised
MESH_SIZE_THRESHOLD = 65536


@dataclass
class MeshResult:
    mesh: GeometryMesh
    advisories: List[str] = field(default_factory=list)


class MeshSynthesizer:
    """
    Converts a height field into one mesh with a single ``MapGenerator`` dispatch.

    Args:
        provider: Program provider (the process-wide default when None)
    """

    def __init__(self, provider: Optional[ProgramProvider] = None):
        self.provider = provider if provider is not None else get_default_provider()

    @property
    def device(self):
        return self.provider.device

    def generate(self, height_field: Image2D, height_multiplier: float = 1.0) -> MeshResult:
        """
        Build a mesh with one vertex per pixel.

        Vertex ``(x, y)`` is placed at ``(x, h * height_multiplier, y)``.
        Fields larger than ``MESH_SIZE_THRESHOLD`` pixels still generate,
        with an ``AdvisoryWarning``.

        Args:
            height_field: Source height field
            height_multiplier: Vertical scale applied to the [0, 1] heights

        Returns:
            MeshResult with the mesh and any advisories raised
        """

        width, height = height_field.width, height_field.height
        count = width * height
        advisories = []

        if count > MESH_SIZE_THRESHOLD:
            message = (
                f"Height field of {width}x{height} exceeds {MESH_SIZE_THRESHOLD} pixels; "
                "use ChunkedMeshSynthesizer instead"
            )
            logger.warning(message)
            warnings.warn(message, AdvisoryWarning, stacklevel=2)
            advisories.append(message)

        program, kernel = self.provider.kernel(MAP_PROGRAM, "MapGenerator")

        render_image = upload_to_gpu_image(self.device, height_field)
        vertex_buffer = None
        triangle_buffer = None
        try:
            vertex_buffer = self.device.create_buffer(count, VERTEX_STRIDE)
            triangle_buffer = self.device.create_buffer(count * INDICES_PER_CELL, INDEX_STRIDE)

            program.set_buffer(kernel, "VertexResult", vertex_buffer)
            program.set_buffer(kernel, "TriangleResult", triangle_buffer)
            program.set_texture(kernel, "HeightTexture", render_image)

            program.set_int("width", width)
            program.set_int("height", height)
            program.set_float("height_multiplier", height_multiplier)

            program.dispatch(kernel, width, height, 1)

            mesh = GeometryMesh(
                vertex_buffer.get_data(VERTEX_DTYPE),
                triangle_buffer.get_data(INDEX_DTYPE),
            )
        finally:
            for resource in (vertex_buffer, triangle_buffer, render_image):
                if resource is not None:
                    resource.release()

        logger.debug("Generated mesh %r from %dx%d field", mesh, width, height)
        return MeshResult(mesh, advisories)
