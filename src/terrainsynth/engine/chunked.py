"""
Chunked mesh generation for large height fields.

The field is cut into a grid of d x d vertex tiles. Adjacent tiles overlap
by one row/column of vertices (tile origins step by ``d - 1``), so their
shared edges sample the same texels and line up exactly once the tiles
are placed at their offsets. One triangulation is computed for all tiles.
"""

import logging
from enum import IntEnum
from typing import Iterator, List, Optional, Tuple, Union

import numpy as np
from tqdm import tqdm

from ..device.images import Image2D
from ..procgen.programs import INDICES_PER_CELL, MAP_PROGRAM
from ..procgen.provider import ProgramProvider, get_default_provider
from .mesh import INDEX_DTYPE, INDEX_STRIDE, VERTEX_DTYPE, VERTEX_STRIDE, GeometryMesh, normalize_rows
from .transfer import upload_to_gpu_image

logger = logging.getLogger(__name__)


class ChunkResolution(IntEnum):
    """Vertex resolution of one chunk along each axis."""

    R16 = 16
    R32 = 32
    R64 = 64
    R128 = 128
    R256 = 256


def chunk_grid_shape(width: int, height: int, resolution: int, scaling: float = 1.0) -> Tuple[int, int]:
    """
    Number of chunk columns and rows covering a field.

    A field no larger than one chunk gets one chunk; otherwise the count is
    ``floor(size / resolution)``. The count is then divided by ``scaling``
    and floored, never dropping below one.

    Returns:
        Tuple of (cols, rows)
    """

    if scaling <= 0:
        raise ValueError(f"Scaling must be positive, got {scaling}")

    cols = 1 if width <= resolution else width // resolution
    rows = 1 if height <= resolution else height // resolution

    return max(1, int(cols / scaling)), max(1, int(rows / scaling))


def chunk_scale(width: int, height: int, resolution: int) -> Tuple[float, float]:
    """Per-axis texel step, shrunk below 1 when the field is smaller than a chunk."""

    return (
        min(1.0, float(np.clip(width / resolution, 0.0, 1.0))),
        min(1.0, float(np.clip(height / resolution, 0.0, 1.0))),
    )


class ChunkGrid:
    """
    A cols x rows matrix of chunk meshes and their placement offsets.

    ``offsets[i + j*cols]`` is the (x, z) offset of ``mesh(i, j)``.
    """

    def __init__(self, meshes: List[List[GeometryMesh]], offsets: np.ndarray, resolution: int):
        self.meshes = meshes
        self.offsets = offsets
        self.resolution = int(resolution)

    @property
    def cols(self) -> int:
        return len(self.meshes)

    @property
    def rows(self) -> int:
        return len(self.meshes[0]) if self.meshes else 0

    @property
    def shape(self) -> Tuple[int, int]:
        return self.cols, self.rows

    def mesh(self, i: int, j: int) -> GeometryMesh:
        return self.meshes[i][j]

    def offset(self, i: int, j: int) -> np.ndarray:
        return self.offsets[i + j * self.cols]

    def placements(self) -> np.ndarray:
        """World positions ``(offset.x, 0, offset.y)`` per chunk, in offset order."""

        positions = np.zeros((len(self.offsets), 3), dtype=np.float32)
        positions[:, 0] = self.offsets[:, 0]
        positions[:, 2] = self.offsets[:, 1]
        return positions

    def __iter__(self) -> Iterator[Tuple[int, int, GeometryMesh, np.ndarray]]:
        for i in range(self.cols):
            for j in range(self.rows):
                yield i, j, self.meshes[i][j], self.offset(i, j)

    def __len__(self) -> int:
        return self.cols * self.rows

    def __repr__(self) -> str:
        return f"ChunkGrid(cols={self.cols}, rows={self.rows}, resolution={self.resolution})"


def blend_seam_normals(grid: ChunkGrid) -> ChunkGrid:
    """
    Average the normals of vertices shared by adjacent chunks.

    Chunk ``(i, j)`` vertex ``(x, y)`` maps to global lattice point
    ``(i*(d-1) + x, j*(d-1) + y)``; every chunk touching a lattice point
    contributes its normal there. Normals are updated in place.
    """

    d = grid.resolution
    step = d - 1
    total = np.zeros((grid.rows * step + 1, grid.cols * step + 1, 3), dtype=np.float32)

    for i, j, mesh, _ in grid:
        total[j * step:j * step + d, i * step:i * step + d] += mesh.normals.reshape(d, d, 3)

    total = normalize_rows(total)
    for i, j, mesh, _ in grid:
        mesh.normals = total[j * step:j * step + d, i * step:i * step + d].reshape(-1, 3).copy()

    return grid


class ChunkedMeshSynthesizer:
    """
    Converts a height field into a grid of fixed-resolution chunk meshes.

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
        height_field: Image2D,
        chunk_resolution: Union[ChunkResolution, int],
        height_multiplier: float = 1.0,
        scaling: float = 1.0,
        blend_seams: bool = False,
        show_progress: bool = False
    ) -> ChunkGrid:
        """
        Generate the chunk grid of a height field.

        Args:
            height_field: Source height field
            chunk_resolution: Vertices per chunk edge (16, 32, 64, 128 or 256)
            height_multiplier: Vertical scale applied to the [0, 1] heights
            scaling: Chunk footprint scale; larger values mean fewer, bigger chunks
            blend_seams: Average normals across chunk seams after generation
            show_progress: Display a progress bar over the chunk loop

        Returns:
            ChunkGrid with one mesh and one offset per chunk
        """

        d = int(ChunkResolution(chunk_resolution))
        width, height = height_field.width, height_field.height
        cols, rows = chunk_grid_shape(width, height, d, scaling)
        scale_x, scale_y = chunk_scale(width, height, d)

        program, chunk_kernel = self.provider.kernel(MAP_PROGRAM, "MapGeneratorChunk")
        _, setup_kernel = self.provider.kernel(MAP_PROGRAM, "TriangleSetup")

        count = d * d
        meshes: List[List[GeometryMesh]] = [[None] * rows for _ in range(cols)]
        offsets = np.zeros((cols * rows, 2), dtype=np.float32)

        render_image = upload_to_gpu_image(self.device, height_field)
        vertex_buffer = None
        triangle_buffer = None
        try:
            vertex_buffer = self.device.create_buffer(count, VERTEX_STRIDE)
            triangle_buffer = self.device.create_buffer(count * INDICES_PER_CELL, INDEX_STRIDE)

            program.set_buffer(chunk_kernel, "VertexResult", vertex_buffer)
            program.set_buffer(setup_kernel, "TriangleResult", triangle_buffer)
            program.set_texture(chunk_kernel, "HeightTexture", render_image)

            program.set_int("width", d)
            program.set_int("height", d)
            program.set_vector("scale_multiplier", (scale_x * scaling, scale_y * scaling))
            program.set_float("height_multiplier", height_multiplier)

            # Every chunk has the same topology
            program.dispatch(setup_kernel, d, d, 1)
            triangles = triangle_buffer.get_data(INDEX_DTYPE)

            cells = [(i, j) for i in range(cols) for j in range(rows)]
            for i, j in tqdm(cells, desc="Generating chunks", disable=not show_progress):
                offset = (i * (d - 1), j * (d - 1))

                program.set_vector("offset", offset)
                program.dispatch(chunk_kernel, d, d, 1)

                meshes[i][j] = GeometryMesh(vertex_buffer.get_data(VERTEX_DTYPE), triangles.copy())
                offsets[i + j * cols] = (offset[0] * scaling, offset[1] * scaling)
        finally:
            for resource in (vertex_buffer, triangle_buffer, render_image):
                if resource is not None:
                    resource.release()

        grid = ChunkGrid(meshes, offsets, d)
        if blend_seams:
            blend_seam_normals(grid)

        logger.info("Generated %dx%d chunk grid at resolution %d from %dx%d field", cols, rows, d, width, height)
        return grid
