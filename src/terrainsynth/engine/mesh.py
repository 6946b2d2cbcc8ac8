"""
Geometry meshes produced by the mesh synthesizers.

A mesh owns its vertex positions and triangle indices. Per-vertex normals
and axis-aligned bounds are derived data, recomputed whenever positions or
triangles are replaced.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

# Device-side element layouts
VERTEX_DTYPE = np.dtype((np.float32, 3))
VERTEX_STRIDE = VERTEX_DTYPE.itemsize
INDEX_DTYPE = np.dtype(np.int32)
INDEX_STRIDE = INDEX_DTYPE.itemsize

# Largest vertex count addressable with 16-bit indices
UINT16_INDEX_LIMIT = 65536


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned bounding box stored as center and full size."""

    center: np.ndarray
    size: np.ndarray

    @property
    def min(self) -> np.ndarray:
        return self.center - self.size * 0.5

    @property
    def max(self) -> np.ndarray:
        return self.center + self.size * 0.5

    @classmethod
    def from_points(cls, points: np.ndarray) -> "Bounds":
        if len(points) == 0:
            return cls(np.zeros(3, dtype=np.float32), np.zeros(3, dtype=np.float32))

        lo = points.min(axis=0)
        hi = points.max(axis=0)
        return cls((lo + hi) * 0.5, hi - lo)


def compute_normals(vertices: np.ndarray, triangles: np.ndarray) -> np.ndarray:
    """
    Area-weighted per-vertex normals.

    Args:
        vertices: (N, 3) float32 positions
        triangles: flat index array, length a multiple of 3

    Returns:
        (N, 3) float32 unit normals (zero for vertices in no triangle)
    """

    normals = np.zeros_like(vertices, dtype=np.float32)
    if len(triangles) == 0:
        return normals

    faces = triangles.reshape(-1, 3)
    p0 = vertices[faces[:, 0]]
    p1 = vertices[faces[:, 1]]
    p2 = vertices[faces[:, 2]]

    # Cross product magnitude is twice the triangle area
    face_normals = np.cross(p1 - p0, p2 - p0)
    for corner in range(3):
        np.add.at(normals, faces[:, corner], face_normals)

    return normalize_rows(normals)


def normalize_rows(vectors: np.ndarray) -> np.ndarray:
    lengths = np.linalg.norm(vectors, axis=-1, keepdims=True)
    out = np.zeros_like(vectors, dtype=np.float32)
    np.divide(vectors, lengths, out=out, where=lengths > 0)
    return out


class GeometryMesh:
    """
    Triangle mesh with derived normals and bounds.

    Vertex ``(x, y)`` of a height-field mesh sits at index ``x + y*width``;
    triangles are a flat index array with every index below the vertex count.
    """

    def __init__(self, vertices: Optional[np.ndarray] = None, triangles: Optional[np.ndarray] = None):
        self._vertices = np.zeros((0, 3), dtype=np.float32)
        self._triangles = np.zeros(0, dtype=np.int32)
        self.normals = np.zeros((0, 3), dtype=np.float32)
        self.bounds = Bounds.from_points(self._vertices)

        if vertices is not None:
            self.set_geometry(vertices, np.zeros(0, dtype=np.int32) if triangles is None else triangles)

    @property
    def vertices(self) -> np.ndarray:
        return self._vertices

    @vertices.setter
    def vertices(self, value: np.ndarray):
        self.set_geometry(value, self._triangles)

    @property
    def triangles(self) -> np.ndarray:
        return self._triangles

    @triangles.setter
    def triangles(self, value: np.ndarray):
        self.set_geometry(self._vertices, value)

    def set_geometry(self, vertices: np.ndarray, triangles: np.ndarray):
        """Replace positions and triangles together and recompute derived data."""

        vertices = np.asarray(vertices, dtype=np.float32).reshape(-1, 3)
        triangles = np.asarray(triangles, dtype=np.int32).reshape(-1)

        if len(triangles) % 3:
            raise ValueError(f"Triangle index count {len(triangles)} is not a multiple of 3")
        if len(triangles) and (triangles.min() < 0 or triangles.max() >= len(vertices)):
            raise ValueError(
                f"Triangle indices must lie in [0, {len(vertices)}), "
                f"got [{triangles.min()}, {triangles.max()}]"
            )

        self._vertices = vertices
        self._triangles = triangles
        self.recalculate()

    def recalculate(self):
        """Recompute normals and bounds from the current geometry."""

        self.normals = compute_normals(self._vertices, self._triangles)
        self.bounds = Bounds.from_points(self._vertices)

    @property
    def vertex_count(self) -> int:
        return len(self._vertices)

    @property
    def triangle_count(self) -> int:
        return len(self._triangles) // 3

    @property
    def index_format(self) -> str:
        return "uint16" if self.vertex_count <= UINT16_INDEX_LIMIT else "uint32"

    def copy(self) -> "GeometryMesh":
        mesh = GeometryMesh()
        mesh._vertices = self._vertices.copy()
        mesh._triangles = self._triangles.copy()
        mesh.normals = self.normals.copy()
        mesh.bounds = self.bounds
        return mesh

    def __repr__(self) -> str:
        return f"GeometryMesh(vertices={self.vertex_count}, triangles={self.triangle_count})"
