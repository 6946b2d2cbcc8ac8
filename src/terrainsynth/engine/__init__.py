"""
Terrain generation pipeline.

NoiseFieldSynthesizer -> ImageTransferBridge -> MeshSynthesizer / ChunkedMeshSynthesizer
"""

from .chunked import ChunkedMeshSynthesizer, ChunkGrid, ChunkResolution, blend_seam_normals
from .mesh import Bounds, GeometryMesh
from .mesh_synth import MESH_SIZE_THRESHOLD, MeshResult, MeshSynthesizer
from .noise_field import NoiseFieldSynthesizer
from .terrain_generator import TerrainGenerator
from .transfer import allocate_gpu_image, read_back_and_release, upload_to_gpu_image

__all__ = [
    "ChunkedMeshSynthesizer",
    "ChunkGrid",
    "ChunkResolution",
    "blend_seam_normals",
    "Bounds",
    "GeometryMesh",
    "MESH_SIZE_THRESHOLD",
    "MeshResult",
    "MeshSynthesizer",
    "NoiseFieldSynthesizer",
    "TerrainGenerator",
    "allocate_gpu_image",
    "read_back_and_release",
    "upload_to_gpu_image",
]
