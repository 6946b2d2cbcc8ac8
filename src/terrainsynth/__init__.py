"""
terrainsynth: GPU-parallel terrain synthesis with JAX.

Composites weighted noise layers into height fields on a compute device and
turns height fields into single meshes or seamless grids of chunk meshes.
"""

__version__ = "0.1.0"

from .errors import (
    AdvisoryWarning,
    AllocationError,
    DispatchError,
    InvalidResourceError,
    LayoutError,
    ResourceLoadError,
    TerrainSynthError,
)
from .config import DeviceSettings, MeshSettings, NoiseSettings, TerrainSettings
from .device import ComputeDevice, Image2D
from .procgen import NoiseLayerConfig, NoiseType
from .procgen.provider import ProgramProvider, get_default_provider, set_default_provider
from .engine import (
    ChunkedMeshSynthesizer,
    ChunkGrid,
    ChunkResolution,
    GeometryMesh,
    MeshResult,
    MeshSynthesizer,
    NoiseFieldSynthesizer,
    TerrainGenerator,
)
from .logger import setup_logger

__all__ = [
    "AdvisoryWarning",
    "AllocationError",
    "DispatchError",
    "InvalidResourceError",
    "LayoutError",
    "ResourceLoadError",
    "TerrainSynthError",
    "DeviceSettings",
    "MeshSettings",
    "NoiseSettings",
    "TerrainSettings",
    "ComputeDevice",
    "Image2D",
    "NoiseLayerConfig",
    "NoiseType",
    "ProgramProvider",
    "get_default_provider",
    "set_default_provider",
    "ChunkedMeshSynthesizer",
    "ChunkGrid",
    "ChunkResolution",
    "GeometryMesh",
    "MeshResult",
    "MeshSynthesizer",
    "NoiseFieldSynthesizer",
    "TerrainGenerator",
    "setup_logger",
]
