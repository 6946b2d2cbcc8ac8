"""
Configuration for terrain synthesis.

Settings are plain dataclasses that round-trip through dicts and JSON.
Device selection can be overridden from the environment:

    TERRAINSYNTH_PLATFORM       JAX platform name ("cpu", "gpu", ...)
    TERRAINSYNTH_MEMORY_LIMIT   cap on live device memory, in bytes
"""

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .procgen.layout import NoiseLayerConfig, limit_layers
from .procgen.registry import ParameterSpec

PLATFORM_ENV = "TERRAINSYNTH_PLATFORM"
MEMORY_LIMIT_ENV = "TERRAINSYNTH_MEMORY_LIMIT"

CHUNK_RESOLUTIONS = (16, 32, 64, 128, 256)

# Configuration-time ranges (min, max, default)
MESH_PARAMETERS = ParameterSpec({
    "height_multiplier": (0.0, 1000.0, 1.0),
    "scaling": (0.01, 100.0, 1.0),
})


@dataclass
class NoiseSettings:
    """Size of the generated height field and the layers composited into it."""

    width: int = 256
    height: int = 256
    layers: List[NoiseLayerConfig] = field(default_factory=lambda: [NoiseLayerConfig()])

    def __post_init__(self):
        # Excess layers are dropped at configuration time
        self.layers = limit_layers(self.layers)

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "NoiseSettings":
        layers = [
            layer if isinstance(layer, NoiseLayerConfig) else NoiseLayerConfig.from_dict(layer)
            for layer in values.get("layers", [{}])
        ]
        return cls(
            width=int(values.get("width", 256)),
            height=int(values.get("height", 256)),
            layers=layers,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "layers": [layer.to_dict() for layer in self.layers],
        }


@dataclass
class MeshSettings:
    """Parameters of the chunked mesh generation."""

    chunk_resolution: int = 64
    height_multiplier: float = 1.0
    scaling: float = 1.0
    blend_seams: bool = False
    show_progress: bool = False

    def __post_init__(self):
        if self.chunk_resolution not in CHUNK_RESOLUTIONS:
            raise ValueError(
                f"Chunk resolution must be one of {CHUNK_RESOLUTIONS}, got {self.chunk_resolution}"
            )

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "MeshSettings":
        ranged = MESH_PARAMETERS.extract_params(values)
        return cls(
            chunk_resolution=int(values.get("chunk_resolution", 64)),
            height_multiplier=ranged["height_multiplier"],
            scaling=ranged["scaling"],
            blend_seams=bool(values.get("blend_seams", False)),
            show_progress=bool(values.get("show_progress", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chunk_resolution": self.chunk_resolution,
            "height_multiplier": self.height_multiplier,
            "scaling": self.scaling,
            "blend_seams": self.blend_seams,
            "show_progress": self.show_progress,
        }


@dataclass
class DeviceSettings:
    platform: Optional[str] = None
    memory_limit_bytes: Optional[int] = None

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "DeviceSettings":
        """Read device overrides from the environment (``os.environ`` by default)."""

        environ = os.environ if environ is None else environ
        limit = environ.get(MEMORY_LIMIT_ENV)
        return cls(
            platform=environ.get(PLATFORM_ENV) or None,
            memory_limit_bytes=int(limit) if limit else None,
        )

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "DeviceSettings":
        limit = values.get("memory_limit_bytes")
        return cls(
            platform=values.get("platform"),
            memory_limit_bytes=int(limit) if limit is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"platform": self.platform, "memory_limit_bytes": self.memory_limit_bytes}


@dataclass
class TerrainSettings:
    """Complete configuration of one terrain: noise, mesh and device."""

    noise: NoiseSettings = field(default_factory=NoiseSettings)
    mesh: MeshSettings = field(default_factory=MeshSettings)
    device: DeviceSettings = field(default_factory=DeviceSettings.from_env)

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "TerrainSettings":
        device = DeviceSettings.from_env()
        # Explicit configuration wins over the environment
        overrides = {k: v for k, v in values.get("device", {}).items() if v is not None}
        if overrides:
            device = DeviceSettings.from_dict({**device.to_dict(), **overrides})

        return cls(
            noise=NoiseSettings.from_dict(values.get("noise", {})),
            mesh=MeshSettings.from_dict(values.get("mesh", {})),
            device=device,
        )

    @classmethod
    def from_json(cls, path: str) -> "TerrainSettings":
        """Load settings from a JSON file."""

        with open(path, 'r') as f:
            config = json.load(f)

        return cls.from_dict(config)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "noise": self.noise.to_dict(),
            "mesh": self.mesh.to_dict(),
            "device": self.device.to_dict(),
        }
