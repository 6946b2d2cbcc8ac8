"""
Procedural noise and mesh kernels.

This package provides:
- Noise primitives (Simplex, Perlin, Voronoi, smoothed Voronoi) and domain warping
- The packed noise layer schema shared by host and device
- The built-in compute programs and their registry
"""

from .layout import (
    MAX_NOISE_LAYERS,
    NOISE_CONFIG_DTYPE,
    NOISE_CONFIG_STRIDE,
    NoiseLayerConfig,
    NoiseType,
    pack_layers,
)
from .programs import MAP_PROGRAM, NOISE_PROGRAM, default_registry
from .registry import ParameterSpec, ProgramRegistry

__all__ = [
    "MAX_NOISE_LAYERS",
    "NOISE_CONFIG_DTYPE",
    "NOISE_CONFIG_STRIDE",
    "NoiseLayerConfig",
    "NoiseType",
    "pack_layers",
    "MAP_PROGRAM",
    "NOISE_PROGRAM",
    "default_registry",
    "ParameterSpec",
    "ProgramRegistry",
]
