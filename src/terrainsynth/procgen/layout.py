"""
Noise layer configuration and its device-side binary schema.

The packed layout is the one wire format shared by host and device:

    offset  size  field
    ------  ----  ----------------
         0     4  seed              uint32
         4     4  noise_type        uint32
         8     4  offset_x          int32
        12     4  offset_y          int32
        16     4  scale_multiplier  float32
        20     4  weight            float32
        24     4  warp              int32 (0 or 1)

Little-endian, no padding, 28 bytes per element. Kernels decode the raw
32-bit words of the structured buffer with the word offsets derived from
``NOISE_CONFIG_DTYPE``, so host and device read the same schema.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, List, Sequence, Tuple, Union

import numpy as np

from ..errors import LayoutError
from .registry import ParameterSpec

NOISE_CONFIG_SCHEMA_VERSION = 1
NOISE_CONFIG_STRIDE = 28
MAX_NOISE_LAYERS = 6

NOISE_CONFIG_DTYPE = np.dtype([
    ("seed", "<u4"),
    ("noise_type", "<u4"),
    ("offset_x", "<i4"),
    ("offset_y", "<i4"),
    ("scale_multiplier", "<f4"),
    ("weight", "<f4"),
    ("warp", "<i4"),
])

if NOISE_CONFIG_DTYPE.itemsize != NOISE_CONFIG_STRIDE:
    raise LayoutError(
        f"Noise config schema v{NOISE_CONFIG_SCHEMA_VERSION} packs to "
        f"{NOISE_CONFIG_DTYPE.itemsize} bytes, expected {NOISE_CONFIG_STRIDE}"
    )

# Word index of every field inside one packed element
NOISE_CONFIG_WORDS = NOISE_CONFIG_STRIDE // 4
NOISE_CONFIG_FIELD_WORDS: Dict[str, int] = {
    name: NOISE_CONFIG_DTYPE.fields[name][1] // 4 for name in NOISE_CONFIG_DTYPE.names
}

# Configuration-time ranges (min, max, default)
LAYER_PARAMETERS = ParameterSpec({
    "scale_multiplier": (1e-4, 1e4, 1.0),
    "weight": (0.0, 2.0, 1.0),
})


class NoiseType(IntEnum):
    SIMPLEX = 0
    PERLIN = 1
    VORONOI = 2
    VORONOI_SMOOTHED = 3

    @classmethod
    def parse(cls, value: Union[str, int, "NoiseType"]) -> "NoiseType":
        """Accept enum members, integer codes or names like "VoronoiSmoothed"."""

        if isinstance(value, str):
            key = value.strip().replace("-", "_")
            if key.isdigit():
                return cls(int(key))
            # CamelCase -> UPPER_SNAKE
            snake = "".join(
                f"_{c}" if c.isupper() and i > 0 and key[i - 1].islower() else c
                for i, c in enumerate(key)
            )
            try:
                return cls[snake.upper()]
            except KeyError:
                raise ValueError(f"Unknown noise type: {value!r}") from None
        return cls(int(value))


@dataclass(frozen=True)
class NoiseLayerConfig:
    """One weighted noise contribution to a composite height field."""

    seed: int = 0
    noise_type: NoiseType = NoiseType.SIMPLEX
    offset: Tuple[int, int] = (0, 0)
    scale_multiplier: float = 1.0
    weight: float = 1.0
    # Warping a noise field is more expensive and takes longer to evaluate
    warp: bool = False

    def __post_init__(self):
        if not 0 <= int(self.seed) <= 0xFFFFFFFF:
            raise ValueError(f"Seed must be a 32-bit unsigned integer, got {self.seed}")
        if len(self.offset) != 2:
            raise ValueError(f"Offset must have two components, got {self.offset!r}")

        object.__setattr__(self, "seed", int(self.seed))
        object.__setattr__(self, "noise_type", NoiseType.parse(self.noise_type))
        object.__setattr__(self, "offset", (int(self.offset[0]), int(self.offset[1])))
        object.__setattr__(self, "scale_multiplier", float(self.scale_multiplier))
        object.__setattr__(self, "weight", float(self.weight))
        object.__setattr__(self, "warp", bool(self.warp))

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "NoiseLayerConfig":
        """Build a layer from configuration data, clamping ranged parameters."""

        ranged = LAYER_PARAMETERS.extract_params(values)
        return cls(
            seed=values.get("seed", 0),
            noise_type=values.get("noise_type", NoiseType.SIMPLEX),
            offset=tuple(values.get("offset", (0, 0))),
            scale_multiplier=ranged["scale_multiplier"],
            weight=ranged["weight"],
            warp=values.get("warp", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seed": self.seed,
            "noise_type": self.noise_type.name,
            "offset": list(self.offset),
            "scale_multiplier": self.scale_multiplier,
            "weight": self.weight,
            "warp": self.warp,
        }


def limit_layers(layers: Sequence[NoiseLayerConfig]) -> List[NoiseLayerConfig]:
    """Keep the first ``MAX_NOISE_LAYERS`` layers in their original order."""
    return list(layers[:MAX_NOISE_LAYERS])


def pack_layers(layers: Sequence[NoiseLayerConfig]) -> np.ndarray:
    """Project layers onto the packed device schema."""

    packed = np.zeros(len(layers), dtype=NOISE_CONFIG_DTYPE)
    for i, layer in enumerate(layers):
        packed[i] = (
            layer.seed,
            int(layer.noise_type),
            layer.offset[0],
            layer.offset[1],
            layer.scale_multiplier,
            layer.weight,
            1 if layer.warp else 0,
        )
    return packed


def unpack_layers(packed: np.ndarray) -> List[NoiseLayerConfig]:
    """Inverse of ``pack_layers`` (float fields come back as float32 values)."""

    if packed.dtype != NOISE_CONFIG_DTYPE:
        raise LayoutError(f"Expected noise config schema, got dtype {packed.dtype}")

    return [
        NoiseLayerConfig(
            seed=int(row["seed"]),
            noise_type=NoiseType(int(row["noise_type"])),
            offset=(int(row["offset_x"]), int(row["offset_y"])),
            scale_multiplier=float(row["scale_multiplier"]),
            weight=float(row["weight"]),
            warp=bool(row["warp"]),
        )
        for row in packed
    ]
