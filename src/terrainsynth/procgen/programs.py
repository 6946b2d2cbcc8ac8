"""
Compute programs for terrain synthesis.

NoiseGenerator
    GenerateNoise         one noise layer per pixel into ``NoiseTexture``
    GenerateLayeredNoise  weighted sum of the packed layers in ``NoiseConfigArray``

MapGenerator
    MapGenerator          vertices and triangles of a whole height field
    MapGeneratorChunk     vertices of one d x d tile sampled from the height field
    TriangleSetup         triangulation of a d x d tile, shared by every tile

Kernels follow the ``ComputeProgram`` calling convention: they see the whole
invocation grid at once and return the new contents of their output
bindings. Buffers are raw uint32 words; images are RGBA8 arrays.
"""

from typing import List

import jax
import jax.numpy as jnp

from ..device.images import HEIGHT_LEVELS
from ..device.programs import KernelSpec
from .layout import NOISE_CONFIG_FIELD_WORDS, NOISE_CONFIG_WORDS
from .noise import evaluate
from .registry import ProgramRegistry
from .warp import domain_warp

NOISE_PROGRAM = "NoiseGenerator"
MAP_PROGRAM = "MapGenerator"

# One noise lattice cell spans 32 pixels at scale multiplier 1
BASE_FREQUENCY = 1.0 / 32.0

VERTEX_COMPONENTS = 3
INDICES_PER_CELL = 6


# ============================================================================
# Shared helpers
# ============================================================================

def sample_layer(xs, ys, noise_type, seed, offset_x, offset_y, scale_multiplier, warp):
    """Evaluate one noise layer at integer pixel ids, mapped onto [0, 1]."""

    frequency = scale_multiplier * BASE_FREQUENCY
    px = (xs.astype(jnp.float32) + offset_x) * frequency
    py = (ys.astype(jnp.float32) + offset_y) * frequency

    px, py = jax.lax.cond(
        warp,
        lambda p: domain_warp(p[0], p[1], seed),
        lambda p: p,
        (px, py),
    )
    return evaluate(noise_type, px, py, seed)


def write_heights(texture, xs, ys, heights):
    """Quantize heights into the R, G, B channels of an RGBA8 texture (A = 255)."""

    level = jnp.round(jnp.clip(heights, 0.0, 1.0) * HEIGHT_LEVELS).astype(jnp.uint8)
    alpha = jnp.full_like(level, HEIGHT_LEVELS)
    rgba = jnp.stack([level, level, level, alpha], axis=-1)
    return texture.at[ys, xs].set(rgba, mode="drop")


def read_heights(texture):
    """Decode the red channel of an RGBA8 texture into [0, 1] heights."""
    return texture[..., 0].astype(jnp.float32) / HEIGHT_LEVELS


def sample_bilinear(heights, u, v):
    """Bilinear height lookup at fractional texel coordinates, clamped to the field."""

    rows, cols = heights.shape
    u = jnp.clip(u, 0.0, cols - 1)
    v = jnp.clip(v, 0.0, rows - 1)

    x0 = jnp.floor(u).astype(jnp.int32)
    y0 = jnp.floor(v).astype(jnp.int32)
    x1 = jnp.minimum(x0 + 1, cols - 1)
    y1 = jnp.minimum(y0 + 1, rows - 1)
    tx = u - x0
    ty = v - y0

    top = heights[y0, x0] + tx * (heights[y0, x1] - heights[y0, x0])
    bottom = heights[y1, x0] + tx * (heights[y1, x1] - heights[y1, x0])
    return top + ty * (bottom - top)


def write_vertices(vertex_words, index, positions):
    """Scatter (..., 3) float32 positions to vertex slot ``index`` of a word buffer."""

    words = jax.lax.bitcast_convert_type(positions.astype(jnp.float32), jnp.uint32)
    slots = index[..., None] * VERTEX_COMPONENTS + jnp.arange(VERTEX_COMPONENTS)
    return vertex_words.at[slots].set(words, mode="drop")


def write_triangles(triangle_words, xs, ys, width, height):
    """
    Emit two triangles per grid cell with a right/bottom neighbour.

    Cell ``i = x + y*width`` owns index slots ``6i .. 6i+5``. Cells on the
    last row or column keep whatever the slots already hold.
    """

    i = (xs + ys * width).astype(jnp.uint32)
    w = width.astype(jnp.uint32)
    quad = jnp.stack([i, i + w, i + 1, i + 1, i + w, i + w + 1], axis=-1)

    slots = (xs + ys * width)[..., None] * INDICES_PER_CELL + jnp.arange(INDICES_PER_CELL)
    existing = triangle_words.at[slots].get(mode="fill", fill_value=0)
    has_quad = (xs < width - 1) & (ys < height - 1)

    values = jnp.where(has_quad[..., None], quad, existing)
    return triangle_words.at[slots].set(values, mode="drop")


# ============================================================================
# NoiseGenerator
# ============================================================================

def generate_noise(xs, ys, uniforms, resources):
    heights = sample_layer(
        xs,
        ys,
        uniforms["noise_type"],
        uniforms["seed"],
        uniforms["offset"][0],
        uniforms["offset"][1],
        uniforms["scale_multiplier"],
        uniforms["warping"],
    )
    return {"NoiseTexture": write_heights(resources["NoiseTexture"], xs, ys, heights)}


def generate_layered_noise(xs, ys, uniforms, resources):
    words = resources["NoiseConfigArray"]
    config_size = uniforms["config_size"]

    def field(base, name, dtype):
        return jax.lax.bitcast_convert_type(words[base + NOISE_CONFIG_FIELD_WORDS[name]], dtype)

    total = jnp.zeros(xs.shape, dtype=jnp.float32)
    # Buffer capacity is static; config_size masks elements past the bound count
    for layer in range(words.shape[0] // NOISE_CONFIG_WORDS):
        base = layer * NOISE_CONFIG_WORDS
        value = sample_layer(
            xs,
            ys,
            field(base, "noise_type", jnp.int32),
            field(base, "seed", jnp.uint32),
            field(base, "offset_x", jnp.int32).astype(jnp.float32),
            field(base, "offset_y", jnp.int32).astype(jnp.float32),
            field(base, "scale_multiplier", jnp.float32),
            field(base, "warp", jnp.int32) != 0,
        )
        weight = field(base, "weight", jnp.float32)
        total = total + jnp.where(layer < config_size, value * weight, 0.0)

    return {"NoiseTexture": write_heights(resources["NoiseTexture"], xs, ys, total)}


def noise_generator_kernels() -> List[KernelSpec]:
    return [
        KernelSpec(
            name="GenerateNoise",
            fn=generate_noise,
            resources=("NoiseTexture",),
            uniforms=("scale_multiplier", "offset", "seed", "noise_type", "warping"),
            outputs=("NoiseTexture",),
        ),
        KernelSpec(
            name="GenerateLayeredNoise",
            fn=generate_layered_noise,
            resources=("NoiseTexture", "NoiseConfigArray"),
            uniforms=("config_size",),
            outputs=("NoiseTexture",),
        ),
    ]


# ============================================================================
# MapGenerator
# ============================================================================

def map_generator(xs, ys, uniforms, resources):
    width = uniforms["width"]
    heights = read_heights(resources["HeightTexture"])[ys, xs]

    positions = jnp.stack(
        [
            xs.astype(jnp.float32),
            heights * uniforms["height_multiplier"],
            ys.astype(jnp.float32),
        ],
        axis=-1,
    )
    return {
        "VertexResult": write_vertices(resources["VertexResult"], xs + ys * width, positions),
        "TriangleResult": write_triangles(
            resources["TriangleResult"], xs, ys, width, uniforms["height"]
        ),
    }


def map_generator_chunk(xs, ys, uniforms, resources):
    offset = uniforms["offset"]
    scale = uniforms["scale_multiplier"]
    fx = xs.astype(jnp.float32)
    fy = ys.astype(jnp.float32)

    # Texel lookup in field space so neighbouring tiles share their edge samples
    heights = sample_bilinear(
        read_heights(resources["HeightTexture"]),
        (offset[0] + fx) * scale[0],
        (offset[1] + fy) * scale[1],
    )

    positions = jnp.stack(
        [fx * scale[0], heights * uniforms["height_multiplier"], fy * scale[1]],
        axis=-1,
    )
    index = xs + ys * uniforms["width"]
    return {"VertexResult": write_vertices(resources["VertexResult"], index, positions)}


def triangle_setup(xs, ys, uniforms, resources):
    return {
        "TriangleResult": write_triangles(
            resources["TriangleResult"], xs, ys, uniforms["width"], uniforms["height"]
        )
    }


def map_generator_kernels() -> List[KernelSpec]:
    return [
        KernelSpec(
            name="MapGenerator",
            fn=map_generator,
            resources=("HeightTexture", "VertexResult", "TriangleResult"),
            uniforms=("width", "height", "height_multiplier"),
            outputs=("VertexResult", "TriangleResult"),
        ),
        KernelSpec(
            name="MapGeneratorChunk",
            fn=map_generator_chunk,
            resources=("HeightTexture", "VertexResult"),
            uniforms=("width", "offset", "scale_multiplier", "height_multiplier"),
            outputs=("VertexResult",),
        ),
        KernelSpec(
            name="TriangleSetup",
            fn=triangle_setup,
            resources=("TriangleResult",),
            uniforms=("width", "height"),
            outputs=("TriangleResult",),
        ),
    ]


def default_registry() -> ProgramRegistry:
    """Registry holding the built-in terrain programs."""

    registry = ProgramRegistry()
    registry.register(NOISE_PROGRAM, noise_generator_kernels)
    registry.register(MAP_PROGRAM, map_generator_kernels)
    return registry
