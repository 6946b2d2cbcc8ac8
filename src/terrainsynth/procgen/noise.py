"""
Noise functions for height-field synthesis.

JAX implementations evaluated over whole coordinate grids:
- Simplex noise
- Perlin (gradient) noise
- Voronoi noise (distance to the nearest feature point)
- Smoothed Voronoi noise (polynomial smooth-minimum of feature distances)

Lattice hashing is done in uint32 integer arithmetic seeded by a 32-bit
seed, so identical inputs give bit-identical outputs. Every function is
traceable under ``jax.jit``.
"""

import functools

import jax
import jax.numpy as jnp

TAU = 6.283185307179586

# Simplex skew factors: 0.5 * (sqrt(3) - 1) and (3 - sqrt(3)) / 6
_F2 = 0.3660254037844386
_G2 = 0.21132486540518713

# Scales raw noise with unit gradients to roughly [-1, 1]
_SIMPLEX_SCALE = 99.0
_PERLIN_SCALE = 1.4142135

VORONOI_SMOOTHNESS = 0.3
_VORONOI_SEED_Y = 0x9E3779B9


def _fade(t):
    return t * t * t * (t * (t * 6.0 - 15.0) + 10.0)


def _lerp(a, b, t):
    return a + t * (b - a)


def lattice(v: jnp.ndarray) -> jnp.ndarray:
    """Integral float lattice coordinate -> wrapped uint32."""
    return jax.lax.bitcast_convert_type(v.astype(jnp.int32), jnp.uint32)


def hash2d(ix: jnp.ndarray, iy: jnp.ndarray, seed: jnp.ndarray) -> jnp.ndarray:
    """Hash uint32 lattice coordinates and a seed into a uint32."""

    h = ix * jnp.uint32(374761393) + iy * jnp.uint32(668265263) + seed * jnp.uint32(2246822519)
    h = h ^ (h >> 13)
    h = h * jnp.uint32(1274126177)
    return h ^ (h >> 16)


def unit_float(h: jnp.ndarray) -> jnp.ndarray:
    """Map a uint32 hash onto [0, 1]."""
    return h.astype(jnp.float32) * (1.0 / 4294967295.0)


def _gradient_dot(ix, iy, seed, dx, dy):
    angle = unit_float(hash2d(ix, iy, seed)) * TAU
    return jnp.cos(angle) * dx + jnp.sin(angle) * dy


def perlin(x: jnp.ndarray, y: jnp.ndarray, seed: jnp.ndarray) -> jnp.ndarray:
    """
    Gradient noise on the unit lattice.

    Args:
        x, y: float32 coordinate arrays
        seed: uint32 scalar

    Returns:
        Noise values in roughly [-1, 1]
    """

    x0 = jnp.floor(x)
    y0 = jnp.floor(y)
    fx = x - x0
    fy = y - y0

    ix = lattice(x0)
    iy = lattice(y0)
    one = jnp.uint32(1)

    n00 = _gradient_dot(ix, iy, seed, fx, fy)
    n10 = _gradient_dot(ix + one, iy, seed, fx - 1.0, fy)
    n01 = _gradient_dot(ix, iy + one, seed, fx, fy - 1.0)
    n11 = _gradient_dot(ix + one, iy + one, seed, fx - 1.0, fy - 1.0)

    u = _fade(fx)
    v = _fade(fy)
    return _lerp(_lerp(n00, n10, u), _lerp(n01, n11, u), v) * _PERLIN_SCALE


def simplex(x: jnp.ndarray, y: jnp.ndarray, seed: jnp.ndarray) -> jnp.ndarray:
    """
    2D simplex noise.

    Args:
        x, y: float32 coordinate arrays
        seed: uint32 scalar

    Returns:
        Noise values in [-1, 1]
    """

    # Skew into simplex space to find the containing cell
    s = (x + y) * _F2
    i = jnp.floor(x + s)
    j = jnp.floor(y + s)

    t = (i + j) * _G2
    x0 = x - (i - t)
    y0 = y - (j - t)

    # Lower or upper triangle of the cell
    i1 = jnp.where(x0 > y0, 1.0, 0.0)
    j1 = 1.0 - i1

    x1 = x0 - i1 + _G2
    y1 = y0 - j1 + _G2
    x2 = x0 - 1.0 + 2.0 * _G2
    y2 = y0 - 1.0 + 2.0 * _G2

    ii = lattice(i)
    jj = lattice(j)
    one = jnp.uint32(1)

    def corner(ci, cj, dx, dy):
        falloff = 0.5 - dx * dx - dy * dy
        f2 = falloff * falloff
        return jnp.where(falloff > 0.0, f2 * f2 * _gradient_dot(ci, cj, seed, dx, dy), 0.0)

    n = (
        corner(ii, jj, x0, y0)
        + corner(ii + lattice(i1), jj + lattice(j1), x1, y1)
        + corner(ii + one, jj + one, x2, y2)
    )
    return jnp.clip(n * _SIMPLEX_SCALE, -1.0, 1.0)


def _feature_distances(x, y, seed):
    """Distances to the hashed feature points of the 3x3 surrounding cells."""

    cx = jnp.floor(x)
    cy = jnp.floor(y)
    fx = x - cx
    fy = y - cy
    seed_y = seed ^ jnp.uint32(_VORONOI_SEED_Y)

    distances = []
    for oy in (-1.0, 0.0, 1.0):
        for ox in (-1.0, 0.0, 1.0):
            nx = lattice(cx + ox)
            ny = lattice(cy + oy)
            dx = ox + unit_float(hash2d(nx, ny, seed)) - fx
            dy = oy + unit_float(hash2d(nx, ny, seed_y)) - fy
            distances.append(jnp.sqrt(dx * dx + dy * dy))

    return distances


def voronoi(x: jnp.ndarray, y: jnp.ndarray, seed: jnp.ndarray) -> jnp.ndarray:
    """F1 cellular noise: distance to the nearest feature point."""
    return functools.reduce(jnp.minimum, _feature_distances(x, y, seed))


def voronoi_smoothed(
    x: jnp.ndarray,
    y: jnp.ndarray,
    seed: jnp.ndarray,
    smoothness: float = VORONOI_SMOOTHNESS
) -> jnp.ndarray:
    """Voronoi noise with the hard minimum replaced by a polynomial smooth-minimum."""

    distances = _feature_distances(x, y, seed)
    result = distances[0]
    for other in distances[1:]:
        h = jnp.clip(0.5 + 0.5 * (other - result) / smoothness, 0.0, 1.0)
        result = _lerp(other, result, h) - smoothness * h * (1.0 - h)

    return result


def _signed_to_unit(n):
    return jnp.clip(n * 0.5 + 0.5, 0.0, 1.0)


# Indexed by NoiseType value
NOISE_BRANCHES = (
    lambda x, y, seed: _signed_to_unit(simplex(x, y, seed)),
    lambda x, y, seed: _signed_to_unit(perlin(x, y, seed)),
    lambda x, y, seed: jnp.clip(voronoi(x, y, seed), 0.0, 1.0),
    lambda x, y, seed: jnp.clip(voronoi_smoothed(x, y, seed), 0.0, 1.0),
)


def evaluate(noise_type: jnp.ndarray, x: jnp.ndarray, y: jnp.ndarray, seed: jnp.ndarray) -> jnp.ndarray:
    """Evaluate the noise selected by ``noise_type``, mapped onto [0, 1]."""
    return jax.lax.switch(noise_type, NOISE_BRANCHES, x, y, seed)
