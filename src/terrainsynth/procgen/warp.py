"""
Domain warping for noise layers.

Domain warping distorts the coordinate space before the noise is sampled,
creating more organic and varied terrain patterns.
"""

from typing import Tuple

import jax.numpy as jnp

from .noise import perlin

WARP_AMPLITUDE = 1.5
WARP_FREQUENCY = 0.5

# Sub-seeds so the warp field is decorrelated from the layer's own noise
_WARP_SEED_X = 0x68E31DA4
_WARP_SEED_Y = 0xB5297A4D


def domain_warp(
    x: jnp.ndarray,
    y: jnp.ndarray,
    seed: jnp.ndarray,
    warp_amplitude: float = WARP_AMPLITUDE,
    warp_frequency: float = WARP_FREQUENCY
) -> Tuple[jnp.ndarray, jnp.ndarray]:
    """
    Apply domain warping to coordinate arrays.

    Args:
        x, y: Input coordinate arrays (noise domain units)
        seed: uint32 seed of the layer being warped
        warp_amplitude: How much to distort coordinates
        warp_frequency: Frequency of the warp noise

    Returns:
        Tuple of (warped_x, warped_y) coordinate arrays
    """

    wx = x * warp_frequency
    wy = y * warp_frequency

    warp_x = perlin(wx, wy, seed ^ jnp.uint32(_WARP_SEED_X)) * warp_amplitude
    # Shifted sample so the two displacement axes differ
    warp_y = perlin(wx + 5.2, wy + 1.3, seed ^ jnp.uint32(_WARP_SEED_Y)) * warp_amplitude

    return x + warp_x, y + warp_y
