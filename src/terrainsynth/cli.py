"""
Command line interface.

    terrainsynth noise --width 128 --height 128 --noise-type Perlin --seed 7
    terrainsynth mesh --config terrain.json
    terrainsynth validate-determinism --config terrain.json

Every command prints a JSON summary to stdout.
"""

import argparse
import hashlib
import json
import logging
import sys
from typing import Any, Dict, List, Optional

import numpy as np

from .config import CHUNK_RESOLUTIONS, DeviceSettings, TerrainSettings
from .device.images import Image2D
from .engine.terrain_generator import TerrainGenerator
from .logger import setup_logger
from .procgen.layout import NoiseLayerConfig, NoiseType


def _field_summary(image: Image2D) -> Dict[str, Any]:
    heights = image.heights()
    return {
        "width": image.width,
        "height": image.height,
        "min": float(heights.min()),
        "max": float(heights.max()),
        "mean": round(float(heights.mean()), 6),
        "sha256": hashlib.sha256(image.pixels.tobytes()).hexdigest(),
    }


def _load_settings(args) -> TerrainSettings:
    settings = TerrainSettings.from_json(args.config) if args.config else TerrainSettings()

    noise = settings.noise
    if args.width is not None:
        noise.width = args.width
    if args.height is not None:
        noise.height = args.height

    # A layer given on the command line replaces the configured ones
    if args.noise_type is not None or args.seed is not None or args.scale is not None or args.warp:
        noise.layers = [
            NoiseLayerConfig(
                seed=args.seed if args.seed is not None else 0,
                noise_type=args.noise_type if args.noise_type is not None else NoiseType.SIMPLEX,
                scale_multiplier=args.scale if args.scale is not None else 1.0,
                warp=args.warp,
            )
        ]

    if args.platform:
        settings.device = DeviceSettings(args.platform, settings.device.memory_limit_bytes)

    if getattr(args, "chunk_resolution", None) is not None:
        settings.mesh.chunk_resolution = args.chunk_resolution
    if getattr(args, "height_multiplier", None) is not None:
        settings.mesh.height_multiplier = args.height_multiplier

    return settings


def cmd_noise(args) -> Dict[str, Any]:
    generator = TerrainGenerator(_load_settings(args))
    return _field_summary(generator.load_noise())


def cmd_mesh(args) -> Dict[str, Any]:
    settings = _load_settings(args)
    generator = TerrainGenerator(settings)
    grid = generator.load_terrain()

    return {
        "field": _field_summary(generator.height_field),
        "chunk_resolution": grid.resolution,
        "cols": grid.cols,
        "rows": grid.rows,
        "chunks": len(grid),
        "vertices": sum(mesh.vertex_count for _, _, mesh, _ in grid),
        "triangles": sum(mesh.triangle_count for _, _, mesh, _ in grid),
        "offsets": grid.offsets.tolist(),
    }


def cmd_validate_determinism(args) -> Dict[str, Any]:
    settings = _load_settings(args)
    generator = TerrainGenerator(settings)

    digests = []
    for _ in range(args.runs):
        generator.clear()
        digests.append(_field_summary(generator.load_noise())["sha256"])

    return {
        "runs": args.runs,
        "deterministic": len(set(digests)) == 1,
        "sha256": digests[0],
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="terrainsynth", description="GPU-parallel terrain synthesis")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-dir", help="Also write logs to a timestamped file in this directory")

    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(sub):
        sub.add_argument("--config", help="Path to a TerrainSettings JSON file")
        sub.add_argument("--width", type=int, help="Height field width in pixels")
        sub.add_argument("--height", type=int, help="Height field height in pixels")
        sub.add_argument(
            "--noise-type",
            type=NoiseType.parse,
            help="Simplex, Perlin, Voronoi or VoronoiSmoothed",
        )
        sub.add_argument("--seed", type=int, help="Layer seed")
        sub.add_argument("--scale", type=float, help="Layer scale multiplier")
        sub.add_argument("--warp", action="store_true", help="Enable domain warping")
        sub.add_argument("--platform", help="JAX platform (cpu, gpu, ...)")

    noise = subparsers.add_parser("noise", help="Generate a height field and summarize it")
    add_common(noise)
    noise.set_defaults(func=cmd_noise)

    mesh = subparsers.add_parser("mesh", help="Generate a chunk grid and summarize it")
    add_common(mesh)
    mesh.add_argument("--chunk-resolution", type=int, choices=CHUNK_RESOLUTIONS, help="Vertices per chunk edge")
    mesh.add_argument("--height-multiplier", type=float, help="Vertical scale of the mesh")
    mesh.set_defaults(func=cmd_mesh)

    validate = subparsers.add_parser("validate-determinism", help="Check repeated generation is bit-identical")
    add_common(validate)
    validate.add_argument("--runs", type=int, default=2, help="Number of generations to compare")
    validate.set_defaults(func=cmd_validate_determinism)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logger(logging.DEBUG if args.verbose else logging.WARNING, log_dir=args.log_dir)

    result = args.func(args)
    print(json.dumps(result, indent=2))

    if args.command == "validate-determinism" and not result["deterministic"]:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
