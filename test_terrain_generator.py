"""
Tests for configuration and end-to-end terrain generation.
"""

import json

import numpy as np
import pytest

from terrainsynth.config import (
    MEMORY_LIMIT_ENV,
    PLATFORM_ENV,
    DeviceSettings,
    MeshSettings,
    NoiseSettings,
    TerrainSettings,
)
from terrainsynth.engine.terrain_generator import TerrainGenerator
from terrainsynth.procgen.layout import NoiseLayerConfig, NoiseType
from terrainsynth.procgen.provider import (
    ProgramProvider,
    get_default_provider,
    set_default_provider,
)


def _settings():
    return TerrainSettings(
        noise=NoiseSettings(
            width=64,
            height=64,
            layers=[
                NoiseLayerConfig(seed=1, noise_type=NoiseType.SIMPLEX, weight=0.7),
                NoiseLayerConfig(seed=2, noise_type=NoiseType.VORONOI, scale_multiplier=2.0, weight=0.3),
            ],
        ),
        mesh=MeshSettings(chunk_resolution=32, height_multiplier=4.0),
    )


def test_noise_settings_truncate_layers():
    settings = NoiseSettings(layers=[NoiseLayerConfig(seed=i) for i in range(7)])
    assert [layer.seed for layer in settings.layers] == [0, 1, 2, 3, 4, 5]


def test_mesh_settings_validation_and_clamping():
    with pytest.raises(ValueError):
        MeshSettings(chunk_resolution=100)

    mesh = MeshSettings.from_dict({"chunk_resolution": 128, "scaling": 0.0, "height_multiplier": 12.5})
    assert mesh.chunk_resolution == 128
    assert mesh.scaling == 0.01
    assert mesh.height_multiplier == 12.5


def test_device_settings_from_env():
    settings = DeviceSettings.from_env({PLATFORM_ENV: "cpu", MEMORY_LIMIT_ENV: "4096"})
    assert settings == DeviceSettings("cpu", 4096)
    assert DeviceSettings.from_env({}) == DeviceSettings()


def test_settings_json_roundtrip(tmp_path, monkeypatch):
    monkeypatch.delenv(PLATFORM_ENV, raising=False)
    monkeypatch.delenv(MEMORY_LIMIT_ENV, raising=False)

    settings = _settings()
    path = tmp_path / "terrain.json"
    path.write_text(json.dumps(settings.to_dict()))

    loaded = TerrainSettings.from_json(str(path))
    assert loaded.to_dict() == settings.to_dict()
    assert loaded.noise.layers == settings.noise.layers


def test_environment_fills_unset_device_fields(monkeypatch):
    monkeypatch.setenv(MEMORY_LIMIT_ENV, "1000000")

    settings = TerrainSettings.from_dict({"device": {"platform": "cpu"}})
    assert settings.device == DeviceSettings("cpu", 1000000)


def test_load_noise_then_terrain(provider, device):
    generator = TerrainGenerator(_settings(), provider)

    field = generator.load_noise()
    assert (field.width, field.height) == (64, 64)

    grid = generator.load_terrain()
    assert grid.shape == (2, 2)
    assert generator.grid is grid

    placements = generator.placements()
    assert placements.tolist() == [
        [0.0, 0.0, 0.0], [31.0, 0.0, 0.0], [0.0, 0.0, 31.0], [31.0, 0.0, 31.0],
    ]
    assert grid.mesh(0, 0).bounds.max[1] <= 4.0
    device.assert_all_released()


def test_load_terrain_generates_noise_on_demand(provider):
    generator = TerrainGenerator(_settings(), provider)
    grid = generator.load_terrain()

    assert generator.height_field is not None
    assert len(grid) == 4


def test_load_terrain_with_given_field(provider, ramp_field):
    generator = TerrainGenerator(_settings(), provider)
    field = ramp_field(40, 40)

    grid = generator.load_terrain(field)
    assert generator.height_field is field
    assert grid.shape == (1, 1)


def test_clear_drops_cached_results(provider):
    generator = TerrainGenerator(_settings(), provider)
    generator.load_terrain()
    generator.clear()

    assert generator.height_field is None
    assert generator.grid is None
    with pytest.raises(RuntimeError):
        generator.placements()


def test_generator_builds_its_own_device():
    generator = TerrainGenerator(TerrainSettings(device=DeviceSettings("cpu")))
    assert generator.provider.device.platform == "cpu"


def test_default_provider_is_cached_and_replaceable(provider):
    previous = get_default_provider()
    try:
        assert get_default_provider() is previous
        set_default_provider(provider)
        assert get_default_provider() is provider
    finally:
        set_default_provider(previous)


def test_provider_caches_programs_and_kernels(provider):
    first = provider.kernel("MapGenerator", "TriangleSetup")
    second = provider.kernel("MapGenerator", "TriangleSetup")

    assert first == second
    assert first[0] is provider.load("MapGenerator")

    provider.clear()
    assert provider.load("MapGenerator") is not first[0]


def test_provider_device_is_lazy(monkeypatch):
    monkeypatch.setenv(PLATFORM_ENV, "cpu")
    lazy = ProgramProvider()
    assert lazy._device is None
    assert lazy.device.platform == "cpu"
    assert lazy.device is lazy.device


def test_height_field_values_follow_weights(provider):
    generator = TerrainGenerator(_settings(), provider)
    heights = generator.load_noise().heights()

    assert heights.max() <= 1.0
    assert np.isfinite(heights).all()


def test_default_registry_programs():
    from terrainsynth.errors import ResourceLoadError
    from terrainsynth.procgen.programs import default_registry

    registry = default_registry()
    assert registry.list_programs() == ["MapGenerator", "NoiseGenerator"]
    assert [spec.name for spec in registry.kernels("NoiseGenerator")] == ["GenerateNoise", "GenerateLayeredNoise"]

    with pytest.raises(ResourceLoadError, match="MapGenerator, NoiseGenerator"):
        registry.kernels("ErosionGenerator")
