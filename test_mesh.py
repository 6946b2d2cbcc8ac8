"""
Tests for GeometryMesh and single-mesh synthesis.
"""

import warnings

import numpy as np
import pytest

from terrainsynth.engine.mesh import GeometryMesh
from terrainsynth.engine.mesh_synth import MESH_SIZE_THRESHOLD, MeshSynthesizer
from terrainsynth.errors import AdvisoryWarning, AllocationError, ResourceLoadError
from terrainsynth.procgen.provider import ProgramProvider
from terrainsynth.procgen.registry import ProgramRegistry


def _quad():
    vertices = np.array([[0, 0, 0], [1, 0, 0], [0, 0, 1], [1, 0, 1]], dtype=np.float32)
    # Same winding as the generated grids: i, i+w, i+1 / i+1, i+w, i+w+1
    triangles = np.array([0, 2, 1, 1, 2, 3], dtype=np.int32)
    return vertices, triangles


def test_flat_quad_normals_point_up():
    mesh = GeometryMesh(*_quad())

    assert np.allclose(mesh.normals, [[0, 1, 0]] * 4)
    assert np.allclose(mesh.bounds.center, [0.5, 0.0, 0.5])
    assert np.allclose(mesh.bounds.size, [1.0, 0.0, 1.0])
    assert mesh.triangle_count == 2


def test_setting_vertices_recomputes_derived_data():
    vertices, triangles = _quad()
    mesh = GeometryMesh(vertices, triangles)

    raised = vertices.copy()
    raised[:, 1] = [0.0, 1.0, 0.0, 1.0]
    mesh.vertices = raised

    assert np.allclose(mesh.bounds.max, [1.0, 1.0, 1.0])
    expected = np.array([-1.0, 1.0, 0.0]) / np.sqrt(2.0)
    assert np.allclose(mesh.normals, [expected] * 4, atol=1e-6)


def test_triangle_validation():
    vertices, _ = _quad()
    mesh = GeometryMesh(vertices)

    with pytest.raises(ValueError):
        mesh.triangles = np.array([0, 1], dtype=np.int32)
    with pytest.raises(ValueError):
        mesh.triangles = np.array([0, 1, 4], dtype=np.int32)


def test_index_format():
    assert GeometryMesh(np.zeros((65536, 3))).index_format == "uint16"
    assert GeometryMesh(np.zeros((65537, 3))).index_format == "uint32"


def test_copy_is_independent():
    mesh = GeometryMesh(*_quad())
    clone = mesh.copy()
    clone.vertices = clone.vertices + 1.0

    assert np.allclose(mesh.bounds.center, [0.5, 0.0, 0.5])
    assert np.allclose(clone.bounds.center, [1.5, 1.0, 1.5])


def test_mesh_counts_and_positions(provider, device, ramp_field):
    field = ramp_field(8, 6)
    result = MeshSynthesizer(provider).generate(field, height_multiplier=10.0)
    mesh = result.mesh

    assert result.advisories == []
    assert mesh.vertex_count == 8 * 6
    assert len(mesh.triangles) == 8 * 6 * 6

    heights = field.heights()
    for x, y in [(0, 0), (7, 0), (3, 4), (7, 5)]:
        np.testing.assert_allclose(
            mesh.vertices[x + y * 8],
            [x, heights[y, x] * np.float32(10.0), y],
            rtol=1e-6,
        )

    device.assert_all_released()


def test_mesh_triangulation(provider, ramp_field):
    mesh = MeshSynthesizer(provider).generate(ramp_field(4, 3)).mesh
    cells = mesh.triangles.reshape(-1, 6)

    assert cells[0].tolist() == [0, 4, 1, 1, 4, 5]
    assert cells[1 + 1 * 4].tolist() == [5, 9, 6, 6, 9, 10]
    # Last column and last row emit no quad
    assert cells[3].tolist() == [0] * 6
    assert (cells[8:] == 0).all()
    # Only the (w-1) x (h-1) interior cells are filled
    assert np.count_nonzero(cells.any(axis=1)) == 3 * 2
    assert (mesh.normals[:, 1] > 0).all()


def test_large_field_emits_advisory(provider, device, ramp_field):
    field = ramp_field(257, 256)
    assert field.width * field.height > MESH_SIZE_THRESHOLD

    with pytest.warns(AdvisoryWarning):
        result = MeshSynthesizer(provider).generate(field)

    assert len(result.advisories) == 1
    assert result.mesh.vertex_count == 257 * 256
    assert result.mesh.index_format == "uint32"
    device.assert_all_released()


def test_threshold_field_has_no_advisory(provider, ramp_field):
    with warnings.catch_warnings():
        warnings.simplefilter("error", AdvisoryWarning)
        result = MeshSynthesizer(provider).generate(ramp_field(256, 256))

    assert result.advisories == []


def test_buffer_failure_releases_everything(ramp_field):
    from conftest import TrackingDevice

    # Image (256 bytes) and vertex buffer (768 bytes) fit, triangle buffer does not
    device = TrackingDevice("cpu", memory_limit_bytes=1024)
    synthesizer = MeshSynthesizer(ProgramProvider(device))

    with pytest.raises(AllocationError):
        synthesizer.generate(ramp_field(8, 8))

    assert device.allocations == 2
    device.assert_all_released()
    assert device.active_render_target is None


def test_missing_kernel_raises_before_allocation(device, ramp_field):
    registry = ProgramRegistry()
    registry.register("MapGenerator", lambda: [])
    synthesizer = MeshSynthesizer(ProgramProvider(device, registry))

    with pytest.raises(ResourceLoadError):
        synthesizer.generate(ramp_field(4, 4))
    assert device.allocations == 0
