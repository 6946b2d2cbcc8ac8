"""
Tests for the device layer: resources, render targets and program dispatch.
"""

import jax.numpy as jnp
import numpy as np
import pytest

from terrainsynth.device.images import Image2D
from terrainsynth.device.programs import ComputeProgram, KernelSpec
from terrainsynth.errors import (
    AllocationError,
    DispatchError,
    InvalidResourceError,
    LayoutError,
    ResourceLoadError,
)
from terrainsynth.procgen.layout import NOISE_CONFIG_DTYPE, NOISE_CONFIG_STRIDE


def test_buffer_roundtrip_and_accounting(device):
    buffer = device.create_buffer(4, NOISE_CONFIG_STRIDE)
    assert device.bytes_in_use == 4 * 28
    assert device.events == [("allocate", "buffer", buffer.handle)]

    packed = np.zeros(3, dtype=NOISE_CONFIG_DTYPE)
    packed["seed"] = [1, 2, 3]
    packed["weight"] = [0.5, 1.0, 1.5]
    buffer.set_data(packed)

    data = buffer.get_data(NOISE_CONFIG_DTYPE)
    assert len(data) == 4
    assert data[:3].tobytes() == packed.tobytes()
    assert data[3].tobytes() == bytes(28)

    buffer.release()
    device.assert_all_released()


def test_buffer_rejects_stride_mismatch(device):
    buffer = device.create_buffer(2, NOISE_CONFIG_STRIDE)

    with pytest.raises(LayoutError):
        buffer.set_data(np.zeros(2, dtype=np.dtype([("a", "<u4"), ("b", "<f4", 5)])))
    with pytest.raises(LayoutError):
        buffer.get_data(np.float32)
    with pytest.raises(LayoutError):
        buffer.set_data(np.zeros(3, dtype=NOISE_CONFIG_DTYPE))

    buffer.release()


def test_create_buffer_validates_arguments(device):
    with pytest.raises(AllocationError):
        device.create_buffer(0, 12)
    with pytest.raises(LayoutError):
        device.create_buffer(4, 30)
    assert device.allocations == 0


def test_memory_limit_raises_allocation_error():
    from conftest import TrackingDevice

    device = TrackingDevice("cpu", memory_limit_bytes=1024)
    image = device.create_render_image(16, 16)

    with pytest.raises(AllocationError):
        device.create_buffer(1, 4)

    image.release()
    device.assert_all_released()


def test_invalid_image_size(device):
    with pytest.raises(AllocationError):
        device.create_render_image(0, 8)
    with pytest.raises(AllocationError):
        device.create_render_image(8, -1)


def test_release_exactly_once(device):
    image = device.create_render_image(4, 4)
    image.release()

    assert image.released
    with pytest.raises(InvalidResourceError):
        image.release()
    with pytest.raises(InvalidResourceError):
        image.contents

    assert device.handles("release") == [image.handle]


def test_render_target_restored_after_failure(device):
    outer = device.create_render_image(2, 2)
    inner = device.create_render_image(2, 2)

    with device.render_target(outer):
        with pytest.raises(RuntimeError):
            with device.render_target(inner):
                assert device.active_render_target is inner
                raise RuntimeError("boom")
        assert device.active_render_target is outer

    assert device.active_render_target is None
    outer.release()
    inner.release()


def test_blit_and_read_pixels(device):
    source = Image2D.from_heights(np.array([[0.0, 0.5], [1.0, 0.25]], dtype=np.float32))
    target = device.create_render_image(2, 2)
    device.blit(source, target)

    destination = Image2D(2, 2)
    with device.render_target(target):
        device.read_pixels(destination)

    assert np.array_equal(destination.pixels, source.pixels)
    target.release()


def test_read_pixels_requires_matching_target(device):
    with pytest.raises(DispatchError):
        device.read_pixels(Image2D(2, 2))

    target = device.create_render_image(4, 4)
    with device.render_target(target):
        with pytest.raises(DispatchError):
            device.read_pixels(Image2D(2, 2))
    target.release()


def _fill_kernel(xs, ys, uniforms, resources):
    words = resources["Out"]
    index = xs + ys * uniforms["width"]
    return {"Out": words.at[index].set((index * uniforms["factor"]).astype(jnp.uint32), mode="drop")}


def _fill_program(device):
    spec = KernelSpec(
        name="Fill",
        fn=_fill_kernel,
        resources=("Out",),
        uniforms=("width", "factor"),
        outputs=("Out",),
    )
    return ComputeProgram("Test", device, [spec])


def test_dispatch_runs_kernel_over_grid(device):
    program = _fill_program(device)
    kernel = program.find_kernel("Fill")
    buffer = device.create_buffer(12, 4)

    program.set_buffer(kernel, "Out", buffer)
    program.set_int("width", 4)
    program.set_int("factor", 3)
    program.dispatch(kernel, 4, 3)

    assert buffer.get_data(np.uint32).tolist() == [3 * i for i in range(12)]
    assert program.dispatch_counts["Fill"] == 1
    assert device.dispatches == 1
    buffer.release()


def test_dispatch_validates_bindings(device):
    program = _fill_program(device)
    kernel = program.find_kernel("Fill")

    with pytest.raises(DispatchError):
        program.dispatch(kernel, 4, 4)
    with pytest.raises(DispatchError):
        program.dispatch(kernel, 0, 4)
    with pytest.raises(DispatchError):
        program.dispatch(5, 4, 4)
    with pytest.raises(ResourceLoadError):
        program.find_kernel("Missing")


def test_set_vector_pads_to_four_components(device):
    program = _fill_program(device)
    program.set_vector("offset", (1, 2))
    assert program._uniforms["offset"].tolist() == [1.0, 2.0, 0.0, 0.0]

    with pytest.raises(ValueError):
        program.set_vector("offset", (1, 2, 3, 4, 5))


def test_image_encoding_and_preview():
    heights = np.array([[0.0, 0.5, 1.0, 1.7]], dtype=np.float32)
    image = Image2D.from_heights(heights)

    assert image.shape == (1, 4, 4)
    assert image.pixels[0, :, 0].tolist() == [0, 128, 255, 255]
    assert (image.pixels[..., 3] == 255).all()
    assert np.array_equal(image.pixels[..., 0], image.pixels[..., 1])

    preview = image.to_pil()
    assert preview.size == (4, 1)
    assert preview.mode == "RGBA"
