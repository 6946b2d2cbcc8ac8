"""
Tests for host/device image transfer and its cleanup guarantees.
"""

import numpy as np
import pytest

from terrainsynth.device.images import Image2D
from terrainsynth.engine.transfer import allocate_gpu_image, read_back_and_release, upload_to_gpu_image
from terrainsynth.errors import AllocationError, DispatchError, InvalidResourceError


def test_allocate_gpu_image(device):
    render_image, image = allocate_gpu_image(device, 8, 4)

    assert render_image.size == (8, 4)
    assert (image.width, image.height) == (8, 4)
    render_image.release()

    with pytest.raises(AllocationError):
        allocate_gpu_image(device, 0, 4)


def test_upload_then_read_back(device, ramp_field):
    source = ramp_field(6, 5)
    render_image = upload_to_gpu_image(device, source)
    assert device.active_render_target is None

    destination = Image2D(6, 5)
    read_back_and_release(device, render_image, destination)

    assert np.array_equal(destination.pixels, source.pixels)
    assert device.active_render_target is None
    with pytest.raises(InvalidResourceError):
        render_image.contents
    device.assert_all_released()


def test_failed_blit_releases_image_and_restores_target(device, ramp_field, monkeypatch):
    previous = device.create_render_image(2, 2)

    def failing_blit(source, target):
        raise DispatchError("blit failed")

    monkeypatch.setattr(device, "blit", failing_blit)

    with device.render_target(previous):
        with pytest.raises(DispatchError):
            upload_to_gpu_image(device, ramp_field(4, 4))
        assert device.active_render_target is previous

    previous.release()
    device.assert_all_released()


def test_failed_read_back_still_releases(device, monkeypatch):
    render_image, image = allocate_gpu_image(device, 4, 4)

    def failing_read(destination):
        raise DispatchError("readback failed")

    monkeypatch.setattr(device, "read_pixels", failing_read)

    with pytest.raises(DispatchError):
        read_back_and_release(device, render_image, image)

    assert render_image.released
    assert device.active_render_target is None
    device.assert_all_released()
