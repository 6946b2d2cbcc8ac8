"""
Shared fixtures: an instrumented device on the JAX CPU backend.
"""

import logging
import os

# Must be set before jax is first imported
os.environ.setdefault("JAX_PLATFORMS", "cpu")

import numpy as np
import pytest

from terrainsynth.device.context import ComputeDevice
from terrainsynth.device.images import Image2D
from terrainsynth.procgen.provider import ProgramProvider


class TrackingDevice(ComputeDevice):
    """Device that records every allocation and release."""

    def __init__(self, *args, **kwargs):
        self.events = []
        super().__init__(*args, **kwargs)

    def on_allocate(self, resource):
        self.events.append(("allocate", resource.kind, resource.handle))

    def on_release(self, resource):
        self.events.append(("release", resource.kind, resource.handle))

    def handles(self, event):
        return [handle for name, _, handle in self.events if name == event]

    def assert_all_released(self):
        """Every allocated resource was released exactly once."""

        allocated = self.handles("allocate")
        released = self.handles("release")
        assert sorted(allocated) == sorted(released)
        assert len(set(released)) == len(released)
        assert self.live_resources == []
        assert self.bytes_in_use == 0


@pytest.fixture
def device():
    return TrackingDevice("cpu")


@pytest.fixture
def provider(device):
    return ProgramProvider(device)


@pytest.fixture
def ramp_field():
    """Factory of height fields rising along x and y."""

    def make(width, height):
        xs = np.linspace(0.0, 1.0, width, dtype=np.float32)
        ys = np.linspace(0.0, 1.0, height, dtype=np.float32)
        return Image2D.from_heights(0.5 * (xs[None, :] + ys[:, None]))

    return make


@pytest.fixture(autouse=True)
def reset_package_logger():
    yield
    logging.getLogger("terrainsynth").handlers.clear()
