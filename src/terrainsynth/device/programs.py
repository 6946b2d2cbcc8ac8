"""
Compute programs: named kernels, binding points and uniforms.

A kernel is a pure JAX function evaluated over the whole dispatch grid at
once::

    fn(xs, ys, uniforms, resources) -> {binding: new_contents}

``xs``/``ys`` are int32 invocation ids of shape (threads_y, threads_x),
``uniforms`` maps uniform names to scalars/vectors and ``resources`` maps
binding names to the device arrays of the bound buffers and images.
Returned arrays are stored back into the bound resources.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence, Tuple, Union

import jax
import jax.numpy as jnp

from ..errors import DispatchError, ResourceLoadError
from .resources import ComputeBuffer, DeviceResource, RenderImage

logger = logging.getLogger(__name__)

KernelFn = Callable[..., Dict[str, jax.Array]]


@dataclass(frozen=True)
class KernelSpec:
    """Declaration of one kernel and the bindings it reads and writes."""

    name: str
    fn: KernelFn
    resources: Tuple[str, ...] = ()
    uniforms: Tuple[str, ...] = ()
    outputs: Tuple[str, ...] = ()


class ComputeProgram:
    """
    A compiled set of kernels sharing program-wide uniforms.

    Textures and buffers are bound per kernel index; uniforms are shared by
    all kernels of the program, the way shader constants are.
    """

    def __init__(self, name: str, device, kernels: Sequence[KernelSpec]):
        self.name = name
        self.device = device
        self._kernels: List[KernelSpec] = list(kernels)
        self._compiled = [jax.jit(spec.fn) for spec in self._kernels]
        self._bindings: List[Dict[str, DeviceResource]] = [{} for _ in self._kernels]
        self._uniforms: Dict[str, jax.Array] = {}
        self.dispatch_counts: Counter = Counter()

    @property
    def kernel_names(self) -> List[str]:
        return [spec.name for spec in self._kernels]

    def find_kernel(self, name: str) -> int:
        """Index of the kernel called ``name``."""

        for index, spec in enumerate(self._kernels):
            if spec.name == name:
                return index
        raise ResourceLoadError(f"Kernel '{name}' not found in program '{self.name}'")

    def _spec(self, kernel_index: int) -> KernelSpec:
        if not 0 <= kernel_index < len(self._kernels):
            raise DispatchError(f"Invalid kernel index {kernel_index} for program '{self.name}'")
        return self._kernels[kernel_index]

    # -- bindings ---------------------------------------------------------

    def set_texture(self, kernel_index: int, binding: str, image: RenderImage):
        self._spec(kernel_index)
        self._bindings[kernel_index][binding] = image

    def set_buffer(self, kernel_index: int, binding: str, buffer: ComputeBuffer):
        self._spec(kernel_index)
        self._bindings[kernel_index][binding] = buffer

    def set_int(self, name: str, value: int):
        self._uniforms[name] = jnp.asarray(value, dtype=jnp.int32)

    def set_uint(self, name: str, value: int):
        self._uniforms[name] = jnp.asarray(value, dtype=jnp.uint32)

    def set_float(self, name: str, value: float):
        self._uniforms[name] = jnp.asarray(value, dtype=jnp.float32)

    def set_bool(self, name: str, value: bool):
        self._uniforms[name] = jnp.asarray(bool(value))

    def set_vector(self, name: str, value: Union[Sequence[float], jax.Array]):
        """Set a 4-component float vector; shorter inputs are zero-padded."""

        vector = [float(v) for v in value]
        if len(vector) > 4:
            raise ValueError(f"Vector uniform '{name}' has {len(vector)} components")
        vector += [0.0] * (4 - len(vector))
        self._uniforms[name] = jnp.asarray(vector, dtype=jnp.float32)

    # -- dispatch ---------------------------------------------------------

    def dispatch(self, kernel_index: int, threads_x: int, threads_y: int, threads_z: int = 1):
        """Run a kernel over a ``threads_x`` x ``threads_y`` invocation grid."""

        spec = self._spec(kernel_index)
        if threads_x <= 0 or threads_y <= 0 or threads_z != 1:
            raise DispatchError(
                f"Invalid dispatch size ({threads_x}, {threads_y}, {threads_z}) for '{spec.name}'"
            )

        bound = self._bindings[kernel_index]
        missing = [name for name in spec.resources if name not in bound]
        missing += [name for name in spec.uniforms if name not in self._uniforms]
        if missing:
            raise DispatchError(f"Kernel '{spec.name}' is missing bindings: {', '.join(missing)}")

        resources = {name: bound[name].contents for name in spec.resources}
        uniforms = {name: self._uniforms[name] for name in spec.uniforms}

        ys, xs = jnp.meshgrid(
            jnp.arange(threads_y, dtype=jnp.int32),
            jnp.arange(threads_x, dtype=jnp.int32),
            indexing="ij",
        )

        outputs = self._compiled[kernel_index](xs, ys, uniforms, resources)
        for name in spec.outputs:
            bound[name].store(outputs[name])

        self.dispatch_counts[spec.name] += 1
        self.device.dispatches += 1
        logger.debug("Dispatched %s.%s over %dx%d", self.name, spec.name, threads_x, threads_y)

    def __repr__(self) -> str:
        return f"ComputeProgram(name={self.name!r}, kernels={self.kernel_names})"
