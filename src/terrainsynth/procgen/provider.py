"""
Program provider: resolves compute programs and kernel indices once.

A provider owns (or is given) a ``ComputeDevice`` and a ``ProgramRegistry``.
Programs are compiled on first use and cached for the provider's lifetime,
as are kernel indices. A process-wide default provider is available for
callers that do not manage their own.
"""

import logging
from typing import Dict, Optional, Tuple

from ..config import DeviceSettings
from ..device.context import ComputeDevice
from ..device.programs import ComputeProgram
from .programs import default_registry
from .registry import ProgramRegistry

logger = logging.getLogger(__name__)


class ProgramProvider:
    """
    Cache of compiled programs on one device.

    Args:
        device: Device to compile programs for (created lazily from the
            environment when None)
        registry: Program registry (the built-in programs when None)
    """

    def __init__(
        self,
        device: Optional[ComputeDevice] = None,
        registry: Optional[ProgramRegistry] = None
    ):
        self._device = device
        self.registry = registry if registry is not None else default_registry()
        self._programs: Dict[str, ComputeProgram] = {}
        self._kernels: Dict[Tuple[str, str], int] = {}

    @property
    def device(self) -> ComputeDevice:
        if self._device is None:
            settings = DeviceSettings.from_env()
            self._device = ComputeDevice(settings.platform, settings.memory_limit_bytes)
        return self._device

    def load(self, name: str) -> ComputeProgram:
        """Load a program by logical name, compiling it on first use."""

        program = self._programs.get(name)
        if program is None:
            kernels = self.registry.kernels(name)
            program = ComputeProgram(name, self.device, kernels)
            self._programs[name] = program
            logger.info("Loaded compute program %s (%s)", name, ", ".join(program.kernel_names))
        return program

    def kernel(self, program_name: str, kernel_name: str) -> Tuple[ComputeProgram, int]:
        """Resolve ``(program, kernel index)``; raises ``ResourceLoadError`` if missing."""

        program = self.load(program_name)
        key = (program_name, kernel_name)
        if key not in self._kernels:
            self._kernels[key] = program.find_kernel(kernel_name)
        return program, self._kernels[key]

    def clear(self):
        """Drop every cached program and kernel index."""

        self._programs.clear()
        self._kernels.clear()


_default_provider: Optional[ProgramProvider] = None


def get_default_provider() -> ProgramProvider:
    global _default_provider
    if _default_provider is None:
        _default_provider = ProgramProvider()
    return _default_provider


def set_default_provider(provider: Optional[ProgramProvider]):
    """Replace (or reset with None) the process-wide provider."""

    global _default_provider
    _default_provider = provider
