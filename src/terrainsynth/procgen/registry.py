"""
Program registry and parameter specification.

This module defines:
- ParameterSpec: Range clamping and extraction of configuration parameters
- ProgramRegistry: Registration and lookup of compute programs by logical name
"""

from typing import Callable, Dict, List, Sequence, Tuple

from ..device.programs import KernelSpec
from ..errors import ResourceLoadError

ProgramFactory = Callable[[], Sequence[KernelSpec]]


class ParameterSpec:
    """
    Specification for ranged parameters.

    Each parameter has:
    - min_val: Minimum allowed value
    - max_val: Maximum allowed value
    - default: Default value if not specified
    """

    def __init__(self, params: Dict[str, Tuple[float, float, float]]):
        """
        Initialize parameter specification.

        Args:
            params: Dict mapping param_name -> (min_val, max_val, default)
        """
        self.params = params

    def extract_params(self, values: Dict[str, float]) -> Dict[str, float]:
        """Extract parameters, clamping to range and filling defaults."""

        result = {}
        for param_name, (min_val, max_val, default) in self.params.items():
            if param_name in values:
                value = float(values[param_name])
                result[param_name] = max(min_val, min(max_val, value))
            else:
                result[param_name] = default

        return result


class ProgramRegistry:
    """
    Registry of compute programs.

    Maps a logical program name ("NoiseGenerator", "MapGenerator") to a
    factory that returns the program's kernel declarations.
    """

    def __init__(self):
        self._factories: Dict[str, ProgramFactory] = {}

    def register(self, name: str, factory: ProgramFactory):
        """Register (or replace) a program factory."""
        self._factories[name] = factory

    def get_factory(self, name: str) -> ProgramFactory:
        try:
            return self._factories[name]
        except KeyError:
            raise ResourceLoadError(
                f"Compute program '{name}' could not be found "
                f"(registered: {', '.join(self.list_programs()) or 'none'})"
            ) from None

    def kernels(self, name: str) -> List[KernelSpec]:
        """Kernel declarations of a registered program."""
        return list(self.get_factory(name)())

    def list_programs(self) -> List[str]:
        return sorted(self._factories)
