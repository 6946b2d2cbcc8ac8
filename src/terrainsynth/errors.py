"""
Error taxonomy for terrain synthesis.

Allocation and resource-load failures abort a generation call; advisories
are warnings that travel alongside a valid result.
"""


class TerrainSynthError(Exception):
    """Base class for all terrainsynth errors."""


class AllocationError(TerrainSynthError):
    """Invalid dimensions or device memory could not be reserved."""


class ResourceLoadError(TerrainSynthError):
    """A compute program, kernel or compute platform could not be resolved."""


class InvalidResourceError(TerrainSynthError):
    """A device resource was used or released after it had been released."""


class DispatchError(TerrainSynthError):
    """A kernel was dispatched with missing or incompatible bindings."""


class LayoutError(TerrainSynthError, ValueError):
    """Host data does not match the declared device-side element layout."""


class AdvisoryWarning(UserWarning):
    """Non-fatal condition reported together with a valid result."""
