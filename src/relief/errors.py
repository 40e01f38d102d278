"""
Error hierarchy for relief processing.

Every error here is fatal for the current run: inputs are static, so a
failure points at a configuration problem the caller must fix.
"""


class ReliefError(Exception):
    """Base error for relief processing."""


class IncompatibleGridError(ReliefError):
    """Grids cannot be combined (resolution, CRS or cell lattice differ)."""


class EmptyIntersectionError(ReliefError):
    """Crop region does not overlap the source raster."""


class InvalidGeometryError(ReliefError):
    """Boundary polygon set is empty, malformed or has no CRS."""


class UnsupportedProjectionError(ReliefError):
    """Coordinate reference system cannot be parsed or resolved."""


class TileDownloadError(ReliefError):
    """Remote elevation tile could not be fetched after all retries."""
