"""
Coordinate reference system resolution.

Every stage receives its CRS as an argument; this module turns whatever the
caller supplied (EPSG code, "EPSG:xxxx", WKT, PROJ string, CRS object) into a
rasterio CRS or fails with UnsupportedProjectionError.
"""

import logging

from rasterio.crs import CRS
from rasterio.errors import CRSError

from src.relief.errors import UnsupportedProjectionError

logger = logging.getLogger(__name__)


def resolve_crs(crs) -> CRS:
    """
    Resolve a user supplied CRS definition.

    Args:
        crs: rasterio/pyproj CRS, EPSG integer, authority string, WKT or PROJ string

    Returns:
        rasterio.crs.CRS

    Raises:
        UnsupportedProjectionError: If the definition is empty or cannot be parsed
    """
    if crs is None or (isinstance(crs, str) and not crs.strip()):
        raise UnsupportedProjectionError("No coordinate reference system given")

    if isinstance(crs, CRS):
        return crs

    try:
        if hasattr(crs, "to_wkt"):
            # pyproj.CRS and similar objects
            return CRS.from_wkt(crs.to_wkt())
        return CRS.from_user_input(crs)
    except (CRSError, TypeError, ValueError) as e:
        raise UnsupportedProjectionError(f"Cannot resolve CRS {crs!r}: {e}") from e


def same_crs(first, second) -> bool:
    """Return True if two CRS definitions describe the same system."""
    return resolve_crs(first) == resolve_crs(second)
