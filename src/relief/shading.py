"""
Shaded-relief derivation.

Slope and aspect come from Horn's 3x3 finite-difference kernel over
vertically exaggerated elevation; shading combines them with a directional
light source:

    shade = cos(zenith) * cos(slope) + sin(zenith) * sin(slope) * cos(azimuth - aspect)

with zenith = 90 deg - altitude, clamped to [0, 1]. Flat ground therefore
shades to sin(altitude).

Edge cells have no full 3x3 neighborhood, so every derived grid is one cell
smaller on each border than the elevation grid, with the transform shifted
by one cell to stay aligned.
"""

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np
from affine import Affine
from pyproj import Geod
from rasterio.errors import CRSError

from src.config import DEFAULT_ALTITUDE, DEFAULT_AZIMUTH, DEFAULT_EXAGGERATION
from src.relief.grid import RasterGrid

logger = logging.getLogger(__name__)

# WGS84 ellipsoid for converting geographic cell sizes to metres
_geod = Geod(ellps="WGS84")


@dataclass(frozen=True)
class ReliefSurfaces:
    """Grids derived from one elevation grid; all share shape and transform."""

    slope: RasterGrid
    """Slope in radians."""

    aspect: RasterGrid
    """Direction of steepest descent in radians (0 = north, clockwise). Null on flat cells."""

    shade: RasterGrid
    """Shading intensity in [0, 1]."""


def _cell_size_m(grid: RasterGrid) -> Tuple[np.ndarray, np.ndarray]:
    """
    Ground cell size for the interior rows of a grid.

    Projected grids use their linear units; geographic grids are measured on
    the WGS84 ellipsoid at each row's latitude.

    Returns:
        tuple: (dx, dy) arrays shaped (rows - 2, 1) for broadcasting
    """
    xres, yres = grid.resolution
    rows = grid.height - 2

    if grid.crs.is_geographic:
        _, ys = grid.cell_centers()
        lats = ys[1:-1]
        lons = np.zeros_like(lats)
        _, _, dx = _geod.inv(lons, lats, lons + xres, lats)
        _, _, dy = _geod.inv(lons, lats - yres / 2.0, lons, lats + yres / 2.0)
        return np.asarray(dx).reshape(rows, 1), np.asarray(dy).reshape(rows, 1)

    try:
        unit_factor = float(grid.crs.linear_units_factor[1])
    except CRSError:
        # Custom PROJ strings without explicit units default to metres
        unit_factor = 1.0

    dx = np.full((rows, 1), xres * unit_factor)
    dy = np.full((rows, 1), yres * unit_factor)
    return dx, dy


def compute_slope_aspect(
    elevation: RasterGrid, exaggeration: float = DEFAULT_EXAGGERATION
) -> Tuple[RasterGrid, RasterGrid]:
    """
    Calculate slope and aspect using Horn's method.

    Args:
        elevation: Elevation grid (metres), NaN for null cells
        exaggeration: Vertical exaggeration applied to elevation first

    Returns:
        tuple: (slope, aspect) grids, one cell smaller on each border. Slope
        is in radians; aspect in radians from north, clockwise, null where
        the surface is flat. Any null in a 3x3 neighborhood nulls the cell.

    Raises:
        ValueError: If the grid is smaller than 3x3 or exaggeration is not positive
    """
    if elevation.height < 3 or elevation.width < 3:
        raise ValueError(f"Slope needs at least a 3x3 grid, got {elevation.shape}")
    if not exaggeration > 0:
        raise ValueError(f"Exaggeration must be positive, got {exaggeration}")

    logger.info(f"Computing Horn slope for DEM shape: {elevation.shape}")
    logger.debug(f"Vertical exaggeration: {exaggeration}")

    z = elevation.data.astype(np.float64) * exaggeration
    dx, dy = _cell_size_m(elevation)

    # 3x3 neighborhood, row 0 is north:
    #   a b c
    #   d e f
    #   g h i
    a, b, c = z[:-2, :-2], z[:-2, 1:-1], z[:-2, 2:]
    d, e, f = z[1:-1, :-2], z[1:-1, 1:-1], z[1:-1, 2:]
    g, h, i = z[2:, :-2], z[2:, 1:-1], z[2:, 2:]

    # East- and north-positive gradients
    dzdx = ((c + 2 * f + i) - (a + 2 * d + g)) / (8.0 * dx)
    dzdy = ((a + 2 * b + c) - (g + 2 * h + i)) / (8.0 * dy)
    dzdx[np.isnan(e)] = np.nan
    del z

    slope = np.arctan(np.hypot(dzdx, dzdy))

    # Steepest descent points against the gradient
    aspect = np.mod(np.arctan2(-dzdx, -dzdy), 2 * np.pi)
    aspect[(dzdx == 0) & (dzdy == 0)] = np.nan
    aspect[np.isnan(slope)] = np.nan
    del dzdx, dzdy

    interior = elevation.transform @ Affine.translation(1, 1)
    slope_grid = elevation.with_data(slope, transform=interior)
    aspect_grid = elevation.with_data(aspect, transform=interior)

    low, high = slope_grid.value_range()
    logger.info(f"Slope range: {np.degrees(low):.2f} to {np.degrees(high):.2f} degrees")
    return slope_grid, aspect_grid


def hillshade(
    slope: RasterGrid,
    aspect: RasterGrid,
    azimuth: float = DEFAULT_AZIMUTH,
    altitude: float = DEFAULT_ALTITUDE,
) -> RasterGrid:
    """
    Combine slope and aspect with a light source into shading intensity.

    Args:
        slope: Slope grid in radians
        aspect: Aspect grid in radians (null on flat cells)
        azimuth: Light direction in degrees clockwise from north (315 = NW)
        altitude: Light elevation angle above the horizon in degrees

    Returns:
        RasterGrid: Shading intensity clamped to [0, 1], null where slope is null

    Raises:
        ValueError: If the grids are not aligned or altitude is outside [0, 90]
    """
    if slope.shape != aspect.shape or slope.transform != aspect.transform:
        raise ValueError("Slope and aspect grids must share shape and transform")
    if not 0 <= altitude <= 90:
        raise ValueError(f"Altitude must be within [0, 90] degrees, got {altitude}")

    logger.info(f"Computing hillshade (azimuth={azimuth}, altitude={altitude})")

    zenith_rad = np.radians(90.0 - altitude)
    azimuth_rad = np.radians(azimuth % 360.0)

    slope_rad = slope.data.astype(np.float64)
    # Flat cells have no aspect; sin(slope) = 0 there so any angle works
    aspect_rad = np.where(np.isnan(aspect.data), 0.0, aspect.data)

    shade = np.cos(zenith_rad) * np.cos(slope_rad) + np.sin(zenith_rad) * np.sin(
        slope_rad
    ) * np.cos(azimuth_rad - aspect_rad)
    shade = np.clip(shade, 0.0, 1.0)

    return slope.with_data(shade)


def derive_relief(
    elevation: RasterGrid,
    exaggeration: float = DEFAULT_EXAGGERATION,
    azimuth: float = DEFAULT_AZIMUTH,
    altitude: float = DEFAULT_ALTITUDE,
) -> ReliefSurfaces:
    """
    Derive slope, aspect and shading from an elevation grid.

    Args:
        elevation: Elevation grid
        exaggeration: Vertical exaggeration factor (e.g. 15)
        azimuth: Light azimuth in degrees (e.g. 315 = NW)
        altitude: Light altitude in degrees (e.g. 45)

    Returns:
        ReliefSurfaces aligned with the elevation interior
    """
    slope, aspect = compute_slope_aspect(elevation, exaggeration=exaggeration)
    shade = hillshade(slope, aspect, azimuth=azimuth, altitude=altitude)
    return ReliefSurfaces(slope=slope, aspect=aspect, shade=shade)
