"""
Grid reprojection.

Resamples a grid into another coordinate reference system. The output grid
is fitted by projecting the four corners of the source extent and laying a
regular north-up lattice at the caller's resolution over their bounding box.
"""

import logging
import math
from typing import Tuple, Union

import numpy as np
import rasterio
from affine import Affine
from rasterio.errors import CRSError
from rasterio.warp import Resampling, reproject, transform as transform_coords

from src.relief.crs import resolve_crs
from src.relief.errors import UnsupportedProjectionError
from src.relief.grid import RasterGrid

logger = logging.getLogger(__name__)


def _as_resolution(resolution: Union[float, Tuple[float, float]]) -> Tuple[float, float]:
    if np.isscalar(resolution):
        xres = yres = float(resolution)
    else:
        xres, yres = (float(v) for v in resolution)
    if not (xres > 0 and yres > 0):
        raise ValueError(f"Target resolution must be positive, got {resolution}")
    return xres, yres


def target_grid_spec(
    grid: RasterGrid, dst_crs, resolution: Union[float, Tuple[float, float]]
) -> Tuple[Affine, int, int]:
    """
    Fit the destination lattice for a reprojection.

    Args:
        grid: Source grid
        dst_crs: Target CRS (already resolved or any accepted definition)
        resolution: Target cell size in target CRS units, scalar or (x, y)

    Returns:
        tuple: (dst_transform, width, height)

    Raises:
        UnsupportedProjectionError: If the corners cannot be projected
    """
    xres, yres = _as_resolution(resolution)
    dst_crs = resolve_crs(dst_crs)
    left, bottom, right, top = grid.bounds

    try:
        xs, ys = transform_coords(
            grid.crs, dst_crs, [left, right, right, left], [top, top, bottom, bottom]
        )
    except CRSError as e:
        raise UnsupportedProjectionError(
            f"Cannot transform from {grid.crs.to_string()} to {dst_crs.to_string()}: {e}"
        ) from e

    if not all(math.isfinite(v) for v in list(xs) + list(ys)):
        raise UnsupportedProjectionError(
            f"Grid extent cannot be expressed in {dst_crs.to_string()}"
        )

    min_x, max_x = min(xs), max(xs)
    min_y, max_y = min(ys), max(ys)
    width = max(1, math.ceil((max_x - min_x) / xres))
    height = max(1, math.ceil((max_y - min_y) / yres))

    dst_transform = Affine(xres, 0.0, min_x, 0.0, -yres, max_y)
    return dst_transform, width, height


def reproject_grid(
    grid: RasterGrid,
    dst_crs,
    resolution: Union[float, Tuple[float, float]],
    resampling: Resampling = Resampling.bilinear,
) -> RasterGrid:
    """
    Resample a grid into a new coordinate reference system.

    Args:
        grid: Source grid
        dst_crs: Target CRS definition (EPSG code, "EPSG:xxxx", WKT, PROJ string)
        resolution: Target cell size in target CRS units, scalar or (x, y)
        resampling: rasterio resampling kernel (default: bilinear, for
            continuous fields such as elevation)

    Returns:
        RasterGrid in the target CRS; cells outside the source are null

    Raises:
        UnsupportedProjectionError: If the target CRS cannot be resolved
        ValueError: If the resolution is not positive
    """
    dst_crs = resolve_crs(dst_crs)
    logger.info(f"Reprojecting raster from {grid.crs.to_string()} to {dst_crs.to_string()}")

    dst_transform, width, height = target_grid_spec(grid, dst_crs, resolution)
    dst_data = np.full((height, width), np.nan, dtype=np.float32)

    try:
        with rasterio.Env():
            reproject(
                source=grid.data.copy(),
                destination=dst_data,
                src_transform=grid.transform,
                src_crs=grid.crs,
                dst_transform=dst_transform,
                dst_crs=dst_crs,
                resampling=resampling,
                src_nodata=np.nan,
                dst_nodata=np.nan,
            )
    except CRSError as e:
        raise UnsupportedProjectionError(
            f"Cannot reproject to {dst_crs.to_string()}: {e}"
        ) from e

    result = RasterGrid(data=dst_data, transform=dst_transform, crs=dst_crs)
    low, high = result.value_range()
    logger.info(f"Reprojection complete. New shape: {result.shape}")
    logger.info(f"Value range: {low:.2f} to {high:.2f}")
    return result
