"""
Crop and mask operations.

Crop restricts a grid to the bounding box of a boundary set; mask nulls every
cell whose center is not inside any boundary polygon. Both accept boundaries
in any CRS and re-express them in the grid's CRS first.

Containment rule: a cell is kept when its center lies inside a polygon or
exactly on its edge (shapely.intersects_xy, i.e. closed-set semantics).
"""

import logging
import math

import numpy as np
import shapely

from src.relief.crs import same_crs
from src.relief.errors import EmptyIntersectionError
from src.relief.geometry import boundary_union, reproject_boundaries, validate_boundaries
from src.relief.grid import RasterGrid

logger = logging.getLogger(__name__)

# Tolerance (in cells) so that centers lying on the bounding box edge are kept
EDGE_EPSILON = 1e-9

# Rows tested per point-in-polygon batch; bounds peak memory of the mask step
MASK_CHUNK_ROWS = 512


def boundaries_for_grid(grid: RasterGrid, boundaries):
    """Return the boundary set expressed in the grid's CRS."""
    boundaries = validate_boundaries(boundaries)
    if same_crs(boundaries.crs, grid.crs):
        return boundaries
    return reproject_boundaries(boundaries, grid.crs)


def _index_range(low: float, high: float, origin: float, step: float, size: int):
    """Inclusive index range of cell centers within [low, high] along one axis."""
    start = math.ceil((low - origin) / step - 0.5 - EDGE_EPSILON)
    stop = math.floor((high - origin) / step - 0.5 + EDGE_EPSILON)
    if stop < start:
        # Extent overlaps but holds no center: keep the cells it touches
        start = math.floor((low - origin) / step)
        stop = math.ceil((high - origin) / step) - 1
    return max(start, 0), min(stop, size - 1)


def crop_to_boundaries(grid: RasterGrid, boundaries) -> RasterGrid:
    """
    Crop a grid to the bounding box of a boundary set.

    Keeps the whole cells whose centers fall inside the bounding box.

    Args:
        grid: Source grid
        boundaries: Boundary GeoDataFrame in any CRS

    Returns:
        RasterGrid: Sub-grid sharing the source lattice

    Raises:
        EmptyIntersectionError: If the bounding box does not overlap the grid
        InvalidGeometryError: If the boundary set is unusable
    """
    boundaries = boundaries_for_grid(grid, boundaries)
    minx, miny, maxx, maxy = (float(v) for v in boundaries.total_bounds)
    left, bottom, right, top = grid.bounds

    if maxx < left or minx > right or maxy < bottom or miny > top:
        raise EmptyIntersectionError(
            f"Boundary extent ({minx:.4f}, {miny:.4f}, {maxx:.4f}, {maxy:.4f}) does not "
            f"overlap grid extent ({left:.4f}, {bottom:.4f}, {right:.4f}, {top:.4f})"
        )

    xres, yres = grid.resolution
    col_start, col_stop = _index_range(minx, maxx, left, xres, grid.width)
    # Rows count downward from the top edge, so mirror the y extent
    row_start, row_stop = _index_range(top - maxy, top - miny, 0.0, yres, grid.height)

    if col_stop < col_start or row_stop < row_start:
        raise EmptyIntersectionError("Boundary extent contains no grid cells")

    cropped = grid.window(slice(row_start, row_stop + 1), slice(col_start, col_stop + 1))
    logger.info(f"Cropped grid {grid.shape} -> {cropped.shape}")
    return cropped


def mask_to_boundaries(grid: RasterGrid, boundaries) -> RasterGrid:
    """
    Null every cell whose center is outside all boundary polygons.

    Args:
        grid: Grid to mask (usually already cropped)
        boundaries: Boundary GeoDataFrame in any CRS

    Returns:
        RasterGrid: Same shape and transform, outside cells set to NaN

    Raises:
        EmptyIntersectionError: If no cell center falls inside the boundaries
        InvalidGeometryError: If the boundary set is unusable
    """
    boundaries = boundaries_for_grid(grid, boundaries)
    region = boundary_union(boundaries)
    shapely.prepare(region)

    xs, ys = grid.cell_centers()
    inside = np.zeros(grid.shape, dtype=bool)
    for row in range(0, grid.height, MASK_CHUNK_ROWS):
        rows = slice(row, min(row + MASK_CHUNK_ROWS, grid.height))
        cx, cy = np.meshgrid(xs, ys[rows])
        inside[rows] = shapely.intersects_xy(region, cx, cy)

    if not inside.any():
        raise EmptyIntersectionError("No grid cell centers fall inside the boundaries")

    masked = np.where(inside, grid.data, np.nan)
    logger.info(
        f"Masked grid to boundaries: {int(inside.sum())} of {inside.size} cells inside"
    )
    return grid.with_data(masked)


def crop_and_mask(grid: RasterGrid, boundaries) -> RasterGrid:
    """Crop to the boundary extent, then mask to the boundary polygons."""
    cropped = crop_to_boundaries(grid, boundaries)
    return mask_to_boundaries(cropped, boundaries)
