"""
Tile mosaicking.

Merges adjacent raster tiles into one continuous grid. Unlike
rasterio.merge's default "first wins" rule, overlapping cells take the
arithmetic mean of every non-null contribution.
"""

import logging
import math
from typing import Sequence

import numpy as np
from affine import Affine

from src.relief.errors import IncompatibleGridError
from src.relief.grid import RasterGrid

logger = logging.getLogger(__name__)

# Allowed drift, in cells, when checking that tiles share a cell lattice
ALIGNMENT_TOLERANCE = 1e-6


def _check_compatible(grids: Sequence[RasterGrid]) -> None:
    reference = grids[0]
    ref_xres, ref_yres = reference.resolution

    for index, grid in enumerate(grids[1:], start=1):
        if grid.crs != reference.crs:
            raise IncompatibleGridError(
                f"Grid {index} CRS {grid.crs.to_string()} differs from "
                f"{reference.crs.to_string()}"
            )
        xres, yres = grid.resolution
        if not (
            math.isclose(xres, ref_xres, rel_tol=1e-9)
            and math.isclose(yres, ref_yres, rel_tol=1e-9)
        ):
            raise IncompatibleGridError(
                f"Grid {index} resolution {grid.resolution} differs from "
                f"{reference.resolution}; resample to a common grid first"
            )


def _cell_offset(distance: float, cell_size: float, what: str) -> int:
    cells = distance / cell_size
    rounded = round(cells)
    if abs(cells - rounded) > ALIGNMENT_TOLERANCE:
        raise IncompatibleGridError(
            f"Grid {what} offset of {cells:.6f} cells is not aligned to the shared lattice"
        )
    return int(rounded)


def mosaic_grids(grids: Sequence[RasterGrid]) -> RasterGrid:
    """
    Merge grids into one grid covering the union of their extents.

    Cells covered by several inputs take the mean of the non-null values,
    cells covered by one input take that value, and cells covered by none
    are null.

    Args:
        grids: Ordered grids sharing CRS and cell resolution

    Returns:
        RasterGrid: The mosaic

    Raises:
        IncompatibleGridError: If no grids are given, or CRS, resolution or
            cell lattice differ between inputs
    """
    grids = list(grids)
    if not grids:
        raise IncompatibleGridError("No grids to mosaic")

    _check_compatible(grids)

    xres, yres = grids[0].resolution
    left = min(g.bounds[0] for g in grids)
    bottom = min(g.bounds[1] for g in grids)
    right = max(g.bounds[2] for g in grids)
    top = max(g.bounds[3] for g in grids)

    width = _cell_offset(right - left, xres, "width")
    height = _cell_offset(top - bottom, yres, "height")

    logger.info(f"Mosaicking {len(grids)} grids into {height}x{width}")

    sums = np.zeros((height, width), dtype=np.float64)
    counts = np.zeros((height, width), dtype=np.int32)

    for grid in grids:
        col = _cell_offset(grid.transform.c - left, xres, "column")
        row = _cell_offset(top - grid.transform.f, yres, "row")
        rows = slice(row, row + grid.height)
        cols = slice(col, col + grid.width)

        valid = grid.valid_mask
        sums[rows, cols] += np.where(valid, grid.data, 0.0)
        counts[rows, cols] += valid

    with np.errstate(invalid="ignore", divide="ignore"):
        merged = np.where(counts > 0, sums / counts, np.nan)
    del sums

    overlap = int(np.count_nonzero(counts > 1))
    logger.info(f"  Overlapping cells averaged: {overlap}")
    logger.debug(f"  Uncovered cells: {int(np.count_nonzero(counts == 0))}")

    transform = Affine(xres, 0.0, left, 0.0, -yres, top)
    result = RasterGrid(data=merged, transform=transform, crs=grids[0].crs)

    low, high = result.value_range()
    logger.info(f"  Value range: {low:.2f} to {high:.2f}")
    return result
