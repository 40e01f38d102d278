"""
Grid smoothing for print output.

Two stages reduce visual banding: an integer-factor block downsample,
then a 3x3 uniform mean filter. Shading and slope are smoothed with the same
factor so they stay on one lattice.
"""

import logging
from typing import Tuple

import numpy as np
from affine import Affine
from scipy import ndimage

from src.config import DEFAULT_SMOOTHING_FACTOR
from src.relief.grid import RasterGrid

logger = logging.getLogger(__name__)

UNIFORM_KERNEL = np.ones((3, 3), dtype=np.float64)


def downsample_grid(grid: RasterGrid, factor: int = DEFAULT_SMOOTHING_FACTOR) -> RasterGrid:
    """
    Downsample a grid by an integer aggregation factor.

    Each factor x factor block becomes one output cell holding the mean of
    the block's non-null cells, which is the bilinear surface value at the
    block center. No output cell reads pixels from a neighbouring block.
    Trailing rows/columns that do not fill a whole block are dropped.
    Blocks with no non-null cells are null.

    Args:
        grid: Source grid
        factor: Aggregation factor (1 returns the grid unchanged)

    Returns:
        RasterGrid with shape (height // factor, width // factor)

    Raises:
        ValueError: If factor is not a positive integer or exceeds the grid size
    """
    if isinstance(factor, bool) or not isinstance(factor, (int, np.integer)) or factor < 1:
        raise ValueError(f"Aggregation factor must be a positive integer, got {factor!r}")
    if factor == 1:
        return grid

    height, width = grid.height // factor, grid.width // factor
    if height == 0 or width == 0:
        raise ValueError(f"Factor {factor} is larger than grid shape {grid.shape}")

    logger.info(f"Downsampling raster by factor {factor}")

    # Whole blocks only, viewed as (block_row, row_in_block, block_col, col_in_block)
    blocks = grid.data[: height * factor, : width * factor].reshape(
        height, factor, width, factor
    )
    valid = ~np.isnan(blocks)
    sums = np.where(valid, blocks, 0.0).sum(axis=(1, 3), dtype=np.float64)
    counts = valid.sum(axis=(1, 3))

    with np.errstate(invalid="ignore", divide="ignore"):
        downsampled = np.where(counts > 0, sums / counts, np.nan)

    dst_transform = grid.transform @ Affine.scale(factor)

    logger.info(f"Original shape: {grid.shape}")
    logger.info(f"Downsampled shape: {downsampled.shape}")
    return grid.with_data(downsampled, transform=dst_transform)


def uniform_smooth(grid: RasterGrid) -> RasterGrid:
    """
    Apply a 3x3 uniform mean filter ("same"-size output).

    Every non-null cell becomes the mean of the non-null cells in its 3x3
    neighborhood. Border cells use the neighbors that exist; null cells stay
    null and never contribute.

    Args:
        grid: Grid to smooth

    Returns:
        RasterGrid with the same shape and transform
    """
    valid = grid.valid_mask
    values = np.where(valid, grid.data, 0.0).astype(np.float64)

    sums = ndimage.convolve(values, UNIFORM_KERNEL, mode="constant", cval=0.0)
    counts = ndimage.convolve(valid.astype(np.float64), UNIFORM_KERNEL, mode="constant", cval=0.0)
    del values

    with np.errstate(invalid="ignore", divide="ignore"):
        smoothed = np.where(valid & (counts > 0), sums / counts, np.nan)

    low, high = grid.value_range()
    logger.debug(f"Value range before smoothing: {low:.4f} to {high:.4f}")
    return grid.with_data(smoothed)


def smooth_grid(grid: RasterGrid, factor: int = DEFAULT_SMOOTHING_FACTOR) -> RasterGrid:
    """Downsample by ``factor`` then apply the 3x3 uniform mean."""
    return uniform_smooth(downsample_grid(grid, factor))


def smooth_relief(
    shade: RasterGrid, slope: RasterGrid, factor: int = DEFAULT_SMOOTHING_FACTOR
) -> Tuple[RasterGrid, RasterGrid]:
    """
    Smooth shading and slope grids with the same factor.

    Args:
        shade: Shading intensity grid
        slope: Slope grid aligned with ``shade``
        factor: Aggregation factor shared by both grids

    Returns:
        tuple: (smoothed_shade, smoothed_slope), aligned with each other

    Raises:
        ValueError: If the inputs are not aligned
    """
    if shade.shape != slope.shape or shade.transform != slope.transform:
        raise ValueError("Shade and slope grids must share shape and transform")

    logger.info(f"Smoothing relief grids {shade.shape} with factor {factor}")
    return smooth_grid(shade, factor), smooth_grid(slope, factor)
