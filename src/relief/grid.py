"""
Raster grid value object.

A RasterGrid couples a 2D array of cell values with its geotransform and
coordinate reference system. Null cells are NaN. Grids are immutable: the
array is copied and flagged read-only at construction, and every processing
stage returns a new grid.
"""

from dataclasses import dataclass
from typing import NamedTuple, Tuple

import numpy as np
from affine import Affine
from rasterio.crs import CRS
from rasterio.transform import array_bounds

from src.relief.crs import resolve_crs

GRID_DTYPE = np.float32


class PointSample(NamedTuple):
    """One non-null cell, expressed at its cell center."""

    x: float
    y: float
    value: float


@dataclass(frozen=True, eq=False)
class RasterGrid:
    """Immutable elevation-style grid with geographic metadata."""

    data: np.ndarray
    """2D float32 array (rows x cols), NaN marks null cells. Read-only."""

    transform: Affine
    """North-up affine transform mapping (col, row) to (x, y) of cell corners."""

    crs: CRS
    """Coordinate reference system of the transform."""

    def __post_init__(self):
        data = np.asarray(self.data)
        if data.ndim != 2:
            raise ValueError(f"Grid data must be 2D, got {data.ndim}D")
        if data.shape[0] == 0 or data.shape[1] == 0:
            raise ValueError(f"Grid data cannot be empty: {data.shape}")

        transform = self.transform
        if not isinstance(transform, Affine):
            transform = Affine(*tuple(transform)[:6])
        if transform.b != 0 or transform.d != 0:
            raise ValueError("Rotated or sheared transforms are not supported")
        if transform.a <= 0 or transform.e >= 0:
            raise ValueError(
                f"Transform must be north-up with positive cell width: {transform}"
            )

        # Owned, contiguous copy so callers can never mutate grid contents
        frozen = np.array(data, dtype=GRID_DTYPE, copy=True, order="C")
        frozen.flags.writeable = False

        object.__setattr__(self, "data", frozen)
        object.__setattr__(self, "transform", transform)
        object.__setattr__(self, "crs", resolve_crs(self.crs))

    @property
    def shape(self) -> Tuple[int, int]:
        return self.data.shape

    @property
    def height(self) -> int:
        return self.data.shape[0]

    @property
    def width(self) -> int:
        return self.data.shape[1]

    @property
    def resolution(self) -> Tuple[float, float]:
        """Cell size as (x_res, y_res), both positive."""
        return (self.transform.a, -self.transform.e)

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """Extent as (left, bottom, right, top)."""
        return tuple(array_bounds(self.height, self.width, self.transform))

    @property
    def valid_mask(self) -> np.ndarray:
        return ~np.isnan(self.data)

    @property
    def valid_count(self) -> int:
        return int(np.count_nonzero(self.valid_mask))

    def cell_centers(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Cell-center coordinates along each axis.

        Returns:
            tuple: (xs, ys) where xs has one entry per column and ys one per row
        """
        xs = self.transform.c + (np.arange(self.width) + 0.5) * self.transform.a
        ys = self.transform.f + (np.arange(self.height) + 0.5) * self.transform.e
        return xs, ys

    def value_range(self) -> Tuple[float, float]:
        """(min, max) over non-null cells, or (nan, nan) for an all-null grid."""
        if self.valid_count == 0:
            return (float("nan"), float("nan"))
        return (float(np.nanmin(self.data)), float(np.nanmax(self.data)))

    def with_data(self, data: np.ndarray, transform: Affine = None) -> "RasterGrid":
        """Return a new grid in the same CRS, optionally with a new transform."""
        return RasterGrid(
            data=data,
            transform=self.transform if transform is None else transform,
            crs=self.crs,
        )

    def window(self, row_slice: slice, col_slice: slice) -> "RasterGrid":
        """Return the sub-grid selected by row/column slices."""
        row_start = row_slice.start or 0
        col_start = col_slice.start or 0
        sub_transform = self.transform @ Affine.translation(col_start, row_start)
        return self.with_data(self.data[row_slice, col_slice], transform=sub_transform)

    def __repr__(self):
        return (
            f"RasterGrid(shape={self.shape}, resolution={self.resolution}, "
            f"crs={self.crs.to_string()}, valid={self.valid_count})"
        )
