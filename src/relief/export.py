"""
Point-sample export.

Flattens grids into (x, y, value) records for a scatter-style plotting layer,
one record per non-null cell at its cell center, in row-major order. The
inverse, points_to_grid, places samples back onto a lattice.
"""

import logging
from typing import Iterable, Iterator, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
from affine import Affine

from src.relief.grid import PointSample, RasterGrid

logger = logging.getLogger(__name__)

POINT_COLUMNS = ["x", "y", "value"]


def _valid_cells(grid: RasterGrid) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Cell-center x, y and values of every non-null cell, row-major."""
    rows, cols = np.nonzero(grid.valid_mask)
    xs, ys = grid.cell_centers()
    return xs[cols], ys[rows], grid.data[rows, cols]


def iter_point_samples(grid: RasterGrid) -> Iterator[PointSample]:
    """Yield a PointSample for each non-null cell, row by row."""
    xs, ys, values = _valid_cells(grid)
    for x, y, value in zip(xs.tolist(), ys.tolist(), values.tolist()):
        yield PointSample(x, y, value)


def grid_to_points(grid: RasterGrid) -> List[PointSample]:
    """
    Export a grid as point samples.

    Args:
        grid: Grid to export

    Returns:
        list: PointSample(x, y, value) per non-null cell, row-major from the
        top-left, coordinates at cell centers in the grid's CRS
    """
    points = list(iter_point_samples(grid))
    logger.info(f"Exported {len(points)} point samples from grid {grid.shape}")
    return points


def grid_to_frame(grid: RasterGrid) -> pd.DataFrame:
    """Export a grid as a DataFrame with x, y and value columns."""
    xs, ys, values = _valid_cells(grid)
    frame = pd.DataFrame({"x": xs, "y": ys, "value": values.astype(np.float64)})
    frame.attrs["crs"] = grid.crs.to_string()
    return frame


def _point_arrays(points) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    if isinstance(points, pd.DataFrame):
        missing = [c for c in POINT_COLUMNS if c not in points.columns]
        if missing:
            raise ValueError(f"Point frame is missing columns: {missing}")
        return (
            points["x"].to_numpy(dtype=np.float64),
            points["y"].to_numpy(dtype=np.float64),
            points["value"].to_numpy(dtype=np.float64),
        )

    records = list(points)
    if not records:
        return np.empty(0), np.empty(0), np.empty(0)
    arr = np.asarray([tuple(p) for p in records], dtype=np.float64)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise ValueError("Points must be (x, y, value) records")
    return arr[:, 0], arr[:, 1], arr[:, 2]


def points_to_grid(
    points: Union[pd.DataFrame, Iterable[PointSample]],
    template: Optional[RasterGrid] = None,
    resolution: Optional[Union[float, Tuple[float, float]]] = None,
    crs=None,
) -> RasterGrid:
    """
    Re-grid point samples.

    Each value lands in the cell whose center the point lies on; cells
    without a sample are null.

    Args:
        points: PointSample records or a DataFrame with x, y, value columns
        template: Grid whose lattice (shape, transform, CRS) to fill
        resolution: Cell size, scalar or (x, y); used with ``crs`` when no
            template is given, the lattice then just covers the points
        crs: CRS of the points when no template is given

    Returns:
        RasterGrid holding the sample values

    Raises:
        ValueError: If neither a template nor resolution and crs are given,
            or if a point falls outside the template
    """
    xs, ys, values = _point_arrays(points)

    if template is not None:
        transform, shape, target_crs = template.transform, template.shape, template.crs
    else:
        if resolution is None or crs is None:
            raise ValueError("points_to_grid needs a template or a resolution and crs")
        if len(values) == 0:
            raise ValueError("Cannot derive a lattice from zero points")
        if np.isscalar(resolution):
            xres = yres = float(resolution)
        else:
            xres, yres = (float(v) for v in resolution)
        left = xs.min() - xres / 2.0
        top = ys.max() + yres / 2.0
        width = int(round((xs.max() - xs.min()) / xres)) + 1
        height = int(round((ys.max() - ys.min()) / yres)) + 1
        transform = Affine(xres, 0.0, left, 0.0, -yres, top)
        shape, target_crs = (height, width), crs

    data = np.full(shape, np.nan, dtype=np.float32)
    if len(values):
        cols = np.floor((xs - transform.c) / transform.a).astype(np.int64)
        rows = np.floor((ys - transform.f) / transform.e).astype(np.int64)
        outside = (rows < 0) | (rows >= shape[0]) | (cols < 0) | (cols >= shape[1])
        if outside.any():
            raise ValueError(f"{int(outside.sum())} points fall outside the target grid")
        data[rows, cols] = values

    logger.debug(f"Re-gridded {len(values)} points onto {shape}")
    return RasterGrid(data=data, transform=transform, crs=target_crs)
