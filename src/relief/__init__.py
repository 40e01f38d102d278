"""
Shaded-relief map processing package.

Core functionality:
- RasterGrid value object with CRS and geotransform
- Tile mosaic, crop/mask and reprojection stages
- Horn slope/aspect and hillshade derivation
- Smoothing and point-sample export
- ReliefPipeline driven by per-region configuration
"""

from .errors import (
    ReliefError,
    IncompatibleGridError,
    EmptyIntersectionError,
    InvalidGeometryError,
    UnsupportedProjectionError,
    TileDownloadError,
)
from .grid import RasterGrid, PointSample
from .mosaic import mosaic_grids
from .crop import crop_to_boundaries, mask_to_boundaries, crop_and_mask
from .reproject import reproject_grid
from .shading import compute_slope_aspect, hillshade, derive_relief, ReliefSurfaces
from .smoothing import downsample_grid, uniform_smooth, smooth_grid, smooth_relief
from .export import iter_point_samples, grid_to_points, grid_to_frame, points_to_grid
from .regions import ReliefParams, RegionConfig, get_region_config
from .pipeline import ReliefPipeline, ReliefResult

__all__ = [
    # Errors
    "ReliefError",
    "IncompatibleGridError",
    "EmptyIntersectionError",
    "InvalidGeometryError",
    "UnsupportedProjectionError",
    "TileDownloadError",
    # Grid
    "RasterGrid",
    "PointSample",
    # Stages
    "mosaic_grids",
    "crop_to_boundaries",
    "mask_to_boundaries",
    "crop_and_mask",
    "reproject_grid",
    "compute_slope_aspect",
    "hillshade",
    "derive_relief",
    "ReliefSurfaces",
    "downsample_grid",
    "uniform_smooth",
    "smooth_grid",
    "smooth_relief",
    "iter_point_samples",
    "grid_to_points",
    "grid_to_frame",
    "points_to_grid",
    # Pipeline
    "ReliefParams",
    "RegionConfig",
    "get_region_config",
    "ReliefPipeline",
    "ReliefResult",
]
