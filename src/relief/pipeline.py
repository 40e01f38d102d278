"""
Dependency graph pipeline for shaded-relief maps.

Runs every stage for one RegionConfig: boundaries, elevation tiles, mosaic,
crop/mask, reprojection, relief derivation, smoothing and point export.
The tile mosaic is cached on disk with GridCache, keyed by the tile files'
paths and modification times.

Example:
    from src.relief.pipeline import ReliefPipeline
    from src.relief.regions import create_vermont_config

    pipeline = ReliefPipeline(create_vermont_config(), cache_enabled=True)

    # Show execution plan
    pipeline.explain("export")

    result = pipeline.run()
    shade_df, slope_df = result.to_frames()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Tuple

import geopandas as gpd
import pandas as pd

from src.config import TILE_CACHE
from src.relief.cache import GridCache
from src.relief.crop import crop_and_mask, mask_to_boundaries
from src.relief.data_loading import find_dem_files, load_grid_files
from src.relief.export import grid_to_frame, grid_to_points
from src.relief.geometry import load_boundaries, reproject_boundaries, validate_boundaries
from src.relief.grid import PointSample, RasterGrid
from src.relief.mosaic import mosaic_grids
from src.relief.regions import RegionConfig
from src.relief.reproject import reproject_grid
from src.relief.shading import ReliefSurfaces, derive_relief
from src.relief.smoothing import smooth_relief
from src.relief.tiles import fetch_elevation_tiles

logger = logging.getLogger(__name__)

GEOGRAPHIC_CRS = "EPSG:4326"


@dataclass
class ReliefResult:
    """Output of one pipeline run."""

    shade_points: List[PointSample]
    """Smoothed shading intensity samples in the target CRS."""

    slope_points: List[PointSample]
    """Smoothed slope samples (radians), aligned with shade_points' lattice."""

    boundaries: gpd.GeoDataFrame
    """Boundary set re-expressed in the target CRS, for overlay."""

    shade: RasterGrid
    """Smoothed shading grid the shade points were exported from."""

    slope: RasterGrid
    """Smoothed slope grid the slope points were exported from."""

    def to_frames(self) -> Tuple[pd.DataFrame, pd.DataFrame]:
        """Return (shade, slope) as DataFrames with x, y and value columns."""
        return grid_to_frame(self.shade), grid_to_frame(self.slope)


class ReliefPipeline:
    """
    Sequential executor for the shaded-relief pipeline.

    Each stage fully materializes its output before the next starts, and
    stage inputs are dropped as soon as their output exists. Cropping
    happens before reprojection and slope so peak memory follows the
    region, not the tile set.

    Tasks in pipeline:
    1. load_boundaries: Read and filter boundary polygons
    2. load_tiles: Find local tiles or download remote ones
    3. mosaic: Merge tiles into one grid (cached)
    4. crop_mask: Crop and mask in the tiles' CRS
    5. reproject: Resample to the target CRS, re-mask with projected boundaries
    6. derive: Horn slope/aspect and hillshade
    7. smooth: Downsample and 3x3 mean
    8. export: Point samples
    """

    def __init__(
        self,
        region: RegionConfig,
        *,
        boundaries: gpd.GeoDataFrame = None,
        cache_enabled: bool = True,
        force_rebuild: bool = False,
        cache_dir: Path | str = None,
        tile_cache_dir: Path | str = None,
        verbose: bool = True,
    ):
        """
        Initialize relief pipeline.

        Args:
            region: Region configuration to build
            boundaries: Pre-loaded boundary set (skips reading region.boundary)
            cache_enabled: Cache the tile mosaic on disk
            force_rebuild: Ignore cached mosaics (they are still written)
            cache_dir: Custom grid cache directory
            tile_cache_dir: Custom directory for downloaded tiles
            verbose: Log stage progress
        """
        self.region = region
        self.cache_enabled = cache_enabled
        self.force_rebuild = force_rebuild
        self.verbose = verbose
        self.tile_cache_dir = Path(tile_cache_dir) if tile_cache_dir else TILE_CACHE
        self._boundaries = boundaries

        self.grid_cache = GridCache(
            cache_dir=Path(cache_dir) if cache_dir else None, enabled=cache_enabled
        )

        self._task_graph = {
            "load_boundaries": {
                "depends_on": [],
                "description": "Read and filter boundary polygons",
            },
            "load_tiles": {
                "depends_on": ["load_boundaries"],
                "description": "Find local elevation tiles or download remote ones",
            },
            "mosaic": {
                "depends_on": ["load_tiles"],
                "description": "Merge elevation tiles, averaging overlaps",
            },
            "crop_mask": {
                "depends_on": ["mosaic", "load_boundaries"],
                "description": "Crop to boundary extent and mask outside cells",
            },
            "reproject": {
                "depends_on": ["crop_mask"],
                "description": "Resample to target CRS and re-mask",
            },
            "derive": {
                "depends_on": ["reproject"],
                "description": "Horn slope/aspect and hillshade",
            },
            "smooth": {
                "depends_on": ["derive"],
                "description": "Downsample and 3x3 mean filter",
            },
            "export": {
                "depends_on": ["smooth"],
                "description": "Flatten grids to point samples",
            },
        }

    @property
    def cache_name(self) -> str:
        return f"{self.region.name}_mosaic"

    def _should_use_cache(self) -> bool:
        return self.cache_enabled and not self.force_rebuild

    def _log(self, msg: str, *args, level: str = "info"):
        """Log message if verbose with lazy formatting."""
        if self.verbose:
            if level == "info":
                logger.info(msg, *args)
            elif level == "debug":
                logger.debug(msg, *args)
            elif level == "warn":
                logger.warning(msg, *args)

    # ===== Relief Pipeline Tasks =====

    def load_boundaries(self) -> gpd.GeoDataFrame:
        """Task: Read the region's boundary polygons."""
        self._log("[1/8] Loading boundaries for %s", self.region.name)

        if self._boundaries is not None:
            return validate_boundaries(self._boundaries)

        source = self.region.boundary
        return load_boundaries(source.path, where=source.where, layer=source.layer)

    def load_tiles(self, boundaries: gpd.GeoDataFrame) -> List[Path]:
        """
        Task: Resolve the elevation tile files covering the boundaries.

        Local tiles are globbed from the configured directory; otherwise
        remote tiles are downloaded for the boundaries' geographic extent.
        """
        tiles = self.region.tiles

        if not tiles.is_remote:
            self._log("[2/8] Using local tiles from %s", tiles.directory)
            return find_dem_files(tiles.directory, pattern=tiles.pattern, recursive=tiles.recursive)

        geographic = reproject_boundaries(boundaries, GEOGRAPHIC_CRS)
        bounds = tuple(float(v) for v in geographic.total_bounds)
        self._log("[2/8] Fetching tiles for %s at zoom %d", bounds, tiles.zoom)
        return fetch_elevation_tiles(bounds, zoom=tiles.zoom, cache_dir=self.tile_cache_dir)

    def mosaic(self, tile_paths: List[Path]) -> RasterGrid:
        """Task: Merge tiles into one grid, reusing a cached mosaic when possible."""
        self._log("[3/8] Building mosaic from %d tiles", len(tile_paths))

        source_hash = self.grid_cache.compute_source_hash(tile_paths)

        if self._should_use_cache():
            cached = self.grid_cache.load_grid(source_hash, cache_name=self.cache_name)
            if cached is not None:
                self._log("      [Cache HIT] Loaded mosaic %s", cached.shape)
                return cached

        grids = load_grid_files(tile_paths)
        grid = mosaic_grids(grids)
        del grids
        self._log("      [Fresh] Mosaic shape: %s", grid.shape)

        try:
            self.grid_cache.save_grid(grid, source_hash, cache_name=self.cache_name)
        except OSError as e:
            self._log("      [Cache] Failed to save: %s", e, level="warn")

        return grid

    def crop_mask(self, grid: RasterGrid, boundaries: gpd.GeoDataFrame) -> RasterGrid:
        """Task: Crop and mask in the tiles' CRS."""
        self._log("[4/8] Cropping and masking %s", grid.shape)
        return crop_and_mask(grid, boundaries)

    def reproject(
        self, grid: RasterGrid, boundaries: gpd.GeoDataFrame
    ) -> Tuple[RasterGrid, gpd.GeoDataFrame]:
        """
        Task: Resample to the target CRS and re-mask.

        Bilinear resampling pulls values across the boundary edge, so the
        reprojected grid is masked again with the reprojected boundaries.

        Returns:
            (grid, boundaries) both in the target CRS
        """
        self._log("[5/8] Reprojecting to %s", self.region.target_crs)
        projected = reproject_grid(grid, self.region.target_crs, self.region.resolution)
        target_boundaries = reproject_boundaries(boundaries, projected.crs)
        return mask_to_boundaries(projected, target_boundaries), target_boundaries

    def derive(self, grid: RasterGrid) -> ReliefSurfaces:
        """Task: Compute slope, aspect and shading."""
        params = self.region.params
        self._log(
            "[6/8] Deriving relief (exaggeration=%s, azimuth=%s, altitude=%s)",
            params.exaggeration,
            params.azimuth,
            params.altitude,
        )
        return derive_relief(
            grid,
            exaggeration=params.exaggeration,
            azimuth=params.azimuth,
            altitude=params.altitude,
        )

    def smooth(self, surfaces: ReliefSurfaces) -> Tuple[RasterGrid, RasterGrid]:
        """Task: Smooth shading and slope with the same factor."""
        factor = self.region.params.smoothing_factor
        self._log("[7/8] Smoothing with factor %d", factor)
        return smooth_relief(surfaces.shade, surfaces.slope, factor)

    def export(
        self, shade: RasterGrid, slope: RasterGrid
    ) -> Tuple[List[PointSample], List[PointSample]]:
        """Task: Flatten both grids into point samples."""
        self._log("[8/8] Exporting point samples")
        return grid_to_points(shade), grid_to_points(slope)

    # ===== Public API =====

    def run(self) -> ReliefResult:
        """
        Run every task in order.

        Returns:
            ReliefResult with shade and slope point samples

        Raises:
            ReliefError: If any stage fails; no partial result is returned
        """
        boundaries = self.load_boundaries()
        tile_paths = self.load_tiles(boundaries)

        grid = self.mosaic(tile_paths)
        grid = self.crop_mask(grid, boundaries)
        grid, target_boundaries = self.reproject(grid, boundaries)
        del boundaries

        surfaces = self.derive(grid)
        del grid

        shade, slope = self.smooth(surfaces)
        del surfaces

        shade_points, slope_points = self.export(shade, slope)
        self._log(
            "Finished %s: %d shade points, %d slope points",
            self.region.name,
            len(shade_points),
            len(slope_points),
        )

        return ReliefResult(
            shade_points=shade_points,
            slope_points=slope_points,
            boundaries=target_boundaries,
            shade=shade,
            slope=slope,
        )

    def explain(self, task_name: str) -> None:
        """
        Explain what would execute to build a task (show dependency tree).

        Shows:
        - Task dependencies
        - Execution order
        """
        if task_name not in self._task_graph:
            print(f"\nUnknown task: {task_name}")
            print(f"Available tasks: {', '.join(self._task_graph.keys())}")
            return

        print("\n" + "=" * 70)
        print(f"Execution Plan for: {task_name} ({self.region.name})")
        print("=" * 70 + "\n")

        task_info = self._task_graph[task_name]
        print(f"Task: {task_name}")
        print(f"Description: {task_info['description']}")

        if task_info["depends_on"]:
            print("\nDependencies:")
            for dep in task_info["depends_on"]:
                print(f"  - {dep}")

        order = self._compute_execution_order(task_name)
        print("\nExecution order (topological):")
        for i, task in enumerate(order, 1):
            print(f"  {i}. {task}")

    def _compute_execution_order(self, task_name: str) -> List[str]:
        """Topologically sort tasks by dependency."""
        visited = set()
        order = []

        def visit(task: str):
            if task in visited:
                return
            visited.add(task)

            task_info = self._task_graph.get(task)
            if task_info:
                for dep in task_info["depends_on"]:
                    visit(dep)

            order.append(task)

        visit(task_name)
        return order

    def cache_stats(self) -> Dict:
        """Get cache statistics."""
        return self.grid_cache.get_cache_stats()

    def clear_cache(self) -> int:
        """Clear cached mosaics for this region."""
        deleted = self.grid_cache.clear_cache(cache_name=self.cache_name)
        self._log("Cleared %d cache files", deleted)
        return deleted
