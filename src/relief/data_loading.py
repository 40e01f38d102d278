"""
Data loading operations for relief processing.

This module contains functions for loading elevation rasters from disk into
RasterGrid objects. Merging is done separately by src.relief.mosaic so that
overlap handling stays explicit.
"""

import logging
from pathlib import Path
from typing import List

import numpy as np
import rasterio
from tqdm import tqdm

from src.relief.grid import RasterGrid

logger = logging.getLogger(__name__)

SUPPORTED_DTYPES = ("int16", "int32", "uint16", "float32", "float64")


def load_grid(path) -> RasterGrid:
    """
    Load band 1 of a raster file as a RasterGrid.

    The file's nodata marker (and any masked cells) become NaN, so downstream
    code never sees sentinel values such as -32768 or -999.

    Args:
        path: Path to a raster readable by rasterio (GeoTIFF, HGT, ...)

    Returns:
        RasterGrid with float32 data

    Raises:
        ValueError: If the raster has no bands or no CRS
        rasterio.errors.RasterioIOError: If the file cannot be opened
    """
    path = Path(path)
    with rasterio.open(path) as src:
        if src.count == 0:
            raise ValueError(f"No raster bands found in {path.name}")
        if src.crs is None:
            raise ValueError(f"Raster has no CRS defined: {path.name}")

        band = src.read(1, masked=True)
        data = band.astype(np.float32).filled(np.nan)

        grid = RasterGrid(data=data, transform=src.transform, crs=src.crs)

    logger.debug(f"Loaded {path.name}: {grid.shape}, {grid.valid_count} valid cells")
    return grid


def load_dem_files(
    directory_path: str, pattern: str = "*.tif", recursive: bool = False
) -> List[RasterGrid]:
    """
    Load every DEM file in a directory matching a pattern.

    Supports any raster format readable by rasterio (HGT, GeoTIFF, etc.).
    Files that cannot be opened or carry unexpected data types are logged
    and skipped.

    Args:
        directory_path: Path to directory containing DEM files
        pattern: File pattern to match (default: "*.tif")
        recursive: Whether to search subdirectories recursively (default: False)

    Returns:
        list: RasterGrid per readable file, in sorted filename order

    Raises:
        ValueError: If the directory doesn't exist, has no matching files,
            or none of the matching files could be read
    """
    return load_grid_files(find_dem_files(directory_path, pattern, recursive))


def find_dem_files(directory_path, pattern: str = "*.tif", recursive: bool = False) -> List[Path]:
    """
    List DEM files in a directory matching a pattern, sorted by path.

    Raises:
        ValueError: If the directory doesn't exist or has no matching files
    """
    logger.info(f"Searching for DEM files matching '{pattern}' in: {directory_path}")

    directory = Path(directory_path)

    if not directory.exists():
        raise ValueError(f"Directory does not exist: {directory}")

    if not directory.is_dir():
        raise ValueError(f"Path is not a directory: {directory}")

    glob_func = directory.rglob if recursive else directory.glob
    dem_files = sorted(glob_func(pattern))

    if not dem_files:
        raise ValueError(f"No files matching '{pattern}' found in {directory}")

    return dem_files


def load_grid_files(paths) -> List[RasterGrid]:
    """
    Load a list of raster files, skipping unreadable ones.

    Args:
        paths: Iterable of raster file paths

    Returns:
        list: RasterGrid per readable file, in input order

    Raises:
        ValueError: If no file could be loaded
    """
    grids = []
    with tqdm(list(paths), desc="Opening DEM files") as pbar:
        for file in pbar:
            try:
                with rasterio.open(file) as ds:
                    dtype = ds.dtypes[0] if ds.count else None
                if dtype not in SUPPORTED_DTYPES:
                    logger.warning(f"Unexpected data type in {file}: {dtype}")
                    continue
                grids.append(load_grid(file))
                pbar.set_postfix({"opened": len(grids)})
            except rasterio.errors.RasterioIOError as e:
                logger.warning(f"Failed to open {file}: {str(e)}")
                continue
            except ValueError as e:
                logger.warning(f"Skipping {file}: {str(e)}")
                continue

    if not grids:
        raise ValueError("No valid DEM files could be opened")

    logger.info(f"Successfully opened {len(grids)} DEM files")
    return grids
