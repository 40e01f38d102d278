"""
Grid caching for the relief pipeline.

Implements .npz-based caching with hash validation so that expensive tile
mosaics are not rebuilt on every run. Each entry is a compressed .npz holding
the grid values and transform, plus a JSON sidecar with the CRS and summary
metadata.
"""

import hashlib
import json
import logging
import time
import zipfile
from pathlib import Path
from typing import Iterable, Optional, Tuple

import numpy as np
from affine import Affine

from src.config import RELIEF_CACHE
from src.relief.errors import ReliefError
from src.relief.grid import RasterGrid

logger = logging.getLogger(__name__)


class GridCache:
    """
    Manages caching of RasterGrids with hash validation.

    The cache stores:
    - grid values and transform as a .npz file
    - metadata (CRS, shape, value range, timestamp) as JSON

    Attributes:
        cache_dir: Directory where cache files are stored
        enabled: Whether caching is enabled
    """

    def __init__(self, cache_dir: Optional[Path] = None, enabled: bool = True):
        """
        Initialize grid cache.

        Args:
            cache_dir: Directory for cache files. If None, uses config.RELIEF_CACHE
            enabled: Whether caching is enabled (default: True)
        """
        if cache_dir is None:
            cache_dir = RELIEF_CACHE

        self.cache_dir = Path(cache_dir)
        self.enabled = enabled

        if self.enabled:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Grid cache initialized at: {self.cache_dir}")

    def compute_source_hash(self, source_files: Iterable, params: Optional[dict] = None) -> str:
        """
        Compute hash of source files and processing parameters.

        The cache is invalidated if files are added, removed or modified, or
        if any parameter changes.

        Args:
            source_files: Paths of the raster files the grid was built from
            params: JSON-serializable processing parameters

        Returns:
            SHA256 hash of source file metadata and parameters

        Raises:
            ValueError: If no source files are given
        """
        files = sorted(Path(p) for p in source_files)
        if not files:
            raise ValueError("Cannot hash an empty list of source files")

        metadata_parts = []
        for file_path in files:
            mtime = file_path.stat().st_mtime
            metadata_parts.append(f"{file_path.resolve()}:{mtime}")

        metadata_parts.append(json.dumps(params or {}, sort_keys=True, default=str))

        metadata_str = "|".join(metadata_parts)
        return hashlib.sha256(metadata_str.encode()).hexdigest()

    def get_cache_path(self, source_hash: str, cache_name: str = "mosaic") -> Path:
        """Path of the .npz file for a cache entry."""
        return self.cache_dir / f"{cache_name}_{source_hash}.npz"

    def get_metadata_path(self, source_hash: str, cache_name: str = "mosaic") -> Path:
        """Path of the JSON metadata file for a cache entry."""
        return self.cache_dir / f"{cache_name}_{source_hash}_meta.json"

    def save_grid(
        self, grid: RasterGrid, source_hash: str, cache_name: str = "mosaic"
    ) -> Tuple[Optional[Path], Optional[Path]]:
        """
        Save a grid to the cache.

        Args:
            grid: Grid to store
            source_hash: Hash of the grid's sources
            cache_name: Name of cache item (default: "mosaic")

        Returns:
            Tuple of (cache_file_path, metadata_file_path), or (None, None)
            when caching is disabled
        """
        if not self.enabled:
            return None, None

        cache_path = self.get_cache_path(source_hash, cache_name)
        metadata_path = self.get_metadata_path(source_hash, cache_name)

        start_time = time.time()

        transform_list = list(grid.transform)[:6]
        np.savez_compressed(
            cache_path,
            data=grid.data,
            transform_data=np.array(transform_list, dtype=np.float64),
        )

        low, high = grid.value_range()
        metadata = {
            "source_hash": source_hash,
            "shape": list(grid.shape),
            "dtype": str(grid.data.dtype),
            "min": low,
            "max": high,
            "valid_cells": grid.valid_count,
            "crs": grid.crs.to_wkt(),
            "transform": transform_list,
            "cache_time": time.time(),
        }

        with open(metadata_path, "w") as f:
            json.dump(metadata, f, indent=2)

        elapsed = time.time() - start_time
        logger.info(f"Cached grid to {cache_path.name} ({elapsed:.2f}s)")
        logger.debug(f"Cache size: {cache_path.stat().st_size / (1024*1024):.1f} MB")

        return cache_path, metadata_path

    def load_grid(self, source_hash: str, cache_name: str = "mosaic") -> Optional[RasterGrid]:
        """
        Load a cached grid.

        Args:
            source_hash: Hash of the grid's sources
            cache_name: Name of cache item (default: "mosaic")

        Returns:
            RasterGrid, or None on a cache miss or unreadable entry
        """
        if not self.enabled:
            return None

        cache_path = self.get_cache_path(source_hash, cache_name)
        metadata_path = self.get_metadata_path(source_hash, cache_name)

        if not cache_path.exists() or not metadata_path.exists():
            logger.debug(f"Cache miss: {cache_path.name}")
            return None

        try:
            start_time = time.time()

            with open(metadata_path) as f:
                metadata = json.load(f)

            with np.load(cache_path) as cache_data:
                data = cache_data["data"]
                transform = Affine(*tuple(cache_data["transform_data"]))

            grid = RasterGrid(data=data, transform=transform, crs=metadata["crs"])

            elapsed = time.time() - start_time
            logger.info(f"Loaded grid from cache ({elapsed:.2f}s)")
            logger.debug(f"Cache file: {cache_path.name}, shape: {grid.shape}")
            return grid

        except (OSError, KeyError, ValueError, zipfile.BadZipFile, ReliefError) as e:
            logger.warning(f"Failed to load cache {cache_path.name}: {e}")
            logger.debug("Cache will be regenerated")
            return None

    def clear_cache(self, cache_name: str = "mosaic") -> int:
        """
        Clear all cached files for a given cache name.

        Args:
            cache_name: Name of cache item to clear

        Returns:
            Number of files deleted
        """
        if not self.enabled:
            return 0

        deleted_count = 0
        for cache_file in self.cache_dir.glob(f"{cache_name}_*"):
            try:
                cache_file.unlink()
                deleted_count += 1
                logger.debug(f"Deleted: {cache_file.name}")
            except OSError as e:
                logger.warning(f"Failed to delete {cache_file.name}: {e}")

        logger.info(f"Cleared {deleted_count} cache files for '{cache_name}'")
        return deleted_count

    def get_cache_stats(self) -> dict:
        """
        Get statistics about cached files.

        Returns:
            Dictionary with cache statistics
        """
        stats = {
            "cache_dir": str(self.cache_dir),
            "enabled": self.enabled,
            "cache_files": 0,
            "total_size_mb": 0,
            "files": [],
        }

        if not self.cache_dir.exists():
            return stats

        for cache_file in self.cache_dir.glob("*"):
            if cache_file.is_file():
                size_bytes = cache_file.stat().st_size
                stats["cache_files"] += 1
                stats["total_size_mb"] += size_bytes / (1024 * 1024)
                stats["files"].append(
                    {
                        "name": cache_file.name,
                        "size_mb": size_bytes / (1024 * 1024),
                        "mtime": cache_file.stat().st_mtime,
                    }
                )

        return stats
