"""Pytest configuration and fixtures for relief-maker tests."""
import sys
from pathlib import Path

# Add project root to Python path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import pytest
import numpy as np
import geopandas as gpd
import rasterio
from rasterio.transform import Affine
from shapely.geometry import box

# Projected CRS used by most synthetic grids (UTM 18N, metres)
UTM_CRS = "EPSG:32618"


@pytest.fixture
def make_grid():
    """Factory for RasterGrids on a regular lattice."""
    from src.relief.grid import RasterGrid

    def _make(data, left=500000.0, top=4800000.0, res=30.0, crs=UTM_CRS):
        data = np.asarray(data, dtype=np.float32)
        transform = Affine(res, 0.0, left, 0.0, -res, top)
        return RasterGrid(data=data, transform=transform, crs=crs)

    return _make


@pytest.fixture
def make_boundaries():
    """Factory for boundary sets made of axis-aligned boxes."""

    def _make(*boxes, crs=UTM_CRS, names=None):
        geoms = [box(*b) for b in boxes]
        names = names or [f"feature_{i}" for i in range(len(geoms))]
        return gpd.GeoDataFrame({"NAME": names}, geometry=geoms, crs=crs)

    return _make


@pytest.fixture
def sample_dem():
    """Create a small synthetic DEM for testing."""
    # Create a simple 100x100 elevation grid
    x = np.linspace(-10, 10, 100)
    y = np.linspace(-10, 10, 100)
    X, Y = np.meshgrid(x, y)
    # Create a simple terrain with a peak in the center
    Z = 1000 + 100 * np.exp(-(X**2 + Y**2) / 50)
    return Z.astype(np.float32)


@pytest.fixture
def write_tif():
    """Write a single-band GeoTIFF and return its path."""

    def _write(path, data, left=500000.0, top=4800000.0, res=30.0, crs=UTM_CRS, nodata=None):
        data = np.asarray(data)
        transform = Affine(res, 0.0, left, 0.0, -res, top)
        with rasterio.open(
            path,
            "w",
            driver="GTiff",
            height=data.shape[0],
            width=data.shape[1],
            count=1,
            dtype=data.dtype,
            crs=crs,
            transform=transform,
            nodata=nodata,
        ) as dst:
            dst.write(data, 1)
        return Path(path)

    return _write


@pytest.fixture
def cache_dir(tmp_path):
    """Temporary cache directory for tests."""
    cache = tmp_path / "cache"
    cache.mkdir()
    return cache


@pytest.fixture
def project_root():
    """Get the project root directory."""
    return Path(__file__).parent.parent
