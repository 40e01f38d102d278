"""Configuration module for relief-maker project.

Centralizes data paths and configuration settings.
"""
from pathlib import Path

# Project root
PROJECT_ROOT = Path(__file__).parent.parent

# Data directories
DATA_DIR = PROJECT_ROOT / "data"
BOUNDARY_DIR = DATA_DIR / "boundaries"
DEM_DIR = DATA_DIR / "dem"
OUTPUT_DIR = DATA_DIR / "output"

# Cache directories (created as needed)
CACHE_DIR = DATA_DIR / "cache"
TILE_CACHE = CACHE_DIR / "tiles"
RELIEF_CACHE = CACHE_DIR / "relief"

# Ensure cache directories exist
for cache_dir in [TILE_CACHE, RELIEF_CACHE]:
    cache_dir.mkdir(parents=True, exist_ok=True)

# Default settings
DEFAULT_DEM_PATTERN = "*.tif"
DEFAULT_LOG_LEVEL = "INFO"

# Remote elevation tiles (Mapzen/AWS terrain tiles, GeoTIFF flavor, EPSG:3857)
ELEVATION_TILE_URL = "https://s3.amazonaws.com/elevation-tiles-prod/geotiff/{z}/{x}/{y}.tif"
DEFAULT_TILE_ZOOM = 7
MAX_TILE_ZOOM = 15
TILE_DOWNLOAD_RETRIES = 3
TILE_DOWNLOAD_TIMEOUT = 60

# Relief defaults
DEFAULT_EXAGGERATION = 15.0
DEFAULT_AZIMUTH = 315.0
DEFAULT_ALTITUDE = 45.0
DEFAULT_SMOOTHING_FACTOR = 5
