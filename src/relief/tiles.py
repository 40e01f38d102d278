"""
Remote elevation tile source.

Downloads GeoTIFF elevation tiles (Mapzen / Amazon terrain tiles,
https://registry.opendata.aws/terrain-tiles/) covering a geographic bounding
box at one Web Mercator zoom level.

Tiles are cached on disk as ``{cache_dir}/{z}/{x}/{y}.tif``; cached tiles are
never downloaded again.

Usage::

    from src.relief.tiles import fetch_elevation_tiles

    bounds = (-73.44, 42.72, -71.46, 45.02)  # west, south, east, north
    paths = fetch_elevation_tiles(bounds, zoom=8)
"""

import logging
import time
from pathlib import Path
from typing import List, Optional, Tuple, Union

import mercantile
import requests
from tqdm import tqdm

from src.config import (
    DEFAULT_TILE_ZOOM,
    ELEVATION_TILE_URL,
    MAX_TILE_ZOOM,
    TILE_CACHE,
    TILE_DOWNLOAD_RETRIES,
    TILE_DOWNLOAD_TIMEOUT,
)
from src.relief.errors import TileDownloadError

logger = logging.getLogger(__name__)

Bounds = Tuple[float, float, float, float]


def validate_zoom(zoom: int) -> int:
    """Return ``zoom`` if it is an integer within [0, MAX_TILE_ZOOM]."""
    if isinstance(zoom, bool) or not isinstance(zoom, int):
        raise ValueError(f"Zoom level must be an integer, got {zoom!r}")
    if not 0 <= zoom <= MAX_TILE_ZOOM:
        raise ValueError(f"Zoom level must be within [0, {MAX_TILE_ZOOM}], got {zoom}")
    return zoom


def tiles_for_bounds(bounds: Bounds, zoom: int = DEFAULT_TILE_ZOOM) -> List[mercantile.Tile]:
    """
    List the Web Mercator tiles covering a geographic bounding box.

    Args:
        bounds: (west, south, east, north) in decimal degrees
        zoom: Tile pyramid level in [0, 15]

    Returns:
        list of mercantile.Tile

    Raises:
        ValueError: If the zoom is out of range or the bounds are inverted
    """
    validate_zoom(zoom)
    west, south, east, north = (float(v) for v in bounds)
    if west > east or south > north:
        raise ValueError(f"Bounds must be (west, south, east, north), got {bounds}")

    return list(mercantile.tiles(west, south, east, north, [zoom], truncate=True))


def tile_file_path(tile: mercantile.Tile, cache_dir: Union[str, Path] = TILE_CACHE) -> Path:
    """Return the cache path for a tile."""
    return Path(cache_dir) / str(tile.z) / str(tile.x) / f"{tile.y}.tif"


def download_tile(
    tile: mercantile.Tile,
    cache_dir: Union[str, Path] = TILE_CACHE,
    url_template: str = ELEVATION_TILE_URL,
    max_retries: int = TILE_DOWNLOAD_RETRIES,
    timeout: float = TILE_DOWNLOAD_TIMEOUT,
    retry_delay: float = 1.0,
    session: Optional[requests.Session] = None,
) -> Optional[Path]:
    """
    Download one elevation tile into the cache.

    Args:
        tile: Tile to fetch
        cache_dir: Root of the tile cache
        url_template: URL with {z}, {x} and {y} placeholders
        max_retries: Attempts before giving up
        timeout: Per-request timeout in seconds
        retry_delay: Base delay between attempts (grows linearly)
        session: Optional requests session to reuse connections

    Returns:
        Path to the cached tile, or None if the service has no such tile (404)

    Raises:
        TileDownloadError: If every attempt fails
    """
    file_path = tile_file_path(tile, cache_dir)
    if file_path.exists():
        logger.debug(f"Tile {tile.z}/{tile.x}/{tile.y} already cached")
        return file_path

    file_path.parent.mkdir(parents=True, exist_ok=True)
    url = url_template.format(z=tile.z, x=tile.x, y=tile.y)
    getter = session.get if session is not None else requests.get
    last_error = None

    for attempt in range(1, max_retries + 1):
        try:
            with getter(url, stream=True, timeout=timeout) as resp:
                if resp.status_code == 404:
                    logger.warning(f"No elevation tile at {url}, skipping")
                    return None
                resp.raise_for_status()

                partial = file_path.with_suffix(".part")
                with open(partial, "wb") as f:
                    for chunk in resp.iter_content(chunk_size=8192):
                        f.write(chunk)
            partial.replace(file_path)
            return file_path

        except requests.exceptions.RequestException as e:
            last_error = e
            logger.warning(f"Attempt {attempt}/{max_retries} for {url} failed: {e}")
            if attempt < max_retries and retry_delay > 0:
                time.sleep(retry_delay * attempt)

    raise TileDownloadError(
        f"Failed to download {url} after {max_retries} attempts: {last_error}"
    )


def fetch_elevation_tiles(
    bounds: Bounds,
    zoom: int = DEFAULT_TILE_ZOOM,
    cache_dir: Union[str, Path] = TILE_CACHE,
    url_template: str = ELEVATION_TILE_URL,
    max_retries: int = TILE_DOWNLOAD_RETRIES,
    timeout: float = TILE_DOWNLOAD_TIMEOUT,
    retry_delay: float = 1.0,
) -> List[Path]:
    """
    Download (or reuse cached) elevation tiles covering a bounding box.

    Args:
        bounds: (west, south, east, north) in decimal degrees
        zoom: Tile pyramid level in [0, 15]
        cache_dir: Root of the tile cache
        url_template: URL with {z}, {x} and {y} placeholders
        max_retries: Attempts per tile
        timeout: Per-request timeout in seconds
        retry_delay: Base delay between attempts

    Returns:
        list: Paths of the cached GeoTIFF tiles

    Raises:
        ValueError: If the zoom or bounds are invalid
        TileDownloadError: If a tile cannot be downloaded, or no tile exists
    """
    tiles = tiles_for_bounds(bounds, zoom)
    logger.info(f"Fetching {len(tiles)} elevation tiles at zoom {zoom}")

    paths = []
    with requests.Session() as session:
        for tile in tqdm(tiles, desc="Downloading DEM TIFs", unit=" tiles"):
            path = download_tile(
                tile,
                cache_dir=cache_dir,
                url_template=url_template,
                max_retries=max_retries,
                timeout=timeout,
                retry_delay=retry_delay,
                session=session,
            )
            if path is not None:
                paths.append(path)

    if not paths:
        raise TileDownloadError(f"No elevation tiles available for bounds {bounds}")

    logger.info(f"{len(paths)} elevation tiles ready in {cache_dir}")
    return paths
