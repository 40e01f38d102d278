"""
Region configurations for the relief pipeline.

A RegionConfig bundles everything that differs between mapped regions:
which boundary features to use, where elevation tiles come from, the target
projection and resolution, relief parameters, and a free-form styling
mapping that is passed through untouched to whatever renders the points.

Presets:
- vermont: Vermont counties, Vermont State Plane
- new_york: New York counties, UTM 18N
- massachusetts: Massachusetts counties, Massachusetts Mainland State Plane
- california: California counties, California Albers
- mississippi_missouri: Upper/Lower Mississippi and Missouri basins, CONUS Albers
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Sequence, Tuple, Union

from src.config import (
    BOUNDARY_DIR,
    DEFAULT_ALTITUDE,
    DEFAULT_AZIMUTH,
    DEFAULT_DEM_PATTERN,
    DEFAULT_EXAGGERATION,
    DEFAULT_SMOOTHING_FACTOR,
    DEFAULT_TILE_ZOOM,
)
from src.relief.crs import resolve_crs
from src.relief.tiles import validate_zoom

COUNTY_BOUNDARIES = BOUNDARY_DIR / "cb_2018_us_county_500k.shp"
WATERSHED_BOUNDARIES = BOUNDARY_DIR / "WBDHU2.shp"


@dataclass
class ReliefParams:
    """
    Parameters of the shaded-relief derivation.

    Attributes:
        exaggeration: Vertical exaggeration applied before slope (e.g. 15)
        azimuth: Light direction in degrees clockwise from north (315 = NW)
        altitude: Light elevation above the horizon in degrees
        smoothing_factor: Integer downsampling factor before the 3x3 mean
    """

    exaggeration: float = DEFAULT_EXAGGERATION
    azimuth: float = DEFAULT_AZIMUTH
    altitude: float = DEFAULT_ALTITUDE
    smoothing_factor: int = DEFAULT_SMOOTHING_FACTOR

    def __post_init__(self):
        if not self.exaggeration > 0:
            raise ValueError(f"Exaggeration must be positive, got {self.exaggeration}")
        if not 0 <= self.altitude <= 90:
            raise ValueError(f"Altitude must be within [0, 90] degrees, got {self.altitude}")
        if (
            isinstance(self.smoothing_factor, bool)
            or not isinstance(self.smoothing_factor, int)
            or self.smoothing_factor < 1
        ):
            raise ValueError(
                f"Smoothing factor must be a positive integer, got {self.smoothing_factor!r}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "exaggeration": self.exaggeration,
            "azimuth": self.azimuth,
            "altitude": self.altitude,
            "smoothing_factor": self.smoothing_factor,
        }


@dataclass
class BoundarySource:
    """
    Where to read boundary polygons from.

    Attributes:
        path: Vector file readable by geopandas
        where: Attribute filter {column: value or values}, None keeps every feature
        layer: Layer name for multi-layer sources
    """

    path: Path
    where: Optional[Dict[str, Union[str, Sequence[str]]]] = None
    layer: Optional[str] = None


@dataclass
class TileSource:
    """
    Where elevation tiles come from.

    A local ``directory`` wins; otherwise tiles are downloaded at ``zoom``
    for the boundary extent.
    """

    directory: Optional[Path] = None
    pattern: str = DEFAULT_DEM_PATTERN
    recursive: bool = False
    zoom: int = DEFAULT_TILE_ZOOM

    def __post_init__(self):
        validate_zoom(self.zoom)

    @property
    def is_remote(self) -> bool:
        return self.directory is None


@dataclass
class RegionConfig:
    """
    Complete configuration for one relief map.

    Attributes:
        name: Region identifier, used in cache keys and log messages
        boundary: Boundary polygon source
        target_crs: Output CRS (EPSG code, "EPSG:xxxx", WKT or PROJ string)
        resolution: Output cell size in target CRS units, scalar or (x, y)
        tiles: Elevation tile source
        params: Relief derivation parameters
        styling: Rendering options passed through untouched
    """

    name: str
    boundary: BoundarySource
    target_crs: Union[str, int]
    resolution: Union[float, Tuple[float, float]]
    tiles: TileSource = field(default_factory=TileSource)
    params: ReliefParams = field(default_factory=ReliefParams)
    styling: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # Fail on an unusable projection before any download starts
        resolve_crs(self.target_crs)

    def with_tiles(
        self,
        directory=None,
        pattern: str = DEFAULT_DEM_PATTERN,
        zoom: int = None,
        recursive: bool = None,
    ):
        """
        Return a copy reading tiles from a local directory or another zoom level.

        ``zoom`` and ``recursive`` keep the current tile source's values when
        left as None.
        """
        tiles = TileSource(
            directory=Path(directory) if directory is not None else None,
            pattern=pattern,
            recursive=self.tiles.recursive if recursive is None else recursive,
            zoom=self.tiles.zoom if zoom is None else zoom,
        )
        return replace(self, tiles=tiles)


def _county_source(state_fips: str) -> BoundarySource:
    return BoundarySource(path=COUNTY_BOUNDARIES, where={"STATEFP": state_fips})


def create_vermont_config() -> RegionConfig:
    """Vermont counties in NAD83 / Vermont (metres)."""
    return RegionConfig(
        name="vermont",
        boundary=_county_source("50"),
        target_crs="EPSG:32145",
        resolution=100.0,
        tiles=TileSource(zoom=9),
        styling={
            "cmap": "Greys_r",
            "point_size": 0.6,
            "slope_size_range": (0.1, 1.2),
            "boundary_color": "#4d4d4d",
            "boundary_linewidth": 0.4,
        },
    )


def create_new_york_config() -> RegionConfig:
    """New York counties in UTM zone 18N."""
    return RegionConfig(
        name="new_york",
        boundary=_county_source("36"),
        target_crs="EPSG:32618",
        resolution=250.0,
        tiles=TileSource(zoom=8),
        styling={
            "cmap": "Greys_r",
            "point_size": 0.3,
            "slope_size_range": (0.05, 0.8),
            "boundary_color": "#4d4d4d",
            "boundary_linewidth": 0.3,
        },
    )


def create_massachusetts_config() -> RegionConfig:
    """Massachusetts counties in NAD83 / Massachusetts Mainland."""
    return RegionConfig(
        name="massachusetts",
        boundary=_county_source("25"),
        target_crs="EPSG:26986",
        resolution=100.0,
        tiles=TileSource(zoom=9),
        styling={
            "cmap": "Greys_r",
            "point_size": 0.5,
            "slope_size_range": (0.1, 1.0),
            "boundary_color": "#4d4d4d",
            "boundary_linewidth": 0.4,
        },
    )


def create_california_config() -> RegionConfig:
    """California counties in California Albers."""
    return RegionConfig(
        name="california",
        boundary=_county_source("06"),
        target_crs="EPSG:3310",
        resolution=500.0,
        tiles=TileSource(zoom=7),
        styling={
            "cmap": "Greys_r",
            "point_size": 0.2,
            "slope_size_range": (0.02, 0.6),
            "boundary_color": "#666666",
            "boundary_linewidth": 0.2,
        },
    )


def create_mississippi_missouri_config() -> RegionConfig:
    """Upper/Lower Mississippi and Missouri basins (HUC2 07, 08, 10) in CONUS Albers."""
    return RegionConfig(
        name="mississippi_missouri",
        boundary=BoundarySource(path=WATERSHED_BOUNDARIES, where={"huc2": ["07", "08", "10"]}),
        target_crs="EPSG:5070",
        resolution=2000.0,
        tiles=TileSource(zoom=6),
        params=ReliefParams(exaggeration=25.0),
        styling={
            "cmap": "Greys_r",
            "point_size": 0.1,
            "slope_size_range": (0.01, 0.4),
            "boundary_color": "#1f4e79",
            "boundary_linewidth": 0.5,
        },
    )


REGION_PRESETS: Dict[str, Callable[[], RegionConfig]] = {
    "vermont": create_vermont_config,
    "new_york": create_new_york_config,
    "massachusetts": create_massachusetts_config,
    "california": create_california_config,
    "mississippi_missouri": create_mississippi_missouri_config,
}


def get_region_config(name: str) -> RegionConfig:
    """
    Build the preset configuration for a named region.

    Raises:
        ValueError: If no preset has that name
    """
    try:
        factory = REGION_PRESETS[name]
    except KeyError:
        raise ValueError(
            f"Unknown region '{name}'. Available: {list(REGION_PRESETS.keys())}"
        ) from None
    return factory()
