"""
Boundary geometry sets.

Boundary sets (one polygon feature per county or state) are only ever used
as crop/mask regions and are never modified in place: validation returns the
frame unchanged and reprojection returns a new frame.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Sequence, Union

import geopandas as gpd
import shapely
from pyproj.exceptions import CRSError as ProjCRSError
from shapely.validation import make_valid

from src.relief.crs import resolve_crs, same_crs
from src.relief.errors import InvalidGeometryError, UnsupportedProjectionError

logger = logging.getLogger(__name__)

POLYGON_TYPES = ("Polygon", "MultiPolygon")


def validate_boundaries(boundaries, repair: bool = False) -> gpd.GeoDataFrame:
    """
    Check that a boundary set is usable as a crop/mask region.

    Args:
        boundaries: GeoDataFrame or GeoSeries of polygon features
        repair: Replace invalid polygons with shapely.make_valid output instead
            of failing (returns a new frame)

    Returns:
        GeoDataFrame: The validated (or repaired) boundary set

    Raises:
        InvalidGeometryError: If the set is empty, has no CRS, or holds null,
            empty, non-polygonal or (without repair) invalid geometries
    """
    if isinstance(boundaries, gpd.GeoSeries):
        boundaries = gpd.GeoDataFrame(geometry=boundaries)
    if not isinstance(boundaries, gpd.GeoDataFrame):
        raise InvalidGeometryError(
            f"Expected a GeoDataFrame or GeoSeries, got {type(boundaries).__name__}"
        )
    if boundaries.empty:
        raise InvalidGeometryError("Boundary set contains no features")
    if boundaries.crs is None:
        raise InvalidGeometryError("Boundary set has no CRS")

    geoms = boundaries.geometry
    if geoms.isna().any() or geoms.is_empty.any():
        raise InvalidGeometryError("Boundary set contains null or empty geometries")

    bad_types = sorted(set(geoms.geom_type) - set(POLYGON_TYPES))
    if bad_types:
        raise InvalidGeometryError(
            f"Boundary set must hold polygons, found: {', '.join(bad_types)}"
        )

    invalid = ~geoms.is_valid
    if invalid.any():
        if not repair:
            raise InvalidGeometryError(
                f"Boundary set contains {int(invalid.sum())} invalid polygons"
            )
        logger.warning(f"Repairing {int(invalid.sum())} invalid boundary polygons")
        fixed = gpd.GeoSeries(
            [g if g.is_valid else _polygonal_part(make_valid(g)) for g in geoms],
            index=geoms.index,
            crs=boundaries.crs,
        )
        repaired = boundaries.set_geometry(fixed)
        return validate_boundaries(repaired, repair=False)

    return boundaries


def _polygonal_part(geom):
    """Keep only the polygonal pieces of a make_valid result."""
    if geom.geom_type in POLYGON_TYPES:
        return geom
    parts = [g for g in getattr(geom, "geoms", []) if g.geom_type in POLYGON_TYPES]
    return shapely.union_all(parts) if parts else shapely.Polygon()


def load_boundaries(
    path: Union[str, Path],
    where: Optional[Dict[str, Union[str, Sequence[str]]]] = None,
    layer: Optional[str] = None,
    repair: bool = True,
) -> gpd.GeoDataFrame:
    """
    Read a boundary set with geopandas and keep the requested features.

    Args:
        path: Any vector file geopandas can read (shapefile, GeoPackage, GeoJSON)
        where: Optional {column: value or values} attribute filter, e.g.
            {"STATE_NAME": "Vermont"} or {"STUSPS": ["NY", "VT"]}
        layer: Optional layer name for multi-layer sources
        repair: Repair invalid polygons instead of failing

    Returns:
        GeoDataFrame with the selected features

    Raises:
        InvalidGeometryError: If the filter matches nothing or the result is unusable
    """
    path = Path(path)
    logger.info(f"Loading boundaries from {path.name}")

    kwargs = {"layer": layer} if layer else {}
    boundaries = gpd.read_file(path, **kwargs)

    if where:
        boundaries = select_features(boundaries, where)

    logger.info(f"  {len(boundaries)} boundary features selected")
    return validate_boundaries(boundaries, repair=repair)


def select_features(
    boundaries: gpd.GeoDataFrame, where: Dict[str, Union[str, Sequence[str]]]
) -> gpd.GeoDataFrame:
    """Filter features by attribute values ({column: value or list of values})."""
    selected = boundaries
    for column, values in where.items():
        if column not in selected.columns:
            raise InvalidGeometryError(f"Boundary set has no attribute '{column}'")
        if isinstance(values, str) or not isinstance(values, Sequence):
            values = [values]
        selected = selected[selected[column].isin(list(values))]

    if selected.empty:
        raise InvalidGeometryError(f"No boundary features match {where}")
    return selected


def reproject_boundaries(boundaries, crs) -> gpd.GeoDataFrame:
    """
    Re-express a boundary set in another CRS.

    Args:
        boundaries: Boundary GeoDataFrame
        crs: Target CRS definition

    Returns:
        GeoDataFrame: New frame in the target CRS (input is untouched)

    Raises:
        InvalidGeometryError: If the boundary set is unusable
        UnsupportedProjectionError: If the CRS cannot be resolved
    """
    boundaries = validate_boundaries(boundaries)
    target = resolve_crs(crs)

    if same_crs(boundaries.crs, target):
        return boundaries.copy()

    try:
        reprojected = boundaries.to_crs(target.to_wkt())
    except ProjCRSError as e:
        raise UnsupportedProjectionError(
            f"Cannot reproject boundaries to {target.to_string()}: {e}"
        ) from e

    logger.info(f"Reprojected {len(reprojected)} boundaries to {target.to_string()}")
    return reprojected


def boundary_union(boundaries: gpd.GeoDataFrame):
    """Dissolve a boundary set into a single (multi)polygon."""
    return shapely.union_all(boundaries.geometry.values)
