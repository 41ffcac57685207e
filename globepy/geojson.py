"""GeoJSON loading and per-country globe geometry.

Reads GeoJSON country features and builds, for each one, a filled
spherical mesh and a set of outline polylines, raised slightly above the
globe so fills and outlines of visited and unvisited countries do not
z-fight.
"""

import json
import re
import warnings
from pathlib import Path

import numpy as np

from .geo import GLOBE_RADIUS, polygon_outlines
from .triangulate import (
    KEY_DECIMALS,
    MAX_EDGE_LENGTH,
    as_polygons,
    create_polygon_geometry,
)


# Radius multipliers; visited countries sit above unvisited ones and
# outlines above fills.
FILL_OFFSET = 1.001
VISITED_FILL_OFFSET = 1.003
OUTLINE_OFFSET = 1.002
VISITED_OUTLINE_OFFSET = 1.004

_POLYGON_TYPES = ("Polygon", "MultiPolygon")


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _load_geojson(geojson):
    """Load GeoJSON and normalise to [(geometry, properties, id), ...].

    Parameters
    ----------
    geojson : str, Path, or dict
        File path or parsed GeoJSON object.

    Returns
    -------
    list of (dict, dict, object)
        Each entry is (geometry_dict, properties_dict, feature_id).  The
        id is the Feature's ``id`` member, or None.
    """
    if isinstance(geojson, (str, Path)):
        path = Path(geojson)
        if not path.exists():
            raise FileNotFoundError(f"GeoJSON file not found: {path}")
        with open(path) as f:
            geojson = json.load(f)

    if not isinstance(geojson, dict):
        raise TypeError(f"Expected dict, str, or Path, got {type(geojson)}")

    gtype = geojson.get("type")

    if gtype == "FeatureCollection":
        results = []
        for feature in geojson.get("features", []):
            results.extend(_load_geojson(feature))
        return results

    if gtype == "Feature":
        geom = geojson.get("geometry")
        if geom is None:
            return []
        return [(geom, geojson.get("properties") or {}, geojson.get("id"))]

    if gtype == "GeometryCollection":
        return [(g, {}, None) for g in geojson.get("geometries", [])]

    if gtype in ("Point", "MultiPoint", "LineString", "MultiLineString",
                 "Polygon", "MultiPolygon"):
        return [(geojson, {}, None)]

    raise ValueError(f"Unsupported GeoJSON type: {gtype}")


def _sanitize_label(value):
    """Clean a property value for use as a country ID.

    Replaces non-alphanumeric characters with '-' and strips leading/trailing
    dashes.  Returns None when nothing usable is left.
    """
    if value is None:
        return None
    s = re.sub(r"[^a-zA-Z0-9]", "-", str(value)).strip("-")
    return s or None


def _feature_id(feature_id, properties, index):
    """Pick a stable identifier for a country feature."""
    for candidate in (feature_id, properties.get("id"),
                      properties.get("iso_a3"), properties.get("name")):
        label = _sanitize_label(candidate)
        if label is not None:
            return label
    return f"feature-{index}"


# ---------------------------------------------------------------------------
# Coordinate reference systems
# ---------------------------------------------------------------------------

def _build_transformer(crs):
    """Create a pyproj Transformer from ``crs`` to WGS84 lon/lat.

    Returns None when ``crs`` is None (coordinates already lon/lat).
    """
    if crs is None:
        return None
    try:
        from pyproj import Transformer
    except ImportError:
        raise ImportError(
            "pyproj is required for CRS conversion. "
            "Install with: pip install pyproj"
        )
    return Transformer.from_crs(crs, "EPSG:4326", always_xy=True)


def _reproject_polygons(polygons, transformer):
    """Transform every ring of every polygon to lon/lat degrees."""
    out = []
    for polygon in polygons:
        rings = []
        for ring in polygon:
            coords = np.asarray(ring, dtype=np.float64)
            if coords.ndim != 2 or len(coords) == 0:
                rings.append(coords.reshape(0, 2))
                continue
            lon, lat = transformer.transform(coords[:, 0], coords[:, 1])
            rings.append(np.column_stack([lon, lat]))
        out.append(rings)
    return out


# ---------------------------------------------------------------------------
# Globe geometry
# ---------------------------------------------------------------------------

def country_geometries(geojson, visited=(), radius=GLOBE_RADIUS, segments=1,
                       crs=None, max_edge_length=MAX_EDGE_LENGTH,
                       decimals=KEY_DECIMALS):
    """Build fill meshes and outlines for every country in a GeoJSON.

    Parameters
    ----------
    geojson : str, Path, or dict
        FeatureCollection (or any GeoJSON object) of country polygons.
    visited : iterable of str, optional
        IDs of countries to raise as visited.
    radius : float, optional
        Globe radius. Fill and outline radii are derived from it with the
        module's offset multipliers. Default is 1.0.
    segments : int, optional
        Great-circle sub-segments per outline edge. Default is 1.
    crs : str or pyproj.CRS, optional
        Source CRS of the coordinates.  If given, coordinates are
        reprojected to WGS84 lon/lat first (requires pyproj).
    max_edge_length : float, optional
        Longest chord allowed in fill meshes. Default is 0.08.
    decimals : int, optional
        Vertex key quantization for fill meshes. Default is 4.

    Returns
    -------
    dict
        Maps country ID to a dict with keys ``name``, ``visited``,
        ``fill`` ((vertices, indices) or None) and ``outlines`` (list of
        (M, 3) arrays).

    Examples
    --------
    >>> countries = country_geometries("world.geojson", visited={"BEL"})
    >>> verts, indices = countries["BEL"]["fill"]
    """
    visited = set(visited)
    transformer = _build_transformer(crs)

    result = {}
    skipped = 0
    for index, (geometry, props, fid) in enumerate(_load_geojson(geojson)):
        if geometry.get("type") not in _POLYGON_TYPES:
            skipped += 1
            continue

        polygons = as_polygons(geometry)
        if transformer is not None:
            polygons = _reproject_polygons(polygons, transformer)

        country_id = _feature_id(fid, props, index)
        if country_id in result:
            n = 1
            while f"{country_id}-{n}" in result:
                n += 1
            country_id = f"{country_id}-{n}"

        is_visited = country_id in visited
        fill_radius = radius * (VISITED_FILL_OFFSET if is_visited
                                else FILL_OFFSET)
        outline_radius = radius * (VISITED_OUTLINE_OFFSET if is_visited
                                   else OUTLINE_OFFSET)

        multi = {"type": "MultiPolygon", "coordinates": polygons}
        result[country_id] = {
            "name": props.get("name") or "Unknown",
            "visited": is_visited,
            "fill": create_polygon_geometry(
                multi, fill_radius, max_edge_length=max_edge_length,
                decimals=decimals,
            ),
            "outlines": polygon_outlines(multi, outline_radius, segments),
        }

    if skipped:
        warnings.warn(
            f"Skipped {skipped} non-polygon GeoJSON feature(s).",
            stacklevel=2,
        )

    return result
