"""Spherical polygon triangulation.

Turns GeoJSON longitude/latitude polygon rings into indexed triangle
meshes that follow the sphere's curvature.  Each outer ring is ear-clipped
in the lon/lat plane, lifted onto the sphere, and its triangles are split
with spherical midpoints until no chord is longer than
``MAX_EDGE_LENGTH``.  Edge midpoints are shared through a per-call cache
keyed on quantized vertex positions, so neighbouring triangles meet
without cracks.
"""

import math
import numbers

import numba as nb
import numpy as np

from .geo import GLOBE_RADIUS, lat_lng_to_points
from .mesh import merge_meshes


# Longest chord allowed after subdivision (unit sphere units)
MAX_EDGE_LENGTH = 0.08
# Decimal places used to quantize vertex positions into keys
KEY_DECIMALS = 4
# Degrees: first/last points closer than this close the ring
CLOSING_EPSILON = 1e-4
# Radians: below this angle slerp falls back to a normalized lerp
SLERP_EPSILON = 1e-4


# ---------------------------------------------------------------------------
# Geometry shape dispatch
# ---------------------------------------------------------------------------

def _is_sequence(value):
    return isinstance(value, (list, tuple, np.ndarray))


def geometry_kind(coordinates):
    """Tell a Polygon's ring list from a MultiPolygon's polygon list.

    Parameters
    ----------
    coordinates : sequence
        Bare GeoJSON coordinates.

    Returns
    -------
    str
        ``"MultiPolygon"`` when a number first appears four levels deep,
        ``"Polygon"`` otherwise (empty input included).
    """
    depth = 0
    node = coordinates
    while _is_sequence(node) and len(node) > 0:
        node = node[0]
        depth += 1
    if isinstance(node, numbers.Real) and depth >= 4:
        return "MultiPolygon"
    return "Polygon"


def as_polygons(geometry):
    """Normalize a Polygon or MultiPolygon into a list of polygons.

    Parameters
    ----------
    geometry : dict or sequence
        GeoJSON geometry object of type Polygon or MultiPolygon, or the
        bare coordinates of either.

    Returns
    -------
    list
        List of polygons, each a list of rings.

    Raises
    ------
    ValueError
        If a geometry dict has a type other than Polygon/MultiPolygon.
    TypeError
        If ``geometry`` is neither a dict nor a sequence.
    """
    if isinstance(geometry, dict):
        gtype = geometry.get("type")
        coords = geometry.get("coordinates")
        if coords is None:
            coords = []
        if gtype not in ("Polygon", "MultiPolygon"):
            raise ValueError(f"Unsupported geometry type for polygon mesh: "
                             f"{gtype}")
    elif _is_sequence(geometry):
        coords = geometry
        gtype = geometry_kind(coords)
    else:
        raise TypeError(f"Expected dict or sequence, got {type(geometry)}")

    if gtype == "MultiPolygon":
        return list(coords)
    return [coords]


# ---------------------------------------------------------------------------
# 2D triangulation
# ---------------------------------------------------------------------------

def normalize_antimeridian(ring):
    """Make a ring that crosses +/-180 longitude contiguous.

    If any step between consecutive points jumps more than 180 degrees in
    longitude, every negative longitude is shifted by +360.  Rings that
    really span more than 180 degrees without crossing the antimeridian
    are shifted too.

    Parameters
    ----------
    ring : array-like
        (N, 2) ``[lon, lat]`` coordinates.

    Returns
    -------
    np.ndarray
        (N, 2) float64 array.
    """
    coords = np.array(ring, dtype=np.float64)[:, :2]
    if len(coords) < 2:
        return coords

    if np.any(np.abs(np.diff(coords[:, 0])) > 180.0):
        lon = coords[:, 0]
        lon[lon < 0] += 360.0
    return coords


@nb.njit
def _cross2(ax, ay, bx, by, cx, cy):
    """Cross product of vectors (b-a) and (c-a)."""
    return (bx - ax) * (cy - ay) - (by - ay) * (cx - ax)


@nb.njit
def _point_in_tri(px, py, ax, ay, bx, by, cx, cy):
    d1 = _cross2(ax, ay, bx, by, px, py)
    d2 = _cross2(bx, by, cx, cy, px, py)
    d3 = _cross2(cx, cy, ax, ay, px, py)
    has_neg = (d1 < 0) or (d2 < 0) or (d3 < 0)
    has_pos = (d1 > 0) or (d2 > 0) or (d3 > 0)
    return not (has_neg and has_pos)


@nb.njit
def _same_point(xy, i, j):
    return xy[i, 0] == xy[j, 0] and xy[i, 1] == xy[j, 1]


@nb.njit
def _is_ear(xy, nxt, a, b, c):
    """True when no remaining vertex lies inside triangle (a, b, c).

    Vertices sitting exactly on one of the triangle's corners do not
    block it, so rings that touch themselves at a shared coordinate
    still yield ears.
    """
    ax, ay = xy[a, 0], xy[a, 1]
    bx, by = xy[b, 0], xy[b, 1]
    cx, cy = xy[c, 0], xy[c, 1]
    p = nxt[c]
    while p != a:
        if not (_same_point(xy, p, a) or _same_point(xy, p, b)
                or _same_point(xy, p, c)):
            if _point_in_tri(xy[p, 0], xy[p, 1], ax, ay, bx, by, cx, cy):
                return False
        p = nxt[p]
    return True


@nb.njit
def _ear_clip_cpu(xy, ccw, tris):
    """Ear clipping over a doubly linked ring; returns the triangle count."""
    n = xy.shape[0]
    prv = np.empty(n, np.int64)
    nxt = np.empty(n, np.int64)
    for i in range(n):
        prv[i] = (i - 1) % n
        nxt[i] = (i + 1) % n

    count = 0
    remaining = n
    misses = 0
    i = 0
    while remaining > 3:
        a = prv[i]
        c = nxt[i]
        cross = _cross2(xy[a, 0], xy[a, 1], xy[i, 0], xy[i, 1],
                        xy[c, 0], xy[c, 1])
        clipped = False
        if cross == 0.0:
            # Collinear vertex lying between its neighbours adds no area
            dot = ((xy[i, 0] - xy[a, 0]) * (xy[c, 0] - xy[i, 0])
                   + (xy[i, 1] - xy[a, 1]) * (xy[c, 1] - xy[i, 1]))
            clipped = dot >= 0.0
        elif (cross > 0) == ccw and _is_ear(xy, nxt, a, i, c):
            tris[count, 0] = a
            tris[count, 1] = i
            tris[count, 2] = c
            count += 1
            clipped = True

        if clipped:
            nxt[a] = c
            prv[c] = a
            remaining -= 1
            misses = 0
            i = c
        else:
            misses += 1
            if misses >= remaining:
                break
            i = nxt[i]

    # Three vertices left, or no ear found in a self-intersecting ring:
    # fan from the current vertex, keeping only triangles wound like the ring
    b = nxt[i]
    while nxt[b] != i:
        c = nxt[b]
        cross = _cross2(xy[i, 0], xy[i, 1], xy[b, 0], xy[b, 1],
                        xy[c, 0], xy[c, 1])
        if cross != 0.0 and (cross > 0) == ccw:
            tris[count, 0] = i
            tris[count, 1] = b
            tris[count, 2] = c
            count += 1
        b = c
    return count


def _ear_clip_2d(xy):
    """Triangulate a simple polygon using ear clipping (2D).

    Parameters
    ----------
    xy : np.ndarray
        (N, 2) array of 2D polygon vertices (no closing duplicate).

    Returns
    -------
    list of (int, int, int)
        Triangle index triples referencing the input vertex array, wound
        the same way as the input ring.  Empty for zero-area rings.
    """
    xy = np.asarray(xy, dtype=np.float64)
    N = len(xy)
    if N < 3:
        return []
    xy = np.ascontiguousarray(xy[:, :2])

    x = xy[:, 0]
    y = xy[:, 1]
    area2 = float(np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y))
    if area2 == 0.0:
        return []

    tris = np.empty((N, 3), dtype=np.int64)
    count = _ear_clip_cpu(xy, area2 > 0, tris)
    return [(int(a), int(b), int(c)) for a, b, c in tris[:count]]


# ---------------------------------------------------------------------------
# Spherical subdivision
# ---------------------------------------------------------------------------

def slerp(a, b, t, radius=GLOBE_RADIUS):
    """Spherical linear interpolation between two 3D points.

    Parameters
    ----------
    a, b : array-like
        (3,) points; only their directions matter.
    t : float
        Interpolation parameter in [0, 1].
    radius : float, optional
        Radius of the returned point. Default is 1.0.

    Returns
    -------
    np.ndarray
        (3,) float64 point at distance ``radius`` from the origin.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    n1 = a / np.linalg.norm(a)
    n2 = b / np.linalg.norm(b)

    dot = min(1.0, max(-1.0, float(np.dot(n1, n2))))
    theta = math.acos(dot)

    if theta < SLERP_EPSILON:
        result = a + (b - a) * t
    else:
        sin_theta = math.sin(theta)
        wa = math.sin((1.0 - t) * theta) / sin_theta
        wb = math.sin(t * theta) / sin_theta
        result = wa * n1 + wb * n2

    return result / np.linalg.norm(result) * radius


def vertex_key(point, decimals=KEY_DECIMALS):
    """Quantized, hashable identity of a 3D point."""
    # + 0.0 folds -0.0 into 0.0
    return (round(float(point[0]), decimals) + 0.0,
            round(float(point[1]), decimals) + 0.0,
            round(float(point[2]), decimals) + 0.0)


def edge_key(key0, key1):
    """Order-independent identity of the edge between two vertex keys."""
    return (key0, key1) if key0 <= key1 else (key1, key0)


def _edge_midpoint(v0, v1, key0, key1, radius, edge_midpoints, decimals):
    ekey = edge_key(key0, key1)
    cached = edge_midpoints.get(ekey)
    if cached is not None:
        return cached

    # Same endpoint order whichever side reaches the edge first
    if key1 < key0:
        v0, v1 = v1, v0
    midpoint = slerp(v0, v1, 0.5, radius)
    cached = (midpoint, vertex_key(midpoint, decimals))
    edge_midpoints[ekey] = cached
    return cached


def _get_or_add_vertex(v, key, vertices, vertex_map):
    index = vertex_map.get(key)
    if index is None:
        index = len(vertices)
        vertices.append(v)
        vertex_map[key] = index
    return index


def subdivide_spherical_triangle(v0, v1, v2, key0, key1, key2, radius,
                                 max_edge_length, vertices, indices,
                                 vertex_map, edge_midpoints,
                                 decimals=KEY_DECIMALS):
    """Split a spherical triangle until all its chords are short enough.

    Triangles whose longest straight-line edge is at most
    ``max_edge_length`` are emitted as they are.  Longer ones are split
    into four through the slerp midpoints of their edges, and each part
    is processed again.

    Parameters
    ----------
    v0, v1, v2 : np.ndarray
        (3,) corner positions on the sphere.
    key0, key1, key2 : tuple
        :func:`vertex_key` of each corner.
    radius : float
        Sphere radius for new midpoints.
    max_edge_length : float
        Longest chord allowed in emitted triangles.
    vertices : list
        Output positions; new vertices are appended.
    indices : list
        Output triangle indices; three are appended per triangle.
    vertex_map : dict
        Vertex key -> index into ``vertices``.
    edge_midpoints : dict
        Edge key -> ``(midpoint, midpoint_key)``.  Shared by every
        triangle of one ring so common edges split at the same point.
    decimals : int, optional
        Quantization used for midpoint keys. Default is 4.
    """
    stack = [(v0, v1, v2, key0, key1, key2)]
    while stack:
        # LIFO with children pushed in reverse keeps the recursive order
        a, b, c, ka, kb, kc = stack.pop()
        edge_ab = np.linalg.norm(a - b)
        edge_bc = np.linalg.norm(b - c)
        edge_ca = np.linalg.norm(c - a)

        if max(edge_ab, edge_bc, edge_ca) <= max_edge_length:
            indices.append(_get_or_add_vertex(a, ka, vertices, vertex_map))
            indices.append(_get_or_add_vertex(b, kb, vertices, vertex_map))
            indices.append(_get_or_add_vertex(c, kc, vertices, vertex_map))
            continue

        m_ab, k_ab = _edge_midpoint(a, b, ka, kb, radius,
                                    edge_midpoints, decimals)
        m_bc, k_bc = _edge_midpoint(b, c, kb, kc, radius,
                                    edge_midpoints, decimals)
        m_ca, k_ca = _edge_midpoint(c, a, kc, ka, radius,
                                    edge_midpoints, decimals)

        stack.append((m_ab, m_bc, m_ca, k_ab, k_bc, k_ca))
        stack.append((m_ca, m_bc, c, k_ca, k_bc, kc))
        stack.append((m_ab, b, m_bc, k_ab, kb, k_bc))
        stack.append((a, m_ab, m_ca, ka, k_ab, k_ca))


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------

def triangulate_spherical_polygon(ring, radius=GLOBE_RADIUS,
                                  max_edge_length=MAX_EDGE_LENGTH,
                                  decimals=KEY_DECIMALS):
    """Triangulate one polygon ring onto the sphere.

    Parameters
    ----------
    ring : array-like
        Sequence of ``[lon, lat]`` points in degrees, optionally closed
        (last point repeating the first).
    radius : float, optional
        Sphere radius. Default is 1.0.
    max_edge_length : float, optional
        Longest chord allowed after subdivision. Default is 0.08.
    decimals : int, optional
        Vertex key quantization. Default is 4.

    Returns
    -------
    tuple of (np.ndarray, np.ndarray) or None
        Flat float32 vertices and int32 indices, or ``None`` when the
        ring is degenerate (too few points or zero area).
    """
    if ring is None or len(ring) < 4:
        return None

    coords = np.asarray(ring, dtype=np.float64)[:, :2]

    first, last = coords[0], coords[-1]
    if (abs(first[0] - last[0]) < CLOSING_EPSILON
            and abs(first[1] - last[1]) < CLOSING_EPSILON):
        coords = coords[:-1]

    if len(coords) < 3:
        return None

    flat = normalize_antimeridian(coords)
    triangles = _ear_clip_2d(flat)
    if not triangles:
        return None

    # Lift the un-shifted coordinates; +360 longitudes map to the same spot
    coords3d = lat_lng_to_points(coords[:, 1], coords[:, 0], radius)
    keys = [vertex_key(p, decimals) for p in coords3d]

    vertices = []
    indices = []
    vertex_map = {}
    edge_midpoints = {}

    for i0, i1, i2 in triangles:
        subdivide_spherical_triangle(
            coords3d[i0], coords3d[i1], coords3d[i2],
            keys[i0], keys[i1], keys[i2],
            radius, max_edge_length,
            vertices, indices, vertex_map, edge_midpoints,
            decimals=decimals,
        )

    if not vertices or not indices:
        return None

    return (np.asarray(vertices, dtype=np.float32).ravel(),
            np.asarray(indices, dtype=np.int32))


def create_polygon_geometry(geometry, radius=GLOBE_RADIUS,
                            max_edge_length=MAX_EDGE_LENGTH,
                            decimals=KEY_DECIMALS):
    """Build one merged mesh for a Polygon or MultiPolygon.

    Only the outer ring of each polygon is filled; holes are ignored.

    Parameters
    ----------
    geometry : dict or sequence
        GeoJSON Polygon/MultiPolygon geometry, or its bare coordinates.
    radius : float, optional
        Sphere radius. Default is 1.0.
    max_edge_length : float, optional
        Longest chord allowed after subdivision. Default is 0.08.
    decimals : int, optional
        Vertex key quantization. Default is 4.

    Returns
    -------
    tuple of (np.ndarray, np.ndarray) or None
        Flat float32 vertices and int32 indices, or ``None`` if no part
        produced triangles.
    """
    parts = []
    for polygon in as_polygons(geometry):
        if len(polygon) == 0:
            continue
        outer = polygon[0]
        if outer is None or len(outer) < 4:
            continue
        parts.append(triangulate_spherical_polygon(
            outer, radius, max_edge_length=max_edge_length,
            decimals=decimals,
        ))
    return merge_meshes(parts)
