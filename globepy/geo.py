"""Geographic to Cartesian conversion for globe rendering.

Maps (longitude, latitude) coordinates onto a sphere, samples
great-circle polylines for country outlines, and builds the transform
that turns the globe to face a chosen meridian.
"""

import math

import numba as nb
import numpy as np


GLOBE_RADIUS = 1.0


def lat_lng_to_point(lat, lng, radius=GLOBE_RADIUS):
    """Convert a latitude/longitude pair to a 3D point on a sphere.

    Longitude 0 lands on +X, the north pole on +Y and longitude -90
    on +Z.  Downstream rotations (see :func:`make_globe_transform`) rely
    on this orientation.

    Parameters
    ----------
    lat : float
        Latitude in degrees.
    lng : float
        Longitude in degrees.
    radius : float, optional
        Sphere radius. Default is 1.0.

    Returns
    -------
    np.ndarray
        (3,) float64 array (x, y, z).
    """
    phi = (90.0 - lat) * (math.pi / 180.0)
    theta = (lng + 180.0) * (math.pi / 180.0)

    x = -radius * math.sin(phi) * math.cos(theta)
    y = radius * math.cos(phi)
    z = radius * math.sin(phi) * math.sin(theta)

    return np.array([x, y, z], dtype=np.float64)


@nb.njit(parallel=True)
def _lat_lng_to_points_cpu(out, lats, lngs, radius):
    """CPU kernel converting lat/lng arrays into sphere points."""
    for i in nb.prange(lats.shape[0]):
        phi = (90.0 - lats[i]) * (np.pi / 180.0)
        theta = (lngs[i] + 180.0) * (np.pi / 180.0)
        out[i, 0] = -radius * np.sin(phi) * np.cos(theta)
        out[i, 1] = radius * np.cos(phi)
        out[i, 2] = radius * np.sin(phi) * np.sin(theta)


def lat_lng_to_points(lats, lngs, radius=GLOBE_RADIUS):
    """Vectorized :func:`lat_lng_to_point`.

    Parameters
    ----------
    lats, lngs : array-like
        Latitudes and longitudes in degrees, same length.
    radius : float, optional
        Sphere radius. Default is 1.0.

    Returns
    -------
    np.ndarray
        (N, 3) float64 array of points.
    """
    lats = np.ascontiguousarray(lats, dtype=np.float64).ravel()
    lngs = np.ascontiguousarray(lngs, dtype=np.float64).ravel()
    if lats.shape != lngs.shape:
        raise ValueError(f"lats and lngs must have the same length "
                         f"({len(lats)} != {len(lngs)})")

    out = np.empty((len(lats), 3), dtype=np.float64)
    if len(lats):
        _lat_lng_to_points_cpu(out, lats, lngs, float(radius))
    return out


def _haversin(x):
    s = np.sin(x / 2.0)
    return s * s


def geo_interpolate(start, end):
    """Build a great-circle interpolator between two geographic points.

    Parameters
    ----------
    start, end : sequence of float
        ``[lon, lat]`` endpoints in degrees.

    Returns
    -------
    callable
        ``f(t)`` returning ``(lon, lat)`` in degrees for ``t`` in [0, 1].
        ``t`` may be a scalar or an array, in which case ``lon`` and
        ``lat`` are arrays too.
    """
    x0 = math.radians(start[0])
    y0 = math.radians(start[1])
    x1 = math.radians(end[0])
    y1 = math.radians(end[1])

    cy0, sy0 = math.cos(y0), math.sin(y0)
    cy1, sy1 = math.cos(y1), math.sin(y1)
    kx0, ky0 = cy0 * math.cos(x0), cy0 * math.sin(x0)
    kx1, ky1 = cy1 * math.cos(x1), cy1 * math.sin(x1)

    h = _haversin(y1 - y0) + cy0 * cy1 * _haversin(x1 - x0)
    d = 2.0 * math.asin(math.sqrt(min(1.0, h)))
    k = math.sin(d)

    def interpolate(t):
        t = np.asarray(t, dtype=np.float64)
        if d == 0.0:
            return (np.full(t.shape, math.degrees(x0))[()],
                    np.full(t.shape, math.degrees(y0))[()])
        td = t * d
        b = np.sin(td) / k
        a = np.sin(d - td) / k
        x = a * kx0 + b * kx1
        y = a * ky0 + b * ky1
        z = a * sy0 + b * sy1
        lon = np.degrees(np.arctan2(y, x))
        lat = np.degrees(np.arctan2(z, np.sqrt(x * x + y * y)))
        return lon[()], lat[()]

    return interpolate


def interpolate_great_circle_segment(start, end, radius=GLOBE_RADIUS,
                                     segments=2):
    """Sample ``segments + 1`` sphere points along a great-circle arc.

    Parameters
    ----------
    start, end : sequence of float
        ``[lon, lat]`` endpoints in degrees.
    radius : float, optional
        Sphere radius. Default is 1.0.
    segments : int, optional
        Number of sub-segments. Default is 2.

    Returns
    -------
    np.ndarray
        (segments + 1, 3) float64 array, first row at ``start`` and last
        row at ``end``.

    Raises
    ------
    ValueError
        If ``segments`` is less than 1.
    """
    if segments < 1:
        raise ValueError(f"segments must be at least 1, got {segments}")
    interpolate = geo_interpolate(start, end)
    t = np.arange(segments + 1, dtype=np.float64) / segments
    lon, lat = interpolate(t)
    return lat_lng_to_points(lat, lon, radius)


def ring_outline(ring, radius=GLOBE_RADIUS, segments=2):
    """Convert a coordinate ring to a curve-following line strip.

    Every consecutive pair contributes ``segments + 1`` points, so joint
    points appear twice.  Returns an empty (0, 3) array for rings with
    fewer than two points.
    """
    coords = np.asarray(ring, dtype=np.float64)
    if coords.ndim != 2 or len(coords) < 2:
        return np.empty((0, 3), dtype=np.float64)

    parts = [
        interpolate_great_circle_segment(coords[i, :2], coords[i + 1, :2],
                                         radius, segments)
        for i in range(len(coords) - 1)
    ]
    return np.concatenate(parts)


def polygon_outlines(coordinates, radius=GLOBE_RADIUS, segments=1):
    """Outline polylines for every ring of a Polygon or MultiPolygon.

    Parameters
    ----------
    coordinates : dict or sequence
        GeoJSON Polygon/MultiPolygon geometry, or its bare coordinates.
    radius : float, optional
        Sphere radius of the outlines. Default is 1.0.
    segments : int, optional
        Great-circle sub-segments per ring edge. Default is 1.

    Returns
    -------
    list of np.ndarray
        One (M, 3) array per ring, holes included.  Rings that yield two
        points or fewer are dropped.
    """
    from .triangulate import as_polygons

    outlines = []
    for polygon in as_polygons(coordinates):
        for ring in polygon:
            points = ring_outline(ring, radius, segments)
            if len(points) > 2:
                outlines.append(points)
    return outlines


def make_globe_transform(center_lon=0.0, scale=1.0):
    """Create a 3x4 transform turning the globe to face a meridian.

    The globe is rotated about its +Y (polar) axis so that the point on
    the equator at ``center_lon`` faces +Z.

    Parameters
    ----------
    center_lon : float, optional
        Longitude in degrees to bring to the front. Default is 0.0.
    scale : float, optional
        Uniform scale factor. Default is 1.0.

    Returns
    -------
    list
        12-float row-major affine matrix
        ``[Xx, Xy, Xz, Tx, Yx, Yy, Yz, Ty, Zx, Zy, Zz, Tz]``.

    Examples
    --------
    >>> transform = make_globe_transform(center_lon=4.5)
    >>> verts = apply_transform(verts, transform)
    """
    angle = -math.pi / 2.0 - math.radians(center_lon)
    c = math.cos(angle)
    s = math.sin(angle)

    # Rotation about Y: [[c, 0, s], [0, 1, 0], [-s, 0, c]]
    return [
        scale * c,  0.0,   scale * s, 0.0,
        0.0,        scale, 0.0,       0.0,
        -scale * s, 0.0,   scale * c, 0.0,
    ]


def apply_transform(vertices, transform):
    """Apply a 3x4 row-major affine transform to a vertex buffer.

    Accepts a flat ``[x0, y0, z0, ...]`` buffer or an (N, 3) array and
    returns the same shape and dtype.
    """
    verts = np.asarray(vertices)
    dtype = verts.dtype if verts.dtype.kind == "f" else np.float64
    pts = verts.reshape(-1, 3).astype(np.float64)
    m = np.asarray(transform, dtype=np.float64).reshape(3, 4)
    out = pts @ m[:, :3].T + m[:, 3]
    return out.astype(dtype).reshape(verts.shape)
