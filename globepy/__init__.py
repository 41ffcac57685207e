from .geo import (
    GLOBE_RADIUS,
    lat_lng_to_point,
    lat_lng_to_points,
    geo_interpolate,
    interpolate_great_circle_segment,
    ring_outline,
    polygon_outlines,
    make_globe_transform,
    apply_transform,
)
from .triangulate import (
    as_polygons,
    geometry_kind,
    normalize_antimeridian,
    slerp,
    triangulate_spherical_polygon,
    create_polygon_geometry,
)
from .mesh import merge_meshes, vertex_normals
from .geojson import country_geometries

__version__ = "0.1.0"
