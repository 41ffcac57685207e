"""Build a visited-countries globe from a GeoJSON file and report its meshes.

Usage:
    python world_globe.py countries.geojson BEL FRA JPN

Visited countries are raised slightly above the others; the whole globe
is turned to face Belgium's meridian, and the script prints the size and
extent of the merged visited and unvisited fill meshes.

Requirements:
    pip install globepy
"""

import sys

import numpy as np

from globepy import (
    apply_transform,
    country_geometries,
    make_globe_transform,
    merge_meshes,
    vertex_normals,
)

CENTER_LON = 4.5  # Belgium


def main(geojson_path, visited):
    countries = country_geometries(geojson_path, visited=visited)

    visited_fills = [c["fill"] for c in countries.values() if c["visited"]]
    other_fills = [c["fill"] for c in countries.values() if not c["visited"]]
    n_outline_points = sum(len(p) for c in countries.values()
                           for p in c["outlines"])

    print(f"Loaded {len(countries)} countries "
          f"({len(visited_fills)} visited, {n_outline_points} outline points)")

    transform = make_globe_transform(center_lon=CENTER_LON)

    for name, fills in (("visited", visited_fills), ("unvisited", other_fills)):
        mesh = merge_meshes(fills)
        if mesh is None:
            print(f"No {name} countries")
            continue
        verts, indices = mesh
        pts = apply_transform(verts, transform).reshape(-1, 3)
        radii = np.linalg.norm(pts, axis=1)
        # Share of the mesh facing the camera on +Z
        facing = float(np.mean(vertex_normals(pts)[:, 2] > 0))
        print(f"{name}: {len(pts)} vertices, {len(indices) // 3} triangles, "
              f"radius {radii.min():.4f}-{radii.max():.4f}, "
              f"{facing:.0%} facing the viewer")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    main(sys.argv[1], sys.argv[2:])
