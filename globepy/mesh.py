"""Mesh buffer utilities: merging and vertex normals.

Meshes are passed around as ``(vertices, indices)`` pairs of flat arrays:
float32 ``[x0, y0, z0, x1, ...]`` positions and int32 ``[i0, i1, i2, ...]``
triangle indices.
"""

import numpy as np


def merge_meshes(meshes):
    """Concatenate several meshes into one vertex/index buffer pair.

    Parameters
    ----------
    meshes : iterable of (np.ndarray, np.ndarray) or None
        Flat vertex and index buffers.  ``None`` entries (no mesh) are
        skipped.

    Returns
    -------
    tuple of (np.ndarray, np.ndarray) or None
        Merged float32 vertices and int32 indices, each part's indices
        offset by the number of vertices before it.  ``None`` when no
        part contributed any triangles.
    """
    all_verts = []
    all_indices = []
    vert_offset = 0

    for mesh in meshes:
        if mesh is None:
            continue
        v, idx = mesh
        if len(v) == 0 or len(idx) == 0:
            continue
        all_verts.append(np.asarray(v, dtype=np.float32))
        all_indices.append(np.asarray(idx, dtype=np.int64) + vert_offset)
        vert_offset += len(v) // 3

    if not all_verts:
        return None

    return (np.concatenate(all_verts),
            np.concatenate(all_indices).astype(np.int32))


def vertex_normals(vertices):
    """Normals for a sphere-centered mesh.

    Every vertex normal is its position direction, so this is just the
    normalized position.  Zero-length positions keep a zero normal.

    Parameters
    ----------
    vertices : array-like
        Flat (N*3,) or (N, 3) vertex positions.

    Returns
    -------
    np.ndarray
        float32 array with the same shape as ``vertices``.
    """
    verts = np.asarray(vertices, dtype=np.float64)
    pts = verts.reshape(-1, 3)
    lengths = np.linalg.norm(pts, axis=1, keepdims=True)
    normals = np.divide(pts, lengths, out=np.zeros_like(pts),
                        where=lengths > 0)
    return normals.astype(np.float32).reshape(verts.shape)
