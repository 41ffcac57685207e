"""Tests for mesh buffer utilities."""

import numpy as np

from globepy import create_polygon_geometry, merge_meshes, vertex_normals


class TestMergeMeshes:
    def test_offsets_indices(self):
        a = (np.zeros(9, dtype=np.float32), np.array([0, 1, 2], dtype=np.int32))
        b = (np.ones(12, dtype=np.float32), np.array([0, 1, 2, 2, 1, 3], dtype=np.int32))
        vertices, indices = merge_meshes([a, b])
        assert vertices.dtype == np.float32
        assert indices.dtype == np.int32
        assert len(vertices) == 21
        np.testing.assert_array_equal(indices, [0, 1, 2, 3, 4, 5, 5, 4, 6])

    def test_skips_none_and_empty(self):
        a = (np.zeros(9, dtype=np.float32), np.array([0, 1, 2], dtype=np.int32))
        empty = (np.empty(0, dtype=np.float32), np.empty(0, dtype=np.int32))
        vertices, indices = merge_meshes([None, a, empty, None, a])
        assert len(vertices) == 18
        np.testing.assert_array_equal(indices, [0, 1, 2, 3, 4, 5])

    def test_nothing_to_merge(self):
        assert merge_meshes([]) is None
        assert merge_meshes([None, None]) is None


class TestVertexNormals:
    def test_unit_length(self):
        verts = np.array([2, 0, 0, 0, 0, -0.5, 1, 1, 1], dtype=np.float32)
        normals = vertex_normals(verts)
        assert normals.shape == verts.shape
        assert normals.dtype == np.float32
        np.testing.assert_allclose(
            normals.reshape(-1, 3)[:2], [[1, 0, 0], [0, 0, -1]], atol=1e-7)
        np.testing.assert_allclose(
            np.linalg.norm(normals.reshape(-1, 3), axis=1), 1.0, atol=1e-6)

    def test_zero_vector(self):
        normals = vertex_normals(np.zeros((2, 3)))
        assert normals.shape == (2, 3)
        assert not np.any(normals)

    def test_country_mesh(self):
        ring = [[0, 0], [10, 0], [10, 10], [0, 10], [0, 0]]
        vertices, _ = create_polygon_geometry([ring], 1.003)
        normals = vertex_normals(vertices)
        np.testing.assert_allclose(normals, vertices / 1.003, atol=1e-6)
