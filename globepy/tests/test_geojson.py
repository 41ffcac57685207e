"""Tests for GeoJSON loading and per-country globe geometry."""

import json
import warnings

import numpy as np
import pytest

from globepy.geojson import (
    FILL_OFFSET,
    OUTLINE_OFFSET,
    VISITED_FILL_OFFSET,
    VISITED_OUTLINE_OFFSET,
    _build_transformer,
    _feature_id,
    _load_geojson,
    _sanitize_label,
    country_geometries,
)
from globepy.triangulate import create_polygon_geometry


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _square(lon0, lat0, size=10):
    return [[lon0, lat0], [lon0 + size, lat0], [lon0 + size, lat0 + size],
            [lon0, lat0 + size], [lon0, lat0]]


def _country(fid, name, geometry):
    return {"type": "Feature", "id": fid, "properties": {"name": name},
            "geometry": geometry}


def _world():
    return {
        "type": "FeatureCollection",
        "features": [
            _country("BEL", "Belgium",
                     {"type": "Polygon", "coordinates": [_square(0, 40)]}),
            _country("NZL", "New Zealand",
                     {"type": "MultiPolygon",
                      "coordinates": [[_square(166, -47, 5)],
                                      [_square(172, -42, 5)]]}),
            _country("FJI", "Fiji",
                     {"type": "Polygon",
                      "coordinates": [[[178, -18], [-179, -18], [-179, -16],
                                       [178, -16], [178, -18]]]}),
        ],
    }


def _radii(vertices):
    return np.linalg.norm(
        np.asarray(vertices, dtype=np.float64).reshape(-1, 3), axis=1)


# ---------------------------------------------------------------------------
# _load_geojson
# ---------------------------------------------------------------------------

class TestLoadGeojson:
    def test_feature_collection(self):
        result = _load_geojson(_world())
        assert len(result) == 3
        geom, props, fid = result[0]
        assert geom["type"] == "Polygon"
        assert props["name"] == "Belgium"
        assert fid == "BEL"

    def test_bare_geometry(self):
        geom = {"type": "Polygon", "coordinates": [_square(0, 0)]}
        assert _load_geojson(geom) == [(geom, {}, None)]

    def test_geometry_collection(self):
        gc = {"type": "GeometryCollection",
              "geometries": [{"type": "Point", "coordinates": [1, 2]}]}
        result = _load_geojson(gc)
        assert len(result) == 1
        assert result[0][1] == {}

    def test_file_path(self, tmp_path):
        path = tmp_path / "world.geojson"
        path.write_text(json.dumps(_world()))
        assert len(_load_geojson(path)) == 3
        assert len(_load_geojson(str(path))) == 3

    def test_file_not_found(self):
        with pytest.raises(FileNotFoundError):
            _load_geojson("/no/such/file.geojson")

    def test_invalid_type(self):
        with pytest.raises(TypeError):
            _load_geojson([1, 2, 3])

    def test_unsupported_geojson_type(self):
        with pytest.raises(ValueError, match="Unsupported GeoJSON type"):
            _load_geojson({"type": "Topology"})

    def test_feature_with_null_geometry(self):
        feat = {"type": "Feature", "geometry": None, "properties": {"a": 1}}
        assert _load_geojson(feat) == []

    def test_feature_missing_properties(self):
        feat = {"type": "Feature", "properties": None,
                "geometry": {"type": "Point", "coordinates": [0, 0]}}
        assert _load_geojson(feat)[0][1] == {}


# ---------------------------------------------------------------------------
# _sanitize_label / _feature_id
# ---------------------------------------------------------------------------

class TestFeatureId:
    def test_sanitize(self):
        assert _sanitize_label("Côte d'Ivoire") == "C-te-d-Ivoire"
        assert _sanitize_label(56) == "56"
        assert _sanitize_label("@!#") is None
        assert _sanitize_label(None) is None

    def test_feature_id_preferred(self):
        assert _feature_id("056", {"name": "Belgium"}, 0) == "056"

    def test_property_fallbacks(self):
        assert _feature_id(None, {"iso_a3": "BEL", "name": "Belgium"}, 0) == "BEL"
        assert _feature_id(None, {"name": "New Zealand"}, 0) == "New-Zealand"

    def test_index_fallback(self):
        assert _feature_id(None, {}, 7) == "feature-7"


# ---------------------------------------------------------------------------
# country_geometries
# ---------------------------------------------------------------------------

class TestCountryGeometries:
    def test_one_entry_per_country(self):
        countries = country_geometries(_world())
        assert set(countries) == {"BEL", "NZL", "FJI"}
        assert countries["BEL"]["name"] == "Belgium"
        for entry in countries.values():
            assert entry["fill"] is not None
            assert entry["outlines"]

    def test_unvisited_radii(self):
        bel = country_geometries(_world())["BEL"]
        assert bel["visited"] is False
        np.testing.assert_allclose(_radii(bel["fill"][0]), FILL_OFFSET, atol=1e-6)
        np.testing.assert_allclose(np.linalg.norm(bel["outlines"][0], axis=1),
                                   OUTLINE_OFFSET)

    def test_visited_radii(self):
        bel = country_geometries(_world(), visited={"BEL"}, radius=2.0)["BEL"]
        assert bel["visited"] is True
        np.testing.assert_allclose(_radii(bel["fill"][0]),
                                   2.0 * VISITED_FILL_OFFSET, atol=1e-5)
        np.testing.assert_allclose(np.linalg.norm(bel["outlines"][0], axis=1),
                                   2.0 * VISITED_OUTLINE_OFFSET)

    def test_multipolygon_outlines(self):
        nzl = country_geometries(_world())["NZL"]
        assert len(nzl["outlines"]) == 2
        expected = create_polygon_geometry(
            [[_square(166, -47, 5)], [_square(172, -42, 5)]], FILL_OFFSET)
        np.testing.assert_array_equal(nzl["fill"][0], expected[0])
        np.testing.assert_array_equal(nzl["fill"][1], expected[1])

    def test_antimeridian_country(self):
        verts, _ = country_geometries(_world())["FJI"]["fill"]
        pts = verts.reshape(-1, 3)
        # Stays on the far side of the globe around lon 180
        assert pts[:, 0].max() < -0.9

    def test_non_polygon_features_warn(self):
        gj = _world()
        gj["features"].append({
            "type": "Feature", "id": "pt", "properties": {},
            "geometry": {"type": "Point", "coordinates": [0, 0]},
        })
        with warnings.catch_warnings(record=True) as w:
            warnings.simplefilter("always")
            countries = country_geometries(gj)
        assert "pt" not in countries
        assert any("non-polygon" in str(x.message) for x in w)

    def test_duplicate_ids_suffixed(self):
        geom = {"type": "Polygon", "coordinates": [_square(0, 0)]}
        gj = {"type": "FeatureCollection",
              "features": [_country("X", "a", geom), _country("X", "b", geom)]}
        countries = country_geometries(gj)
        assert set(countries) == {"X", "X-1"}
        assert countries["X-1"]["name"] == "b"

    def test_degenerate_country_has_no_fill(self):
        geom = {"type": "Polygon", "coordinates": [[[0, 0], [1, 1], [0, 0]]]}
        countries = country_geometries(_country("D", "Dot", geom))
        assert countries["D"]["fill"] is None
        # Two edges still make a drawable outline
        assert len(countries["D"]["outlines"]) == 1

    def test_from_file(self, tmp_path):
        path = tmp_path / "world.geojson"
        path.write_text(json.dumps(_world()))
        assert set(country_geometries(path)) == {"BEL", "NZL", "FJI"}


class TestReprojection:
    def test_no_crs(self):
        assert _build_transformer(None) is None

    def test_web_mercator_input(self):
        pyproj = pytest.importorskip("pyproj")
        to_merc = pyproj.Transformer.from_crs("EPSG:4326", "EPSG:3857",
                                              always_xy=True)
        ring = np.array(_square(0, 40))
        x, y = to_merc.transform(ring[:, 0], ring[:, 1])
        merc = {"type": "Feature", "id": "BEL", "properties": {},
                "geometry": {"type": "Polygon",
                             "coordinates": [np.column_stack([x, y]).tolist()]}}

        projected = country_geometries(merc, crs="EPSG:3857")["BEL"]["fill"]
        direct = country_geometries(_world())["BEL"]["fill"]
        assert projected[0].shape == direct[0].shape
        np.testing.assert_allclose(projected[0], direct[0], atol=1e-5)
        np.testing.assert_array_equal(projected[1], direct[1])
