from __future__ import annotations

import numpy as np
import pytest
from numpy.testing import assert_allclose

import surfsmooth as ss
from surfsmooth.interpolation import (
    euclidean_distance,
    idw_weights,
    interpolate_triangles,
)
from surfsmooth.neighborhood import MISSING


@pytest.fixture
def triangle():
    """A single triangle with distinct per-vertex values."""
    verts = np.array(
        [
            [0.0, 0.0, 0.0],
            [2.0, 0.0, 0.0],
            [0.0, 2.0, 0.0],
        ]
    )
    data = np.array([1.0, 5.0, 9.0])
    return verts, data


def test_euclidean_distance_broadcasts():
    pts = np.array([[0.0, 0.0, 0.0], [3.0, 4.0, 0.0]])
    assert_allclose(euclidean_distance(pts, [0.0, 0.0, 0.0]), [0.0, 5.0])
    assert_allclose(euclidean_distance([1.0, 2.0, 2.0], [0.0, 0.0, 0.0]), 3.0)


def test_idw_weights_relative_power():
    w = idw_weights([[1.0, 1.0, 2.0]], 2.0)
    assert_allclose(w, [[16.0, 16.0, 4.0]])


@pytest.mark.parametrize("beta", [0.0, 0.5, 1.0, 1.5, 2.0, 3.0])
@pytest.mark.parametrize("vertex", [0, 1, 2])
def test_query_on_vertex_returns_vertex_value(triangle, beta, vertex):
    verts, data = triangle
    out = interpolate_triangles(
        verts[[vertex]], verts, np.array([[0, 1, 2]]), data, beta
    )
    assert out.shape == (1,)
    assert out[0] == data[vertex]


@pytest.mark.parametrize("beta", [0.5, 1.0, 2.0, 4.0])
def test_centroid_of_constant_triangle(triangle, beta):
    verts, _ = triangle
    centroid = verts.mean(axis=0, keepdims=True)
    out = interpolate_triangles(
        centroid, verts, np.array([[0, 1, 2]]), np.full(3, 4.2), beta
    )
    assert_allclose(out, [4.2], rtol=1e-12)


def test_centroid_of_equilateral_triangle_is_plain_mean():
    h = np.sqrt(3.0) / 2.0
    verts = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.5, h, 0.0]])
    data = np.array([3.0, 6.0, 9.0])
    out = interpolate_triangles(
        verts.mean(axis=0, keepdims=True), verts, [[0, 1, 2]], data, 1.7
    )
    assert_allclose(out, [6.0], rtol=1e-12)


def test_matches_inverse_distance_formula(triangle):
    verts, data = triangle
    q = np.array([[0.5, 0.25, 0.0]])
    beta = 1.3
    d = np.linalg.norm(verts - q, axis=1)
    w = (d / d.sum()) ** -beta
    expected = np.sum(w * data) / np.sum(w)

    out = interpolate_triangles(q, verts, [[0, 1, 2]], data, beta)
    assert_allclose(out, [expected], rtol=1e-12)


def test_closer_vertex_dominates(triangle):
    verts, data = triangle
    q = np.array([[0.1, 0.1, 0.0]])
    low = interpolate_triangles(q, verts, [[0, 1, 2]], data, 1.0)
    high = interpolate_triangles(q, verts, [[0, 1, 2]], data, 3.0)
    assert abs(high[0] - data[0]) < abs(low[0] - data[0])


def test_triangle_order_is_irrelevant(triangle):
    verts, data = triangle
    q = np.array([[0.3, 0.6, 0.0], [0.3, 0.6, 0.0]])
    out = interpolate_triangles(q, verts, [[0, 1, 2], [2, 0, 1]], data, 1.5)
    assert_allclose(out[0], out[1], rtol=1e-12)


def test_many_queries_and_meshes():
    verts = np.array(
        [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0]]
    )
    data = np.array([0.0, 1.0, 2.0, 3.0])
    q = np.array([[0.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.5, 0.5, 0.0]])
    tris = np.array([[0, 1, 2], [0, 2, 3], [0, 2, 3]])
    out = interpolate_triangles(q, verts, tris, data, 2.0)
    assert out[0] == 0.0
    assert out[1] == 3.0
    assert np.isfinite(out[2])


def test_snap_tolerance_from_config(triangle):
    verts, data = triangle
    q = np.array([[1e-9, 0.0, 0.0]])
    with ss.use(snap_tol=1e-6):
        out = interpolate_triangles(q, verts, [[0, 1, 2]], data, 2.0)
    assert out[0] == data[0]


def test_missing_vertex_value_propagates(triangle):
    verts, data = triangle
    data = data.copy()
    data[1] = MISSING
    out = interpolate_triangles(
        np.array([[0.5, 0.5, 0.0], verts[0]]), verts, [[0, 1, 2], [0, 1, 2]], data, 1.0
    )
    assert np.isnan(out[0])
    assert out[1] == data[0]


def test_empty_query_set(triangle):
    verts, data = triangle
    out = interpolate_triangles(
        np.empty((0, 3)), verts, np.empty((0, 3), dtype=int), data, 1.0
    )
    assert out.shape == (0,)


def test_out_of_range_triangle_index_raises(triangle):
    verts, data = triangle
    with pytest.raises(ValueError, match="outside"):
        interpolate_triangles([[0.1, 0.1, 0.0]], verts, [[0, 1, 3]], data, 1.0)


@pytest.mark.parametrize("beta", [-1.0, float("nan"), float("inf")])
def test_invalid_beta_raises(triangle, beta):
    verts, data = triangle
    with pytest.raises(ValueError, match="beta"):
        interpolate_triangles([[0.1, 0.1, 0.0]], verts, [[0, 1, 2]], data, beta)


def test_shape_checks(triangle):
    verts, data = triangle
    with pytest.raises(ValueError, match="query_coords"):
        interpolate_triangles([[0.1, 0.1]], verts, [[0, 1, 2]], data, 1.0)
    with pytest.raises(ValueError, match="vertex_data"):
        interpolate_triangles([[0.1, 0.1, 0.0]], verts, [[0, 1, 2]], data[:2], 1.0)
    with pytest.raises(ValueError, match="triangle_vertex_indices"):
        interpolate_triangles([[0.1, 0.1, 0.0]], verts, [[0, 1]], data, 1.0)
    with pytest.raises(ValueError, match="integers"):
        interpolate_triangles([[0.1, 0.1, 0.0]], verts, [[0.0, 1.0, 2.0]], data, 1.0)
