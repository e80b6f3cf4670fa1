from __future__ import annotations

import numpy as np
import pytest

from surfsmooth.neighborhood import (
    MISSING,
    adjacency_from_faces,
    as_field,
    csr_from_flat,
    flatten_adjacency,
    flatten_neighborhood,
    is_missing,
    truncate_neighborhood,
)


def test_is_missing_mask():
    mask = is_missing([1.0, MISSING, 3.0, np.nan])
    np.testing.assert_array_equal(mask, [False, True, False, True])


def test_as_field_copies_and_rejects_2d():
    src = np.array([1.0, 2.0])
    out = as_field(src)
    out[0] = 99.0
    assert src[0] == 1.0
    with pytest.raises(ValueError, match="1-D"):
        as_field([[1.0, 2.0]])


def test_flatten_adjacency_layout():
    indptr, indices = flatten_adjacency([[1, 2], [], [0]], 3)
    np.testing.assert_array_equal(indptr, [0, 2, 2, 3])
    np.testing.assert_array_equal(indices, [1, 2, 0])


def test_flatten_adjacency_accepts_scalar_rows():
    indptr, indices = flatten_adjacency([1, np.array([0])], 2)
    np.testing.assert_array_equal(indptr, [0, 1, 2])
    np.testing.assert_array_equal(indices, [1, 0])


def test_flatten_adjacency_length_mismatch():
    with pytest.raises(ValueError, match="3 vertices"):
        flatten_adjacency([[0], [1]], 3)


@pytest.mark.parametrize("bad", [[[0], [2]], [[0], [-1]]])
def test_flatten_adjacency_out_of_range(bad):
    with pytest.raises(ValueError, match=r"adjacency\[1\]"):
        flatten_adjacency(bad, 2)


def test_flatten_adjacency_rejects_float_indices():
    with pytest.raises(ValueError, match="integer"):
        flatten_adjacency([[0.5], [0]], 2)


def test_flatten_neighborhood_checks_parallel_rows():
    with pytest.raises(ValueError, match="vertex 0"):
        flatten_neighborhood([[0, 1], [1]], [[0.0], [0.0]], 2)
    with pytest.raises(ValueError, match="same number"):
        flatten_neighborhood([[0], [1]], [[0.0]], 2)


def test_flatten_neighborhood_rejects_negative_distance():
    with pytest.raises(ValueError, match="non-negative"):
        flatten_neighborhood([[0], [1]], [[0.0], [-0.1]], 2)


def test_csr_from_flat_keeps_duplicates():
    indptr, indices = flatten_adjacency([[1, 1], [0]], 2)
    A = csr_from_flat(indptr, indices)
    np.testing.assert_allclose(A @ np.array([1.0, 5.0]), [10.0, 1.0])


def test_adjacency_from_faces_one_ring(two_triangle_square):
    adj = adjacency_from_faces(two_triangle_square.faces)
    expected = [[1, 2, 3], [0, 2], [0, 1, 3], [0, 2]]
    assert [a.tolist() for a in adj] == expected


def test_adjacency_from_faces_include_self_and_isolated():
    adj = adjacency_from_faces(np.array([[0, 1, 2]]), n_vertices=4, include_self=True)
    assert [a.tolist() for a in adj] == [[0, 1, 2], [0, 1, 2], [0, 1, 2], [3]]


def test_adjacency_from_faces_validates():
    with pytest.raises(ValueError):
        adjacency_from_faces(np.array([[0, 1]]))
    with pytest.raises(ValueError):
        adjacency_from_faces(np.array([[0, 1, 5]]), n_vertices=3)


def test_truncate_neighborhood_keeps_boundary_and_order():
    idx = [[0, 1, 2], [1, 0], [2]]
    dist = [[0.0, 2.0, 1.0], [0.0, 2.5], [0.0]]
    t_idx, t_dist = truncate_neighborhood(idx, dist, 2.0)
    assert [a.tolist() for a in t_idx] == [[0, 1, 2], [1], [2]]
    assert [a.tolist() for a in t_dist] == [[0.0, 2.0, 1.0], [0.0], [0.0]]

    # Idempotent for an already truncated neighbourhood.
    again_idx, again_dist = truncate_neighborhood(t_idx, t_dist, 2.0)
    assert [a.tolist() for a in again_idx] == [a.tolist() for a in t_idx]
    assert [a.tolist() for a in again_dist] == [a.tolist() for a in t_dist]


def test_truncate_neighborhood_rejects_negative_radius():
    with pytest.raises(ValueError, match="radius"):
        truncate_neighborhood([[0]], [[0.0]], -1.0)
