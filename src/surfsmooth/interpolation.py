"""Inverse-distance-weighted interpolation of per-vertex data inside triangles.

Each query point comes with the three vertices of the mesh triangle that
encloses it. The interpolated value is a weighted mean of the three vertex
values, where the weight of a vertex is its relative distance to the query
raised to ``-beta``.
"""
from __future__ import annotations

import logging
import math
from typing import Any

import numpy as np
from numpy.typing import NDArray

from .config import output_dtype, snap_tol

_LOGGER = logging.getLogger(__name__)


def _as_coords(a: Any, name: str) -> NDArray[np.float64]:
    arr = np.asarray(a, dtype=np.float64)
    if arr.ndim != 2 or arr.shape[1] != 3:
        _LOGGER.error("%s: expected shape (n, 3); got %s", name, arr.shape)
        raise ValueError(f"{name} must be an (n, 3) array; got shape {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{name} contains non-finite coordinates")
    return arr


def euclidean_distance(a: Any, b: Any) -> NDArray[np.float64]:
    """Euclidean distance between points, computed along the last axis.

    `a` and `b` broadcast against each other, so ``euclidean_distance(P, q)``
    gives the distance of every row of `P` to the point `q`.
    """
    diff = np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)
    return np.sqrt(np.sum(diff * diff, axis=-1))


def idw_weights(distances: Any, beta: float) -> NDArray[np.float64]:
    """Inverse-distance weights from the query-to-vertex distances.

    Distances are first made relative, ``r_i = d_i / sum(d)``, and the weight
    is ``r_i ** -beta``. A zero distance gives an infinite weight; callers
    handle that case before using the weights.

    Args:
        distances: (n, k) array of non-negative distances.
        beta: Weighting exponent, typically between 1.0 and 2.0.

    Returns:
        (n, k) array of weights.
    """
    d = np.asarray(distances, dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        rel = d / np.sum(d, axis=-1, keepdims=True)
        return np.power(rel, -beta)


def interpolate_triangles(
    query_coords: Any,
    mesh_coords: Any,
    triangle_vertex_indices: Any,
    vertex_data: Any,
    beta: float = 1.0,
) -> NDArray[np.floating]:
    """Interpolate per-vertex data at query points inside mesh triangles.

    Args:
        query_coords: (n, 3) coordinates of the query points.
        mesh_coords: (m, 3) coordinates of the mesh vertices.
        triangle_vertex_indices: (n, 3) vertex indices of the triangle that
            encloses each query point.
        vertex_data: Per-vertex values, length m.
        beta: Inverse distance weighting exponent, finite and >= 0.

    Returns:
        Array of n interpolated values. A query lying on a triangle vertex
        (within the configured ``snap_tol``) gets that vertex's value exactly.
        Missing (NaN) vertex values propagate to the result.

    Raises:
        ValueError: On malformed shapes, non-finite coordinates, invalid
            `beta` or out-of-range triangle vertex indices.
    """
    if not (math.isfinite(beta) and beta >= 0.0):
        _LOGGER.error("interpolate_triangles: invalid beta=%r", beta)
        raise ValueError(f"beta must be finite and >= 0; got {beta!r}")

    q = _as_coords(query_coords, "query_coords")
    verts = _as_coords(mesh_coords, "mesh_coords")
    data = np.asarray(vertex_data, dtype=np.float64)
    if data.ndim != 1 or data.shape[0] != verts.shape[0]:
        raise ValueError(
            f"vertex_data must have one value per mesh vertex ({verts.shape[0]}); "
            f"got shape {data.shape}"
        )

    tris = np.asarray(triangle_vertex_indices)
    if tris.shape != (q.shape[0], 3):
        raise ValueError(
            f"triangle_vertex_indices must be ({q.shape[0]}, 3); got {tris.shape}"
        )
    if tris.size and not np.issubdtype(tris.dtype, np.integer):
        raise ValueError(
            f"triangle_vertex_indices must hold integers; got dtype {tris.dtype}"
        )
    tris = tris.astype(np.int64, copy=False)
    bad = (tris < 0) | (tris >= verts.shape[0])
    if np.any(bad):
        row = int(np.flatnonzero(bad.any(axis=1))[0])
        _LOGGER.error(
            "interpolate_triangles: %d out-of-range vertex index(es)", int(bad.sum())
        )
        raise ValueError(
            f"triangle_vertex_indices[{row}]={tris[row].tolist()} outside "
            f"[0, {verts.shape[0]})"
        )

    dists = euclidean_distance(verts[tris], q[:, None, :])  # (n, 3)
    vals = data[tris]  # (n, 3)
    weights = idw_weights(dists, beta)

    with np.errstate(invalid="ignore", over="ignore"):
        interp = np.sum(weights * vals, axis=1) / np.sum(weights, axis=1)

    # On (or numerically at) a vertex the weight diverges; use the nearest
    # vertex value as is.
    snap = np.any(dists <= snap_tol(), axis=1) | ~np.all(np.isfinite(weights), axis=1)
    if np.any(snap):
        rows = np.flatnonzero(snap)
        nearest = np.argmin(dists[rows], axis=1)
        interp[rows] = vals[rows, nearest]

    _LOGGER.debug(
        "interpolate_triangles: n_queries=%d n_verts=%d beta=%g snapped=%d",
        q.shape[0],
        verts.shape[0],
        beta,
        int(np.count_nonzero(snap)),
    )
    return interp.astype(output_dtype(), copy=False)
