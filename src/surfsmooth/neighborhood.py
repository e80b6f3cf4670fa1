"""Per-vertex neighbourhood structures and the missing-value sentinel.

This module provides:
  - The missing sentinel (NaN) and a mask helper.
  - Validation of scalar fields, adjacency lists and geodesic neighbourhoods.
  - Flattening of ragged per-vertex lists into CSR arrays (indptr, values).
  - Derivation of the 1-ring adjacency relation from a triangle array.
  - Radius truncation of geodesic neighbourhoods.

Neighbourhoods are ragged: vertex ``v`` owns ``indptr[v]:indptr[v + 1]`` of the
flattened arrays, which is also the layout of a SciPy CSR matrix.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np
import scipy.sparse as sp
from numpy.typing import NDArray

_LOGGER = logging.getLogger(__name__)

MISSING: float = float("nan")


def is_missing(values: Any) -> NDArray[np.bool_]:
    """Return a boolean mask of the entries equal to the missing sentinel."""
    return np.isnan(np.asarray(values, dtype=float))


def as_field(data: Any, name: str = "data") -> NDArray[np.float64]:
    """Return `data` as a fresh 1-D float64 array.

    Raises:
        ValueError: If `data` is not one-dimensional.
    """
    arr = np.array(data, dtype=np.float64, copy=True)
    if arr.ndim != 1:
        _LOGGER.error("as_field: %s must be 1-D; got shape %s", name, arr.shape)
        raise ValueError(f"{name} must be a 1-D sequence; got shape {arr.shape}")
    return arr


def _as_index_row(row: Any, vertex: int, name: str) -> NDArray[np.int64]:
    arr = np.atleast_1d(np.asarray(row))
    if arr.ndim != 1:
        raise ValueError(f"{name}[{vertex}] must be 1-D; got shape {arr.shape}")
    if arr.size == 0:
        return np.empty(0, dtype=np.int64)
    if not np.issubdtype(arr.dtype, np.integer):
        raise ValueError(
            f"{name}[{vertex}] must hold integer vertex indices; got dtype {arr.dtype}"
        )
    return arr.astype(np.int64, copy=False)


def _as_value_row(row: Any, vertex: int, name: str) -> NDArray[np.float64]:
    arr = np.atleast_1d(np.asarray(row, dtype=np.float64))
    if arr.ndim != 1:
        raise ValueError(f"{name}[{vertex}] must be 1-D; got shape {arr.shape}")
    return arr


def flatten_adjacency(
    adjacency: Sequence[Sequence[int]],
    n_vertices: int,
    name: str = "adjacency",
) -> Tuple[NDArray[np.int64], NDArray[np.int64]]:
    """Validate a ragged index list and flatten it into CSR arrays.

    Args:
        adjacency: One sequence of neighbour indices per vertex.
        n_vertices: Expected number of vertices N.
        name: Argument name used in error messages.

    Returns:
        Tuple of (indptr, indices): `indptr` has length N + 1 and
        ``indices[indptr[v]:indptr[v + 1]]`` are the neighbours of `v`.

    Raises:
        ValueError: If the outer length is not N, a row is not an integer
            sequence, or an index lies outside ``[0, N)``.
    """
    if len(adjacency) != n_vertices:
        _LOGGER.error(
            "flatten_adjacency: len(%s)=%d != n_vertices=%d",
            name,
            len(adjacency),
            n_vertices,
        )
        raise ValueError(
            f"{name} has {len(adjacency)} entries but {n_vertices} vertices are expected"
        )

    rows = [_as_index_row(row, v, name) for v, row in enumerate(adjacency)]
    lengths = np.fromiter((r.size for r in rows), dtype=np.int64, count=n_vertices)
    indptr = np.zeros(n_vertices + 1, dtype=np.int64)
    np.cumsum(lengths, out=indptr[1:])
    indices = np.concatenate(rows) if rows else np.empty(0, dtype=np.int64)

    bad = (indices < 0) | (indices >= n_vertices)
    if np.any(bad):
        first = int(np.flatnonzero(bad)[0])
        vertex = int(np.searchsorted(indptr, first, side="right") - 1)
        _LOGGER.error(
            "flatten_adjacency: %d out-of-range index(es) in %s", int(bad.sum()), name
        )
        raise ValueError(
            f"{name}[{vertex}] references vertex {int(indices[first])}, "
            f"outside [0, {n_vertices})"
        )
    return indptr, indices


def flatten_neighborhood(
    neighbor_indices: Sequence[Sequence[int]],
    neighbor_distances: Sequence[Sequence[float]],
    n_vertices: int,
) -> Tuple[NDArray[np.int64], NDArray[np.int64], NDArray[np.float64]]:
    """Validate a geodesic neighbourhood and flatten it into CSR arrays.

    Returns:
        Tuple of (indptr, indices, distances).

    Raises:
        ValueError: If the outer lengths differ from N, a vertex has differing
            numbers of indices and distances, an index is out of range, or a
            distance is negative or non-finite.
    """
    if len(neighbor_distances) != len(neighbor_indices):
        _LOGGER.error(
            "flatten_neighborhood: %d index lists vs %d distance lists",
            len(neighbor_indices),
            len(neighbor_distances),
        )
        raise ValueError(
            f"neighbor_indices ({len(neighbor_indices)}) and neighbor_distances "
            f"({len(neighbor_distances)}) must have the same number of entries"
        )
    indptr, indices = flatten_adjacency(neighbor_indices, n_vertices, "neighbor_indices")

    dist_rows = [
        _as_value_row(row, v, "neighbor_distances")
        for v, row in enumerate(neighbor_distances)
    ]
    for v, row in enumerate(dist_rows):
        expected = int(indptr[v + 1] - indptr[v])
        if row.size != expected:
            raise ValueError(
                f"vertex {v}: {expected} neighbor indices but {row.size} distances"
            )
    distances = (
        np.concatenate(dist_rows) if dist_rows else np.empty(0, dtype=np.float64)
    )
    if distances.size and (
        not np.all(np.isfinite(distances)) or np.any(distances < 0.0)
    ):
        _LOGGER.error("flatten_neighborhood: negative or non-finite distances")
        raise ValueError("neighbor_distances must be finite and non-negative")
    return indptr, indices, distances


def csr_from_flat(
    indptr: NDArray[np.int64],
    indices: NDArray[np.int64],
    values: Optional[NDArray[np.float64]] = None,
) -> sp.csr_matrix:
    """Build an N x N CSR matrix from flattened neighbourhood arrays.

    Duplicate neighbour entries are kept; a matrix-vector product then counts
    them once per occurrence, as a loop over the neighbour list would.
    """
    n = indptr.size - 1
    if values is None:
        values = np.ones(indices.size, dtype=np.float64)
    return sp.csr_matrix((values, indices, indptr), shape=(n, n))


def adjacency_from_faces(
    faces: Any,
    n_vertices: Optional[int] = None,
    include_self: bool = False,
) -> List[NDArray[np.int64]]:
    """Derive the 1-ring adjacency relation from a triangle array.

    Args:
        faces: (F, 3) integer array of triangle vertex indices.
        n_vertices: Number of vertices; defaults to ``faces.max() + 1``.
        include_self: If True, every vertex also lists itself.

    Returns:
        List of N sorted, duplicate-free neighbour index arrays.

    Raises:
        ValueError: If `faces` is not (F, 3) or references an invalid vertex.
    """
    tris = np.asarray(faces)
    if tris.ndim != 2 or tris.shape[1] != 3:
        raise ValueError(f"faces must be (n_faces, 3); got {tris.shape}")
    if tris.size and not np.issubdtype(tris.dtype, np.integer):
        raise ValueError(f"faces must hold integer indices; got dtype {tris.dtype}")
    tris = tris.astype(np.int64, copy=False)

    if n_vertices is None:
        n_vertices = int(tris.max()) + 1 if tris.size else 0
    if tris.size and (tris.min() < 0 or tris.max() >= n_vertices):
        raise ValueError(f"faces reference vertices outside [0, {n_vertices})")

    rows = np.concatenate([tris[:, 0], tris[:, 1], tris[:, 2], tris[:, 1], tris[:, 2], tris[:, 0]])
    cols = np.concatenate([tris[:, 1], tris[:, 2], tris[:, 0], tris[:, 0], tris[:, 1], tris[:, 2]])
    if include_self:
        diag = np.arange(n_vertices, dtype=np.int64)
        rows = np.concatenate([rows, diag])
        cols = np.concatenate([cols, diag])

    A = sp.coo_matrix(
        (np.ones(rows.size, dtype=np.int8), (rows, cols)),
        shape=(n_vertices, n_vertices),
    ).tocsr()
    A.sum_duplicates()
    A.sort_indices()

    isolated = int(np.count_nonzero(np.diff(A.indptr) == 0))
    if isolated:
        _LOGGER.warning(
            "adjacency_from_faces: %d vertex(es) belong to no triangle", isolated
        )
    _LOGGER.debug(
        "adjacency_from_faces: n_vertices=%d n_faces=%d nnz=%d include_self=%s",
        n_vertices,
        tris.shape[0],
        A.nnz,
        include_self,
    )
    return [
        A.indices[A.indptr[v] : A.indptr[v + 1]].astype(np.int64)
        for v in range(n_vertices)
    ]


def truncate_neighborhood(
    neighbor_indices: Sequence[Sequence[int]],
    neighbor_distances: Sequence[Sequence[float]],
    radius: float,
) -> Tuple[List[NDArray[np.int64]], List[NDArray[np.float64]]]:
    """Drop neighbour entries farther than `radius` from their vertex.

    Entries at exactly `radius` are kept, so truncating an already truncated
    neighbourhood with the same radius returns it unchanged.

    Raises:
        ValueError: If `radius` is negative or NaN, or the neighbourhood is
            malformed (see :func:`flatten_neighborhood`).
    """
    n = len(neighbor_indices)
    indptr, indices, distances = flatten_neighborhood(
        neighbor_indices, neighbor_distances, n
    )
    indptr, indices, distances = truncate_flat(indptr, indices, distances, radius)
    return split_rows(indptr, indices), split_rows(indptr, distances)


def row_ids(indptr: NDArray[np.int64]) -> NDArray[np.int64]:
    """Return the owning vertex of every flattened neighbour entry."""
    n = indptr.size - 1
    return np.repeat(np.arange(n, dtype=np.int64), np.diff(indptr))


def split_rows(indptr: NDArray[np.int64], flat: NDArray[Any]) -> List[NDArray[Any]]:
    """Split a flattened array back into one array per vertex."""
    return [flat[indptr[v] : indptr[v + 1]].copy() for v in range(indptr.size - 1)]


def truncate_flat(
    indptr: NDArray[np.int64],
    indices: NDArray[np.int64],
    distances: NDArray[np.float64],
    radius: float,
) -> Tuple[NDArray[np.int64], NDArray[np.int64], NDArray[np.float64]]:
    """Drop flattened entries with ``distance > radius``, keeping entry order."""
    if np.isnan(radius) or radius < 0.0:
        raise ValueError(f"radius must be >= 0; got {radius!r}")
    keep = distances <= radius
    n = indptr.size - 1
    counts = np.bincount(row_ids(indptr)[keep], minlength=n)
    new_indptr = np.zeros(n + 1, dtype=np.int64)
    np.cumsum(counts, out=new_indptr[1:])
    _LOGGER.debug(
        "truncate_flat: radius=%g kept %d of %d entries",
        radius,
        int(keep.sum()),
        keep.size,
    )
    return new_indptr, indices[keep], distances[keep]
