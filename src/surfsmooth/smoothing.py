"""Smoothing kernels for per-vertex scalar fields on surface meshes.

This module provides:
  - Iterative nearest-neighbour averaging over an arbitrary adjacency relation.
  - Gaussian smoothing over truncated geodesic neighbourhoods.

Missing values are NaN. Both smoothers keep a missing vertex missing, skip
missing neighbours, and return a missing value instead of dividing by zero
when a vertex has no usable neighbour.
"""
from __future__ import annotations

import logging
import math
import operator
from typing import Any, List, Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from .config import output_dtype
from .neighborhood import (
    MISSING,
    as_field,
    csr_from_flat,
    flatten_adjacency,
    flatten_neighborhood,
    row_ids,
    split_rows,
    truncate_flat,
)

_LOGGER = logging.getLogger(__name__)

_LN_256 = math.log(256.0)
# Relative slack on the truncation radius; covers a radius computed upstream
# in single precision.
_TRUNC_RTOL = 1e-6


def _check_iterations(iterations: Any) -> int:
    try:
        num_iter = operator.index(iterations)
    except TypeError:
        _LOGGER.error(
            "smooth_neighbors: non-integer iterations of type %s",
            type(iterations).__name__,
        )
        raise ValueError(
            f"iterations must be an integer; got {type(iterations).__name__}"
        ) from None
    if num_iter < 1:
        _LOGGER.error("smooth_neighbors: invalid iterations=%d", num_iter)
        raise ValueError(f"iterations must be >= 1; got {num_iter}")
    return num_iter


def smooth_neighbors(
    adjacency: Sequence[Sequence[int]],
    data: Any,
    iterations: int = 1,
) -> NDArray[np.floating]:
    """Smooth a per-vertex field by repeated neighbour averaging.

    Each iteration replaces the value of every vertex with the mean of its
    neighbours' values from the previous iteration. The neighbourhood can be
    any relation, not only the 1-ring; list a vertex in its own neighbourhood
    to include it in the mean.

    Missing values (NaN) are handled as follows:
      - a missing vertex stays missing in every later iteration,
      - missing neighbours are left out of both the sum and the count,
      - a vertex with no non-missing neighbour becomes missing.

    Args:
        adjacency: One sequence of neighbour indices per vertex.
        data: Per-vertex values, length N. Not modified.
        iterations: Number of smoothing passes, >= 1.

    Returns:
        New array of length N with the smoothed values.

    Raises:
        ValueError: If `iterations` < 1, `len(adjacency) != len(data)` or an
            adjacency index lies outside ``[0, N)``.
    """
    values = as_field(data)
    num_values = values.size
    num_iter = _check_iterations(iterations)
    indptr, indices = flatten_adjacency(adjacency, num_values)
    A = csr_from_flat(indptr, indices)

    _LOGGER.info(
        "Smoothing %d iteration(s) over %d data values.", num_iter, num_values
    )

    # Two-slot ping-pong buffer: iteration i writes slot i % 2 and reads the
    # other slot, so no vertex ever sees a value from the current pass.
    buffers = (np.empty(num_values), np.empty(num_values))
    num_skip_na_self = 0
    num_skip_na_neighbors = 0
    num_isolated = 0

    for i in range(num_iter):
        source = values if i == 0 else buffers[(i - 1) % 2]
        target = buffers[i % 2]

        missing = np.isnan(source)
        present = ~missing
        neigh_sum = A @ np.where(missing, 0.0, source)
        neigh_count = A @ present.astype(np.float64)

        valid = present & (neigh_count > 0.0)
        target.fill(MISSING)
        np.divide(neigh_sum, neigh_count, out=target, where=valid)

        num_skip_na_self += int(missing.sum())
        num_isolated += int(np.count_nonzero(present & ~valid))
        if _LOGGER.isEnabledFor(logging.DEBUG):
            neigh_missing = A @ missing.astype(np.float64)
            num_skip_na_neighbors += int(neigh_missing[present].sum())

    if num_isolated:
        _LOGGER.warning(
            "smooth_neighbors: %d vertex value(s) set to missing because no "
            "non-missing neighbour was available.",
            num_isolated,
        )
    _LOGGER.debug(
        "Ignored %d NA vertices. Ignored %d NA neighbors of non-NA vertices.",
        num_skip_na_self,
        num_skip_na_neighbors,
    )
    return buffers[(num_iter - 1) % 2].astype(output_dtype(), copy=False)


def fwhm_to_gstd(fwhm: float) -> float:
    """Convert a Gaussian full width at half maximum to its standard deviation.

    ``gstd = fwhm / sqrt(ln(256))``; the sign of `fwhm` is preserved.
    """
    return fwhm / math.sqrt(_LN_256)


def _gauss_weights_flat(
    indptr: NDArray[np.int64],
    distances: NDArray[np.float64],
    gstd: float,
) -> NDArray[np.float64]:
    """Normalised Gaussian weights for flattened neighbourhood distances.

    The exponent is shifted by the smallest squared distance of each vertex,
    which cancels in the normalisation and keeps the largest weight of every
    non-empty neighbourhood at `f`, so far neighbourhoods cannot underflow.
    """
    n = indptr.size - 1
    gvar2 = 2.0 * (gstd * gstd)
    f = 1.0 / (math.sqrt(2.0 * math.pi) * gstd)
    d2 = distances * distances

    owner = row_ids(indptr)
    nonempty = np.flatnonzero(np.diff(indptr) > 0)
    d2_min = np.zeros(n, dtype=np.float64)
    if nonempty.size:
        d2_min[nonempty] = np.minimum.reduceat(d2, indptr[nonempty])
    g = f * np.exp(-(d2 - d2_min[owner]) / gvar2)

    gsum = np.bincount(owner, weights=g, minlength=n)
    return g / gsum[owner]


def gauss_weights(
    neighbor_indices: Sequence[Sequence[int]],
    neighbor_distances: Sequence[Sequence[float]],
    gstd: float,
) -> List[NDArray[np.float64]]:
    """Compute normalised Gaussian weights for every vertex neighbourhood.

    The unnormalised weight of a neighbour at geodesic distance ``d`` is
    ``exp(-d**2 / (2 * gstd**2)) / (sqrt(2 * pi) * gstd)``; the weights of one
    vertex are then divided by their sum. An empty neighbourhood yields an
    empty weight array.

    Args:
        neighbor_indices: Per-vertex neighbour indices.
        neighbor_distances: Per-vertex geodesic distances, parallel to
            `neighbor_indices`.
        gstd: Gaussian standard deviation, > 0.

    Returns:
        One weight array per vertex, parallel to `neighbor_indices`.

    Raises:
        ValueError: If `gstd` is not positive and finite or the neighbourhood
            is malformed.
    """
    if not (math.isfinite(gstd) and gstd > 0.0):
        raise ValueError(f"gstd must be positive and finite; got {gstd!r}")
    n = len(neighbor_indices)
    indptr, _indices, distances = flatten_neighborhood(
        neighbor_indices, neighbor_distances, n
    )
    return split_rows(indptr, _gauss_weights_flat(indptr, distances, gstd))


def _filter_flat(
    values: NDArray[np.float64],
    indptr: NDArray[np.int64],
    indices: NDArray[np.int64],
    weights: NDArray[np.float64],
) -> NDArray[np.float64]:
    W = csr_from_flat(indptr, indices, weights)
    missing = np.isnan(values)
    present = ~missing

    weighted_sum = W @ np.where(missing, 0.0, values)
    weight_total = W @ present.astype(np.float64)

    smoothed = np.full(values.size, MISSING)
    valid = present & (weight_total > 0.0)
    # Renormalise over the non-missing neighbours; the total is 1 when none
    # is missing.
    np.divide(weighted_sum, weight_total, out=smoothed, where=valid)

    num_empty = int(np.count_nonzero(present & ~valid))
    if num_empty:
        _LOGGER.warning(
            "spatial_filter: %d vertex value(s) set to missing because the "
            "neighbourhood is empty or entirely missing.",
            num_empty,
        )
    _LOGGER.debug(
        "spatial_filter: n=%d nnz=%d missing_in=%d missing_out=%d",
        values.size,
        W.nnz,
        int(missing.sum()),
        int(np.isnan(smoothed).sum()),
    )
    return smoothed


def spatial_filter(
    data: Any,
    neighbor_indices: Sequence[Sequence[int]],
    weights: Sequence[Sequence[float]],
) -> NDArray[np.floating]:
    """Apply per-vertex neighbourhood weights to a field.

    The smoothed value of vertex ``v`` is ``sum_j weights[v][j] *
    data[neighbor_indices[v][j]]``, renormalised over the neighbours whose
    value is not missing.

    Raises:
        ValueError: If the neighbourhood and the weights disagree in shape
            or do not match the length of `data`.
    """
    values = as_field(data)
    indptr, indices, flat_weights = _flatten_weights(
        neighbor_indices, weights, values.size
    )
    return _filter_flat(values, indptr, indices, flat_weights).astype(
        output_dtype(), copy=False
    )


def _flatten_weights(
    neighbor_indices: Sequence[Sequence[int]],
    weights: Sequence[Sequence[float]],
    n_vertices: int,
) -> tuple[NDArray[np.int64], NDArray[np.int64], NDArray[np.float64]]:
    if len(weights) != len(neighbor_indices):
        raise ValueError(
            f"neighbor_indices ({len(neighbor_indices)}) and weights "
            f"({len(weights)}) must have the same number of entries"
        )
    indptr, indices = flatten_adjacency(
        neighbor_indices, n_vertices, "neighbor_indices"
    )
    rows = [np.atleast_1d(np.asarray(w, dtype=np.float64)) for w in weights]
    for v, row in enumerate(rows):
        if row.ndim != 1 or row.size != indptr[v + 1] - indptr[v]:
            raise ValueError(
                f"vertex {v}: {int(indptr[v + 1] - indptr[v])} neighbor indices "
                f"but weights of shape {row.shape}"
            )
    flat = np.concatenate(rows) if rows else np.empty(0, dtype=np.float64)
    return indptr, indices, flat


def smooth_gaussian(
    neighbor_indices: Sequence[Sequence[int]],
    neighbor_distances: Sequence[Sequence[float]],
    data: Any,
    fwhm: float = 5.0,
    trunc_factor: Optional[float] = 3.5,
) -> NDArray[np.floating]:
    """Smooth a per-vertex field with a Gaussian kernel over geodesic distances.

    The kernel width is given as a FWHM and converted with
    :func:`fwhm_to_gstd`. Neighbour entries farther than
    ``trunc_factor * gstd`` are dropped before the weights are computed. The
    comparison allows a relative slack of 1e-6 on the radius, so a
    neighbourhood already truncated to that radius (also in float32) is kept
    as is.
    Weights are normalised per vertex and applied in a single pass. Include
    a vertex in its own neighbourhood (distance 0) for it to contribute to
    its smoothed value.

    Args:
        neighbor_indices: Per-vertex neighbour indices, N entries.
        neighbor_distances: Per-vertex geodesic distances, parallel to
            `neighbor_indices`.
        data: Per-vertex values, length N. Not modified.
        fwhm: Full width at half maximum of the Gaussian, > 0.
        trunc_factor: Kernel support in Gaussian standard deviations, > 0, or
            None to use the neighbourhoods as given.

    Returns:
        New array of length N with the smoothed values.

    Raises:
        ValueError: On invalid `fwhm`/`trunc_factor` or a neighbourhood that
            does not match `data`.
    """
    if not (math.isfinite(fwhm) and fwhm > 0.0):
        _LOGGER.error("smooth_gaussian: invalid fwhm=%r", fwhm)
        raise ValueError(f"fwhm must be positive and finite; got {fwhm!r}")
    if trunc_factor is not None and not (
        math.isfinite(trunc_factor) and trunc_factor > 0.0
    ):
        _LOGGER.error("smooth_gaussian: invalid trunc_factor=%r", trunc_factor)
        raise ValueError(
            f"trunc_factor must be positive and finite or None; got {trunc_factor!r}"
        )

    values = as_field(data)
    gstd = fwhm_to_gstd(fwhm)
    indptr, indices, distances = flatten_neighborhood(
        neighbor_indices, neighbor_distances, values.size
    )
    if trunc_factor is not None:
        indptr, indices, distances = truncate_flat(
            indptr, indices, distances, trunc_factor * gstd * (1.0 + _TRUNC_RTOL)
        )

    _LOGGER.info(
        "Gaussian smoothing of %d values: fwhm=%g gstd=%g trunc_factor=%s, "
        "%d neighbour entries.",
        values.size,
        fwhm,
        gstd,
        trunc_factor,
        indices.size,
    )

    weights = _gauss_weights_flat(indptr, distances, gstd)
    return _filter_flat(values, indptr, indices, weights).astype(
        output_dtype(), copy=False
    )
