"""Module defining the SurfaceMesh class binding the kernels to a triangle mesh.

This module provides:
  - Validation of vertex coordinates and triangle connectivity.
  - Triangle normals and the vertex -> triangles map.
  - The cached 1-ring adjacency relation.
  - KD-tree seeded point-in-triangle localisation.
  - Convenience wrappers around the smoothing and interpolation kernels.
"""
from __future__ import annotations

import collections
import logging
from typing import Any, DefaultDict, Dict, List, Tuple

import numpy as np
from numpy.typing import NDArray
from scipy.spatial import cKDTree

from .interpolation import interpolate_triangles
from .neighborhood import MISSING, adjacency_from_faces
from .smoothing import smooth_neighbors

_LOGGER = logging.getLogger(__name__)

_EPS = 1e-12
# Relative slack on the barycentric test so points on shared edges are found.
_INSIDE_TOL = 1e-6


class SurfaceMesh:
    """Triangular surface mesh carrying per-vertex scalar data.

    Args:
        verts (NDArray[Any]): Vertex coordinates (n_verts×3).
        faces (NDArray[Any]): Triangle vertex indices (n_faces×3).

    Attributes:
        verts (NDArray[Any]): Vertex array, shape (n_verts, 3).
        faces (NDArray[Any]): Triangle indices, shape (n_faces, 3).
        normals (NDArray[Any]): Unit triangle normals, zero for degenerate
            triangles, shape (n_faces, 3).
        node_to_tri (DefaultDict[int, List[int]]): Vertex→[triangle indices].
        tree (cKDTree): KD-tree over `verts` for nearest-vertex queries.
    """

    verts: NDArray[Any]
    faces: NDArray[Any]
    normals: NDArray[Any]
    node_to_tri: DefaultDict[int, List[int]]
    tree: cKDTree

    def __init__(self, verts: Any, faces: Any) -> None:
        """Validate the arrays and build normals and search structures.

        Raises:
            ValueError: If the arrays are malformed or `faces` references a
                vertex that does not exist.
        """
        self.verts = np.asarray(verts, dtype=float)
        faces_arr = np.asarray(faces)

        if self.verts.ndim != 2 or self.verts.shape[1] != 3:
            raise ValueError(f"verts must be (n_verts, 3); got {self.verts.shape}")
        if not np.all(np.isfinite(self.verts)):
            raise ValueError("verts contains non-finite coordinates")
        if faces_arr.ndim != 2 or faces_arr.shape[1] != 3:
            raise ValueError(f"faces must be (n_faces, 3); got {faces_arr.shape}")
        if faces_arr.size and not np.issubdtype(faces_arr.dtype, np.integer):
            raise ValueError(f"faces must hold integers; got dtype {faces_arr.dtype}")
        self.faces = faces_arr.astype(int, copy=False)
        n_verts = self.verts.shape[0]
        if self.faces.size and (self.faces.min() < 0 or self.faces.max() >= n_verts):
            _LOGGER.error("SurfaceMesh: faces reference vertices outside [0, %d)", n_verts)
            raise ValueError("faces contain out-of-range vertex indices.")

        a = self.verts[self.faces[:, 0]]
        b = self.verts[self.faces[:, 1]]
        c = self.verts[self.faces[:, 2]]
        n = np.cross(b - a, c - a)
        nn = np.linalg.norm(n, axis=1)
        deg_mask = nn <= _EPS
        safe = np.where(deg_mask, 1.0, nn)
        self.normals = n / safe[:, None]
        if np.any(deg_mask):
            # Zero-out degenerate triangle normals to avoid NaNs
            self.normals[deg_mask] = 0.0
            _LOGGER.warning(
                "SurfaceMesh: %d degenerate triangle(s) with ~zero area; normals set to 0.",
                int(np.count_nonzero(deg_mask)),
            )

        self.node_to_tri = collections.defaultdict(list)
        for tri_idx, tri in enumerate(self.faces):
            for node in tri:
                self.node_to_tri[int(node)].append(tri_idx)

        self.tree = cKDTree(self.verts)
        self._adjacency: Dict[bool, List[NDArray[np.int64]]] = {}

        _LOGGER.info(
            "SurfaceMesh initialized with %d vertices and %d triangles",
            n_verts,
            self.faces.shape[0],
        )

    @property
    def n_verts(self) -> int:
        """Number of vertices."""
        return int(self.verts.shape[0])

    @property
    def n_faces(self) -> int:
        """Number of triangles."""
        return int(self.faces.shape[0])

    def adjacency(self, include_self: bool = False) -> List[NDArray[np.int64]]:
        """Return the 1-ring adjacency relation, computed once per flavour.

        Args:
            include_self: If True, every vertex also lists itself.
        """
        if include_self not in self._adjacency:
            self._adjacency[include_self] = adjacency_from_faces(
                self.faces, self.n_verts, include_self=include_self
            )
        return self._adjacency[include_self]

    def smooth_nn(
        self, data: Any, iterations: int = 1, include_self: bool = False
    ) -> NDArray[np.floating]:
        """Smooth per-vertex data by averaging over the 1-ring neighbourhood.

        See :func:`surfsmooth.smoothing.smooth_neighbors`.
        """
        return smooth_neighbors(self.adjacency(include_self), data, iterations)

    def _locate_point(
        self, p: NDArray[Any], candidates: List[int]
    ) -> Tuple[int, NDArray[Any]]:
        """Find the candidate triangle containing the projection of `p`.

        Every candidate is tested by projecting `p` onto its plane and
        checking the barycentric coordinates of the projection. Among the
        triangles that contain their projection, the one whose plane is
        closest to `p` wins.

        Returns:
            Tuple of (triangle index or -1, projected point).
        """
        tri_arr = np.asarray(candidates, dtype=int)
        a = self.verts[self.faces[tri_arr, 0]]
        b = self.verts[self.faces[tri_arr, 1]]
        c = self.verts[self.faces[tri_arr, 2]]
        nrm = self.normals[tri_arr]

        plane_dist = np.sum((p - a) * nrm, axis=1)
        projected = p - plane_dist[:, None] * nrm

        u = b - a
        v = c - a
        w = projected - a

        # Barycentric test using cross products (signs).
        vxw = np.cross(v, w)
        vxu = np.cross(v, u)
        uxw = np.cross(u, w)
        sign_r = np.sum(vxw * vxu, axis=1)
        sign_t = np.sum(uxw * -vxu, axis=1)

        denom = np.linalg.norm(vxu, axis=1)
        ok = denom > _EPS
        safe = np.where(ok, denom, 1.0)
        r = np.linalg.norm(vxw, axis=1) / safe
        t = np.linalg.norm(uxw, axis=1) / safe

        inside = (
            ok
            & (sign_r >= 0.0)
            & (sign_t >= 0.0)
            & (r + t <= 1.0 + _INSIDE_TOL)
        )
        if not np.any(inside):
            return -1, p
        hits = np.flatnonzero(inside)
        best = int(hits[np.argmin(np.abs(plane_dist[hits]))])
        return int(tri_arr[best]), projected[best]

    def locate(
        self, points: Any, verts_to_search: int = 3
    ) -> Tuple[NDArray[np.int64], NDArray[np.float64]]:
        """Find the triangle enclosing each query point.

        Candidate triangles are those around the `verts_to_search` vertices
        nearest to the point.

        Args:
            points: (n, 3) query coordinates.
            verts_to_search: Number of nearby vertices to search, >= 1.

        Returns:
            Tuple of (triangle index per point, -1 where none was found;
            projection of each point onto its triangle, the point itself
            where none was found).

        Raises:
            ValueError: If `verts_to_search` < 1 or `points` is not (n, 3).
        """
        if verts_to_search < 1:
            raise ValueError("verts_to_search must be >= 1")
        pts = np.asarray(points, dtype=float)
        if pts.ndim != 2 or pts.shape[1] != 3:
            raise ValueError(f"points must be (n, 3); got {pts.shape}")

        tri_idx = np.full(pts.shape[0], -1, dtype=np.int64)
        projected = pts.copy()
        if pts.shape[0] == 0 or self.n_faces == 0:
            return tri_idx, projected

        k = min(int(verts_to_search), self.n_verts)
        _dists, idxs = self.tree.query(pts, k=k)
        idxs = np.asarray(idxs).reshape(pts.shape[0], k)

        for i, p in enumerate(pts):
            candidates: List[int] = []
            for node in idxs[i]:
                for tri in self.node_to_tri.get(int(node), []):
                    if tri not in candidates:
                        candidates.append(tri)
            if not candidates:
                continue
            tri_idx[i], projected[i] = self._locate_point(p, candidates)

        n_outside = int(np.count_nonzero(tri_idx < 0))
        if n_outside:
            _LOGGER.debug(
                "locate: %d of %d point(s) not inside any candidate triangle "
                "(k=%d).",
                n_outside,
                pts.shape[0],
                k,
            )
        return tri_idx, projected

    def interpolate(
        self,
        points: Any,
        pervertex_data: Any,
        beta: float = 1.0,
        strict: bool = True,
        verts_to_search: int = 3,
    ) -> NDArray[np.floating]:
        """Interpolate per-vertex data at arbitrary points on the surface.

        Locates the enclosing triangle of every point, then applies
        :func:`surfsmooth.interpolation.interpolate_triangles`.

        Args:
            points: (n, 3) query coordinates.
            pervertex_data: Per-vertex values, length n_verts.
            beta: Inverse distance weighting exponent.
            strict: If True, points outside the mesh raise; otherwise they
                get a missing value.
            verts_to_search: Forwarded to :meth:`locate`.

        Raises:
            ValueError: If `strict` and a point lies outside every candidate
                triangle, or the kernel rejects its inputs.
        """
        pts = np.asarray(points, dtype=float)
        tri_idx, _projected = self.locate(pts, verts_to_search=verts_to_search)
        outside = tri_idx < 0
        if np.any(outside) and strict:
            _LOGGER.error(
                "interpolate: %d point(s) outside the mesh", int(outside.sum())
            )
            raise ValueError(
                f"{int(outside.sum())} query point(s) are not inside any mesh "
                f"triangle (first: index {int(np.flatnonzero(outside)[0])})"
            )

        inside = ~outside
        result = interpolate_triangles(
            pts[inside],
            self.verts,
            self.faces[tri_idx[inside]].reshape(-1, 3),
            pervertex_data,
            beta,
        )
        out = np.full(pts.shape[0], MISSING, dtype=result.dtype)
        out[inside] = result
        return out
