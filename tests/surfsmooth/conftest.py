from __future__ import annotations
import pytest

import numpy as np
from surfsmooth.mesh import SurfaceMesh


@pytest.fixture(autouse=True)
def default_settings():
    """Run every test with the default kernel settings."""
    import surfsmooth as ss

    with ss.use(dtype="float64", snap_tol=0.0):
        yield ss


@pytest.fixture
def simple_triangle_mesh():
    """
    Provides a SurfaceMesh with a single triangle:
        v0 = [0, 0, 0]
        v1 = [1, 0, 0]
        v2 = [0, 1, 0]
    """
    verts = np.array(
        [
            [0.0, 0.0, 0.0],  # v0
            [1.0, 0.0, 0.0],  # v1
            [0.0, 1.0, 0.0],  # v2
        ]
    )
    faces = np.array([[0, 1, 2]])  # One triangle
    return SurfaceMesh(verts=verts, faces=faces)


@pytest.fixture
def two_triangle_square():
    """
    Unit square split into two triangles along the diagonal (0-2):
      v3 (0,1) ---- v2 (1,1)
        |  \\          |
        |    \\        |
        |      \\      |
      v0 (0,0) ---- v1 (1,0)
    Triangles: [0,1,2] and [0,2,3]
    """
    verts = np.array(
        [
            [0.0, 0.0, 0.0],  # v0
            [1.0, 0.0, 0.0],  # v1
            [1.0, 1.0, 0.0],  # v2
            [0.0, 1.0, 0.0],  # v3
        ],
        dtype=float,
    )
    faces = np.array([[0, 1, 2], [0, 2, 3]], dtype=int)
    return SurfaceMesh(verts=verts, faces=faces)


@pytest.fixture
def tetra_surface():
    """
    Closed tetrahedron surface (no boundary).
    Vertices: (0,0,0),(1,0,0),(0,1,0),(0,0,1)
    Faces: (0,1,2),(0,1,3),(1,2,3),(0,2,3)
    """
    verts = np.array(
        [
            [0.0, 0.0, 0.0],
            [1.0, 0.0, 0.0],
            [0.0, 1.0, 0.0],
            [0.0, 0.0, 1.0],
        ],
        dtype=float,
    )
    faces = np.array([[0, 1, 2], [0, 1, 3], [1, 2, 3], [0, 2, 3]], dtype=int)
    return SurfaceMesh(verts=verts, faces=faces)
