"""The surfsmooth package processes per-vertex scalar fields on surface meshes.

This package offers:
  - Iterative nearest-neighbour smoothing with missing-value propagation.
  - Gaussian smoothing over truncated geodesic neighbourhoods.
  - Inverse-distance-weighted interpolation of vertex data inside triangles.

Submodules:
  - config: Logging and kernel settings.
  - neighborhood: Missing sentinel, adjacency and neighbourhood helpers.
  - smoothing: Neighbour-average and Gaussian smoothers.
  - interpolation: Triangle interpolation.
  - mesh: SurfaceMesh binding the kernels to a triangle mesh.

Classes:
  SurfaceMesh
"""

from .config import (
    config,
    configure,
    use,
    output_dtype,
    snap_tol,
    set_log_level,
)

from surfsmooth.interpolation import (
    euclidean_distance,
    idw_weights,
    interpolate_triangles,
)
from surfsmooth.mesh import SurfaceMesh
from surfsmooth.neighborhood import (
    MISSING,
    adjacency_from_faces,
    is_missing,
    truncate_neighborhood,
)
from surfsmooth.smoothing import (
    fwhm_to_gstd,
    gauss_weights,
    smooth_gaussian,
    smooth_neighbors,
    spatial_filter,
)

__all__ = [
    # Kernels
    "smooth_neighbors",
    "smooth_gaussian",
    "interpolate_triangles",
    # Kernel building blocks
    "fwhm_to_gstd",
    "gauss_weights",
    "spatial_filter",
    "idw_weights",
    "euclidean_distance",
    # Neighbourhoods and missing values
    "MISSING",
    "is_missing",
    "adjacency_from_faces",
    "truncate_neighborhood",
    # Mesh
    "SurfaceMesh",
    # Configuration
    "config",
    "configure",
    "use",
    "output_dtype",
    "snap_tol",
    "set_log_level",
]
