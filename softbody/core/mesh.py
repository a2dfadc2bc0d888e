"""Geometry containers shared with the rendering collaborator.

Positions are stored as (n, 3) float64 arrays, connectivity as int64 arrays.
The solvers read them once at construction and write updated positions back
through ``update_mesh``.
"""

import numpy as np
from dataclasses import dataclass

from ..validation import validate_positions, validate_index_array

# Local faces of a tetrahedron; face f is opposite local vertex f.
TET_FACES = np.array([
    [1, 2, 3],
    [0, 3, 2],
    [0, 1, 3],
    [0, 2, 1],
], dtype=np.int64)


@dataclass
class TriangleMesh:
    """Surface mesh: vertex positions and triangle indices."""

    positions: np.ndarray
    indices: np.ndarray

    def __post_init__(self):
        self.positions = validate_positions(self.positions)
        self.indices = validate_index_array(
            self.indices, len(self.positions), 3, "삼각형"
        )

    @property
    def n_vertices(self) -> int:
        return self.positions.shape[0]

    @property
    def n_triangles(self) -> int:
        return self.indices.shape[0]

    def unique_edges(self) -> np.ndarray:
        """Undirected edges of all triangles, each listed once as (i, j), i < j.

        Degenerate triangle sides (repeated vertex index) are skipped.
        """
        tri = self.indices
        if tri.size == 0:
            return np.empty((0, 2), dtype=np.int64)
        pairs = np.concatenate([tri[:, [0, 1]], tri[:, [1, 2]], tri[:, [2, 0]]])
        pairs = np.sort(pairs, axis=1)
        pairs = pairs[pairs[:, 0] != pairs[:, 1]]
        return np.unique(pairs, axis=0)

    def enclosed_volume(self) -> float:
        """Signed volume enclosed by a closed, outward-oriented surface.

        Divergence theorem: V = Σ x0 · (x1 × x2) / 6
        """
        x = self.positions[self.indices]
        return float(np.einsum("ij,ij->i", x[:, 0], np.cross(x[:, 1], x[:, 2])).sum() / 6.0)

    def copy(self) -> "TriangleMesh":
        return TriangleMesh(self.positions.copy(), self.indices.copy())


@dataclass
class TetrahedralMesh:
    """Volume mesh: vertex positions and tetrahedron indices."""

    positions: np.ndarray
    indices: np.ndarray

    def __post_init__(self):
        self.positions = validate_positions(self.positions)
        self.indices = validate_index_array(
            self.indices, len(self.positions), 4, "사면체"
        )

    @property
    def n_vertices(self) -> int:
        return self.positions.shape[0]

    @property
    def n_tets(self) -> int:
        return self.indices.shape[0]

    def boundary_faces(self) -> np.ndarray:
        """Faces owned by exactly one tetrahedron, oriented outward.

        Returns:
            (n_faces, 3) vertex indices
        """
        tets = self.indices
        faces = tets[:, TET_FACES].reshape(-1, 3)               # (4T, 3)
        opposite = tets.reshape(-1)                             # vertex opposite each face

        keys = np.sort(faces, axis=1)
        _, inverse, counts = np.unique(
            keys, axis=0, return_inverse=True, return_counts=True
        )
        inverse = inverse.reshape(-1)
        boundary = counts[inverse] == 1
        faces = faces[boundary]
        opposite = opposite[boundary]

        # Flip faces whose normal points toward the opposite vertex
        x = self.positions
        normal = np.cross(x[faces[:, 1]] - x[faces[:, 0]], x[faces[:, 2]] - x[faces[:, 0]])
        inward = np.einsum("ij,ij->i", normal, x[opposite] - x[faces[:, 0]]) > 0
        faces[inward] = faces[inward][:, [0, 2, 1]]
        return faces

    def surface(self) -> TriangleMesh:
        """Boundary surface as a triangle mesh over the same vertex array."""
        return TriangleMesh(self.positions.copy(), self.boundary_faces())

    def copy(self) -> "TetrahedralMesh":
        return TetrahedralMesh(self.positions.copy(), self.indices.copy())
