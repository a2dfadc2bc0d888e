"""Linear tetrahedron reference kinematics.

For each tetrahedron (x0, x1, x2, x3) the reference shape matrix is

    T = [x1 - x0, x2 - x0, x3 - x0]      (columns)

and the shape-derivative matrix D (4x3) has row 0 = -1ᵀ·T⁻¹ and rows 1-3 = T⁻¹,
so that the deformation gradient is F = [x0 x1 x2 x3] · D.

The flattened gradient uses row-major order, vec(F)[3k + c] = F[k, c], and the
9x12 map B satisfies vec(F) = B · q_tet with q_tet the 12 stacked vertex
coordinates of the tetrahedron.
"""

import numpy as np
from dataclasses import dataclass

from ..validation import GeometryError, validate_tet_volumes


@dataclass
class TetKinematics:
    """Per-tetrahedron reference quantities, computed once."""
    rest_shape: np.ndarray         # (T, 3, 3)
    rest_shape_inv: np.ndarray     # (T, 3, 3)
    shape_derivatives: np.ndarray  # (T, 4, 3)
    gradient_maps: np.ndarray      # (T, 9, 12)
    volumes: np.ndarray            # (T,)

    @property
    def n_tets(self) -> int:
        return self.volumes.shape[0]


def tet_dofs(tets: np.ndarray) -> np.ndarray:
    """Global DOF indices of each tetrahedron, (T, 12)."""
    tets = np.asarray(tets, dtype=np.int64)
    return (3 * tets[:, :, None] + np.arange(3)).reshape(tets.shape[0], 12)


def gather_tet_dofs(q: np.ndarray, tets: np.ndarray) -> np.ndarray:
    """Local 12-vectors of every tetrahedron from the global state, (T, 12)."""
    return q[tet_dofs(tets)]


def compute_tet_kinematics(
    positions: np.ndarray,
    tets: np.ndarray,
    volume_tol: float = 1e-12,
) -> TetKinematics:
    """Compute shape matrices, volumes and DOF-to-gradient maps.

    Args:
        positions: Rest vertex positions (n, 3)
        tets: Tetrahedron indices (T, 4)
        volume_tol: Minimum volume relative to the cube of the mesh extent

    Raises:
        GeometryError: Degenerate tetrahedron (near-zero volume or singular T)
    """
    positions = np.asarray(positions, dtype=np.float64)
    tets = np.asarray(tets, dtype=np.int64)
    n_tets = tets.shape[0]

    x = positions[tets]                                   # (T, 4, 3)
    edges = x[:, 1:, :] - x[:, :1, :]                     # (T, 3, 3) rows = edges
    T = edges.transpose(0, 2, 1)                          # columns = edges

    volumes = np.abs(np.linalg.det(T)) / 6.0

    extent = float(np.ptp(positions, axis=0).max()) if len(positions) else 0.0
    validate_tet_volumes(volumes, volume_tol * max(extent, 1e-300) ** 3)

    try:
        T_inv = np.linalg.inv(T)
    except np.linalg.LinAlgError as e:
        raise GeometryError(
            "형상 행렬의 역행렬을 계산할 수 없습니다.",
            parameter="rest_shape",
        ) from e

    D = np.empty((n_tets, 4, 3))
    D[:, 0, :] = -T_inv.sum(axis=1)
    D[:, 1:, :] = T_inv

    # B[3k + c, 3j + k] = D[j, c]
    B = np.zeros((n_tets, 9, 12))
    for j in range(4):
        for k in range(3):
            B[:, 3 * k:3 * k + 3, 3 * j + k] = D[:, j, :]

    return TetKinematics(
        rest_shape=T,
        rest_shape_inv=T_inv,
        shape_derivatives=D,
        gradient_maps=B,
        volumes=volumes,
    )


def deformation_gradients(
    kin: TetKinematics,
    q: np.ndarray,
    tets: np.ndarray,
) -> np.ndarray:
    """Deformation gradients of all tetrahedra at state q, (T, 3, 3).

    F = [x0 x1 x2 x3] · D
    """
    x = q.reshape(-1, 3)[tets]                            # (T, 4, 3)
    return np.einsum("tjk,tjc->tkc", x, kin.shape_derivatives)


def tet_mass_template() -> np.ndarray:
    """Consistent mass template of a unit-density linear tetrahedron.

    2 on the diagonal and 1 between equal axes of different vertices;
    the element mass matrix is volume / 20 times this matrix.
    """
    M = 2.0 * np.eye(12)
    for shift in (3, 6, 9):
        M += np.roll(np.eye(12), shift, axis=1)
    return M
