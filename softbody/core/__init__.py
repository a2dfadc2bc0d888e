"""Core geometry data structures."""

from .mesh import TriangleMesh, TetrahedralMesh
from .element import TetKinematics, compute_tet_kinematics

__all__ = ["TriangleMesh", "TetrahedralMesh", "TetKinematics", "compute_tet_kinematics"]
