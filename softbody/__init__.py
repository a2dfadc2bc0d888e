"""Deformable-body simulation: mass-spring cloth and tetrahedral FEM."""

from .config import FEMConfig, MassSpringConfig, SimulationConfig
from .core import TetrahedralMesh, TriangleMesh
from .solver import FEMSolver, IntegratorKind, MassSpringSolver
from .validation import GeometryError, NumericalError, SoftbodyValidationError

__version__ = "0.1.0"

__all__ = [
    "FEMConfig",
    "MassSpringConfig",
    "SimulationConfig",
    "TetrahedralMesh",
    "TriangleMesh",
    "FEMSolver",
    "IntegratorKind",
    "MassSpringSolver",
    "GeometryError",
    "NumericalError",
    "SoftbodyValidationError",
]
