"""Softbody solvers."""

from .mass_spring import MassSpringSolver
from .fem import FEMSolver
from .integrators import (
    IntegratorKind,
    ExplicitEuler,
    LinearizedImplicitEuler,
    GradientDescent,
    create_integrator,
)
from .constraints import FixedVertices, Floor
from .energy import EnergyReport
from .skinning import SkinBinding, UNBOUND

__all__ = [
    "MassSpringSolver",
    "FEMSolver",
    "IntegratorKind",
    "ExplicitEuler",
    "LinearizedImplicitEuler",
    "GradientDescent",
    "create_integrator",
    "FixedVertices",
    "Floor",
    "EnergyReport",
    "SkinBinding",
    "UNBOUND",
]
