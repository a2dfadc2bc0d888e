"""Stable Neo-Hookean hyperelastic material model.

Strain energy density:
ψ = C·(I_C - 3) - 2C·(J - 1) + D·(J - 1)²

where:
- I_C = tr(FᵀF) is the first invariant
- J = det(F) is the volume ratio
- C, D are the shear and volumetric moduli (μ = 2C, λ = 2D)

The energy is finite for inverted elements (J ≤ 0), unlike the log-barrier
Neo-Hookean form, so no clamping of J is needed.

First Piola-Kirchhoff stress (flattened):
P = 2C·F + (2D·(J - 1) - 2C)·cof(F)

Tangent:
∂P/∂F = 2C·I + 2D·vec(cof)⊗vec(cof) + (2D·(J - 1) - 2C)·∂²J/∂F²

Reference:
- Smith, de Goes & Kim, "Stable Neo-Hookean Flesh Simulation" (2018)
"""

import numpy as np

from .base import EnergyDensity

# Levi-Civita symbol
_EPS = np.zeros((3, 3, 3))
_EPS[0, 1, 2] = _EPS[1, 2, 0] = _EPS[2, 0, 1] = 1.0
_EPS[0, 2, 1] = _EPS[2, 1, 0] = _EPS[1, 0, 2] = -1.0


def cofactor(F: np.ndarray) -> np.ndarray:
    """Cofactor matrices ∂J/∂F, (T, 3, 3)."""
    return 0.5 * np.einsum("rst,cdu,nsd,ntu->nrc", _EPS, _EPS, F, F)


def det_hessian(F: np.ndarray) -> np.ndarray:
    """∂²J/∂vec(F)², (T, 9, 9). Linear in F."""
    H = np.einsum("rst,cdu,ntu->nrcsd", _EPS, _EPS, F)
    return H.reshape(F.shape[0], 9, 9)


class StableNeoHookean(EnergyDensity):
    """Compressible, inversion-safe Neo-Hookean material."""

    def energy(self, F: np.ndarray) -> np.ndarray:
        J = np.linalg.det(F)
        I_C = np.einsum("nij,nij->n", F, F)
        return self.C * (I_C - 3.0) - 2.0 * self.C * (J - 1.0) + self.D * (J - 1.0) ** 2

    def gradient(self, F: np.ndarray) -> np.ndarray:
        J = np.linalg.det(F)
        cof = cofactor(F)
        scale = 2.0 * self.D * (J - 1.0) - 2.0 * self.C
        P = 2.0 * self.C * F + scale[:, None, None] * cof
        return P.reshape(F.shape[0], 9)

    def hessian(self, F: np.ndarray) -> np.ndarray:
        n = F.shape[0]
        J = np.linalg.det(F)
        g = cofactor(F).reshape(n, 9)
        scale = 2.0 * self.D * (J - 1.0) - 2.0 * self.C

        H = np.broadcast_to(2.0 * self.C * np.eye(9), (n, 9, 9)).copy()
        H += 2.0 * self.D * np.einsum("ni,nj->nij", g, g)
        H += scale[:, None, None] * det_hessian(F)
        return H
