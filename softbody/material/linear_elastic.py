"""Linear elastic material model.

Implements small strain isotropic linear elasticity as an energy density:
ψ = μ·ε:ε + λ/2·tr(ε)²

where:
- ε = 0.5·(F + Fᵀ) - I is the small strain tensor
- μ = 2C, λ = 2D are Lamé parameters

Not rotation invariant; suitable only for small deformations.
"""

import numpy as np

from .base import EnergyDensity


class LinearElastic(EnergyDensity):
    """Isotropic linear elastic material."""

    def __init__(self, C: float, D: float):
        super().__init__(C, D)

        # Constant tangent: μ(δ_rs δ_cd + δ_rd δ_cs) + λ δ_rc δ_sd
        I = np.eye(3)
        H = (
            self.mu * (np.einsum("rs,cd->rcsd", I, I) + np.einsum("rd,cs->rcsd", I, I))
            + self.lam * np.einsum("rc,sd->rcsd", I, I)
        )
        self._tangent = H.reshape(9, 9)

    @staticmethod
    def _strain(F: np.ndarray) -> np.ndarray:
        return 0.5 * (F + F.transpose(0, 2, 1)) - np.eye(3)

    def energy(self, F: np.ndarray) -> np.ndarray:
        eps = self._strain(F)
        tr = np.trace(eps, axis1=1, axis2=2)
        return self.mu * np.einsum("nij,nij->n", eps, eps) + 0.5 * self.lam * tr ** 2

    def gradient(self, F: np.ndarray) -> np.ndarray:
        eps = self._strain(F)
        tr = np.trace(eps, axis1=1, axis2=2)
        sigma = 2.0 * self.mu * eps + self.lam * tr[:, None, None] * np.eye(3)
        return sigma.reshape(F.shape[0], 9)

    def hessian(self, F: np.ndarray) -> np.ndarray:
        return np.broadcast_to(self._tangent, (F.shape[0], 9, 9)).copy()
