"""Base class for hyperelastic energy densities.

All material models must implement, vectorized over elements:
- energy: Strain energy density ψ(F) per unit rest volume
- gradient: ∂ψ/∂vec(F) (first Piola-Kirchhoff stress, flattened)
- hessian: ∂²ψ/∂vec(F)² (9x9 tangent)

vec(F) is the row-major flattening, vec(F)[3k + c] = F[k, c].
"""

import abc
import numpy as np

from ..validation import SoftbodyValidationError, validate_positive


class EnergyDensity(abc.ABC):
    """Abstract base class for material energy densities.

    Two moduli (C, D) parametrize every model; their meaning as Lamé
    parameters is μ = 2C, λ = 2D.
    """

    def __init__(self, C: float, D: float):
        """Initialize material.

        Args:
            C: Shear-like modulus
            D: Volumetric modulus
        """
        validate_positive(C, "C")
        validate_positive(D, "D")
        self.C = float(C)
        self.D = float(D)

    @property
    def mu(self) -> float:
        return 2.0 * self.C

    @property
    def lam(self) -> float:
        return 2.0 * self.D

    @classmethod
    def from_engineering(cls, E: float, nu: float) -> "EnergyDensity":
        """Build from Young's modulus and Poisson's ratio.

        μ = E / (2(1+ν)),  λ = Eν / ((1+ν)(1-2ν)),  C = μ/2,  D = λ/2
        """
        if E <= 0 or not (0.0 < nu < 0.5):
            raise SoftbodyValidationError(
                f"E={E}, ν={nu}: E > 0, 0 < ν < 0.5 이어야 합니다.",
                parameter="E,nu",
                value=(E, nu),
            )
        mu = E / (2.0 * (1.0 + nu))
        lam = E * nu / ((1.0 + nu) * (1.0 - 2.0 * nu))
        return cls(mu / 2.0, lam / 2.0)

    @abc.abstractmethod
    def energy(self, F: np.ndarray) -> np.ndarray:
        """Energy density per element.

        Args:
            F: Deformation gradients (T, 3, 3)

        Returns:
            (T,) energy densities
        """
        pass

    @abc.abstractmethod
    def gradient(self, F: np.ndarray) -> np.ndarray:
        """∂ψ/∂vec(F), (T, 9)."""
        pass

    @abc.abstractmethod
    def hessian(self, F: np.ndarray) -> np.ndarray:
        """∂²ψ/∂vec(F)², (T, 9, 9)."""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(C={self.C:.4g}, D={self.D:.4g})"
