"""시간 적분 전략.

동일한 조립량(질량 행렬, dV/dq, d²V/dq²)을 사용하는 세 가지 속도 갱신:
- EXPLICIT (전진 오일러): v = M⁻¹(M·q̇ + h·f), 조건부 안정
- LINEARIZED_IMPLICIT (선형화 후진 오일러): (M + h²K)·v = M·q̇ + h·f, 무조건 안정
- GRADIENT_DESCENT (반복 암시적): E(v) = ½(v-q̇)ᵀM(v-q̇) + h·V(q + h·v) 최소화

여기서 f = -dV/dq(q), K = -∂f/∂q = d²V/dq²(q) (강성 행렬).
모든 전략은 velocity(system, q, q_dot, h) → v 하나의 진입점을 가진다.
"""

import enum
import logging
import numpy as np
from typing import Optional, Protocol

from ..validation import NumericalError
from .linear import SparseFactorization, solve_sparse

logger = logging.getLogger(__name__)


class IntegratorKind(enum.Enum):
    """시간 적분 방법 열거형."""
    EXPLICIT = "explicit"
    LINEARIZED_IMPLICIT = "linearized_implicit"
    GRADIENT_DESCENT = "gradient_descent"


class DynamicSystem(Protocol):
    """적분기가 요구하는 시스템 인터페이스."""

    mass_matrix: object

    def potential_gradient(self, q: np.ndarray) -> np.ndarray: ...

    def potential_hessian(self, q: np.ndarray): ...


class Integrator:
    """시간 적분 전략 기반 클래스."""

    kind: IntegratorKind

    def velocity(self, system: DynamicSystem, q: np.ndarray, q_dot: np.ndarray, h: float) -> np.ndarray:
        """다음 스텝 속도 계산 (구속 적용 전)."""
        raise NotImplementedError

    def invalidate(self):
        """캐시된 분해 폐기 (기본: 캐시 없음)."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class ExplicitEuler(Integrator):
    """전진 오일러.

    질량 행렬은 생성 후 변하지 않으므로 분해를 첫 사용 시 한 번 계산하여
    전략 객체 수명 동안 캐시한다. 질량 행렬이 재조립되는 경우에만
    invalidate()로 폐기한다.
    """

    kind = IntegratorKind.EXPLICIT

    def __init__(self):
        self._mass_factor: Optional[SparseFactorization] = None

    @property
    def is_factorized(self) -> bool:
        return self._mass_factor is not None

    def invalidate(self):
        self._mass_factor = None

    def velocity(self, system, q, q_dot, h):
        M = system.mass_matrix
        if self._mass_factor is None:
            self._mass_factor = SparseFactorization(M, stage="mass")
            logger.debug("질량 행렬 분해 캐시 생성 (%d DOF)", M.shape[0])

        f = -system.potential_gradient(q)
        return self._mass_factor.solve(M @ q_dot + h * f)


class LinearizedImplicitEuler(Integrator):
    """선형화 후진 오일러.

    강성 행렬이 현재 변형에 의존하므로 매 스텝 분해를 다시 계산한다.
    """

    kind = IntegratorKind.LINEARIZED_IMPLICIT

    def velocity(self, system, q, q_dot, h):
        M = system.mass_matrix
        f = -system.potential_gradient(q)
        K = system.potential_hessian(q)
        A = (M + (h * h) * K).tocsc()
        return solve_sparse(A, M @ q_dot + h * f, stage="implicit_system")


class GradientDescent(Integrator):
    """고정 스텝 경사 하강 암시적 풀이.

    ∂E/∂v = M(v - q̇) + h·dV/dq(q + h·v)

    Args:
        step_size: 하강 스텝 크기
        tolerance: 기울기 노름 수렴 기준
        max_iterations: 최대 반복 횟수
    """

    kind = IntegratorKind.GRADIENT_DESCENT

    def __init__(
        self,
        step_size: float = 20.0,
        tolerance: float = 9e-4,
        max_iterations: int = 100,
    ):
        self.step_size = step_size
        self.tolerance = tolerance
        self.max_iterations = max_iterations
        self.last_iterations = 0
        self.last_residual = 0.0

    def objective_gradient(self, system, q, q_dot, h, v) -> np.ndarray:
        """∂E/∂v."""
        M = system.mass_matrix
        return M @ (v - q_dot) + h * system.potential_gradient(q + h * v)

    def velocity(self, system, q, q_dot, h):
        v = q_dot.copy()
        g_norm = np.inf
        iteration = 0
        for iteration in range(self.max_iterations):
            g = self.objective_gradient(system, q, q_dot, h, v)
            g_norm = float(np.linalg.norm(g))
            logger.debug("경사 하강 반복 %d: |g|=%.4e", iteration, g_norm)
            if not np.isfinite(g_norm):
                raise NumericalError(
                    f"경사 하강 {iteration}회 반복에서 기울기가 발산했습니다.",
                    stage="gradient_descent",
                )
            if g_norm < self.tolerance:
                break
            v -= self.step_size * g
        else:
            iteration = self.max_iterations
            logger.warning(
                "경사 하강이 최대 반복(%d) 내에 수렴하지 않음: |g|=%.4e",
                self.max_iterations, g_norm,
            )

        self.last_iterations = iteration
        self.last_residual = g_norm
        return v

    def __repr__(self) -> str:
        return (f"GradientDescent(step_size={self.step_size}, "
                f"tolerance={self.tolerance}, max_iterations={self.max_iterations})")


def create_integrator(kind, **options) -> Integrator:
    """적분 전략 팩토리.

    Args:
        kind: IntegratorKind 또는 문자열 ("explicit" 등)
        **options: GradientDescent 옵션 (step_size, tolerance, max_iterations)
    """
    kind = IntegratorKind(kind)
    if kind == IntegratorKind.EXPLICIT:
        return ExplicitEuler()
    elif kind == IntegratorKind.LINEARIZED_IMPLICIT:
        return LinearizedImplicitEuler()
    else:
        return GradientDescent(**options)
