"""시간 적분 전략 테스트.

이차 위치 에너지 V = ½ qᵀKq 를 갖는 소형 시스템에서
세 전략의 속도 갱신을 닫힌 형태 해와 비교한다.
"""

import logging

import numpy as np
import pytest
from scipy import sparse

from softbody.solver.integrators import (
    ExplicitEuler,
    GradientDescent,
    IntegratorKind,
    LinearizedImplicitEuler,
    create_integrator,
)
from softbody.validation import NumericalError


class _QuadraticSystem:
    """V(q) = ½ qᵀKq, 질량 M."""

    def __init__(self, M, K):
        self.mass_matrix = sparse.csr_matrix(M)
        self.K = sparse.csr_matrix(K)

    def potential_gradient(self, q):
        return self.K @ q

    def potential_hessian(self, q):
        return self.K


def _system():
    M = np.diag([1.0, 2.0, 1.5])
    K = np.array([
        [2.0, -1.0, 0.0],
        [-1.0, 3.0, -0.5],
        [0.0, -0.5, 1.0],
    ])
    return _QuadraticSystem(M, K), M, K


Q0 = np.array([0.3, -0.2, 0.5])
V0 = np.array([0.1, 0.0, -0.4])


class TestExplicitEuler:
    """전진 오일러 테스트."""

    def test_closed_form(self):
        """v = q̇ - h·M⁻¹Kq."""
        system, M, K = _system()
        h = 0.05
        v = ExplicitEuler().velocity(system, Q0, V0, h)
        expected = V0 - h * np.linalg.solve(M, K @ Q0)
        np.testing.assert_allclose(v, expected, atol=1e-12)

    def test_mass_factorization_cached(self):
        """질량 행렬 분해는 첫 사용 시 한 번만 생성."""
        system, _, _ = _system()
        integrator = ExplicitEuler()
        assert not integrator.is_factorized

        integrator.velocity(system, Q0, V0, 0.01)
        cached = integrator._mass_factor
        integrator.velocity(system, Q0, V0, 0.01)
        assert integrator._mass_factor is cached

        integrator.invalidate()
        assert not integrator.is_factorized


class TestLinearizedImplicitEuler:
    """선형화 후진 오일러 테스트."""

    def test_closed_form(self):
        """(M + h²K)·v = M·q̇ - h·Kq."""
        system, M, K = _system()
        h = 0.2
        v = LinearizedImplicitEuler().velocity(system, Q0, V0, h)
        expected = np.linalg.solve(M + h * h * K, M @ V0 - h * K @ Q0)
        np.testing.assert_allclose(v, expected, atol=1e-12)

    def test_large_step_bounded(self):
        """큰 h 에서 암시적은 유계, 명시적은 발산."""
        system, _, _ = _system()
        h = 5.0
        implicit = LinearizedImplicitEuler()
        explicit = ExplicitEuler()

        q_i, v_i = Q0.copy(), V0.copy()
        q_e, v_e = Q0.copy(), V0.copy()
        for _ in range(20):
            v_i = implicit.velocity(system, q_i, v_i, h)
            q_i = q_i + h * v_i
            v_e = explicit.velocity(system, q_e, v_e, h)
            q_e = q_e + h * v_e

        assert np.linalg.norm(q_i) < 10 * np.linalg.norm(Q0)
        assert np.linalg.norm(q_e) > 1e6


class TestGradientDescent:
    """경사 하강 암시적 풀이 테스트."""

    def test_converges_to_implicit_solution(self):
        """이차 에너지에서는 선형화 후진 오일러 해로 수렴."""
        system, M, K = _system()
        h = 0.1
        A = M + h * h * K
        step = 1.0 / np.linalg.eigvalsh(A).max()

        gd = GradientDescent(step_size=step, tolerance=1e-12, max_iterations=2000)
        v = gd.velocity(system, Q0, V0, h)
        expected = LinearizedImplicitEuler().velocity(system, Q0, V0, h)

        np.testing.assert_allclose(v, expected, atol=1e-10)
        assert gd.last_residual < 1e-12
        assert 0 < gd.last_iterations < 2000

    def test_objective_gradient_zero_at_solution(self):
        """해에서 ∂E/∂v = 0."""
        system, _, _ = _system()
        h = 0.1
        v = LinearizedImplicitEuler().velocity(system, Q0, V0, h)
        g = GradientDescent().objective_gradient(system, Q0, V0, h, v)
        np.testing.assert_allclose(g, 0.0, atol=1e-12)

    def test_iteration_cap_warns(self, caplog):
        """최대 반복 도달 시 WARNING 로그."""
        system, _, _ = _system()
        gd = GradientDescent(step_size=1e-3, tolerance=1e-14, max_iterations=3)
        with caplog.at_level(logging.WARNING, logger="softbody.solver.integrators"):
            gd.velocity(system, Q0, V0, 0.1)
        assert gd.last_iterations == 3
        assert "최대 반복" in caplog.text

    def test_already_converged(self):
        """초기 기울기가 허용 오차 이하이면 반복 없이 q̇ 반환."""
        system, _, _ = _system()
        gd = GradientDescent(tolerance=1.0)
        v = gd.velocity(system, np.zeros(3), V0, 0.01)
        np.testing.assert_array_equal(v, V0)
        assert gd.last_iterations == 0

    def test_divergence_raises(self):
        """과도한 스텝 → 발산 → NumericalError."""
        system, _, _ = _system()
        gd = GradientDescent(step_size=1e3, tolerance=1e-12, max_iterations=1000)
        with np.errstate(over="ignore", invalid="ignore"):
            with pytest.raises(NumericalError) as exc_info:
                gd.velocity(system, Q0, V0, 0.1)
        assert exc_info.value.stage == "gradient_descent"


class TestFactory:
    """적분 전략 팩토리 테스트."""

    @pytest.mark.parametrize("kind, cls", [
        ("explicit", ExplicitEuler),
        ("linearized_implicit", LinearizedImplicitEuler),
        (IntegratorKind.GRADIENT_DESCENT, GradientDescent),
    ])
    def test_create(self, kind, cls):
        """문자열/열거형으로 생성."""
        integrator = create_integrator(kind)
        assert isinstance(integrator, cls)
        assert integrator.kind == IntegratorKind(kind)

    def test_gradient_descent_options(self):
        """경사 하강 옵션 전달."""
        gd = create_integrator("gradient_descent", step_size=5.0, max_iterations=7)
        assert gd.step_size == 5.0
        assert gd.max_iterations == 7
        assert gd.tolerance == 9e-4

    def test_unknown_kind_raises(self):
        """알 수 없는 전략 이름 → ValueError."""
        with pytest.raises(ValueError):
            create_integrator("verlet")
