"""질량-스프링 솔버 테스트."""

import numpy as np
import pytest

from softbody.config import MassSpringConfig
from softbody.core.mesh import TriangleMesh
from softbody.core.primitives import grid_mesh
from softbody.solver.mass_spring import MassSpringSolver
from softbody.validation import GeometryError, SoftbodyValidationError


def _two_particles(length=1.0):
    """스프링 하나 (퇴화 삼각형 [0, 1, 1])."""
    pos = np.array([[0.0, 0.0, 0.0], [length, 0.0, 0.0]])
    return TriangleMesh(pos, [[0, 1, 1]])


def _triangle():
    pos = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])
    return TriangleMesh(pos, [[0, 1, 2]])


def _stretched_state(solver, factor=1.5):
    """정점 위치를 factor 배 확대한 상태 벡터."""
    return solver.q * factor


class TestMassSpringCreation:
    """솔버 생성 테스트."""

    def test_edges_and_rest_lengths(self):
        """고유 변과 자연 길이."""
        solver = MassSpringSolver(_triangle())
        np.testing.assert_array_equal(solver.edges, [[0, 1], [0, 2], [1, 2]])
        np.testing.assert_allclose(solver.rest_lengths, [1.0, 1.0, np.sqrt(2.0)])

    def test_mass_matrix(self):
        """M = m·I."""
        cfg = MassSpringConfig(mass=0.5)
        solver = MassSpringSolver(grid_mesh(2, 2), config=cfg)
        M = solver.mass_matrix
        assert M.shape == (27, 27)
        np.testing.assert_array_equal(M.diagonal(), 0.5)

    def test_no_edges_raises(self):
        """삼각형 없는 메쉬 → SoftbodyValidationError."""
        mesh = TriangleMesh(np.eye(3), np.empty((0, 3), dtype=np.int64))
        with pytest.raises(SoftbodyValidationError, match="변이 없습니다"):
            MassSpringSolver(mesh)

    def test_fixed_out_of_range_raises(self):
        """고정 정점 인덱스 범위 초과 → GeometryError."""
        with pytest.raises(GeometryError):
            MassSpringSolver(_triangle(), fixed_points=[3])

    def test_from_config(self):
        """설정 객체로 생성."""
        cfg = MassSpringConfig(stiffness=7.0, dt=0.02)
        solver = MassSpringSolver.from_config(_triangle(), [0], cfg)
        assert solver.stiffness == 7.0
        assert solver.dt == 0.02
        np.testing.assert_array_equal(solver.fixed_points, [0])


class TestSpringForces:
    """스프링 힘과 강성 행렬 테스트."""

    def test_rest_state_no_spring_force(self):
        """휴지 상태 스프링 힘 = 0, 중력만 존재."""
        solver = MassSpringSolver(grid_mesh(2, 2), config=MassSpringConfig(gravity=10.0, mass=2.0))
        f = solver.forces()
        np.testing.assert_array_equal(f[0::3], 0.0)
        np.testing.assert_array_equal(f[2::3], 0.0)
        np.testing.assert_array_equal(f[1::3], -20.0)

    def test_stretched_spring_pulls_together(self):
        """늘어난 스프링은 두 정점을 끌어당김 (크기 k·(|r| - l0))."""
        cfg = MassSpringConfig(stiffness=10.0, gravity=0.0)
        solver = MassSpringSolver(_two_particles(), config=cfg)
        q = np.array([0.0, 0.0, 0.0, 2.0, 0.0, 0.0])
        f = solver.forces(q)
        np.testing.assert_allclose(f, [10.0, 0, 0, -10.0, 0, 0])

    def test_near_rest_force_snapped(self):
        """자연 길이 근처 (< rest_snap_tolerance) 힘 0."""
        cfg = MassSpringConfig(stiffness=10.0, gravity=0.0, rest_snap_tolerance=0.01)
        solver = MassSpringSolver(_two_particles(), config=cfg)
        q = np.array([0.0, 0.0, 0.0, 1.005, 0.0, 0.0])
        np.testing.assert_array_equal(solver.forces(q), 0.0)

    def test_coincident_vertices_finite(self):
        """겹친 정점에서도 힘은 유한 (길이 clamp)."""
        cfg = MassSpringConfig(gravity=0.0)
        solver = MassSpringSolver(_two_particles(), config=cfg)
        q = np.zeros(6)
        assert np.all(np.isfinite(solver.forces(q)))
        assert np.all(np.isfinite(solver.stiffness_matrix(q).toarray()))

    def test_stiffness_matches_finite_difference(self):
        """K = -∂f/∂q 중앙 차분 일치."""
        cfg = MassSpringConfig(stiffness=10.0, gravity=0.0, rest_snap_tolerance=0.0)
        solver = MassSpringSolver(grid_mesh(2, 1), config=cfg)
        rng = np.random.default_rng(0)
        q = _stretched_state(solver) + 0.05 * rng.standard_normal(solver.n_dof)

        K = solver.stiffness_matrix(q).toarray()
        eps = 1e-6
        K_fd = np.zeros_like(K)
        for j in range(solver.n_dof):
            dq = np.zeros(solver.n_dof)
            dq[j] = eps
            K_fd[:, j] = -(solver.forces(q + dq) - solver.forces(q - dq)) / (2 * eps)

        np.testing.assert_allclose(K, K_fd, atol=1e-5)
        np.testing.assert_allclose(K, K.T, atol=1e-12)

    def test_energy_gradient_consistent(self):
        """f = -dV/dq (스프링 + 중력)."""
        cfg = MassSpringConfig(stiffness=4.0, gravity=9.0, rest_snap_tolerance=0.0)
        solver = MassSpringSolver(_triangle(), config=cfg)
        q = _stretched_state(solver, 1.3)
        eps = 1e-6
        grad = np.array([
            (solver.potential_energy(q + eps * e) - solver.potential_energy(q - eps * e)) / (2 * eps)
            for e in np.eye(solver.n_dof)
        ])
        np.testing.assert_allclose(solver.forces(q), -grad, atol=1e-6)


class TestMassSpringStep:
    """시간 적분 테스트."""

    def test_rest_state_invariant(self):
        """중력 0, 속도 0 → 상태 불변."""
        cfg = MassSpringConfig(gravity=0.0, enable_hessian=True)
        solver = MassSpringSolver(grid_mesh(3, 3), config=cfg)
        q0 = solver.q.copy()
        for _ in range(5):
            solver.simulation_step()
        np.testing.assert_array_equal(solver.q, q0)
        np.testing.assert_array_equal(solver.q_dot, 0.0)

    def test_free_fall(self):
        """구속 없는 자유 낙하: v = -h·g, y = y0 - h²·g."""
        cfg = MassSpringConfig(gravity=10.0, dt=0.01)
        solver = MassSpringSolver(grid_mesh(2, 2), config=cfg)
        y0 = solver.positions[:, 1].copy()
        info = solver.simulation_step()

        np.testing.assert_allclose(solver.q_dot[1::3], -0.1)
        np.testing.assert_allclose(solver.positions[:, 1], y0 - 1e-3)
        assert info["time"] == pytest.approx(0.01)
        assert info["kinetic_energy"] > 0
        assert solver.step_count == 1

    def test_mass_factorization_cached(self):
        """헤시안 비활성 시 질량 행렬 분해 재사용."""
        solver = MassSpringSolver(_triangle())
        solver.simulation_step()
        factor = solver._mass_factor
        solver.simulation_step()
        assert factor is not None
        assert solver._mass_factor is factor

    def test_fixed_points_hold(self):
        """고정 정점은 중력 하에서도 제자리."""
        mesh = grid_mesh(3, 3)
        fixed = [0, 3]
        solver = MassSpringSolver(mesh, fixed_points=fixed, config=MassSpringConfig(enable_hessian=True))
        x0 = solver.positions[fixed].copy()
        solver.run(50)
        np.testing.assert_array_equal(solver.positions[fixed], x0)
        assert solver.positions[15, 1] < 0

    def test_spring_converges_to_rest_length(self):
        """한 끝 고정 스프링: 고정점 이동 후 자연 길이로 수렴."""
        cfg = MassSpringConfig(
            mass=1.0, stiffness=10.0, gravity=0.0, dt=0.1, enable_hessian=True,
        )
        solver = MassSpringSolver(_two_particles(), fixed_points=[0], config=cfg)
        solver.move_fixed_points([-0.5, 0.3, 0.0])
        assert not np.isclose(np.linalg.norm(solver.positions[1] - solver.positions[0]), 1.0)

        solver.run(300, h=0.1)
        length = np.linalg.norm(solver.positions[1] - solver.positions[0])
        assert abs(length - 1.0) < 0.02
        np.testing.assert_allclose(solver.positions[0], [-0.5, 0.3, 0.0])

    def test_move_fixed_points_keeps_velocity(self):
        """고정점 이동은 속도를 바꾸지 않음."""
        solver = MassSpringSolver(_triangle(), fixed_points=[1])
        solver.simulation_step()
        v = solver.q_dot.copy()
        solver.move_fixed_points([0.0, 1.0, 0.0])
        np.testing.assert_array_equal(solver.q_dot, v)
        np.testing.assert_allclose(solver.positions[1], [1.0, 1.0, 0.0])

    def test_energy_report(self):
        """에너지 보고서: 총 에너지 = 운동 + 위치."""
        solver = MassSpringSolver(_triangle())
        solver.run(3)
        report = solver.energy()
        assert report.time == pytest.approx(0.03)
        assert report.total == pytest.approx(report.kinetic + report.potential)
        assert report.kinetic == pytest.approx(solver.kinetic_energy())


class TestUpdateMesh:
    """렌더링 메쉬 갱신 테스트."""

    def test_positions_copied(self):
        """update_mesh: 현재 위치를 메쉬에 복사."""
        mesh = grid_mesh(2, 2)
        solver = MassSpringSolver(mesh)
        solver.simulation_step()
        target = mesh.copy()
        solver.update_mesh(target)
        np.testing.assert_array_equal(target.positions, solver.positions)

    def test_vertex_count_mismatch_raises(self):
        """정점 수 불일치 → SoftbodyValidationError."""
        solver = MassSpringSolver(grid_mesh(2, 2))
        with pytest.raises(SoftbodyValidationError):
            solver.update_mesh(_triangle())
