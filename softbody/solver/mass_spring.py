"""질량-스프링 솔버.

삼각형 메쉬의 각 고유 변을 선형 스프링으로 취급한다.
스텝마다 (M + h²K)·v = M·q̇ + h·f 를 풀고 q += h·v 로 적분한다.
K = 0 (헤시안 비활성)이면 반암시적(symplectic) 오일러와 동일하다.

스프링 힘 (변 i-j, r = x_i - x_j):
    f_i = -k·(1 - l0/|r|)·r,  f_j = -f_i

안정화 휴리스틱:
- |r| < min_length 이면 |r| = clamped_length 로 대체 (0 나눗셈 방지)
- ||r| - l0| < rest_snap_tolerance 이면 힘 0 (평형 근처 떨림 억제)
"""

import logging
import numpy as np
from scipy import sparse
from typing import Dict, Optional, Sequence

from ..config import MassSpringConfig
from ..core.mesh import TriangleMesh
from ..validation import SoftbodyValidationError
from .assembly import assemble_matrix, assemble_particle_mass, element_dofs
from .constraints import Constraint, FixedVertices, apply_constraints, validate_constraints
from .energy import EnergyReport, kinetic_energy
from .linear import SparseFactorization, solve_sparse

logger = logging.getLogger(__name__)


class MassSpringSolver:
    """질량-스프링 네트워크 동적 솔버.

    Args:
        mesh: 삼각형 메쉬 (초기 위치 = 스프링 자연 길이 기준)
        fixed_points: 고정 정점 인덱스
        config: MassSpringConfig (None이면 기본값)
        constraints: 추가 구속 목록
    """

    def __init__(
        self,
        mesh: TriangleMesh,
        fixed_points: Sequence[int] = (),
        config: Optional[MassSpringConfig] = None,
        constraints: Sequence[Constraint] = (),
    ):
        self.config = config or MassSpringConfig()
        cfg = self.config
        self.n_vertices = mesh.n_vertices
        self.n_dof = 3 * self.n_vertices

        self.mass = cfg.mass
        self.stiffness = cfg.stiffness
        self.gravity = cfg.gravity
        self.dt = cfg.dt
        self.enable_hessian = cfg.enable_hessian
        self.axis = cfg.vertical_axis

        # 상태 변수
        self.q = mesh.positions.reshape(-1).copy()
        self.q_dot = np.zeros(self.n_dof)
        self.time = 0.0
        self.step_count = 0

        # 고유 변 + 자연 길이
        self.edges = mesh.unique_edges()
        if len(self.edges) == 0:
            raise SoftbodyValidationError(
                "메쉬에 변이 없습니다. 스프링을 만들 삼각형이 필요합니다.",
                parameter="indices",
            )
        x = mesh.positions
        self.rest_lengths = np.linalg.norm(x[self.edges[:, 0]] - x[self.edges[:, 1]], axis=1)
        self._edge_dofs = element_dofs(self.edges)

        # 질량 행렬 M = m·I
        self.M = assemble_particle_mass(self.n_vertices, self.mass)
        self._mass_factor: Optional[SparseFactorization] = None

        # 구속: 고정 정점 + 추가 구속
        self.fixed = FixedVertices(np.asarray(fixed_points, dtype=np.int64))
        self.constraints = [self.fixed, *constraints]
        validate_constraints(self.constraints, self.q)

        logger.info(
            "질량-스프링 생성: 정점 %d, 변 %d, 고정 %d, k=%.4g, m=%.4g",
            self.n_vertices, len(self.edges), len(self.fixed.indices),
            self.stiffness, self.mass,
        )

    @classmethod
    def from_config(cls, mesh: TriangleMesh, fixed_points: Sequence[int], config: MassSpringConfig):
        return cls(mesh, fixed_points, config)

    @property
    def mass_matrix(self) -> sparse.csr_matrix:
        return self.M

    @property
    def positions(self) -> np.ndarray:
        """현재 위치 (n, 3) 뷰."""
        return self.q.reshape(-1, 3)

    @property
    def fixed_points(self) -> np.ndarray:
        return self.fixed.indices

    # ───────────────── 힘 / 강성 ─────────────────

    def _edge_geometry(self, q: np.ndarray):
        x = q.reshape(-1, 3)
        r = x[self.edges[:, 0]] - x[self.edges[:, 1]]
        r_len = np.linalg.norm(r, axis=1)
        cfg = self.config
        r_len = np.where(r_len < cfg.min_length, cfg.clamped_length, r_len)
        return r, r_len

    def forces(self, q: Optional[np.ndarray] = None) -> np.ndarray:
        """스프링 힘 + 중력 (3n,)."""
        q = self.q if q is None else q
        r, r_len = self._edge_geometry(q)
        l0 = self.rest_lengths

        f_mag = -self.stiffness * (1.0 - l0 / r_len)
        f_mag[np.abs(r_len - l0) < self.config.rest_snap_tolerance] = 0.0
        f_edge = f_mag[:, None] * r

        f = np.zeros(self.n_dof)
        f3 = f.reshape(-1, 3)
        np.add.at(f3, self.edges[:, 0], f_edge)
        np.add.at(f3, self.edges[:, 1], -f_edge)

        # 중력
        f[self.axis::3] -= self.mass * self.gravity
        return f

    def stiffness_matrix(self, q: Optional[np.ndarray] = None) -> sparse.csr_matrix:
        """해석적 스프링 강성 행렬 K = -∂f/∂q.

        변별 3x3 블록:
            K_e = k·[(1 - l0/|r|)·(I - r̂r̂ᵀ) + r̂r̂ᵀ]
        전역 배치: [[K_e, -K_e], [-K_e, K_e]]
        """
        q = self.q if q is None else q
        r, r_len = self._edge_geometry(q)
        r_hat = r / r_len[:, None]
        outer = np.einsum("ei,ej->eij", r_hat, r_hat)
        tension = (1.0 - self.rest_lengths / r_len)[:, None, None]
        K_e = self.stiffness * (tension * (np.eye(3) - outer) + outer)

        blocks = np.empty((len(self.edges), 6, 6))
        blocks[:, :3, :3] = K_e
        blocks[:, 3:, 3:] = K_e
        blocks[:, :3, 3:] = -K_e
        blocks[:, 3:, :3] = -K_e
        return assemble_matrix(self._edge_dofs, blocks, self.n_dof)

    # ───────────────── 에너지 ─────────────────

    def potential_energy(self, q: Optional[np.ndarray] = None) -> float:
        """스프링 탄성 에너지 + 중력 위치 에너지."""
        q = self.q if q is None else q
        x = q.reshape(-1, 3)
        r_len = np.linalg.norm(x[self.edges[:, 0]] - x[self.edges[:, 1]], axis=1)
        elastic = 0.5 * self.stiffness * np.sum((r_len - self.rest_lengths) ** 2)
        grav = self.mass * self.gravity * np.sum(q[self.axis::3])
        return float(elastic + grav)

    def kinetic_energy(self) -> float:
        return kinetic_energy(self.M, self.q_dot)

    def energy(self) -> EnergyReport:
        return EnergyReport(
            kinetic=self.kinetic_energy(),
            potential=self.potential_energy(),
            time=self.time,
        )

    # ───────────────── 시간 적분 ─────────────────

    def move_fixed_points(self, delta):
        """고정 정점을 delta (3-벡터) 만큼 이동. 속도는 변하지 않는다."""
        self.fixed.displace(self.q, delta)

    def _solve_velocity(self, f: np.ndarray, h: float) -> np.ndarray:
        rhs = self.M @ self.q_dot + h * f
        if self.enable_hessian:
            K = self.stiffness_matrix()
            return solve_sparse((self.M + (h * h) * K).tocsc(), rhs, stage="mass_spring_system")

        # K = 0: 시스템 행렬 = M (불변) → 분해 캐시
        if self._mass_factor is None:
            self._mass_factor = SparseFactorization(self.M, stage="mass")
        return self._mass_factor.solve(rhs)

    def simulation_step(self, h: Optional[float] = None) -> Dict:
        """1 시간 스텝 전진.

        Args:
            h: 시간 간격 (None이면 config.dt)

        Returns:
            스텝 정보
        """
        h = self.dt if h is None else h
        f = self.forces()
        v = self._solve_velocity(f, h)
        apply_constraints(self.constraints, self.q, v, h)

        self.q += h * v
        self.q_dot = v
        self.time += h
        self.step_count += 1

        return {"kinetic_energy": self.kinetic_energy(), "time": self.time}

    def run(self, n_steps: int, h: Optional[float] = None, log_interval: int = 100) -> Dict:
        """다중 스텝 실행."""
        info = {}
        for i in range(n_steps):
            info = self.simulation_step(h)
            if log_interval and (i + 1) % log_interval == 0:
                logger.debug("Step %6d: t=%.4e, KE=%.4e", i + 1, info["time"], info["kinetic_energy"])
        return info

    def update_mesh(self, mesh: TriangleMesh):
        """렌더링용 메쉬 위치를 현재 상태로 갱신."""
        if mesh.n_vertices != self.n_vertices:
            raise SoftbodyValidationError(
                f"메쉬 정점 수({mesh.n_vertices})가 솔버 정점 수({self.n_vertices})와 다릅니다.",
                parameter="mesh",
            )
        mesh.positions[:] = self.positions
