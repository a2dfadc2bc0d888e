"""사면체 FEM 동적 솔버.

선형 사면체 요소 + 플러그형 초탄성 에너지 밀도.

위치 에너지:
    V(q) = Σ_e vol_e·ψ(F_e) + Σ_e Σ_{a∈e} vol_e·g·y_a

두 번째 항은 1점 집중 근사 중력 (질량 가중이 아닌 요소 부피 기반).

전역 기울기 / 헤시안:
    dV/dq   = Σ_e vol_e·B_eᵀ·∂ψ/∂F  (+ 중력)
    d²V/dq² = Σ_e vol_e·B_eᵀ·H_e·B_e  (COO 누적 후 한 번에 CSR, 중복 합산)

시간 적분은 IntegratorKind 전략으로 선택한다 (기본: 전진 오일러).
"""

import logging
import numpy as np
from scipy import sparse
from typing import Dict, Optional, Sequence, Union

from ..config import FEMConfig
from ..core.element import (
    TetKinematics,
    compute_tet_kinematics,
    deformation_gradients,
    tet_dofs,
)
from ..core.mesh import TetrahedralMesh, TriangleMesh
from ..material import EnergyDensity, create_material
from ..validation import SoftbodyValidationError
from .assembly import assemble_matrix, assemble_tet_mass, assemble_vector
from .constraints import (
    Constraint,
    FixedVertices,
    Floor,
    apply_constraints,
    validate_constraints,
)
from .energy import EnergyReport, kinetic_energy
from .integrators import Integrator, IntegratorKind, create_integrator
from .skinning import SkinBinding

logger = logging.getLogger(__name__)


class FEMSolver:
    """사면체 FEM 동적 솔버.

    Args:
        mesh: 사면체 메쉬 (초기 위치 = 기준 형상)
        skin: 스키닝할 시각화 표면 메쉬 (선택)
        material: 에너지 밀도 (None이면 config.material로 생성)
        config: FEMConfig (None이면 기본값)
        fixed_points: 고정 정점 인덱스 (선택)
        constraints: 추가 구속 목록
    """

    def __init__(
        self,
        mesh: TetrahedralMesh,
        skin: Optional[TriangleMesh] = None,
        material: Optional[EnergyDensity] = None,
        config: Optional[FEMConfig] = None,
        fixed_points: Sequence[int] = (),
        constraints: Sequence[Constraint] = (),
    ):
        self.config = config or FEMConfig()
        cfg = self.config
        self.material = material or create_material(cfg.material, cfg.C, cfg.D)
        self.gravity = cfg.gravity
        self.dt = cfg.dt
        self.axis = cfg.vertical_axis

        self.n_vertices = mesh.n_vertices
        self.n_dof = 3 * self.n_vertices
        self.tets = mesh.indices.copy()
        if len(self.tets) == 0:
            raise SoftbodyValidationError("사면체가 하나도 없습니다.", parameter="indices")

        # 기준 운동학량 (퇴화 사면체 → GeometryError)
        self.kin: TetKinematics = compute_tet_kinematics(mesh.positions, self.tets)
        self._dofs = tet_dofs(self.tets)

        # 일치 질량 행렬 (생성 후 불변)
        self.M = assemble_tet_mass(self.tets, self.kin.volumes, self.n_vertices)

        # 상태 변수
        self.q = mesh.positions.reshape(-1).copy()
        self.q_dot = np.zeros(self.n_dof)
        self.time = 0.0
        self.step_count = 0

        # 구속 목록
        self.fixed = FixedVertices(np.asarray(fixed_points, dtype=np.int64))
        self.constraints = [self.fixed]
        if cfg.floor_height is not None:
            self.constraints.append(Floor(cfg.floor_height, self.axis))
        self.constraints.extend(constraints)
        validate_constraints(self.constraints, self.q)

        # 시간 적분 전략
        self.integrator: Integrator = create_integrator(
            cfg.integrator,
            **self._integrator_options(cfg.integrator),
        )

        # 스킨 바인딩
        self.skin = skin
        self.skin_binding: Optional[SkinBinding] = None
        if skin is not None:
            self.skin_binding = SkinBinding(
                skin.positions, mesh.positions, self.tets, self.kin,
                tolerance=cfg.bind_tolerance,
            )

        logger.info(
            "FEM 생성: 정점 %d, 사면체 %d, 총 부피 %.4e, 재료 %r, 적분 %s",
            self.n_vertices, len(self.tets), self.total_volume,
            self.material, self.integrator.kind.value,
        )

    def _integrator_options(self, kind) -> Dict:
        if IntegratorKind(kind) != IntegratorKind.GRADIENT_DESCENT:
            return {}
        cfg = self.config
        return {
            "step_size": cfg.step_size,
            "tolerance": cfg.tolerance,
            "max_iterations": cfg.max_iterations,
        }

    @classmethod
    def from_config(
        cls,
        mesh: TetrahedralMesh,
        config: FEMConfig,
        skin: Optional[TriangleMesh] = None,
    ) -> "FEMSolver":
        return cls(mesh, skin=skin, config=config)

    # ───────────────── 속성 ─────────────────

    @property
    def mass_matrix(self) -> sparse.csr_matrix:
        return self.M

    @property
    def volumes(self) -> np.ndarray:
        return self.kin.volumes

    @property
    def total_volume(self) -> float:
        return float(self.kin.volumes.sum())

    @property
    def positions(self) -> np.ndarray:
        """현재 위치 (n, 3) 뷰."""
        return self.q.reshape(-1, 3)

    def set_integrator(self, integrator: Union[Integrator, IntegratorKind, str]):
        """시간 적분 전략 교체."""
        if not isinstance(integrator, Integrator):
            integrator = create_integrator(integrator, **self._integrator_options(integrator))
        self.integrator = integrator

    # ───────────────── 위치 에너지 ─────────────────

    def deformation_gradients(self, q: Optional[np.ndarray] = None) -> np.ndarray:
        """사면체별 변형 구배 (T, 3, 3)."""
        q = self.q if q is None else q
        return deformation_gradients(self.kin, q, self.tets)

    def potential_energy(self, q: Optional[np.ndarray] = None) -> float:
        """V(q) = 탄성 에너지 + 집중 중력 에너지."""
        q = self.q if q is None else q
        vol = self.kin.volumes
        elastic = np.dot(vol, self.material.energy(self.deformation_gradients(q)))
        heights = q.reshape(-1, 3)[self.tets, self.axis].sum(axis=1)   # (T,)
        grav = self.gravity * np.dot(vol, heights)
        return float(elastic + grav)

    def potential_gradient(self, q: Optional[np.ndarray] = None) -> np.ndarray:
        """dV/dq (3n,)."""
        q = self.q if q is None else q
        vol = self.kin.volumes
        dpsi = self.material.gradient(self.deformation_gradients(q))         # (T, 9)
        local = vol[:, None] * np.einsum("tij,ti->tj", self.kin.gradient_maps, dpsi)  # (T, 12)

        # 중력: 사면체의 4 정점 수직 성분에 vol·g
        local[:, self.axis::3] += (self.gravity * vol)[:, None]
        return assemble_vector(self._dofs, local, self.n_dof)

    def potential_hessian(self, q: Optional[np.ndarray] = None) -> sparse.csr_matrix:
        """d²V/dq² (3n x 3n), 모든 요소 기여를 합산."""
        q = self.q if q is None else q
        H = self.material.hessian(self.deformation_gradients(q))             # (T, 9, 9)
        B = self.kin.gradient_maps                                           # (T, 9, 12)
        blocks = self.kin.volumes[:, None, None] * np.einsum("tia,tij,tjb->tab", B, H, B)
        return assemble_matrix(self._dofs, blocks, self.n_dof)

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
        """고정 정점을 delta (3-벡터) 만큼 이동."""
        self.fixed.displace(self.q, delta)

    def simulation_step(self) -> Dict:
        """1 시간 스텝 전진 (항상 정확히 dt).

        수치 오류(NumericalError) 발생 시 q, q_dot은 변경되지 않는다.

        Returns:
            스텝 정보
        """
        h = self.dt
        v = self.integrator.velocity(self, self.q, self.q_dot, h)
        apply_constraints(self.constraints, self.q, v, h)

        self.q += h * v
        self.q_dot = v
        self.time += h
        self.step_count += 1

        return {"kinetic_energy": self.kinetic_energy(), "time": self.time}

    def run(self, n_steps: int, log_interval: int = 100) -> Dict:
        """다중 스텝 실행."""
        info = {}
        for i in range(n_steps):
            info = self.simulation_step()
            if log_interval and (i + 1) % log_interval == 0:
                logger.debug("Step %6d: t=%.4e, KE=%.4e", i + 1, info["time"], info["kinetic_energy"])
        return info

    # ───────────────── 출력 ─────────────────

    def update_mesh(self, mesh: TetrahedralMesh):
        """시뮬레이션 메쉬 위치를 현재 상태로 갱신."""
        if mesh.n_vertices != self.n_vertices:
            raise SoftbodyValidationError(
                f"메쉬 정점 수({mesh.n_vertices})가 솔버 정점 수({self.n_vertices})와 다릅니다.",
                parameter="mesh",
            )
        mesh.positions[:] = self.positions

    def get_skin_mesh(self) -> TriangleMesh:
        """현재 상태로 투영한 스킨 메쉬 (새 객체, 시뮬레이션 상태 불변)."""
        if self.skin_binding is None:
            raise SoftbodyValidationError(
                "스킨 메쉬 없이 생성된 솔버입니다.",
                parameter="skin",
                suggestion="FEMSolver(mesh, skin=...)로 생성하세요",
            )
        return TriangleMesh(self.skin_binding.project(self.q), self.skin.indices.copy())
