"""무게중심 스키닝 (Barycentric skinning).

시각화용 조밀한 표면 메쉬의 각 정점을 휴지 상태에서 감싸는 사면체에
바인딩하고, 매 프레임 현재 시뮬레이션 상태로부터 위치를 재구성한다.
시뮬레이션 상태에는 영향을 주지 않는 순수 읽기 투영이다.

바인딩:
1. 사면체 중심점 KDTree 구성, 최대 외접 반경으로 후보 사면체 탐색
2. 후보를 인덱스 오름차순으로 검사, 무게중심 좌표 4개가 모두 [0, 1]
   (허용 오차 포함)인 첫 사면체 채택
3. 어느 사면체에도 속하지 않는 정점은 UNBOUND(-1)로 표시, 휴지 위치 유지
"""

import logging
import numpy as np
from scipy.spatial import cKDTree

from ..core.element import TetKinematics, gather_tet_dofs

logger = logging.getLogger(__name__)

UNBOUND = -1


def barycentric_coordinates(
    points: np.ndarray,
    origins: np.ndarray,
    rest_shape_inv: np.ndarray,
) -> np.ndarray:
    """점들의 사면체 무게중심 좌표.

    φ = T⁻¹·(p - x0),  w = (1 - φ0 - φ1 - φ2, φ0, φ1, φ2)

    Args:
        points: (m, 3)
        origins: 각 사면체 x0 (m, 3)
        rest_shape_inv: 각 사면체 T⁻¹ (m, 3, 3)

    Returns:
        (m, 4) 무게중심 좌표
    """
    phi = np.einsum("mij,mj->mi", rest_shape_inv, points - origins)
    return np.column_stack([1.0 - phi.sum(axis=1), phi])


class SkinBinding:
    """스킨 정점-사면체 바인딩.

    Args:
        skin_positions: 스킨 메쉬 휴지 위치 (S, 3)
        rest_positions: 시뮬레이션 메쉬 휴지 위치 (n, 3)
        tets: 사면체 인덱스 (T, 4)
        kin: 사면체 기준 운동학량
        tolerance: 무게중심 좌표 허용 오차
    """

    def __init__(
        self,
        skin_positions: np.ndarray,
        rest_positions: np.ndarray,
        tets: np.ndarray,
        kin: TetKinematics,
        tolerance: float = 1e-9,
    ):
        self.rest_positions = np.array(skin_positions, dtype=np.float64)
        self.tets = tets
        self.tolerance = tolerance
        n_skin = len(self.rest_positions)

        self.tet_index = np.full(n_skin, UNBOUND, dtype=np.int64)
        self.weights = np.zeros((n_skin, 4))

        x = rest_positions[tets]                              # (T, 4, 3)
        centroids = x.mean(axis=1)
        radius = float(np.linalg.norm(x - centroids[:, None, :], axis=2).max())

        # 공간 인덱스: 중심점에서 radius 이내 사면체만 후보
        tree = cKDTree(centroids)
        candidates = tree.query_ball_point(
            self.rest_positions, r=radius * (1.0 + 1e-9) + tolerance
        )

        for s, cand in enumerate(candidates):
            if not cand:
                continue
            cand = np.sort(np.asarray(cand, dtype=np.int64))
            p = np.broadcast_to(self.rest_positions[s], (len(cand), 3))
            w = barycentric_coordinates(p, x[cand, 0], kin.rest_shape_inv[cand])
            inside = np.all((w >= -tolerance) & (w <= 1.0 + tolerance), axis=1)
            hit = np.flatnonzero(inside)
            if hit.size:
                w_s = np.clip(w[hit[0]], 0.0, 1.0)
                w_s[w_s <= tolerance] = 0.0
                self.tet_index[s] = cand[hit[0]]
                self.weights[s] = w_s / w_s.sum()

        self.bound = self.tet_index != UNBOUND
        n_unbound = int(n_skin - self.bound.sum())
        if n_unbound:
            logger.warning(
                "스킨 정점 %d/%d개가 어떤 사면체에도 속하지 않아 휴지 위치에 고정됩니다.",
                n_unbound, n_skin,
            )
        logger.info("스킨 바인딩: 정점 %d, 바인딩 %d", n_skin, n_skin - n_unbound)

    @property
    def n_vertices(self) -> int:
        return len(self.rest_positions)

    @property
    def unbound_vertices(self) -> np.ndarray:
        """바인딩되지 않은 스킨 정점 인덱스."""
        return np.flatnonzero(~self.bound)

    def weight_matrix(self, i: int) -> np.ndarray:
        """스킨 정점 i의 3x12 가중 행렬 [w0·I, w1·I, w2·I, w3·I].

        바인딩되지 않은 정점은 0 행렬.
        """
        return np.kron(self.weights[i][None, :], np.eye(3))

    def project(self, q: np.ndarray) -> np.ndarray:
        """현재 상태에서 스킨 정점 위치 계산 (S, 3)."""
        out = self.rest_positions.copy()
        if not np.any(self.bound):
            return out
        q_tet = gather_tet_dofs(q, self.tets[self.tet_index[self.bound]])   # (B, 12)
        x = q_tet.reshape(-1, 4, 3)
        out[self.bound] = np.einsum("bk,bkc->bc", self.weights[self.bound], x)
        return out
