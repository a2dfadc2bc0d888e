"""희소 직접 해법 래퍼.

scipy SuperLU 분해를 감싸서 특이 행렬과 NaN/Inf 전파를
명시적 NumericalError로 보고한다.
"""

import numpy as np
from scipy import sparse
from scipy.sparse.linalg import splu

from ..validation import NumericalError


class SparseFactorization:
    """희소 행렬 분해 (한 번 분해, 여러 번 풀이).

    Args:
        A: 정방 희소 행렬 (n, n)
        stage: 오류 메시지용 단계 이름
    """

    def __init__(self, A, stage: str = "linear_solve"):
        self.stage = stage
        A = sparse.csc_matrix(A, dtype=np.float64)
        if A.shape[0] != A.shape[1]:
            raise NumericalError(f"정방 행렬이 아닙니다: {A.shape}", stage=stage)
        if not np.all(np.isfinite(A.data)):
            raise NumericalError("시스템 행렬에 NaN 또는 Inf가 포함되어 있습니다.", stage=stage)

        try:
            self._lu = splu(A)
        except RuntimeError as e:
            # SuperLU: "Factor is exactly singular"
            raise NumericalError(f"특이 행렬 분해 실패: {e}", stage=stage) from e

        diag_u = np.abs(self._lu.U.diagonal())
        if diag_u.size and diag_u.min() <= np.finfo(np.float64).eps * diag_u.max():
            raise NumericalError(
                f"시스템 행렬이 특이하거나 조건수가 과도합니다 "
                f"(|U_ii| 최소/최대 = {diag_u.min():.3e}/{diag_u.max():.3e}).",
                stage=stage,
            )
        self.shape = A.shape

    def solve(self, b: np.ndarray) -> np.ndarray:
        """A·x = b 풀이.

        Raises:
            NumericalError: 우변 또는 해에 NaN/Inf
        """
        if not np.all(np.isfinite(b)):
            raise NumericalError("우변 벡터에 NaN 또는 Inf가 포함되어 있습니다.", stage=self.stage)
        x = self._lu.solve(np.asarray(b, dtype=np.float64))
        if not np.all(np.isfinite(x)):
            raise NumericalError("해 벡터에 NaN 또는 Inf가 발생했습니다.", stage=self.stage)
        return x


def solve_sparse(A, b: np.ndarray, stage: str = "linear_solve") -> np.ndarray:
    """일회성 희소 선형 시스템 풀이 (분해 캐시 없음)."""
    return SparseFactorization(A, stage=stage).solve(b)
