"""구속 조건 (Constraint) 모듈.

시간 스텝마다 선형 풀이로 얻은 새 속도에 순서대로 적용되는 구속 목록.
- FixedVertices: 고정 정점의 속도 0 (외부에서 위치 구동)
- Floor: 축 정렬 바닥, 다음 위치가 바닥 이하이면 해당 축 속도 0 (비탄성)

구속은 적분(q += h·v) 이전에 속도에만 작용한다.
"""

import abc
import enum
import numpy as np
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from ..validation import GeometryError, validate_finite, validate_indices


class ConstraintKind(enum.Enum):
    """구속 유형."""
    FIXED = "fixed"   # 고정 정점 (운동학적 구동)
    FLOOR = "floor"   # 단방향 바닥 평면


class Constraint(abc.ABC):
    """구속 조건 기반 클래스."""

    kind: ConstraintKind

    def validate(self, q: np.ndarray):
        """생성 시점 초기 상태 검증 (기본: 없음)."""

    @abc.abstractmethod
    def apply(self, q: np.ndarray, v: np.ndarray, h: float):
        """새 속도 v를 제자리에서 수정.

        Args:
            q: 현재 위치 (3n,)
            v: 새 속도 (3n,), 수정됨
            h: 시간 간격
        """
        pass


@dataclass
class FixedVertices(Constraint):
    """고정 정점 집합.

    Args:
        indices: 고정 정점 인덱스
    """
    indices: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.int64))
    kind: ConstraintKind = field(default=ConstraintKind.FIXED, init=False)

    def __post_init__(self):
        self.indices = np.unique(np.asarray(self.indices, dtype=np.int64).reshape(-1))
        self._dofs = (3 * self.indices[:, None] + np.arange(3)).reshape(-1)

    @property
    def dofs(self) -> np.ndarray:
        """고정 DOF 인덱스 (3·n_fixed,)."""
        return self._dofs

    def validate(self, q: np.ndarray):
        validate_indices(self.indices, len(q) // 3, "고정 정점")

    def apply(self, q: np.ndarray, v: np.ndarray, h: float):
        v[self._dofs] = 0.0

    def displace(self, q: np.ndarray, delta):
        """고정 정점 위치에 delta 더하기 (속도 변화 없음)."""
        delta = np.asarray(delta, dtype=np.float64).reshape(3)
        validate_finite(delta, "delta")
        q.reshape(-1, 3)[self.indices] += delta


@dataclass
class Floor(Constraint):
    """축 정렬 바닥 구속.

    Args:
        height: 바닥 높이
        axis: 수직 축 (0=x, 1=y, 2=z)
    """
    height: float = 0.0
    axis: int = 1
    kind: ConstraintKind = field(default=ConstraintKind.FLOOR, init=False)

    def __post_init__(self):
        if self.axis not in (0, 1, 2):
            raise GeometryError(
                f"바닥 축이 {self.axis}입니다. 0, 1, 2 중 하나여야 합니다.",
                parameter="axis",
                value=self.axis,
            )

    def validate(self, q: np.ndarray):
        coords = q[self.axis::3]
        below = np.where(coords <= self.height)[0]
        if below.size:
            raise GeometryError(
                f"초기 형상의 정점 {below.size}개가 바닥(높이 {self.height}) 이하에 있습니다 "
                f"(첫 번째: #{int(below[0])}, 좌표={coords[below[0]]:.4g}).",
                parameter="floor_height",
                value=self.height,
                suggestion="메쉬를 바닥 위로 이동하거나 바닥 높이를 낮추세요",
            )

    def apply(self, q: np.ndarray, v: np.ndarray, h: float):
        dofs = np.arange(self.axis, len(q), 3)
        hit = q[dofs] + h * v[dofs] <= self.height
        v[dofs[hit]] = 0.0


def validate_constraints(constraints: Iterable[Constraint], q: np.ndarray):
    """구속 목록 초기 검증."""
    for c in constraints:
        c.validate(q)


def apply_constraints(
    constraints: Sequence[Constraint],
    q: np.ndarray,
    v: np.ndarray,
    h: float,
) -> np.ndarray:
    """구속 목록을 순서대로 새 속도에 적용."""
    for c in constraints:
        c.apply(q, v, h)
    return v
