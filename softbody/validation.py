"""입력 검증 유틸리티 및 예외 정의.

메쉬 토폴로지, 재료 상수, 고정점 인덱스의 유효성을 검사한다.
잘못된 입력은 생성 시점에 명시적 예외로 실패해야 하며,
해석 도중 조용히 보정하지 않는다.
"""

import logging
import numpy as np

# 모듈 전용 로거
logger = logging.getLogger("softbody")


# ───────────────── 커스텀 예외 ─────────────────


class SoftbodyValidationError(ValueError):
    """입력 검증 오류.

    Attributes:
        parameter: 문제가 된 매개변수 이름
        value: 전달된 값
        suggestion: 수정 제안
    """

    def __init__(
        self,
        message: str,
        parameter: str = "",
        value=None,
        suggestion: str = "",
    ):
        self.parameter = parameter
        self.value = value
        self.suggestion = suggestion
        full_msg = f"[softbody 검증 오류] {message}"
        if suggestion:
            full_msg += f" → 제안: {suggestion}"
        super().__init__(full_msg)


class GeometryError(SoftbodyValidationError):
    """퇴화 기하 오류 (부피 0 사면체, 역행렬 불가 형상 행렬, 바닥 관통 등)."""


class NumericalError(RuntimeError):
    """수치 해석 실패 (특이 행렬, NaN/Inf 전파).

    Attributes:
        stage: 실패한 단계 이름 (예: "mass", "implicit_system")
    """

    def __init__(self, message: str, stage: str = ""):
        self.stage = stage
        prefix = f"[{stage}] " if stage else ""
        super().__init__(f"[softbody 수치 오류] {prefix}{message}")


# ───────────────── 스칼라 검증 ─────────────────


def validate_positive(value: float, name: str, suggestion: str = ""):
    """양수 검증.

    Args:
        value: 검사할 값
        name: 매개변수 이름 (오류 메시지용)
        suggestion: 수정 제안
    """
    if not np.isfinite(value) or value <= 0:
        raise SoftbodyValidationError(
            f"{name}이(가) {value}입니다. 양수여야 합니다.",
            parameter=name,
            value=value,
            suggestion=suggestion,
        )


def validate_finite(array: np.ndarray, name: str):
    """NaN/Inf 포함 여부 검증."""
    if not np.all(np.isfinite(array)):
        raise SoftbodyValidationError(
            f"{name}에 NaN 또는 Inf가 포함되어 있습니다.",
            parameter=name,
        )


# ───────────────── 메쉬 검증 ─────────────────


def validate_positions(positions) -> np.ndarray:
    """정점 좌표 배열 검증 후 (n, 3) float64 배열 반환."""
    arr = np.asarray(positions, dtype=np.float64)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise GeometryError(
            f"정점 좌표 형상이 {arr.shape}입니다. (n, 3)이어야 합니다.",
            parameter="positions",
            value=arr.shape,
        )
    if arr.shape[0] == 0:
        raise GeometryError("정점이 하나도 없습니다.", parameter="positions")
    if not np.all(np.isfinite(arr)):
        raise GeometryError(
            "정점 좌표에 NaN 또는 Inf가 포함되어 있습니다.",
            parameter="positions",
        )
    return arr


def validate_index_array(indices, n_vertices: int, width: int, name: str) -> np.ndarray:
    """요소 연결 배열 검증.

    평탄화된 인덱스 버퍼(길이 width의 배수)도 허용한다.

    Args:
        indices: (n_elements, width) 또는 평탄화된 인덱스
        n_vertices: 전체 정점 수
        width: 요소당 정점 수 (삼각형 3, 사면체 4)
        name: 요소 종류명

    Returns:
        (n_elements, width) int64 배열
    """
    arr = np.asarray(indices)
    if arr.ndim == 1:
        if arr.size % width != 0:
            raise GeometryError(
                f"{name} 인덱스 버퍼 길이({arr.size})가 {width}의 배수가 아닙니다.",
                parameter="indices",
                value=arr.size,
            )
        arr = arr.reshape(-1, width)
    if arr.ndim != 2 or arr.shape[1] != width:
        raise GeometryError(
            f"{name} 인덱스 형상이 {arr.shape}입니다. (m, {width})이어야 합니다.",
            parameter="indices",
            value=arr.shape,
        )
    if arr.size and not np.issubdtype(arr.dtype, np.integer):
        raise GeometryError(
            f"{name} 인덱스가 정수형이 아닙니다 ({arr.dtype}).",
            parameter="indices",
            value=str(arr.dtype),
        )
    arr = arr.astype(np.int64)
    validate_indices(arr, n_vertices, name)

    # 같은 정점이 반복되는 퇴화 요소는 허용하되 경고
    if arr.size:
        s = np.sort(arr, axis=1)
        n_degenerate = int(np.any(s[:, 1:] == s[:, :-1], axis=1).sum())
        if n_degenerate:
            logger.warning(
                "%s %d개에 반복된 정점 인덱스가 있습니다 (퇴화 요소).",
                name, n_degenerate,
            )
    return arr


def validate_indices(indices, n_vertices: int, name: str = "정점"):
    """정점 인덱스 범위 검증.

    Args:
        indices: 인덱스 배열
        n_vertices: 전체 정점 수
        name: 인덱스 종류명 (오류 메시지용)
    """
    arr = np.asarray(indices)
    if arr.size == 0:
        return
    if arr.min() < 0:
        raise GeometryError(
            f"{name} 인덱스에 음수({int(arr.min())})가 포함되어 있습니다.",
            parameter="indices",
            value=int(arr.min()),
        )
    if arr.max() >= n_vertices:
        raise GeometryError(
            f"{name} 인덱스({int(arr.max())})가 정점 수({n_vertices})를 초과합니다.",
            parameter="indices",
            value=int(arr.max()),
            suggestion=f"유효 범위: 0 ~ {n_vertices - 1}",
        )


def validate_tet_volumes(volumes: np.ndarray, tol: float):
    """사면체 부피 검증.

    Args:
        volumes: 사면체별 부피 (T,)
        tol: 최소 허용 부피

    Raises:
        GeometryError: 부피가 tol 이하인 사면체 존재
    """
    bad = np.where(~(volumes > tol))[0]
    if bad.size:
        first = int(bad[0])
        raise GeometryError(
            f"퇴화 사면체 {bad.size}개 발견 (첫 번째: #{first}, 부피={volumes[first]:.3e}).",
            parameter="volumes",
            value=float(volumes[first]),
            suggestion="일치하거나 동일 평면 위에 있는 정점을 제거하세요",
        )
