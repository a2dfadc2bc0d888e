"""시뮬레이션 설정: Pydantic 모델 + TOML 로드."""

import tomllib
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field


class MassSpringConfig(BaseModel):
    """질량-스프링 솔버 설정."""

    mass: float = Field(1.0, gt=0)
    stiffness: float = Field(100.0, gt=0)
    gravity: float = Field(10.0, ge=0)
    dt: float = Field(0.01, gt=0)
    enable_hessian: bool = False

    # 스프링 힘 안정화 휴리스틱
    min_length: float = Field(1e-3, ge=0)
    clamped_length: float = Field(1e-2, gt=0)
    rest_snap_tolerance: float = Field(1e-2, ge=0)

    vertical_axis: int = Field(1, ge=0, le=2)


class FEMConfig(BaseModel):
    """사면체 FEM 솔버 설정."""

    material: Literal["stable_neo_hookean", "linear_elastic"] = "stable_neo_hookean"
    C: float = Field(170.0, gt=0)
    D: float = Field(169.5, gt=0)
    gravity: float = Field(3.0, ge=0)
    dt: float = Field(1e-3, gt=0)
    integrator: Literal["explicit", "linearized_implicit", "gradient_descent"] = "explicit"

    # 바닥 구속 (None이면 비활성)
    floor_height: Optional[float] = -3.0
    vertical_axis: int = Field(1, ge=0, le=2)

    # 경사 하강 적분기
    step_size: float = Field(20.0, gt=0)
    tolerance: float = Field(9e-4, gt=0)
    max_iterations: int = Field(100, ge=1)

    # 스킨 바인딩 무게중심 좌표 허용 오차
    bind_tolerance: float = Field(1e-9, ge=0)


class SimulationConfig(BaseModel):
    """최상위 시뮬레이션 설정."""

    mass_spring: MassSpringConfig = Field(default_factory=MassSpringConfig)
    fem: FEMConfig = Field(default_factory=FEMConfig)

    @classmethod
    def from_toml(cls, path: str | Path) -> "SimulationConfig":
        """TOML 파일에서 설정 로드.

        Args:
            path: TOML 파일 경로

        Returns:
            SimulationConfig 인스턴스
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"설정 파일을 찾을 수 없습니다: {path}")

        with open(path, "rb") as f:
            data = tomllib.load(f)

        return cls(**data)

    @classmethod
    def default(cls) -> "SimulationConfig":
        """기본 설정 반환."""
        return cls()
