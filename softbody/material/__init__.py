"""재료 모델: 초탄성 에너지 밀도 (에너지, 기울기, 헤시안)."""

from ..validation import SoftbodyValidationError
from .base import EnergyDensity
from .linear_elastic import LinearElastic
from .stable_neo_hookean import StableNeoHookean

MATERIALS = {
    "stable_neo_hookean": StableNeoHookean,
    "linear_elastic": LinearElastic,
}


def create_material(name: str, C: float, D: float) -> EnergyDensity:
    """이름으로 재료 모델 생성.

    Args:
        name: "stable_neo_hookean" 또는 "linear_elastic"
        C: 전단 계수 (μ = 2C)
        D: 체적 계수 (λ = 2D)
    """
    try:
        cls = MATERIALS[name]
    except KeyError:
        raise SoftbodyValidationError(
            f"지원하지 않는 재료 모델: {name}",
            parameter="material",
            value=name,
            suggestion=f"사용 가능: {', '.join(MATERIALS)}",
        ) from None
    return cls(C, D)


__all__ = [
    "EnergyDensity",
    "LinearElastic",
    "StableNeoHookean",
    "MATERIALS",
    "create_material",
]
