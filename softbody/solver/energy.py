"""에너지 계산 유틸리티.

시간 적분 안정성을 에너지 관점에서 모니터링한다.
- 운동 에너지: T = ½ vᵀ·M·v
- 위치 에너지: 탄성 에너지 + 중력 위치 에너지 (솔버별 정의)
"""

import numpy as np
from dataclasses import dataclass


@dataclass
class EnergyReport:
    """에너지 보고서.

    Attributes:
        kinetic: 운동 에너지
        potential: 위치 에너지 (탄성 + 중력)
        time: 시뮬레이션 시각
    """
    kinetic: float = 0.0
    potential: float = 0.0
    time: float = 0.0

    @property
    def total(self) -> float:
        """총 에너지."""
        return self.kinetic + self.potential


def kinetic_energy(M, v: np.ndarray) -> float:
    """운동 에너지 T = ½ vᵀ·M·v."""
    return float(0.5 * v @ (M @ v))
