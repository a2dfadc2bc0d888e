"""시뮬레이션 설정 테스트."""

import pytest
from pydantic import ValidationError

from softbody.config import FEMConfig, MassSpringConfig, SimulationConfig


class TestSimulationConfig:
    """SimulationConfig 테스트."""

    def test_default_config(self):
        """기본 설정 생성."""
        cfg = SimulationConfig.default()
        assert cfg.mass_spring.mass == 1.0
        assert cfg.mass_spring.dt == 0.01
        assert cfg.mass_spring.enable_hessian is False
        assert cfg.fem.material == "stable_neo_hookean"
        assert cfg.fem.integrator == "explicit"
        assert cfg.fem.floor_height == -3.0

    def test_fem_defaults(self):
        """FEMConfig 재료 상수 및 경사 하강 기본값."""
        cfg = FEMConfig()
        assert cfg.C == 170.0
        assert cfg.D == 169.5
        assert cfg.gravity == 3.0
        assert cfg.dt == 1e-3
        assert cfg.step_size == 20.0
        assert cfg.tolerance == 9e-4
        assert cfg.max_iterations == 100

    def test_mass_spring_heuristics(self):
        """스프링 안정화 휴리스틱 기본값."""
        cfg = MassSpringConfig()
        assert cfg.min_length == 1e-3
        assert cfg.clamped_length == 1e-2
        assert cfg.rest_snap_tolerance == 1e-2

    def test_from_toml(self, tmp_path):
        """TOML 파일 로드."""
        path = tmp_path / "sim.toml"
        path.write_text(
            "[mass_spring]\n"
            "stiffness = 50.0\n"
            "enable_hessian = true\n"
            "\n"
            "[fem]\n"
            "material = \"linear_elastic\"\n"
            "integrator = \"gradient_descent\"\n"
            "dt = 0.002\n",
            encoding="utf-8",
        )
        cfg = SimulationConfig.from_toml(path)
        assert cfg.mass_spring.stiffness == 50.0
        assert cfg.mass_spring.enable_hessian is True
        assert cfg.mass_spring.mass == 1.0
        assert cfg.fem.material == "linear_elastic"
        assert cfg.fem.integrator == "gradient_descent"
        assert cfg.fem.dt == 0.002

    def test_missing_file_raises(self, tmp_path):
        """없는 파일 → FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            SimulationConfig.from_toml(tmp_path / "missing.toml")

    def test_invalid_values_rejected(self):
        """음수 질량, 잘못된 적분 전략 이름 → ValidationError."""
        with pytest.raises(ValidationError):
            MassSpringConfig(mass=-1.0)
        with pytest.raises(ValidationError):
            FEMConfig(integrator="verlet")
        with pytest.raises(ValidationError):
            FEMConfig(vertical_axis=3)

    def test_floor_can_be_disabled(self):
        """floor_height = None 허용."""
        assert FEMConfig(floor_height=None).floor_height is None
