"""Tests for DiveConfig validation and config.yaml loading."""

import pytest

from decoengine.buhlmann_constants import GradientFactors
from decoengine.config import (
    CeilingType,
    DiveConfig,
    StopFormatting,
    config_from_dict,
    load_config,
    read_config_file,
    with_gf_override,
)
from decoengine.exceptions import InvalidConfig


class TestDiveConfig:
    """Defaults and validation."""

    def test_defaults(self):
        config = DiveConfig()
        assert (config.gf_low, config.gf_high) == (100, 100)
        assert config.surface_pressure == 1013
        assert config.deco_ascent_rate == 10.0
        assert config.ceiling_type is CeilingType.ACTUAL
        assert config.round_ceiling
        assert config.recalc_all_tissues_m_values
        assert config.water_density == 1030.0
        assert config.stop_formatting is StopFormatting.METRIC
        assert config.last_stop_depth == 3.0
        assert config.min_pp_o2 == 0.18
        assert config.pp_o2_hard_limit is None

    def test_derived_values(self):
        config = DiveConfig(gf_low=30, gf_high=70, surface_pressure=1000)
        assert config.gradient_factors == GradientFactors(0.3, 0.7)
        assert config.surface_pressure_bar == 1.0

    def test_enums_coerced_from_numbers(self):
        config = DiveConfig(ceiling_type=1, stop_formatting=2)
        assert config.ceiling_type is CeilingType.ADAPTIVE
        assert config.stop_formatting is StopFormatting.CONTINUOUS

    @pytest.mark.parametrize("kwargs,match", [
        ({"gf_low": 101, "gf_high": 101}, "gf_low must be in"),
        ({"gf_low": 80, "gf_high": 50}, "must be <="),
        ({"surface_pressure": 0}, "surface_pressure must be > 0"),
        ({"deco_ascent_rate": 0.0}, "deco_ascent_rate must be > 0"),
        ({"water_density": -1.0}, "water_density must be > 0"),
        ({"last_stop_depth": -3.0}, "last_stop_depth must be >= 0"),
        ({"min_pp_o2": 0.0}, "min_pp_o2 must be > 0"),
        ({"deco_max_pp_o2": 0.1}, "must be > min_pp_o2"),
        ({"pp_o2_hard_limit": 0.0}, "pp_o2_hard_limit must be > 0"),
        ({"stop_formatting": 7}, "StopFormatting"),
    ])
    def test_invalid(self, kwargs, match):
        with pytest.raises(InvalidConfig, match=match):
            DiveConfig(**kwargs)

    def test_frozen(self):
        with pytest.raises(AttributeError):
            DiveConfig().gf_low = 30


class TestStopFormatting:
    """Stop grid and ceiling rounding per formatting."""

    def test_increments(self):
        assert StopFormatting.METRIC.stop_increment == 3.0
        assert StopFormatting.IMPERIAL.stop_increment == pytest.approx(3.048)
        assert StopFormatting.CONTINUOUS.stop_increment == 1.0

    def test_continuous_ceiling_not_rounded(self):
        assert StopFormatting.CONTINUOUS.ceiling_increment == 0.0
        assert StopFormatting.METRIC.ceiling_increment == 3.0


class TestConfigFromDict:
    """Mapping parsed YAML sections onto DiveConfig."""

    def test_empty_is_default(self):
        assert config_from_dict({}) == DiveConfig()

    def test_sections(self):
        config = config_from_dict({
            "surface_pressure": 1000,
            "water_density": 1000.0,
            "buhlmann": {"gf_low": 30, "gf_high": 70, "ceiling_type": "adaptive", "round_ceiling": False},
            "deco": {"ascent_rate": 9, "last_stop_depth": 6, "stop_formatting": "imperial"},
            "oxygen": {"min_pp_o2": 0.16, "deco_max_pp_o2": 1.5, "hard_limit": 1.7},
        })
        assert (config.gf_low, config.gf_high) == (30, 70)
        assert config.ceiling_type is CeilingType.ADAPTIVE
        assert not config.round_ceiling
        assert config.stop_formatting is StopFormatting.IMPERIAL
        assert config.last_stop_depth == 6.0
        assert config.deco_max_pp_o2 == 1.5
        assert config.pp_o2_hard_limit == 1.7

    def test_unknown_enum_name(self):
        with pytest.raises(InvalidConfig, match="Unknown CeilingType"):
            config_from_dict({"buhlmann": {"ceiling_type": "optimistic"}})

    def test_gf_override(self):
        raw = {"buhlmann": {"gf_low": 50, "gf_high": 85, "round_ceiling": False}}
        overridden = with_gf_override(raw, (30, 70))
        assert overridden["buhlmann"] == {"gf_low": 30, "gf_high": 70, "round_ceiling": False}
        assert raw["buhlmann"]["gf_low"] == 50
        assert with_gf_override(raw, None) is raw


class TestLoadConfig:
    """Reading config.yaml from disk."""

    def test_load_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "surface_pressure: 1010\n"
            "buhlmann:\n"
            "  gf_low: 40\n"
            "  gf_high: 80\n"
            "deco:\n"
            "  stop_formatting: continuous\n"
        )
        config = load_config(str(path))
        assert config.surface_pressure == 1010
        assert (config.gf_low, config.gf_high) == (40, 80)
        assert config.stop_formatting is StopFormatting.CONTINUOUS

    def test_cli_override_wins(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("buhlmann:\n  gf_low: 40\n  gf_high: 80\n")
        config = load_config(str(path), gf_override=(20, 90))
        assert (config.gf_low, config.gf_high) == (20, 90)

    def test_missing_file_uses_defaults(self, tmp_path):
        assert load_config(str(tmp_path / "absent.yaml")) == DiveConfig()

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(InvalidConfig, match="must contain a mapping"):
            read_config_file(str(path))
