"""
Dive configuration and config.yaml loading.

DiveConfig is immutable once a session starts recording. Settings are resolved
defaults -> config.yaml -> CLI override, in that order.
"""

import logging
import os
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Tuple

import yaml

from .buhlmann_constants import (
    CONTINUOUS_STOP_INCREMENT,
    IMPERIAL_STOP_INCREMENT,
    METRIC_STOP_INCREMENT,
    GradientFactors,
)
from .exceptions import InvalidConfig

logger = logging.getLogger(__name__)


class CeilingType(IntEnum):
    ACTUAL = 0
    ADAPTIVE = 1


class StopFormatting(IntEnum):
    METRIC = 0
    IMPERIAL = 1
    CONTINUOUS = 2

    @property
    def stop_increment(self) -> float:
        """Depth grid (m) used between deco stops."""
        if self is StopFormatting.IMPERIAL:
            return IMPERIAL_STOP_INCREMENT
        if self is StopFormatting.CONTINUOUS:
            return CONTINUOUS_STOP_INCREMENT
        return METRIC_STOP_INCREMENT

    @property
    def ceiling_increment(self) -> float:
        """Rounding step for reported ceilings; Continuous is not rounded."""
        if self is StopFormatting.CONTINUOUS:
            return 0.0
        return self.stop_increment


@dataclass(frozen=True)
class DiveConfig:
    """Decompression settings for one dive session.

    gf_low / gf_high are percentages, surface_pressure is in millibar,
    deco_ascent_rate in m/min, water_density in kg/m^3, depths in meters and
    ppO2 limits in bar. pp_o2_hard_limit=None means ppO2 breaches are reported
    as warnings instead of rejecting the segment.
    """
    gf_low: int = 100
    gf_high: int = 100
    surface_pressure: int = 1013
    deco_ascent_rate: float = 10.0
    ceiling_type: CeilingType = CeilingType.ACTUAL
    round_ceiling: bool = True
    recalc_all_tissues_m_values: bool = True
    water_density: float = 1030.0
    stop_formatting: StopFormatting = StopFormatting.METRIC
    last_stop_depth: float = 3.0
    min_pp_o2: float = 0.18
    deco_max_pp_o2: float = 1.6
    pp_o2_hard_limit: Optional[float] = None

    def __post_init__(self):
        if not (0 <= self.gf_low <= 100):
            raise InvalidConfig(f"gf_low must be in [0, 100], got {self.gf_low}")
        if not (0 <= self.gf_high <= 100):
            raise InvalidConfig(f"gf_high must be in [0, 100], got {self.gf_high}")
        if self.gf_low > self.gf_high:
            raise InvalidConfig(
                f"gf_low ({self.gf_low}) must be <= gf_high ({self.gf_high})"
            )
        if not self.surface_pressure > 0:
            raise InvalidConfig(f"surface_pressure must be > 0, got {self.surface_pressure}")
        if not self.deco_ascent_rate > 0:
            raise InvalidConfig(f"deco_ascent_rate must be > 0, got {self.deco_ascent_rate}")
        if not self.water_density > 0:
            raise InvalidConfig(f"water_density must be > 0, got {self.water_density}")
        if not self.last_stop_depth >= 0:
            raise InvalidConfig(f"last_stop_depth must be >= 0, got {self.last_stop_depth}")
        if not self.min_pp_o2 > 0:
            raise InvalidConfig(f"min_pp_o2 must be > 0, got {self.min_pp_o2}")
        if not self.deco_max_pp_o2 > self.min_pp_o2:
            raise InvalidConfig(
                f"deco_max_pp_o2 ({self.deco_max_pp_o2}) must be > min_pp_o2 ({self.min_pp_o2})"
            )
        if self.pp_o2_hard_limit is not None and not self.pp_o2_hard_limit > 0:
            raise InvalidConfig(f"pp_o2_hard_limit must be > 0, got {self.pp_o2_hard_limit}")
        try:
            object.__setattr__(self, "ceiling_type", CeilingType(self.ceiling_type))
            object.__setattr__(self, "stop_formatting", StopFormatting(self.stop_formatting))
        except ValueError as e:
            raise InvalidConfig(str(e)) from e

    @property
    def gradient_factors(self) -> GradientFactors:
        return GradientFactors.from_percent(self.gf_low, self.gf_high)

    @property
    def surface_pressure_bar(self) -> float:
        return self.surface_pressure / 1000.0


def _enum_value(enum_cls, value):
    """Accept enum members by name ("metric") or by number."""
    if isinstance(value, str):
        try:
            return enum_cls[value.upper()]
        except KeyError:
            raise InvalidConfig(f"Unknown {enum_cls.__name__}: {value}") from None
    try:
        return enum_cls(value)
    except ValueError as e:
        raise InvalidConfig(str(e)) from e


def config_from_dict(config: dict) -> DiveConfig:
    """Build a DiveConfig from the sections of a parsed config.yaml."""
    defaults = DiveConfig()
    buhlmann_cfg = config.get("buhlmann", {}) or {}
    deco_cfg = config.get("deco", {}) or {}
    oxygen_cfg = config.get("oxygen", {}) or {}
    hard_limit = oxygen_cfg.get("hard_limit", defaults.pp_o2_hard_limit)

    return DiveConfig(
        gf_low=int(buhlmann_cfg.get("gf_low", defaults.gf_low)),
        gf_high=int(buhlmann_cfg.get("gf_high", defaults.gf_high)),
        surface_pressure=int(config.get("surface_pressure", defaults.surface_pressure)),
        deco_ascent_rate=float(deco_cfg.get("ascent_rate", defaults.deco_ascent_rate)),
        ceiling_type=_enum_value(CeilingType, buhlmann_cfg.get("ceiling_type", defaults.ceiling_type)),
        round_ceiling=bool(buhlmann_cfg.get("round_ceiling", defaults.round_ceiling)),
        recalc_all_tissues_m_values=bool(
            buhlmann_cfg.get("recalc_all_tissues_m_values", defaults.recalc_all_tissues_m_values)
        ),
        water_density=float(config.get("water_density", defaults.water_density)),
        stop_formatting=_enum_value(StopFormatting, deco_cfg.get("stop_formatting", defaults.stop_formatting)),
        last_stop_depth=float(deco_cfg.get("last_stop_depth", defaults.last_stop_depth)),
        min_pp_o2=float(oxygen_cfg.get("min_pp_o2", defaults.min_pp_o2)),
        deco_max_pp_o2=float(oxygen_cfg.get("deco_max_pp_o2", defaults.deco_max_pp_o2)),
        pp_o2_hard_limit=float(hard_limit) if hard_limit is not None else None,
    )


def default_config_path() -> str:
    return os.path.join(os.path.dirname(os.path.dirname(__file__)), "config.yaml")


def read_config_file(config_path: Optional[str] = None) -> dict:
    """Parse config.yaml; a missing file yields an empty dict."""
    if config_path is None:
        config_path = default_config_path()
    if not os.path.exists(config_path):
        logger.info(f"No config file at {config_path}, using defaults")
        return {}
    with open(config_path) as f:
        config = yaml.safe_load(f) or {}
    if not isinstance(config, dict):
        raise InvalidConfig(f"{config_path} must contain a mapping, got {type(config).__name__}")
    return config


def with_gf_override(config: dict, gf_override: Optional[Tuple[int, int]]) -> dict:
    """Copy of a parsed config with (gf_low, gf_high) replaced, if given."""
    if not gf_override:
        return config
    buhlmann_cfg = dict(config.get("buhlmann", {}) or {})
    buhlmann_cfg["gf_low"], buhlmann_cfg["gf_high"] = gf_override
    return dict(config, buhlmann=buhlmann_cfg)


def load_config(
    config_path: Optional[str] = None,
    gf_override: Optional[Tuple[int, int]] = None,
) -> DiveConfig:
    """Load a DiveConfig from config.yaml with an optional CLI GF override.

    Args:
        config_path: path to config.yaml (default: next to the package)
        gf_override: (gf_low, gf_high) percentages taking precedence over the file
    """
    return config_from_dict(with_gf_override(read_config_file(config_path), gf_override))
