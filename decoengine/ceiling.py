"""
Decompression ceiling and supersaturation.

The ceiling is the shallowest depth at which every compartment stays within its
gradient-factor-adjusted M-value. The gradient factor follows Baker's slope:
gf_low at the anchor depth (the first stop), gf_high at the surface.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .buhlmann_constants import (
    depth_at_pressure,
    gradient_percent,
    round_up,
    tolerated_pressures,
)
from .config import CeilingType, DiveConfig
from .gas import BreathingSource
from .tissue_model import TissueLoadingModel

CEILING_TOLERANCE = 1e-4  # m
ADAPTIVE_STEP = 1.0  # m


@dataclass(frozen=True)
class Supersaturation:
    """Peak compartment loading as % of the M-value gradient."""
    gf_99: float
    gf_surf: float


class CeilingCalculator:
    """Ceiling queries over a TissueLoadingModel for one DiveConfig."""

    def __init__(self, config: DiveConfig):
        self.config = config
        self.gf = config.gradient_factors

    def _depth(self, model: TissueLoadingModel, pressure: float) -> float:
        return depth_at_pressure(pressure, model.surface_pressure, model.water_density)

    def gf_low_ceiling(self, model: TissueLoadingModel) -> float:
        """Ceiling (m) with gf_low applied everywhere; 0.0 if not supersaturated."""
        p_tol = float(np.max(tolerated_pressures(model.n2_p, model.he_p, self.gf.gf_low)))
        return max(0.0, self._depth(model, p_tol))

    def _within_limits(self, model: TissueLoadingModel, depth: float, anchor: float) -> bool:
        gf = self.gf.at_depth(depth, anchor)
        p_tol = float(np.max(tolerated_pressures(model.n2_p, model.he_p, gf)))
        return p_tol <= model.ambient_pressure(depth)

    def raw_ceiling(self, model: TissueLoadingModel, anchor: Optional[float] = None) -> float:
        """Unclamped, unrounded ceiling in meters.

        Args:
            model: tissue state to evaluate
            anchor: depth where gf_low applies. None uses the present gf_low
                ceiling, i.e. the GF slope is recalculated from current tissues.
        """
        low_ceiling = self.gf_low_ceiling(model)
        if low_ceiling <= 0.0:
            return 0.0
        if anchor is None:
            anchor = low_ceiling
        if self._within_limits(model, 0.0, anchor):
            return 0.0

        # Bisection: within limits at hi, outside at lo
        lo, hi = 0.0, max(anchor, low_ceiling)
        while hi - lo > CEILING_TOLERANCE:
            mid = (lo + hi) / 2.0
            if self._within_limits(model, mid, anchor):
                hi = mid
            else:
                lo = mid
        return hi

    def adaptive_ceiling(
        self,
        model: TissueLoadingModel,
        source: BreathingSource,
        anchor: Optional[float] = None,
    ) -> float:
        """Ceiling reached by actually ascending toward it.

        Simulates ascent at the deco ascent rate in steps of at most
        ADAPTIVE_STEP meters, chasing the ceiling as tissues keep exchanging
        gas, until the ceiling catches up with the simulated depth.
        """
        sim = model.copy()
        ceiling = self.raw_ceiling(sim, anchor)
        while sim.depth - ceiling > CEILING_TOLERANCE:
            target = max(ceiling, sim.depth - ADAPTIVE_STEP)
            sim.apply_ramp_segment(target, source, rate=self.config.deco_ascent_rate)
            ceiling = self.raw_ceiling(sim, anchor)
        return ceiling

    def ceiling(
        self,
        model: TissueLoadingModel,
        source: Optional[BreathingSource] = None,
        anchor: Optional[float] = None,
    ) -> float:
        """Ceiling per the configured ceiling type and rounding."""
        if self.config.ceiling_type is CeilingType.ADAPTIVE and source is not None:
            ceiling = self.adaptive_ceiling(model, source, anchor)
        else:
            ceiling = self.raw_ceiling(model, anchor)

        if self.config.round_ceiling and ceiling > 0.0:
            ceiling = round_up(ceiling, self.config.stop_formatting.ceiling_increment)
        if self.config.ceiling_type is CeilingType.ACTUAL:
            ceiling = min(ceiling, model.depth)
        return ceiling

    def supersaturation(self, model: TissueLoadingModel) -> Supersaturation:
        gf_99 = gradient_percent(model.n2_p, model.he_p, model.ambient_pressure())
        gf_surf = gradient_percent(model.n2_p, model.he_p, model.surface_pressure)
        return Supersaturation(gf_99=max(gf_99, 0.0), gf_surf=max(gf_surf, 0.0))
