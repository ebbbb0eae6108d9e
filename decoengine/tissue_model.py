"""
Bühlmann ZH-L16C tissue loading model.

Holds the 16 N2 and 16 He compartment tensions and the diver's current depth,
and advances them with the Haldane equation (constant depth) or the Schreiner
equation (travel). All tissue math is vectorised across compartments with numpy.
"""

import math
from typing import Optional

import numpy as np

from .buhlmann_constants import (
    HE_K,
    N2_K,
    NUM_COMPARTMENTS,
    ambient_pressure,
    haldane_vec,
    schreiner_vec,
    surface_n2_tension,
)
from .exceptions import InvalidSegment
from .gas import BreathingSource, inspired_inert

# Travel is integrated in slices of at most this depth change (m)
RAMP_SLICE_DEPTH = 1.0


class TissueLoadingModel:
    """Inert gas tensions for one diver.

    Tensions start at surface equilibrium on air. The model mutates in place;
    use copy() for look-ahead simulations.
    """

    def __init__(self, surface_pressure: float, water_density: float):
        """
        Args:
            surface_pressure: surface pressure in bar
            water_density: kg/m^3
        """
        self.surface_pressure = surface_pressure
        self.water_density = water_density
        self.depth = 0.0
        self.n2_p = np.full(NUM_COMPARTMENTS, surface_n2_tension(surface_pressure))
        self.he_p = np.zeros(NUM_COMPARTMENTS)

    def copy(self) -> "TissueLoadingModel":
        clone = TissueLoadingModel.__new__(TissueLoadingModel)
        clone.surface_pressure = self.surface_pressure
        clone.water_density = self.water_density
        clone.depth = self.depth
        clone.n2_p = self.n2_p.copy()
        clone.he_p = self.he_p.copy()
        return clone

    def ambient_pressure(self, depth: Optional[float] = None) -> float:
        if depth is None:
            depth = self.depth
        return ambient_pressure(depth, self.surface_pressure, self.water_density)

    def apply_constant_segment(self, depth: float, duration: float, source: BreathingSource) -> None:
        """Stay at ``depth`` for ``duration`` seconds breathing ``source``."""
        if depth < 0:
            raise InvalidSegment(f"Depth must be >= 0, got {depth}")
        if not duration > 0:
            raise InvalidSegment(f"Duration must be > 0, got {duration}")

        t = duration / 60.0
        p_n2, p_he = inspired_inert(source, self.ambient_pressure(depth))
        self.n2_p = haldane_vec(self.n2_p, p_n2, t, N2_K)
        self.he_p = haldane_vec(self.he_p, p_he, t, HE_K)
        self.depth = depth

    def apply_ramp_segment(
        self,
        target_depth: float,
        source: BreathingSource,
        duration: Optional[float] = None,
        rate: Optional[float] = None,
    ) -> float:
        """Travel linearly from the current depth to ``target_depth``.

        Exactly one of ``duration`` (seconds) or ``rate`` (m/min) must be given.

        Returns:
            The travel time in seconds (0.0 for a rate-based travel that
            covers no distance).
        """
        duration = travel_duration(self.depth, target_depth, duration, rate)
        if duration == 0.0:
            return 0.0

        start_depth = self.depth
        if target_depth == start_depth:
            self.apply_constant_segment(target_depth, duration, source)
            return duration

        slices = max(1, math.ceil(abs(target_depth - start_depth) / RAMP_SLICE_DEPTH))
        t = duration / 60.0 / slices
        for i in range(slices):
            d0 = start_depth + (target_depth - start_depth) * i / slices
            d1 = start_depth + (target_depth - start_depth) * (i + 1) / slices
            n2_0, he_0 = inspired_inert(source, self.ambient_pressure(d0))
            n2_1, he_1 = inspired_inert(source, self.ambient_pressure(d1))
            self.n2_p = schreiner_vec(self.n2_p, n2_0, (n2_1 - n2_0) / t, t, N2_K)
            self.he_p = schreiner_vec(self.he_p, he_0, (he_1 - he_0) / t, t, HE_K)

        self.depth = target_depth
        return duration


def travel_duration(
    start_depth: float,
    target_depth: float,
    duration: Optional[float] = None,
    rate: Optional[float] = None,
) -> float:
    """Validate a travel request and resolve its duration in seconds."""
    if target_depth < 0:
        raise InvalidSegment(f"Depth must be >= 0, got {target_depth}")
    if (duration is None) == (rate is None):
        raise InvalidSegment("Travel needs exactly one of duration or rate")
    if rate is not None:
        if not rate > 0:
            raise InvalidSegment(f"Rate must be > 0, got {rate}")
        return abs(target_depth - start_depth) / rate * 60.0
    if not duration > 0:
        raise InvalidSegment(f"Duration must be > 0, got {duration}")
    return float(duration)
