"""
Oxygen toxicity exposure: pulmonary (OTU) and central nervous system (CNS%).

OTU follows the Lambertsen/Clark unit pulmonary toxic dose power law. CNS%
is the fraction of the NOAA single-exposure time limit used, with elimination
at a 90 minute half-time while breathing ppO2 <= 0.5 bar.
"""

import logging
import math
from typing import Tuple

import numpy as np

logger = logging.getLogger(__name__)

OXYGEN_THRESHOLD = 0.5  # bar, no toxicity accumulates at or below
OTU_EXPONENT = 5.0 / 6.0
CNS_ELIMINATION_HALFTIME = 90.0  # minutes
CNS_MIN_LIMIT = 1.0  # minutes
INTEGRATION_STEP = 1.0  # seconds

# NOAA single exposure limits: ppO2 (bar) -> minutes
NOAA_CNS_PP_O2 = np.array([0.6, 0.7, 0.8, 0.9, 1.0, 1.1, 1.2, 1.3, 1.4, 1.5, 1.6])
NOAA_CNS_LIMITS = np.array([720.0, 570.0, 450.0, 360.0, 300.0, 240.0, 210.0, 180.0, 150.0, 120.0, 45.0])


def cns_time_limit(pp_o2: np.ndarray) -> np.ndarray:
    """NOAA exposure limit in minutes, linearly interpolated.

    Between 0.5 and 0.6 bar the 0.6 bar limit is used. Above 1.6 bar the last
    table segment is extrapolated, floored at CNS_MIN_LIMIT.
    """
    pp_o2 = np.asarray(pp_o2, dtype=float)
    limits = np.interp(pp_o2, NOAA_CNS_PP_O2, NOAA_CNS_LIMITS)
    slope = (NOAA_CNS_LIMITS[-1] - NOAA_CNS_LIMITS[-2]) / (NOAA_CNS_PP_O2[-1] - NOAA_CNS_PP_O2[-2])
    above = pp_o2 > NOAA_CNS_PP_O2[-1]
    extrapolated = NOAA_CNS_LIMITS[-1] + slope * (pp_o2 - NOAA_CNS_PP_O2[-1])
    limits = np.where(above, extrapolated, limits)
    return np.maximum(limits, CNS_MIN_LIMIT)


def otu_rate(pp_o2: np.ndarray) -> np.ndarray:
    """OTU per minute at a ppO2 (zero at or below the threshold)."""
    pp_o2 = np.asarray(pp_o2, dtype=float)
    excess = np.maximum(pp_o2 - OXYGEN_THRESHOLD, 0.0) / OXYGEN_THRESHOLD
    return np.power(excess, OTU_EXPONENT)


def segment_dose(pp_o2_start: float, pp_o2_end: float, duration: float) -> Tuple[float, float, float]:
    """Oxygen dose of a segment with linearly changing ppO2.

    Args:
        pp_o2_start: ppO2 at the segment start (bar)
        pp_o2_end: ppO2 at the segment end (bar)
        duration: seconds

    Returns:
        (otu, cns_fraction, eliminating_minutes): OTU accrued, fraction of the
        CNS limit used, and minutes spent at or below the toxicity threshold.
    """
    minutes = duration / 60.0
    if math.isclose(pp_o2_start, pp_o2_end):
        pp_o2 = np.array([pp_o2_start])
        dt = np.array([minutes])
    else:
        # Midpoint samples
        samples = max(1, math.ceil(duration / INTEGRATION_STEP))
        fractions = (np.arange(samples) + 0.5) / samples
        pp_o2 = pp_o2_start + (pp_o2_end - pp_o2_start) * fractions
        dt = np.full(samples, minutes / samples)

    toxic = pp_o2 > OXYGEN_THRESHOLD
    otu = float(np.sum(otu_rate(pp_o2) * dt))
    cns = float(np.sum(np.where(toxic, dt / cns_time_limit(pp_o2), 0.0)))
    eliminating = float(np.sum(np.where(toxic, 0.0, dt)))
    return otu, cns, eliminating


class OxygenToxicityTracker:
    """Cumulative OTU and CNS% over a dive."""

    def __init__(self):
        self.otu = 0.0
        self.cns = 0.0

    def copy(self) -> "OxygenToxicityTracker":
        clone = OxygenToxicityTracker()
        clone.otu = self.otu
        clone.cns = self.cns
        return clone

    def record(self, pp_o2_start: float, pp_o2_end: float, duration: float) -> None:
        """Accumulate a segment; ppO2 is taken as linear in time between the ends."""
        otu, cns_fraction, eliminating = segment_dose(pp_o2_start, pp_o2_end, duration)
        self.otu += otu
        if eliminating > 0.0:
            self.cns *= 0.5 ** (eliminating / CNS_ELIMINATION_HALFTIME)
        self.cns += cns_fraction * 100.0
        logger.debug(
            f"O2 dose ppO2 {pp_o2_start:.2f}->{pp_o2_end:.2f} bar over {duration:.0f}s: "
            f"+{otu:.2f} OTU, CNS {self.cns:.2f}%"
        )
