"""
Bühlmann ZH-L16C constants and gas-exchange math.

Single source of truth for compartment half-times, M-value coefficients and the
pressure conversions shared by the tissue model, the ceiling calculator and the
deco planner. All functions are pure and vectorised over the 16 compartments.
"""

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np

NUM_COMPARTMENTS = 16

# ZH-L16C, compartment 1b. Half-times in minutes.
ZH_L16C_N2_HALFTIMES: Tuple[float, ...] = (
    5.0, 8.0, 12.5, 18.5, 27.0, 38.3, 54.3, 77.0,
    109.0, 146.0, 187.0, 239.0, 305.0, 390.0, 498.0, 635.0,
)

# M-value coefficients: M(P) = a + P/b
ZH_L16C_N2_A: Tuple[float, ...] = (
    1.1696, 1.0000, 0.8618, 0.7562, 0.6200, 0.5043, 0.4410, 0.4000,
    0.3750, 0.3500, 0.3295, 0.3065, 0.2835, 0.2610, 0.2480, 0.2327,
)

ZH_L16C_N2_B: Tuple[float, ...] = (
    0.5578, 0.6514, 0.7222, 0.7825, 0.8126, 0.8434, 0.8693, 0.8910,
    0.9092, 0.9222, 0.9319, 0.9403, 0.9477, 0.9544, 0.9602, 0.9653,
)

ZH_L16C_HE_HALFTIMES: Tuple[float, ...] = (
    1.88, 3.02, 4.72, 6.99, 10.21, 14.48, 20.53, 29.11,
    41.20, 55.19, 70.69, 90.34, 115.29, 147.42, 188.24, 240.03,
)

ZH_L16C_HE_A: Tuple[float, ...] = (
    1.6189, 1.3830, 1.1919, 1.0458, 0.9220, 0.8205, 0.7305, 0.6502,
    0.5950, 0.5545, 0.5333, 0.5189, 0.5181, 0.5176, 0.5172, 0.5119,
)

ZH_L16C_HE_B: Tuple[float, ...] = (
    0.4770, 0.5747, 0.6527, 0.7223, 0.7582, 0.7957, 0.8279, 0.8553,
    0.8757, 0.8903, 0.8997, 0.9073, 0.9122, 0.9171, 0.9217, 0.9267,
)

WATER_VAPOR_PRESSURE = 0.0627  # bar, alveolar at 37 C
AIR_N2_FRACTION = 0.79
GRAVITY = 9.80665  # m/s^2

METRIC_STOP_INCREMENT = 3.0
IMPERIAL_STOP_INCREMENT = 3.048  # 10 ft
CONTINUOUS_STOP_INCREMENT = 1.0

N2_A = np.array(ZH_L16C_N2_A)
N2_B = np.array(ZH_L16C_N2_B)
HE_A = np.array(ZH_L16C_HE_A)
HE_B = np.array(ZH_L16C_HE_B)

# Decay constants k = ln(2) / halftime, per minute
N2_K = np.log(2) / np.array(ZH_L16C_N2_HALFTIMES)
HE_K = np.log(2) / np.array(ZH_L16C_HE_HALFTIMES)


@dataclass(frozen=True)
class GradientFactors:
    """Gradient factor pair as fractions (0.0–1.0).

    gf_low:  applied at the first stop, controls first stop depth
    gf_high: applied at the surface, controls final ascent and NDL
    """
    gf_low: float
    gf_high: float

    def __post_init__(self):
        if not (0.0 <= self.gf_low <= 1.0):
            raise ValueError(f"gf_low must be in [0, 1.0], got {self.gf_low}")
        if not (0.0 <= self.gf_high <= 1.0):
            raise ValueError(f"gf_high must be in [0, 1.0], got {self.gf_high}")
        if self.gf_low > self.gf_high:
            raise ValueError(
                f"gf_low ({self.gf_low}) must be <= gf_high ({self.gf_high})"
            )

    @classmethod
    def from_percent(cls, gf_low: int, gf_high: int) -> "GradientFactors":
        return cls(gf_low=gf_low / 100.0, gf_high=gf_high / 100.0)

    def at_depth(self, depth: float, anchor_depth: float) -> float:
        """Gradient factor in force at ``depth``.

        gf_low applies at and below the anchor (first stop), moving linearly to
        gf_high at the surface.
        """
        if anchor_depth <= 0.0 or depth <= 0.0:
            return self.gf_high
        if depth >= anchor_depth:
            return self.gf_low
        return self.gf_high - (self.gf_high - self.gf_low) * depth / anchor_depth


def ambient_pressure(depth: float, surface_pressure: float, water_density: float) -> float:
    """Absolute pressure (bar) at depth.

    Args:
        depth: depth in meters
        surface_pressure: surface pressure in bar
        water_density: kg/m^3
    """
    return surface_pressure + depth * water_density * GRAVITY / 100000.0


def depth_at_pressure(pressure: float, surface_pressure: float, water_density: float) -> float:
    """Inverse of ambient_pressure; may be negative above the surface."""
    return (pressure - surface_pressure) * 100000.0 / (water_density * GRAVITY)


def alveolar_pressure(p_ambient: float, fraction: float) -> float:
    """Alveolar partial pressure of a gas fraction, water vapour removed."""
    return max(p_ambient - WATER_VAPOR_PRESSURE, 0.0) * fraction


def surface_n2_tension(surface_pressure: float) -> float:
    """N2 tension of a diver saturated on air at the surface."""
    return alveolar_pressure(surface_pressure, AIR_N2_FRACTION)


def haldane_vec(pt0: np.ndarray, palv: float, t: float, k: np.ndarray) -> np.ndarray:
    """Haldane equation for constant ambient pressure.

    P(t) = Palv + (P0 - Palv) * exp(-k*t)

    Args:
        pt0: initial tissue tensions
        palv: inspired (alveolar) inert pressure
        t: exposure in minutes
        k: decay constants per minute
    """
    return palv + (pt0 - palv) * np.exp(-k * t)


def schreiner_vec(
    pt0: np.ndarray, palv0: float, rate: float, t: float, k: np.ndarray
) -> np.ndarray:
    """Schreiner equation for linearly changing inspired pressure.

    P(t) = Palv0 + R*(t - 1/k) - (Palv0 - P0 - R/k) * exp(-k*t)

    Args:
        pt0: initial tissue tensions
        palv0: inspired inert pressure at the start of the interval
        rate: change of inspired inert pressure, bar/min
        t: interval length in minutes
        k: decay constants per minute
    """
    return palv0 + rate * (t - 1.0 / k) - (palv0 - pt0 - rate / k) * np.exp(-k * t)


def combined_coefficients(
    n2_p: np.ndarray, he_p: np.ndarray
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Total inert tension and tension-weighted (a, b) per compartment."""
    p_inert = n2_p + he_p
    safe = np.where(p_inert > 0.0, p_inert, 1.0)
    a = np.where(p_inert > 0.0, (N2_A * n2_p + HE_A * he_p) / safe, N2_A)
    b = np.where(p_inert > 0.0, (N2_B * n2_p + HE_B * he_p) / safe, N2_B)
    return p_inert, a, b


def tolerated_pressures(n2_p: np.ndarray, he_p: np.ndarray, gf: float) -> np.ndarray:
    """GF-adjusted minimum tolerated ambient pressure per compartment.

    Solves P_tissue = P_amb + gf * (a + P_amb/b - P_amb) for P_amb:
        P_tol = (P_tissue - gf * a) / (gf / b + 1 - gf)
    """
    p_inert, a, b = combined_coefficients(n2_p, he_p)
    return (p_inert - gf * a) / (gf / b + 1.0 - gf)


def gradient_percent(n2_p: np.ndarray, he_p: np.ndarray, p_ambient: float) -> float:
    """Peak supersaturation as a percentage of the raw M-value gradient."""
    p_inert, a, b = combined_coefficients(n2_p, he_p)
    allowed = a + p_ambient / b - p_ambient
    return float(np.max((p_inert - p_ambient) / allowed)) * 100.0


def round_up(depth: float, increment: float) -> float:
    """Round a depth up to the next multiple of increment (no-op for increment <= 0)."""
    if increment <= 0.0:
        return depth
    return math.ceil(depth / increment - 1e-9) * increment
