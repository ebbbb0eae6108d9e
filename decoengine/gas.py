"""
Breathing gases, breathing sources and the gas source registry.

A breathing source is either an open-circuit gas or a closed-circuit rebreather
(setpoint plus diluent). Sources are registered once and referenced by their
integer index afterwards.
"""

import logging
import operator
from dataclasses import dataclass, field
from typing import Iterator, List, Tuple, Union

from .buhlmann_constants import WATER_VAPOR_PRESSURE
from .exceptions import InvalidGas, InvalidIndex

logger = logging.getLogger(__name__)

FRACTION_TOLERANCE = 1e-9


@dataclass(frozen=True)
class Gas:
    """Gas mix given by O2 and He fractions; N2 makes up the rest."""
    fraction_o2: float
    fraction_he: float = 0.0
    fraction_n2: float = field(init=False)

    def __post_init__(self):
        for name, value in (("fraction_o2", self.fraction_o2), ("fraction_he", self.fraction_he)):
            if not (-FRACTION_TOLERANCE <= value <= 1.0 + FRACTION_TOLERANCE):
                raise InvalidGas(f"{name} must be in [0, 1], got {value}")
        fraction_n2 = 1.0 - self.fraction_o2 - self.fraction_he
        if fraction_n2 < -FRACTION_TOLERANCE:
            raise InvalidGas(
                f"fraction_o2 + fraction_he must not exceed 1, "
                f"got {self.fraction_o2} + {self.fraction_he}"
            )
        object.__setattr__(self, "fraction_n2", max(fraction_n2, 0.0))

    @property
    def name(self) -> str:
        o2 = round(self.fraction_o2 * 100)
        he = round(self.fraction_he * 100)
        if he:
            return f"Tx{o2}/{he}"
        if o2 == 21:
            return "Air"
        if o2 == 100:
            return "O2"
        return f"EAN{o2}"


AIR = Gas(0.21, 0.0)


@dataclass(frozen=True)
class OpenCircuit:
    gas: Gas


@dataclass(frozen=True)
class ClosedCircuit:
    """Rebreather holding ``setpoint`` bar of O2 over ``diluent``."""
    setpoint: float
    diluent: Gas

    def __post_init__(self):
        if not self.setpoint > 0.0:
            raise InvalidGas(f"setpoint must be > 0, got {self.setpoint}")


BreathingSource = Union[OpenCircuit, ClosedCircuit]


def pp_o2(source: BreathingSource, p_ambient: float) -> float:
    """Inspired O2 partial pressure (bar) at an ambient pressure."""
    if isinstance(source, OpenCircuit):
        return source.gas.fraction_o2 * p_ambient
    if isinstance(source, ClosedCircuit):
        # The loop can't hold less O2 than the diluent brings, nor more than ambient
        diluent_pp_o2 = source.diluent.fraction_o2 * p_ambient
        return min(max(source.setpoint, diluent_pp_o2), p_ambient)
    raise TypeError(f"Unknown breathing source: {source!r}")


def inspired_inert(source: BreathingSource, p_ambient: float) -> Tuple[float, float]:
    """Alveolar (N2, He) partial pressures for a source at an ambient pressure."""
    p_dry = max(p_ambient - WATER_VAPOR_PRESSURE, 0.0)
    if isinstance(source, OpenCircuit):
        return p_dry * source.gas.fraction_n2, p_dry * source.gas.fraction_he
    if isinstance(source, ClosedCircuit):
        diluent = source.diluent
        inert_fraction = diluent.fraction_n2 + diluent.fraction_he
        if inert_fraction <= 0.0:
            return 0.0, 0.0
        p_inert = max(p_dry - pp_o2(source, p_ambient), 0.0)
        return (
            p_inert * diluent.fraction_n2 / inert_fraction,
            p_inert * diluent.fraction_he / inert_fraction,
        )
    raise TypeError(f"Unknown breathing source: {source!r}")


def describe(source: BreathingSource) -> str:
    if isinstance(source, OpenCircuit):
        return f"OC {source.gas.name}"
    if isinstance(source, ClosedCircuit):
        return f"CC {source.setpoint:.2f} bar / {source.diluent.name}"
    raise TypeError(f"Unknown breathing source: {source!r}")


class GasSourceRegistry:
    """Append-only list of breathing sources addressed by insertion index."""

    def __init__(self):
        self._sources: List[BreathingSource] = []

    def add(self, source: BreathingSource) -> int:
        if not isinstance(source, (OpenCircuit, ClosedCircuit)):
            raise TypeError(f"Unknown breathing source: {source!r}")
        self._sources.append(source)
        index = len(self._sources) - 1
        logger.debug(f"Registered breathing source {index}: {describe(source)}")
        return index

    def add_open_circuit(self, o2: float, he: float = 0.0) -> int:
        return self.add(OpenCircuit(Gas(o2, he)))

    def add_closed_circuit(self, setpoint: float, diluent_o2: float, diluent_he: float = 0.0) -> int:
        return self.add(ClosedCircuit(setpoint, Gas(diluent_o2, diluent_he)))

    def get(self, index: int) -> BreathingSource:
        if isinstance(index, bool):
            raise InvalidIndex(f"Breathing source index must be an integer, got {index!r}")
        try:
            position = operator.index(index)
        except TypeError:
            raise InvalidIndex(f"Breathing source index must be an integer, got {index!r}") from None
        if not (0 <= position < len(self._sources)):
            raise InvalidIndex(
                f"Breathing source index {index} out of range "
                f"({len(self._sources)} registered)"
            )
        return self._sources[position]

    def __len__(self) -> int:
        return len(self._sources)

    def __iter__(self) -> Iterator[BreathingSource]:
        return iter(self._sources)
