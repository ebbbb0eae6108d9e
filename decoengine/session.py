"""
Dive session: the orchestrator callers drive segment by segment.

A session owns one tissue model, one oxygen tracker and one gas registry. Every
recording call validates fully before touching any state, so a rejected
segment leaves the session exactly as it was.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from .ceiling import CeilingCalculator, Supersaturation
from .config import DiveConfig
from .deco_planner import DecoResult, DecoStagePlanner, surfaced
from .exceptions import InvalidSegment, ToxicityExceeded
from .gas import BreathingSource, ClosedCircuit, Gas, GasSourceRegistry, OpenCircuit, pp_o2
from .ndl import NDLCalculator
from .oxygen import OxygenToxicityTracker
from .tissue_model import TissueLoadingModel, travel_duration

logger = logging.getLogger(__name__)


class SessionState(Enum):
    CREATED = "Created"
    RECORDING = "Recording"


@dataclass(frozen=True)
class SegmentRecord:
    """One recorded segment; duration in seconds."""
    start_depth: float
    end_depth: float
    duration: float
    gas_index: int


@dataclass(frozen=True)
class CompleteDiveState:
    cns: Optional[float] = None
    otu: Optional[float] = None
    supersaturation: Optional[Supersaturation] = None
    current_ceiling: Optional[float] = None
    current_ndl: Optional[float] = None
    deco_result: Optional[DecoResult] = None


class DiveSession:
    """Stateful dive computation for one diver.

    Not thread-safe; callers serialise access.
    """

    def __init__(self, config: Optional[DiveConfig] = None):
        self.config = config or DiveConfig()
        self.registry = GasSourceRegistry()
        self.model = TissueLoadingModel(self.config.surface_pressure_bar, self.config.water_density)
        self.oxygen = OxygenToxicityTracker()
        self.ceiling_calculator = CeilingCalculator(self.config)
        self.ndl_calculator = NDLCalculator(self.ceiling_calculator)
        self.planner = DecoStagePlanner(self.config, self.registry, self.ceiling_calculator)

        self.state = SessionState.CREATED
        self.history: List[SegmentRecord] = []
        self.warnings: List[str] = []
        self.elapsed = 0.0
        self.gas_index: Optional[int] = None
        self.deepest_gf_low_ceiling = 0.0

    @property
    def depth(self) -> float:
        return self.model.depth

    @property
    def anchor(self) -> Optional[float]:
        """GF-low anchor for ceiling queries; None recalculates from current tissues."""
        if self.config.recalc_all_tissues_m_values or self.deepest_gf_low_ceiling <= 0.0:
            return None
        return self.deepest_gf_low_ceiling

    # -- gas sources --

    def add_breathing_source(self, source: BreathingSource) -> int:
        return self.registry.add(source)

    def add_open_circuit(self, o2: float, he: float = 0.0) -> int:
        return self.registry.add(OpenCircuit(Gas(o2, he)))

    def add_closed_circuit(self, setpoint: float, diluent_o2: float, diluent_he: float = 0.0) -> int:
        return self.registry.add(ClosedCircuit(setpoint, Gas(diluent_o2, diluent_he)))

    def breathing_source(self, index: int) -> BreathingSource:
        return self.registry.get(index)

    # -- recording --

    def record_segment(self, depth: float, duration: float, gas_index: int) -> None:
        """Stay at ``depth`` for ``duration`` seconds on source ``gas_index``."""
        if depth < 0:
            raise InvalidSegment(f"Depth must be >= 0, got {depth}")
        if not duration > 0:
            raise InvalidSegment(f"Duration must be > 0, got {duration}")
        source = self.registry.get(gas_index)
        ppo2 = pp_o2(source, self.model.ambient_pressure(depth))
        warnings = self._check_pp_o2(ppo2, ppo2, depth)

        start_depth = self.depth
        self.model.apply_constant_segment(depth, duration, source)
        self.oxygen.record(ppo2, ppo2, duration)
        self._recorded(SegmentRecord(start_depth, depth, duration, gas_index), warnings)

    def record_travel(self, target_depth: float, duration: float, gas_index: int) -> None:
        """Travel linearly to ``target_depth`` over ``duration`` minutes."""
        seconds = travel_duration(self.depth, target_depth, duration=duration * 60.0)
        self._travel(target_depth, seconds, gas_index)

    def record_travel_with_rate(self, target_depth: float, rate: float, gas_index: int) -> None:
        """Travel to ``target_depth`` at ``rate`` m/min; zero distance is a no-op."""
        seconds = travel_duration(self.depth, target_depth, rate=rate)
        if seconds == 0.0:
            self.registry.get(gas_index)
            return
        self._travel(target_depth, seconds, gas_index)

    def _travel(self, target_depth: float, seconds: float, gas_index: int) -> None:
        source = self.registry.get(gas_index)
        start_depth = self.depth
        ppo2_start = pp_o2(source, self.model.ambient_pressure(start_depth))
        ppo2_end = pp_o2(source, self.model.ambient_pressure(target_depth))
        warnings = self._check_pp_o2(ppo2_start, ppo2_end, max(start_depth, target_depth))

        self.model.apply_ramp_segment(target_depth, source, duration=seconds)
        self.oxygen.record(ppo2_start, ppo2_end, seconds)
        self._recorded(SegmentRecord(start_depth, target_depth, seconds, gas_index), warnings)

    def _check_pp_o2(self, ppo2_start: float, ppo2_end: float, depth: float) -> List[str]:
        """Reject a segment over the hard limit; return warnings for soft breaches."""
        peak = max(ppo2_start, ppo2_end)
        low = min(ppo2_start, ppo2_end)
        hard_limit = self.config.pp_o2_hard_limit
        if hard_limit is not None and peak > hard_limit:
            raise ToxicityExceeded(
                f"ppO2 {peak:.2f} bar at {depth:.1f}m exceeds hard limit {hard_limit:.2f} bar"
            )

        warnings = []
        if peak > self.config.deco_max_pp_o2:
            warnings.append(
                f"ppO2 {peak:.2f} bar above {self.config.deco_max_pp_o2:.2f} bar at {depth:.1f}m"
            )
        if low < self.config.min_pp_o2:
            warnings.append(f"ppO2 {low:.2f} bar below {self.config.min_pp_o2:.2f} bar")
        return warnings

    def _recorded(self, record: SegmentRecord, warnings: List[str]) -> None:
        for warning in warnings:
            logger.warning(f"t={self.elapsed + record.duration:.0f}s: {warning}")
        self.warnings.extend(warnings)
        self.history.append(record)
        self.elapsed += record.duration
        self.gas_index = record.gas_index
        self.state = SessionState.RECORDING
        self.deepest_gf_low_ceiling = max(
            self.deepest_gf_low_ceiling, self.ceiling_calculator.gf_low_ceiling(self.model)
        )
        logger.debug(
            f"Segment {record.start_depth:.1f}->{record.end_depth:.1f}m "
            f"{record.duration:.0f}s on source {record.gas_index}, elapsed {self.elapsed:.0f}s"
        )

    # -- queries --

    def current_ceiling(self) -> Optional[float]:
        if self.state is SessionState.CREATED:
            return None
        source = self.registry.get(self.gas_index)
        return self.ceiling_calculator.ceiling(self.model, source, self.anchor)

    def current_ndl(self) -> Optional[float]:
        """Seconds, whole minutes, capped at 99 min."""
        if self.state is SessionState.CREATED:
            return None
        source = self.registry.get(self.gas_index)
        return self.ndl_calculator.ndl(self.model, source, self.anchor)

    def supersaturation(self) -> Optional[Supersaturation]:
        if self.state is SessionState.CREATED:
            return None
        return self.ceiling_calculator.supersaturation(self.model)

    def otu(self) -> float:
        return self.oxygen.otu

    def cns(self) -> float:
        return self.oxygen.cns

    def calculate_deco(self) -> DecoResult:
        if self.state is SessionState.CREATED:
            return surfaced()
        return self.planner.plan(self.model, self.gas_index, self.anchor)

    def complete_state(self) -> CompleteDiveState:
        return CompleteDiveState(
            cns=self.cns(),
            otu=self.otu(),
            supersaturation=self.supersaturation(),
            current_ceiling=self.current_ceiling(),
            current_ndl=self.current_ndl(),
            deco_result=self.calculate_deco(),
        )
