"""
Staged ascent planning from the current tissue state.

Starting from the present depth and tensions the planner repeatedly:
1. Computes the ceiling and the stop it rounds to
2. Ascends to that stop, switching to better gases at grid depths on the way
3. Holds at the stop until the ceiling clears to the next shallower stop
4. Moves on to the shallower of that next stop and the rounded ceiling, so
   stops are never revisited
5. Repeats until the ceiling is 0, then ascends to the surface
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .buhlmann_constants import round_up
from .ceiling import CeilingCalculator
from .config import DiveConfig, StopFormatting
from .exceptions import UnreachablePlan
from .gas import BreathingSource, GasSourceRegistry, describe, inspired_inert, pp_o2
from .tissue_model import TissueLoadingModel

logger = logging.getLogger(__name__)

STOP_HOLD_SECONDS = 60.0
CONTINUOUS_HOLD_SECONDS = 10.0
MAX_STOP_SECONDS = 12 * 60 * 60.0
ALTERNATE_LAST_STOP_DEPTH = 5.0


class DecoStageType(Enum):
    ASCENT = "Ascent"
    DECO_STOP = "DecoStop"
    GAS_SWITCH = "GasSwitch"


@dataclass(frozen=True)
class DecoStage:
    """One leg of the ascent. duration is in seconds; gas switches take none."""
    start_depth: float
    end_depth: float
    duration: float
    gas: BreathingSource
    stage_type: DecoStageType


@dataclass(frozen=True)
class DecoTable:
    deco_stages: List[DecoStage] = field(default_factory=list)
    tts: float = 0.0
    tts_at_5: Optional[float] = None
    tts_delta_at_5: Optional[float] = None


@dataclass(frozen=True)
class DecoResult:
    success: bool
    error: Optional[str] = None
    decotable: Optional[DecoTable] = None


def surfaced() -> DecoResult:
    """Plan for a diver already at the surface."""
    return DecoResult(success=True, decotable=DecoTable(tts=0.0, tts_at_5=0.0, tts_delta_at_5=0.0))


class DecoStagePlanner:
    """Plans the ascent for one session's config and registered gases."""

    def __init__(
        self,
        config: DiveConfig,
        registry: GasSourceRegistry,
        ceiling_calculator: Optional[CeilingCalculator] = None,
    ):
        self.config = config
        self.registry = registry
        self.ceiling_calculator = ceiling_calculator or CeilingCalculator(config)
        self.stop_increment = config.stop_formatting.stop_increment
        if config.stop_formatting is StopFormatting.CONTINUOUS:
            self.hold_step = CONTINUOUS_HOLD_SECONDS
        else:
            self.hold_step = STOP_HOLD_SECONDS

    def best_gas(self, current_index: int, p_ambient: float) -> Optional[int]:
        """Registered source to breathe at ``p_ambient``, or None if none qualifies.

        Only sources of the same circuit type as the current one are eligible.
        Among those with ppO2 inside [min_pp_o2, deco_max_pp_o2] the one with the
        least inspired inert pressure wins; ties keep the current source.
        """
        current = self.registry.get(current_index)
        candidates = []
        for index, source in enumerate(self.registry):
            if type(source) is not type(current):
                continue
            ppo2 = pp_o2(source, p_ambient)
            if not (self.config.min_pp_o2 <= ppo2 <= self.config.deco_max_pp_o2):
                continue
            inert = round(sum(inspired_inert(source, p_ambient)), 9)
            candidates.append((inert, index != current_index, index))
        if not candidates:
            return None
        return min(candidates)[2]

    def plan(
        self,
        model: TissueLoadingModel,
        gas_index: int,
        anchor: Optional[float] = None,
        last_stop_depth: Optional[float] = None,
    ) -> DecoResult:
        """Plan the ascent from ``model``'s depth breathing source ``gas_index``.

        Args:
            model: current tissue state (not mutated)
            gas_index: registered source in use at the start of the ascent
            anchor: GF-low anchor until the first stop pins it (None: recalculated)
            last_stop_depth: shallowest stop (default from config)

        Returns:
            DecoResult; planning failures are reported with success=False.
        """
        if last_stop_depth is None:
            last_stop_depth = self.config.last_stop_depth

        if model.depth <= 0.0:
            return surfaced()

        try:
            stages = self._schedule(model, gas_index, anchor, last_stop_depth)
        except UnreachablePlan as e:
            logger.warning(f"Deco plan from {model.depth:.1f}m failed: {e}")
            return DecoResult(success=False, error=str(e))

        tts = sum(stage.duration for stage in stages)
        tts_at_5 = None
        tts_delta_at_5 = None
        try:
            alternate = self._schedule(
                model, gas_index, anchor, max(last_stop_depth, ALTERNATE_LAST_STOP_DEPTH)
            )
            tts_at_5 = sum(stage.duration for stage in alternate)
            tts_delta_at_5 = tts_at_5 - tts
        except UnreachablePlan as e:
            logger.debug(f"No tts @ {ALTERNATE_LAST_STOP_DEPTH:.0f}m: {e}")

        logger.debug(f"Deco plan from {model.depth:.1f}m: {len(stages)} stages, tts {tts:.0f}s")
        return DecoResult(
            success=True,
            decotable=DecoTable(
                deco_stages=stages,
                tts=tts,
                tts_at_5=tts_at_5,
                tts_delta_at_5=tts_delta_at_5,
            ),
        )

    def _next_stop(self, stop: float, last_stop_depth: float) -> float:
        next_stop = stop - self.stop_increment
        if next_stop < last_stop_depth - 1e-9:
            return last_stop_depth if stop > last_stop_depth + 1e-9 else 0.0
        return max(next_stop, 0.0)

    def _schedule(
        self,
        model: TissueLoadingModel,
        gas_index: int,
        anchor: Optional[float],
        last_stop_depth: float,
    ) -> List[DecoStage]:
        """Stages of one ascent on a copy of ``model``.

        Stops only ever move shallower. The first stop is capped at the current
        depth, so a diver already above the ceiling holds where they are.
        """
        sim = model.copy()
        stages: List[DecoStage] = []

        ceiling = self.ceiling_calculator.raw_ceiling(sim, anchor)
        if ceiling > 0.0:
            stop = min(max(round_up(ceiling, self.stop_increment), last_stop_depth), sim.depth)
            # Anchor no shallower than the gf_low ceiling
            anchor = max(stop, self.ceiling_calculator.gf_low_ceiling(sim))
            logger.debug(f"First stop {stop:.1f}m (ceiling {ceiling:.2f}m)")

        while ceiling > 0.0:
            gas_index = self._ascend(sim, stop, gas_index, stages)

            best = self.best_gas(gas_index, sim.ambient_pressure())
            if best is None:
                raise UnreachablePlan(f"No breathing source within ppO2 limits at {stop:.1f}m")
            if best != gas_index:
                gas_index = self._switch(sim, best, stages)

            next_stop = self._next_stop(stop, last_stop_depth)
            source = self.registry.get(gas_index)
            ceiling = self.ceiling_calculator.raw_ceiling(sim, anchor)
            held = 0.0
            while ceiling > next_stop:
                if held >= MAX_STOP_SECONDS:
                    raise UnreachablePlan(f"Stop at {stop:.1f}m does not clear within 12 hours")
                sim.apply_constant_segment(stop, self.hold_step, source)
                held += self.hold_step
                ceiling = self.ceiling_calculator.raw_ceiling(sim, anchor)

            if held > 0.0:
                stages.append(DecoStage(stop, stop, held, source, DecoStageType.DECO_STOP))
                logger.debug(f"Stop {stop:.1f}m for {held:.0f}s on {describe(source)}")

            # Skip stops the ceiling has already cleared, never revisiting this one
            stop = min(next_stop, max(round_up(ceiling, self.stop_increment), last_stop_depth))

        self._ascend(sim, 0.0, gas_index, stages)
        return stages

    def _ascend(
        self,
        sim: TissueLoadingModel,
        target: float,
        gas_index: int,
        stages: List[DecoStage],
    ) -> int:
        """Ascend ``sim`` to ``target``, switching gas at grid depths on the way.

        Returns the gas index in use on arrival.
        """
        for depth in self._switch_depths(sim.depth, target):
            best = self.best_gas(gas_index, sim.ambient_pressure(depth))
            if best is None or best == gas_index:
                continue
            self._travel(sim, depth, gas_index, stages)
            gas_index = self._switch(sim, best, stages)
        self._travel(sim, target, gas_index, stages)
        return gas_index

    def _switch_depths(self, start: float, target: float) -> List[float]:
        """Grid depths strictly between ``start`` and ``target``, deepest first."""
        depths = []
        depth = round_up(target, self.stop_increment)
        if depth <= target + 1e-9:
            depth += self.stop_increment
        while depth < start - 1e-9:
            depths.append(depth)
            depth += self.stop_increment
        return depths[::-1]

    def _travel(self, sim: TissueLoadingModel, target: float, gas_index: int, stages: List[DecoStage]):
        start = sim.depth
        if start - target <= 1e-9:
            return
        source = self.registry.get(gas_index)
        duration = sim.apply_ramp_segment(target, source, rate=self.config.deco_ascent_rate)
        stages.append(DecoStage(start, target, duration, source, DecoStageType.ASCENT))

    def _switch(self, sim: TissueLoadingModel, gas_index: int, stages: List[DecoStage]) -> int:
        source = self.registry.get(gas_index)
        stages.append(DecoStage(sim.depth, sim.depth, 0.0, source, DecoStageType.GAS_SWITCH))
        logger.debug(f"Gas switch at {sim.depth:.1f}m to {describe(source)}")
        return gas_index
