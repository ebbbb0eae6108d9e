"""No-decompression limit by forward simulation at the current depth and gas."""

from typing import Optional

from .ceiling import CeilingCalculator
from .gas import BreathingSource
from .tissue_model import TissueLoadingModel

NDL_CUT_OFF_MINUTES = 99
NDL_STEP_SECONDS = 60.0


class NDLCalculator:
    """Time (s) left at the present depth before a ceiling forms.

    Whole minutes, capped at NDL_CUT_OFF_MINUTES. The model passed in is never
    mutated; the simulation runs on a copy.
    """

    def __init__(self, ceiling_calculator: CeilingCalculator):
        self.ceiling_calculator = ceiling_calculator

    def ndl(
        self,
        model: TissueLoadingModel,
        source: BreathingSource,
        anchor: Optional[float] = None,
    ) -> float:
        if self.ceiling_calculator.ceiling(model, source, anchor) > 0.0:
            return 0.0

        sim = model.copy()
        for minute in range(1, NDL_CUT_OFF_MINUTES + 1):
            sim.apply_constant_segment(sim.depth, NDL_STEP_SECONDS, source)
            if self.ceiling_calculator.ceiling(sim, source, anchor) > 0.0:
                return (minute - 1) * NDL_STEP_SECONDS

        return NDL_CUT_OFF_MINUTES * NDL_STEP_SECONDS
