"""
Bühlmann ZH-L16C decompression engine with gradient factors.

Modules:
    - buhlmann_constants: ZH-L16C tables, pressure conversions, Haldane/Schreiner math
    - gas: Gases, open/closed circuit breathing sources and the source registry
    - config: DiveConfig and config.yaml loading
    - tissue_model: 16-compartment N2/He tissue loading
    - ceiling: Gradient factor ceiling (Actual/Adaptive) and supersaturation
    - ndl: No-decompression limit by forward simulation
    - oxygen: OTU and CNS% oxygen toxicity tracking
    - deco_planner: Staged ascent plans with gas switches and TTS
    - session: DiveSession orchestrator
    - bridge: Handle-keyed session store and JSON snapshots
"""

from .buhlmann_constants import GradientFactors
from .config import CeilingType, DiveConfig, StopFormatting, load_config
from .gas import AIR, ClosedCircuit, Gas, GasSourceRegistry, OpenCircuit
from .tissue_model import TissueLoadingModel
from .ceiling import CeilingCalculator, Supersaturation
from .ndl import NDLCalculator
from .oxygen import OxygenToxicityTracker
from .deco_planner import DecoResult, DecoStage, DecoStagePlanner, DecoStageType, DecoTable
from .session import CompleteDiveState, DiveSession, SessionState
from .bridge import OwnedBuffer, SessionStore
from .exceptions import DecoEngineError

__all__ = [
    "GradientFactors",
    "CeilingType",
    "DiveConfig",
    "StopFormatting",
    "load_config",
    "AIR",
    "ClosedCircuit",
    "Gas",
    "GasSourceRegistry",
    "OpenCircuit",
    "TissueLoadingModel",
    "CeilingCalculator",
    "Supersaturation",
    "NDLCalculator",
    "OxygenToxicityTracker",
    "DecoResult",
    "DecoStage",
    "DecoStagePlanner",
    "DecoStageType",
    "DecoTable",
    "CompleteDiveState",
    "DiveSession",
    "SessionState",
    "OwnedBuffer",
    "SessionStore",
    "DecoEngineError",
]
