"""
Session bridge: handle-keyed sessions and JSON snapshots.

Lets an embedding host (another language runtime, a web worker) drive several
DiveSessions through integer handles and read results as JSON bytes.

Wire schema:
    depth           {"m": 12.0}
    duration        {"s": 60.0}
    gas             {"fraction_o2": .., "fraction_n2": .., "fraction_he": ..}
    breathing src   {"OpenCircuit": gas} | {"ClosedCircuit": {"setpoint": .., "diluent": gas}}
    config          field names of DiveConfig, "gf": [low, high], enums by name

Every export returns a fresh OwnedBuffer that the caller releases exactly once.
"""

import itertools
import json
import logging
import math
from typing import Any, Dict, Optional

from .ceiling import Supersaturation
from .config import DiveConfig
from .deco_planner import DecoResult, DecoStage
from .exceptions import BufferReleased, InvalidGas, InvalidHandle
from .gas import BreathingSource, ClosedCircuit, Gas, OpenCircuit
from .session import CompleteDiveState, DiveSession

logger = logging.getLogger(__name__)

FRACTION_SUM_TOLERANCE = 1e-9


def depth_to_wire(depth: Optional[float]) -> Optional[Dict[str, float]]:
    return None if depth is None else {"m": float(depth)}


def duration_to_wire(seconds: Optional[float]) -> Optional[Dict[str, float]]:
    return None if seconds is None else {"s": float(seconds)}


def gas_to_wire(gas: Gas) -> Dict[str, float]:
    return {
        "fraction_o2": gas.fraction_o2,
        "fraction_n2": gas.fraction_n2,
        "fraction_he": gas.fraction_he,
    }


def gas_from_wire(data: Dict[str, Any]) -> Gas:
    try:
        o2 = float(data["fraction_o2"])
        he = float(data.get("fraction_he", 0.0))
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidGas(f"Malformed gas: {data!r}") from e
    gas = Gas(o2, he)
    if "fraction_n2" in data and not math.isclose(
        float(data["fraction_n2"]), gas.fraction_n2, abs_tol=FRACTION_SUM_TOLERANCE
    ):
        raise InvalidGas(f"Gas fractions must sum to 1, got {data!r}")
    return gas


def source_to_wire(source: BreathingSource) -> Dict[str, Any]:
    if isinstance(source, OpenCircuit):
        return {"OpenCircuit": gas_to_wire(source.gas)}
    if isinstance(source, ClosedCircuit):
        return {"ClosedCircuit": {"setpoint": source.setpoint, "diluent": gas_to_wire(source.diluent)}}
    raise TypeError(f"Unknown breathing source: {source!r}")


def source_from_wire(data: Dict[str, Any]) -> BreathingSource:
    if not isinstance(data, dict) or len(data) != 1:
        raise InvalidGas(f"Malformed breathing source: {data!r}")
    if "OpenCircuit" in data:
        return OpenCircuit(gas_from_wire(data["OpenCircuit"]))
    if "ClosedCircuit" in data:
        body = data["ClosedCircuit"]
        try:
            return ClosedCircuit(float(body["setpoint"]), gas_from_wire(body["diluent"]))
        except (KeyError, TypeError) as e:
            raise InvalidGas(f"Malformed closed circuit source: {body!r}") from e
    raise InvalidGas(f"Unknown breathing source kind: {next(iter(data))}")


def config_to_wire(config: DiveConfig) -> Dict[str, Any]:
    return {
        "gf": [config.gf_low, config.gf_high],
        "surface_pressure": config.surface_pressure,
        "deco_ascent_rate": config.deco_ascent_rate,
        "ceiling_type": config.ceiling_type.name.capitalize(),
        "round_ceiling": config.round_ceiling,
        "recalc_all_tissues_m_values": config.recalc_all_tissues_m_values,
        "water_density": config.water_density,
        "stop_formatting": config.stop_formatting.name.capitalize(),
        "last_stop_depth": depth_to_wire(config.last_stop_depth),
        "min_pp_o2": config.min_pp_o2,
        "deco_max_pp_o2": config.deco_max_pp_o2,
        "pp_o2_hard_limit": config.pp_o2_hard_limit,
    }


def stage_to_wire(stage: DecoStage) -> Dict[str, Any]:
    return {
        "stage_type": stage.stage_type.value,
        "start_depth": depth_to_wire(stage.start_depth),
        "end_depth": depth_to_wire(stage.end_depth),
        "duration": duration_to_wire(stage.duration),
        "gas": source_to_wire(stage.gas),
    }


def deco_result_to_wire(result: DecoResult) -> Dict[str, Any]:
    decotable = None
    if result.decotable is not None:
        table = result.decotable
        decotable = {
            "deco_stages": [stage_to_wire(stage) for stage in table.deco_stages],
            "tts": duration_to_wire(table.tts),
            "tts_at_5": duration_to_wire(table.tts_at_5),
            "tts_delta_at_5": duration_to_wire(table.tts_delta_at_5),
        }
    return {"success": result.success, "error": result.error, "decotable": decotable}


def supersaturation_to_wire(supersaturation: Optional[Supersaturation]) -> Optional[Dict[str, float]]:
    if supersaturation is None:
        return None
    return {"gf_99": supersaturation.gf_99, "gf_surf": supersaturation.gf_surf}


def complete_state_to_wire(state: CompleteDiveState) -> Dict[str, Any]:
    return {
        "cns": state.cns,
        "otu": state.otu,
        "supersaturation": supersaturation_to_wire(state.supersaturation),
        "current_ceiling": depth_to_wire(state.current_ceiling),
        "current_ndl": duration_to_wire(state.current_ndl),
        "deco_result": None if state.deco_result is None else deco_result_to_wire(state.deco_result),
    }


class OwnedBuffer:
    """Serialized snapshot handed to a caller, released exactly once.

    Usable as a context manager; leaving the block releases it.
    """

    def __init__(self, data: bytes):
        self._data: Optional[bytes] = data

    @classmethod
    def from_json(cls, value: Any) -> "OwnedBuffer":
        return cls(json.dumps(value).encode("utf-8"))

    @property
    def released(self) -> bool:
        return self._data is None

    def read(self) -> bytes:
        if self._data is None:
            raise BufferReleased("Buffer read after release")
        return self._data

    def json(self) -> Any:
        return json.loads(self.read().decode("utf-8"))

    def release(self) -> None:
        if self._data is None:
            raise BufferReleased("Buffer released twice")
        self._data = None

    def __enter__(self) -> "OwnedBuffer":
        return self

    def __exit__(self, exc_type, exc, tb):
        if not self.released:
            self.release()
        return False


class SessionStore:
    """Independent DiveSessions addressed by integer handles.

    Not thread-safe; callers serialise access per store.
    """

    def __init__(self):
        self._sessions: Dict[int, DiveSession] = {}
        self._handles = itertools.count(1)

    def create(self, config: Optional[DiveConfig] = None) -> int:
        handle = next(self._handles)
        self._sessions[handle] = DiveSession(config)
        logger.debug(f"Opened session {handle}")
        return handle

    def get(self, handle: int) -> DiveSession:
        try:
            return self._sessions[handle]
        except KeyError:
            raise InvalidHandle(f"Unknown session handle {handle}") from None

    def close(self, handle: int) -> None:
        self.get(handle)
        del self._sessions[handle]
        logger.debug(f"Closed session {handle}")

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, handle: int) -> bool:
        return handle in self._sessions

    # -- ingest --

    def add_breathing_source(self, handle: int, data: Dict[str, Any]) -> int:
        """Register a wire-encoded breathing source with a session; returns its index."""
        return self.get(handle).add_breathing_source(source_from_wire(data))

    # -- snapshots --

    def export_config(self, handle: int) -> OwnedBuffer:
        return OwnedBuffer.from_json(config_to_wire(self.get(handle).config))

    def export_breathing_source(self, handle: int, index: int) -> OwnedBuffer:
        return OwnedBuffer.from_json(source_to_wire(self.get(handle).breathing_source(index)))

    def export_deco(self, handle: int) -> OwnedBuffer:
        return OwnedBuffer.from_json(deco_result_to_wire(self.get(handle).calculate_deco()))

    def export_ndl(self, handle: int) -> OwnedBuffer:
        return OwnedBuffer.from_json(duration_to_wire(self.get(handle).current_ndl()))

    def export_ceiling(self, handle: int) -> OwnedBuffer:
        return OwnedBuffer.from_json(depth_to_wire(self.get(handle).current_ceiling()))

    def export_supersaturation(self, handle: int) -> OwnedBuffer:
        return OwnedBuffer.from_json(supersaturation_to_wire(self.get(handle).supersaturation()))

    def export_otu(self, handle: int) -> OwnedBuffer:
        return OwnedBuffer.from_json(self.get(handle).otu())

    def export_cns(self, handle: int) -> OwnedBuffer:
        return OwnedBuffer.from_json(self.get(handle).cns())

    def export_complete_state(self, handle: int) -> OwnedBuffer:
        return OwnedBuffer.from_json(complete_state_to_wire(self.get(handle).complete_state()))
