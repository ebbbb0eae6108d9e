#!/usr/bin/env python3
"""
Replay a dive profile through the decompression engine.

Reads settings and the profile from config.yaml and prints ceiling, NDL,
supersaturation, oxygen exposure and the deco plan after every segment.

Usage:
    python run_dive.py                         # config.yaml next to this script
    python run_dive.py --config my_dive.yaml   # another config file
    python run_dive.py --gf 30 70              # override gradient factors
    python run_dive.py --json                  # complete state as JSON lines
"""

import argparse
import json
import logging
import sys
from typing import Dict, List

from decoengine import DiveConfig, DiveSession
from decoengine.bridge import complete_state_to_wire
from decoengine.config import config_from_dict, read_config_file, with_gf_override
from decoengine.exceptions import DecoEngineError, InvalidSegment

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Set up logging configuration."""
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=log_format,
        handlers=[logging.StreamHandler()],
    )


def build_session(config: DiveConfig, gases: List[Dict]) -> DiveSession:
    """Create a session with the profile's breathing sources registered in order."""
    session = DiveSession(config)
    for gas in gases:
        if "setpoint" in gas:
            session.add_closed_circuit(gas["setpoint"], gas["o2"], gas.get("he", 0.0))
        else:
            session.add_open_circuit(gas["o2"], gas.get("he", 0.0))
    return session


def apply_segment(session: DiveSession, segment: Dict) -> None:
    kind = segment.get("type")
    gas = segment.get("gas", 0)
    if kind == "segment":
        session.record_segment(segment["depth"], segment["seconds"], gas)
    elif kind == "travel":
        session.record_travel(segment["depth"], segment["minutes"], gas)
    elif kind == "travel_rate":
        session.record_travel_with_rate(segment["depth"], segment["rate"], gas)
    else:
        raise InvalidSegment(f"Unknown segment type: {kind}")


def format_state(session: DiveSession) -> str:
    ceiling = session.current_ceiling()
    ndl = session.current_ndl()
    sat = session.supersaturation()
    lines = [
        f"t={session.elapsed / 60:.1f} min  depth={session.depth:.1f}m",
        f"  Ceiling: {ceiling:.2f}m  NDL: {ndl / 60:.0f} min",
        f"  GF99: {sat.gf_99:.1f}%  SurfGF: {sat.gf_surf:.1f}%",
        f"  OTU: {session.otu():.1f}  CNS: {session.cns():.1f}%",
    ]

    result = session.calculate_deco()
    if not result.success:
        lines.append(f"  Deco: FAILED ({result.error})")
        return "\n".join(lines)

    table = result.decotable
    lines.append(f"  TTS: {table.tts / 60:.1f} min")
    if table.tts_at_5 is not None:
        lines.append(f"  TTS @5m: {table.tts_at_5 / 60:.1f} min (delta {table.tts_delta_at_5 / 60:+.1f})")
    for stage in table.deco_stages:
        lines.append(
            f"    {stage.stage_type.value:<9} {stage.start_depth:5.1f}m -> {stage.end_depth:5.1f}m"
            f"  {stage.duration / 60:5.1f} min"
        )
    return "\n".join(lines)


def run_profile(config: DiveConfig, profile: Dict, as_json: bool = False) -> DiveSession:
    session = build_session(config, profile.get("gases", []))
    segments = profile.get("segments", [])
    if not segments:
        logger.warning("Profile has no segments")

    for segment in segments:
        apply_segment(session, segment)
        if as_json:
            print(json.dumps(complete_state_to_wire(session.complete_state())))
        else:
            print(format_state(session))
    return session


def main():
    parser = argparse.ArgumentParser(
        description="Replay a dive profile and print decompression state"
    )
    parser.add_argument("--config", type=str, default=None, help="Path to config.yaml")
    parser.add_argument(
        "--gf", type=int, nargs=2, metavar=("LOW", "HIGH"),
        help="Gradient factors in percent, e.g. --gf 30 70"
    )
    parser.add_argument("--json", action="store_true", help="Print complete state as JSON lines")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")

    args = parser.parse_args()
    setup_logging(args.verbose)

    try:
        raw = with_gf_override(read_config_file(args.config), args.gf)
        config = config_from_dict(raw)
        run_profile(config, raw.get("profile", {}) or {}, as_json=args.json)
    except DecoEngineError as e:
        print(f"ERROR: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
