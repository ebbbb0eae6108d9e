"""Shared fixtures for decoengine tests."""

import pytest

from decoengine.config import CeilingType, DiveConfig
from decoengine.gas import AIR, OpenCircuit
from decoengine.session import DiveSession
from decoengine.tissue_model import TissueLoadingModel


@pytest.fixture
def air():
    return OpenCircuit(AIR)


@pytest.fixture
def model():
    """Fresh tissues at surface equilibrium, 1013 mbar, salt water."""
    return TissueLoadingModel(1.013, 1030.0)


@pytest.fixture
def canonical_config():
    """GF 50/85 adaptive ceiling, unrounded, 1020 kg/m^3."""
    return DiveConfig(
        gf_low=50,
        gf_high=85,
        surface_pressure=1013,
        deco_ascent_rate=10.0,
        ceiling_type=CeilingType.ADAPTIVE,
        round_ceiling=False,
        recalc_all_tissues_m_values=True,
        water_density=1020.0,
    )


@pytest.fixture
def air_session(canonical_config):
    session = DiveSession(canonical_config)
    session.add_open_circuit(0.21, 0.0)
    return session


@pytest.fixture
def deco_model(model, air):
    """40m for 30 min on air: a dive that needs stops."""
    model.apply_ramp_segment(40.0, air, rate=20.0)
    model.apply_constant_segment(40.0, 30 * 60.0, air)
    return model
