"""Tests for the staged ascent planner."""

import math

import numpy as np
import pytest

from decoengine.ceiling import CeilingCalculator
from decoengine.config import DiveConfig, StopFormatting
from decoengine.deco_planner import DecoStagePlanner, DecoStageType
from decoengine.gas import ClosedCircuit, GasSourceRegistry, pp_o2
from decoengine.tissue_model import TissueLoadingModel


def make_planner(*gases, **config_kwargs):
    """Planner over a registry holding the given (o2, he) open circuit gases."""
    config = DiveConfig(**config_kwargs)
    registry = GasSourceRegistry()
    for o2, he in gases:
        registry.add_open_circuit(o2, he)
    return DecoStagePlanner(config, registry)


def stages_of(result, stage_type):
    return [s for s in result.decotable.deco_stages if s.stage_type is stage_type]


class TestNoDeco:
    """Plans that need no stops."""

    def test_surface_is_empty_success(self, model):
        result = make_planner((0.21, 0.0)).plan(model, 0)
        assert result.success
        assert result.error is None
        assert result.decotable.deco_stages == []
        assert result.decotable.tts == 0.0

    def test_direct_ascent(self, model, air):
        model.apply_constant_segment(18.0, 20 * 60.0, air)
        result = make_planner((0.21, 0.0)).plan(model, 0)
        assert result.success
        [stage] = result.decotable.deco_stages
        assert stage.stage_type is DecoStageType.ASCENT
        assert (stage.start_depth, stage.end_depth) == (18.0, 0.0)
        assert stage.duration == pytest.approx(108.0)
        assert result.decotable.tts == pytest.approx(108.0)
        assert result.decotable.tts_delta_at_5 == pytest.approx(0.0)


class TestDecoPlan:
    """40m / 30 min on air."""

    @pytest.fixture
    def result(self, deco_model):
        return make_planner((0.21, 0.0), gf_low=30, gf_high=70).plan(deco_model, 0)

    def test_success(self, result):
        assert result.success
        assert stages_of(result, DecoStageType.DECO_STOP)

    def test_starts_at_depth_and_ends_at_surface(self, result):
        stages = result.decotable.deco_stages
        assert stages[0].stage_type is DecoStageType.ASCENT
        assert stages[0].start_depth == 40.0
        assert stages[-1].stage_type is DecoStageType.ASCENT
        assert stages[-1].end_depth == 0.0

    def test_stages_are_contiguous(self, result):
        stages = result.decotable.deco_stages
        for previous, current in zip(stages, stages[1:]):
            assert current.start_depth == pytest.approx(previous.end_depth)

    def test_stops_on_grid_and_ascending(self, result):
        depths = [s.start_depth for s in stages_of(result, DecoStageType.DECO_STOP)]
        assert depths == sorted(depths, reverse=True)
        assert len(set(depths)) == len(depths)
        for depth in depths:
            assert math.isclose(depth % 3.0, 0.0, abs_tol=1e-9)
            assert depth >= 3.0

    def test_stop_durations_whole_minutes(self, result):
        for stop in stages_of(result, DecoStageType.DECO_STOP):
            assert stop.duration > 0.0
            assert stop.duration % 60.0 == 0.0

    def test_tts_is_sum_of_stages(self, result):
        table = result.decotable
        assert table.tts == pytest.approx(sum(s.duration for s in table.deco_stages))

    def test_tts_at_5(self, result):
        table = result.decotable
        assert table.tts_at_5 is not None
        assert table.tts_delta_at_5 == pytest.approx(table.tts_at_5 - table.tts)

    def test_more_conservative_gf_takes_longer(self, deco_model, result):
        relaxed = make_planner((0.21, 0.0), gf_low=70, gf_high=90).plan(deco_model, 0)
        assert result.decotable.tts > relaxed.decotable.tts

    def test_does_not_mutate_model(self, deco_model):
        before = deco_model.n2_p.copy()
        make_planner((0.21, 0.0)).plan(deco_model, 0)
        np.testing.assert_array_equal(deco_model.n2_p, before)
        assert deco_model.depth == 40.0

    def test_last_stop_depth(self, deco_model):
        result = make_planner((0.21, 0.0), gf_low=30, gf_high=70, last_stop_depth=6.0).plan(deco_model, 0)
        depths = [s.start_depth for s in stages_of(result, DecoStageType.DECO_STOP)]
        assert depths
        assert min(depths) >= 6.0


class TestStopFormatting:
    """Stop grid per formatting."""

    def test_continuous_uses_1m_grid_and_10s_steps(self, deco_model):
        result = make_planner(
            (0.21, 0.0), gf_low=30, gf_high=70, stop_formatting=StopFormatting.CONTINUOUS
        ).plan(deco_model, 0)
        assert result.success
        for stop in stages_of(result, DecoStageType.DECO_STOP):
            assert stop.start_depth == pytest.approx(round(stop.start_depth))
            assert stop.duration % 10.0 == pytest.approx(0.0)

    def test_imperial_uses_10ft_grid(self, deco_model):
        result = make_planner(
            (0.21, 0.0), gf_low=30, gf_high=70, stop_formatting=StopFormatting.IMPERIAL,
            last_stop_depth=3.048,
        ).plan(deco_model, 0)
        for stop in stages_of(result, DecoStageType.DECO_STOP):
            assert stop.start_depth / 3.048 == pytest.approx(round(stop.start_depth / 3.048))


class TestGasSwitching:
    """Best gas selection and switch stages."""

    def test_best_gas_prefers_least_inert(self):
        planner = make_planner((0.21, 0.0), (0.5, 0.0), (1.0, 0.0))
        assert planner.best_gas(0, 5.0) == 0
        assert planner.best_gas(0, 3.0) == 1
        assert planner.best_gas(0, 1.3) == 2

    def test_best_gas_tie_keeps_current(self):
        planner = make_planner((0.21, 0.0), (0.21, 0.0))
        assert planner.best_gas(1, 2.0) == 1
        assert planner.best_gas(0, 2.0) == 0

    def test_best_gas_none_when_hypoxic(self):
        planner = make_planner((0.10, 0.70))
        assert planner.best_gas(0, 1.013) is None

    def test_best_gas_keeps_circuit_type(self):
        registry = GasSourceRegistry()
        registry.add_closed_circuit(1.3, 0.21)
        registry.add_open_circuit(1.0)
        planner = DecoStagePlanner(DiveConfig(), registry)
        assert planner.best_gas(0, 1.3) == 0

    def test_switch_stages(self, deco_model):
        planner = make_planner((0.21, 0.0), (0.5, 0.0), (1.0, 0.0), gf_low=30, gf_high=70)
        result = planner.plan(deco_model, 0)
        assert result.success
        switches = stages_of(result, DecoStageType.GAS_SWITCH)
        assert [s.gas for s in switches] == [planner.registry.get(1), planner.registry.get(2)]
        ean50 = switches[0]
        assert ean50.start_depth == ean50.end_depth == 21.0
        assert ean50.duration == 0.0
        for switch in switches:
            p_amb = deco_model.ambient_pressure(switch.start_depth)
            assert pp_o2(switch.gas, p_amb) <= 1.6

    def test_deco_gases_shorten_tts(self, deco_model):
        air_only = make_planner((0.21, 0.0), gf_low=30, gf_high=70).plan(deco_model, 0)
        with_deco = make_planner((0.21, 0.0), (0.5, 0.0), (1.0, 0.0), gf_low=30, gf_high=70).plan(deco_model, 0)
        assert with_deco.decotable.tts < air_only.decotable.tts

    def test_stops_breathe_switched_gas(self, deco_model):
        planner = make_planner((0.21, 0.0), (0.5, 0.0), gf_low=30, gf_high=70)
        result = planner.plan(deco_model, 0)
        for stop in stages_of(result, DecoStageType.DECO_STOP):
            if stop.start_depth <= 21.0:
                assert stop.gas == planner.registry.get(1)

    def test_closed_circuit_plan(self):
        registry = GasSourceRegistry()
        registry.add_closed_circuit(1.3, 0.21)
        config = DiveConfig(gf_low=30, gf_high=70)
        model = TissueLoadingModel(config.surface_pressure_bar, config.water_density)
        model.apply_constant_segment(45.0, 40 * 60.0, registry.get(0))
        result = DecoStagePlanner(config, registry).plan(model, 0)
        assert result.success
        assert all(isinstance(s.gas, ClosedCircuit) for s in result.decotable.deco_stages)


class TestUnreachable:
    """Plans that cannot be completed within the ppO2 limits."""

    def test_hypoxic_gas_at_shallow_stop(self):
        planner = make_planner((0.10, 0.70), gf_low=30, gf_high=70)
        model = TissueLoadingModel(1.013, 1030.0)
        model.apply_constant_segment(60.0, 30 * 60.0, planner.registry.get(0))
        result = planner.plan(model, 0)
        assert not result.success
        assert "ppO2" in result.error
        assert result.decotable is None

    def test_ceiling_calculator_shared(self):
        config = DiveConfig()
        calc = CeilingCalculator(config)
        planner = DecoStagePlanner(config, GasSourceRegistry(), calc)
        assert planner.ceiling_calculator is calc


class TestStopProgression:
    """Stops walk shallower for every grid and last stop combination."""

    @pytest.mark.parametrize("config_kwargs", [
        {},
        {"gf_low": 30, "gf_high": 70},
        {"gf_low": 30, "gf_high": 70, "stop_formatting": StopFormatting.IMPERIAL, "last_stop_depth": 3.0},
        {"gf_low": 30, "gf_high": 70, "last_stop_depth": 4.0},
        {"gf_low": 30, "gf_high": 70, "last_stop_depth": 0.0},
    ])
    def test_stops_strictly_shallower(self, deco_model, config_kwargs):
        result = make_planner((0.21, 0.0), **config_kwargs).plan(deco_model, 0)
        assert result.success
        depths = [s.start_depth for s in stages_of(result, DecoStageType.DECO_STOP)]
        assert depths
        assert all(a > b for a, b in zip(depths, depths[1:]))
        assert result.decotable.deco_stages[-1].end_depth == 0.0

    def test_tts_at_5_with_default_metric(self, deco_model):
        result = make_planner((0.21, 0.0), gf_low=30, gf_high=70).plan(deco_model, 0)
        table = result.decotable
        assert table.tts_at_5 is not None
        assert table.tts_delta_at_5 == pytest.approx(table.tts_at_5 - table.tts)

    def test_alternate_plan_ends_at_5m(self, deco_model):
        planner = make_planner((0.21, 0.0), gf_low=30, gf_high=70)
        result = planner.plan(deco_model, 0, last_stop_depth=5.0)
        depths = [s.start_depth for s in stages_of(result, DecoStageType.DECO_STOP)]
        assert depths[-1] == pytest.approx(5.0)

    def test_off_grid_last_stop(self, deco_model):
        result = make_planner((0.21, 0.0), gf_low=30, gf_high=70, last_stop_depth=4.0).plan(deco_model, 0)
        depths = [s.start_depth for s in stages_of(result, DecoStageType.DECO_STOP)]
        assert depths[-1] == pytest.approx(4.0)
        assert min(depths) >= 4.0

    def test_imperial_last_stop_below_grid(self, deco_model):
        result = make_planner(
            (0.21, 0.0), gf_low=30, gf_high=70,
            stop_formatting=StopFormatting.IMPERIAL, last_stop_depth=3.0,
        ).plan(deco_model, 0)
        depths = [s.start_depth for s in stages_of(result, DecoStageType.DECO_STOP)]
        assert depths[-1] == pytest.approx(3.0)


class TestAboveCeiling:
    """A diver already shallower than the ceiling holds at the current depth."""

    def test_holds_at_current_depth(self, deco_model, air):
        deco_model.apply_ramp_segment(2.0, air, rate=10.0)
        planner = make_planner((0.21, 0.0), gf_low=30, gf_high=70)
        assert planner.ceiling_calculator.raw_ceiling(deco_model) > 2.0
        result = planner.plan(deco_model, 0)
        assert result.success
        first = result.decotable.deco_stages[0]
        assert first.stage_type is DecoStageType.DECO_STOP
        assert first.start_depth == 2.0
        assert [s.stage_type for s in result.decotable.deco_stages[1:]] == [DecoStageType.ASCENT]
