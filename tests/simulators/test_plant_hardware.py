"""Tests for the converter plants and the plant-backed hardware simulator."""

from __future__ import annotations

import math

import pytest

from simulators.hardware import SimulatedHardware
from simulators.plant import BoostPlant, VoltagePlant, make_plant
from simulators.pv import PVArray


@pytest.fixture(scope="module")
def array() -> PVArray:
    return PVArray(2)


def test_voltage_plant_tracks_reference(array):
    plant = VoltagePlant(array)

    plant.apply(50.0)
    v, i = plant.settle()

    assert v == pytest.approx(50.0)
    assert i == pytest.approx(array.i_at_v(50.0))
    assert plant.control_range() == pytest.approx((0.0, array.voc()))


def test_voltage_plant_lag_is_first_order(array):
    plant = VoltagePlant(array, lag=0.5, v0=0.0)
    plant.apply(40.0)

    assert plant.settle()[0] == pytest.approx(20.0)
    assert plant.settle()[0] == pytest.approx(30.0)


def test_boost_plant_duty_lowers_pv_voltage(array):
    """More duty, lower reflected resistance, lower PV voltage."""
    plant = BoostPlant(array, r_load=40.0)
    volts = []
    for d in (0.2, 0.4, 0.6, 0.8):
        plant.apply(d)
        v, i = plant.settle()
        volts.append(v)
        # operating point sits on the reflected load line
        assert v / i == pytest.approx(plant.input_resistance(), rel=1e-4)

    assert volts == sorted(volts, reverse=True)
    assert plant.polarity == -1


def test_boost_plant_in_the_dark_sits_at_origin():
    dark = PVArray(1)
    dark.set_conditions(0.0)
    plant = BoostPlant(dark)

    assert plant.settle() == (0.0, 0.0)


def test_make_plant_rejects_unknown(array):
    assert isinstance(make_plant("vref", array), VoltagePlant)
    assert isinstance(make_plant("duty", array), BoostPlant)
    with pytest.raises(ValueError):
        make_plant("buck", array)


def test_simulated_hardware_applies_environment_on_wait(array):
    arr = PVArray(2)
    env = lambda t: {"g": 1000.0 if t < 0.0025 else 400.0, "t_mod": 25.0}
    hw = SimulatedHardware(VoltagePlant(arr), env=env)

    hw.apply_control(50.0)
    hw.wait(1e-3)
    i_full = hw.measure_current()
    hw.wait(1e-3)
    hw.wait(1e-3)

    assert hw.t == pytest.approx(3e-3)
    assert arr.irradiances() == [400.0, 400.0]
    assert hw.measure_current() == pytest.approx(0.4 * i_full, rel=0.05)
    snap = hw.snapshot()
    assert snap["p_mpp"] == pytest.approx(arr.mpp()[2])


def test_simulated_hardware_noise_is_seeded(array):
    def reads(seed):
        hw = SimulatedHardware(VoltagePlant(array), noise_v=0.1, noise_i=0.01, seed=seed)
        hw.apply_control(30.0)
        hw.wait(1e-3)
        return [(hw.measure_voltage(), hw.measure_current()) for _ in range(5)]

    assert reads(1) == reads(1)
    assert reads(1) != reads(2)


def test_simulated_hardware_fault_injection(array):
    hw = SimulatedHardware(VoltagePlant(array), fail_at=2)
    hw.measure_voltage()
    hw.measure_voltage()
    with pytest.raises(OSError):
        hw.measure_voltage()

    hw_nan = SimulatedHardware(VoltagePlant(array), fail_at=0, fail_mode="nan")
    assert math.isnan(hw_nan.measure_voltage())

    with pytest.raises(ValueError):
        SimulatedHardware(VoltagePlant(array), fail_mode="explode")
