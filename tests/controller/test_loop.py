"""Tests for the control loop and the sampler/actuator boundary.

Faults are injected through SimulatedHardware (sensor) or a small failing
hardware double (actuation).
"""

from __future__ import annotations

import logging

import pytest

from mppt.algorithms.local.pando import PANDO
from mppt.algorithms.types import Bounds
from mppt.controller import ControlLoop, Supervisor, SupervisorConfig
from mppt.controller.loop import ACTUATION_FAULT, MAX_PERIODS, SAFETY_FAULT, SENSOR_FAULT, STOPPED
from mppt.errors import ActuationError, SensorError
from mppt.hardware import HardwareInterface, SamplerActuator
from simulators.hardware import SimulatedHardware
from simulators.plant import VoltagePlant
from simulators.pv import PVArray


class FlakyActuator(HardwareInterface):
    """Hardware double whose actuation path fails from the n-th write onwards."""

    def __init__(self, fail_from: int):
        self.fail_from = fail_from
        self.writes = 0

    def measure_voltage(self) -> float:
        return 20.0

    def measure_current(self) -> float:
        return 5.0

    def apply_control(self, value: float) -> None:
        self.writes += 1
        if self.writes >= self.fail_from:
            raise OSError("gate driver not responding")

    def wait(self, period: float) -> None:
        return None


@pytest.fixture(scope="module")
def array() -> PVArray:
    return PVArray(1)


def _loop(array, fail_at=None, fail_mode="raise", controller=None, **kw):
    plant = VoltagePlant(array)
    lo, hi = plant.control_range()
    hw = SimulatedHardware(plant, fail_at=fail_at, fail_mode=fail_mode)
    ctrl = controller or PANDO(step=0.3, lo=lo, hi=hi)
    io = SamplerActuator(hw, Bounds(lo, hi))
    return ControlLoop(ctrl, io, **kw), hw, io


def test_runs_to_max_periods(array):
    loop, hw, io = _loop(array)

    res = loop.run(25)

    assert res.reason == MAX_PERIODS
    assert res.periods == 25
    assert not res.faulted
    assert [r["k"] for r in res.records] == list(range(25))
    assert len(hw.applied) == 25
    assert res.last_value == pytest.approx(hw.applied[-1])
    assert {"v", "i", "p", "u", "settled", "disturbed", "state"} <= set(res.records[0])


@pytest.mark.parametrize("mode", ["raise", "nan"])
def test_sensor_fault_stops_and_holds(array, mode, caplog):
    """A failing read ends the loop and re-applies the last committed value."""
    loop, hw, io = _loop(array, fail_at=5, fail_mode=mode)

    with caplog.at_level(logging.ERROR, logger="mppt.controller.loop"):
        res = loop.run(50)

    assert res.reason == SENSOR_FAULT
    assert res.faulted
    assert res.periods == 5
    # five actuations plus the hold
    assert len(hw.applied) == 6
    assert hw.applied[-1] == pytest.approx(hw.applied[-2])
    assert "voltage" in res.error
    assert any("sensor_fault" in r.getMessage() for r in caplog.records)


def test_stop_event_is_checked_between_periods(array):
    holder = {}

    def on_record(rec):
        if rec["k"] == 2:
            holder["loop"].stop()

    loop, hw, io = _loop(array, on_record=on_record)
    holder["loop"] = loop

    res = loop.run(100)

    assert res.reason == STOPPED
    assert res.periods == 3
    assert hw.applied[-1] == pytest.approx(io.last_value)


def test_safety_fault_ends_loop(array):
    sup = Supervisor(SupervisorConfig(search_name=None, lo=0.0, hi=40.0, safety={"imax": 0.5}))
    loop, hw, io = _loop(array, controller=sup)

    res = loop.run(10)

    assert res.reason == SAFETY_FAULT
    assert res.periods == 0
    assert res.last_value is None
    assert "OCP" in res.error


def test_actuation_fault_reports_failed_hold():
    hw = FlakyActuator(fail_from=3)
    io = SamplerActuator(hw, Bounds(0.0, 40.0))
    loop = ControlLoop(PANDO(step=0.5, lo=0.0, hi=40.0), io)

    res = loop.run(10)

    assert res.reason == ACTUATION_FAULT
    assert res.periods == 2
    # the hold write fails too and is reported with the original fault
    assert res.error.count("failed") == 2


def test_sampler_clamps_and_counts():
    hw = FlakyActuator(fail_from=100)
    io = SamplerActuator(hw, Bounds(0.0, 1.0), period=0.0)

    assert io.actuate(3.5) == 1.0
    assert io.actuate(-2.0) == 0.0
    assert io.last_value == 0.0
    s0, s1 = io.sample(), io.sample()
    assert (s0.index, s1.index) == (0, 1)
    assert s1.power == pytest.approx(100.0)


def test_sampler_wraps_read_errors():
    class DeadADC(FlakyActuator):
        def measure_current(self) -> float:
            raise OSError("i2c timeout")

    io = SamplerActuator(DeadADC(fail_from=100), Bounds(0.0, 1.0))
    with pytest.raises(SensorError) as ei:
        io.sample()
    assert ei.value.channel == "i"


def test_hold_without_history_is_a_noop():
    io = SamplerActuator(FlakyActuator(fail_from=1), Bounds(0.0, 1.0))
    assert io.hold() is None
    with pytest.raises(ActuationError):
        io.actuate(0.5)
