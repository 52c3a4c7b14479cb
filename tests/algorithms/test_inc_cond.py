"""Unit tests for the incremental conductance tracker.

Run from repo root:
    python -m pytest -q tests/algorithms/test_inc_cond.py
"""

from __future__ import annotations

import numpy as np
import pytest

from mppt.algorithms.local.inc_cond import IncCond
from mppt.algorithms.types import Sample, TrackMode


def test_inc_cond_decisions():
    """Left of the MPP raise V, right of it lower V, balanced conductance holds."""
    algo = IncCond(step=0.01, eps=0.02)

    # P = V*I with I falling slowly: dI/dV = -0.1, I/V = 0.4 -> left of the MPP
    assert algo.decide(Sample(10.0, 4.0), Sample(11.0, 3.9)) == 1
    # dI/dV = -1.0, I/V = 0.1 -> right of the MPP
    assert algo.decide(Sample(30.0, 4.0), Sample(31.0, 3.0)) == -1
    # dI/dV = -I/V exactly -> at the MPP
    assert algo.decide(Sample(20.0, 4.2), Sample(21.0, 4.2 * 21.0 / 22.0)) == 0


def test_inc_cond_zero_dv_holds():
    """dV == 0 takes the slope sentinel: no perturbation, whatever the current did."""
    algo = IncCond()

    assert algo.classify(Sample(20.0, 4.0), Sample(20.0, 4.5)) == (0, "dv_zero")
    assert algo.decide(Sample(20.0, 4.0), Sample(20.0, 3.5)) == 0
    assert algo.decide(Sample(20.0, 4.0), Sample(20.0, 4.0)) == 0


def test_inc_cond_repeated_zero_dv_steps_after_hold_limit():
    """Two holds at a pinned voltage, then one step in the remembered direction."""
    algo = IncCond(step=0.01, start=0.5, hold_limit=2)
    algo.step(Sample(20.0, 4.0, 0))
    assert algo.step(Sample(20.0, 4.0, 1)).value == pytest.approx(0.51)

    outs = [algo.step(Sample(20.0, 4.5, k)) for k in (2, 3, 4)]

    assert [a.value for a in outs] == pytest.approx([0.51, 0.51, 0.52])
    assert [a.debug["phase"] for a in outs] == ["hold", "hold", "forced_step"]


def test_inc_cond_balance_enters_steady_and_flags_irradiance_change():
    """The hold band freezes the point; a later power collapse there resumes the climb."""
    algo = IncCond(step=0.01, change_threshold=0.1)
    algo.seed(0.5)
    assert algo.step(Sample(20.0, 4.2, 0)).value == pytest.approx(0.51)

    a = algo.step(Sample(21.0, 4.2 * 21.0 / 22.0, 1))
    assert algo.state.mode is TrackMode.STEADY
    assert a.value == pytest.approx(0.51)
    assert a.debug["phase"] == "enter_steady"

    still = algo.step(Sample(21.0, 4.2 * 21.0 / 22.0, 2))
    assert still.value == pytest.approx(0.51)
    assert still.disturbed is False

    cut = algo.step(Sample(21.0, 2.0, 3))
    assert cut.disturbed is True
    assert algo.state.mode is TrackMode.PERTURBING
    assert cut.value == pytest.approx(0.52)


def test_inc_cond_converges_on_single_peak(source):
    """IncCond climbs the toy source and stays near its peak."""
    algo = IncCond(step=0.01, lo=0.0, hi=1.0, start=0.4)

    x = 0.4
    xs = []
    for k in range(80):
        x = algo.step(source.sample(x, k)).value
        xs.append(x)

    assert all(0.0 <= v <= 1.0 for v in xs)
    assert all(abs(v - 0.65) <= 0.03 for v in xs[-10:])


def test_inc_cond_clamps_random_inputs():
    rng = np.random.default_rng(99)
    algo = IncCond(step=0.5, lo=0.0, hi=1.0)

    for k in range(300):
        a = algo.step(Sample(float(rng.uniform(-50, 50)), float(rng.uniform(-10, 10)), k))
        assert 0.0 <= a.value <= 1.0


def test_inc_cond_config_roundtrip():
    algo = IncCond(step=0.02, eps=0.05)

    assert algo.describe()["key"] == "inc_cond"
    algo.update_params(step=0.04, eps=0.01)
    cfg = algo.get_config()

    assert cfg["step"] == pytest.approx(0.04)
    assert cfg["eps"] == pytest.approx(0.01)

    algo.update_params(hold_limit=4, change_threshold=0.2)
    cfg = algo.get_config()
    assert cfg["hold_limit"] == 4
    assert cfg["change_threshold"] == pytest.approx(0.2)
