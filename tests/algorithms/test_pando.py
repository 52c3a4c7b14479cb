"""Unit tests for PANDO (P&O with steady-state detection).

Run from repo root:
    python -m pytest -q tests/algorithms/test_pando.py

Relies on fixtures provided by tests/conftest.py
"""

from __future__ import annotations

import math

import numpy as np
import pytest

from mppt.algorithms.local.pando import PANDO, perturbation_direction
from mppt.algorithms.local.step_policy import FuzzyStep, SlopeStep, make_policy
from mppt.algorithms.types import Sample, TrackMode


@pytest.mark.parametrize(
    "dp, dx, expected",
    [
        (+1.0, +1.0, +1),   # power up while X rose: keep raising X
        (+1.0, -1.0, -1),   # power up while X fell: keep lowering X
        (-1.0, +1.0, -1),   # power down after raising X: reverse
        (-1.0, -1.0, +1),   # power down after lowering X: reverse
    ],
)
def test_decision_table_quadrants(dp, dx, expected):
    """The four (sign dP, sign dX) quadrants follow the P&O table exactly."""
    assert perturbation_direction(dp, dx) == expected


@pytest.mark.parametrize("dp, dx", [(0.0, 1.0), (1.0, 0.0), (0.0, 0.0)])
def test_decision_table_ties_hold(dp, dx):
    """A zero delta on either axis holds the operating point."""
    assert perturbation_direction(dp, dx) == 0


def test_pando_interface_and_cold_start(source):
    """First step commands the configured start and includes JSON-safe debug fields."""
    algo = PANDO(step=0.01, lo=0.0, hi=1.0, start=0.5)

    a = algo.step(source.sample(0.3))

    assert a.value == pytest.approx(0.5)
    dbg = a.debug
    assert dbg["algo"] == "pando"
    assert dbg["phase"] == "cold_start"
    for key in ("p", "dP", "dX", "dir", "step", "osc", "point"):
        assert isinstance(dbg[key], (int, float)), f"{key} not numeric"


def test_pando_converges_on_single_peak(source):
    """From 0.5 with a 0.01 step, the duty settles within +-0.02 of 0.65 inside 50 iterations."""
    algo = PANDO(step=0.01, lo=0.0, hi=1.0, start=0.5)

    x = 0.5
    xs = []
    for k in range(50):
        x = algo.step(source.sample(x, k)).value
        xs.append(x)

    assert all(0.0 <= v <= 1.0 for v in xs)
    tail = xs[-10:]
    assert all(abs(v - 0.65) <= 0.02 for v in tail)
    # oscillates around the peak rather than parking on one side
    assert min(tail) < 0.65 < max(tail)


def test_pando_clamps_random_inputs():
    """Whatever the samples say, every output stays inside [lo, hi]."""
    rng = np.random.default_rng(1234)
    algo = PANDO(step=0.4, lo=0.1, hi=0.9, step_mode="slope", gain=10.0, step_min=0.05, step_max=5.0)

    for k in range(500):
        v = float(rng.uniform(-1e3, 1e3))
        i = float(rng.uniform(-1e2, 1e2))
        a = algo.step(Sample(v, i, k))
        assert 0.1 <= a.value <= 0.9


def test_pando_boost_polarity_moves_duty_down_to_raise_voltage():
    """With polarity=-1 a 'raise V' decision lowers the duty."""
    algo = PANDO(step=0.05, lo=0.0, hi=1.0, start=0.5, polarity=-1)

    algo.step(Sample(20.0, 5.0, 0))            # cold start -> 0.5
    a = algo.step(Sample(20.0, 5.0, 1))        # opening probe, direction +1 (raise V)
    assert a.value == pytest.approx(0.45)
    a = algo.step(Sample(21.0, 5.0, 2))        # V rose and P rose: keep raising V
    assert a.value == pytest.approx(0.40)


def test_pando_hold_then_probe_after_hold_limit():
    """Flat power holds the point; after hold_limit holds the tracker probes once."""
    algo = PANDO(step=0.1, lo=0.0, hi=1.0, start=0.5, hold_limit=2)
    s = Sample(10.0, 1.0, 0)

    algo.step(s)                     # cold start
    algo.step(s)                     # opening probe -> 0.6
    a1 = algo.step(s)                # dP == 0: hold
    a2 = algo.step(s)                # hold
    a3 = algo.step(s)                # third hold exceeds the limit: probe

    assert a1.value == pytest.approx(0.6)
    assert a2.value == pytest.approx(0.6)
    assert a3.debug["phase"] == "probe"
    assert a3.value == pytest.approx(0.7)


def test_slope_step_sentinel_when_dx_is_zero():
    """The slope policy returns its sentinel (0 by default) instead of NaN on dX == 0."""
    pol = SlopeStep(gain=1e-3, step_min=1e-3, step_max=5e-2)

    out = pol.size(25.0, 0.0)

    assert out == 0.0
    assert not math.isnan(out)
    assert pol.size(25.0, 0.5) == pytest.approx(0.05)     # 1e-3 * 50 saturates at step_max


def test_fuzzy_step_uses_injected_inference(fuzzy_infer):
    """The fuzzy policy scales and saturates whatever the injected function returns."""
    pol = FuzzyStep(fuzzy_infer, step_max=0.02)

    assert pol.size(10.0, 0.0) == pytest.approx(0.01)
    assert pol.size(1000.0, 1.0) == pytest.approx(0.02)
    assert pol.size(-10.0, 1.0) == pytest.approx(0.005)


def test_fuzzy_mode_requires_infer():
    with pytest.raises(ValueError):
        make_policy("fuzzy")
    with pytest.raises(ValueError):
        make_policy("bogus")


def test_steady_state_entry_freezes_point(source):
    """With an oscillation window the tracker enters STEADY and stops moving."""
    algo = PANDO(step=0.01, lo=0.0, hi=1.0, start=0.6, steady_window=4, steady_threshold=0)

    x = 0.6
    for k in range(60):
        x = algo.step(source.sample(x, k)).value
        if algo.state.mode is TrackMode.STEADY:
            break
    assert algo.state.mode is TrackMode.STEADY

    frozen = x
    for k in range(60, 70):
        x = algo.step(source.sample(x, k)).value
        assert x == pytest.approx(frozen)
    assert abs(frozen - 0.65) <= 0.02


def test_irradiance_change_returns_to_perturbing():
    """STEADY at (30 V, 5 A) then a (30 V, 2 A) sample flips back to PERTURBING in one step."""
    algo = PANDO(step=0.5, lo=0.0, hi=40.0, change_threshold=0.1)
    algo.freeze(30.0, reference=Sample(30.0, 5.0, 0))
    assert algo.state.mode is TrackMode.STEADY

    a = algo.step(Sample(30.0, 2.0, 1))

    assert algo.state.mode is TrackMode.PERTURBING
    assert a.disturbed is True
    assert a.debug["phase"] == "irradiance_change"


def test_small_deviation_keeps_steady():
    """A 2 % power wobble stays below the 10 % change threshold."""
    algo = PANDO(step=0.5, lo=0.0, hi=40.0, change_threshold=0.1)
    algo.freeze(30.0, reference=Sample(30.0, 5.0, 0))

    a = algo.step(Sample(30.0, 4.9, 1))

    assert algo.state.mode is TrackMode.STEADY
    assert a.disturbed is False
    assert a.value == pytest.approx(30.0)


def test_vi_change_mode_triggers_on_voltage():
    """In 'vi' mode a voltage swing alone ends STEADY."""
    algo = PANDO(step=0.5, lo=0.0, hi=40.0, change_threshold=0.1, change_mode="vi")
    algo.freeze(30.0, reference=Sample(30.0, 5.0, 0))

    a = algo.step(Sample(24.0, 5.0, 1))

    assert a.disturbed is True


def test_deadband_dither_stays_in_band(source):
    """With a deadband the STEADY point dithers but never leaves the band."""
    algo = PANDO(step=0.01, lo=0.0, hi=1.0, deadband_width=0.02)
    algo.freeze(0.65, reference=source.sample(0.65))

    x = 0.65
    for k in range(40):
        x = algo.step(source.sample(x, k)).value
        assert 0.63 - 1e-12 <= x <= 0.67 + 1e-12


def test_pando_describe_and_config_roundtrip():
    """describe() provides UI metadata; update_params() mutates get_config()."""
    algo = PANDO(step=0.02, lo=0.0, hi=1.0, eps=0.1)

    spec = algo.describe()
    assert spec["key"] == "pando"
    names = {p["name"] for p in spec["params"]}
    assert {"step", "eps", "hold_limit", "change_threshold"}.issubset(names)

    algo.update_params(step=0.03, eps=0.2, hold_limit=5, hi=0.9, change_threshold=0.2)
    cfg = algo.get_config()

    assert cfg["step"] == pytest.approx(0.03)
    assert cfg["eps"] == pytest.approx(0.2)
    assert cfg["hold_limit"] == 5
    assert cfg["hi"] == pytest.approx(0.9)
    assert cfg["change_threshold"] == pytest.approx(0.2)


def test_invalid_construction_raises():
    with pytest.raises(ValueError):
        PANDO(sense="p")
    with pytest.raises(ValueError):
        PANDO(polarity=0)
    with pytest.raises(ValueError):
        PANDO(lo=1.0, hi=0.0)
