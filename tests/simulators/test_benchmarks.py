"""Tests for benchmark scenarios and metric extraction."""

from __future__ import annotations

import pytest

from benchmarks.metrics import (
    compute_metrics,
    detect_disturb_time,
    energy_ratio,
    ripple_rms,
    settle_time,
)
from benchmarks.scenarios import cloud_flicker, event, get_scenario, irradiance_ramp, list_scenarios


def _records(p_of_t, p_mpp_of_t, n=400, dt=1e-3):
    out = []
    for k in range(n):
        t = k * dt
        p, ref = p_of_t(t), p_mpp_of_t(t)
        out.append({"t": t, "p": p, "p_mpp": ref, "eff": p / ref})
    return out


def test_scenario_catalog():
    names = list_scenarios()
    assert {"steady", "partial_shading_step", "partial_shading_toggle"} <= set(names)
    assert get_scenario("steady").env_profile is None
    with pytest.raises(KeyError):
        get_scenario("eclipse")


def test_event_and_flicker_profiles():
    assert event(0.1, g_modules=[1, 2]) == {"t": 0.1, "g_modules": [1.0, 2.0]}
    prof = cloud_flicker(period_s=0.2, t_total=0.35)
    assert [e["t"] for e in prof] == pytest.approx([0.0, 0.1, 0.2, 0.3])
    assert [e["g"] for e in prof] == [1000.0, 300.0, 1000.0, 300.0]


def test_irradiance_ramp_is_a_rising_staircase():
    prof = irradiance_ramp(t0=0.1, t1=0.4, g0=300.0, g1=1000.0, steps=7)

    gs = [e["g"] for e in prof]
    assert len(prof) == 8
    assert gs == sorted(gs)
    assert gs[0] == 300.0 and gs[-1] == pytest.approx(1000.0)
    assert prof[-1]["t"] == pytest.approx(0.4)


def test_energy_ratio_half_power():
    recs = _records(lambda t: 50.0, lambda t: 100.0)
    assert energy_ratio(recs) == pytest.approx(0.5)
    assert energy_ratio(recs[:1]) is None


def test_settle_time_requires_hold():
    # efficiency ramps to 1 by t = 0.1 s
    recs = _records(lambda t: 100.0 * min(1.0, t / 0.1), lambda t: 100.0)
    t_settle = settle_time(recs, threshold=0.97, hold_time_s=0.05)
    assert t_settle == pytest.approx(0.097, abs=1.5e-3)

    short = _records(lambda t: 100.0 * min(1.0, t / 0.1), lambda t: 100.0, n=120)
    assert settle_time(short, threshold=0.97, hold_time_s=0.05) is None


def test_disturbance_and_recovery():
    """Available power halves at 0.2 s; the tracker needs 30 ms to catch up."""
    ref = lambda t: 100.0 if t < 0.2 else 50.0
    p = lambda t: ref(t) if t < 0.2 or t >= 0.23 else 30.0
    recs = _records(p, ref)

    assert detect_disturb_time(recs) == pytest.approx(0.2)
    m = compute_metrics(recs, settle_hold_s=0.05)
    assert m.t_disturb == pytest.approx(0.2)
    assert m.recovery_settle_s == pytest.approx(0.03, abs=1.5e-3)
    assert m.mean_eff_tail == pytest.approx(1.0)
    assert m.n_periods == 400


def test_ripple_of_constant_power_is_zero():
    recs = _records(lambda t: 80.0, lambda t: 100.0)
    assert ripple_rms(recs) == pytest.approx(0.0)
    assert compute_metrics(recs).to_dict()["ripple_rms"] == pytest.approx(0.0)


def test_metrics_degrade_gracefully():
    m = compute_metrics([{"t": 0.0, "p": 1.0}, {"t": 0.001, "p": 1.0}])
    assert m.energy_ratio is None
    assert m.settle_time_s is None
    assert m.mean_eff_tail is None
