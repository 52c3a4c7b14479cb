"""Tests for the partial shading detector and the safety limit checks."""

from __future__ import annotations

import pytest

from mppt.algorithms.types import Sample
from mppt.controller.psd import PSDDetector
from mppt.controller.safety import DI, DV, OCP, OK, OPP, OVP, UVP, SafetyLimits, check_limits


# PSD

def test_psd_needs_three_samples():
    det = PSDDetector(votes=1)
    assert det.update(Sample(20.0, 5.0)) is False
    assert det.update(Sample(20.0, 2.0)) is False


def test_psd_h1_power_moves_at_fixed_voltage():
    det = PSDDetector(dp_frac=0.04, dv_frac=0.01, votes=1)
    for s in (Sample(20.0, 5.0), Sample(21.0, 5.0), Sample(21.0, 4.0)):
        det.buf.append(s)
    assert det.h1() is True


def test_psd_h2_conflicting_slopes():
    det = PSDDetector(votes=1)
    for s in (Sample(20.0, 5.0), Sample(21.0, 5.0), Sample(22.0, 4.0)):
        det.buf.append(s)
    assert det.h2() is True
    assert det.h1() is False


def test_psd_monotone_climb_is_quiet():
    det = PSDDetector(votes=1)
    hits = [det.update(Sample(20.0 + k, 5.0)) for k in range(6)]
    assert not any(hits)


def test_psd_trigger_clears_window_and_honours_cooldown():
    det = PSDDetector(votes=1, cooldown=3)
    seq = [Sample(20.0, 5.0), Sample(21.0, 5.0), Sample(22.0, 4.0)]

    assert [det.update(s) for s in seq] == [False, False, True]
    assert len(det.buf) == 0
    # cooldown swallows the next three decisions even though the pattern repeats
    assert [det.update(s) for s in seq] == [False, False, False]
    assert det.update(Sample(21.0, 5.0)) is True


def test_psd_config_roundtrip():
    det = PSDDetector()
    with pytest.raises(ValueError):
        PSDDetector(window=2)

    det.update_params(dp_frac=0.1, votes=1, window=8, cooldown=3)
    cfg = det.get_config()

    assert cfg == {"dp_frac": 0.1, "dv_frac": 0.01, "window": 8, "votes": 1, "cooldown": 3}
    assert det.buf.maxlen == 8
    assert det.describe()["key"] == "psd"


# Safety

@pytest.mark.parametrize(
    "sample, code",
    [
        (Sample(30.0, 5.0), OK),
        (Sample(-5.0, 1.0), UVP),
        (Sample(70.0, 1.0), OVP),
        (Sample(30.0, 12.0), OCP),
        (Sample(49.0, 9.9), OPP),
    ],
)
def test_check_limits_static(sample, code):
    lim = SafetyLimits(vmin=0.0, vmax=60.0, imax=10.0, pmax=400.0)
    assert check_limits(sample, lim) == code


def test_check_limits_slew():
    lim = SafetyLimits(dv_max=2.0, di_max=0.5)
    last = Sample(30.0, 5.0)

    assert check_limits(Sample(31.0, 5.2), lim, last) == OK
    assert check_limits(Sample(33.0, 5.0), lim, last) == DV
    assert check_limits(Sample(30.0, 6.0), lim, last) == DI
    # no previous sample: slew checks are skipped
    assert check_limits(Sample(33.0, 6.0), lim) == OK


def test_limits_update_and_dict_roundtrip():
    lim = SafetyLimits.from_dict({"vmin": 50.0, "vmax": 10.0, "dv_max": "none", "unknown": 1})

    assert (lim.vmin, lim.vmax) == (10.0, 50.0)
    assert lim.dv_max is None
    assert SafetyLimits.from_dict(lim.to_dict()) == lim
    assert {p["name"] for p in lim.describe()["params"]} >= {"vmin", "vmax", "imax", "pmax"}
