"""
IncCond — Incremental Conductance

At the MPP dP/dV = 0, i.e. dI/dV = -I/V. The tracker compares the
incremental conductance with the instantaneous one:

    dI/dV + I/V > 0  ->  left of the MPP, raise V
    dI/dV + I/V < 0  ->  right of the MPP, lower V
    |dI/dV + I/V| <= eps * |I/V|  ->  at the MPP, enter STEADY

When dV == 0 the slope takes the sentinel value and the tracker makes no
perturbation that period, exactly like the P&O table. After ``hold_limit``
consecutive holds it steps once in its remembered direction.

States
- PERTURBING: fixed-step conductance climb.
- STEADY: the point is held where the balance was met. The sample measured
  there is the reference for the irradiance-change detector; when it fires the
  tracker resumes climbing and flags the output as ``disturbed``.
"""
import math
from typing import Any, Dict, Optional, Tuple

from ..base import Tracker
from ..common import safe_div
from ..types import Action, Sample, TrackMode
from .detectors import IrradianceChangeDetector

# dI/dV when dV == 0
SLOPE_SENTINEL = math.nan


class IncCond(Tracker):
    """Fixed-step incremental conductance tracker (voltage sensing).

    Parameters
    step : float
        Perturbation magnitude in control units.
    lo, hi : float
        Operating point range.
    start : float, optional
        Cold-start operating point.
    polarity : int
        +1 if raising the control raises V (reference voltage), -1 for a boost duty.
    eps : float
        Relative tolerance on the conductance balance for the hold band.
    hold_limit : int
        Consecutive dV == 0 holds tolerated before stepping in the last direction.
    change_threshold : float
        Relative deviation from the STEADY reference that ends STEADY.
    change_mode : str
        "power" or "vi" comparison for the irradiance-change detector.
    """

    name = "inc_cond"
    supports_global_search = False

    def __init__(
        self,
        step: float = 0.01,
        lo: float = 0.0,
        hi: float = 1.0,
        start: Optional[float] = None,
        polarity: int = 1,
        eps: float = 0.02,
        hold_limit: int = 2,
        change_threshold: float = 0.1,
        change_mode: str = "power",
    ) -> None:
        super().__init__(lo, hi, start)
        if int(polarity) not in (1, -1):
            raise ValueError("polarity must be +1 or -1")
        self.step_size = float(step)
        self.polarity = int(polarity)
        self.eps = float(eps)
        self.hold_limit = max(0, int(hold_limit))
        self.change = IrradianceChangeDetector(change_threshold, change_mode)
        self.reset()

    def reset(self) -> None:
        super().reset()
        self.state.step_size = self.step_size

    def classify(self, prev: Sample, s: Sample) -> Tuple[int, str]:
        """Direction (+1 raise V, -1 lower V, 0 hold) and why: "climb", "balanced" or "dv_zero"."""
        slope = safe_div(s.current - prev.current, s.voltage - prev.voltage, default=SLOPE_SENTINEL)
        if math.isnan(slope):
            return 0, "dv_zero"
        g_inst = safe_div(s.current, s.voltage)
        balance = slope + g_inst
        if abs(balance) <= self.eps * abs(g_inst):
            return 0, "balanced"
        return (1 if balance > 0.0 else -1), "climb"

    def decide(self, prev: Sample, s: Sample) -> int:
        """Return +1 (raise V), -1 (lower V) or 0 (hold)."""
        return self.classify(prev, s)[0]

    def step(self, sample: Sample) -> Action:
        st = self.state
        if st.previous_point is None:
            st.previous_point = self.start
            return self._emit(self.start, sample, phase="cold_start")

        if st.mode is TrackMode.STEADY:
            return self._steady_step(sample)

        if st.previous_sample is None:
            d, why = st.direction, "climb"
        else:
            d, why = self.classify(st.previous_sample, sample)

        phase = "track"
        if why == "balanced":
            st.mode = TrackMode.STEADY
            st.steady_point = st.previous_point
            st.steady_sample = sample
            st.hold_count = 0
            phase = "enter_steady"
        elif why == "dv_zero":
            st.hold_count += 1
            phase = "hold"
            if st.hold_count > self.hold_limit:
                d, phase = st.direction, "forced_step"
                st.hold_count = 0
        else:
            st.hold_count = 0
            st.direction = d

        point = self._move(st.previous_point, d)
        st.previous_sample = sample
        st.previous_point = point
        return self._emit(point, sample, phase=phase, d=d)

    def _move(self, point: float, d: int) -> float:
        return self.bounds.clamp(point + self.polarity * d * self.step_size)

    def _steady_step(self, sample: Sample) -> Action:
        st = self.state
        if self.change.changed(st.steady_sample, sample):
            st.mode = TrackMode.PERTURBING
            st.steady_sample = None
            st.hold_count = 0
            point = self._move(st.previous_point, st.direction)
            st.previous_sample = sample
            st.previous_point = point
            return self._emit(point, sample, phase="irradiance_change", d=st.direction, disturbed=True)

        st.previous_sample = sample
        st.previous_point = st.steady_point
        return self._emit(st.steady_point, sample, phase="steady")

    def _emit(self, point: float, sample: Sample, phase: str, d: int = 0, disturbed: bool = False) -> Action:
        return Action(
            value=point,
            disturbed=disturbed,
            debug={
                "algo": self.name,
                "phase": phase,
                "mode": self.state.mode.value,
                "p": float(sample.power),
                "dir": int(d),
                "point": float(point),
            },
        )

    def describe(self) -> Dict[str, Any]:
        return {
            "key": self.name,
            "label": "Incremental conductance",
            "params": [
                {"name": "step", "type": "number", "min": 1e-5, "max": 1.0, "step": 1e-4, "default": self.step_size},
                {"name": "eps", "type": "number", "min": 0.0, "max": 0.5, "step": 1e-3, "default": self.eps, "help": "Hold band on dI/dV + I/V"},
                {"name": "hold_limit", "type": "integer", "min": 0, "max": 20, "step": 1, "default": self.hold_limit, "help": "Holds before a forced step"},
                {"name": "change_threshold", "type": "number", "min": 1e-3, "max": 1.0, "step": 1e-3, "default": self.change.threshold, "help": "Relative deviation that ends STEADY"},
            ],
        }

    def get_config(self) -> Dict[str, Any]:
        cfg = super().get_config()
        cfg.update(self.change.get_config())
        cfg.update({"step": self.step_size, "polarity": self.polarity, "eps": self.eps, "hold_limit": self.hold_limit})
        return cfg

    def update_params(self, **kw: Any) -> None:
        super().update_params(**kw)
        if "step" in kw:
            self.step_size = float(kw["step"])
        if "eps" in kw:
            self.eps = float(kw["eps"])
        if "hold_limit" in kw:
            self.hold_limit = max(0, int(kw["hold_limit"]))
        if "change_threshold" in kw:
            self.change.threshold = float(kw["change_threshold"])


__all__ = ["IncCond", "SLOPE_SENTINEL"]
