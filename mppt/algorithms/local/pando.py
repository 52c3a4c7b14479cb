"""
PANDO — Perturb & Observe with steady-state detection

Hill-climb tracker for everyday, single-peak conditions. Each period it
compares the new sample with the previous one and picks the next perturbation
from the universal P&O table:

    dP > 0, dX > 0  ->  +1   keep increasing X
    dP > 0, dX < 0  ->  -1   keep decreasing X
    dP < 0, dX > 0  ->  -1   reverse
    dP < 0, dX < 0  ->  +1   reverse
    dP == 0 or dX == 0 -> 0  hold

X is the sensed voltage (``sense="v"``) or current (``sense="i"``).
``polarity`` maps a move of X onto the control variable: +1 for a voltage or
current reference, -1 for a boost converter duty cycle (more duty, less PV
voltage).

States
- PERTURBING: normal hill-climbing; the step size comes from a StepPolicy.
- STEADY: entered when the oscillation window says we are circling the MPP.
  The point is frozen at the best point seen (or dithered inside a deadband)
  until the irradiance-change detector fires.

Notes
- Every output is clamped to [lo, hi].
- A hold does not stall forever: after ``hold_limit`` consecutive holds the
  tracker probes once in its remembered direction.
"""
from typing import Any, Callable, Dict, Optional

from ..base import Tracker
from ..common import clamp, deadband
from ..types import Action, Sample, TrackMode
from .detectors import IrradianceChangeDetector, OscillationDetector
from .step_policy import StepPolicy, make_policy


def perturbation_direction(dp: float, dx: float) -> int:
    """Return +1 (increase X), -1 (decrease X) or 0 (hold) from the P&O table."""
    if dp == 0.0 or dx == 0.0:
        return 0
    return 1 if (dp > 0.0) == (dx > 0.0) else -1


class PANDO(Tracker):
    """P&O tracker with pluggable step policy and steady-state handling.

    Parameters
    step : float
        Fixed perturbation magnitude (``step_mode="fixed"``), in control units.
    lo, hi : float
        Operating point range (duty in [0, 1], or a V/I reference range).
    start : float, optional
        Cold-start operating point (defaults to the middle of the range).
    sense : str
        "v" for voltage-mode decisions, "i" for current-mode decisions.
    polarity : int
        +1 if raising the control raises X, -1 otherwise.
    eps : float
        Power deadband [W]; smaller |dP| is treated as no change.
    hold_limit : int
        Consecutive holds tolerated before probing in the last direction.
    step_mode : str
        "fixed", "slope" or "fuzzy" (see :mod:`.step_policy`).
    gain, step_min, step_max : float
        Slope-proportional step parameters.
    infer : callable, optional
        Fuzzy inference function ``infer(dp, abs_dx) -> step``.
    step_policy : StepPolicy, optional
        Ready-made policy; overrides ``step_mode`` and friends.
    steady_window, steady_threshold : int
        Oscillation window for steady-state detection (0 disables it).
    deadband_width : float
        Half-width of the steady-state dither band; 0 freezes the point.
    change_threshold : float
        Relative deviation that ends STEADY (irradiance change).
    change_mode : str
        "power" or "vi" comparison for the irradiance-change detector.
    """

    name = "pando"
    supports_global_search = False

    def __init__(
        self,
        step: float = 0.01,
        lo: float = 0.0,
        hi: float = 1.0,
        start: Optional[float] = None,
        sense: str = "v",
        polarity: int = 1,
        eps: float = 0.0,
        hold_limit: int = 2,
        step_mode: str = "fixed",
        gain: float = 1e-3,
        step_min: float = 1e-3,
        step_max: float = 5e-2,
        infer: Optional[Callable[[float, float], float]] = None,
        step_policy: Optional[StepPolicy] = None,
        steady_window: int = 0,
        steady_threshold: int = 0,
        deadband_width: float = 0.0,
        change_threshold: float = 0.1,
        change_mode: str = "power",
    ) -> None:
        super().__init__(lo, hi, start)
        sense = sense.lower()
        if sense not in ("v", "i"):
            raise ValueError("sense must be 'v' or 'i'")
        if int(polarity) not in (1, -1):
            raise ValueError("polarity must be +1 or -1")
        self.sense = sense
        self.polarity = int(polarity)
        self.eps = float(eps)
        self.hold_limit = max(0, int(hold_limit))
        self.policy = step_policy or make_policy(step_mode, step, gain, step_min, step_max, infer)
        self.oscillation = (
            OscillationDetector(steady_window, steady_threshold) if steady_window > 0 else None
        )
        self.deadband_width = max(0.0, float(deadband_width))
        self.change = IrradianceChangeDetector(change_threshold, change_mode)
        self.reset()

    # Lifecycle
    def reset(self) -> None:
        super().reset()
        self.state.step_size = self.policy.nominal
        if self.oscillation is not None:
            self.oscillation.reset()

    def freeze(self, point: float, reference: Optional[Sample] = None) -> None:
        """Enter STEADY at ``point``; ``reference`` is the sample taken there."""
        st = self.state
        st.mode = TrackMode.STEADY
        st.steady_point = self.bounds.clamp(float(point))
        st.steady_sample = reference
        st.previous_point = st.steady_point
        if reference is not None:
            st.previous_sample = reference

    # Core step
    def step(self, sample: Sample) -> Action:
        st = self.state

        if st.previous_point is None:
            # cold start: command the configured starting point
            st.previous_point = self.start
            return self._emit(self.start, sample, phase="cold_start")

        if st.mode is TrackMode.STEADY:
            return self._steady_step(sample)

        if st.previous_sample is None:
            # first sample at a known point: open with a probe
            st.previous_sample = sample
            self._note_best(sample)
            point = self._move(st.previous_point, st.direction, self.policy.nominal)
            st.previous_point = point
            return self._emit(point, sample, phase="probe")

        return self._perturb_step(sample)

    # Internals
    def _sensed(self, s: Sample) -> float:
        return s.voltage if self.sense == "v" else s.current

    def _move(self, point: float, direction: int, size: float, lo: Optional[float] = None, hi: Optional[float] = None) -> float:
        target = point + self.polarity * direction * size
        out = self.bounds.clamp(target)
        if lo is not None and hi is not None:
            out = clamp(out, lo, hi)
        return out

    def _note_best(self, s: Sample) -> None:
        st = self.state
        if s.power > st.best_power:
            st.best_power = s.power
            st.best_point = st.previous_point

    def _perturb_step(self, sample: Sample) -> Action:
        st = self.state
        prev = st.previous_sample
        dp = deadband(sample.power - prev.power, self.eps)
        dx = self._sensed(sample) - self._sensed(prev)
        self._note_best(sample)

        d = perturbation_direction(dp, dx)
        probe = False
        if d == 0:
            st.hold_count += 1
            if st.hold_count > self.hold_limit:
                d, probe = st.direction, True
                st.hold_count = 0
                size = self.policy.nominal
            else:
                size = 0.0
        else:
            st.hold_count = 0
            size = self.policy.size(dp, dx)
            st.direction = d

        st.step_size = size
        point = self._move(st.previous_point, d, size) if d != 0 else st.previous_point

        phase = "probe" if probe else "perturb"
        if self.oscillation is not None and not probe and d != 0:
            steady = self.oscillation.update(d)
            st.oscillation_counter = self.oscillation.counter
            if steady:
                st.mode = TrackMode.STEADY
                st.steady_point = st.best_point if st.best_point is not None else point
                st.steady_sample = None
                point = st.steady_point
                phase = "enter_steady"

        st.previous_sample = sample
        st.previous_point = point
        return self._emit(point, sample, phase=phase, dp=dp, dx=dx)

    def _steady_step(self, sample: Sample) -> Action:
        st = self.state

        if st.steady_sample is None:
            # first sample measured at the frozen point becomes the reference
            st.steady_sample = sample
        elif self.change.changed(st.steady_sample, sample):
            self._resume()
            point = self._move(st.previous_point, st.direction, self.policy.nominal)
            st.previous_sample = sample
            st.previous_point = point
            return self._emit(point, sample, phase="irradiance_change", disturbed=True)

        point = st.steady_point
        if self.deadband_width > 0.0 and st.previous_sample is not None:
            dp = deadband(sample.power - st.previous_sample.power, self.eps)
            dx = self._sensed(sample) - self._sensed(st.previous_sample)
            d = perturbation_direction(dp, dx) or -st.direction
            st.direction = d
            point = self._move(
                st.previous_point, d, self.policy.nominal,
                st.steady_point - self.deadband_width,
                st.steady_point + self.deadband_width,
            )

        st.previous_sample = sample
        st.previous_point = point
        return self._emit(point, sample, phase="steady")

    def _resume(self) -> None:
        st = self.state
        st.mode = TrackMode.PERTURBING
        st.steady_sample = None
        st.best_point = None
        st.best_power = float("-inf")
        st.hold_count = 0
        if self.oscillation is not None:
            self.oscillation.reset()
            st.oscillation_counter = 0

    def _emit(
        self,
        point: float,
        sample: Sample,
        phase: str,
        dp: float = 0.0,
        dx: float = 0.0,
        disturbed: bool = False,
    ) -> Action:
        st = self.state
        return Action(
            value=point,
            disturbed=disturbed,
            debug={
                "algo": self.name,
                "phase": phase,
                "mode": st.mode.value,
                "p": float(sample.power),
                "dP": float(dp),
                "dX": float(dx),
                "dir": int(st.direction),
                "step": float(st.step_size),
                "osc": int(st.oscillation_counter),
                "point": float(point),
            },
        )

    # Frontend helpers
    def describe(self) -> Dict[str, Any]:
        """Return UI metadata for tunable parameters."""
        return {
            "key": self.name,
            "label": "P&O",
            "params": [
                {"name": "step", "type": "number", "min": 1e-5, "max": 1.0, "step": 1e-4, "default": float(self.policy.nominal), "help": "Fixed per-period perturbation"},
                {"name": "eps", "type": "number", "min": 0.0, "max": 5.0, "step": 1e-3, "unit": "W", "default": self.eps, "help": "Power deadband to ignore noise"},
                {"name": "hold_limit", "type": "integer", "min": 0, "max": 20, "step": 1, "default": self.hold_limit, "help": "Holds before a forced probe"},
                {"name": "deadband_width", "type": "number", "min": 0.0, "max": 0.2, "step": 1e-3, "default": self.deadband_width, "help": "Steady-state dither half-width"},
                {"name": "change_threshold", "type": "number", "min": 1e-3, "max": 1.0, "step": 1e-3, "default": self.change.threshold, "help": "Relative deviation that ends STEADY"},
                {"name": "lo", "type": "number", "default": self.bounds.lo},
                {"name": "hi", "type": "number", "default": self.bounds.hi},
            ],
        }

    def get_config(self) -> Dict[str, Any]:
        cfg = super().get_config()
        cfg.update(self.policy.get_config())
        cfg.update(self.change.get_config())
        if self.oscillation is not None:
            cfg.update(self.oscillation.get_config())
        cfg.update({
            "sense": self.sense,
            "polarity": self.polarity,
            "eps": self.eps,
            "hold_limit": self.hold_limit,
            "deadband_width": self.deadband_width,
        })
        return cfg

    def update_params(self, **kw: Any) -> None:
        super().update_params(**kw)
        if "step" in kw and hasattr(self.policy, "step"):
            self.policy.step = float(kw["step"])
        if "eps" in kw:
            self.eps = float(kw["eps"])
        if "hold_limit" in kw:
            self.hold_limit = max(0, int(kw["hold_limit"]))
        if "deadband_width" in kw:
            self.deadband_width = max(0.0, float(kw["deadband_width"]))
        if "change_threshold" in kw:
            self.change.threshold = float(kw["change_threshold"])


__all__ = ["PANDO", "perturbation_direction"]
