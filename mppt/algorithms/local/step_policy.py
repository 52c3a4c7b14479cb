"""
Step-size policies for the P&O family.

A policy maps the latest (dP, dX) pair to a perturbation magnitude. The
direction is decided by the tracker; policies only decide "how far".

- FixedStep: constant step (baseline P&O)
- SlopeStep: step proportional to |dP/dX|, sentinel when dX == 0
- FuzzyStep: step from an injected fuzzy-inference function
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from ..common import clamp, safe_div


class StepPolicy(ABC):
    """Perturbation magnitude strategy."""

    kind: str = "base"

    @abstractmethod
    def size(self, dp: float, dx: float) -> float:
        """Return a non-negative step for the given power/variable deltas."""
        ...

    @property
    @abstractmethod
    def nominal(self) -> float:
        """Step used when the tracker probes without fresh deltas."""
        ...

    def get_config(self) -> Dict[str, Any]:
        return {"step_mode": self.kind}


class FixedStep(StepPolicy):
    kind = "fixed"

    def __init__(self, step: float = 0.01) -> None:
        if step < 0.0:
            raise ValueError("step must be >= 0")
        self.step = float(step)

    def size(self, dp: float, dx: float) -> float:
        return self.step

    @property
    def nominal(self) -> float:
        return self.step

    def get_config(self) -> Dict[str, Any]:
        return {"step_mode": self.kind, "step": self.step}


class SlopeStep(StepPolicy):
    """Adaptive step ``gain * |dP/dX|`` saturated to [step_min, step_max].

    When dX == 0 the slope is undefined; the step is ``sentinel`` (default 0,
    i.e. no perturbation this period) instead of NaN or an exception.
    """

    kind = "slope"

    def __init__(
        self,
        gain: float = 1e-3,
        step_min: float = 1e-3,
        step_max: float = 5e-2,
        sentinel: float = 0.0,
    ) -> None:
        if step_min > step_max:
            raise ValueError("step_min must be <= step_max")
        self.gain = float(gain)
        self.step_min = float(step_min)
        self.step_max = float(step_max)
        self.sentinel = float(sentinel)

    def size(self, dp: float, dx: float) -> float:
        if dx == 0.0:
            return self.sentinel
        slope = abs(safe_div(dp, dx, default=0.0))
        return clamp(self.gain * slope, self.step_min, self.step_max)

    @property
    def nominal(self) -> float:
        return self.step_min

    def get_config(self) -> Dict[str, Any]:
        return {
            "step_mode": self.kind,
            "gain": self.gain,
            "step_min": self.step_min,
            "step_max": self.step_max,
            "sentinel": self.sentinel,
        }


class FuzzyStep(StepPolicy):
    """Step produced by an injected fuzzy-inference function.

    ``infer(dp, abs_dx) -> float`` is treated as a pure black box (membership
    functions and rule base live outside the core). Its output is scaled and
    saturated to [0, step_max].
    """

    kind = "fuzzy"

    def __init__(
        self,
        infer: Callable[[float, float], float],
        scale: float = 1.0,
        step_max: float = 5e-2,
        probe: float = 1e-3,
    ) -> None:
        if not callable(infer):
            raise ValueError("infer must be callable")
        self.infer = infer
        self.scale = float(scale)
        self.step_max = float(step_max)
        self.probe = float(probe)

    def size(self, dp: float, dx: float) -> float:
        out = float(self.infer(dp, abs(dx))) * self.scale
        if out != out:
            return 0.0
        return clamp(abs(out), 0.0, self.step_max)

    @property
    def nominal(self) -> float:
        return self.probe

    def get_config(self) -> Dict[str, Any]:
        return {"step_mode": self.kind, "scale": self.scale, "step_max": self.step_max}


def make_policy(
    mode: str = "fixed",
    step: float = 0.01,
    gain: float = 1e-3,
    step_min: float = 1e-3,
    step_max: float = 5e-2,
    infer: Optional[Callable[[float, float], float]] = None,
) -> StepPolicy:
    """Build a policy from flat keyword configuration."""
    mode = mode.lower()
    if mode == "fixed":
        return FixedStep(step)
    if mode == "slope":
        return SlopeStep(gain=gain, step_min=step_min, step_max=step_max)
    if mode == "fuzzy":
        if infer is None:
            raise ValueError("fuzzy step mode requires an 'infer' function")
        return FuzzyStep(infer, step_max=step_max, probe=step_min)
    raise ValueError(f"unknown step mode '{mode}' (expected fixed, slope or fuzzy)")


__all__ = ["StepPolicy", "FixedStep", "SlopeStep", "FuzzyStep", "make_policy"]
