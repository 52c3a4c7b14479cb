"""
Detectors used by the tracking engines.

OscillationDetector
    Sums the last N perturbation directions (+1/-1). Around the MPP, P&O
    alternates and the sum stays near zero; |sum| <= threshold over a full
    window declares steady state.

IrradianceChangeDetector
    Compares a fresh sample against the sample stored when steady state was
    entered. A relative power deviation (or a V/I deviation in "vi" mode)
    above the threshold flags an environment change.
"""
from __future__ import annotations

from typing import Any, Dict

from ..common import RollingWindow, relative_change
from ..types import Sample


class OscillationDetector:
    """Steady-state detector over a window of direction flags.

    Parameters
    window : int
        Number of recent direction flags considered (>= 2).
    threshold : int
        Steady when |sum of flags| <= threshold over a full window.
    """

    def __init__(self, window: int = 6, threshold: int = 0) -> None:
        if window < 2:
            raise ValueError("window must be >= 2")
        if threshold < 0:
            raise ValueError("threshold must be >= 0")
        self.threshold = int(threshold)
        self._flags = RollingWindow(int(window))

    @property
    def window(self) -> int:
        return self._flags.window

    @property
    def counter(self) -> int:
        return int(self._flags.sum)

    def reset(self) -> None:
        self._flags.reset()

    def update(self, direction: int) -> bool:
        """Feed one direction flag; return True when steady state is reached."""
        if direction == 0:
            return False
        self._flags.update(1.0 if direction > 0 else -1.0)
        return self._flags.full and abs(self._flags.sum) <= self.threshold

    def get_config(self) -> Dict[str, Any]:
        return {"steady_window": self.window, "steady_threshold": self.threshold}


class IrradianceChangeDetector:
    """Environment-change test against a stored steady-state sample.

    Parameters
    threshold : float
        Relative deviation that triggers (e.g. 0.1 = 10 %).
    mode : str
        "power" compares P; "vi" triggers when V or I deviates.
    """

    def __init__(self, threshold: float = 0.1, mode: str = "power") -> None:
        mode = mode.lower()
        if mode not in ("power", "vi"):
            raise ValueError("mode must be 'power' or 'vi'")
        if threshold <= 0.0:
            raise ValueError("threshold must be > 0")
        self.threshold = float(threshold)
        self.mode = mode

    def deviation(self, reference: Sample, sample: Sample) -> float:
        if self.mode == "power":
            return relative_change(sample.power, reference.power)
        dv = relative_change(sample.voltage, reference.voltage)
        di = relative_change(sample.current, reference.current)
        return max(dv, di)

    def changed(self, reference: Sample, sample: Sample) -> bool:
        return self.deviation(reference, sample) > self.threshold

    def get_config(self) -> Dict[str, Any]:
        return {"change_threshold": self.threshold, "change_mode": self.mode}


__all__ = ["OscillationDetector", "IrradianceChangeDetector"]
