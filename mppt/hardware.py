"""
Sampler/Actuator boundary

The control core touches hardware only through :class:`HardwareInterface`
(four operations). :class:`SamplerActuator` wraps it into the two calls the
control loop uses every period:

    sample()        -> Sample      blocking V then I read, P = V*I
    actuate(value)  -> float       clamp, apply, wait for settling

Failures surface as :class:`~mppt.errors.SensorError` /
:class:`~mppt.errors.ActuationError`; the loop treats both as fatal.
"""
from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Optional

from .algorithms.types import Bounds, Sample
from .errors import ActuationError, SensorError


class HardwareInterface(ABC):
    """Narrow hardware contract (real converter, bench rig or simulator)."""

    @abstractmethod
    def measure_voltage(self) -> float:
        ...

    @abstractmethod
    def measure_current(self) -> float:
        ...

    @abstractmethod
    def apply_control(self, value: float) -> None:
        """Write an already-clamped control value (duty, V_ref or I_ref)."""
        ...

    @abstractmethod
    def wait(self, period: float) -> None:
        """Advance to the next sampling instant (may be simulated time)."""
        ...


class SamplerActuator:
    """Period-level sampling and clamped actuation.

    Parameters
    hw : HardwareInterface
        Underlying hardware.
    bounds : Bounds
        Range of the control value; :meth:`actuate` clamps into it.
    period : float
        Sampling period [s].
    settle_periods : int
        Periods to wait after each actuation before the next sample.
    """

    def __init__(self, hw: HardwareInterface, bounds: Bounds, period: float = 1e-3, settle_periods: int = 1):
        if period < 0.0:
            raise ValueError("period must be >= 0")
        if settle_periods < 1:
            raise ValueError("settle_periods must be >= 1")
        self.hw = hw
        self.bounds = bounds
        self.period = float(period)
        self.settle_periods = int(settle_periods)
        self.index = 0
        self.last_value: Optional[float] = None

    def sample(self) -> Sample:
        try:
            v = float(self.hw.measure_voltage())
        except Exception as e:
            raise SensorError(f"voltage read failed: {e}", channel="v") from e
        try:
            i = float(self.hw.measure_current())
        except Exception as e:
            raise SensorError(f"current read failed: {e}", channel="i") from e
        if not math.isfinite(v):
            raise SensorError(f"non-finite voltage reading {v!r}", channel="v")
        if not math.isfinite(i):
            raise SensorError(f"non-finite current reading {i!r}", channel="i")
        s = Sample(v, i, self.index)
        self.index += 1
        return s

    def actuate(self, value: float) -> float:
        """Clamp, apply and wait; returns the value actually applied."""
        x = self.bounds.clamp(float(value))
        try:
            self.hw.apply_control(x)
        except Exception as e:
            raise ActuationError(f"apply_control({x}) failed: {e}") from e
        self.last_value = x
        self.hw.wait(self.settle_periods * self.period)
        return x

    def hold(self) -> Optional[float]:
        """Re-apply the last safe value (no wait). Returns it, or None if nothing was applied yet."""
        if self.last_value is not None:
            try:
                self.hw.apply_control(self.last_value)
            except Exception as e:
                raise ActuationError(f"hold at {self.last_value} failed: {e}") from e
        return self.last_value


__all__ = ["HardwareInterface", "SamplerActuator"]
