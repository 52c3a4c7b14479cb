"""
Numeric helpers shared by the trackers, searches and the supervisor.

None of these raise on degenerate input: a zero denominator yields a
sentinel, a zero reference is floored, an out-of-range value saturates.
"""
from __future__ import annotations

from collections import deque
from typing import Deque

# Below this magnitude a denominator is treated as zero
EPS = 1e-12


def clamp(x: float, a: float, b: float) -> float:
    """Saturate ``x`` into [a, b]."""
    return a if x < a else b if x > b else x


def deadband(x: float, eps: float = 0.0) -> float:
    """``x``, or 0.0 when it is within ±eps (sensor noise on dP)."""
    return 0.0 if abs(x) <= abs(eps) else x


def safe_div(n: float, d: float, default: float = 0.0) -> float:
    # near-zero denominators map to the caller's sentinel
    return default if abs(d) < EPS else n / d


def relative_change(new: float, old: float, floor: float = 1e-9) -> float:
    """|new - old| / |old| with |old| floored, so a zero reference never raises."""
    return abs(new - old) / max(abs(old), floor)


class RollingWindow:
    """Running sum over the last ``window`` values pushed."""

    def __init__(self, window: int):
        if window <= 0:
            raise ValueError("window must be > 0")
        self.window = int(window)
        self._vals: Deque[float] = deque()
        self.sum = 0.0

    def reset(self) -> None:
        self._vals.clear()
        self.sum = 0.0

    def update(self, x: float) -> float:
        self._vals.append(float(x))
        self.sum += float(x)
        if len(self._vals) > self.window:
            self.sum -= self._vals.popleft()
        return self.sum

    @property
    def full(self) -> bool:
        return len(self._vals) >= self.window
