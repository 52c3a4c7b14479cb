"""Pytest fixtures shared by the Heliotrack test suites.

These provide simple P(x) models and helpers so tests can be concise and
deterministic without building the full simulation stack.

Run tests from the repo root:
    python -m pytest -q
"""

from __future__ import annotations

from typing import Callable, List, Optional

import pytest

from mppt.algorithms.types import Sample


class ToySource:
    """Single-peak source over a normalized control x in [0, 1].

    P(x) = p_peak * (1 - ((x - x_peak) / width)^2), floored at 0.
    The terminal voltage rises with x (V = v_scale * x), so a tracker with
    ``polarity=+1`` and voltage sensing climbs it directly. At x = 0 the
    source is shorted and delivers ``isc``.
    """

    def __init__(self, x_peak: float = 0.65, p_peak: float = 100.0, width: float = 0.65,
                 v_scale: float = 40.0, isc: float = 5.0):
        self.x_peak = x_peak
        self.p_peak = p_peak
        self.width = width
        self.v_scale = v_scale
        self.isc = isc

    def power(self, x: float) -> float:
        u = (x - self.x_peak) / self.width
        return max(0.0, self.p_peak * (1.0 - u * u))

    def sample(self, x: float, k: int = 0) -> Sample:
        v = self.v_scale * x
        if v <= 1e-9:
            return Sample(0.0, self.isc, k)
        return Sample(v, self.power(x) / v, k)


def dual_peak(x: float) -> float:
    """Two humps on [0, 1]: a local peak of 60 at 0.3, the global peak of 100 at 0.75."""
    def hump(x0: float, w: float, a: float) -> float:
        u = (x - x0) / w
        return a * max(0.0, 1.0 - u * u)

    return max(hump(0.3, 0.15, 60.0), hump(0.75, 0.2, 100.0))


def power_sample(power: float, k: int = 0) -> Sample:
    """Sample carrying ``power`` at unit voltage (fitness-only tests)."""
    return Sample(1.0, power, k)


def run_closed_loop(controller, source: ToySource, x0: float, periods: int,
                    until: Optional[Callable[[], bool]] = None) -> List[float]:
    """Feed ``controller`` samples taken at its own outputs; return the outputs."""
    xs = []
    x = x0
    for k in range(periods):
        a = controller.step(source.sample(x, k))
        x = a.value
        xs.append(x)
        if until is not None and until():
            break
    return xs


# Fixtures
@pytest.fixture
def source() -> ToySource:
    """Fresh single-peak source (peak 100 W at x = 0.65)."""
    return ToySource()


@pytest.fixture
def make_source() -> Callable[..., ToySource]:
    """Factory for sources with non-default peak/short-circuit settings."""
    return ToySource


@pytest.fixture(scope="session")
def closed_loop():
    """Return the closed-loop driver ``run(controller, source, x0, periods, until=None)``."""
    return run_closed_loop


@pytest.fixture(scope="session")
def psample() -> Callable[..., Sample]:
    """Return ``power_sample(power, k=0)`` for fitness-only tests."""
    return power_sample


@pytest.fixture(scope="session")
def multi_peak() -> Callable[[float], float]:
    """Return the dual-peak fitness function f(x) -> P."""
    return dual_peak


@pytest.fixture(scope="session")
def fuzzy_infer() -> Callable[[float, float], float]:
    """Deterministic stand-in for a fuzzy inference block: 1e-3 * |dP| / (|dX| + 1)."""
    def _infer(dp: float, abs_dx: float) -> float:
        return 1e-3 * abs(dp) / (abs_dx + 1.0)

    return _infer
