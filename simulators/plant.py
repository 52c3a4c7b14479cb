"""
Converter plants: map a control value onto a PV operating point.

    VoltagePlant  control = PV voltage reference [V]; an optional first-order
                  lag models the inner voltage loop.
    BoostPlant    control = boost duty cycle D; the PV array sees the load
                  reflected through the converter, R_in = R_load * (1 - D)^2,
                  and operates where its I–V curve meets I = V / R_in.

Raising the duty of a boost converter lowers the PV voltage, so trackers
driving a BoostPlant need ``polarity=-1``.
"""
import logging
from typing import Tuple

from scipy.optimize import brentq

from .pv import PVArray

logger = logging.getLogger(__name__)


class VoltagePlant:
    """Voltage-reference plant (ideal or first-order inner loop)."""

    kind = "voltage"
    polarity = 1

    def __init__(self, array: PVArray, lag: float = 0.0, v0: float = 0.0):
        if not 0.0 <= lag < 1.0:
            raise ValueError("lag must be in [0, 1)")
        self.array = array
        self.lag = float(lag)
        self.u = float(v0)
        self.v = float(v0)
        self.i = 0.0
        self.settle()

    def control_range(self) -> Tuple[float, float]:
        return 0.0, self.array.voc()

    def apply(self, u: float) -> None:
        self.u = float(u)

    def settle(self) -> Tuple[float, float]:
        self.v = max(0.0, self.v + (1.0 - self.lag) * (self.u - self.v))
        self.i = self.array.i_at_v(self.v)
        return self.v, self.i


class BoostPlant:
    """Boost converter with a resistive load, duty-cycle controlled."""

    kind = "boost"
    polarity = -1

    def __init__(self, array: PVArray, r_load: float = 60.0, d_max: float = 0.95, d0: float = 0.5):
        if r_load <= 0.0:
            raise ValueError("r_load must be > 0")
        if not 0.0 < d_max < 1.0:
            raise ValueError("d_max must be in (0, 1)")
        self.array = array
        self.r_load = float(r_load)
        self.d_max = float(d_max)
        self.u = float(d0)
        self.v = 0.0
        self.i = 0.0
        self.settle()

    def control_range(self) -> Tuple[float, float]:
        return 0.0, self.d_max

    def apply(self, u: float) -> None:
        self.u = min(max(float(u), 0.0), 1.0)

    def input_resistance(self) -> float:
        return self.r_load * (1.0 - self.u) ** 2

    def settle(self) -> Tuple[float, float]:
        r_in = self.input_resistance()
        voc = self.array.voc()
        isc = self.array.isc()
        if voc <= 1e-9 or isc <= 1e-9:
            logger.debug("no photocurrent at D=%.3f; operating point pinned at the origin", self.u)
            self.v, self.i = 0.0, 0.0
        elif r_in <= 1e-9:
            # input shorted through the switch
            self.v, self.i = 0.0, isc
        else:
            # i_at_v(voc) == 0, so the bracket always changes sign
            f = lambda v: self.array.i_at_v(v) - v / r_in
            self.v = float(brentq(f, 0.0, voc, xtol=1e-9))
            self.i = self.array.i_at_v(self.v)
        return self.v, self.i


def make_plant(kind: str, array: PVArray, **kwargs):
    kind = kind.lower()
    if kind in ("voltage", "vref"):
        return VoltagePlant(array, **kwargs)
    if kind in ("boost", "duty"):
        return BoostPlant(array, **kwargs)
    raise ValueError(f"Unknown plant '{kind}'. Available: voltage, boost")


__all__ = ["VoltagePlant", "BoostPlant", "make_plant"]
