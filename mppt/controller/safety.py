"""
Safety checks for the MPPT controller

Static limits plus optional per-period slew limits, evaluated on every sample
before any engine runs. A violation is fatal to the control loop: the
supervisor records a ``safety_trip`` event and raises
:class:`~mppt.errors.SafetyFault`.
"""
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from ..algorithms.types import Sample


@dataclass
class SafetyLimits:
    """Static safety limits for the PV port.

    Parameters
    vmin, vmax : float
        Allowed PV voltage range [V].
    imax : float
        Maximum PV current [A].
    pmax : float
        Maximum PV power [W].
    dv_max : float | None
        Optional maximum |dV| between consecutive samples [V/period].
    di_max : float | None
        Optional maximum |dI| between consecutive samples [A/period].
    """

    vmin: float = -1.0
    vmax: float = 1000.0
    imax: float = 100.0
    pmax: float = 20000.0
    dv_max: Optional[float] = None
    di_max: Optional[float] = None

    # ---- Frontend helpers ----
    def describe(self) -> Dict[str, Any]:
        return {
            "key": "safety",
            "label": "Safety Limits",
            "params": [
                {"name": "vmin", "type": "number", "unit": "V", "default": float(self.vmin)},
                {"name": "vmax", "type": "number", "unit": "V", "default": float(self.vmax)},
                {"name": "imax", "type": "number", "unit": "A", "default": float(self.imax)},
                {"name": "pmax", "type": "number", "unit": "W", "default": float(self.pmax)},
                {"name": "dv_max", "type": "number", "unit": "V/period", "default": self.dv_max},
                {"name": "di_max", "type": "number", "unit": "A/period", "default": self.di_max},
            ],
        }

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "SafetyLimits":
        lim = cls()
        lim.update(**(d or {}))
        return lim

    def update(self, **kw: Any) -> None:
        """Apply updates; swaps vmin/vmax if they arrive inverted. Unknown keys are ignored."""
        for k in ("vmin", "vmax", "imax", "pmax"):
            if k in kw and kw[k] is not None:
                setattr(self, k, float(kw[k]))
        for k in ("dv_max", "di_max"):
            if k in kw:
                v = kw[k]
                if v is None or (isinstance(v, str) and v.strip().lower() in {"none", "null", ""}):
                    setattr(self, k, None)
                else:
                    setattr(self, k, float(v))
        if self.vmin > self.vmax:
            self.vmin, self.vmax = self.vmax, self.vmin


# Fault codes (short strings for telemetry/logging)
OK = "OK"
UVP = "UVP"    # Under-voltage protection
OVP = "OVP"    # Over-voltage protection
OCP = "OCP"    # Over-current protection
OPP = "OPP"    # Over-power protection
DV = "DV"      # Excessive voltage slew
DI = "DI"      # Excessive current slew

FAULT_LABELS: Dict[str, str] = {
    OK: "OK",
    UVP: "Under-voltage",
    OVP: "Over-voltage",
    OCP: "Over-current",
    OPP: "Over-power",
    DV: "Excessive |dV| per period",
    DI: "Excessive |dI| per period",
}


def check_limits(s: Sample, lim: SafetyLimits, last: Optional[Sample] = None) -> str:
    """Validate a sample; return a fault code or ``"OK"``. Side-effect free."""
    if s.v < lim.vmin:
        return UVP
    if s.v > lim.vmax:
        return OVP
    if s.i > lim.imax:
        return OCP
    if s.p > lim.pmax:
        return OPP
    if last is not None:
        if lim.dv_max is not None and abs(s.v - last.v) > lim.dv_max:
            return DV
        if lim.di_max is not None and abs(s.i - last.i) > lim.di_max:
            return DI
    return OK


__all__ = [
    "SafetyLimits", "check_limits",
    "OK", "UVP", "OVP", "OCP", "OPP", "DV", "DI",
    "FAULT_LABELS",
]
