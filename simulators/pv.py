"""
PV source model for the simulation harness.

Single-diode module model

    I = Iph - I0 * (exp((V + I*Rs) / nVt) - 1) - (V + I*Rs) / Rsh

solved explicitly with the Lambert W function in both directions (V(I) and
I(V)), so no per-point Newton iteration is needed. Photocurrent and
saturation current follow irradiance and temperature the usual way:

    Iph = (Isc + alpha_Isc * (T - 25)) * G / 1000
    I0(T) = I0_ref * (T/Tref)^3 * exp(-Eg/k * (1/T - 1/Tref))

A :class:`PVArray` is a series string of modules, each with its own
irradiance and a reverse-wired bypass diode. With uneven irradiance the
bypass diodes produce the multi-peak P–V curves the global searches target.
"""
import math
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
from scipy.special import lambertw

k = 1.380649e-23  # J/K
q = 1.602176634e-19  # C
EG_EV = 1.12  # silicon bandgap
T_REF = 25.0 + 273.15

# Above this exponent exp() overflows; W(e^x) is solved in log space instead
_W_EXP_LIMIT = 500.0


def _wexp(x: np.ndarray) -> np.ndarray:
    """Return W(exp(x)) elementwise without overflowing for large ``x``."""
    x = np.asarray(x, dtype=float)
    out = np.empty_like(x)
    small = x < _W_EXP_LIMIT
    if np.any(small):
        out[small] = lambertw(np.exp(x[small])).real
    big = ~small
    if np.any(big):
        xb = x[big]
        # Newton on w + ln(w) = x
        w = xb - np.log(xb)
        for _ in range(8):
            w = w - (w + np.log(w) - xb) / (1.0 + 1.0 / w)
        out[big] = w
    return out


class PVModule:
    """Single-diode PV module.

    Parameters are module-level datasheet values at STC (1000 W/m^2, 25 C).
    ``cells`` scales the thermal voltage (cells in series).
    """

    def __init__(
        self,
        isc_ref: float = 8.5,
        voc_ref: float = 37.5,
        cells: int = 60,
        diode_ideality: float = 1.3,
        r_s: float = 0.3,
        r_sh: float = 300.0,
        isc_temp_coeff: float = 0.004,   # A/°C
        irradiance: float = 1000.0,
        temperature_c: float = 25.0,
    ):
        if not (math.isfinite(r_sh) and r_sh > 0.0):
            raise ValueError("r_sh must be finite and > 0")
        if r_s < 0.0:
            raise ValueError("r_s must be >= 0")
        self.isc_ref = float(isc_ref)
        self.voc_ref = float(voc_ref)
        self.cells = int(cells)
        self.diode_ideality = float(diode_ideality)
        self.r_s = float(r_s)
        self.r_sh = float(r_sh)
        self.isc_temp_coeff = float(isc_temp_coeff)

        nvt_ref = self.cells * self.diode_ideality * k * T_REF / q
        denom = math.exp(self.voc_ref / nvt_ref) - 1.0
        self.I0_ref = (self.isc_ref - self.voc_ref / self.r_sh) / max(denom, 1e-30)

        self.irradiance = float(irradiance)
        self.temperature_c = float(temperature_c)
        self._update_cache()

    def set_conditions(self, irradiance: float, temperature_c: Optional[float] = None) -> None:
        self.irradiance = max(0.0, float(irradiance))
        if temperature_c is not None:
            self.temperature_c = float(temperature_c)
        self._update_cache()

    def _update_cache(self) -> None:
        t_k = self.temperature_c + 273.15
        self.nvt = self.cells * self.diode_ideality * k * t_k / q
        self.Iph = (self.isc_ref + self.isc_temp_coeff * (self.temperature_c - 25.0)) * self.irradiance / 1000.0
        self.I0 = self.I0_ref * (t_k / T_REF) ** 3 * math.exp(-(EG_EV * q / k) * (1.0 / t_k - 1.0 / T_REF))

    def v_at_i(self, current: Union[float, np.ndarray]) -> np.ndarray:
        """Terminal voltage at the given current(s) (can be negative past Isc)."""
        i = np.asarray(current, dtype=float)
        a = self.Iph + self.I0 - i
        x = math.log(self.I0 * self.r_sh / self.nvt) + self.r_sh * a / self.nvt
        return self.r_sh * a - i * self.r_s - self.nvt * _wexp(x)

    def i_at_v(self, voltage: Union[float, np.ndarray]) -> np.ndarray:
        """Terminal current at the given voltage(s)."""
        v = np.asarray(voltage, dtype=float)
        if self.r_s == 0.0:
            return self.Iph - self.I0 * np.expm1(v / self.nvt) - v / self.r_sh
        rs, rsh, nvt = self.r_s, self.r_sh, self.nvt
        tot = rs + rsh
        x = math.log(rs * rsh * self.I0 / (nvt * tot)) + rsh * (rs * self.Iph + rs * self.I0 + v) / (nvt * tot)
        return (rsh * (self.Iph + self.I0) - v) / tot - (nvt / rs) * _wexp(x)

    def voc(self) -> float:
        return float(self.v_at_i(0.0))

    def isc(self) -> float:
        return float(self.i_at_v(0.0))


class BypassDiode:
    """Reverse-wired bypass diode: V(I) = -(n*Vt*log1p(I/Is) + I*Rs) for I > 0."""

    def __init__(self, ideality_factor: float = 1.2, series_resistance: float = 0.005, is_ref: float = 1e-9,
                 temperature_c: float = 25.0):
        self.ideality_factor = float(ideality_factor)
        self.series_resistance = float(series_resistance)
        self.is_ref = float(is_ref)
        self.set_temperature(temperature_c)

    def set_temperature(self, temperature_c: float) -> None:
        t_k = float(temperature_c) + 273.15
        self.thermal_voltage = k * t_k / q
        self.saturation_current = self.is_ref * (t_k / T_REF) ** 3

    def v_at_i(self, current: Union[float, np.ndarray]) -> np.ndarray:
        i = np.asarray(current, dtype=float)
        n_vt = self.ideality_factor * self.thermal_voltage
        with np.errstate(invalid="ignore"):
            drop = n_vt * np.log1p(np.maximum(i, 0.0) / self.saturation_current) + i * self.series_resistance
        return np.where(i > 0.0, -drop, -np.inf)


class PVArray:
    """Series string of modules with per-module irradiance and bypass diodes.

    Parameters
    modules : int or sequence of PVModule
        Module count (built from ``module_kwargs``) or ready-made modules.
    bypass : bool
        Fit every module with a bypass diode.
    points : int
        Current-grid resolution of the cached I–V curve.
    """

    def __init__(self, modules: Union[int, Sequence[PVModule]] = 4, bypass: bool = True, points: int = 1500,
                 **module_kwargs):
        if isinstance(modules, int):
            if modules < 1:
                raise ValueError("an array needs at least one module")
            self.modules: List[PVModule] = [PVModule(**module_kwargs) for _ in range(modules)]
        else:
            self.modules = list(modules)
        self.diodes = [BypassDiode() if bypass else None for _ in self.modules]
        self.points = int(points)
        self._curve: Optional[Tuple[np.ndarray, np.ndarray]] = None
        self._mpp: Optional[Tuple[float, float, float]] = None

    @property
    def n_modules(self) -> int:
        return len(self.modules)

    def set_conditions(self, irradiance: Union[float, Sequence[float]], temperature_c: Optional[float] = None) -> None:
        """Set one irradiance for all modules or one per module."""
        if np.isscalar(irradiance):
            gs = [float(irradiance)] * self.n_modules
        else:
            gs = [float(g) for g in irradiance]
            if len(gs) != self.n_modules:
                raise ValueError(f"expected {self.n_modules} irradiance values, got {len(gs)}")
        for m, d, g in zip(self.modules, self.diodes, gs):
            m.set_conditions(g, temperature_c)
            if d is not None and temperature_c is not None:
                d.set_temperature(temperature_c)
        self._curve = None
        self._mpp = None

    def irradiances(self) -> List[float]:
        return [m.irradiance for m in self.modules]

    def v_at_i(self, current: Union[float, np.ndarray]) -> np.ndarray:
        i = np.asarray(current, dtype=float)
        total = np.zeros_like(i)
        for m, d in zip(self.modules, self.diodes):
            v = m.v_at_i(i)
            if d is not None:
                v = np.maximum(v, d.v_at_i(i))
            total = total + v
        return total

    def iv_curve(self) -> Tuple[np.ndarray, np.ndarray]:
        """(V, I) arrays with V ascending, spanning V < 0 to Voc."""
        if self._curve is None:
            i_max = max(max(m.Iph for m in self.modules), 1e-6) * 1.05 + 1e-3
            i = np.linspace(0.0, i_max, self.points)
            # cluster points near each module's Isc, where the curve bends
            knees = np.concatenate([np.linspace(0.9, 1.01, 60) * m.Iph for m in self.modules])
            i = np.unique(np.concatenate([i, knees[knees >= 0.0]]))
            v = self.v_at_i(i)
            order = np.argsort(v, kind="stable")
            self._curve = (v[order], i[order])
        return self._curve

    def i_at_v(self, voltage: float) -> float:
        v, i = self.iv_curve()
        return float(np.interp(max(float(voltage), 0.0), v, i, right=0.0))

    def voc(self) -> float:
        return float(self.v_at_i(0.0))

    def isc(self) -> float:
        return self.i_at_v(0.0)

    def pv_curve(self, points: int = 2000) -> Tuple[np.ndarray, np.ndarray]:
        """Dense (V, P) curve over [0, Voc]."""
        vs = np.linspace(0.0, self.voc(), int(points))
        v, i = self.iv_curve()
        return vs, vs * np.interp(vs, v, i, right=0.0)

    def mpp(self) -> Tuple[float, float, float]:
        """Global maximum power point (V, I, P) by dense sweep."""
        if self._mpp is None:
            vs, ps = self.pv_curve()
            kmax = int(np.argmax(ps))
            self._mpp = (float(vs[kmax]), float(ps[kmax] / vs[kmax]) if vs[kmax] > 0 else 0.0, float(ps[kmax]))
        return self._mpp

    def peaks(self, min_rel: float = 0.02) -> List[Tuple[float, float]]:
        """Local maxima (V, P) of the P–V curve above ``min_rel * Pmax``."""
        vs, ps = self.pv_curve()
        pmax = float(ps.max()) if ps.size else 0.0
        out = []
        for j in range(1, len(ps) - 1):
            if ps[j] >= ps[j - 1] and ps[j] > ps[j + 1] and ps[j] >= min_rel * pmax:
                out.append((float(vs[j]), float(ps[j])))
        return out


__all__ = ["PVModule", "BypassDiode", "PVArray", "k", "q", "EG_EV"]
