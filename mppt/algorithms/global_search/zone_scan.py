"""
ZoneScan — module-window voltage scan for partial shading

Under partial shading a series string with bypass diodes shows one local
peak per group of unshaded modules, located near ``kv * v_module * j`` for
``j`` active modules. The scan visits those neighbourhoods in order:

1) Windows are indexed by ``m``, the number of bypassed modules. Window ``m``
   spans ``kv * v_module * (j -/+ half_width)`` with ``j = modules - m``. The
   scan starts at ``m = modules - 1`` (lowest voltages) and decrements ``m``
   until the windows exceed the array's maximum voltage.
2) Inside a window the reference voltage rises in fixed increments. The
   window ends early once power falls ``drop_frac`` below the window's peak.
3) The whole scan ends as soon as the measured current drops below
   ``best_power / v_max``: any point at a higher voltage carries less current,
   so it cannot beat the best power already seen.

The search works on a single probe candidate and needs a voltage-reference
operating point (``bounds`` in volts).
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from ..types import Bounds, Candidate, NEG_INF, Population
from .base import GlobalSearch, update_bests


class ZoneScan(GlobalSearch):
    """Sequential window scan over the P–V curve.

    Parameters
    modules : int
        Number of series modules (one potential peak each).
    v_module : float, optional
        Module open-circuit voltage [V]; defaults to ``bounds.hi / modules``.
    kv : float
        Vmpp/Voc ratio of a module.
    half_width : float
        Window half-width in units of ``kv * v_module``.
    increment : float
        Sweep increment as a fraction of ``v_module``.
    drop_frac : float
        Relative drop below the window peak that ends the window.
    max_points : int
        Hard budget on scan points.
    """

    name = "zone_scan"

    def __init__(
        self,
        modules: int = 4,
        v_module: Optional[float] = None,
        kv: float = 0.8,
        half_width: float = 0.5,
        increment: float = 0.02,
        drop_frac: float = 0.03,
        max_points: int = 400,
    ) -> None:
        if modules < 1:
            raise ValueError("modules must be >= 1")
        if increment <= 0.0:
            raise ValueError("increment must be > 0")
        self.modules = int(modules)
        self.v_module = None if v_module is None else float(v_module)
        self.kv = float(kv)
        self.half_width = float(half_width)
        self.increment = float(increment)
        self.drop_frac = float(drop_frac)
        self.max_points = max(1, int(max_points))

    # ---- windows ----
    def _v_module(self, bounds: Bounds) -> float:
        return self.v_module if self.v_module is not None else bounds.hi / self.modules

    def window(self, bounds: Bounds, m: int) -> Tuple[float, float]:
        """Voltage window for ``m`` bypassed modules (unclamped upper edge)."""
        v_peak = self.kv * self._v_module(bounds)
        j = self.modules - m
        lo = v_peak * (j - self.half_width)
        hi = v_peak * (j + self.half_width)
        return max(lo, bounds.lo), hi

    def windows(self, bounds: Bounds) -> List[Tuple[float, float]]:
        out = []
        for m in range(self.modules - 1, -1, -1):
            lo, hi = self.window(bounds, m)
            if lo >= bounds.hi:
                break
            out.append((lo, min(hi, bounds.hi)))
        return out

    # ---- GlobalSearch ----
    def initialize(self, bounds: Bounds, size: int = 1) -> Population:
        m = self.modules - 1
        lo, hi = self.window(bounds, m)
        probe = Candidate(position=bounds.clamp(lo))
        state: Dict[str, Any] = {
            "m": m,
            "window": (lo, min(hi, bounds.hi)),
            "local_best": NEG_INF,
            "local_best_position": None,
            "v_max": bounds.hi,
            "peaks": [],
            "done": False,
        }
        return Population(candidates=[probe], bounds=bounds, state=state)

    def step(self, population: Population) -> Population:
        if population.pending():
            raise ValueError("the scan probe must be evaluated before a search step")
        st = population.state
        c = population.candidates[0]
        update_bests(population)
        population.iteration += 1
        if st["done"]:
            return population

        p = float(c.fitness)
        if c.sample is not None and population.best_fitness > 0.0:
            floor = population.best_fitness / max(st["v_max"], 1e-9)
            if c.sample.current < floor:
                self._close_window(st)
                st["done"] = True
                return population

        if p > st["local_best"]:
            st["local_best"] = p
            st["local_best_position"] = c.position
        elif p < st["local_best"] * (1.0 - self.drop_frac):
            self._advance(population)
            return population

        nxt = c.position + self.increment * self._v_module(population.bounds)
        if nxt > st["window"][1]:
            self._advance(population)
        else:
            c.move(population.bounds.clamp(nxt))
        return population

    def has_converged(self, population: Population) -> bool:
        return bool(population.state.get("done")) or population.iteration >= self.max_points

    # ---- internals ----
    def _close_window(self, st: Dict[str, Any]) -> None:
        if st["local_best_position"] is not None:
            st["peaks"].append((st["local_best_position"], st["local_best"]))

    def _advance(self, population: Population) -> None:
        st = population.state
        self._close_window(st)
        st["m"] -= 1
        st["local_best"] = NEG_INF
        st["local_best_position"] = None
        if st["m"] < 0:
            st["done"] = True
            return
        lo, hi = self.window(population.bounds, st["m"])
        if lo >= population.bounds.hi:
            st["done"] = True
            return
        st["window"] = (lo, min(hi, population.bounds.hi))
        population.candidates[0].move(population.bounds.clamp(lo))

    # ---- Frontend helpers ----
    def describe(self) -> Dict[str, Any]:
        return {
            "key": self.name,
            "label": "Zone scan",
            "params": [
                {"name": "modules", "type": "integer", "min": 1, "max": 64, "step": 1, "default": self.modules},
                {"name": "kv", "type": "number", "min": 0.5, "max": 0.95, "step": 0.01, "default": self.kv, "help": "Vmpp/Voc of one module"},
                {"name": "increment", "type": "number", "min": 1e-3, "max": 0.5, "step": 1e-3, "default": self.increment, "help": "sweep step / v_module"},
                {"name": "drop_frac", "type": "number", "min": 0.0, "max": 0.5, "step": 1e-3, "default": self.drop_frac},
            ],
        }

    def get_config(self) -> Dict[str, Any]:
        return {
            "modules": self.modules,
            "v_module": self.v_module,
            "kv": self.kv,
            "half_width": self.half_width,
            "increment": self.increment,
            "drop_frac": self.drop_frac,
            "max_points": self.max_points,
        }

    def update_params(self, **kw: Any) -> None:
        if "modules" in kw:
            self.modules = max(1, int(kw["modules"]))
        if "v_module" in kw:
            self.v_module = None if kw["v_module"] is None else float(kw["v_module"])
        for k in ("kv", "half_width", "increment", "drop_frac"):
            if k in kw:
                setattr(self, k, float(kw[k]))


__all__ = ["ZoneScan"]
