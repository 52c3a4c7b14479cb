"""
GlobalSearchEngine — per-period driver for a GlobalSearch

A :class:`~.base.GlobalSearch` is a pure function of its population; this
engine binds it to the control loop:

  * each period it attributes the measured sample to the candidate applied in
    the previous period, then commands the next unevaluated candidate;
  * once every candidate is evaluated it advances the search one iteration;
  * on convergence it outputs the best position with ``settled=True`` and keeps
    holding it;
  * an environment change (external :meth:`restart`, or its own large power
    delta at a revisited best point) discards the population and starts over.

Restarts never carry candidates, samples or bests across episodes.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..common import relative_change
from ..types import Action, Bounds, Candidate, Population, Sample
from .base import GlobalSearch


class GlobalSearchEngine:
    """Evaluation driver for one global search.

    Parameters
    search : GlobalSearch
        Strategy object (PSO, Levy, zone scan...).
    lo, hi : float
        Operating-point range.
    size : int
        Population size (ignored by single-probe searches).
    restart_threshold : float
        Relative power deviation at a revisited best point that is taken as an
        environment change.
    """

    def __init__(
        self,
        search: GlobalSearch,
        lo: float = 0.0,
        hi: float = 1.0,
        size: int = 4,
        restart_threshold: float = 0.25,
    ) -> None:
        self.search = search
        self.bounds = Bounds(float(lo), float(hi))
        self.size = int(size)
        self.restart_threshold = float(restart_threshold)
        self.population: Optional[Population] = None
        self.episode = 0
        self.events: List[Dict[str, Any]] = []
        self._pending: Optional[int] = None
        self._locked = False

    # Lifecycle
    def reset(self) -> None:
        """Forget the population; the next step starts a fresh episode."""
        self.population = None
        self._pending = None
        self._locked = False

    def restart(self, reason: str = "external", k: Optional[int] = None) -> Population:
        """Discard all search state and initialize a fresh population."""
        self.population = self.search.initialize(self.bounds, self.size)
        self._pending = None
        self._locked = False
        self.episode += 1
        self.events.append({"k": k, "type": "search_restart", "reason": reason, "episode": self.episode})
        return self.population

    @property
    def converged(self) -> bool:
        return self._locked

    @property
    def best_position(self) -> Optional[float]:
        return None if self.population is None else self.population.best_position

    @property
    def best_fitness(self) -> float:
        return float("-inf") if self.population is None else self.population.best_fitness

    # Core step
    def step(self, sample: Sample) -> Action:
        """Consume this period's sample and return the next operating point."""
        if self.population is None:
            self.restart("init", sample.index)
            return self._command(sample)

        pop = self.population
        if self._pending is not None:
            c = pop.candidates[self._pending]
            if self._stale(c, sample):
                self.restart("power_delta", sample.index)
                return self._command(sample, disturbed=True)
            c.record(sample)
            self._pending = None
        elif self._locked:
            best = self.search.best(pop)
            if pop.best_fitness > 0.0 and relative_change(sample.power, pop.best_fitness) > self.restart_threshold:
                self.restart("power_delta", sample.index)
                return self._command(sample, disturbed=True)
            return self._emit(best, sample, phase="lock", settled=True)
        return self._command(sample)

    # Internals
    def _stale(self, c: Candidate, sample: Sample) -> bool:
        # a candidate re-measured at its personal best must reproduce its power
        if c.best_position is None or c.best_fitness <= 0.0:
            return False
        if abs(c.position - c.best_position) > 1e-3 * max(self.bounds.span, 1e-12):
            return False
        return relative_change(sample.power, c.best_fitness) > self.restart_threshold

    def _command(self, sample: Sample, disturbed: bool = False) -> Action:
        pop = self.population
        # bounded: every step advances the iteration budget
        while not pop.pending():
            pop = self.search.step(pop)
            self.population = pop
            if self.search.has_converged(pop):
                self._locked = True
                self.events.append({
                    "k": sample.index,
                    "type": "search_converged",
                    "iteration": pop.iteration,
                    "best_position": pop.best_position,
                    "best_fitness": pop.best_fitness,
                })
                return self._emit(self.search.best(pop), sample, phase="lock", settled=True, disturbed=disturbed)
        k = pop.pending()[0]
        self._pending = k
        x = self.bounds.clamp(pop.candidates[k].position)
        return self._emit(x, sample, phase="explore", idx=k, disturbed=disturbed)

    def _emit(self, x: float, sample: Sample, phase: str, settled: bool = False,
              disturbed: bool = False, idx: Optional[int] = None) -> Action:
        pop = self.population
        dbg = {
            "algo": self.search.name,
            "phase": phase,
            "p": sample.power,
            "iter": pop.iteration,
            "episode": self.episode,
            "best_position": pop.best_position,
            "best_fitness": None if pop.best_position is None else pop.best_fitness,
        }
        if idx is not None:
            dbg["idx"] = idx
        return Action(value=self.bounds.clamp(x), settled=settled, disturbed=disturbed, debug=dbg)

    # ---- Frontend helpers ----
    def get_events(self, clear: bool = True) -> List[Dict[str, Any]]:
        ev = list(self.events)
        if clear:
            self.events.clear()
        return ev

    def describe(self) -> Dict[str, Any]:
        desc = self.search.describe()
        desc["params"] = list(desc.get("params", [])) + [
            {"name": "size", "type": "integer", "min": 1, "max": 32, "step": 1, "default": self.size},
            {"name": "restart_threshold", "type": "number", "min": 0.01, "max": 1.0, "step": 0.01, "default": self.restart_threshold},
        ]
        return desc

    def get_config(self) -> Dict[str, Any]:
        cfg = self.search.get_config()
        cfg.update({"lo": self.bounds.lo, "hi": self.bounds.hi, "size": self.size, "restart_threshold": self.restart_threshold})
        return cfg

    def update_params(self, **kw: Any) -> None:
        if "size" in kw:
            self.size = max(1, int(kw.pop("size")))
        if "restart_threshold" in kw:
            self.restart_threshold = float(kw.pop("restart_threshold"))
        lo = kw.pop("lo", self.bounds.lo)
        hi = kw.pop("hi", self.bounds.hi)
        self.bounds = Bounds(float(lo), float(hi))
        self.search.update_params(**kw)


__all__ = ["GlobalSearchEngine"]
