"""
Global search interface

Every global search (population metaheuristic or zone scan) implements the
same three operations and never touches hardware:

    initialize(bounds, size) -> Population
    step(population)         -> Population   (bests, then move candidates)
    has_converged(population) -> bool

Fitness is attributed by the caller (see :mod:`.engine`), which applies each
unevaluated candidate's position for one control period and records the
measured sample on it. ``step`` is only called once every candidate has a
fitness for its current position.

Population searches share one engine (:class:`PopulationSearch`) and differ
only by the :class:`UpdateRule` that moves the candidates.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import numpy as np

from ..common import relative_change
from ..types import Bounds, Candidate, NEG_INF, Population


def update_bests(pop: Population) -> None:
    """Greedy personal/global best update.

    Strict comparison: a new fitness replaces the incumbent only when it is
    larger; ties keep the incumbent.
    """
    pop.prev_best_position = pop.best_position
    pop.prev_best_fitness = pop.best_fitness
    for c in pop.candidates:
        if c.fitness is not None and c.fitness > c.best_fitness:
            c.best_fitness = c.fitness
            c.best_position = c.position
    for c in pop.candidates:
        if c.best_fitness > pop.best_fitness:
            pop.best_fitness = c.best_fitness
            pop.best_position = c.best_position


def _anchor(c: Candidate) -> float:
    return c.best_position if c.best_position is not None else c.position


def second_best(pop: Population, exclusion: float = 0.0) -> Optional[float]:
    """Best personal-best position outside the global best's region.

    The region is ``|x - gbest| <= exclusion * span``. If no candidate lies
    outside it, fall back to the unconstrained second-best candidate.
    """
    if pop.best_position is None:
        return None
    ranked = sorted(
        (c for c in pop.candidates if c.best_position is not None),
        key=lambda c: c.best_fitness,
        reverse=True,
    )
    radius = exclusion * pop.bounds.span
    for c in ranked:
        if abs(c.best_position - pop.best_position) > radius:
            return c.best_position
    if len(ranked) >= 2:
        return ranked[1].best_position
    return pop.best_position


class GlobalSearch(ABC):
    """Polymorphic global-search contract."""

    name: str = "base"

    @abstractmethod
    def initialize(self, bounds: Bounds, size: int) -> Population:
        ...

    @abstractmethod
    def step(self, population: Population) -> Population:
        ...

    @abstractmethod
    def has_converged(self, population: Population) -> bool:
        ...

    def next_position(self, population: Population) -> float:
        """Position to apply next period: the first unevaluated candidate, else the best."""
        pending = population.pending()
        if pending:
            return population.candidates[pending[0]].position
        return self.best(population)

    def best(self, population: Population) -> float:
        """Best position found so far (always defined)."""
        if population.best_position is not None:
            return population.best_position
        return population.bounds.mid

    # ---- Frontend helpers ----
    def describe(self) -> Dict[str, Any]:
        return {"key": self.name, "label": self.name.upper(), "params": []}

    def get_config(self) -> Dict[str, Any]:
        return {}

    def update_params(self, **kw: Any) -> None:
        return None


class UpdateRule(ABC):
    """Position-update strategy for :class:`PopulationSearch`."""

    kind: str = "base"

    @abstractmethod
    def update(self, pop: Population, rng: np.random.Generator, progress: float) -> List[float]:
        """Return the proposed (unclamped) positions for every candidate.

        ``progress`` runs from 0 (first iteration) to 1 (budget exhausted).
        """
        ...

    def get_config(self) -> Dict[str, Any]:
        return {}


class PopulationSearch(GlobalSearch):
    """Fixed-size population metaheuristic over a bounded 1-D space.

    Parameters
    rule : UpdateRule
        Variant-specific position update.
    max_iter : int
        Iteration budget; the search always converges when it is exhausted.
    pos_tol, fit_tol : float
        Relative change thresholds on the global-best position and fitness
        between consecutive iterations.
    spread_tol : float, optional
        Population collapse also converges: every personal best within
        ``spread_tol * span`` of the global best and within ``fit_tol`` of its
        fitness. ``None`` disables this path.
    init : str
        "even" spreads the initial population evenly over the range,
        "random" draws it uniformly.
    seed : int, optional
        RNG seed for reproducible runs.
    """

    def __init__(
        self,
        rule: UpdateRule,
        max_iter: int = 20,
        pos_tol: float = 0.01,
        fit_tol: float = 0.01,
        spread_tol: Optional[float] = 0.05,
        init: str = "even",
        seed: Optional[int] = None,
    ) -> None:
        if init not in ("even", "random"):
            raise ValueError("init must be 'even' or 'random'")
        self.rule = rule
        self.max_iter = max(1, int(max_iter))
        self.pos_tol = float(pos_tol)
        self.fit_tol = float(fit_tol)
        self.spread_tol = None if spread_tol is None else float(spread_tol)
        self.init = init
        self.seed = seed
        self.rng = np.random.default_rng(seed)

    def initialize(self, bounds: Bounds, size: int) -> Population:
        size = int(size)
        if size < 1:
            raise ValueError("population size must be >= 1")
        if self.init == "even":
            # interior points so no candidate starts pinned to a bound
            xs = bounds.lo + bounds.span * (np.arange(size) + 0.5) / size
        else:
            xs = self.rng.uniform(bounds.lo, bounds.hi, size)
        cands = [Candidate(position=bounds.clamp(float(x))) for x in xs]
        return Population(candidates=cands, bounds=bounds)

    def step(self, population: Population) -> Population:
        if population.pending():
            raise ValueError("every candidate must be evaluated before a search step")
        update_bests(population)
        population.iteration += 1
        if self.has_converged(population):
            return population
        progress = min(1.0, population.iteration / float(self.max_iter))
        proposed = self.rule.update(population, self.rng, progress)
        for c, x in zip(population.candidates, proposed):
            c.move(population.bounds.clamp(float(x)))
        return population

    def has_converged(self, population: Population) -> bool:
        if population.iteration >= self.max_iter:
            return True
        if population.best_position is None:
            return False
        if self._collapsed(population):
            return True
        if population.prev_best_position is None or population.prev_best_fitness == NEG_INF:
            return False
        d_pos = relative_change(population.best_position, population.prev_best_position)
        d_fit = relative_change(population.best_fitness, population.prev_best_fitness)
        return d_pos <= self.pos_tol and d_fit <= self.fit_tol

    def _collapsed(self, population: Population) -> bool:
        # every personal best sits on the leader, in position and in power
        if self.spread_tol is None:
            return False
        radius = self.spread_tol * population.bounds.span
        for c in population.candidates:
            if c.best_fitness == NEG_INF:
                return False
            if abs(_anchor(c) - population.best_position) > radius:
                return False
            if relative_change(c.best_fitness, population.best_fitness) > self.fit_tol:
                return False
        return True

    def get_config(self) -> Dict[str, Any]:
        cfg = {
            "max_iter": self.max_iter,
            "pos_tol": self.pos_tol,
            "fit_tol": self.fit_tol,
            "spread_tol": self.spread_tol,
            "init": self.init,
            "seed": self.seed,
        }
        cfg.update(self.rule.get_config())
        return cfg

    def update_params(self, **kw: Any) -> None:
        if "max_iter" in kw:
            self.max_iter = max(1, int(kw["max_iter"]))
        if "pos_tol" in kw:
            self.pos_tol = float(kw["pos_tol"])
        if "fit_tol" in kw:
            self.fit_tol = float(kw["fit_tol"])
        if "spread_tol" in kw:
            self.spread_tol = None if kw["spread_tol"] is None else float(kw["spread_tol"])
        if "seed" in kw:
            self.seed = kw["seed"]
            self.rng = np.random.default_rng(self.seed)


__all__ = [
    "GlobalSearch", "UpdateRule", "PopulationSearch",
    "update_bests", "second_best",
]
