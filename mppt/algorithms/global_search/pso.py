"""
PSO — Particle Swarm Optimization

Population search with the classic velocity/position update. The inertia
weight decays linearly with the iteration index, moving the swarm from
exploration to exploitation. An optional third attractor pulls particles
toward the best region *outside* the global best's neighbourhood (dual-best
variants); when no such region exists the unconstrained second-best particle
is used instead.

Evaluation is sequential: the engine applies one particle per control period
and attributes the measured power to it, so one swarm iteration costs
``particles`` periods.

Notes
- Keep the swarm small (4 particles is the usual hardware choice).
- The velocity is clamped to ``v_max * span`` for stability.
"""
from typing import Any, Dict, List, Optional

import numpy as np

from ..common import clamp
from ..types import Population
from .base import PopulationSearch, UpdateRule, second_best


class PSORule(UpdateRule):
    """Velocity/position update with linearly decaying inertia.

    Parameters
    w_max, w_min : float
        Inertia weight at the first and last iteration.
    c1, c2 : float
        Cognitive (personal best) and social (global best) coefficients.
    c3 : float
        Weight of the second-best-region attractor (0 disables it).
    exclusion : float
        Radius of the global best's region as a fraction of the span.
    v_max : float
        Velocity clamp as a fraction of the span.
    """

    kind = "pso"

    def __init__(
        self,
        w_max: float = 0.9,
        w_min: float = 0.4,
        c1: float = 1.2,
        c2: float = 1.6,
        c3: float = 0.0,
        exclusion: float = 0.1,
        v_max: float = 0.3,
    ) -> None:
        self.w_max, self.w_min = float(w_max), float(w_min)
        self.c1, self.c2, self.c3 = float(c1), float(c2), float(c3)
        self.exclusion = float(exclusion)
        self.v_max = float(v_max)

    def inertia(self, progress: float) -> float:
        return self.w_max - (self.w_max - self.w_min) * clamp(progress, 0.0, 1.0)

    def update(self, pop: Population, rng: np.random.Generator, progress: float) -> List[float]:
        w = self.inertia(progress)
        g = pop.best_position
        sb = second_best(pop, self.exclusion) if self.c3 > 0.0 else None
        vlim = self.v_max * pop.bounds.span

        out: List[float] = []
        for c in pop.candidates:
            pb = c.best_position if c.best_position is not None else c.position
            gb = g if g is not None else c.position
            r1, r2, r3 = rng.random(3)
            v = w * c.velocity + self.c1 * r1 * (pb - c.position) + self.c2 * r2 * (gb - c.position)
            if sb is not None:
                v += self.c3 * r3 * (sb - c.position)
            c.velocity = clamp(v, -vlim, vlim)
            out.append(c.position + c.velocity)
        return out

    def get_config(self) -> Dict[str, Any]:
        return {
            "w_max": self.w_max,
            "w_min": self.w_min,
            "c1": self.c1,
            "c2": self.c2,
            "c3": self.c3,
            "exclusion": self.exclusion,
            "v_max": self.v_max,
        }


class PSO(PopulationSearch):
    """PSO global search (see :class:`PSORule` for the update)."""

    name = "pso"

    def __init__(
        self,
        w_max: float = 0.9,
        w_min: float = 0.4,
        c1: float = 1.2,
        c2: float = 1.6,
        c3: float = 0.0,
        exclusion: float = 0.1,
        v_max: float = 0.3,
        max_iter: int = 20,
        pos_tol: float = 0.01,
        fit_tol: float = 0.01,
        spread_tol: Optional[float] = 0.05,
        init: str = "even",
        seed: Optional[int] = 7,
    ) -> None:
        rule = PSORule(w_max, w_min, c1, c2, c3, exclusion, v_max)
        super().__init__(rule, max_iter, pos_tol, fit_tol, spread_tol, init, seed)

    def describe(self) -> Dict[str, Any]:
        return {
            "key": self.name,
            "label": "PSO",
            "params": [
                {"name": "w_max", "type": "number", "min": 0.0, "max": 1.5, "step": 0.01, "default": self.rule.w_max},
                {"name": "w_min", "type": "number", "min": 0.0, "max": 1.5, "step": 0.01, "default": self.rule.w_min},
                {"name": "c1", "type": "number", "min": 0.0, "max": 4.0, "step": 0.05, "default": self.rule.c1, "help": "cognitive pull"},
                {"name": "c2", "type": "number", "min": 0.0, "max": 4.0, "step": 0.05, "default": self.rule.c2, "help": "social pull"},
                {"name": "c3", "type": "number", "min": 0.0, "max": 4.0, "step": 0.05, "default": self.rule.c3, "help": "second-best region pull"},
                {"name": "max_iter", "type": "integer", "min": 1, "max": 200, "step": 1, "default": self.max_iter},
                {"name": "pos_tol", "type": "number", "min": 1e-4, "max": 0.2, "step": 1e-3, "default": self.pos_tol},
                {"name": "fit_tol", "type": "number", "min": 1e-4, "max": 0.2, "step": 1e-3, "default": self.fit_tol},
                {"name": "seed", "type": "integer", "default": self.seed},
            ],
        }

    def update_params(self, **kw: Any) -> None:
        super().update_params(**kw)
        for k in ("w_max", "w_min", "c1", "c2", "c3", "exclusion", "v_max"):
            if k in kw:
                setattr(self.rule, k, float(kw[k]))


__all__ = ["PSO", "PSORule"]
